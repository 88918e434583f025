"""Document records persisted with SQLAlchemy.

The repository owns the status invariant: a document leaves ``processing``
at most once, and never comes back. Transitions are conditional updates
(``WHERE status = 'processing'``) so two racing writers cannot both win.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import DateTime, Integer, String, Text, create_engine, delete, select, update
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from docchat.documents.schemas import (
    Document,
    DocumentState,
    DocumentStatus,
    Failed,
    Processing,
    Ready,
)
from docchat.errors import StatusTransitionError

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE = 2048


class Base(DeclarativeBase):
    pass


class DocumentModel(Base):
    """ORM row for one uploaded document."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=DocumentStatus.PROCESSING.value
    )
    total_pages: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_chunks: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def _to_document(row: DocumentModel) -> Document:
    status = DocumentStatus(row.status)
    state: DocumentState
    if status is DocumentStatus.READY:
        state = Ready(total_pages=row.total_pages or 0, total_chunks=row.total_chunks or 0)
    elif status is DocumentStatus.ERROR:
        state = Failed(message=row.error_message or "")
    else:
        state = Processing()
    return Document(
        id=row.id,
        owner_id=row.owner_id,
        filename=row.filename,
        storage_path=row.storage_path,
        state=state,
        created_at=row.created_at,
    )


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database:
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=echo, pool_pre_ping=True)


class DocumentRepository:
    """CRUD and status transitions for ``Document`` records."""

    def __init__(self, engine: Engine, create_tables: bool = True):
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        if create_tables:
            Base.metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> DocumentRepository:
        return cls(create_db_engine(url, echo=echo))

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create(
        self,
        owner_id: str,
        filename: str,
        storage_path: str,
        document_id: str | None = None,
    ) -> Document:
        """Insert a new document in ``processing`` state."""
        row = DocumentModel(
            id=document_id or str(uuid.uuid4()),
            owner_id=owner_id,
            filename=filename,
            storage_path=storage_path,
            status=DocumentStatus.PROCESSING.value,
            created_at=datetime.now(UTC),
        )
        with self._session() as session:
            session.add(row)
        logger.info("Created document %s (%s) for owner %s", row.id, filename, owner_id)
        return _to_document(row)

    def get(self, owner_id: str, document_id: str) -> Document | None:
        with self._session() as session:
            row = session.scalar(
                select(DocumentModel).where(
                    DocumentModel.id == document_id,
                    DocumentModel.owner_id == owner_id,
                )
            )
            return _to_document(row) if row else None

    def list_by_owner(self, owner_id: str) -> list[Document]:
        """Return the owner's documents, newest first."""
        with self._session() as session:
            rows = session.scalars(
                select(DocumentModel)
                .where(DocumentModel.owner_id == owner_id)
                .order_by(DocumentModel.created_at.desc())
            ).all()
            return [_to_document(r) for r in rows]

    def filenames(self, owner_id: str, document_ids: Iterable[str]) -> dict[str, str]:
        """Resolve document ids to filenames in a single query."""
        ids = sorted(set(document_ids))
        if not ids:
            return {}
        with self._session() as session:
            rows = session.execute(
                select(DocumentModel.id, DocumentModel.filename).where(
                    DocumentModel.owner_id == owner_id,
                    DocumentModel.id.in_(ids),
                )
            ).all()
            return {doc_id: filename for doc_id, filename in rows}

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def mark_ready(self, document_id: str, total_pages: int, total_chunks: int) -> Document:
        return self._transition(
            document_id,
            status=DocumentStatus.READY.value,
            total_pages=total_pages,
            total_chunks=total_chunks,
            error_message=None,
        )

    def mark_error(self, document_id: str, message: str) -> Document:
        return self._transition(
            document_id,
            status=DocumentStatus.ERROR.value,
            error_message=message[:MAX_ERROR_MESSAGE],
        )

    def _transition(self, document_id: str, **values) -> Document:
        with self._session() as session:
            result = session.execute(
                update(DocumentModel)
                .where(
                    DocumentModel.id == document_id,
                    DocumentModel.status == DocumentStatus.PROCESSING.value,
                )
                .values(**values)
            )
            if result.rowcount != 1:
                raise StatusTransitionError(
                    f"Document {document_id} is not in processing state"
                )
            row = session.get(DocumentModel, document_id, populate_existing=True)
            return _to_document(row)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete(self, owner_id: str, document_id: str) -> bool:
        with self._session() as session:
            result = session.execute(
                delete(DocumentModel).where(
                    DocumentModel.id == document_id,
                    DocumentModel.owner_id == owner_id,
                )
            )
            return result.rowcount > 0
