"""FAISS vector store — local, zero infrastructure.

Uses an ``IndexIDMap2`` over an inner-product flat index with L2-normalized
vectors (cosine similarity) and a parallel record dict for owner and
document filtering. Optionally persists to a directory after every write.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Sequence
from pathlib import Path

import numpy as np

from docchat.errors import ConfigurationError
from docchat.vectorstore.base import VectorStore
from docchat.vectorstore.schemas import ChunkRecord, SearchHit

logger = logging.getLogger(__name__)

_INDEX_FILE = "index.faiss"
_RECORDS_FILE = "records.json"


class FAISSStore(VectorStore):
    """FAISS-backed vector store with owner and document filtering."""

    def __init__(self, dimension: int = 768, path: str | None = None):
        try:
            import faiss
        except ImportError as exc:
            raise ImportError(
                "faiss-cpu required: pip install docchat-rag[faiss]"
            ) from exc

        self._faiss = faiss
        self._dimension = dimension
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self._index = self._new_index()
        self._records: dict[int, dict] = {}  # int id -> chunk fields without embedding
        self._next_id = 0

        if self._path and (self._path / _INDEX_FILE).exists():
            self._load()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def insert(self, records: list[ChunkRecord]) -> int:
        if not records:
            return 0

        bad = [len(r.embedding) for r in records if len(r.embedding) != self._dimension]
        if bad:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self._dimension}, got {bad[0]}"
            )
        vectors = np.array([r.embedding for r in records], dtype=np.float32)
        # L2-normalize for cosine similarity via inner product
        self._faiss.normalize_L2(vectors)

        with self._lock:
            ids = np.arange(self._next_id, self._next_id + len(records), dtype=np.int64)
            self._index.add_with_ids(vectors, ids)
            for int_id, record in zip(ids.tolist(), records, strict=True):
                self._records[int_id] = {
                    "id": record.id,
                    "document_id": record.document_id,
                    "owner_id": record.owner_id,
                    "content": record.content,
                    "page_number": record.page_number,
                    "chunk_index": record.chunk_index,
                }
            self._next_id += len(records)
            self._persist()

        logger.info("FAISSStore added %d records (total: %d)", len(records), self.count())
        return len(records)

    def search(
        self,
        owner_id: str,
        query_embedding: list[float],
        match_threshold: float,
        match_count: int,
        document_ids: Sequence[str] | None = None,
    ) -> list[SearchHit]:
        if match_count <= 0:
            return []

        query_vec = np.array([query_embedding], dtype=np.float32)
        if query_vec.shape[1] != self._dimension:
            raise ValueError(
                f"Query dimension mismatch: expected {self._dimension}, "
                f"got {query_vec.shape[1]}"
            )
        self._faiss.normalize_L2(query_vec)
        wanted = set(document_ids) if document_ids else None

        with self._lock:
            total = self._index.ntotal
            if total == 0:
                return []
            # Exact search over the whole index; filtering happens afterwards.
            scores, indices = self._index.search(query_vec, total)
            records = dict(self._records)

        hits: list[SearchHit] = []
        for score, idx in zip(scores[0], indices[0], strict=True):
            if idx == -1 or score < match_threshold:
                continue
            record = records.get(int(idx))
            if record is None or record["owner_id"] != owner_id:
                continue
            if wanted is not None and record["document_id"] not in wanted:
                continue

            hits.append(SearchHit(**record, similarity=max(0.0, min(float(score), 1.0))))
            if len(hits) >= match_count:
                break

        return hits

    def delete_document(self, owner_id: str, document_id: str) -> int:
        with self._lock:
            doomed = [
                int_id
                for int_id, record in self._records.items()
                if record["owner_id"] == owner_id and record["document_id"] == document_id
            ]
            if not doomed:
                return 0
            self._index.remove_ids(np.array(doomed, dtype=np.int64))
            for int_id in doomed:
                del self._records[int_id]
            self._persist()

        logger.info("FAISSStore deleted %d chunks of document %s", len(doomed), document_id)
        return len(doomed)

    def delete_chunks(self, owner_id: str, chunk_ids: Sequence[str]) -> int:
        wanted = set(chunk_ids)
        with self._lock:
            doomed = [
                int_id
                for int_id, record in self._records.items()
                if record["owner_id"] == owner_id and record["id"] in wanted
            ]
            if not doomed:
                return 0
            self._index.remove_ids(np.array(doomed, dtype=np.int64))
            for int_id in doomed:
                del self._records[int_id]
            self._persist()

        logger.info("FAISSStore deleted %d chunks by id", len(doomed))
        return len(doomed)

    def count(self, owner_id: str | None = None) -> int:
        with self._lock:
            if owner_id is None:
                return len(self._records)
            return sum(1 for r in self._records.values() if r["owner_id"] == owner_id)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _new_index(self):
        return self._faiss.IndexIDMap2(self._faiss.IndexFlatIP(self._dimension))

    def _persist(self) -> None:
        """Write index and records to ``path``; caller holds the lock."""
        if self._path is None:
            return
        self._path.mkdir(parents=True, exist_ok=True)
        self._faiss.write_index(self._index, str(self._path / _INDEX_FILE))
        with open(self._path / _RECORDS_FILE, "w") as f:
            json.dump(
                {
                    "dimension": self._dimension,
                    "next_id": self._next_id,
                    "records": {str(k): v for k, v in self._records.items()},
                },
                f,
            )

    def _load(self) -> None:
        assert self._path is not None
        with open(self._path / _RECORDS_FILE) as f:
            data = json.load(f)

        stored_dim = data.get("dimension", self._dimension)
        if stored_dim != self._dimension:
            raise ConfigurationError(
                f"Vector store at {self._path} holds {stored_dim}-dimensional vectors, "
                f"but the embedding model produces {self._dimension}"
            )

        self._index = self._faiss.read_index(str(self._path / _INDEX_FILE))
        self._records = {int(k): v for k, v in data["records"].items()}
        self._next_id = data.get("next_id", len(self._records))
        logger.info("FAISSStore loaded from %s (%d records)", self._path, len(self._records))
