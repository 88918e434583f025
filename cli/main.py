"""CLI entry point — Typer app for docchat commands.

Usage:
    docchat ingest lecture-notes.pdf
    docchat ask "What does chapter 2 say about photosynthesis?" --stream
    docchat documents
    docchat delete <document-id>
    docchat url <document-id>
    docchat status
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

app = typer.Typer(
    name="docchat",
    help="Document chat — ingest PDFs and ask questions with page citations.",
    no_args_is_help=True,
)

console = Console()

_state: dict = {"config": None}

_INGEST_PATH = typer.Argument(..., help="Path to the PDF to ingest")
_OWNER = typer.Option("local", "--owner", "-o", envvar="DOCCHAT_OWNER", help="Owner id")

_STATUS_STYLE = {"ready": "green", "processing": "yellow", "error": "red"}


def _settings():
    from docchat.config import load_settings

    return load_settings(_state["config"])


def _service():
    from docchat.service import build_service

    return build_service(_settings())


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline progress"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Settings YAML file"),
) -> None:
    """Configure logging and settings for every command."""
    _state["config"] = config
    level = "INFO" if verbose else _settings().logging.level
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command()
def ingest(
    path: Annotated[Path, _INGEST_PATH],
    owner: str = _OWNER,
) -> None:
    """Upload a PDF and ingest it into the vector store."""
    from docchat.errors import DocChatError

    if not path.is_file():
        console.print(f"[red]File not found:[/] {path}")
        raise typer.Exit(code=1)

    try:
        document = _service().ingest(owner, path.name, path.read_bytes())
    except DocChatError as exc:
        console.print(f"[red]Rejected:[/] {exc}")
        raise typer.Exit(code=1) from exc

    if document.error_message is not None:
        console.print(f"\n[bold red]Failed:[/] {path.name}")
        console.print(f"  {document.error_message}")
        raise typer.Exit(code=1)

    console.print(f"\n[bold green]Ingested:[/] {path.name}")
    console.print(f"  Document: {document.id}")
    console.print(f"  Pages: {document.total_pages}")
    console.print(f"  Chunks: {document.total_chunks}")


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to ask"),
    owner: str = _OWNER,
    document: list[str] = typer.Option(
        [], "--document", "-d", help="Restrict to these document ids (repeatable)",
    ),
    stream: bool = typer.Option(False, "--stream", help="Print the answer as it is generated"),
) -> None:
    """Ask a question about your documents."""
    from docchat.errors import DocChatError
    from docchat.pipeline.citations import format_sources
    from docchat.pipeline.schemas import DoneEvent, ErrorEvent, TokenEvent

    service = _service()
    console.print(f"\n[bold]Q:[/] {question}\n")

    if not stream:
        try:
            response = service.retrieve_and_answer(owner, question, document or None)
        except DocChatError as exc:
            console.print(f"[red]Error:[/] {exc}")
            raise typer.Exit(code=1) from exc
        console.print(f"[bold green]A:[/] {response.answer}")
        if response.sources:
            console.print(format_sources(response.sources))
        console.print(f"\n[dim]Model: {response.model}[/]")
        return

    console.print("[bold green]A:[/] ", end="")
    for event in service.retrieve_and_answer_stream(owner, question, document or None):
        if isinstance(event, TokenEvent):
            console.print(event.token, end="", markup=False, highlight=False)
        elif isinstance(event, DoneEvent):
            console.print()
            if event.sources:
                console.print(format_sources(event.sources))
            console.print(f"\n[dim]Model: {event.model}[/]")
        elif isinstance(event, ErrorEvent):
            suffix = " (response incomplete)" if event.incomplete else ""
            console.print(f"\n[red]Error:[/] {event.error}{suffix}")
            raise typer.Exit(code=1)


@app.command()
def documents(owner: str = _OWNER) -> None:
    """List your documents, newest first."""
    docs = _service().list_documents(owner)
    if not docs:
        console.print("No documents yet.")
        return

    table = Table(title="Documents")
    table.add_column("ID", style="cyan")
    table.add_column("Filename")
    table.add_column("Status")
    table.add_column("Pages", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Created")

    for d in docs:
        style = _STATUS_STYLE.get(d.status.value, "")
        status_text = f"[{style}]{d.status.value}[/]"
        if d.error_message:
            status_text += f" ({d.error_message[:40]})"
        table.add_row(
            d.id,
            d.filename,
            status_text,
            str(d.total_pages or ""),
            str(d.total_chunks or ""),
            d.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@app.command()
def delete(
    document_id: str = typer.Argument(..., help="Document id"),
    owner: str = _OWNER,
) -> None:
    """Delete a document, its chunks and its stored PDF."""
    from docchat.errors import NotFound

    try:
        _service().delete_document(owner, document_id)
    except NotFound as exc:
        console.print(f"[red]{exc}[/]")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Deleted[/] {document_id}")


@app.command()
def url(
    document_id: str = typer.Argument(..., help="Document id"),
    owner: str = _OWNER,
    expires_in: int = typer.Option(3600, "--expires-in", help="Link lifetime in seconds"),
) -> None:
    """Print a link for viewing a stored PDF."""
    from docchat.errors import NotFound

    try:
        link = _service().document_url(owner, document_id, expires_in=expires_in)
    except NotFound as exc:
        console.print(f"[red]{exc}[/]")
        raise typer.Exit(code=1) from exc
    console.print(link, soft_wrap=True, markup=False)


@app.command()
def status() -> None:
    """Show configured and installed providers."""
    from docchat.embeddings import factory as embedding_factory
    from docchat.llm import factory as llm_factory
    from docchat.vectorstore import factory as store_factory

    def _listing(names: list[str], missing_dependency) -> str:
        labels = []
        for name in names:
            extra = missing_dependency(name)
            labels.append(f"{name} (install extra: {extra})" if extra else name)
        return ", ".join(labels)

    settings = _settings()
    console.print("\n[bold green]docchat-rag[/] v0.1.0\n")

    table = Table(title="Components")
    table.add_column("Layer", style="cyan")
    table.add_column("Configured")
    table.add_column("Available")

    table.add_row(
        "Embedding Providers",
        f"{settings.embedding.provider} ({settings.embedding.model})",
        _listing(embedding_factory.available_providers(), embedding_factory.missing_dependency),
    )
    table.add_row(
        "Vector Stores",
        settings.vectorstore.backend,
        _listing(store_factory.available_stores(), store_factory.missing_dependency),
    )
    table.add_row(
        "LLM Providers",
        f"{settings.llm.provider} ({settings.llm.model})",
        _listing(llm_factory.available_providers(), llm_factory.missing_dependency),
    )
    table.add_row("Object Storage", settings.storage.backend, "local, s3")

    console.print(table)


if __name__ == "__main__":
    app()
