import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional
from uuid import UUID

import typer
from rich.table import Table

if sys.platform == "win32":
    # Принудительно устанавливаем политику, которая использует SelectorEventLoop.
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from report_file_store import create_file_store
from report_file_store import logging as store_logging
from sqlalchemy.exc import SQLAlchemyError

from report_file_store.exceptions import FileStoreError
from report_file_store.utils.cli_utils import get_rich_console, human_size


app = typer.Typer(help="CLI for report-file-store management.")
console = get_rich_console()


@app.callback()
def main(log_level: Optional[str] = typer.Option(None, help="Overrides LOG_LEVEL.")):
    store_logging.configure(log_level)


def _fail(message: str) -> None:
    console.print(f"[bold red]✖[/bold red] {message}")
    raise typer.Exit(code=1)


@app.command()
def init():
    """
    Creates database tables and the upload directory.
    """
    console.rule("[bold cyan]Service Initialization[/bold cyan]")

    async def _init():
        store = create_file_store()
        try:
            await store.create_schema()
            console.print("[bold green]✔[/bold green] Database tables created.")
            await store.disk.check_connection()
            console.print(f"[bold green]✔[/bold green] Upload directory '{store.disk.root}' is ready.")
        finally:
            await store.aclose()

    try:
        asyncio.run(_init())
    except Exception as e:
        _fail(f"Initialization FAILED: {e}")


@app.command()
def check():
    """Checks connectivity to the database and the upload directory."""
    console.rule("[bold cyan]Connection Check[/bold cyan]")

    async def _check():
        store = create_file_store()
        try:
            return await store.check_connections()
        finally:
            await store.aclose()

    try:
        statuses = asyncio.run(_check())
    except (FileStoreError, SQLAlchemyError) as e:
        _fail(f"Connection check FAILED: {e}")
    failed = False
    for name in ("database", "storage"):
        status = statuses.get(name, "unknown error")
        if status == "ok":
            console.print(f"[bold green]✔[/bold green] {name}: OK")
        else:
            failed = True
            console.print(f"[bold red]✖[/bold red] {name}: FAILED ({status})")
    if failed:
        raise typer.Exit(code=1)


@app.command()
def upload(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    mime_type: Optional[str] = typer.Option(None, "--mime-type", "-t", help="Guessed from the name if omitted."),
    project_id: Optional[UUID] = typer.Option(None, "--project-id"),
    task_id: Optional[UUID] = typer.Option(None, "--task-id"),
    uploaded_by: Optional[str] = typer.Option(None, "--uploaded-by"),
):
    """Stores a local file, reusing the existing record for identical content."""
    mime = mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"

    async def _upload():
        store = create_file_store()
        try:
            return await store.store(
                path.read_bytes(), path.name, mime,
                project_id=project_id, task_id=task_id, uploaded_by=uploaded_by,
            )
        finally:
            await store.aclose()

    try:
        result = asyncio.run(_upload())
    except (FileStoreError, SQLAlchemyError) as e:
        _fail(f"Upload rejected: {e}")
    console.print(f"[bold green]✔[/bold green] Stored {result.original_name} as {result.stored_name}")
    typer.echo(result.model_dump_json(by_alias=True))


@app.command()
def info(file_id: UUID):
    """Prints metadata of one stored file."""
    async def _info():
        store = create_file_store()
        try:
            return await store.get_file_info(file_id)
        finally:
            await store.aclose()

    try:
        record = asyncio.run(_info())
    except (FileStoreError, SQLAlchemyError) as e:
        _fail(str(e))
    typer.echo(record.model_dump_json(indent=2))


@app.command("list")
def list_files(
    project_id: Optional[UUID] = typer.Option(None, "--project-id"),
    mime_type: Optional[str] = typer.Option(None, "--mime-type", help="Prefix match, e.g. 'image/'."),
    page: int = typer.Option(1, min=1),
    limit: int = typer.Option(20, min=1, max=500),
):
    """Lists stored files, newest first."""
    async def _list():
        store = create_file_store()
        try:
            return await store.list_files(project_id=project_id, mime_type=mime_type, page=page, limit=limit)
        finally:
            await store.aclose()

    try:
        result = asyncio.run(_list())
    except (FileStoreError, SQLAlchemyError) as e:
        _fail(f"Listing FAILED: {e}")
    table = Table(title=f"Files (page {result.page}/{max(result.total_pages, 1)}, total {result.total})")
    table.add_column("id")
    table.add_column("name")
    table.add_column("type")
    table.add_column("size", justify="right")
    table.add_column("uploaded")
    for f in result.files:
        table.add_row(str(f.id), f.original_name, f.mime_type, human_size(f.size), f.uploaded_at.isoformat())
    console.print(table)


@app.command()
def delete(file_ids: List[UUID] = typer.Argument(...)):
    """Deletes files (blob and record); missing blobs are tolerated."""
    async def _delete():
        store = create_file_store()
        try:
            return await store.delete_files(file_ids)
        finally:
            await store.aclose()

    try:
        result = asyncio.run(_delete())
    except (FileStoreError, SQLAlchemyError) as e:
        _fail(f"Delete FAILED: {e}")
    console.print(f"Deleted {result.deleted}, failed {len(result.failed)}")
    for file_id in result.failed:
        console.print(f"[bold red]✖[/bold red] {file_id}")
    if result.failed:
        raise typer.Exit(code=1)


@app.command()
def cleanup(days: int = typer.Option(30, "--days", min=0, help="Delete files older than this.")):
    """Removes expired files; files of completed projects are kept."""
    async def _cleanup():
        store = create_file_store()
        try:
            return await store.cleanup_expired(days)
        finally:
            await store.aclose()

    try:
        result = asyncio.run(_cleanup())
    except (FileStoreError, SQLAlchemyError) as e:
        _fail(f"Cleanup FAILED: {e}")
    console.print(f"Cleaned {result.cleaned}, errors {result.errors}")


@app.command()
def stats():
    """Shows storage totals by type and by day (last 30 days)."""
    async def _stats():
        store = create_file_store()
        try:
            return await store.stats()
        finally:
            await store.aclose()

    try:
        result = asyncio.run(_stats())
    except (FileStoreError, SQLAlchemyError) as e:
        _fail(f"Stats FAILED: {e}")
    console.print(f"Total files: {result.total_files}, total size: {human_size(result.total_size)}")

    by_type = Table(title="By type")
    by_type.add_column("mime type")
    by_type.add_column("count", justify="right")
    by_type.add_column("size", justify="right")
    for b in result.files_by_type:
        by_type.add_row(b.mime_type, str(b.count), human_size(b.size))
    console.print(by_type)

    by_date = Table(title="By day")
    by_date.add_column("date")
    by_date.add_column("count", justify="right")
    by_date.add_column("size", justify="right")
    for b in result.files_by_date:
        by_date.add_row(b.date, str(b.count), human_size(b.size))
    console.print(by_date)


@app.command()
def health():
    """Exits with 1 when the store is unhealthy."""
    async def _health():
        store = create_file_store()
        try:
            return await store.health_check()
        finally:
            await store.aclose()

    result = asyncio.run(_health())
    typer.echo(result.model_dump_json())
    if result.status != "healthy":
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
