"""BOQMatch CLI.

Commands:
- init: Initialize database schema
- import-catalog: Import master materials from CSV/XLSX
- parse: Dry-run extraction and matching of a BOQ file (nothing persisted)
- process: Register and fully process a BOQ file or Google spreadsheet
- status: Show an upload's status and counters
- web serve: Run the HTTP API
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from boqmatch.config import get_config
from boqmatch.core.logging import configure_logging
from boqmatch.db.connection import close_db, get_session, get_session_factory, init_db
from boqmatch.db.repository import BOQRepository
from boqmatch.ingestion.catalog import ingest_catalog
from boqmatch.ingestion.google_sheets import GoogleSheetsClient
from boqmatch.ingestion.workbook import workbook_to_text
from boqmatch.pipeline.orchestrator import build_processor, normalize_mappings
from boqmatch.reporting.rate_tracker import RateAggregator

app = typer.Typer(
    name="boqmatch",
    help="BOQMatch - Bill of Quantities extraction and master-catalog matching",
    no_args_is_help=True,
)
web_cli = typer.Typer(help="Web UI / API")
app.add_typer(web_cli, name="web")

console = Console()


def _load_mappings(path: Path | None) -> dict:
    if path is None:
        return {}
    return json.loads(path.read_text(encoding="utf-8"))


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    configure_logging("DEBUG" if verbose else None)


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        await init_db(drop=drop)
        await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command(name="import-catalog")
def import_catalog_cmd(
    files: list[Path] = typer.Argument(..., help="Catalog files (CSV/XLSX)"),
):
    """Import master materials and categories."""

    async def _import():
        total_success = 0
        async with get_session() as session:
            for file_path in files:
                console.print(f"  Processing: {file_path}")
                success_count, errors = await ingest_catalog(session, file_path)
                total_success += success_count
                console.print(f"    [green]✓[/green] {success_count} materials imported")
                for err in errors[:5]:  # Show first 5 errors
                    console.print(f"      {err}", style="dim")
        await close_db()
        console.print(f"\n[bold green]✓[/bold green] Total: {total_success} materials imported")

    asyncio.run(_import())


@app.command()
def parse(
    file: Path = typer.Argument(..., help="BOQ workbook (XLSX/CSV) or sheet-marker text file"),
    mappings: Path | None = typer.Option(None, "--mappings", help="JSON column mappings by sheet"),
    limit: int = typer.Option(50, "--limit", help="Rows to display"),
):
    """Extract and match a BOQ without persisting anything."""
    content = workbook_to_text(file)
    processor = build_processor(use_llm=False)

    async def _parse():
        materials, categories = await processor.repository.fetch_reference_data()
        items, paths = await processor.extract_items(
            content, normalize_mappings(_load_mappings(mappings)), materials, categories
        )
        processor.annotate(items, materials, categories)
        await close_db()
        return items, paths

    items, paths = asyncio.run(_parse())

    for sheet_name, path in paths.items():
        console.print(f"[bold]{sheet_name}[/bold]: {path.value}")

    table = Table(title=f"{file.name}: {len(items)} items")
    table.add_column("#", justify="right")
    table.add_column("Bill")
    table.add_column("Code")
    table.add_column("Description")
    table.add_column("Unit")
    table.add_column("Qty", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Match", justify="right")
    table.add_column("Flags", style="yellow")

    for item in items[:limit]:
        table.add_row(
            str(item.row_number),
            str(item.bill_number),
            item.item_code or "",
            item.item_description[:60],
            item.unit or "",
            f"{item.quantity:g}" if item.quantity else "",
            f"{item.total_rate:,.2f}" if item.total_rate else "",
            f"{item.match_confidence:.2f}" if item.matched_material_id else "new",
            item.outlier_reason or "",
        )
    console.print(table)

    trackers = RateAggregator().add_all(items).summary()
    if trackers:
        console.print(f"Rates tracked for {len(trackers)} matched materials")


@app.command()
def process(
    file: Path | None = typer.Argument(None, help="BOQ workbook (XLSX/CSV) or sheet-marker text file"),
    sheet_id: str | None = typer.Option(None, "--sheet-id", help="Google spreadsheet id"),
    mappings: Path | None = typer.Option(None, "--mappings", help="JSON column mappings by sheet"),
    use_llm: bool = typer.Option(True, "--llm/--no-llm", help="Use LLM extraction for unmapped sheets"),
):
    """Register an upload and process it to completion."""
    if file is None and sheet_id is None:
        console.print("[red]✗[/red] Provide a FILE or --sheet-id")
        raise typer.Exit(2)

    config = get_config()

    async def _process():
        if file is not None:
            content = workbook_to_text(file)
            name = file.name
        else:
            async with GoogleSheetsClient(config.sheets) as sheets:
                content = await sheets.fetch_as_text(sheet_id)
            name = f"google-sheet:{sheet_id}"

        processor = build_processor(config=config, use_llm=use_llm)
        upload = await processor.repository.create_upload(name)
        console.print(f"[bold]Processing upload[/bold] {upload.id} ({name})")
        result = await processor.process(upload.id, content, _load_mappings(mappings))
        await close_db()
        return result

    result = asyncio.run(_process())

    for sheet_name, path in result.sheet_paths.items():
        console.print(f"  {sheet_name}: {path}")

    if result.success:
        console.print(f"[bold green]✓[/bold green] {result.message}")
    else:
        console.print(f"[red]✗[/red] Failed: {result.message}")
        raise typer.Exit(1)


@app.command()
def status(upload_id: str = typer.Argument(..., help="Upload id")):
    """Show upload status and counters."""

    async def _status():
        repository = BOQRepository(get_session_factory())
        upload = await repository.get_upload(UUID(upload_id))
        await close_db()
        return upload

    upload = asyncio.run(_status())
    if upload is None:
        console.print(f"[red]✗[/red] Upload {upload_id} not found")
        raise typer.Exit(1)

    table = Table(title=f"Upload {upload.id}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("File", upload.file_name)
    table.add_row("Status", upload.status.value)
    table.add_row("Items extracted", str(upload.total_items_extracted))
    table.add_row("Matched to master", str(upload.items_matched_to_master))
    table.add_row("Master updates", str(upload.items_added_to_master))
    if upload.error_message:
        table.add_row("Error", upload.error_message)
    console.print(table)


@web_cli.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """Run the BOQMatch HTTP API."""
    import uvicorn

    uvicorn.run("boqmatch.web.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
