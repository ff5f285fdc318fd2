"""Permitdex CLI.

Commands:
- init: Create database tables
- tables: List importable tables
- preview: Show the headers, first rows and auto-mapping of a CSV file
- import: Import a CSV file into a table (mapping, pre-flight, progress)
- history: Show recent import runs
- stats: Show directory statistics
- translations: Inspect the curated translations
- retranslate: Re-apply curated translations to imported project names
- export-developers: Export cleaned developer names as JSON
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import replace
from pathlib import Path
from typing import Any, TypeVar

import typer
import yaml
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from sqlalchemy import func, select

from permitdex.config import FALLBACK_KEEP, FALLBACK_TRANSLITERATE, get_config
from permitdex.core.logging import configure_logging
from permitdex.db.connection import close_db, get_session, get_session_factory, init_db
from permitdex.db.import_log import ImportLogRecorder
from permitdex.db.models import AreaModel, CompanyModel
from permitdex.db.store import SQLAlchemyTargetStore
from permitdex.importing.errors import (
    CSVParseError,
    ImportStateError,
    UnknownTableError,
    UntranslatedNamesError,
)
from permitdex.importing.maintenance import (
    developers_document,
    export_developers,
    retranslate_names,
)
from permitdex.importing.preflight import scan_for_untranslated
from permitdex.importing.reader import read_preview
from permitdex.importing.schemas import auto_map_columns, get_schema, list_schemas
from permitdex.importing.translations import TranslationStore, get_translation_loader
from permitdex.importing.types import ImportProgress, ImportStatus, ImportSummary
from permitdex.importing.wizard import ImportWizard, MappingState, UploadState

T = TypeVar("T")

app = typer.Typer(
    name="permitdex",
    help="Permitdex - CSV import and Arabic name normalization for the permits directory",
    no_args_is_help=True,
)
translations_cli = typer.Typer(help="Curated translations")
app.add_typer(translations_cli, name="translations")

console = Console()

# Untranslated names listed before the confirmation prompt
MAX_LISTED_NAMES = 20


@app.callback()
def main_callback(
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (default: LOG_LEVEL)"),
):
    """Configure logging once per invocation."""
    configure_logging(log_level)


def _run(main: Callable[[], Awaitable[T]]) -> T:
    """Run an async command body and dispose the engine afterwards."""

    async def _with_cleanup() -> T:
        try:
            return await main()
        finally:
            await close_db()

    return asyncio.run(_with_cleanup())


def _store() -> SQLAlchemyTargetStore:
    return SQLAlchemyTargetStore(get_session_factory())


def _parse_pairs(pairs: list[str]) -> dict[str, str]:
    """Parse ``target=source`` options."""
    mapping = {}
    for pair in pairs:
        target, sep, source = pair.partition("=")
        if not sep or not target.strip():
            raise typer.BadParameter(f"Expected target=source, got '{pair}'", param_hint="--map")
        mapping[target.strip()] = source.strip()
    return mapping


def _load_mapping_file(path: Path) -> tuple[dict[str, str], list[str]]:
    """Read a YAML mapping file.

    Format:
        columns:
          project_id: ProjectId
          project_name: Name
        translate:
          - project_name
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a mapping", param_hint="--mapping-file")

    columns = data.get("columns") or {}
    translate = data.get("translate") or []
    if not isinstance(columns, dict) or not isinstance(translate, list):
        raise typer.BadParameter(
            f"{path}: 'columns' must be a mapping and 'translate' a list",
            param_hint="--mapping-file",
        )
    return {str(k): str(v) if v else "" for k, v in columns.items()}, [str(c) for c in translate]


def _print_mapping(state: MappingState) -> None:
    table = Table(title=f"Column Mapping: {state.schema.display_name}")
    table.add_column("Target", style="cyan")
    table.add_column("Type")
    table.add_column("Source")
    table.add_column("Required", justify="center")
    table.add_column("Translate", justify="center")

    for column in state.schema.columns:
        source = state.column_mapping.get(column.name)
        table.add_row(
            column.name,
            column.type.value,
            source or "[dim]-[/dim]",
            "[bold]yes[/bold]" if column.required else "",
            "yes" if column.name in state.translate_columns else "",
        )
    console.print(table)


def _print_summary(summary: ImportSummary, error_limit: int) -> None:
    status_style = {
        ImportStatus.SUCCESS: "green",
        ImportStatus.PARTIAL_SUCCESS: "yellow",
        ImportStatus.FAILED: "red",
    }[summary.status]

    console.print(f"\n[bold]Import complete:[/bold] [{status_style}]{summary.status.value}[/{status_style}]")

    table = Table(title="Import Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Rows read", str(summary.rows_read))
    table.add_row("Total", str(summary.total_rows))
    table.add_row("Imported", str(summary.imported_rows))
    table.add_row("Failed", str(summary.failed_rows))
    table.add_row("Skipped", str(summary.skipped_rows))
    for reason, count in sorted(summary.skip_reasons.items()):
        table.add_row(f"  skipped: {reason}", str(count))
    if summary.duplicate_rows:
        table.add_row("Duplicate keys merged", str(summary.duplicate_rows))
    if summary.aggregate_rows:
        table.add_row("Directory rows updated", str(summary.aggregate_rows))
    for key, value in summary.translation_stats.items():
        table.add_row(f"  names: {key}", str(value))
    console.print(table)
    console.print(f"Duration: {summary.duration_seconds:.1f}s")

    shown, remainder = summary.displayed_errors(error_limit)
    if shown:
        console.print(f"\n[yellow]⚠[/yellow] {len(summary.errors)} errors")
        for error in shown:
            console.print(f"  {error}", style="dim")
        if remainder:
            console.print(f"  ... and {remainder} more errors", style="dim")

    if summary.aggregate_errors:
        console.print(
            f"\n[red]✗[/red] {len(summary.aggregate_errors)} directory updates failed "
            "(companies/areas may be out of sync):"
        )
        for error in summary.aggregate_errors[:error_limit]:
            console.print(f"  {error}", style="dim")


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")
    if drop:
        console.print("[yellow]Dropping existing tables...[/yellow]")

    _run(lambda: init_db(drop=drop))
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def tables():
    """List importable tables."""
    table = Table(title="Importable Tables")
    table.add_column("Table", style="cyan")
    table.add_column("Name")
    table.add_column("Conflict Key")
    table.add_column("Required")
    table.add_column("Translatable")

    for schema in list_schemas():
        table.add_row(
            schema.table,
            schema.display_name,
            ",".join(schema.conflict_key) if schema.uses_upsert else "[dim]insert only[/dim]",
            ", ".join(column.name for column in schema.required_columns),
            ", ".join(column.name for column in schema.translatable_columns),
        )
    console.print(table)


@app.command()
def preview(
    file_path: Path = typer.Argument(..., help="CSV file"),
    table_name: str | None = typer.Option(None, "--table", "-t", help="Show auto-mapping for this table"),
    rows: int = typer.Option(5, "--rows", "-n", help="Sample rows to show"),
):
    """Show headers, sample rows and (optionally) the auto-mapping of a CSV file."""
    try:
        csv_preview = read_preview(file_path, max(rows, 1))
    except CSVParseError as e:
        console.print(f"[red]Error parsing CSV: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]{file_path.name}[/bold]: {len(csv_preview.headers)} columns")

    sample = Table(title="Sample Rows")
    for header in csv_preview.headers:
        sample.add_column(header, overflow="fold")
    for row in csv_preview.rows[:rows]:
        sample.add_row(*(row.get(header, "") for header in csv_preview.headers))
    console.print(sample)

    if table_name is None:
        return

    try:
        schema = get_schema(table_name)
    except UnknownTableError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    mapping = auto_map_columns(csv_preview.headers, schema)
    console.print(f"\nAuto-mapped {len(mapping)} of {len(schema.columns)} columns of {schema.table}")
    for target, source in mapping.items():
        console.print(f"  {target} ← {source}")
    missing = [column.name for column in schema.required_columns if column.name not in mapping]
    if missing:
        console.print(f"[yellow]⚠ Required columns not matched:[/yellow] {', '.join(missing)}")


@app.command(name="import")
def import_cmd(
    file_path: Path = typer.Argument(..., help="CSV file"),
    table_name: str = typer.Option(..., "--table", "-t", help="Target table"),
    mappings: list[str] = typer.Option([], "--map", "-m", help="Column override target=source"),
    mapping_file: Path | None = typer.Option(None, "--mapping-file", help="YAML column mapping"),
    translate: list[str] = typer.Option([], "--translate", help="Translate Arabic names in column"),
    fallback: str | None = typer.Option(
        None, "--fallback", help="Untranslated names: keep (default) or transliterate"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Import untranslated names without asking"),
    chunk_size: int | None = typer.Option(None, "--chunk-size", help="Rows per batch"),
    imported_by: str = typer.Option("cli", "--by", help="Recorded in the import log"),
):
    """Import a CSV file into a table.

    Example:
        permitdex import data/Projects.csv --table projects --translate project_name
    """
    if fallback is not None and fallback not in (FALLBACK_KEEP, FALLBACK_TRANSLITERATE):
        raise typer.BadParameter(
            f"Expected '{FALLBACK_KEEP}' or '{FALLBACK_TRANSLITERATE}'", param_hint="--fallback"
        )
    if chunk_size is not None and chunk_size < 1:
        raise typer.BadParameter("Must be positive", param_hint="--chunk-size")

    config = get_config()
    import_config = config.importing
    if chunk_size is not None:
        import_config = replace(import_config, chunk_size=chunk_size)

    overrides = _parse_pairs(mappings)
    file_columns: dict[str, str] = {}
    file_translate: list[str] = []
    if mapping_file is not None:
        file_columns, file_translate = _load_mapping_file(mapping_file)

    console.print(f"[bold]Importing:[/bold] {file_path} → {table_name}")

    async def _import() -> ImportSummary:
        translate_columns = list(dict.fromkeys(file_translate + translate))
        translations = TranslationStore()
        if translate_columns:
            translations = await get_translation_loader().load()
            console.print(f"Loaded {len(translations)} curated translations")

        wizard = ImportWizard(_store(), translations, import_config, fallback=fallback)

        state = wizard.select_file(file_path)
        if isinstance(state, UploadState):
            for error in state.errors:
                console.print(f"[red]{error}[/red]")
            raise typer.Exit(1)

        try:
            wizard.select_table(table_name)
            for target, source in {**file_columns, **overrides}.items():
                wizard.map_column(target, source or None)
            for column in translate_columns:
                wizard.set_translation(column)
        except (UnknownTableError, ValueError) as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

        mapping_state = wizard.state
        _print_mapping(mapping_state)
        if not mapping_state.can_start:
            console.print(
                "[red]✗ Required columns are not mapped:[/red] "
                + ", ".join(mapping_state.missing_required)
            )
            raise typer.Exit(1)

        recorder = ImportLogRecorder(get_session_factory())
        log_id = await recorder.create(mapping_state.schema.table, file_path.name, imported_by)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed} rows"),
            TimeElapsedColumn(),
            console=console,
        ) as progress_bar:
            task = progress_bar.add_task("Importing", total=None)

            def on_progress(progress: ImportProgress) -> None:
                progress_bar.update(
                    task,
                    total=progress.expected_rows,
                    completed=progress.rows_read,
                    description=f"Importing ({progress.imported_rows} imported)",
                )

            await recorder.mark_processing(log_id)
            try:
                complete = await wizard.start_import(on_progress=on_progress)
            except UntranslatedNamesError as e:
                progress_bar.stop()
                console.print(
                    f"\n[yellow]⚠ {len(e.names)} Arabic names have no curated translation[/yellow]"
                )
                for name in e.names[:MAX_LISTED_NAMES]:
                    console.print(f"  - {name}")
                if len(e.names) > MAX_LISTED_NAMES:
                    console.print(f"  ... and {len(e.names) - MAX_LISTED_NAMES} more")

                policy = fallback or import_config.untranslated_fallback
                action = "kept in Arabic" if policy == FALLBACK_KEEP else "transliterated"
                if not yes and not typer.confirm(f"Proceed? These names will be {action}"):
                    await recorder.fail(log_id, f"Cancelled: {len(e.names)} untranslated names")
                    console.print("[yellow]Import cancelled[/yellow]")
                    raise typer.Exit(1)

                progress_bar.start()
                complete = await wizard.start_import(
                    confirm_untranslated=True, on_progress=on_progress
                )
            except ImportStateError as e:
                await recorder.fail(log_id, str(e))
                console.print(f"[red]✗ {e}[/red]")
                raise typer.Exit(1)

        await recorder.finish(log_id, complete.summary)
        return complete.summary

    summary = _run(_import)
    _print_summary(summary, import_config.error_display_limit)
    if summary.status is ImportStatus.FAILED:
        raise typer.Exit(1)


@app.command()
def history(
    last_n: int = typer.Option(10, "--last", "-n", help="Show last N import runs"),
):
    """Show recent import runs."""

    async def _history():
        return await ImportLogRecorder(get_session_factory()).recent(last_n)

    logs = _run(_history)
    if not logs:
        console.print("[yellow]No import runs found[/yellow]")
        return

    table = Table(title=f"Last {last_n} Import Runs")
    table.add_column("Started", style="cyan")
    table.add_column("Table")
    table.add_column("File")
    table.add_column("Status", style="bold")
    table.add_column("Imported", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Skipped", justify="right")

    styles = {"completed": "green", "failed": "red"}
    for log in logs:
        style = styles.get(log.status, "yellow")
        table.add_row(
            log.created_at.strftime("%Y-%m-%d %H:%M:%S") if log.created_at else "",
            log.table_name,
            log.file_name,
            f"[{style}]{log.status}[/{style}]",
            str(log.records_imported),
            str(log.records_failed),
            str(log.records_skipped),
        )
    console.print(table)

    for log in logs:
        if log.status == "failed" and log.error_message:
            console.print(f"  • {log.file_name}: {log.error_message.splitlines()[0]}")


@app.command()
def stats():
    """Show companies per type and area counts."""

    async def _stats() -> dict[str, Any]:
        async with get_session() as session:
            result = await session.execute(
                select(CompanyModel.type, func.count(), func.coalesce(func.sum(CompanyModel.project_count), 0))
                .group_by(CompanyModel.type)
                .order_by(CompanyModel.type)
            )
            companies = [(row[0], row[1], row[2]) for row in result.all()]
            areas = await session.scalar(select(func.count()).select_from(AreaModel))
        return {"companies": companies, "areas": areas or 0}

    data = _run(_stats)

    table = Table(title="Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_column("Projects", justify="right")
    for company_type, count, projects in data["companies"]:
        table.add_row(f"Companies: {company_type}", str(count), str(projects))
    table.add_row("Areas", str(data["areas"]), "")
    console.print(table)


@translations_cli.command("stats")
def translations_stats():
    """Show how many curated translations are available."""
    loader = get_translation_loader()
    translations = asyncio.run(loader.load())
    console.print(f"[bold]Source:[/bold] {loader.source}")
    console.print(f"Curated translations: {translations.stats()['total']}")


@translations_cli.command("missing")
def translations_missing(
    file_path: Path = typer.Argument(..., help="CSV file"),
    column: str = typer.Option(..., "--column", "-c", help="CSV header holding Arabic names"),
    limit: int = typer.Option(50, "--limit", help="Names to list"),
):
    """List Arabic values in a CSV column without a curated translation."""

    async def _scan():
        translations = await get_translation_loader().load()
        return await scan_for_untranslated(file_path, {column: column}, [column], translations)

    try:
        result = asyncio.run(_scan())
    except CSVParseError as e:
        console.print(f"[red]Error parsing CSV: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"{result.rows_scanned} rows, {result.arabic_values} Arabic values, "
        f"{len(result.untranslated)} distinct without a curated translation"
    )
    names = sorted(result.untranslated)
    for name in names[:limit]:
        console.print(f"  - {name}")
    if len(names) > limit:
        console.print(f"  ... and {len(names) - limit} more")


@app.command()
def retranslate(
    file_path: Path = typer.Argument(..., help="CSV file with ids and names"),
    table_name: str = typer.Option("projects", "--table", "-t", help="Target table"),
    key_column: str = typer.Option("project_id", "--key", help="Key column (CSV header and table column)"),
    name_column: str = typer.Option("project_name", "--name", help="Name column (CSV header and table column)"),
):
    """Re-apply curated translations to names already imported."""

    async def _retranslate():
        translations = await get_translation_loader().load()
        return await retranslate_names(
            file_path,
            _store(),
            translations,
            table=table_name,
            key_column=key_column,
            name_column=name_column,
        )

    try:
        result = _run(_retranslate)
    except CSVParseError as e:
        console.print(f"[red]Error parsing CSV: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Retranslation")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Rows", str(result.rows))
    table.add_row("Arabic names translated", str(result.translated))
    table.add_row("Arabic names not found", str(result.not_translated))
    table.add_row("Non-Arabic names", str(result.non_arabic))
    table.add_row("Updated", str(result.updated))
    table.add_row("Failed", str(result.failed))
    console.print(table)

    if result.missing:
        console.print(f"\nMissing translations ({len(result.missing)}):")
        for name in sorted(result.missing)[:10]:
            console.print(f"  - {name}")
        if len(result.missing) > 10:
            console.print(f"  ... and {len(result.missing) - 10} more")
    for error in result.errors[:5]:
        console.print(f"  {error}", style="dim")


@app.command(name="export-developers")
def export_developers_cmd(
    output: Path = typer.Option(
        Path("developers-for-gemini.json"), "--out", "-o", help="Output JSON file"
    ),
):
    """Export cleaned developer names for enrichment."""

    async def _export():
        return await export_developers(_store())

    developers = _run(_export)
    with open(output, "w", encoding="utf-8") as f:
        json.dump(developers_document(developers), f, indent=2, ensure_ascii=False)
    console.print(f"[bold green]✓[/bold green] Exported {len(developers)} developers to {output}")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
