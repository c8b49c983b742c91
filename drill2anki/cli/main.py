"""
Typer CLI for drill2anki.

Commands:
    drill2anki convert        - Rewrite org-drill entries as anki-editor notes
    drill2anki list           - List drill entries with type and review state
    drill2anki push           - Push converted notes to Anki via AnkiConnect
    drill2anki apply-history  - Apply org-drill review history to pushed notes
    drill2anki status         - Check the AnkiConnect connection

Usage:
    drill2anki --help
    drill2anki convert notes/french.org
    drill2anki convert notes --recursive --output-dir converted
    drill2anki convert notes/french.org --query "type:hide1cloze" --dry-run
    drill2anki push notes/french.anki.org --history drill_history.csv
    drill2anki apply-history drill_history.csv notes/french.anki.org
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from drill2anki import __version__
from drill2anki.config import Settings, get_settings

app = typer.Typer(
    help="drill2anki: org-drill flashcards -> anki-editor notes -> Anki",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Logging
# ========================================


def configure_logging(level: str, log_file: str | None = None) -> None:
    """Route loguru output to stderr (and optionally a rotating log file)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        logger.add(log_file, level="DEBUG", rotation="1 MB", retention=5, encoding="utf-8")


def _version_callback(value: bool) -> None:
    if value:
        rprint(f"drill2anki {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: str | None = typer.Option(
        None, "--log-level", "-l", help="DEBUG, INFO, WARNING or ERROR (default: from config)"
    ),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version"
    ),
) -> None:
    """Convert org-drill flashcards for Anki and carry their review history over."""
    settings = get_settings()
    configure_logging((log_level or settings.log_level).upper(), settings.log_file)


# ========================================
# Helpers
# ========================================


def _fail(message: str) -> None:
    rprint(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(code=1)


def _discover(
    paths: list[Path],
    settings: Settings,
    recursive: bool,
    include_converted: bool = False,
) -> list[Path]:
    from drill2anki.convert.converter import discover_org_files

    try:
        files = discover_org_files(paths, settings, recursive, include_converted)
    except FileNotFoundError as exc:
        _fail(str(exc))
    if not files:
        _fail("No .org files found")
    return files


def _load_documents(files: list[Path]):
    from drill2anki.org.document import OrgDocument

    return [OrgDocument.from_file(path) for path in files]


def _parse_query(text: str | None):
    from drill2anki.org.query import DrillQuery, QuerySyntaxError

    try:
        return DrillQuery.parse(text)
    except QuerySyntaxError as exc:
        _fail(str(exc))


# ========================================
# CONVERT
# ========================================


@app.command("convert")
def convert(
    paths: list[Path] = typer.Argument(..., help="Org files or folders to convert"),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", "-o", help="Write converted files here (default: next to source)"
    ),
    in_place: bool = typer.Option(False, "--in-place", help="Overwrite the source files"),
    history: Path | None = typer.Option(
        None, "--history", "-H", help="Scheduling-history CSV (default: from config)"
    ),
    no_history: bool = typer.Option(False, "--no-history", help="Do not record review history"),
    deck: str | None = typer.Option(None, "--deck", "-d", help="Deck for every converted note"),
    query: str | None = typer.Option(
        None, "--query", "-q", help='Only convert matching entries, e.g. "type:twosided tag:verbs"'
    ),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Include subfolders"),
    keep_drill_properties: bool = typer.Option(
        False, "--keep-drill-properties", help="Leave DRILL_* properties on converted notes"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Preview without writing files"),
) -> None:
    """
    Rewrite org-drill entries into anki-editor notes.

    Each drill entry gets ANKI_NOTE_TYPE/ANKI_DECK properties and field
    subheadings (Front/Back, Text/Back Extra). Review history of reviewed
    entries is saved to a CSV for apply-history.
    """
    from drill2anki.convert.converter import convert_files

    if in_place and output_dir is not None:
        _fail("--in-place and --output-dir cannot be combined")

    settings = get_settings()
    if keep_drill_properties:
        settings = settings.model_copy(update={"keep_drill_properties": True})
    dry_run = dry_run or settings.dry_run

    files = _discover(paths, settings, recursive)
    history_path = None
    if not no_history:
        history_path = history or (output_dir or files[0].parent) / settings.history_file

    selection = _parse_query(query)
    try:
        run = convert_files(
            paths,
            settings,
            output_dir=output_dir,
            in_place=in_place,
            history_path=history_path,
            deck=deck,
            query=selection,
            recursive=recursive,
            dry_run=dry_run,
        )
    except ValueError as exc:
        _fail(str(exc))

    table = Table(title="Conversion" + (" (dry run)" if dry_run else ""))
    table.add_column("File")
    table.add_column("Converted", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("History", justify="right")
    table.add_column("Output")
    for report in run.reports:
        table.add_row(
            Path(report.source_file).name,
            str(report.converted),
            str(report.skipped_count),
            str(len(report.history)),
            report.output_file or "-",
        )
    console.print(table)

    for skipped in run.skipped:
        rprint(
            f"  [yellow]skipped[/yellow] {Path(skipped.source_file).name}:{skipped.line_number} "
            f"{escape(skipped.title)} ({escape(skipped.reason)})"
        )

    rprint(f"\n[green]✓[/green] Converted {run.converted} entries")
    if run.history_file:
        rprint(f"  History: {len(run.history)} notes -> {run.history_file}")


# ========================================
# LIST
# ========================================


@app.command("list")
def list_entries(
    paths: list[Path] = typer.Argument(..., help="Org files or folders"),
    query: str | None = typer.Option(None, "--query", "-q", help="Selection query"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Include subfolders"),
) -> None:
    """List drill entries with their card type and review state."""
    from drill2anki.convert.card_types import cloze_syntax, is_supported
    from drill2anki.convert.cloze import strip_deletions
    from drill2anki.org.query import card_type_of, select_entries
    from drill2anki.schedule.history import DrillSchedule

    settings = get_settings()
    documents = _load_documents(_discover(paths, settings, recursive))
    selection = _parse_query(query)
    syntax = cloze_syntax(settings)

    table = Table(title="Drill entries")
    table.add_column("Location")
    table.add_column("Title")
    table.add_column("Type")
    table.add_column("Reps", justify="right")
    table.add_column("Due")

    count = 0

    for document, heading in select_entries(documents, selection, settings.drill_tag):
        card_type = card_type_of(heading)
        schedule = DrillSchedule.from_heading(heading)
        type_label = card_type if is_supported(card_type) else f"[red]{card_type}[/red]"
        table.add_row(
            f"{document.name}:{heading.line_number}",
            escape(strip_deletions(heading.title, syntax)),
            type_label,
            str(schedule.total_repeats) if schedule else "-",
            schedule.to_anki().due.isoformat() if schedule else "new",
        )
        count += 1

    console.print(table)
    rprint(f"{count} entries")


# ========================================
# PUSH
# ========================================


@app.command("push")
def push(
    paths: list[Path] = typer.Argument(..., help="Converted org files or folders"),
    history: Path | None = typer.Option(
        None, "--history", "-H", help="History CSV to fill with the new note ids"
    ),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Include subfolders"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Preview without pushing to Anki"),
) -> None:
    """
    Push anki-editor notes to Anki via AnkiConnect.

    New notes get ANKI_NOTE_ID written back into the org file; notes that
    already have one are updated.
    """
    from drill2anki.anki.anki_client import AnkiClient, AnkiConnectError
    from drill2anki.anki.push_service import push_notes
    from drill2anki.schedule.history import read_history, update_note_ids, write_history

    settings = get_settings()
    dry_run = dry_run or settings.dry_run
    files = _discover(paths, settings, recursive, include_converted=True)
    documents = _load_documents(files)

    try:
        result = push_notes(documents, AnkiClient(), settings, dry_run=dry_run)
    except AnkiConnectError as exc:
        _fail(str(exc))

    if not dry_run and result["created"]:
        for document in documents:
            document.write()

    history_path = history or files[0].parent / settings.history_file
    if not dry_run and result["note_ids"] and history_path.exists():
        rows = read_history(history_path)
        changed = update_note_ids(rows, result["note_ids"])
        if changed:
            write_history(history_path, rows, merge=False)
            rprint(f"  History: {changed} note ids recorded in {history_path}")

    rprint(f"\n[green]✓[/green] Pushed {result['total']} notes to Anki")
    rprint(f"  Created: {result['created']}")
    rprint(f"  Updated: {result['updated']}")
    rprint(f"  Failed:  {result['failed']}")
    for error in result["errors"]:
        rprint(f"  [red]error[/red] {escape(error)}")


# ========================================
# APPLY HISTORY
# ========================================


@app.command("apply-history")
def apply_history_command(
    history: Path = typer.Argument(..., help="Scheduling-history CSV written by convert"),
    paths: list[Path] | None = typer.Argument(
        None, help="Converted org files used to look up missing note ids"
    ),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Include subfolders"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Preview without changing Anki"),
) -> None:
    """Apply org-drill review history (due, interval, ease, reps, lapses) to Anki cards."""
    from drill2anki.anki.anki_client import AnkiClient, AnkiConnectError
    from drill2anki.anki.history_service import apply_history, resolve_note_ids
    from drill2anki.schedule.history import read_history, write_history

    settings = get_settings()
    dry_run = dry_run or settings.dry_run

    try:
        rows = read_history(history)
    except FileNotFoundError as exc:
        _fail(str(exc))

    if paths:
        documents = _load_documents(
            _discover(paths, settings, recursive, include_converted=True)
        )
        resolved = resolve_note_ids(rows, documents)
        if resolved:
            rprint(f"  Resolved {resolved} note ids from org files")
            if not dry_run:
                write_history(history, rows, merge=False)

    try:
        result = apply_history(rows, AnkiClient(), dry_run=dry_run)
    except AnkiConnectError as exc:
        _fail(str(exc))

    rprint(f"\n[green]✓[/green] Applied history to {result['applied']} notes")
    rprint(f"  Cards updated:   {result['cards_updated']}")
    rprint(f"  Missing in Anki: {result['missing_in_anki']}")
    rprint(f"  Unresolved:      {result['unresolved']}")
    for error in result["errors"]:
        rprint(f"  [red]error[/red] {escape(error)}")


# ========================================
# STATUS
# ========================================


@app.command("status")
def status() -> None:
    """Check that Anki is running with AnkiConnect."""
    from drill2anki.anki.anki_client import AnkiClient

    client = AnkiClient()
    if not client.check_connection():
        _fail(f"Cannot reach AnkiConnect at {client.base_url}")

    rprint(f"[green]✓[/green] AnkiConnect {client.get_version()} at {client.base_url}")
    rprint(f"  Decks: {len(client.deck_names())}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
