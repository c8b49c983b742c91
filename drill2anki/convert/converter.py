"""
Conversion driver.

Selects drill entries, captures their review history, rewrites them into
anki-editor notes and writes the converted files plus the history CSV.
A failing entry is logged and reported as skipped; the rest of the file
is still converted.
"""

from __future__ import annotations

import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from loguru import logger

from drill2anki.anki.config import DECK_PROPERTY, NOTE_TYPE_PROPERTY, ORG_ID_PROPERTY
from drill2anki.config import Settings
from drill2anki.convert.card_types import (
    ConversionError,
    NoteLayout,
    is_supported,
    transform_entry,
)
from drill2anki.org.document import OrgDocument, OrgHeading
from drill2anki.org.query import DrillQuery, card_type_of, select_entries
from drill2anki.schedule.history import (
    DRILL_PROPERTY_PREFIX,
    DrillSchedule,
    HistoryRow,
    write_history,
)

SKIP_FOLDERS = {".git", ".trash", "archive", "ltximg"}


@dataclass
class SkippedEntry:
    source_file: str
    line_number: int
    title: str
    card_type: str
    reason: str


@dataclass
class ConversionReport:
    """Outcome of converting one document."""

    source_file: str = ""
    output_file: str = ""
    converted: int = 0
    note_types: Counter = field(default_factory=Counter)
    card_types: Counter = field(default_factory=Counter)
    skipped: list[SkippedEntry] = field(default_factory=list)
    history: list[HistoryRow] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


@dataclass
class ConversionRun:
    """Outcome of converting a set of files."""

    reports: list[ConversionReport] = field(default_factory=list)
    history_file: Path | None = None
    dry_run: bool = False

    @property
    def converted(self) -> int:
        return sum(r.converted for r in self.reports)

    @property
    def skipped(self) -> list[SkippedEntry]:
        return [s for r in self.reports for s in r.skipped]

    @property
    def history(self) -> list[HistoryRow]:
        return [h for r in self.reports for h in r.history]


# ========================================
# Single entry / document
# ========================================


def resolve_deck(
    document: OrgDocument,
    heading: OrgHeading,
    settings: Settings,
    deck: str | None = None,
) -> str:
    """Explicit deck, else inherited ANKI_DECK property, else #+ANKI_DECK, else default."""
    return (
        deck
        or heading.get_inherited_property(DECK_PROPERTY)
        or document.keywords.get(DECK_PROPERTY)
        or settings.anki_deck_name
    )


def strip_drill_data(heading: OrgHeading, drill_tag: str, keep_properties: bool = False) -> None:
    """Remove the drill tag and, unless kept, DRILL_* properties and SCHEDULED."""
    heading.remove_tag(drill_tag)
    if keep_properties:
        return
    for key in list(heading.properties):
        if key.upper().startswith(DRILL_PROPERTY_PREFIX):
            heading.delete_property(key)
    heading.planning.pop("SCHEDULED", None)


def ensure_org_id(heading: OrgHeading) -> str:
    org_id = heading.get_property(ORG_ID_PROPERTY)
    if not org_id:
        org_id = str(uuid.uuid4())
        heading.set_property(ORG_ID_PROPERTY, org_id)
    return org_id


def convert_entry(
    document: OrgDocument,
    heading: OrgHeading,
    settings: Settings,
    deck: str | None = None,
    record_history: bool = True,
    today: date | None = None,
) -> tuple[NoteLayout, HistoryRow | None]:
    """
    Convert one drill entry in place.

    Returns the produced layout and, when the entry was reviewed before and
    history is recorded, its history row.
    """
    card_type = card_type_of(heading)
    if not is_supported(card_type):
        raise ConversionError(f"Unsupported card type '{card_type}'")

    schedule = DrillSchedule.from_heading(heading)
    deck_name = resolve_deck(document, heading, settings, deck)

    layout = transform_entry(heading, card_type, settings)
    heading.set_property(NOTE_TYPE_PROPERTY, layout.note_type)
    heading.set_property(DECK_PROPERTY, deck_name)
    strip_drill_data(heading, settings.drill_tag, settings.keep_drill_properties)

    row = None
    if record_history and schedule is not None:
        row = HistoryRow.from_schedule(
            org_id=ensure_org_id(heading),
            schedule=schedule,
            source_file=document.source_path,
            heading=heading.title,
            card_type=card_type,
            today=today,
        )
    return layout, row


def convert_document(
    document: OrgDocument,
    settings: Settings,
    deck: str | None = None,
    query: DrillQuery | None = None,
    record_history: bool = True,
    today: date | None = None,
) -> ConversionReport:
    """Convert every selected drill entry of *document* in place."""
    report = ConversionReport(source_file=document.source_path)
    entries = [
        heading
        for _, heading in select_entries([document], query, settings.drill_tag, today)
    ]
    logger.debug("Found {} drill entries in {}", len(entries), document.name)

    for heading in entries:
        title = heading.title
        card_type = card_type_of(heading)
        try:
            layout, row = convert_entry(
                document,
                heading,
                settings,
                deck=deck,
                record_history=record_history,
                today=today,
            )
        except ConversionError as exc:
            logger.warning(
                "Skipping '{}' ({}:{}): {}", title, document.name, heading.line_number, exc
            )
            report.skipped.append(
                SkippedEntry(
                    source_file=document.source_path,
                    line_number=heading.line_number,
                    title=title,
                    card_type=card_type,
                    reason=str(exc),
                )
            )
            continue

        report.converted += 1
        report.note_types[layout.note_type] += 1
        report.card_types[card_type] += 1
        if row is not None:
            report.history.append(row)

    logger.info(
        "Converted {} entries from {} ({} skipped, {} with history)",
        report.converted,
        document.name,
        report.skipped_count,
        len(report.history),
    )
    return report


# ========================================
# Files
# ========================================


def is_converted_output(path: Path, settings: Settings) -> bool:
    return path.name.endswith(f"{settings.output_suffix}.org")


def discover_org_files(
    paths: list[Path],
    settings: Settings,
    recursive: bool = False,
    include_converted: bool = False,
) -> list[Path]:
    """Expand files and folders into .org files, skipping conversion output unless asked."""
    found: list[Path] = []
    for path in paths:
        if path.is_file():
            found.append(path)
            continue
        if not path.is_dir():
            raise FileNotFoundError(f"Path not found: {path}")
        candidates = sorted(path.rglob("*.org") if recursive else path.glob("*.org"))
        for candidate in candidates:
            if any(part in SKIP_FOLDERS for part in candidate.relative_to(path).parts):
                continue
            if not include_converted and is_converted_output(candidate, settings):
                continue
            found.append(candidate)
    return found


def output_path_for(
    source: Path,
    settings: Settings,
    output_dir: Path | None = None,
    in_place: bool = False,
    root: Path | None = None,
) -> Path:
    """Target of a converted file; under *output_dir* the path relative to *root* is kept."""
    if in_place:
        return source
    if output_dir is not None:
        if root is not None:
            return output_dir / source.relative_to(root)
        return output_dir / source.name
    return source.with_name(f"{source.stem}{settings.output_suffix}{source.suffix or '.org'}")


def plan_outputs(
    paths: list[Path],
    settings: Settings,
    output_dir: Path | None = None,
    in_place: bool = False,
    recursive: bool = False,
) -> list[tuple[Path, Path]]:
    """
    Pair each discovered source with its output file.

    Raises:
        ValueError: If two sources would be written to the same file
    """
    plan: list[tuple[Path, Path]] = []
    targets: dict[Path, Path] = {}
    for path in paths:
        root = path if path.is_dir() else path.parent
        for source in discover_org_files([path], settings, recursive):
            target = output_path_for(source, settings, output_dir, in_place, root)
            previous = targets.get(target)
            if previous is not None and previous != source:
                raise ValueError(f"{previous} and {source} would both be written to {target}")
            if previous is None:
                targets[target] = source
                plan.append((source, target))
    return plan


def convert_files(
    paths: list[Path],
    settings: Settings,
    output_dir: Path | None = None,
    in_place: bool = False,
    history_path: Path | None = None,
    deck: str | None = None,
    query: DrillQuery | None = None,
    recursive: bool = False,
    dry_run: bool = False,
    today: date | None = None,
) -> ConversionRun:
    """
    Convert org files and write the results.

    Under ``output_dir`` each file keeps its path relative to the folder it
    was discovered in, so same-named files from different subfolders do not
    overwrite each other.

    Args:
        paths: Files and/or folders to convert
        settings: Application settings
        output_dir: Write converted files here instead of next to the sources
        in_place: Overwrite the source files
        history_path: Scheduling-history CSV (None disables history)
        deck: Deck for every note, overriding ANKI_DECK properties
        query: Restrict conversion to matching drill entries
        recursive: Descend into subfolders
        dry_run: Convert in memory only, write nothing

    Returns:
        ConversionRun with one report per file

    Raises:
        ValueError: For in-place plus output folder, or colliding output files
    """
    if in_place and output_dir is not None:
        raise ValueError("Choose either an output folder or in-place conversion, not both")

    run = ConversionRun(dry_run=dry_run)
    for source, target in plan_outputs(paths, settings, output_dir, in_place, recursive):
        document = OrgDocument.from_file(source)
        report = convert_document(
            document,
            settings,
            deck=deck,
            query=query,
            record_history=history_path is not None,
            today=today,
        )
        report.output_file = str(target)
        run.reports.append(report)

        if dry_run:
            logger.info("DRY RUN: Would write {} notes to {}", report.converted, target)
            continue
        if report.converted == 0:
            logger.debug("Nothing converted in {}; no output written", source.name)
            report.output_file = ""
            continue
        document.write(target)
        logger.info("Wrote {}", target)

    if history_path is not None and run.history and not dry_run:
        run.history_file = write_history(history_path, run.history)
        logger.info("Wrote scheduling history for {} notes to {}", len(run.history), history_path)

    return run
