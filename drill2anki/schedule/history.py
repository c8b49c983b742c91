"""
Scheduling history captured from org-drill entries.

org-drill keeps SM-style review data in DRILL_* properties and the
SCHEDULED planning line. Before an entry is rewritten the data is captured
as a DrillSchedule, translated into Anki terms (interval, ease factor in
permille, reps, lapses, due date) and written to a CSV history file keyed
by the entry's org ID. Once the note exists in Anki, its note id is filled
in and the history can be applied through AnkiConnect.
"""

from __future__ import annotations

import csv
import math
from dataclasses import asdict, dataclass, fields
from datetime import date, datetime, timedelta
from pathlib import Path

from loguru import logger

from drill2anki.org.document import OrgHeading, parse_timestamp

DRILL_PROPERTY_PREFIX = "DRILL_"
LAST_INTERVAL = "DRILL_LAST_INTERVAL"
REPEATS_SINCE_FAIL = "DRILL_REPEATS_SINCE_FAIL"
TOTAL_REPEATS = "DRILL_TOTAL_REPEATS"
FAILURE_COUNT = "DRILL_FAILURE_COUNT"
AVERAGE_QUALITY = "DRILL_AVERAGE_QUALITY"
EASE = "DRILL_EASE"
LAST_QUALITY = "DRILL_LAST_QUALITY"
LAST_REVIEWED = "DRILL_LAST_REVIEWED"

# Anki stores ease as permille; 130% is its floor
DEFAULT_EASE = 2.5
MIN_EASE_FACTOR = 1300
MAX_EASE_FACTOR = 5000


def _to_float(heading: OrgHeading, name: str) -> float | None:
    raw = (heading.get_property(name) or "").strip()
    if not raw or raw.lower() == "nil":
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.debug("Ignoring non-numeric {}={!r} on '{}'", name, raw, heading.title)
        return None
    if not math.isfinite(value):
        logger.debug("Ignoring non-finite {}={!r} on '{}'", name, raw, heading.title)
        return None
    return value


def _to_int(heading: OrgHeading, name: str) -> int:
    value = _to_float(heading, name)
    return int(value) if value is not None else 0


@dataclass
class AnkiSchedule:
    """Review state in Anki's terms."""

    interval: int
    ease_factor: int
    reps: int
    lapses: int
    due: date


@dataclass
class DrillSchedule:
    """Review state as org-drill recorded it."""

    total_repeats: int = 0
    repeats_since_fail: int = 0
    failure_count: int = 0
    last_interval: float | None = None
    ease: float | None = None
    average_quality: float | None = None
    last_quality: int | None = None
    last_reviewed: datetime | None = None
    scheduled: datetime | None = None

    @classmethod
    def from_heading(cls, heading: OrgHeading) -> DrillSchedule | None:
        """Read an entry's review data; None when it was never reviewed."""
        last_quality = _to_float(heading, LAST_QUALITY)
        schedule = cls(
            total_repeats=_to_int(heading, TOTAL_REPEATS),
            repeats_since_fail=_to_int(heading, REPEATS_SINCE_FAIL),
            failure_count=_to_int(heading, FAILURE_COUNT),
            last_interval=_to_float(heading, LAST_INTERVAL),
            ease=_to_float(heading, EASE),
            average_quality=_to_float(heading, AVERAGE_QUALITY),
            last_quality=int(last_quality) if last_quality is not None else None,
            last_reviewed=parse_timestamp(heading.get_property(LAST_REVIEWED)),
            scheduled=parse_timestamp(heading.scheduled),
        )
        if schedule.total_repeats <= 0:
            return None
        return schedule

    def to_anki(self, today: date | None = None) -> AnkiSchedule:
        interval = max(1, round(self.last_interval if self.last_interval is not None else 1))
        factor = round((self.ease if self.ease is not None else DEFAULT_EASE) * 1000)
        factor = min(MAX_EASE_FACTOR, max(MIN_EASE_FACTOR, factor))

        if self.scheduled is not None:
            due = self.scheduled.date()
        elif self.last_reviewed is not None:
            due = self.last_reviewed.date() + timedelta(days=interval)
        else:
            due = today or date.today()

        return AnkiSchedule(
            interval=interval,
            ease_factor=factor,
            reps=self.total_repeats,
            lapses=self.failure_count,
            due=due,
        )


# ========================================
# History file
# ========================================


@dataclass
class HistoryRow:
    """One line of the scheduling-history CSV."""

    org_id: str
    note_id: str = ""
    source_file: str = ""
    heading: str = ""
    card_type: str = ""
    interval: int = 1
    ease_factor: int = round(DEFAULT_EASE * 1000)
    reps: int = 0
    lapses: int = 0
    due: str = ""
    last_reviewed: str = ""
    average_quality: str = ""
    last_quality: str = ""

    @classmethod
    def from_schedule(
        cls,
        org_id: str,
        schedule: DrillSchedule,
        source_file: str = "",
        heading: str = "",
        card_type: str = "",
        today: date | None = None,
    ) -> HistoryRow:
        anki = schedule.to_anki(today)
        return cls(
            org_id=org_id,
            source_file=source_file,
            heading=heading,
            card_type=card_type,
            interval=anki.interval,
            ease_factor=anki.ease_factor,
            reps=anki.reps,
            lapses=anki.lapses,
            due=anki.due.isoformat(),
            last_reviewed=(
                schedule.last_reviewed.isoformat(timespec="minutes")
                if schedule.last_reviewed
                else ""
            ),
            average_quality=(
                f"{schedule.average_quality:g}" if schedule.average_quality is not None else ""
            ),
            last_quality=str(schedule.last_quality) if schedule.last_quality is not None else "",
        )

    def to_anki(self) -> AnkiSchedule:
        return AnkiSchedule(
            interval=self.interval,
            ease_factor=self.ease_factor,
            reps=self.reps,
            lapses=self.lapses,
            due=date.fromisoformat(self.due),
        )


HISTORY_COLUMNS = [f.name for f in fields(HistoryRow)]
INT_COLUMNS = {"interval", "ease_factor", "reps", "lapses"}


def read_history(path: Path | str) -> list[HistoryRow]:
    """Read a history CSV. Unknown columns are ignored."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"History file not found: {path}")

    rows: list[HistoryRow] = []
    with path.open(newline="", encoding="utf-8") as handle:
        for line_number, record in enumerate(csv.DictReader(handle), start=2):
            if not record.get("org_id"):
                logger.warning("{}:{}: row without org_id skipped", path.name, line_number)
                continue
            values: dict[str, object] = {}
            for column in HISTORY_COLUMNS:
                raw = record.get(column)
                if raw is None or raw == "":
                    continue
                if column in INT_COLUMNS:
                    try:
                        values[column] = int(float(raw))
                    except ValueError:
                        logger.warning(
                            "{}:{}: bad {} value {!r}", path.name, line_number, column, raw
                        )
                        continue
                else:
                    values[column] = raw
            rows.append(HistoryRow(**values))
    return rows


def write_history(path: Path | str, rows: list[HistoryRow], merge: bool = True) -> Path:
    """
    Write *rows* to a history CSV.

    With ``merge`` an existing file is kept: rows with the same org_id are
    replaced and other rows are preserved, so converting files one at a
    time accumulates a single history.
    """
    path = Path(path)
    combined: dict[str, HistoryRow] = {}
    if merge and path.exists():
        for row in read_history(path):
            combined[row.org_id] = row
    for row in rows:
        previous = combined.get(row.org_id)
        if previous is not None and previous.note_id and not row.note_id:
            row.note_id = previous.note_id
        combined[row.org_id] = row

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=HISTORY_COLUMNS)
        writer.writeheader()
        for row in combined.values():
            writer.writerow(asdict(row))

    logger.debug("Wrote {} history rows to {}", len(combined), path)
    return path


def update_note_ids(rows: list[HistoryRow], note_ids: dict[str, str | int]) -> int:
    """Fill note ids from an org_id -> note id mapping; return how many rows changed."""
    changed = 0
    for row in rows:
        note_id = note_ids.get(row.org_id)
        if note_id is not None and str(note_id) != row.note_id:
            row.note_id = str(note_id)
            changed += 1
    return changed
