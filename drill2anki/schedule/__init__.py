"""org-drill review history capture and the history CSV."""

from drill2anki.schedule.history import (
    AnkiSchedule,
    DrillSchedule,
    HistoryRow,
    read_history,
    update_note_ids,
    write_history,
)

__all__ = [
    "AnkiSchedule",
    "DrillSchedule",
    "HistoryRow",
    "read_history",
    "update_note_ids",
    "write_history",
]
