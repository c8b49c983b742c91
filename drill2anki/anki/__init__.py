"""Anki push and scheduling via AnkiConnect."""

from drill2anki.anki.anki_client import AnkiClient, AnkiConnectError
from drill2anki.anki.history_service import apply_history, resolve_note_ids
from drill2anki.anki.push_service import collect_notes, push_notes

__all__ = [
    "AnkiClient",
    "AnkiConnectError",
    # Operations
    "push_notes",
    "collect_notes",
    "apply_history",
    "resolve_note_ids",
]
