"""
Anki-side constants shared by conversion, push and history operations.

Property names follow anki-editor, so converted files can also be pushed
from Emacs with anki-editor-push-notes.
"""

from __future__ import annotations

# =============================================================================
# anki-editor note properties
# =============================================================================
NOTE_TYPE_PROPERTY = "ANKI_NOTE_TYPE"
DECK_PROPERTY = "ANKI_DECK"
NOTE_ID_PROPERTY = "ANKI_NOTE_ID"
TAGS_PROPERTY = "ANKI_TAGS"

# Org ID used to link history rows to notes
ORG_ID_PROPERTY = "ID"

# =============================================================================
# Batching
# =============================================================================
BATCH_SIZE = 50  # Notes per AnkiConnect multi request

# Card values written by setSpecificValueOfCard when applying history
HISTORY_CARD_KEYS = ("ivl", "reps", "lapses")


def split_tags(raw: str | None) -> list[str]:
    """Split an ANKI_TAGS value (space separated) into tags."""
    if not raw:
        return []
    return [tag for tag in raw.split() if tag]
