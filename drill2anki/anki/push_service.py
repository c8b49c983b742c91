"""
Anki push service for drill2anki.

Pushes anki-editor notes from converted org files to Anki via AnkiConnect.
Handles:
- Collecting notes (headings with ANKI_NOTE_TYPE) and their field subheadings
- Deck creation
- Batched add (new notes) and update (notes with ANKI_NOTE_ID)
- Writing the new note ids back as ANKI_NOTE_ID
- Reporting org ID -> note id pairs for the scheduling-history file
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from drill2anki.anki.anki_client import AnkiClient
from drill2anki.anki.config import (
    BATCH_SIZE,
    DECK_PROPERTY,
    NOTE_ID_PROPERTY,
    NOTE_TYPE_PROPERTY,
    ORG_ID_PROPERTY,
    TAGS_PROPERTY,
    split_tags,
)
from drill2anki.config import Settings, get_settings
from drill2anki.org.document import OrgDocument, OrgHeading
from drill2anki.org.markup import to_html


@dataclass
class NotePayload:
    """A note ready to be sent to AnkiConnect."""

    heading: OrgHeading = field(repr=False)
    document: OrgDocument = field(repr=False)
    note_type: str
    deck: str
    fields: dict[str, str]
    tags: list[str]
    note_id: int | None = None

    @property
    def org_id(self) -> str | None:
        return self.heading.get_property(ORG_ID_PROPERTY)

    def to_add_params(self) -> dict[str, Any]:
        return {
            "deckName": self.deck,
            "modelName": self.note_type,
            "fields": self.fields,
            "tags": self.tags,
            "options": {
                "allowDuplicate": False,
                "duplicateScope": "deck",
            },
        }

    def to_update_params(self) -> dict[str, Any]:
        return {"id": self.note_id, "fields": self.fields, "tags": self.tags}


def _note_id(heading: OrgHeading) -> int | None:
    raw = (heading.get_property(NOTE_ID_PROPERTY) or "").strip()
    return int(raw) if raw.isdigit() else None


def build_payload(
    document: OrgDocument,
    heading: OrgHeading,
    settings: Settings,
) -> NotePayload:
    """Build the AnkiConnect payload for one anki-editor note heading."""
    fields = {
        child.title: to_html(child.content_text(drawers=False)) for child in heading.children
    }
    deck = (
        heading.get_inherited_property(DECK_PROPERTY)
        or document.keywords.get(DECK_PROPERTY)
        or settings.anki_deck_name
    )
    tags = list(heading.tags)
    for tag in split_tags(heading.get_property(TAGS_PROPERTY)):
        if tag not in tags:
            tags.append(tag)

    return NotePayload(
        heading=heading,
        document=document,
        note_type=heading.get_property(NOTE_TYPE_PROPERTY) or settings.basic_note_type,
        deck=deck,
        fields=fields,
        tags=tags,
        note_id=_note_id(heading),
    )


def collect_notes(
    documents: list[OrgDocument],
    settings: Settings | None = None,
) -> list[NotePayload]:
    """Collect every heading carrying ANKI_NOTE_TYPE as a note payload."""
    settings = settings or get_settings()
    notes = []
    for document in documents:
        for heading in document.iter_headings():
            if heading.get_property(NOTE_TYPE_PROPERTY):
                notes.append(build_payload(document, heading, settings))
    logger.debug("Collected {} notes from {} documents", len(notes), len(documents))
    return notes


def _ensure_decks_exist(client: AnkiClient, decks: set[str]) -> None:
    """Create all target decks in Anki if they don't exist."""
    for deck_name in sorted(decks):
        client.create_deck(deck_name)
        logger.debug("Ensured deck exists: {}", deck_name)


def _batches(items: list[Any], size: int = BATCH_SIZE) -> list[list[Any]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def push_notes(
    documents: list[OrgDocument],
    anki_client: AnkiClient | None = None,
    settings: Settings | None = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    """
    Push anki-editor notes to Anki using batched operations.

    New notes are added and get ANKI_NOTE_ID written back into their
    heading; notes that already have an id are updated. The documents are
    modified in memory only; the caller writes them.

    Args:
        documents: Converted org documents
        anki_client: AnkiConnect client (default: create new)
        settings: Application settings (default: cached settings)
        dry_run: If True, log actions but don't execute

    Returns:
        Dictionary with push statistics and an org_id -> note id mapping
    """
    settings = settings or get_settings()
    notes = collect_notes(documents, settings)

    stats: dict[str, Any] = {
        "total": len(notes),
        "created": 0,
        "updated": 0,
        "failed": 0,
        "errors": [],
        "note_ids": {},
    }

    new_notes = [n for n in notes if n.note_id is None]
    existing_notes = [n for n in notes if n.note_id is not None]

    logger.info(
        "Pushing {} notes to Anki: {} new, {} existing, dry_run={}",
        len(notes),
        len(new_notes),
        len(existing_notes),
        dry_run,
    )

    if dry_run:
        for note in notes:
            action = "update" if note.note_id else "add"
            logger.info(
                "DRY RUN: Would {} {} note in '{}': {}",
                action,
                note.note_type,
                note.deck,
                note.heading.title,
            )
        return stats

    client = anki_client or AnkiClient()
    client.require_connection()
    _ensure_decks_exist(client, {n.deck for n in notes})

    for batch in _batches(new_notes):
        results = client.add_notes([n.to_add_params() for n in batch])
        for note, (note_id, error) in zip(batch, results):
            if error or not note_id:
                stats["failed"] += 1
                reason = error or "addNote returned null"
                message = f"{note.document.name}: '{note.heading.title}': {reason}"
                stats["errors"].append(message)
                logger.warning("Failed to add note {}", message)
                continue
            note.note_id = int(note_id)
            note.heading.set_property(NOTE_ID_PROPERTY, note.note_id)
            stats["created"] += 1

    for batch in _batches(existing_notes):
        errors = client.update_notes([n.to_update_params() for n in batch])
        for note, error in zip(batch, errors):
            if error:
                stats["failed"] += 1
                message = f"{note.document.name}: '{note.heading.title}': {error}"
                stats["errors"].append(message)
                logger.warning("Failed to update note {}", message)
                continue
            stats["updated"] += 1

    for note in notes:
        if note.note_id is not None and note.org_id:
            stats["note_ids"][note.org_id] = note.note_id

    logger.info(
        "Push complete: {} created, {} updated, {} failed",
        stats["created"],
        stats["updated"],
        stats["failed"],
    )
    return stats
