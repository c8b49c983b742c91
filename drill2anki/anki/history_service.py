"""
Anki history service for drill2anki.

Applies the scheduling history captured during conversion to the cards of
pushed notes, so reviews done in org-drill carry over:
- Due date (Set Due Date, turns new cards into review cards)
- Ease factor
- Interval, review count and lapse count

org-drill tracks one schedule per entry, so every card of a note (e.g. all
cards of a Cloze note) receives the same values.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import requests
from loguru import logger

from drill2anki.anki.anki_client import AnkiClient, AnkiConnectError
from drill2anki.anki.config import HISTORY_CARD_KEYS, NOTE_ID_PROPERTY, ORG_ID_PROPERTY
from drill2anki.org.document import OrgDocument
from drill2anki.schedule.history import HistoryRow, update_note_ids


def resolve_note_ids(rows: list[HistoryRow], documents: list[OrgDocument]) -> int:
    """
    Fill missing note ids from ANKI_NOTE_ID properties of converted documents.

    Returns:
        Number of rows that received a note id
    """
    mapping: dict[str, str] = {}
    for document in documents:
        for heading in document.iter_headings():
            org_id = heading.get_property(ORG_ID_PROPERTY)
            note_id = heading.get_property(NOTE_ID_PROPERTY)
            if org_id and note_id:
                mapping[org_id] = note_id
    pending = [row for row in rows if not row.note_id]
    return update_note_ids(pending, mapping)


def apply_history(
    rows: list[HistoryRow],
    anki_client: AnkiClient | None = None,
    today: date | None = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    """
    Write scheduling history onto Anki cards.

    Args:
        rows: History rows (rows without a note id are counted as unresolved)
        anki_client: AnkiConnect client (default: create new)
        today: Reference date for due-day offsets (default: today)
        dry_run: If True, log actions but don't execute

    Returns:
        Dictionary with apply statistics
    """
    today = today or date.today()
    stats: dict[str, Any] = {
        "rows": len(rows),
        "applied": 0,
        "cards_updated": 0,
        "unresolved": 0,
        "missing_in_anki": 0,
        "errors": [],
    }

    resolved = [row for row in rows if row.note_id.strip().isdigit()]
    stats["unresolved"] = len(rows) - len(resolved)
    if stats["unresolved"]:
        logger.warning(
            "{} history rows have no Anki note id yet; push the notes first",
            stats["unresolved"],
        )

    if dry_run:
        for row in resolved:
            schedule = row.to_anki()
            logger.info(
                "DRY RUN: Would schedule note {} due {} (ivl={}, ease={}, reps={}, lapses={})",
                row.note_id,
                schedule.due,
                schedule.interval,
                schedule.ease_factor,
                schedule.reps,
                schedule.lapses,
            )
        stats["applied"] = len(resolved)
        return stats

    if not resolved:
        return stats

    client = anki_client or AnkiClient()
    client.require_connection()

    note_ids = [int(row.note_id) for row in resolved]
    cards_by_note = client.find_cards_for_notes(note_ids)

    for row, note_id in zip(resolved, note_ids):
        card_ids = cards_by_note.get(note_id) or []
        if not card_ids:
            stats["missing_in_anki"] += 1
            logger.warning("Note {} ('{}') not found in Anki", note_id, row.heading)
            continue

        schedule = row.to_anki()
        days_until_due = max(0, (schedule.due - today).days)
        try:
            client.set_due_date(card_ids, str(days_until_due))
            client.set_ease_factors(card_ids, [schedule.ease_factor] * len(card_ids))
            for card_id in card_ids:
                client.set_card_values(
                    card_id,
                    list(HISTORY_CARD_KEYS),
                    [schedule.interval, schedule.reps, schedule.lapses],
                )
        except (AnkiConnectError, requests.RequestException) as exc:
            logger.warning("Failed to apply history to note {}: {}", note_id, exc)
            stats["errors"].append(f"Note {note_id}: {exc}")
            continue

        stats["applied"] += 1
        stats["cards_updated"] += len(card_ids)
        logger.debug("Applied history to note {} ({} cards)", note_id, len(card_ids))

    logger.info(
        "History applied: {} notes, {} cards, {} missing, {} unresolved, {} errors",
        stats["applied"],
        stats["cards_updated"],
        stats["missing_in_anki"],
        stats["unresolved"],
        len(stats["errors"]),
    )
    return stats
