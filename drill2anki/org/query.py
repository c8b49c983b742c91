"""
Drill entry selection across a set of org documents.

A query is a whitespace-separated list of terms, all of which must match:

    tag:NAME        heading carries tag NAME
    -tag:NAME       heading does not carry tag NAME
    type:NAME       DRILL_CARD_TYPE is NAME (entries without one are "simple")
    prop:KEY=VALUE  property KEY equals VALUE
    due             scheduled on or before today
    new             never reviewed
    reviewed        reviewed at least once
    anything else   case-insensitive substring of the heading title

Examples:
    select_entries(docs, DrillQuery.parse("type:hide1cloze due"))
    select_entries(docs, DrillQuery.parse("tag:french -tag:verbs"))
"""

from __future__ import annotations

import shlex
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date

from loguru import logger

from drill2anki.org.document import OrgDocument, OrgHeading, parse_timestamp

CARD_TYPE_PROPERTY = "DRILL_CARD_TYPE"
DEFAULT_CARD_TYPE = "simple"
TOTAL_REPEATS_PROPERTY = "DRILL_TOTAL_REPEATS"


class QuerySyntaxError(ValueError):
    """Raised for malformed query terms."""


def card_type_of(heading: OrgHeading) -> str:
    """Return the org-drill card type of an entry."""
    value = (heading.get_property(CARD_TYPE_PROPERTY) or "").strip()
    return value or DEFAULT_CARD_TYPE


def is_reviewed(heading: OrgHeading) -> bool:
    raw = (heading.get_property(TOTAL_REPEATS_PROPERTY) or "").strip()
    try:
        return int(float(raw)) > 0
    except ValueError:
        return False


@dataclass
class DrillQuery:
    """Parsed selection query. An empty query matches every drill entry."""

    tags: list[str] = field(default_factory=list)
    excluded_tags: list[str] = field(default_factory=list)
    card_types: list[str] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)
    words: list[str] = field(default_factory=list)
    due_only: bool = False
    new_only: bool = False
    reviewed_only: bool = False

    @classmethod
    def parse(cls, text: str | None) -> DrillQuery:
        query = cls()
        if not text:
            return query

        try:
            terms = shlex.split(text)
        except ValueError as exc:
            raise QuerySyntaxError(f"Cannot parse query {text!r}: {exc}") from exc

        for term in terms:
            lowered = term.lower()
            if lowered.startswith("tag:"):
                query.tags.append(term[4:])
            elif lowered.startswith("-tag:"):
                query.excluded_tags.append(term[5:])
            elif lowered.startswith("type:"):
                query.card_types.append(term[5:])
            elif lowered.startswith("prop:"):
                key, sep, value = term[5:].partition("=")
                if not sep or not key:
                    raise QuerySyntaxError(f"Expected prop:KEY=VALUE, got {term!r}")
                query.properties[key] = value
            elif lowered == "due":
                query.due_only = True
            elif lowered == "new":
                query.new_only = True
            elif lowered == "reviewed":
                query.reviewed_only = True
            else:
                query.words.append(lowered)

        if query.new_only and query.reviewed_only:
            raise QuerySyntaxError("'new' and 'reviewed' cannot be combined")
        return query

    def matches(self, heading: OrgHeading, today: date | None = None) -> bool:
        if any(not heading.has_tag(tag) for tag in self.tags):
            return False
        if any(heading.has_tag(tag) for tag in self.excluded_tags):
            return False
        if self.card_types and card_type_of(heading) not in self.card_types:
            return False
        for key, value in self.properties.items():
            if (heading.get_property(key) or "") != value:
                return False
        title = heading.title.lower()
        if any(word not in title for word in self.words):
            return False
        if self.new_only and is_reviewed(heading):
            return False
        if self.reviewed_only and not is_reviewed(heading):
            return False
        if self.due_only:
            scheduled = parse_timestamp(heading.scheduled)
            if scheduled is None or scheduled.date() > (today or date.today()):
                return False
        return True


def select_entries(
    documents: Iterable[OrgDocument],
    query: DrillQuery | None = None,
    drill_tag: str = "drill",
    today: date | None = None,
) -> Iterator[tuple[OrgDocument, OrgHeading]]:
    """
    Yield ``(document, heading)`` for every drill entry matching *query*.

    Drill entries nested inside another drill entry belong to the outer
    entry's answer and are not yielded on their own.
    """
    for document in documents:
        for heading in document.iter_headings():
            if not heading.has_tag(drill_tag):
                continue
            if any(ancestor.has_tag(drill_tag) for ancestor in heading.ancestors()):
                logger.debug(
                    "Skipping nested drill entry '{}' ({}:{})",
                    heading.title,
                    document.name,
                    heading.line_number,
                )
                continue
            if query is not None and not query.matches(heading, today):
                continue
            yield document, heading
