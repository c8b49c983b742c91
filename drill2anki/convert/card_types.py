"""
Per card-type rewriting of drill entries into anki-editor note layout.

Each transformer receives a drill entry heading and rewrites its subtree in
place: the question moves into a field heading, answer subheadings are
relabelled (or regrouped) as the answer field, and cloze markup is turned
into Anki cloze syntax. Validation happens before any mutation, so an entry
that raises ConversionError is left untouched.

org-drill type                                 Anki note type
simple                                         Basic (Cloze if the body has deletions)
twosided, multisided with two sides            Basic (and reversed card)
hide1cloze, hide1_firstmore                    Cloze, one card per deletion
hide2cloze                                     Cloze, deletions hidden in pairs
show1cloze, show1_lastmore, show1_firstless    Cloze, one deletion shown per card
show2cloze                                     Cloze, two deletions shown per card
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from drill2anki.config import Settings
from drill2anki.convert.cloze import (
    NUMBERING_STRATEGIES,
    ClozeSyntax,
    find_deletions,
    rewrite_deletions,
    strip_deletions,
)
from drill2anki.org.document import OrgHeading


class ConversionError(Exception):
    """Raised when a drill entry cannot be expressed as an Anki note."""


@dataclass
class NoteLayout:
    """What a transformer produced."""

    note_type: str
    field_names: list[str] = field(default_factory=list)
    deletions: int = 0


Transformer = Callable[[OrgHeading, Settings], NoteLayout]


def cloze_syntax(settings: Settings) -> ClozeSyntax:
    return ClozeSyntax(
        left=settings.cloze_left_delimiter,
        right=settings.cloze_right_delimiter,
        hint_separator=settings.cloze_hint_separator,
    )


# ========================================
# Field heading helpers
# ========================================


def _field_heading(parent: OrgHeading, name: str, text: str) -> OrgHeading:
    return OrgHeading(level=parent.level + 1, title=name, body=text.splitlines())


def _relabel(heading: OrgHeading, name: str, level: int) -> OrgHeading:
    heading.title = name
    heading.tags = []
    heading.set_level(level)
    return heading


def _answer_field(parent: OrgHeading, name: str, answers: list[OrgHeading]) -> OrgHeading:
    """
    Build the answer field from the entry's answer subheadings.

    One subheading is relabelled in place; several are grouped under a new
    field heading, keeping their own titles one level deeper.
    """
    if len(answers) == 1:
        return _relabel(answers[0], name, parent.level + 1)

    field_heading = _field_heading(parent, name, "")
    for answer in answers:
        answer.set_level(parent.level + 2)
        field_heading.add_child(answer)
    return field_heading


def _question_text(heading: OrgHeading) -> str:
    return heading.body_text or heading.title


def _install_fields(heading: OrgHeading, fields: list[OrgHeading]) -> None:
    heading.body = []
    heading.children = []
    for field_heading in fields:
        heading.add_child(field_heading)


# ========================================
# Transformers
# ========================================


def convert_basic(heading: OrgHeading, settings: Settings) -> NoteLayout:
    question = _question_text(heading)
    answers = heading.detach_children()
    if not answers:
        logger.warning(
            "Drill entry '{}' (line {}) has no answer subheading; Back will be empty",
            heading.title,
            heading.line_number,
        )
    _install_fields(
        heading,
        [
            _field_heading(heading, settings.front_field, question),
            _answer_field(heading, settings.back_field, answers),
        ],
    )
    return NoteLayout(
        note_type=settings.basic_note_type,
        field_names=[settings.front_field, settings.back_field],
    )


def _cloze_source(heading: OrgHeading, syntax: ClozeSyntax) -> tuple[str, bool] | None:
    """Return the text holding the deletions (body, else title) and whether it is the title."""
    if find_deletions(heading.body_text, syntax):
        return heading.body_text, False
    if find_deletions(heading.title, syntax):
        return heading.title, True
    return None


def make_cloze_transformer(strategy_name: str) -> Transformer:
    strategy = NUMBERING_STRATEGIES[strategy_name]

    def convert_cloze(heading: OrgHeading, settings: Settings) -> NoteLayout:
        syntax = cloze_syntax(settings)
        found = _cloze_source(heading, syntax)
        if found is None:
            raise ConversionError(
                f"No cloze deletions found in '{heading.title}' (line {heading.line_number})"
            )

        source, from_title = found
        text, count = rewrite_deletions(source, strategy, syntax)
        if from_title:
            heading.title = strip_deletions(heading.title, syntax)
            context = heading.body_text
            if context:
                text = f"{text}\n{context}"

        extras = heading.detach_children()
        _install_fields(
            heading,
            [
                _field_heading(heading, settings.cloze_text_field, text),
                _answer_field(heading, settings.cloze_extra_field, extras),
            ],
        )
        return NoteLayout(
            note_type=settings.cloze_note_type,
            field_names=[settings.cloze_text_field, settings.cloze_extra_field],
            deletions=count,
        )

    convert_cloze.__name__ = f"convert_cloze_{strategy_name}"
    return convert_cloze


convert_hide_all = make_cloze_transformer("hide_all")


def convert_simple(heading: OrgHeading, settings: Settings) -> NoteLayout:
    """Basic note, or an all-at-once Cloze note when the question has deletions."""
    if find_deletions(heading.body_text, cloze_syntax(settings)):
        return convert_hide_all(heading, settings)
    return convert_basic(heading, settings)


def _side(heading: OrgHeading, name: str, level: int, context: str) -> OrgHeading:
    if not heading.body_text:
        heading.body = [heading.title]
    if context:
        heading.body = context.splitlines() + [""] + heading.body
    return _relabel(heading, name, level)


def convert_twosided(heading: OrgHeading, settings: Settings) -> NoteLayout:
    """
    The first two subheadings are the sides; either may be asked.

    The entry body is context shown with both sides. Further subheadings
    are extra information and go under the back side.
    """
    if len(heading.children) < 2:
        raise ConversionError(
            f"Two-sided entry '{heading.title}' (line {heading.line_number}) "
            f"needs two side subheadings, found {len(heading.children)}"
        )

    context = heading.body_text
    sides = heading.detach_children()
    front = _side(sides[0], settings.front_field, heading.level + 1, context)
    back = _side(sides[1], settings.back_field, heading.level + 1, context)
    for extra in sides[2:]:
        extra.set_level(heading.level + 2)
        back.add_child(extra)

    _install_fields(heading, [front, back])
    return NoteLayout(
        note_type=settings.reversed_note_type,
        field_names=[settings.front_field, settings.back_field],
    )


def convert_multisided(heading: OrgHeading, settings: Settings) -> NoteLayout:
    if len(heading.children) != 2:
        raise ConversionError(
            f"Multi-sided entry '{heading.title}' (line {heading.line_number}) has "
            f"{len(heading.children)} sides; only two-sided notes exist in Anki"
        )
    return convert_twosided(heading, settings)


CARD_TYPES: dict[str, Transformer] = {
    "simple": convert_simple,
    "twosided": convert_twosided,
    "multisided": convert_multisided,
    "hide1cloze": make_cloze_transformer("hide1"),
    "hide1_firstmore": make_cloze_transformer("hide1"),
    "hide2cloze": make_cloze_transformer("hide2"),
    "show1cloze": make_cloze_transformer("show1"),
    "show1_lastmore": make_cloze_transformer("show1"),
    "show1_firstless": make_cloze_transformer("show1"),
    "show2cloze": make_cloze_transformer("show2"),
}


def is_supported(card_type: str) -> bool:
    return card_type in CARD_TYPES


def transform_entry(heading: OrgHeading, card_type: str, settings: Settings) -> NoteLayout:
    """Rewrite *heading* into anki-editor layout for its org-drill *card_type*."""
    transformer = CARD_TYPES.get(card_type)
    if transformer is None:
        raise ConversionError(f"Unsupported card type '{card_type}'")
    return transformer(heading, settings)
