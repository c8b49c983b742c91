"""
Cloze deletion handling.

org-drill marks deletions with ``[text]`` or ``[text||hint]``; Anki wants
``{{c1::text::hint}}``. The numbering strategy decides on which Anki cards
each deletion is hidden, which is how the org-drill hide/show variants are
expressed with a single Anki Cloze note.

A deletion may span several lines of one paragraph, but never a blank
line. Brackets inside links and LaTeX fragments (``\\[...\\]``,
``\\(...\\)``) are not deletions.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache

from drill2anki.org.markup import LINK_PATTERN

# Bracketed org syntax that is never a deletion
CHECKBOX_BODIES = {" ", "X", "x", "-"}
COOKIE_PATTERN = re.compile(r"^\d*/\d*$|^\d*%$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}")
LATEX_PATTERN = re.compile(r"\\\[.*?\\\]|\\\(.*?\\\)", re.DOTALL)

NumberingStrategy = Callable[[int, int], tuple[int, ...]]


@dataclass(frozen=True)
class ClozeSyntax:
    """Delimiters used for deletions in the source files."""

    left: str = "["
    right: str = "]"
    hint_separator: str = "||"

    @property
    def pattern(self) -> re.Pattern[str]:
        return _compile(self.left, self.right)

    def split_hint(self, body: str) -> tuple[str, str | None]:
        text, sep, hint = body.partition(self.hint_separator)
        if not sep:
            return body, None
        return text, hint.strip() or None


@lru_cache(maxsize=16)
def _compile(left: str, right: str) -> re.Pattern[str]:
    lhs, rhs = re.escape(left), re.escape(right)
    return re.compile(
        lhs + r"(?P<body>(?:(?!" + lhs + "|" + rhs + r"|\n[ \t]*\n).)+)" + rhs,
        re.DOTALL,
    )


@dataclass(frozen=True)
class ClozeDeletion:
    start: int
    end: int
    text: str
    hint: str | None = None


def _protected_spans(text: str) -> list[tuple[int, int]]:
    """Spans of links and LaTeX fragments."""
    spans = [m.span() for m in LINK_PATTERN.finditer(text)]
    spans.extend(m.span() for m in LATEX_PATTERN.finditer(text))
    return spans


def _is_org_syntax(text: str, match: re.Match[str], spans: list[tuple[int, int]]) -> bool:
    body = match.group("body")
    if body in CHECKBOX_BODIES or COOKIE_PATTERN.match(body) or DATE_PATTERN.match(body):
        return True
    if body.startswith("fn:"):
        return True
    start = match.start()
    if start > 0 and text[start - 1] == "\\":
        return True
    return any(span_start <= start < span_end for span_start, span_end in spans)


def find_deletions(text: str, syntax: ClozeSyntax | None = None) -> list[ClozeDeletion]:
    """Return the cloze deletions in *text*, in order of appearance."""
    syntax = syntax or ClozeSyntax()
    spans = _protected_spans(text)
    deletions = []
    for match in syntax.pattern.finditer(text):
        if _is_org_syntax(text, match, spans):
            continue
        body_text, hint = syntax.split_hint(match.group("body"))
        if not body_text.strip():
            continue
        deletions.append(
            ClozeDeletion(start=match.start(), end=match.end(), text=body_text, hint=hint)
        )
    return deletions


# ========================================
# Numbering strategies
# ========================================


def hide_all(index: int, total: int) -> tuple[int, ...]:
    """Every deletion hidden together on one card."""
    return (1,)


def hide_one(index: int, total: int) -> tuple[int, ...]:
    """One card per deletion."""
    return (index + 1,)


def hide_two(index: int, total: int) -> tuple[int, ...]:
    """Consecutive pairs of deletions share a card."""
    return (index // 2 + 1,)


def show_one(index: int, total: int) -> tuple[int, ...]:
    """Card k shows only deletion k; every other deletion is hidden on it."""
    if total < 2:
        return (1,)
    return tuple(card for card in range(1, total + 1) if card != index + 1)


def show_two(index: int, total: int) -> tuple[int, ...]:
    """Card k shows deletions k and k+1 (wrapping); the rest are hidden."""
    if total <= 2:
        return hide_one(index, total)
    shown_on = {index + 1, (index - 1) % total + 1}
    return tuple(card for card in range(1, total + 1) if card not in shown_on)


NUMBERING_STRATEGIES: dict[str, NumberingStrategy] = {
    "hide_all": hide_all,
    "hide1": hide_one,
    "hide2": hide_two,
    "show1": show_one,
    "show2": show_two,
}


# ========================================
# Rewriting
# ========================================


def render_anki_cloze(text: str, ordinals: tuple[int, ...], hint: str | None = None) -> str:
    """
    Render one deletion in Anki syntax.

    Several ordinals produce nested clozes (``{{c1::{{c2::text}}}}``),
    with the hint on the innermost one.
    """
    if not ordinals:
        raise ValueError("A deletion must be hidden on at least one card")
    ordered = sorted(set(ordinals))
    inner = text if hint is None else f"{text}::{hint}"
    result = f"{{{{c{ordered[-1]}::{inner}}}}}"
    for ordinal in reversed(ordered[:-1]):
        result = f"{{{{c{ordinal}::{result}}}}}"
    return result


def rewrite_deletions(
    text: str,
    strategy: NumberingStrategy = hide_one,
    syntax: ClozeSyntax | None = None,
) -> tuple[str, int]:
    """Replace org-drill deletions with Anki clozes; return the new text and the count."""
    deletions = find_deletions(text, syntax)
    if not deletions:
        return text, 0

    parts = []
    position = 0
    total = len(deletions)
    for index, deletion in enumerate(deletions):
        parts.append(text[position : deletion.start])
        parts.append(render_anki_cloze(deletion.text, strategy(index, total), deletion.hint))
        position = deletion.end
    parts.append(text[position:])
    return "".join(parts), total


def strip_deletions(text: str, syntax: ClozeSyntax | None = None) -> str:
    """Remove deletion markup, keeping the hidden text."""
    deletions = find_deletions(text, syntax)
    parts = []
    position = 0
    for deletion in deletions:
        parts.append(text[position : deletion.start])
        parts.append(deletion.text)
        position = deletion.end
    parts.append(text[position:])
    return "".join(parts)
