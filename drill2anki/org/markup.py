"""
Minimal org markup to HTML rendering for Anki fields.

Covers what flashcards use: emphasis, code/verbatim, links, plain lists,
nested headings and line breaks. Anki cloze markers pass through unchanged.
"""

from __future__ import annotations

import html
import re

from drill2anki.org.document import HEADING_PATTERN, TAGS_PATTERN

LINK_PATTERN = re.compile(r"\[\[(?P<target>[^\]]+)\](?:\[(?P<desc>[^\]]+)\])?\]")
LIST_ITEM_PATTERN = re.compile(r"^\s*(?:[-+]|\d+[.)])\s+(?P<text>.*)$")
KEYWORD_LINE_PATTERN = re.compile(r"^\s*#\+")

_PRE = r"(?P<pre>^|[\s\-({'\"])"
_POST = r"(?=[\s\-.,:!?;'\")}\[]|$)"


def _emphasis(marker: str) -> re.Pattern[str]:
    m = re.escape(marker)
    return re.compile(_PRE + m + r"(?P<body>[^\s" + m + r"](?:[^" + m + r"\n]*?[^\s" + m + r"])?)" + m + _POST)


CODE_PATTERNS = [_emphasis("~"), _emphasis("=")]
EMPHASIS = [
    (_emphasis("*"), "b"),
    (_emphasis("/"), "i"),
    (_emphasis("_"), "u"),
    (_emphasis("+"), "s"),
]


def _inline(text: str) -> str:
    """Render inline markup of one (already trimmed) line."""
    text = html.escape(text, quote=False)
    protected: list[str] = []

    def protect(fragment: str) -> str:
        protected.append(fragment)
        return f"\x00{len(protected) - 1}\x00"

    def link(match: re.Match[str]) -> str:
        target = match.group("target")
        desc = match.group("desc") or target
        return protect(f'<a href="{html.escape(target)}">{desc}</a>')

    def code(match: re.Match[str]) -> str:
        return match.group("pre") + protect(f"<code>{match.group('body')}</code>")

    text = LINK_PATTERN.sub(link, text)
    for pattern in CODE_PATTERNS:
        text = pattern.sub(code, text)
    for pattern, tag in EMPHASIS:
        text = pattern.sub(lambda m, t=tag: f"{m.group('pre')}<{t}>{m.group('body')}</{t}>", text)

    return re.sub(r"\x00(\d+)\x00", lambda m: protected[int(m.group(1))], text)


def to_html(text: str) -> str:
    """Render an org field body as Anki field HTML."""
    parts: list[str] = []
    items: list[str] = []

    def flush_list() -> None:
        if items:
            parts.append("<ul>" + "".join(f"<li>{item}</li>" for item in items) + "</ul>")
            items.clear()

    for line in text.strip("\n").splitlines():
        item = LIST_ITEM_PATTERN.match(line)
        if item:
            items.append(_inline(item.group("text").strip()))
            continue
        flush_list()
        if KEYWORD_LINE_PATTERN.match(line):
            continue
        heading = HEADING_PATTERN.match(line)
        if heading:
            rest = heading.group("rest") or ""
            tags = TAGS_PATTERN.search(rest)
            title = rest[: tags.start()] if tags else rest
            parts.append(f"<b>{_inline(title.strip())}</b>")
            continue
        parts.append(_inline(line.strip()))
    flush_list()

    rendered = ""
    for index, part in enumerate(parts):
        if index and not part.startswith("<ul>") and not parts[index - 1].startswith("<ul>"):
            rendered += "<br>"
        rendered += part
    return rendered
