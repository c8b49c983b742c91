"""
Outline document model for org-mode files.

Parses org text into a heading tree that can be navigated and mutated
(properties, tags, planning lines, body, children) and rendered back.
Untouched heading and property lines are rendered exactly as they were
read, so converting a file only changes the entries that were rewritten.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

HEADING_PATTERN = re.compile(r"^(?P<stars>\*+)(?:[ \t]+(?P<rest>.*?))?[ \t]*$")
TAGS_PATTERN = re.compile(r"(?:^|[ \t]+)(?P<tags>:(?:[\w@#%]+:)+)$")
PLANNING_LINE_PATTERN = re.compile(r"^\s*(?:SCHEDULED|DEADLINE|CLOSED):")
PLANNING_ITEM_PATTERN = re.compile(
    r"(?P<keyword>SCHEDULED|DEADLINE|CLOSED):\s*(?P<stamp>[<\[][^>\]]*[>\]])"
)
PROPERTY_PATTERN = re.compile(r"^\s*:(?P<key>[^:\s]+):(?:[ \t]+(?P<value>.*?))?[ \t]*$")
KEYWORD_PATTERN = re.compile(r"^#\+(?P<key>[A-Za-z_][\w-]*):[ \t]*(?P<value>.*?)[ \t]*$")
TIMESTAMP_PATTERN = re.compile(
    r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:[^\d>\]]*(?P<hour>\d{1,2}):(?P<minute>\d{2}))?"
)

# Emacs right-aligns heading tags to this column by default
TAGS_COLUMN = 77


def _split_tags(rest: str) -> tuple[str, list[str]]:
    match = TAGS_PATTERN.search(rest)
    if not match:
        return rest, []
    tags = [tag for tag in match.group("tags").split(":") if tag]
    return rest[: match.start()].rstrip(), tags


@dataclass
class OrgHeading:
    """A heading with its planning line, property drawer, body and subtree."""

    level: int
    title: str
    tags: list[str] = field(default_factory=list)
    planning: dict[str, str] = field(default_factory=dict)
    properties: dict[str, str] = field(default_factory=dict)
    body: list[str] = field(default_factory=list)
    children: list[OrgHeading] = field(default_factory=list)
    line_number: int = 0
    parent: OrgHeading | None = field(default=None, repr=False, compare=False)
    # Original text, reused on render while the parsed values are unchanged
    _raw_line: str | None = field(default=None, repr=False, compare=False)
    _raw_key: tuple | None = field(default=None, repr=False, compare=False)
    _raw_properties: dict[str, tuple[str, str]] = field(
        default_factory=dict, repr=False, compare=False
    )

    # ========================================
    # Properties
    # ========================================

    def _property_key(self, name: str) -> str | None:
        wanted = name.upper()
        for key in self.properties:
            if key.upper() == wanted:
                return key
        return None

    def get_property(self, name: str, default: str | None = None) -> str | None:
        """Return a property value (property names are case-insensitive)."""
        key = self._property_key(name)
        if key is None:
            return default
        return self.properties[key]

    def get_inherited_property(self, name: str, default: str | None = None) -> str | None:
        """Return a property from this heading or the nearest ancestor that has it."""
        node: OrgHeading | None = self
        while node is not None:
            value = node.get_property(name)
            if value not in (None, ""):
                return value
            node = node.parent
        return default

    def set_property(self, name: str, value: object) -> None:
        key = self._property_key(name) or name
        self.properties[key] = str(value)

    def delete_property(self, name: str) -> str | None:
        key = self._property_key(name)
        if key is None:
            return None
        self._raw_properties.pop(key, None)
        return self.properties.pop(key)

    # ========================================
    # Tags
    # ========================================

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def remove_tag(self, tag: str) -> None:
        self.tags = [t for t in self.tags if t != tag]

    # ========================================
    # Tree navigation & mutation
    # ========================================

    @property
    def scheduled(self) -> str | None:
        return self.planning.get("SCHEDULED")

    @property
    def body_text(self) -> str:
        return "\n".join(self.body).strip()

    def ancestors(self) -> Iterator[OrgHeading]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def iter_subtree(self) -> Iterator[OrgHeading]:
        """Yield this heading and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.iter_subtree()

    def set_level(self, level: int) -> None:
        """Move this heading to *level*, shifting its whole subtree by the same amount."""
        delta = level - self.level
        if delta == 0:
            return
        for node in self.iter_subtree():
            node.level += delta

    def add_child(self, child: OrgHeading, index: int | None = None) -> OrgHeading:
        child.parent = self
        if child.level <= self.level:
            child.set_level(self.level + 1)
        if index is None:
            self.children.append(child)
        else:
            self.children.insert(index, child)
        return child

    def detach_children(self) -> list[OrgHeading]:
        children = self.children
        self.children = []
        for child in children:
            child.parent = None
        return children

    def content_text(self, drawers: bool = True) -> str:
        """Body plus the rendered subtree, without this heading's own line.

        With ``drawers=False`` descendants are rendered without their
        planning lines and property drawers.
        """
        lines = list(self.body)
        for child in self.children:
            lines.extend(child.render_lines(drawers))
        return "\n".join(lines).strip("\n")

    # ========================================
    # Rendering
    # ========================================

    def _key(self) -> tuple:
        return (self.level, self.title, tuple(self.tags))

    def heading_line(self) -> str:
        if self._raw_line is not None and self._raw_key == self._key():
            return self._raw_line
        head = f"{'*' * self.level} {self.title}".rstrip()
        if not self.tags:
            return head
        tag_text = ":" + ":".join(self.tags) + ":"
        gap = max(1, TAGS_COLUMN - len(head) - len(tag_text))
        return head + " " * gap + tag_text

    def render_lines(self, drawers: bool = True) -> list[str]:
        lines = [self.heading_line()]
        if drawers and self.planning:
            lines.append(" ".join(f"{k}: {v}" for k, v in self.planning.items()))
        if drawers and self.properties:
            lines.append(":PROPERTIES:")
            for key, value in self.properties.items():
                raw = self._raw_properties.get(key)
                if raw is not None and raw[0] == value:
                    lines.append(raw[1])
                else:
                    lines.append(f":{key}: {value}".rstrip())
            lines.append(":END:")
        lines.extend(self.body)
        for child in self.children:
            lines.extend(child.render_lines(drawers))
        return lines


@dataclass
class OrgDocument:
    """A parsed org file: preamble lines followed by top-level headings."""

    source_path: str = ""
    preamble: list[str] = field(default_factory=list)
    headings: list[OrgHeading] = field(default_factory=list)
    trailing_newline: bool = True

    @property
    def keywords(self) -> dict[str, str]:
        """In-buffer settings (``#+KEY: value``) from the preamble, keys upper-cased."""
        result: dict[str, str] = {}
        for line in self.preamble:
            match = KEYWORD_PATTERN.match(line)
            if match:
                result[match.group("key").upper()] = match.group("value")
        return result

    @property
    def name(self) -> str:
        return Path(self.source_path).name if self.source_path else "<string>"

    def iter_headings(self) -> Iterator[OrgHeading]:
        for heading in self.headings:
            yield from heading.iter_subtree()

    def find_by_id(self, org_id: str) -> OrgHeading | None:
        for heading in self.iter_headings():
            if heading.get_property("ID") == org_id:
                return heading
        return None

    def render(self) -> str:
        lines = list(self.preamble)
        for heading in self.headings:
            lines.extend(heading.render_lines())
        text = "\n".join(lines)
        if self.trailing_newline and lines:
            text += "\n"
        return text

    @classmethod
    def from_file(cls, path: Path | str) -> OrgDocument:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Org file not found: {path}")
        return parse_org(path.read_text(encoding="utf-8"), source_path=str(path))

    def write(self, path: Path | str | None = None) -> Path:
        target = Path(path or self.source_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.render(), encoding="utf-8")
        return target


def parse_timestamp(stamp: str | None) -> datetime | None:
    """Parse an org timestamp such as ``<2024-03-10 Sun 09:30>`` or ``[2024-03-10 Sun]``."""
    if not stamp:
        return None
    match = TIMESTAMP_PATTERN.search(stamp)
    if not match:
        return None
    try:
        return datetime(
            int(match.group("year")),
            int(match.group("month")),
            int(match.group("day")),
            int(match.group("hour") or 0),
            int(match.group("minute") or 0),
        )
    except ValueError:
        return None


def _parse_heading_line(line: str, line_number: int) -> OrgHeading | None:
    match = HEADING_PATTERN.match(line)
    if not match:
        return None
    title, tags = _split_tags(match.group("rest") or "")
    heading = OrgHeading(
        level=len(match.group("stars")),
        title=title,
        tags=tags,
        line_number=line_number,
    )
    heading._raw_line = line
    heading._raw_key = heading._key()
    return heading


def _read_drawer(lines: list[str], start: int, heading: OrgHeading) -> int:
    """Read a property drawer starting at *start*; return the index after it.

    A drawer without a closing ``:END:`` is left in the body.
    """
    properties: dict[str, str] = {}
    raw: dict[str, tuple[str, str]] = {}
    index = start + 1
    while index < len(lines):
        line = lines[index]
        if line.strip().upper() == ":END:":
            heading.properties = properties
            heading._raw_properties = raw
            return index + 1
        if HEADING_PATTERN.match(line):
            break
        match = PROPERTY_PATTERN.match(line)
        if match:
            key = match.group("key")
            value = match.group("value") or ""
            properties[key] = value
            raw[key] = (value, line)
        index += 1
    return start


def parse_org(text: str, source_path: str = "") -> OrgDocument:
    """Parse org *text* into an :class:`OrgDocument`."""
    document = OrgDocument(source_path=source_path, trailing_newline=text.endswith("\n"))
    lines = text.splitlines()
    stack: list[OrgHeading] = []
    current: OrgHeading | None = None
    index = 0

    while index < len(lines):
        line = lines[index]
        heading = _parse_heading_line(line, index + 1)
        if heading is None:
            if current is None:
                document.preamble.append(line)
            else:
                current.body.append(line)
            index += 1
            continue

        index += 1
        if index < len(lines) and PLANNING_LINE_PATTERN.match(lines[index]):
            for item in PLANNING_ITEM_PATTERN.finditer(lines[index]):
                heading.planning[item.group("keyword")] = item.group("stamp")
            index += 1
        if index < len(lines) and lines[index].strip().upper() == ":PROPERTIES:":
            index = _read_drawer(lines, index, heading)

        while stack and stack[-1].level >= heading.level:
            stack.pop()
        if stack:
            stack[-1].add_child(heading)
        else:
            document.headings.append(heading)
        stack.append(heading)
        current = heading

    return document
