"""Drill entry to anki-editor note conversion."""

from drill2anki.convert.card_types import CARD_TYPES, ConversionError, NoteLayout, transform_entry
from drill2anki.convert.cloze import ClozeSyntax, find_deletions, rewrite_deletions
from drill2anki.convert.converter import (
    ConversionReport,
    ConversionRun,
    convert_document,
    convert_entry,
    convert_files,
)

__all__ = [
    "CARD_TYPES",
    "ClozeSyntax",
    "ConversionError",
    "ConversionReport",
    "ConversionRun",
    "NoteLayout",
    "convert_document",
    "convert_entry",
    "convert_files",
    "find_deletions",
    "rewrite_deletions",
    "transform_entry",
]
