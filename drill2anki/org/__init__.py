"""Org outline documents: parsing, selection and field rendering."""

from drill2anki.org.document import OrgDocument, OrgHeading, parse_org, parse_timestamp
from drill2anki.org.markup import to_html
from drill2anki.org.query import DrillQuery, QuerySyntaxError, card_type_of, select_entries

__all__ = [
    "DrillQuery",
    "OrgDocument",
    "OrgHeading",
    "QuerySyntaxError",
    "card_type_of",
    "parse_org",
    "parse_timestamp",
    "select_entries",
    "to_html",
]
