"""
Query-string search shared by the journal and submission listings.

``?query=<text>&field=<title|abstract|keywords|authors>``; without ``field``
every searchable column is matched. Matching is a case-insensitive substring
test with LIKE wildcards in the query escaped.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import or_

from app.journalhub.errors import InvalidRequest

SEARCH_FIELDS = ("title", "abstract", "keywords", "authors")
MAX_QUERY_LENGTH = 100

_QUERY_RE = re.compile(r"^[a-zA-Z0-9\s\-_.,!?()]+$")


@dataclass(frozen=True)
class SearchQuery:
    text: str
    field: str | None = None


def parse_search_args(args: Mapping[str, str]) -> SearchQuery:
    text = (args.get("query") or "").strip()
    if not 1 <= len(text) <= MAX_QUERY_LENGTH:
        raise InvalidRequest(
            f"Search query must be between 1 and {MAX_QUERY_LENGTH} characters",
            details={"field": "query"},
        )
    if not _QUERY_RE.match(text):
        raise InvalidRequest("Search query contains invalid characters", details={"field": "query"})

    field = (args.get("field") or "").strip() or None
    if field is not None and field not in SEARCH_FIELDS:
        raise InvalidRequest("Invalid search field", details={"field": "field", "allowed": list(SEARCH_FIELDS)})
    return SearchQuery(text=text, field=field)


def search_clause(query: SearchQuery, columns: Mapping[str, Any]):
    """OR of case-insensitive substring matches over the selected columns."""
    selected = [columns[query.field]] if query.field else list(columns.values())
    return or_(*(col.icontains(query.text, autoescape=True) for col in selected))
