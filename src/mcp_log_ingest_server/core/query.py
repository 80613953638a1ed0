"""Search query compilation and result mapping.

``compile_query`` turns loosely-typed filter parameters into an
Elasticsearch-style request body: a boolean query whose ``must`` clauses score
relevance and whose ``filter`` clauses only restrict, plus sort, highlight and
offset pagination. ``map_results`` turns the raw response back into canonical
records with their highlight fragments.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from .errors import QueryCompilationError
from .models import CanonicalLogRecord
from .time_window import resolve_search_window

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
MAX_RESULT_WINDOW = 10_000
DEFAULT_SORT_FIELD = "timestamp"
DEFAULT_SORT_ORDER = "asc"
HIGHLIGHT_PRE_TAG = "<em>"
HIGHLIGHT_POST_TAG = "</em>"

SORTABLE_FIELDS = frozenset(
    {"timestamp", "logLevel", "source", "ip", "method", "endpoint", "status", "size"}
)


def coerce_page(value: Any) -> int:
    """1-based page number; non-numeric or non-positive values become 1."""
    try:
        page = int(value)
    except (TypeError, ValueError):
        return DEFAULT_PAGE
    return page if page >= 1 else DEFAULT_PAGE


def coerce_page_size(value: Any) -> int:
    """Page size; non-numeric or non-positive values take the default, large ones clamp."""
    try:
        size = int(value)
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    if size < 1:
        return DEFAULT_PAGE_SIZE
    return min(size, MAX_PAGE_SIZE)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


@dataclass(frozen=True, slots=True)
class SearchParams:
    query: str | None = None
    since: str | None = None
    until: str | None = None
    level: str | None = None
    source: str | None = None
    sort_field: str = DEFAULT_SORT_FIELD
    sort_order: str = DEFAULT_SORT_ORDER
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any]) -> SearchParams:
        """Coerce raw request parameters (query-string style keys)."""
        sort_field = _text(params.get("sortField")) or DEFAULT_SORT_FIELD
        if sort_field not in SORTABLE_FIELDS:
            valid = ", ".join(sorted(SORTABLE_FIELDS))
            raise QueryCompilationError(f"Unknown sortField '{sort_field}'. Valid values: {valid}.")

        sort_order = (_text(params.get("sortOrder")) or DEFAULT_SORT_ORDER).lower()
        if sort_order not in ("asc", "desc"):
            raise QueryCompilationError("sortOrder must be 'asc' or 'desc'")

        return cls(
            query=_text(params.get("query")),
            since=_text(params.get("from")),
            until=_text(params.get("to")),
            level=_text(params.get("level")),
            source=_text(params.get("source")),
            sort_field=sort_field,
            sort_order=sort_order,
            page=coerce_page(params.get("page")),
            page_size=coerce_page_size(params.get("pageSize")),
        )


@dataclass(frozen=True, slots=True)
class StructuredQuery:
    body: dict[str, Any]
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return self.body["from"]


def compile_query(
    params: SearchParams | Mapping[str, Any],
    *,
    now: datetime | None = None,
) -> StructuredQuery:
    """Compile search parameters into a structured query body."""
    if not isinstance(params, SearchParams):
        params = SearchParams.from_mapping(params)

    try:
        since, until = resolve_search_window(since=params.since, until=params.until, now=now)
    except ValueError as exc:
        raise QueryCompilationError(f"from/to must be ISO-8601 instants: {exc}") from exc
    if since > until:
        raise QueryCompilationError("from must not be after to")

    must: list[dict[str, Any]] = []
    if params.query:
        must.append({"match": {"message": {"query": params.query, "fuzziness": "AUTO"}}})
    if params.level:
        must.append({"match": {"logLevel": {"query": params.level.upper()}}})
    if params.source:
        must.append({"match": {"source": {"query": params.source}}})

    time_filter = {"range": {"timestamp": {"gte": since.isoformat(), "lte": until.isoformat()}}}

    offset = (params.page - 1) * params.page_size
    if offset < 0:
        raise QueryCompilationError("page offset must not be negative")
    if offset + params.page_size > MAX_RESULT_WINDOW:
        raise QueryCompilationError(
            f"page * pageSize must not exceed {MAX_RESULT_WINDOW} results"
        )

    body = {
        "query": {"bool": {"must": must, "filter": [time_filter]}},
        "sort": [
            {params.sort_field: {"order": params.sort_order}},
            {"_doc": {"order": "asc"}},
        ],
        "highlight": {
            "pre_tags": [HIGHLIGHT_PRE_TAG],
            "post_tags": [HIGHLIGHT_POST_TAG],
            "fields": {"message": {"number_of_fragments": 0}},
        },
        "from": offset,
        "size": params.page_size,
        "track_total_hits": True,
    }
    return StructuredQuery(body=body, page=params.page, page_size=params.page_size)


@dataclass(frozen=True, slots=True)
class SearchHit:
    record: CanonicalLogRecord
    highlight: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = self.record.model_dump(by_alias=True, exclude_none=True, mode="json")
        d["highlight"] = list(self.highlight)
        return d


@dataclass(frozen=True, slots=True)
class SearchPage:
    total: int
    page: int
    page_size: int
    results: list[SearchHit]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "results": [hit.to_dict() for hit in self.results],
        }


def _total(hits: Mapping[str, Any]) -> int:
    total = hits.get("total", 0)
    if isinstance(total, Mapping):
        total = total.get("value", 0)
    return int(total)


def map_results(response: Mapping[str, Any], query: StructuredQuery) -> SearchPage:
    """Map a raw search response back to canonical records with highlights."""
    hits = response.get("hits") or {}
    results: list[SearchHit] = []
    for hit in hits.get("hits", []):
        try:
            record = CanonicalLogRecord.model_validate(hit.get("_source") or {})
        except ValidationError as exc:
            logger.warning("Skipping non-canonical search hit %s: %s", hit.get("_id"), exc)
            continue
        fragments = (hit.get("highlight") or {}).get("message") or []
        results.append(SearchHit(record=record, highlight=list(fragments)))

    return SearchPage(
        total=_total(hits),
        page=query.page,
        page_size=query.page_size,
        results=results,
    )
