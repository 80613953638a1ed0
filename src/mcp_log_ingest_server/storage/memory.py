"""In-process store and index.

Used as the default backend and in tests. The index evaluates the subset of the
query DSL produced by :func:`core.query.compile_query`: ``bool`` with ``match``
(optionally fuzzy) and ``range`` clauses, multi-key sort with ``_doc``
tie-break, ``from``/``size`` paging and whole-field highlighting.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ..core.models import CanonicalLogRecord, IngestionFailure
from ..core.time_window import parse_iso_dt

_TOKEN_RE = re.compile(r"\w+")

# Fields analyzed as full text; every other field matches on its exact value.
TEXT_FIELDS = frozenset({"message", "userAgent"})


def _tokens(text: str) -> list[str]:
    return [t.lower() for t in _TOKEN_RE.findall(text)]


def auto_fuzziness(term: str) -> int:
    """Edit distance allowed by ``fuzziness: AUTO`` for a term of this length."""
    if len(term) <= 2:
        return 0
    if len(term) <= 5:
        return 1
    return 2


def edit_distance(a: str, b: str) -> int:
    """Optimal string alignment distance (adjacent transpositions count once)."""
    prev2: list[int] | None = None
    prev = list(range(len(b) + 1))
    for i in range(1, len(a) + 1):
        cur = [i] + [0] * len(b)
        for j in range(1, len(b) + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            cur[j] = min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + cost)
            if (
                prev2 is not None
                and i > 1
                and j > 1
                and a[i - 1] == b[j - 2]
                and a[i - 2] == b[j - 1]
            ):
                cur[j] = min(cur[j], prev2[j - 2] + 1)
        prev2, prev = prev, cur
    return prev[len(b)]


def _term_matches(query_term: str, doc_term: str, fuzzy: bool) -> bool:
    if query_term == doc_term:
        return True
    if not fuzzy:
        return False
    limit = auto_fuzziness(query_term)
    return limit > 0 and abs(len(query_term) - len(doc_term)) <= limit and (
        edit_distance(query_term, doc_term) <= limit
    )


@dataclass(slots=True)
class _Doc:
    seq: int
    source: dict[str, Any]
    record: CanonicalLogRecord
    score: float = 0.0


class InMemoryRecordStore:
    """Durable-store stand-in keeping documents in lists."""

    def __init__(self) -> None:
        self.records: list[CanonicalLogRecord] = []
        self.failures: list[IngestionFailure] = []
        self._lock = asyncio.Lock()

    async def insert_records(self, records: Sequence[CanonicalLogRecord]) -> None:
        async with self._lock:
            self.records.extend(records)

    async def insert_failures(self, failures: Sequence[IngestionFailure]) -> None:
        async with self._lock:
            self.failures.extend(failures)

    async def list_failures(self, *, skip: int, limit: int) -> tuple[list[dict[str, Any]], int]:
        newest_first = sorted(reversed(self.failures), key=lambda f: f.occurred_at, reverse=True)
        page = newest_first[skip : skip + limit]
        return [f.model_dump(by_alias=True, mode="json") for f in page], len(self.failures)


class InMemorySearchIndex:
    """Search-index stand-in; every write is immediately visible."""

    def __init__(self) -> None:
        self._docs: list[_Doc] = []

    def __len__(self) -> int:
        return len(self._docs)

    async def bulk_index(self, records: Sequence[CanonicalLogRecord]) -> None:
        start = len(self._docs)
        for i, record in enumerate(records):
            source = record.model_dump(by_alias=True, exclude_none=True, mode="json")
            self._docs.append(_Doc(seq=start + i, source=source, record=record))

    async def search(self, body: Mapping[str, Any]) -> dict[str, Any]:
        bool_q = (body.get("query") or {}).get("bool") or {}
        must = bool_q.get("must") or []
        filters = bool_q.get("filter") or []

        matched: list[_Doc] = []
        for doc in self._docs:
            score = self._score(doc, must)
            if score is None or not all(self._passes(doc, f) for f in filters):
                continue
            matched.append(_Doc(doc.seq, doc.source, doc.record, score))

        ordered = self._sort(matched, body.get("sort") or [])
        offset = int(body.get("from", 0))
        size = int(body.get("size", 10))
        page = ordered[offset : offset + size]

        highlight = body.get("highlight") or {}
        hits = []
        for doc in page:
            hit: dict[str, Any] = {"_id": str(doc.seq), "_score": doc.score, "_source": doc.source}
            fragments = self._highlight(doc, must, highlight)
            if fragments:
                hit["highlight"] = fragments
            hits.append(hit)

        return {"hits": {"total": {"value": len(matched), "relation": "eq"}, "hits": hits}}

    @staticmethod
    def _match_clause(clause: Mapping[str, Any]) -> tuple[str, str, bool]:
        field_name, spec = next(iter(clause["match"].items()))
        if isinstance(spec, Mapping):
            return field_name, str(spec.get("query", "")), spec.get("fuzziness") is not None
        return field_name, str(spec), False

    def _score(self, doc: _Doc, must: Sequence[Mapping[str, Any]]) -> float | None:
        score = 0.0
        for clause in must:
            if "match" not in clause:
                raise ValueError(f"unsupported query clause: {sorted(clause)}")
            field_name, query, fuzzy = self._match_clause(clause)
            value = doc.source.get(field_name)
            if value is None:
                return None
            if field_name in TEXT_FIELDS:
                doc_terms = _tokens(str(value))
                hits = sum(
                    1
                    for q in _tokens(query)
                    if any(_term_matches(q, t, fuzzy) for t in doc_terms)
                )
                if hits == 0:
                    return None
                score += hits
            else:
                if str(value) != query:
                    return None
                score += 1.0
        return score

    @staticmethod
    def _passes(doc: _Doc, clause: Mapping[str, Any]) -> bool:
        if "range" not in clause:
            raise ValueError(f"unsupported filter clause: {sorted(clause)}")
        field_name, bounds = next(iter(clause["range"].items()))
        value = getattr(doc.record, field_name) if field_name == "timestamp" else doc.source.get(field_name)
        if value is None:
            return False
        if field_name == "timestamp":
            bounds = {k: parse_iso_dt(v) for k, v in bounds.items()}
        if "gte" in bounds and value < bounds["gte"]:
            return False
        if "gt" in bounds and value <= bounds["gt"]:
            return False
        if "lte" in bounds and value > bounds["lte"]:
            return False
        if "lt" in bounds and value >= bounds["lt"]:
            return False
        return True

    @staticmethod
    def _sort(docs: list[_Doc], sort: Sequence[Mapping[str, Any]]) -> list[_Doc]:
        ordered = sorted(docs, key=lambda d: d.seq)
        # Stable sorts applied from the least significant key; missing values go last.
        for spec in reversed(sort):
            field_name, opts = next(iter(spec.items()))
            desc = (opts.get("order") if isinstance(opts, Mapping) else opts) == "desc"
            if field_name == "_doc":
                ordered.sort(key=lambda d: d.seq, reverse=desc)
                continue
            if field_name == "_score":
                ordered.sort(key=lambda d: d.score, reverse=desc)
                continue
            if field_name == "timestamp":
                present = ordered
                missing: list[_Doc] = []
                present.sort(key=lambda d: d.record.timestamp, reverse=desc)
            else:
                present = [d for d in ordered if d.source.get(field_name) is not None]
                missing = [d for d in ordered if d.source.get(field_name) is None]
                present.sort(key=lambda d: d.source[field_name], reverse=desc)
            ordered = present + missing
        return ordered

    def _highlight(
        self,
        doc: _Doc,
        must: Sequence[Mapping[str, Any]],
        highlight: Mapping[str, Any],
    ) -> dict[str, list[str]]:
        fields = highlight.get("fields") or {}
        pre = (highlight.get("pre_tags") or ["<em>"])[0]
        post = (highlight.get("post_tags") or ["</em>"])[0]
        out: dict[str, list[str]] = {}
        for clause in must:
            field_name, query, fuzzy = self._match_clause(clause)
            if field_name not in fields or field_name not in TEXT_FIELDS:
                continue
            terms = _tokens(query)
            text = str(doc.source.get(field_name, ""))
            marked = False

            def wrap(m: re.Match[str]) -> str:
                nonlocal marked
                if any(_term_matches(q, m.group(0).lower(), fuzzy) for q in terms):
                    marked = True
                    return f"{pre}{m.group(0)}{post}"
                return m.group(0)

            fragment = _TOKEN_RE.sub(wrap, text)
            if marked:
                out[field_name] = [fragment]
        return out
