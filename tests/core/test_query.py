from __future__ import annotations

from datetime import timedelta

import pytest

from mcp_log_ingest_server.core.errors import QueryCompilationError
from mcp_log_ingest_server.core.query import (
    MAX_PAGE_SIZE,
    SearchParams,
    coerce_page,
    coerce_page_size,
    compile_query,
    map_results,
)


def test_compile_defaults(now) -> None:
    q = compile_query({}, now=now)
    bool_q = q.body["query"]["bool"]

    assert bool_q["must"] == []
    assert bool_q["filter"] == [
        {
            "range": {
                "timestamp": {
                    "gte": (now - timedelta(days=365)).isoformat(),
                    "lte": now.isoformat(),
                }
            }
        }
    ]
    assert q.body["sort"] == [{"timestamp": {"order": "asc"}}, {"_doc": {"order": "asc"}}]
    assert q.body["from"] == 0
    assert q.body["size"] == 10
    assert (q.page, q.page_size) == (1, 10)


def test_compile_text_level_and_source_are_must_clauses(now) -> None:
    q = compile_query({"query": "timeout", "level": "warn", "source": "svcA"}, now=now)
    must = q.body["query"]["bool"]["must"]

    assert must == [
        {"match": {"message": {"query": "timeout", "fuzziness": "AUTO"}}},
        {"match": {"logLevel": {"query": "WARN"}}},
        {"match": {"source": {"query": "svcA"}}},
    ]


def test_compile_explicit_window(now) -> None:
    q = compile_query({"from": "2024-01-01T00:00:00Z"}, now=now)
    rng = q.body["query"]["bool"]["filter"][0]["range"]["timestamp"]
    assert rng == {"gte": "2024-01-01T00:00:00+00:00", "lte": now.isoformat()}


def test_compile_highlight_on_message_only(now) -> None:
    hl = compile_query({"query": "x"}, now=now).body["highlight"]
    assert list(hl["fields"]) == ["message"]
    assert hl["pre_tags"] == ["<em>"]
    assert hl["post_tags"] == ["</em>"]


def test_compile_pagination_offset(now) -> None:
    q = compile_query({"page": "2", "pageSize": "5"}, now=now)
    assert q.offset == 5
    assert q.body["size"] == 5


@pytest.mark.parametrize(("raw", "expected"), [(None, 1), ("abc", 1), (0, 1), ("-3", 1), ("4", 4), (2, 2)])
def test_coerce_page(raw, expected) -> None:
    assert coerce_page(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, 10), ("x", 10), (0, 10), (-5, 10), ("25", 25), (10_000, MAX_PAGE_SIZE)],
)
def test_coerce_page_size(raw, expected) -> None:
    assert coerce_page_size(raw) == expected


def test_sort_parameters(now) -> None:
    q = compile_query({"sortField": "status", "sortOrder": "DESC"}, now=now)
    assert q.body["sort"][0] == {"status": {"order": "desc"}}


@pytest.mark.parametrize(
    "params",
    [
        {"sortField": "message"},
        {"sortField": "bogus"},
        {"sortOrder": "sideways"},
        {"from": "last tuesday"},
        {"from": "2024-05-01T00:00:00Z", "to": "2024-04-01T00:00:00Z"},
        {"page": 1000, "pageSize": 100},
    ],
)
def test_compile_rejects_uncoercible_params(params, now) -> None:
    with pytest.raises(QueryCompilationError):
        compile_query(params, now=now)


def test_search_params_from_mapping_blank_values() -> None:
    params = SearchParams.from_mapping({"query": "  ", "level": "", "sortField": None})
    assert params.query is None
    assert params.level is None
    assert params.sort_field == "timestamp"


def test_map_results_attaches_highlights(now) -> None:
    q = compile_query({"query": "boom", "page": 3, "pageSize": 2}, now=now)
    response = {
        "hits": {
            "total": {"value": 7, "relation": "eq"},
            "hits": [
                {
                    "_id": "1",
                    "_source": {
                        "timestamp": "2024-01-01T00:00:00Z",
                        "logLevel": "ERROR",
                        "message": "boom here",
                        "source": "svc",
                        "status": 500,
                    },
                    "highlight": {"message": ["<em>boom</em> here"]},
                },
                {
                    "_id": "2",
                    "_source": {
                        "timestamp": "2024-01-01T00:00:01Z",
                        "logLevel": "INFO",
                        "message": "fine",
                        "source": "svc",
                    },
                },
                {"_id": "3", "_source": {"message": "not canonical"}},
            ],
        }
    }

    page = map_results(response, q)
    out = page.to_dict()

    assert out["total"] == 7
    assert (out["page"], out["pageSize"]) == (3, 2)
    assert len(out["results"]) == 2
    assert out["results"][0]["highlight"] == ["<em>boom</em> here"]
    assert out["results"][0]["status"] == 500
    assert out["results"][1]["highlight"] == []
    assert out["results"][1]["timestamp"].startswith("2024-01-01T00:00:01")


def test_map_results_accepts_plain_total(now) -> None:
    q = compile_query({}, now=now)
    assert map_results({"hits": {"total": 3, "hits": []}}, q).total == 3
