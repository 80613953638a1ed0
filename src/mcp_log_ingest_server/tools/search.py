"""MCP tool implementations for search and failure review."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from mcp_log_ingest_server.core.models import IngestionFailure
from mcp_log_ingest_server.core.query import (
    coerce_page,
    coerce_page_size,
    compile_query,
    map_results,
)
from mcp_log_ingest_server.storage.base import RecordStore, SearchIndex

logger = logging.getLogger(__name__)


async def search_logs_impl(
    *,
    index: SearchIndex,
    params: Mapping[str, Any],
    now: datetime | None = None,
) -> dict[str, Any]:
    """Implementation for the `search_logs` MCP tool.

    QueryCompilationError (a ValueError) reaches the caller unchanged; backend
    errors are logged and replaced with a generic message.
    """
    query = compile_query(params, now=now)
    try:
        response = await index.search(query.body)
    except Exception as exc:
        logger.exception("Search request failed")
        raise RuntimeError("Search failed; see server logs for details") from exc
    return map_results(response, query).to_dict()


def _failure_to_dict(doc: Mapping[str, Any]) -> dict[str, Any]:
    try:
        return IngestionFailure.model_validate(doc).model_dump(by_alias=True, mode="json")
    except ValidationError:
        return {k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in doc.items()}


async def list_failures_impl(
    *,
    store: RecordStore,
    page: Any = None,
    page_size: Any = None,
) -> dict[str, Any]:
    """Implementation for the `list_ingestion_failures` MCP tool (newest first)."""
    page_n = coerce_page(page)
    size = coerce_page_size(page_size)
    docs, total = await store.list_failures(skip=(page_n - 1) * size, limit=size)
    return {
        "total": total,
        "page": page_n,
        "pageSize": size,
        "results": [_failure_to_dict(d) for d in docs],
    }
