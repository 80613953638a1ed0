"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: ingest log files, search normalized records, review ingestion failures
- Resources: schemas, sample files and a help page
- Prompts: reusable investigation templates

Run locally (stdio):
    python -m mcp_log_ingest_server.server.log_server
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_log_ingest_server.core.config import load_config
from mcp_log_ingest_server.core.pipeline import IngestionPipeline
from mcp_log_ingest_server.prompts.registry import register_prompts
from mcp_log_ingest_server.resources.registry import register_resources
from mcp_log_ingest_server.storage import Backends, build_backends
from mcp_log_ingest_server.tools.ingest import ingest_logs_impl, load_files
from mcp_log_ingest_server.tools.search import list_failures_impl, search_logs_impl

LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure a reasonable default logging setup.

    The MCP client typically captures stderr; keeping logs concise makes them easier to consume.
    """
    level_name = os.getenv("LOG_INGEST_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@dataclass(slots=True)
class _Services:
    backends: Backends
    pipeline: IngestionPipeline


_services: _Services | None = None
_services_lock = asyncio.Lock()


async def _get_services() -> _Services:
    """Build backends on first use so startup never blocks on connections."""
    global _services
    async with _services_lock:
        if _services is None:
            cfg = load_config()
            backends = await build_backends(cfg)
            _services = _Services(
                backends=backends,
                pipeline=IngestionPipeline(backends.store, backends.index, cfg),
            )
            LOGGER.info("Backends ready (backend=%s, batch_size=%s)", cfg.backend, cfg.batch_size)
    return _services


mcp = FastMCP("log-ingest", json_response=True)

register_resources(mcp)
register_prompts(mcp)


@mcp.tool()
async def ingest_logs(
    paths: Sequence[str],
    media_types: Sequence[str] | None = None,
) -> dict[str, Any]:
    """Normalize log files and store them for search.

    Parameters
    ----------
    paths:
        Files to ingest, resolved under LOG_INGEST_BASE_DIR.
    media_types:
        Optional media type per path: application/json (array of records),
        text/csv (timestamp,logLevel,source,message) or text/plain (access logs,
        "[ts] [LEVEL] service - msg" or "ts LEVEL msg"). Guessed from the suffix
        when omitted.

    Returns
    -------
    dict:
        {"status": "success"|"partial", "results": {"successful", "failed",
        "errors", "errorsTruncated", "batchFailures"}}
    """
    services = await _get_services()
    files = await load_files(paths, media_types)
    return await ingest_logs_impl(pipeline=services.pipeline, files=files)


@mcp.tool()
async def search_logs(
    query: str | None = None,
    from_time: str | None = None,
    to_time: str | None = None,
    level: str | None = None,
    source: str | None = None,
    sort_field: str | None = None,
    sort_order: str | None = None,
    page: int | str | None = None,
    page_size: int | str | None = None,
) -> dict[str, Any]:
    """Full-text search over ingested records.

    Parameters
    ----------
    query:
        Free text matched against the message (typo tolerant).
    from_time/to_time:
        ISO-8601 bounds on the timestamp. Missing bounds default to one year ago / now.
    level/source:
        Restrict to a log level (case-insensitive) or a source token.
    sort_field/sort_order:
        Defaults: timestamp, asc.
    page/page_size:
        1-based page (default 1) and page size (default 10, max 100).

    Returns
    -------
    dict:
        {"total": int, "page": int, "pageSize": int, "results": list[dict]}
        Each result carries the canonical fields plus "highlight" (list of
        message fragments with matches wrapped in <em></em>).
    """
    services = await _get_services()
    params = {
        "query": query,
        "from": from_time,
        "to": to_time,
        "level": level,
        "source": source,
        "sortField": sort_field,
        "sortOrder": sort_order,
        "page": page,
        "pageSize": page_size,
    }
    return await search_logs_impl(index=services.backends.index, params=params)


@mcp.tool()
async def list_ingestion_failures(
    page: int | str | None = None,
    page_size: int | str | None = None,
) -> dict[str, Any]:
    """Return rejected entries and files, newest first."""
    services = await _get_services()
    return await list_failures_impl(
        store=services.backends.store, page=page, page_size=page_size
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    _ = argv or sys.argv[1:]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
