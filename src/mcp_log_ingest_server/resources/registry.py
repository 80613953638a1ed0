"""MCP resource registry.

Resources are addressable by URI and can be fetched by the MCP client on demand.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_log_ingest_server.core.models import CanonicalLogRecord, IngestionFailure
from mcp_log_ingest_server.core.normalizer import MEDIA_TYPE_FORMATS
from mcp_log_ingest_server.tools.ingest import BASE_DIR_ENV, _base_dir

SAMPLE_FILES: dict[str, str] = {
    "structured": (
        "[\n"
        '  {"timestamp": "2024-01-01T00:00:00Z", "logLevel": "INFO", '
        '"source": "billing", "message": "invoice created"},\n'
        '  {"timestamp": "2024-01-01T00:00:05Z", "logLevel": "ERROR", '
        '"source": "billing", "message": "card declined"}\n'
        "]\n"
    ),
    "delimited": (
        "timestamp,logLevel,source,message\n"
        "2024-01-01T00:00:00Z,INFO,svcA,hello\n"
        "2024-01-01T00:00:01Z,WARN,svcA,slow response, retrying\n"
    ),
    "freeform": (
        '127.0.0.1 - - [10/Oct/2023:13:55:36 +0000] "GET /index.html?x=1 HTTP/1.1" 200 2326\n'
        '10.0.0.2 - - [10/Oct/2023:13:55:40 +0000] "POST /api/login HTTP/1.1" 503 512 '
        '"https://example.com/" "Mozilla/5.0"\n'
        "[2023-10-10T13:56:00Z] [ERROR] auth-service - token verification failed\n"
        "2023-10-10T13:57:00Z WARN disk usage above 80%\n"
    ),
}


def register_resources(mcp: FastMCP) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://log-ingest/help")
    def help_resource() -> str:
        """Return a short list of available resource URIs."""
        media = ", ".join(f"{k} -> {v.value}" for k, v in MEDIA_TYPE_FORMATS.items())
        return (
            "Resources:\n"
            "- app://log-ingest/help\n"
            "- app://log-ingest/schemas/canonical-record\n"
            "- app://log-ingest/schemas/ingestion-failure\n"
            "- app://log-ingest/examples/{format} (structured, delimited, freeform)\n"
            f"\nSupported media types: {media}\n"
            f"Ingest paths are resolved under {BASE_DIR_ENV}: {_base_dir()}\n"
        )

    @mcp.resource("app://log-ingest/schemas/canonical-record")
    def canonical_record_schema() -> dict[str, Any]:
        """Return the JSON schema of a normalized record."""
        return CanonicalLogRecord.model_json_schema(by_alias=True)

    @mcp.resource("app://log-ingest/schemas/ingestion-failure")
    def ingestion_failure_schema() -> dict[str, Any]:
        """Return the JSON schema of an ingestion failure."""
        return IngestionFailure.model_json_schema(by_alias=True)

    @mcp.resource("app://log-ingest/examples/{fmt}")
    def sample_file(fmt: str) -> str:
        """Return a tiny sample file for the given record syntax."""
        try:
            return SAMPLE_FILES[fmt]
        except KeyError:
            valid = ", ".join(sorted(SAMPLE_FILES))
            raise ValueError(f"Unknown format '{fmt}'. Valid values: {valid}.") from None
