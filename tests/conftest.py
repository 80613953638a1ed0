from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from mcp_log_ingest_server.core.config import IngestConfig
from mcp_log_ingest_server.core.pipeline import IngestionPipeline
from mcp_log_ingest_server.storage.memory import InMemoryRecordStore, InMemorySearchIndex

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def index() -> InMemorySearchIndex:
    return InMemorySearchIndex()


@pytest.fixture
def make_pipeline(
    store: InMemoryRecordStore, index: InMemorySearchIndex
) -> Callable[..., IngestionPipeline]:
    def _make(**config_kwargs) -> IngestionPipeline:
        return IngestionPipeline(store, index, IngestConfig(**config_kwargs))

    return _make


@pytest.fixture
def write_csv_log() -> Callable[[Path], None]:
    def _write(path: Path) -> None:
        path.write_text(
            "\n".join(
                [
                    "timestamp,logLevel,source,message",
                    "2024-01-01T00:00:00Z,INFO,svcA,hello",
                    ",ERROR,svcB,bad",
                    "2024-01-01T00:00:02Z,WARN,svcA,slow, retrying",
                ]
            )
            + "\n",
            encoding="utf-8",
        )

    return _write


@pytest.fixture
def write_access_log() -> Callable[[Path], None]:
    def _write(path: Path) -> None:
        path.write_text(
            "\n".join(
                [
                    '127.0.0.1 - - [10/Jan/2024:13:55:36 +0000] "GET /index.html?x=1 HTTP/1.1" 200 2326',
                    '10.0.0.2 - - [10/Jan/2024:13:55:40 +0000] "POST /api/login HTTP/1.1" 503 512 '
                    '"https://example.com/" "Mozilla/5.0"',
                    "",
                    "[2024-01-10T13:56:00Z] [ERROR] auth-service - token verification failed",
                    "2024-01-10T13:57:00Z WARN disk usage above 80%",
                    "not a log line",
                ]
            )
            + "\n",
            encoding="utf-8",
        )

    return _write
