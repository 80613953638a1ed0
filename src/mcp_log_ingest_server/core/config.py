"""Runtime configuration resolved from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

DEFAULT_BATCH_SIZE = 1000
DEFAULT_MAX_SUMMARY_ERRORS = 100
DEFAULT_INDEX_NAME = "logs"
DEFAULT_MONGODB_URI = "mongodb://localhost:27017"
DEFAULT_MONGODB_DATABASE = "logs"
DEFAULT_ELASTICSEARCH_URL = "http://localhost:9200"

Backend = Literal["memory", "mongo-elastic"]


@dataclass(frozen=True, slots=True)
class IngestConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    max_summary_errors: int = DEFAULT_MAX_SUMMARY_ERRORS
    index_name: str = DEFAULT_INDEX_NAME
    backend: Backend = "memory"
    mongodb_uri: str = DEFAULT_MONGODB_URI
    mongodb_database: str = DEFAULT_MONGODB_DATABASE
    elasticsearch_url: str = DEFAULT_ELASTICSEARCH_URL

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.max_summary_errors < 0:
            raise ValueError("max_summary_errors must be >= 0")


def _int_env(name: str, default: int, *, minimum: int) -> int:
    env = os.getenv(name)
    if env is None or env == "":
        return default
    try:
        value = int(env)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def load_config() -> IngestConfig:
    """Build an IngestConfig from LOG_INGEST_* and backend URL variables."""
    backend = os.getenv("LOG_INGEST_BACKEND", "memory").strip().lower()
    if backend not in ("memory", "mongo-elastic"):
        raise ValueError("LOG_INGEST_BACKEND must be 'memory' or 'mongo-elastic'")

    return IngestConfig(
        batch_size=_int_env("LOG_INGEST_BATCH_SIZE", DEFAULT_BATCH_SIZE, minimum=1),
        max_summary_errors=_int_env(
            "LOG_INGEST_MAX_SUMMARY_ERRORS", DEFAULT_MAX_SUMMARY_ERRORS, minimum=0
        ),
        index_name=os.getenv("LOG_INGEST_INDEX") or DEFAULT_INDEX_NAME,
        backend=backend,  # type: ignore[arg-type]
        mongodb_uri=os.getenv("MONGODB_URI") or DEFAULT_MONGODB_URI,
        mongodb_database=os.getenv("MONGODB_DATABASE") or DEFAULT_MONGODB_DATABASE,
        elasticsearch_url=os.getenv("ELASTICSEARCH_URL") or DEFAULT_ELASTICSEARCH_URL,
    )
