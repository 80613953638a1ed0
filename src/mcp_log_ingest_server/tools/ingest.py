"""MCP tool implementation for ingesting log files.

Keep this layer thin: resolve and read files, translate them into core calls,
and return JSON-serializable data structures.
"""

from __future__ import annotations

import mimetypes
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import aiofiles

from mcp_log_ingest_server.core.models import IngestFile
from mcp_log_ingest_server.core.pipeline import IngestionPipeline

BASE_DIR_ENV = "LOG_INGEST_BASE_DIR"

SUFFIX_MEDIA_TYPES = {
    ".json": "application/json",
    ".csv": "text/csv",
    ".log": "text/plain",
    ".txt": "text/plain",
}


def _base_dir() -> Path:
    """Return the resolved base directory for ingestable files."""
    raw = os.getenv(BASE_DIR_ENV, os.getcwd())
    return Path(raw).resolve()


def _safe_resolve(path: str) -> Path:
    """Resolve a path under the configured base directory."""
    base = _base_dir()
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = base / p
    p = p.resolve()
    if base not in p.parents and p != base:
        raise ValueError(f"Path escapes base dir: {path}")
    if not p.is_file():
        raise FileNotFoundError(f"File not found: {p}")
    return p


def guess_media_type(path: Path) -> str:
    """Media type from the file suffix; unknown suffixes are octet streams."""
    known = SUFFIX_MEDIA_TYPES.get(path.suffix.lower())
    if known:
        return known
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


async def load_files(
    paths: Sequence[str],
    media_types: Sequence[str | None] | None = None,
) -> list[IngestFile]:
    """Read files into IngestFile values (media type explicit or guessed)."""
    if media_types is not None and len(media_types) != len(paths):
        raise ValueError("media_types must have one entry per path")

    files: list[IngestFile] = []
    for i, raw_path in enumerate(paths):
        path = _safe_resolve(raw_path)
        media_type = (media_types[i] if media_types is not None else None) or guess_media_type(path)
        async with aiofiles.open(path, "rb") as f:
            content = await f.read()
        files.append(IngestFile(name=path.name, media_type=media_type, content=content))
    return files


async def ingest_logs_impl(
    *,
    pipeline: IngestionPipeline,
    files: Sequence[IngestFile],
) -> dict[str, Any]:
    """Implementation for the `ingest_logs` MCP tool.

    Notes
    -----
    - Partial success (some entries or batches failed) is still a normal result.
    - A request without files, or whose files were all rejected as a whole
      (unsupported media type or malformed structured payload), is rejected
      with ValueError after the file-level failures have been recorded.
    """
    if not files:
        raise ValueError("No files uploaded")

    summary = await pipeline.ingest(files)

    if summary.rejected_files == len(files):
        details = "; ".join(f"{e.file}: {e.error}" for e in summary.errors)
        raise ValueError(f"No file could be ingested. {details}")

    clean = summary.failed == 0 and not summary.batch_failures
    return {
        "status": "success" if clean else "partial",
        "results": summary.to_dict(),
    }
