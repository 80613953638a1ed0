from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from pathlib import Path

from mcp_log_ingest_server.core.config import load_config
from mcp_log_ingest_server.core.errors import ClassificationError, StoreUnavailableError
from mcp_log_ingest_server.core.models import CanonicalLogRecord, IngestFile
from mcp_log_ingest_server.core.normalizer import classify_media_type, normalize
from mcp_log_ingest_server.core.pipeline import IngestionPipeline, split_entries
from mcp_log_ingest_server.storage import build_backends
from mcp_log_ingest_server.tools.ingest import guess_media_type
from mcp_log_ingest_server.tools.search import search_logs_impl


def _read_files(paths: Sequence[str], media_type: str | None) -> list[IngestFile]:
    files = []
    for raw in paths:
        path = Path(raw)
        if not path.is_file():
            raise FileNotFoundError(f"Log file not found: {path}")
        files.append(
            IngestFile(
                name=path.name,
                media_type=media_type or guess_media_type(path),
                content=path.read_bytes(),
            )
        )
    return files


def _cmd_normalize(args: argparse.Namespace) -> int:
    """Dry run: print canonical records on stdout and rejections on stderr."""
    rejected = 0
    for f in _read_files(args.files, args.media_type):
        try:
            declared = classify_media_type(f.media_type)
            text = f.content.decode("utf-8-sig", errors="replace")  # type: ignore[union-attr]
            entries = split_entries(text, declared)
        except ClassificationError as e:
            print(f"{f.name}: {e}", file=sys.stderr)
            rejected += 1
            continue

        for entry in entries:
            result = normalize(entry, declared)
            if isinstance(result, CanonicalLogRecord):
                print(result.model_dump_json(by_alias=True, exclude_none=True))
            else:
                rejected += 1
                print(f"{f.name}: {result.reason}: {result.raw_entry}", file=sys.stderr)
    return 1 if rejected else 0


async def _ingest(args: argparse.Namespace) -> dict:
    cfg = load_config()
    backends = await build_backends(cfg)
    try:
        pipeline = IngestionPipeline(backends.store, backends.index, cfg)
        summary = await pipeline.ingest(_read_files(args.files, args.media_type))
        return summary.to_dict()
    finally:
        await backends.close()


async def _search(args: argparse.Namespace) -> dict:
    cfg = load_config()
    backends = await build_backends(cfg)
    try:
        params = {
            "query": args.query,
            "from": args.since,
            "to": args.until,
            "level": args.level,
            "source": args.source,
            "sortField": args.sort_field,
            "sortOrder": args.sort_order,
            "page": args.page,
            "pageSize": args.page_size,
        }
        return await search_logs_impl(index=backends.index, params=params)
    finally:
        await backends.close()


def main(argv: Sequence[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Normalize, ingest and search log files.")
    sub = p.add_subparsers(dest="command", required=True)

    p_norm = sub.add_parser("normalize", help="Print canonical records without storing them")
    p_norm.add_argument("files", nargs="+")
    p_norm.add_argument("--media-type", default=None, help="Override media type for all files")

    p_ing = sub.add_parser("ingest", help="Ingest files into the configured backends")
    p_ing.add_argument("files", nargs="+")
    p_ing.add_argument("--media-type", default=None, help="Override media type for all files")

    p_search = sub.add_parser("search", help="Search the configured index")
    p_search.add_argument("query", nargs="?", default=None)
    p_search.add_argument("--from", dest="since", default=None, help="ISO8601 start (default: 1 year ago)")
    p_search.add_argument("--to", dest="until", default=None, help="ISO8601 end (default: now)")
    p_search.add_argument("--level", default=None)
    p_search.add_argument("--source", default=None)
    p_search.add_argument("--sort-field", default=None)
    p_search.add_argument("--sort-order", default=None, choices=["asc", "desc"])
    p_search.add_argument("--page", default=None)
    p_search.add_argument("--page-size", default=None)

    args = p.parse_args(argv)

    try:
        if args.command == "normalize":
            raise SystemExit(_cmd_normalize(args))
        if args.command == "ingest":
            out = asyncio.run(_ingest(args))
        else:
            out = asyncio.run(_search(args))
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(2)
    except StoreUnavailableError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(json.dumps(e.summary.to_dict(), indent=2), file=sys.stderr)
        raise SystemExit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)

    print(json.dumps(out, indent=2, default=str))


if __name__ == "__main__":
    main()
