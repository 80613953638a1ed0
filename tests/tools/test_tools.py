from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from mcp_log_ingest_server.cli import main as cli_main
from mcp_log_ingest_server.core.errors import QueryCompilationError
from mcp_log_ingest_server.tools.ingest import guess_media_type, ingest_logs_impl, load_files
from mcp_log_ingest_server.tools.search import list_failures_impl, search_logs_impl


class ExplodingIndex:
    async def bulk_index(self, records) -> None:
        return None

    async def search(self, body) -> dict[str, Any]:
        raise ConnectionError("es01:9200 refused connection")


@pytest.fixture
def base_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("LOG_INGEST_BASE_DIR", str(tmp_path))
    return tmp_path


def test_guess_media_type() -> None:
    assert guess_media_type(Path("a.json")) == "application/json"
    assert guess_media_type(Path("a.CSV")) == "text/csv"
    assert guess_media_type(Path("a.log")) == "text/plain"
    assert guess_media_type(Path("a.unknownext")) == "application/octet-stream"


@pytest.mark.asyncio
async def test_load_files_guesses_media_types(base_dir: Path, write_csv_log) -> None:
    write_csv_log(base_dir / "app.csv")
    (base_dir / "events.json").write_text("[]", encoding="utf-8")

    files = await load_files(["app.csv", str(base_dir / "events.json")])
    assert [(f.name, f.media_type) for f in files] == [
        ("app.csv", "text/csv"),
        ("events.json", "application/json"),
    ]
    assert isinstance(files[0].content, bytes)


@pytest.mark.asyncio
async def test_load_files_explicit_media_type(base_dir: Path) -> None:
    (base_dir / "data.bin").write_text("2024-01-01T00:00:00Z INFO hi\n", encoding="utf-8")
    [f] = await load_files(["data.bin"], ["text/plain"])
    assert f.media_type == "text/plain"


@pytest.mark.asyncio
async def test_load_files_rejects_escape_and_missing(base_dir: Path) -> None:
    with pytest.raises(ValueError, match="escapes"):
        await load_files(["../outside.log"])
    with pytest.raises(FileNotFoundError):
        await load_files(["missing.log"])
    with pytest.raises(ValueError, match="one entry per path"):
        await load_files(["a.log"], [])


@pytest.mark.asyncio
async def test_ingest_reports_partial_status(base_dir: Path, write_access_log, make_pipeline, store, index) -> None:
    write_access_log(base_dir / "access.log")
    files = await load_files(["access.log"])

    out = await ingest_logs_impl(pipeline=make_pipeline(), files=files)

    assert out["status"] == "partial"
    assert out["results"]["successful"] == 4
    assert out["results"]["failed"] == 1
    assert out["results"]["errors"][0]["file"] == "access.log"
    assert {r.source for r in store.records} == {"apache", "nginx", "auth-service", "unknown"}
    assert store.failures[0].raw_entry == "not a log line"
    assert len(index) == 4


@pytest.mark.asyncio
async def test_ingest_clean_run_is_success(make_pipeline) -> None:
    from mcp_log_ingest_server.core.models import IngestFile

    files = [IngestFile(name="a.csv", media_type="text/csv", content="2024-01-01T00:00:00Z,INFO,svc,ok")]
    out = await ingest_logs_impl(pipeline=make_pipeline(), files=files)
    assert out == {
        "status": "success",
        "results": {"successful": 1, "failed": 0, "errors": [], "errorsTruncated": 0, "batchFailures": []},
    }


@pytest.mark.asyncio
async def test_ingest_without_files_is_rejected(make_pipeline) -> None:
    with pytest.raises(ValueError, match="No files uploaded"):
        await ingest_logs_impl(pipeline=make_pipeline(), files=[])


@pytest.mark.asyncio
async def test_ingest_only_unsupported_files_is_rejected(base_dir: Path, make_pipeline, store) -> None:
    (base_dir / "report.xml").write_text("<log/>", encoding="utf-8")
    files = await load_files(["report.xml"])

    with pytest.raises(ValueError, match="Unsupported file format"):
        await ingest_logs_impl(pipeline=make_pipeline(), files=files)
    assert len(store.failures) == 1


@pytest.mark.asyncio
async def test_ingest_only_malformed_payloads_is_rejected(base_dir: Path, make_pipeline, store) -> None:
    (base_dir / "one.json").write_text('{"timestamp": "2024-01-01T00:00:00Z"}', encoding="utf-8")
    files = await load_files(["one.json"])

    with pytest.raises(ValueError, match="JSON array"):
        await ingest_logs_impl(pipeline=make_pipeline(), files=files)
    assert len(store.failures) == 1


@pytest.mark.asyncio
async def test_ingest_with_one_usable_file_is_partial(base_dir: Path, make_pipeline, write_csv_log) -> None:
    (base_dir / "one.json").write_text('{"timestamp": "2024-01-01T00:00:00Z"}', encoding="utf-8")
    write_csv_log(base_dir / "app.csv")
    files = await load_files(["one.json", "app.csv"])

    out = await ingest_logs_impl(pipeline=make_pipeline(), files=files)
    assert out["status"] == "partial"
    assert out["results"]["successful"] == 2
    assert "rejected_files" not in out["results"]


@pytest.mark.asyncio
async def test_search_roundtrip(make_pipeline, index, now) -> None:
    from mcp_log_ingest_server.core.models import IngestFile

    await ingest_logs_impl(
        pipeline=make_pipeline(),
        files=[IngestFile(name="a.csv", media_type="text/csv", content="2024-01-01T00:00:00Z,ERROR,svc,disk full")],
    )

    out = await search_logs_impl(index=index, params={"query": "disk", "level": "error"}, now=now)
    assert out["total"] == 1
    assert out["results"][0]["highlight"] == ["<em>disk</em> full"]
    assert out["results"][0]["logLevel"] == "ERROR"


@pytest.mark.asyncio
async def test_search_invalid_params_propagate(index, now) -> None:
    with pytest.raises(QueryCompilationError):
        await search_logs_impl(index=index, params={"sortField": "nope"}, now=now)


@pytest.mark.asyncio
async def test_search_backend_error_is_generic(now) -> None:
    with pytest.raises(RuntimeError) as info:
        await search_logs_impl(index=ExplodingIndex(), params={}, now=now)
    assert "es01" not in str(info.value)


@pytest.mark.asyncio
async def test_list_failures_paging(make_pipeline, store) -> None:
    from mcp_log_ingest_server.core.models import IngestFile

    content = "\n".join(f"bad line {i}" for i in range(3))
    await make_pipeline().ingest([IngestFile(name="x.log", media_type="text/plain", content=content)])

    out = await list_failures_impl(store=store, page="2", page_size=2)
    assert out["total"] == 3
    assert (out["page"], out["pageSize"]) == (2, 2)
    assert len(out["results"]) == 1
    assert out["results"][0]["sourceFile"] == "x.log"


def test_cli_normalize_dry_run(tmp_path: Path, write_csv_log, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "app.csv"
    write_csv_log(path)

    with pytest.raises(SystemExit) as info:
        cli_main(["normalize", str(path)])
    assert info.value.code == 1

    captured = capsys.readouterr()
    lines = [json.loads(line) for line in captured.out.splitlines()]
    assert [line["message"] for line in lines] == ["hello", "slow, retrying"]
    assert "missing timestamp field" in captured.err


def test_cli_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as info:
        cli_main(["normalize", str(tmp_path / "nope.log")])
    assert info.value.code == 2
    assert "not found" in capsys.readouterr().err
