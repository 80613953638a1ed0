"""MCP prompt registry.

Prompts are predefined conversation/workflow templates that the client can invoke explicitly.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP


def _filter_lines(**filters: Any) -> str:
    """Render non-empty filters as a bullet list for prompt display."""
    lines = [f"- {name}: {value}" for name, value in filters.items() if value not in (None, "")]
    return "\n".join(lines) if lines else "- (no filters; default one-year window)"


def register_prompts(mcp: FastMCP) -> None:
    """Register prompt templates on the MCP server."""

    @mcp.prompt()
    def search_incident(
        query: str,
        from_time: str | None = None,
        to_time: str | None = None,
        level: str | None = "ERROR",
        source: str | None = None,
    ) -> list[dict[str, Any]]:
        """Build a prompt for investigating an incident through log search."""
        call_block = _filter_lines(
            query=query,
            from_time=from_time,
            to_time=to_time,
            level=level,
            source=source,
            sort_order="desc",
        )
        return [
            {
                "role": "system",
                "content": (
                    "You are a senior incident triage assistant for backend services. "
                    "Provide concise, evidence-based summaries from log data. "
                    "Do not invent details; if the evidence is insufficient, say so."
                ),
            },
            {
                "role": "user",
                "content": (
                    "Investigate the incident using search_logs. Follow this workflow:\n"
                    "- Call search_logs first with the parameters below.\n"
                    "- Highlighted fragments mark the matched words with <em></em>; "
                    "quote them as evidence.\n"
                    "- If total is larger than the page, fetch further pages before concluding.\n"
                    "- If no results are returned, retry without level and then with a "
                    "wider time window, and say so.\n\n"
                    "Call search_logs with:\n"
                    f"{call_block}\n\n"
                    "Return this structure:\n"
                    "1) What happened (1-3 bullets)\n"
                    "2) Evidence (2-5 records with timestamp, source and message)\n"
                    "3) Suspected root cause (1-2 sentences; say 'Unknown' if unclear)\n"
                    "4) Next actions (2-4 bullets)\n"
                ),
            },
        ]

    @mcp.prompt()
    def investigate_failures(page_size: int = 20) -> list[dict[str, Any]]:
        """Build a prompt that explains why recent entries were rejected at ingest."""
        return [
            {
                "role": "system",
                "content": (
                    "You help operators fix log shipping problems. Group similar failures "
                    "and point at the producing file and the offending field."
                ),
            },
            {
                "role": "user",
                "content": (
                    f"Call list_ingestion_failures with page_size={page_size}.\n"
                    "Group the failures by sourceFile and reason, then for each group give:\n"
                    "- how many entries were rejected\n"
                    "- one example rawEntry\n"
                    "- the change the producer should make so the entry normalizes\n"
                    "Read app://log-ingest/schemas/canonical-record for the expected shape.\n"
                ),
            },
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Canonical record schema:"},
                    {"type": "resource", "uri": "app://log-ingest/schemas/canonical-record"},
                ],
            },
        ]
