"""Elasticsearch search index (official async client)."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from elasticsearch import ApiError, AsyncElasticsearch, TransportError

from ..core.errors import BatchWriteError
from ..core.models import CanonicalLogRecord

logger = logging.getLogger(__name__)

LOG_INDEX_MAPPINGS: dict[str, Any] = {
    "properties": {
        "timestamp": {"type": "date"},
        "logLevel": {"type": "keyword"},
        "message": {"type": "text"},
        "source": {"type": "keyword"},
        "ip": {"type": "keyword"},
        "method": {"type": "keyword"},
        "endpoint": {"type": "keyword"},
        "status": {"type": "integer"},
        "size": {"type": "long"},
        "referrer": {"type": "keyword"},
        "userAgent": {"type": "text"},
    }
}

_SEARCH_KEYS = ("query", "sort", "highlight", "size", "track_total_hits")


def _first_bulk_error(resp: Mapping[str, Any]) -> str:
    for item in resp.get("items", []):
        action = item.get("index") or item.get("create") or {}
        err = action.get("error")
        if err:
            if isinstance(err, Mapping):
                return f"{err.get('type')}: {err.get('reason')}"
            return str(err)
    return "unknown bulk error"


class ElasticSearchIndex:
    """All records go to one fixed index; writes refresh before returning."""

    def __init__(self, client: AsyncElasticsearch, index_name: str = "logs") -> None:
        self._client = client
        self.index_name = index_name

    @classmethod
    def from_url(cls, url: str, index_name: str = "logs") -> ElasticSearchIndex:
        return cls(AsyncElasticsearch(url), index_name)

    async def ensure_index(self) -> None:
        """Create the index with the canonical mapping if it does not exist."""
        if await self._client.indices.exists(index=self.index_name):
            return
        logger.info("Creating search index %s", self.index_name)
        await self._client.indices.create(index=self.index_name, mappings=LOG_INDEX_MAPPINGS)

    async def bulk_index(self, records: Sequence[CanonicalLogRecord]) -> None:
        if not records:
            return
        operations: list[dict[str, Any]] = []
        for r in records:
            operations.append({"index": {"_index": self.index_name}})
            operations.append(r.model_dump(by_alias=True, exclude_none=True, mode="json"))

        try:
            resp = await self._client.bulk(operations=operations, refresh=True)
        except (ApiError, TransportError) as exc:
            raise BatchWriteError(f"Elasticsearch bulk request failed: {exc}", stage="index") from exc

        if resp.get("errors"):
            raise BatchWriteError(
                f"Elasticsearch rejected documents: {_first_bulk_error(resp)}", stage="index"
            )

    async def search(self, body: Mapping[str, Any]) -> dict[str, Any]:
        kwargs = {k: body[k] for k in _SEARCH_KEYS if k in body}
        resp = await self._client.search(index=self.index_name, from_=body.get("from", 0), **kwargs)
        return resp.body

    async def close(self) -> None:
        await self._client.close()
