"""Durable store and search index backends."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..core.config import IngestConfig
from .base import RecordStore, SearchIndex
from .memory import InMemoryRecordStore, InMemorySearchIndex

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Backends:
    store: RecordStore
    index: SearchIndex

    async def close(self) -> None:
        for backend in (self.store, self.index):
            close = getattr(backend, "close", None)
            if close is not None:
                await close()


async def build_backends(config: IngestConfig) -> Backends:
    """Create the configured store/index pair."""
    if config.backend == "memory":
        return Backends(store=InMemoryRecordStore(), index=InMemorySearchIndex())

    try:
        from .elastic import ElasticSearchIndex
        from .mongo import MongoRecordStore
    except ImportError as e:  # pragma: no cover
        raise RuntimeError(
            "pymongo and elasticsearch are required for the mongo-elastic backend. "
            "Install with: pip install '.[backends]'"
        ) from e

    logger.info(
        "Using MongoDB database %s and Elasticsearch index %s",
        config.mongodb_database,
        config.index_name,
    )
    store = MongoRecordStore.from_uri(config.mongodb_uri, config.mongodb_database)
    index = ElasticSearchIndex.from_url(config.elasticsearch_url, config.index_name)
    await index.ensure_index()
    return Backends(store=store, index=index)


__all__ = [
    "Backends",
    "InMemoryRecordStore",
    "InMemorySearchIndex",
    "RecordStore",
    "SearchIndex",
    "build_backends",
]
