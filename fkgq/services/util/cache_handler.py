"""
Caching of resolved query edge records, keyed on the canonical shape
of the query edge, so that any later query with an edge of the same
shape can reuse them.
"""
from typing import Any, Dict, List, NamedTuple, Optional
import asyncio
import json
from uuid import uuid4

from pydantic import BaseModel, TypeAdapter, ValidationError

from fkgq.models.query_record import QueryRecord
from fkgq.services.config import config
from fkgq.services.util.logutil import LoggingUtil
from fkgq.services.util.query_edge import QueryEdge
from fkgq.services.util.cache_store import RedisCacheStore, redis_store_configured

logger = LoggingUtil.init_logging(
    __name__,
    config.get('logging_level'),
    config.get('logging_format'),
)

DEFAULT_CACHE_TTL = 600

_records_adapter = TypeAdapter(List[QueryRecord])


class CacheConfig(BaseModel):
    # explicit request to turn caching on or off, if set
    caching_override: Optional[bool] = None
    # whether the location of the cache store is known
    store_configured: bool = False
    ttl_seconds: int = DEFAULT_CACHE_TTL

    @property
    def cache_enabled(self) -> bool:
        if self.caching_override is False:
            return False
        return self.store_configured

    @classmethod
    def from_config(cls, caching: Optional[bool] = None) -> "CacheConfig":
        """
        Cache settings of the service configuration.
        :param caching: Optional[bool], per query caching request
        :return: CacheConfig
        """
        # the service wide switch always wins, a query can only opt out
        if not config.get_boolean("RESULT_CACHING", True):
            caching = False
        return cls(
            caching_override=caching,
            store_configured=redis_store_configured(),
            ttl_seconds=int(config.get("REDIS_KEY_EXPIRE_TIME", DEFAULT_CACHE_TTL))
        )


class CategorizedEdges(NamedTuple):
    cached_results: List[QueryRecord]
    pending_edges: List[QueryEdge]


class CacheHandler:

    def __init__(
            self,
            cache_config: Optional[CacheConfig] = None,
            cache_store: Optional[Any] = None,
            query_id: Optional[str] = None
    ):
        """
        Constructor for a CacheHandler.
        :param cache_config: CacheConfig, defaults to the service configuration
        :param cache_store: cache store client with 'get(key)' and 'set(key, value, ttl)'
                            coroutines; defaults to the Redis store, when caching is enabled.
        :param query_id: str, identifier of the query execution being logged
        """
        self.cache_config = cache_config or CacheConfig.from_config()
        self.cache_enabled = self.cache_config.cache_enabled
        self.query_id = query_id or str(uuid4())
        self.cache_store = cache_store
        if self.cache_enabled and self.cache_store is None:
            self.cache_store = RedisCacheStore()
        logger.debug(
            f"Redis cache is {'' if self.cache_enabled else 'not '}enabled.",
            query_id=self.query_id
        )

    @property
    def logs(self) -> List[Dict[str, Any]]:
        return logger.get_logs(self.query_id)

    async def _lookup_edge(self, qedge: QueryEdge) -> Optional[List[QueryRecord]]:
        hashed_edge_id: str = qedge.get_hashed_edge_representation()
        cached_value: Optional[str] = await self.cache_store.get(hashed_edge_id)
        if not cached_value:
            return None
        try:
            records: List[QueryRecord] = _records_adapter.validate_json(cached_value)
        except (ValidationError, ValueError) as error:
            logger.debug(
                f"Cached results of '{qedge.get_id()}' could not be decoded: {str(error)}",
                query_id=self.query_id
            )
            return None
        return records or None

    async def categorize_edges(self, qedges: List[QueryEdge]) -> CategorizedEdges:
        """
        Sorts query edges into those with cached results and those still to be executed.
        :param qedges: List[QueryEdge], edges of the query graph
        :return: CategorizedEdges, of cached records (bound to the querying edges) and pending edges
        """
        if not self.cache_enabled:
            return CategorizedEdges(cached_results=[], pending_edges=list(qedges))

        cached_results: List[QueryRecord] = list()
        pending_edges: List[QueryEdge] = list()

        lookups = await asyncio.gather(*[self._lookup_edge(qedge) for qedge in qedges])
        for qedge, records in zip(qedges, lookups):
            if records:
                logger.debug(f"Found cached results for '{qedge.get_id()}'", query_id=self.query_id)
                cached_results.extend(qedge.bind_record(record) for record in records)
            else:
                pending_edges.append(qedge)

        return CategorizedEdges(cached_results=cached_results, pending_edges=pending_edges)

    def _group_records_by_edge(self, records: List[QueryRecord]) -> Dict[str, List[Dict[str, Any]]]:
        grouped_records: Dict[str, List[Dict[str, Any]]] = dict()
        for record in records:
            if not record.qedge_hash:
                logger.debug(
                    f"Record '{record.record_hash}' is not bound to a query edge? Not cached!",
                    query_id=self.query_id
                )
                continue
            grouped_records.setdefault(record.qedge_hash, []).append(record.sanitized())
        return grouped_records

    async def cache_edges(self, records: List[QueryRecord]):
        """
        Saves resolved records in the cache store, grouped by the shape of their query edge.
        :param records: List[QueryRecord], records freshly resolved by the edge executor
        """
        if not self.cache_enabled:
            return
        logger.debug("Start to cache query results.")
        grouped_records = self._group_records_by_edge(records)
        logger.debug(f"Number of hashed edges: {len(grouped_records)}")
        for hashed_edge_id, edge_records in grouped_records.items():
            await self.cache_store.set(
                hashed_edge_id,
                json.dumps(edge_records),
                self.cache_config.ttl_seconds
            )
        logger.debug("Successfully cached all query results.", query_id=self.query_id)
