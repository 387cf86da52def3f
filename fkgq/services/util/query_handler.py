from typing import Any, Awaitable, Callable, Dict, List, Optional
import time
from uuid import uuid4

from fkgq.models.query_record import QueryRecord
from fkgq.services.config import config
from fkgq.services.util.logutil import LoggingUtil
from fkgq.services.util.query_edge import QueryNode, QueryEdge
from fkgq.services.util.edge_manager import EdgeManager, JoinStrategy
from fkgq.services.util.cache_handler import CacheHandler, CacheConfig
from fkgq.services.util.graph import KnowledgeGraph

logger = LoggingUtil.init_logging(
    __name__,
    config.get('logging_level'),
    config.get('logging_format')
)

# The external edge executor resolves a query edge against upstream
# knowledge sources: it stores the resolved records on the edge
# and marks the edge executed. The curies of the query nodes are
# then narrowed to the end points of the records by the handler.
EDGE_EXECUTOR = Callable[[QueryEdge], Awaitable[Any]]


class QueryHandler:
    # TRAPI query graph keys
    NODES_LIST_KEY = 'nodes'
    EDGES_LIST_KEY = 'edges'
    NODE_TYPE_KEY = 'categories'
    QG_ID_KEY = 'ids'
    CONSTRAINTS_KEY = 'constraints'
    EDGE_TYPE_KEY = 'predicates'
    SOURCE_KEY = 'subject'
    TARGET_KEY = 'object'

    def __init__(
            self,
            qedges: List[QueryEdge],
            cache_handler: Optional[CacheHandler] = None,
            query_id: Optional[str] = None,
            join_strategy: JoinStrategy = JoinStrategy.CURIE_FILTER
    ):
        """
        Constructor for a QueryHandler, running one query execution.
        :param qedges: List[QueryEdge], edges of the query graph
        :param cache_handler: CacheHandler, defaults to one configured from the service configuration
        :param query_id: str, identifier of the query execution being logged
        :param join_strategy: JoinStrategy, algorithm joining the results of the edges
        """
        self.query_id = query_id or str(uuid4())
        self.qedges = qedges
        self.edge_manager = EdgeManager(qedges, query_id=self.query_id, join_strategy=join_strategy)
        self.cache_handler = cache_handler or CacheHandler(query_id=self.query_id)
        self.graph = KnowledgeGraph(query_id=self.query_id)

    @classmethod
    def from_query_graph(
            cls,
            query_graph: Dict,
            caching: Optional[bool] = None,
            cache_store: Optional[Any] = None,
            query_id: Optional[str] = None
    ) -> "QueryHandler":
        """
        Builds the query edges of a TRAPI query graph, for example:
        {
          "nodes": {
            "n0": {"ids": ["NCBIGene:1017"], "categories": ["biolink:Gene"]},
            "n1": {"categories": ["biolink:Disease"]}
          },
          "edges": {
            "e01": {"subject": "n0", "object": "n1", "predicates": ["biolink:related_to"]}
          }
        }
        :param query_graph: Dict, TRAPI query graph
        :param caching: Optional[bool], caching request of the query
        :param cache_store: cache store client, defaults to the Redis store
        :param query_id: str, identifier of the query execution being logged
        :return: QueryHandler
        """
        query_id = query_id or str(uuid4())
        qnodes: Dict[str, QueryNode] = {
            qnode_id: QueryNode(
                qnode_id,
                categories=details.get(cls.NODE_TYPE_KEY),
                curies=details.get(cls.QG_ID_KEY),
                constraints=details.get(cls.CONSTRAINTS_KEY)
            )
            for qnode_id, details in query_graph.get(cls.NODES_LIST_KEY, {}).items()
        }
        qedges: List[QueryEdge] = list()
        for qedge_id, details in query_graph.get(cls.EDGES_LIST_KEY, {}).items():
            qedge = QueryEdge(
                qedge_id,
                subject=qnodes[details[cls.SOURCE_KEY]],
                object=qnodes[details[cls.TARGET_KEY]],
                predicates=details.get(cls.EDGE_TYPE_KEY)
            )
            qedge.update_entity_counts()
            qedges.append(qedge)
        cache_handler = CacheHandler(
            cache_config=CacheConfig.from_config(caching),
            cache_store=cache_store,
            query_id=query_id
        )
        return cls(qedges, cache_handler=cache_handler, query_id=query_id)

    @property
    def logs(self) -> List[Dict[str, Any]]:
        return logger.get_logs(self.query_id)

    def export_logs(self) -> List[Dict[str, Any]]:
        """
        Returns the query log of this execution, shared by all of its
        components, and releases it. Call once the response is built.
        """
        logs: List[Dict[str, Any]] = logger.get_logs(self.query_id)
        logger.clear_logs(self.query_id)
        return logs

    async def answer(self, executor: EDGE_EXECUTOR) -> List[QueryRecord]:
        """
        Resolves all query edges, one at a time, from the cache if possible
        or else with the edge executor, then joins and caches their results
        and assembles the knowledge graph of the accepted records.
        :param executor: EDGE_EXECUTOR, resolves one query edge
        :return: List[QueryRecord], the accepted records of the query
        """
        logger.info(f"Query '{self.query_id}' answering {len(self.qedges)} query edges", query_id=self.query_id)
        start = time.time()
        fresh_records: List[QueryRecord] = list()

        while self.edge_manager.get_edges_not_executed():
            qedge: QueryEdge = self.edge_manager.get_next()
            cached_results, pending_edges = await self.cache_handler.categorize_edges([qedge])
            if pending_edges:
                await executor(qedge)
                if not qedge.executed:
                    raise RuntimeError(f"Edge executor did not complete query edge '{qedge.get_id()}'")
                qedge.store_results(qedge.results)
                fresh_records.extend(qedge.results)
            else:
                qedge.store_results(cached_results)
                qedge.executed = True
            qedge.update_nodes_curies()
            self.edge_manager.refresh_edges()

        results: List[QueryRecord] = self.edge_manager.gather_results()
        await self.cache_handler.cache_edges(fresh_records)
        self.graph.update(results)
        self.graph.notify()

        end = time.time()
        logger.info(
            f"Query took {end - start} seconds, accepting {len(results)} records",
            query_id=self.query_id
        )
        return results
