"""
Scheduling of query edge execution and joining of the
records resolved for each edge into one consistent result set.
"""
from typing import Any, Dict, List, Mapping, Optional, Set, Union
from enum import Enum
from uuid import uuid4

from fkgq.models.query_record import QueryRecord
from fkgq.services.config import config
from fkgq.services.util.logutil import LoggingUtil
from fkgq.services.util.query_edge import QueryEdge

logger = LoggingUtil.init_logging(
    __name__,
    config.get('logging_level'),
    config.get('logging_format'),
)


class JoinStrategy(Enum):
    # keep records whose end points are in the curie sets bound to their query nodes
    CURIE_FILTER = "curie_filter"
    # legacy: keep records sharing identifiers with records of the adjacent edge
    NEIGHBOR_INTERSECTION = "neighbor_intersection"


class NoPendingEdgeError(RuntimeError):
    pass


class EdgeManager:

    def __init__(
            self,
            edges: Union[List[QueryEdge], Mapping[Any, List[QueryEdge]]],
            query_id: Optional[str] = None,
            join_strategy: JoinStrategy = JoinStrategy.CURIE_FILTER
    ):
        """
        Constructor for an EdgeManager.
        :param edges: query edges of one query execution, as a list or as lists indexed by any key
        :param query_id: str, identifier of the query execution being logged
        :param join_strategy: JoinStrategy, the algorithm used by gather_results()
        """
        if isinstance(edges, Mapping):
            self.edges: List[QueryEdge] = [edge for edge_list in edges.values() for edge in edge_list]
        else:
            self.edges: List[QueryEdge] = list(edges)
        self.query_id = query_id or str(uuid4())
        self.join_strategy = join_strategy
        self.results: List[QueryRecord] = list()
        logger.debug(f"Edge manager will manage {len(self.edges)} edges.", query_id=self.query_id)

    @property
    def logs(self) -> List[Dict[str, Any]]:
        return logger.get_logs(self.query_id)

    def get_next(self) -> QueryEdge:
        """
        Returns the pending edge with the lowest entity count on either its
        subject or object, or else the first pending edge without any count.
        :raises: NoPendingEdgeError if all edges were already executed.
        """
        available_edges: List[QueryEdge] = [edge for edge in self.edges if not edge.executed]
        if not available_edges:
            logger.error("Edge manager cannot get next edge, no available edges found.", query_id=self.query_id)
            raise NoPendingEdgeError("get_next() called after all query edges were executed")

        next_edge: Optional[QueryEdge] = None
        lowest_entity_count: Optional[int] = None
        for edge in available_edges:
            for entity_count in (edge.object_entity_count, edge.subject_entity_count):
                if entity_count and entity_count > 0:
                    if lowest_entity_count is None or entity_count <= lowest_entity_count:
                        lowest_entity_count = entity_count
                        next_edge = edge

        if next_edge is None:
            # no edge with a count: pick the first empty edge available
            next_edge = next(
                edge for edge in available_edges
                if not edge.object_entity_count and not edge.subject_entity_count
            )
            logger.debug(f"Sending next edge '{next_edge.get_id()}' with NO entity count.")
        else:
            logger.debug(
                f"Sending next edge '{next_edge.get_id()}' WITH entity count..." +
                f"({next_edge.subject_entity_count or next_edge.object_entity_count})"
            )
        return self.pre_send_off_check(next_edge)

    def pre_send_off_check(self, next_edge: QueryEdge) -> QueryEdge:
        # both subject and object counts are known
        if next_edge.requires_entity_count_choice:
            next_edge.choose_lower_entity_value()
            logger.debug("Next edge will pick lower entity value to use for query.", query_id=self.query_id)
        logger.debug(
            f"Edge manager is sending next edge '{next_edge.get_id()}' for execution.",
            query_id=self.query_id
        )
        self.log_entity_counts()
        return next_edge

    def get_edges_not_executed(self) -> int:
        not_executed = len([edge for edge in self.edges if not edge.executed])
        if not_executed:
            logger.debug(f"Edges not yet executed = {not_executed}")
        return not_executed

    def log_entity_counts(self):
        for edge in self.edges:
            logger.debug(
                f"'{edge.get_id()}' : ({edge.subject_entity_count or 0}) " +
                f"{'<--' if edge.reverse else '-->'} ({edge.object_entity_count or 0})"
            )

    def refresh_edges(self):
        logger.debug("Refreshing edges...")
        for edge in self.edges:
            edge.update_entity_counts()

    def _filter_edge_results(self, edge: QueryEdge) -> List[QueryRecord]:
        """
        Keeps the records of an edge whose input and output nodes are identified
        by curies bound to the corresponding query nodes, across the whole query.
        """
        subject_curies: Set[str] = set(edge.subject_curies)
        object_curies: Set[str] = set(edge.object_curies)
        logger.debug(
            f"'{edge.get_id()}' R({edge.reverse}) ({len(edge.results)}) results, " +
            f"({len(subject_curies)}) subject curies, ({len(object_curies)}) object curies"
        )

        # record input and output nodes follow the direction of execution
        input_filter = object_curies if edge.reverse else subject_curies
        output_filter = subject_curies if edge.reverse else object_curies

        kept: List[QueryRecord] = [
            record for record in edge.results
            if record.subject.identifiers() & input_filter and
            record.object.identifiers() & output_filter
        ]
        logger.debug(f"'{edge.get_id()}' dropped ({len(edge.results) - len(kept)}) results.")
        return kept

    @staticmethod
    def _shares_identifier(record: QueryRecord, other: QueryRecord) -> bool:
        for entry in record.subject.semantic_type_entries + record.object.semantic_type_entries:
            entry_curies = set(entry.curies())
            for other_entry in other.subject.semantic_type_entries + other.object.semantic_type_entries:
                if entry.semantic_type == other_entry.semantic_type and \
                        entry_curies.intersection(other_entry.curies()):
                    return True
        return False

    def _reduce_edge_results_with_neighbor_edge(
            self,
            edge: QueryEdge,
            neighbor: QueryEdge
    ) -> List[QueryRecord]:
        logger.debug(
            f"Edge manager will try to intersect ({len(edge.results)}) & ({len(neighbor.results)}) results",
            query_id=self.query_id
        )
        kept: List[QueryRecord] = [
            record for record in edge.results
            if any(self._shares_identifier(record, other) for other in neighbor.results)
        ]
        logger.debug(
            f"Edge manager is intersecting results for '{edge.get_id()}' " +
            f"Kept ({len(kept)}) / Dropped ({len(edge.results) - len(kept)})",
            query_id=self.query_id
        )
        if not kept:
            logger.debug(
                f"After intersection of '{edge.get_id()}' and '{neighbor.get_id()}' edge manager got 0 results.",
                query_id=self.query_id
            )
        return kept

    def _intersect_neighbor_edges(self):
        for index, edge in enumerate(self.edges[:-1]):
            neighbor = self.edges[index + 1]
            current = self._reduce_edge_results_with_neighbor_edge(edge, neighbor)
            following = self._reduce_edge_results_with_neighbor_edge(neighbor, edge)
            edge.results = current
            neighbor.results = following

    def gather_results(self) -> List[QueryRecord]:
        """
        Joins the records of all edges, once executed, into the accepted result set.
        :return: List[QueryRecord], the accepted records of the query
        """
        logger.debug("Collecting results...")
        if self.join_strategy == JoinStrategy.NEIGHBOR_INTERSECTION:
            self._intersect_neighbor_edges()
        else:
            for edge in self.edges:
                edge.results = self._filter_edge_results(edge)
                logger.debug(f"'{edge.get_id()}' keeps ({len(edge.results)}) results!")

        self.results = [record for edge in self.edges for record in edge.results]

        logger.debug(f"Edge manager collected ({len(self.results)}) results!", query_id=self.query_id)
        return self.results
