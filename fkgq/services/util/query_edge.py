"""
Query graph nodes and edges of a single query execution.
"""
from typing import Any, Dict, List, Optional, Set
import hashlib
import json

from fkgq.models.query_record import QueryRecord


class QueryNode:
    """
    A query graph node, shared by all query edges which reference it.
    """

    def __init__(
            self,
            qnode_id: str,
            categories: Optional[List[str]] = None,
            curies: Optional[List[str]] = None,
            constraints: Optional[List[Dict[str, Any]]] = None
    ):
        self.qnode_id = qnode_id
        self.categories: List[str] = list(categories or [])
        self.curies: List[str] = list(curies or [])
        self.constraints: List[Dict[str, Any]] = list(constraints or [])
        self.held_curies: List[str] = list()

    def get_entity_count(self) -> int:
        return len(self.curies)

    def hold_curies(self):
        """
        Temporarily withhold the curies of this node from the next edge execution.
        """
        if self.curies:
            self.held_curies = self.curies
            self.curies = list()

    def update_curies(self, resolved: Dict[str, Set[str]]):
        """
        Narrows the curies of this node to those resolved by an edge execution.
        :param resolved: Dict[str, Set[str]], all identifiers of each resolved primary curie
        """
        current: List[str] = self.curies or self.held_curies
        if current:
            identifiers: Set[str] = set().union(*resolved.values())
            self.curies = [curie for curie in current if curie in identifiers]
        else:
            self.curies = list(resolved.keys())
        self.held_curies = list()

    def __repr__(self):
        return f"QueryNode({self.qnode_id})"


class QueryEdge:
    """
    One edge of the query graph, with the records resolved for it.
    Execution state ('executed', entity counts, node curies) is
    updated by the external edge executor.
    """

    def __init__(
            self,
            qedge_id: str,
            subject: QueryNode,
            object: QueryNode,
            predicates: Optional[List[str]] = None,
            reverse: bool = False
    ):
        self.qedge_id = qedge_id
        self.subject = subject
        self.object = object
        self.predicates: List[str] = list(predicates or [])
        self.reverse = reverse
        self.executed = False
        self.subject_entity_count: int = 0
        self.object_entity_count: int = 0
        self.requires_entity_count_choice = False
        self.results: List[QueryRecord] = list()

    def get_id(self) -> str:
        return self.qedge_id

    @property
    def subject_curies(self) -> List[str]:
        return self.subject.curies

    @property
    def object_curies(self) -> List[str]:
        return self.object.curies

    @property
    def input_qnode(self) -> QueryNode:
        return self.object if self.reverse else self.subject

    @property
    def output_qnode(self) -> QueryNode:
        return self.subject if self.reverse else self.object

    def get_hashed_edge_representation(self) -> str:
        """
        Canonical content hash of the shape of this edge: predicates, node categories
        and node constraints, in the direction of execution. Curie values are excluded,
        so that the hash identifies cached results across queries.
        """
        shape = {
            "input": {
                "categories": sorted(self.input_qnode.categories),
                "constraints": self.input_qnode.constraints
            },
            "predicates": sorted(self.predicates),
            "output": {
                "categories": sorted(self.output_qnode.categories),
                "constraints": self.output_qnode.constraints
            }
        }
        to_be_hashed = json.dumps(shape, sort_keys=True, default=str)
        return hashlib.md5(to_be_hashed.encode("utf-8")).hexdigest()

    def bind_record(self, record: QueryRecord) -> QueryRecord:
        """
        Binds a resolved record to this edge: sets its back reference
        and the query node roles of its input and output nodes.
        """
        record.qedge_hash = self.get_hashed_edge_representation()
        record.qedge_id = self.qedge_id
        record.subject.qnode_id = self.input_qnode.qnode_id
        record.object.qnode_id = self.output_qnode.qnode_id
        return record

    def store_results(self, records: List[QueryRecord]):
        self.results = [self.bind_record(record) for record in records]

    def update_nodes_curies(self):
        """
        Narrows the curies of the query nodes of this edge to the
        end points of its resolved records, releasing any held curies.
        """
        input_curies: Dict[str, Set[str]] = dict()
        output_curies: Dict[str, Set[str]] = dict()
        for record in self.results:
            input_curies.setdefault(record.subject.curie, set()).update(record.subject.identifiers())
            output_curies.setdefault(record.object.curie, set()).update(record.object.identifiers())
        self.input_qnode.update_curies(input_curies)
        self.output_qnode.update_curies(output_curies)

    def update_entity_counts(self):
        self.subject_entity_count = self.subject.get_entity_count()
        self.object_entity_count = self.object.get_entity_count()
        self.requires_entity_count_choice = \
            bool(self.subject_entity_count and self.object_entity_count)

    def choose_lower_entity_value(self):
        """
        With entity counts known on both sides, execute the edge from the side with
        the lower count, by holding the curies of the other side until it completes.
        """
        if self.object_entity_count and self.subject_entity_count:
            if self.object_entity_count >= self.subject_entity_count:
                # (#) ---> ()
                self.reverse = False
                self.object.hold_curies()
            else:
                # () <--- (#)
                self.reverse = True
                self.subject.hold_curies()

    def __repr__(self):
        return f"QueryEdge({self.qedge_id}: {self.subject.qnode_id} -> {self.object.qnode_id})"
