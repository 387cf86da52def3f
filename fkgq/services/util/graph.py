"""
Knowledge graph assembled from the accepted query records
of one query execution, then pruned to the final results.
"""
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
from uuid import uuid4

from fkgq.models.query_record import QueryRecord, RecordNode, ProvenanceEntry
from fkgq.services.config import config
from fkgq.services.util import (
    PRIMARY_KNOWLEDGE_SOURCE,
    RESULT_LIST,
    LOG_ENTRY,
    with_biolink_prefix
)
from fkgq.services.util.logutil import LoggingUtil
from fkgq.services.util.trapi import (
    get_categories,
    construct_sources_tree,
    format_attributes,
    format_qualifiers
)

logger = LoggingUtil.init_logging(
    __name__,
    config.get('logging_level'),
    config.get('logging_format'),
)

# record 'mapped_response' keys which are not edge attributes
RESERVED_ATTRIBUTES = ['name', 'label', 'id', 'api', 'provided_by', 'publications', 'trapi_sources']

# prefix of 'mapped_response' keys holding query metadata
QUERY_METADATA_PREFIX = "$"

SUBSCRIBER = Callable[[Dict[str, Any]], Any]


def _add_value(values: List[Any], value: Any):
    if value not in values:
        values.append(value)


class KGNode:

    def __init__(self, node_id: str, record_node: RecordNode):
        self.id = node_id
        self.primary_curie: str = record_node.curie
        self.qnode_id: Optional[str] = record_node.qnode_id
        self.category: List[str] = record_node.semantic_types[:1]
        self.names: List[str] = list(record_node.names)
        self.label: Optional[str] = record_node.label
        self.equivalent_curies: List[str] = list(record_node.equivalent_curies)
        self.node_attributes: Dict[str, Any] = dict(record_node.attributes)
        self.source_nodes: Set[str] = set()
        self.target_nodes: Set[str] = set()
        self.source_qnode_ids: Set[str] = set()
        self.target_qnode_ids: Set[str] = set()

    def add_source_node(self, node_id: str):
        self.source_nodes.add(node_id)

    def add_target_node(self, node_id: str):
        self.target_nodes.add(node_id)

    def add_source_qnode_id(self, qnode_id: str):
        self.source_qnode_ids.add(qnode_id)

    def add_target_qnode_id(self, qnode_id: str):
        self.target_qnode_ids.add(qnode_id)

    def to_trapi(self, expand_categories: bool = False) -> Dict[str, Any]:
        categories: List[str] = [with_biolink_prefix(category) for category in self.category]
        if expand_categories and categories:
            categories = get_categories(categories[0])
        attributes = [
            {
                "attribute_type_id": "biolink:xref",
                "value": self.equivalent_curies
            }
        ] if self.equivalent_curies else []
        if self.names:
            attributes.append({"attribute_type_id": "biolink:synonym", "value": self.names})
        attributes.extend(format_attributes({
            name: value if isinstance(value, list) else [value]
            for name, value in self.node_attributes.items()
        }))
        return {
            "categories": categories,
            "name": self.label or (self.names[0] if self.names else self.primary_curie),
            "attributes": attributes
        }


class KGEdge:

    def __init__(self, edge_id: str, predicate: str, subject: str, object: str):
        self.id = edge_id
        self.predicate = predicate
        self.subject = subject
        self.object = object
        self.apis: Set[str] = set()
        self.infores_curies: Set[str] = set()
        self.publications: Set[str] = set()
        self.attributes: Dict[str, List[Any]] = dict()
        self.qualifiers: Dict[str, List[Any]] = dict()
        # source entries indexed by (resource_id, resource_role)
        self.sources: Dict[Tuple[str, str], Dict[str, Any]] = dict()

    def add_api(self, api: Optional[str]):
        if api:
            self.apis.add(api)

    def add_infores_curie(self, infores_curie: Optional[str]):
        if infores_curie:
            self.infores_curies.add(infores_curie)

    def add_publication(self, publications: List[str]):
        self.publications.update(publications or [])

    def add_additional_attribute(self, name: str, value: Any):
        values = self.attributes.setdefault(name, [])
        for item in value if isinstance(value, list) else [value]:
            _add_value(values, item)

    def add_qualifier(self, qualifier_type: str, qualifier: Any):
        values = self.qualifiers.setdefault(qualifier_type, [])
        for item in qualifier if isinstance(qualifier, list) else [qualifier]:
            _add_value(values, item)

    def add_source(self, provenance_chain: List[ProvenanceEntry]):
        for item in provenance_chain or []:
            key = (item.resource_id, item.resource_role)
            source = self.sources.setdefault(key, {
                "resource_id": item.resource_id,
                "resource_role": item.resource_role,
                "upstream_resource_ids": []
            })
            for upstream_id in item.upstream_resource_ids or []:
                _add_value(source["upstream_resource_ids"], upstream_id)

    def primary_knowledge_sources(self) -> List[str]:
        # roles may be given as Biolink CURIEs
        return sorted(
            resource_id for resource_id, resource_role in self.sources
            if resource_id and resource_role and
            resource_role.removeprefix("biolink:") == PRIMARY_KNOWLEDGE_SOURCE
        )

    def has_primary_knowledge_source(self) -> bool:
        return bool(self.primary_knowledge_sources())

    def to_trapi(self) -> Dict[str, Any]:
        primary_sources: List[str] = self.primary_knowledge_sources()
        primary_knowledge_source: Optional[str] = primary_sources[0] if primary_sources else None
        attributes: List[Dict] = format_attributes(self.attributes, attribute_source=primary_knowledge_source)
        if self.publications:
            attributes.append({
                "attribute_type_id": "biolink:publications",
                "value": sorted(self.publications),
                "value_type_id": "linkml:Uriorcurie",
                "attribute_source": primary_knowledge_source
            })
        edge = {
            "predicate": with_biolink_prefix(self.predicate),
            "subject": self.subject,
            "object": self.object,
            "sources": construct_sources_tree([
                {
                    "resource_id": source["resource_id"],
                    "resource_role": source["resource_role"]
                }
                for source in self.sources.values()
            ]),
            "attributes": attributes
        }
        if self.qualifiers:
            edge["qualifiers"] = format_qualifiers(self.qualifiers)
        return edge


class KnowledgeGraph:

    def __init__(self, query_id: Optional[str] = None):
        self.nodes: Dict[str, KGNode] = dict()
        self.edges: Dict[str, KGEdge] = dict()
        self.subscribers: List[SUBSCRIBER] = list()
        self.query_id = query_id or str(uuid4())

    @property
    def logs(self) -> List[LOG_ENTRY]:
        return logger.get_logs(self.query_id)

    @staticmethod
    def node_key(curie: str, qnode_id: Optional[str]) -> str:
        return f"{curie}-{qnode_id}"

    def _add_node(self, node_id: str, record_node: RecordNode):
        if node_id not in self.nodes:
            self.nodes[node_id] = KGNode(node_id, record_node)

    def update(self, query_records: List[QueryRecord]):
        """
        Merges query records into the graph: one node per (curie, query node)
        pair and one edge per record hash, accumulating their contributions.
        :param query_records: List[QueryRecord], accepted records of the query
        """
        logger.debug("Updating knowledge graph now.")
        for record in query_records:
            if not record:
                continue
            input_node_id: str = self.node_key(record.subject.curie, record.subject.qnode_id)
            output_node_id: str = self.node_key(record.object.curie, record.object.qnode_id)
            record_hash: str = record.record_hash

            self._add_node(output_node_id, record.object)
            self._add_node(input_node_id, record.subject)

            self.nodes[output_node_id].add_source_node(input_node_id)
            self.nodes[output_node_id].add_source_qnode_id(record.subject.qnode_id)
            self.nodes[input_node_id].add_target_node(output_node_id)
            self.nodes[input_node_id].add_target_qnode_id(record.object.qnode_id)

            if record_hash not in self.edges:
                self.edges[record_hash] = KGEdge(
                    record_hash,
                    predicate=record.predicate,
                    subject=record.subject.curie,
                    object=record.object.curie
                )
            edge = self.edges[record_hash]
            edge.add_api(record.api)
            edge.add_infores_curie(record.api_infores_curie)
            edge.add_publication(record.publications)
            for name, value in record.mapped_response.items():
                if name in RESERVED_ATTRIBUTES or name.startswith(QUERY_METADATA_PREFIX):
                    continue
                edge.add_additional_attribute(name, value)
            edge.add_source(record.provenance_chain)
            for qualifier_type, qualifier in record.qualifiers.items():
                edge.add_qualifier(qualifier_type, qualifier)

    def prune(self, results: RESULT_LIST):
        """
        Removes nodes and edges not bound to any of the final results.
        :param results: RESULT_LIST, TRAPI results with 'node_bindings' and 'analyses'
        """
        logger.debug("Pruning knowledge graph nodes/edges...")
        results_bound_nodes: Set[str] = set()
        results_bound_edges: Set[str] = set()

        for result in results:
            for qnode_id, bindings in result.get("node_bindings", {}).items():
                for binding in bindings:
                    results_bound_nodes.add(self.node_key(binding["id"], qnode_id))
            analyses: List[Dict] = result.get("analyses") or [{}]
            for bindings in analyses[0].get("edge_bindings", {}).values():
                for binding in bindings:
                    results_bound_edges.add(binding["id"])

        nodes_to_delete = [node_id for node_id in self.nodes if node_id not in results_bound_nodes]
        for node_id in nodes_to_delete:
            del self.nodes[node_id]
        edges_to_delete = [edge_id for edge_id in self.edges if edge_id not in results_bound_edges]
        for edge_id in edges_to_delete:
            del self.edges[edge_id]
        logger.debug(
            f"Pruned {len(nodes_to_delete)} nodes and {len(edges_to_delete)} edges from knowledge graph.",
            query_id=self.query_id
        )

    def check_primary_knowledge_sources(self) -> List[LOG_ENTRY]:
        """
        Warns about every edge lacking a primary knowledge source.
        :return: List[LOG_ENTRY], the warnings logged
        """
        warnings: List[LOG_ENTRY] = list()
        for edge_id, edge in self.edges.items():
            if not edge.has_primary_knowledge_source():
                log_msg = f"Edge {edge_id} (APIs: {', '.join(sorted(edge.apis))}) " + \
                          "is missing a primary knowledge source"
                logger.warning(log_msg, query_id=self.query_id)
                warnings.append(logger.get_logs(self.query_id)[-1])
        return warnings

    def to_trapi(self, expand_categories: Optional[bool] = None) -> Dict[str, Dict[str, Any]]:
        """
        TRAPI 'knowledge_graph' of the assembled nodes and edges, nodes
        of all query node roles of one curie being merged into one.
        :param expand_categories: Optional[bool], add Biolink ancestors to node categories
        :return: Dict, TRAPI knowledge graph with 'nodes' and 'edges'
        """
        if expand_categories is None:
            expand_categories = config.get_boolean("EXPAND_CATEGORIES", False)
        nodes: Dict[str, Dict[str, Any]] = dict()
        for node in self.nodes.values():
            if node.primary_curie not in nodes:
                nodes[node.primary_curie] = node.to_trapi(expand_categories=expand_categories)
        edges: Dict[str, Dict[str, Any]] = {
            edge_id: edge.to_trapi() for edge_id, edge in self.edges.items()
        }
        return {"nodes": nodes, "edges": edges}

    def subscribe(self, subscriber: SUBSCRIBER):
        self.subscribers.append(subscriber)

    def unsubscribe(self, subscriber: SUBSCRIBER):
        self.subscribers = [registered for registered in self.subscribers if registered is not subscriber]

    def notify(self):
        for subscriber in self.subscribers:
            subscriber({
                "nodes": self.nodes,
                "edges": self.edges
            })
