"""
Shared fixtures of the FKGQ unit tests
"""
from typing import Dict, List, Optional
import pytest

from fkgq.models.query_record import (
    QueryRecord,
    RecordNode,
    SemanticTypeEntry,
    ProvenanceEntry
)
from fkgq.services.util.query_edge import QueryNode, QueryEdge


class InMemoryCacheStore:
    """Cache store client keeping its entries in a dictionary"""

    def __init__(self):
        self.entries: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    async def get(self, key: str) -> Optional[str]:
        return self.entries.get(key)

    async def set(self, key: str, value: str, ttl: int):
        self.entries[key] = value
        self.ttls[key] = ttl


def build_node(curie: str, qnode_id: str = None, semantic_type: str = "Gene", **db_ids) -> RecordNode:
    prefix, local_id = curie.split(":", 1)
    ids = {prefix: local_id}
    ids.update(db_ids)
    return RecordNode(
        curie=curie,
        qnode_id=qnode_id,
        semantic_type_entries=[SemanticTypeEntry(semantic_type=semantic_type, db_ids=ids)],
        names=[f"name of {curie}"],
        label=f"label of {curie}"
    )


def build_record(
        subject: str,
        object: str,
        predicate: str = "related_to",
        api: str = "MyGene.info API",
        subject_qnode: str = "n0",
        object_qnode: str = "n1",
        primary_source: Optional[str] = "infores:mygene",
        publications: Optional[List[str]] = None,
        mapped_response: Optional[Dict] = None,
        subject_type: str = "Gene",
        object_type: str = "Disease"
) -> QueryRecord:
    provenance_chain = []
    if primary_source:
        provenance_chain.append(
            ProvenanceEntry(resource_id=primary_source, resource_role="primary_knowledge_source")
        )
    provenance_chain.append(
        ProvenanceEntry(
            resource_id="infores:biothings",
            resource_role="aggregator_knowledge_source",
            upstream_resource_ids=[primary_source] if primary_source else None
        )
    )
    return QueryRecord(
        subject=build_node(subject, subject_qnode, subject_type),
        object=build_node(object, object_qnode, object_type),
        predicate=predicate,
        api=api,
        api_infores_curie="infores:mygene",
        publications=publications or ["PMID:123"],
        provenance_chain=provenance_chain,
        mapped_response=mapped_response or {}
    )


def build_edge(
        qedge_id: str = "e01",
        subject_curies: Optional[List[str]] = None,
        object_curies: Optional[List[str]] = None,
        subject_categories: Optional[List[str]] = None,
        object_categories: Optional[List[str]] = None,
        subject_qnode: str = "n0",
        object_qnode: str = "n1"
) -> QueryEdge:
    return QueryEdge(
        qedge_id,
        subject=QueryNode(subject_qnode, categories=subject_categories or ["biolink:Gene"], curies=subject_curies),
        object=QueryNode(object_qnode, categories=object_categories or ["biolink:Disease"], curies=object_curies),
        predicates=["biolink:related_to"]
    )


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()
