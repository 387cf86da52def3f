"""
Shared data types and constants declared here
"""
from typing import Any, List, Dict

DEFAULT_PROVENANCE = "infores:fkgq"

PRIMARY_KNOWLEDGE_SOURCE = "primary_knowledge_source"
AGGREGATOR_KNOWLEDGE_SOURCE = "aggregator_knowledge_source"
SUPPORTING_DATA_SOURCE = "supporting_data_source"

BIOLINK_PREFIX = "biolink:"

# TRAPI Result objects, as consumed by knowledge graph pruning:
# {"node_bindings": {qnode_id: [{"id": curie}]},
#  "analyses": [{"edge_bindings": {qedge_id: [{"id": record_hash}]}}]}
RESULT = Dict[str, Any]
RESULT_LIST = List[RESULT]

# Structured query log entry: {"timestamp", "level", "code", "message"}
LOG_ENTRY = Dict[str, Any]


def with_biolink_prefix(name: str) -> str:
    """
    Returns a Biolink Model term as a CURIE.
    :param name: str, term, with or without a 'biolink:' prefix
    :return: str, 'biolink:' prefixed term
    """
    if not name or name.startswith(BIOLINK_PREFIX):
        return name
    return f"{BIOLINK_PREFIX}{name}"
