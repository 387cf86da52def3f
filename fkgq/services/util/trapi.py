"""
TRAPI JSON formatting utilities.
This module knows about the TRAPI syntax of knowledge graph
nodes and edges, for export of the assembled knowledge graph.
"""
from typing import Optional, Any, List, Dict, Set
from functools import lru_cache
from bmt import Toolkit

from fkgq.services.config import config
from fkgq.services.util import (
    DEFAULT_PROVENANCE,
    PRIMARY_KNOWLEDGE_SOURCE,
    AGGREGATOR_KNOWLEDGE_SOURCE,
    SUPPORTING_DATA_SOURCE,
    with_biolink_prefix
)
from fkgq.services.util.logutil import LoggingUtil

logger = LoggingUtil.init_logging(
    __name__,
    config.get('logging_level'),
    config.get('logging_format'),
)

# Biolink Model slots of edge attributes with a known TRAPI 'attribute_type_id'
ATTRIBUTE_TYPES: Dict[str, str] = {
    "publications": "biolink:publications",
    "evidence_count": "biolink:evidence_count",
    "has_evidence": "biolink:has_evidence",
    "knowledge_level": "biolink:knowledge_level",
    "agent_type": "biolink:agent_type",
    "p_value": "biolink:p_value",
    "score": "biolink:score"
}

_toolkit: Optional[Toolkit] = None


def get_toolkit() -> Toolkit:
    global _toolkit
    if not _toolkit:
        _toolkit = Toolkit()
    return _toolkit


@lru_cache()
def get_categories(category: str) -> List[str]:
    """
    Returns the full parent list of Biolink node categories for a most specific category.
    :param category: str, most specific category whose full categories list is to be retrieved
    :return: List[str], of the most specific category plus Biolink categories ancestral related to it
    """
    categories: List[str] = get_toolkit().get_ancestors(name=category, formatted=True, mixin=False)
    return categories or [category]


def construct_sources_tree(sources: List[Dict], provenance: Optional[str] = None) -> List[Dict]:
    """
    Method to fill out the full annotation for edge "sources"
    entries including "upstream_resource_ids" tree.
    :param sources: List[Dict], edge 'sources' property entries
    :param provenance: str, infores of this system, added as top level aggregator
    :return: enhanced "sources" including top-level system source entry.
    """
    provenance = provenance or config.get("PROVENANCE_TAG", DEFAULT_PROVENANCE)
    if not sources:
        # empty sources.. pretty strange, but then just send back
        # an instance of the top-level system source entry
        return [
            {
                "resource_id": provenance,
                "resource_role": AGGREGATOR_KNOWLEDGE_SOURCE,
                "source_record_urls": None,
                "upstream_resource_ids": None
            }
        ]

    # the system adds itself as aggregator, with any other aggregators as upstream
    # resources; if no aggregators are found, any primary knowledge source is upstream
    formatted_sources = []
    resource_ids_with_resource_role: Dict[str, Set[str]] = dict()
    source_record_urls_to_resource_id = dict()

    for source in sources:

        if not (source.get('resource_id') and source.get('resource_role')):
            # silently pruning TRAPI non-compliant source records
            logger.warning(f"Invalid edge 'source' entry: '{str(source)}'? Skipped!")
            continue

        # 'resource_role' values are ResourceRoleEnum without a biolink: CURIE prefix
        resource_role: str = source['resource_role'].removeprefix("biolink:")

        resource_ids_with_resource_role.setdefault(resource_role, set())

        if isinstance(source["resource_id"], str):
            resource_ids = [source["resource_id"]]
        else:
            resource_ids = source["resource_id"]
        for resource_id in resource_ids:
            resource_ids_with_resource_role[resource_role].add(resource_id)
            source_record_urls_to_resource_id[resource_id] = source.get('source_record_urls')

    for resource_role in resource_ids_with_resource_role:

        upstreams: Optional[Set[str]] = None

        if resource_role == AGGREGATOR_KNOWLEDGE_SOURCE:
            upstreams = resource_ids_with_resource_role.get(PRIMARY_KNOWLEDGE_SOURCE, None)
        elif resource_role == PRIMARY_KNOWLEDGE_SOURCE:
            upstreams = resource_ids_with_resource_role.get(SUPPORTING_DATA_SOURCE, None)

        formatted_sources += [
            {
                "resource_id": resource_id,
                "resource_role": resource_role,
                "source_record_urls": source_record_urls_to_resource_id[resource_id],
                "upstream_resource_ids": sorted(upstreams) if upstreams else None
            }
            for resource_id in sorted(resource_ids_with_resource_role[resource_role])
        ]

    upstreams_for_top_level_entry = \
        resource_ids_with_resource_role.get(AGGREGATOR_KNOWLEDGE_SOURCE) or \
        resource_ids_with_resource_role.get(PRIMARY_KNOWLEDGE_SOURCE) or \
        resource_ids_with_resource_role.get(SUPPORTING_DATA_SOURCE)

    formatted_sources.append({
        "resource_id": provenance,
        "resource_role": AGGREGATOR_KNOWLEDGE_SOURCE,
        "source_record_urls": None,
        "upstream_resource_ids": sorted(upstreams_for_top_level_entry) if upstreams_for_top_level_entry else None
    })

    return formatted_sources


def format_attributes(attributes: Dict[str, List[Any]], attribute_source: Optional[str] = None) -> List[Dict]:
    """
    Formats a multimap of attribute values as a list of TRAPI attributes.
    :param attributes: Dict[str, List[Any]], attribute values indexed by name
    :param attribute_source: Optional[str], infores of the source of the attributes
    :return: List[Dict], TRAPI 'attributes'
    """
    trapi_attributes: List[Dict] = list()
    for name, values in attributes.items():
        trapi_attributes.append({
            "attribute_type_id": ATTRIBUTE_TYPES.get(name, "biolink:Attribute")
            if not name.startswith("biolink:") else name,
            "original_attribute_name": name,
            "value": values[0] if len(values) == 1 else values,
            "attribute_source": attribute_source
        })
    return trapi_attributes


def format_qualifiers(qualifiers: Dict[str, List[Any]]) -> List[Dict]:
    return [
        {
            "qualifier_type_id": with_biolink_prefix(qualifier_type),
            "qualifier_value": value
        }
        for qualifier_type, values in qualifiers.items()
        for value in values
    ]
