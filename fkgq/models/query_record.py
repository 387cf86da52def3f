"""
Pydantic models of resolved query records.

A QueryRecord is one (subject, predicate, object) fact returned by an
upstream knowledge source for a single query edge. Records carry a fixed
core of fields plus open ended attribute bags; attribute bag keys using the
INTERNAL_PREFIX are internal to one query execution and are never cached.
"""
from typing import Any, Dict, List, Optional, Set, Union
import hashlib
import json

from pydantic import BaseModel, Field, computed_field

# attribute bag keys reserved for use within a single query execution
INTERNAL_PREFIX = "__"

# fields linking a record back to the query edge which resolved it
BACK_REFERENCE_FIELDS = {"qedge_hash", "qedge_id"}


class SemanticTypeEntry(BaseModel):
    """One semantic typing of a record node, with its identifiers across prefixes."""
    semantic_type: str
    db_ids: Dict[str, Union[str, List[str]]] = Field(default_factory=dict)

    def curies(self) -> List[str]:
        curies: List[str] = list()
        for prefix, local_ids in self.db_ids.items():
            if isinstance(local_ids, str):
                local_ids = [local_ids]
            for local_id in local_ids:
                curies.append(f"{prefix}:{local_id}")
        return curies


class RecordNode(BaseModel):
    curie: str
    qnode_id: Optional[str] = None
    semantic_type_entries: List[SemanticTypeEntry] = Field(default_factory=list)
    equivalent_curies: List[str] = Field(default_factory=list)
    names: List[str] = Field(default_factory=list)
    label: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @computed_field
    @property
    def semantic_types(self) -> List[str]:
        return [entry.semantic_type for entry in self.semantic_type_entries]

    def identifiers(self) -> Set[str]:
        """
        Canonical 'prefix:localID' identifiers of the node, over
        all of its semantic type entries, plus its primary curie.
        """
        identifiers: Set[str] = {self.curie}
        for entry in self.semantic_type_entries:
            identifiers.update(entry.curies())
        return identifiers


class ProvenanceEntry(BaseModel):
    resource_id: Optional[str] = None
    resource_role: Optional[str] = None
    upstream_resource_ids: Optional[List[str]] = None


class QueryRecord(BaseModel):
    subject: RecordNode
    object: RecordNode
    predicate: str
    api: Optional[str] = None
    api_infores_curie: Optional[str] = None
    publications: List[str] = Field(default_factory=list)
    provenance_chain: List[ProvenanceEntry] = Field(default_factory=list)
    qualifiers: Dict[str, Any] = Field(default_factory=dict)
    mapped_response: Dict[str, Any] = Field(default_factory=dict)

    # back reference to the originating query edge
    qedge_hash: Optional[str] = None
    qedge_id: Optional[str] = None

    @computed_field
    @property
    def record_hash(self) -> str:
        """
        Content hash identifying the knowledge graph edge asserted by this record.
        """
        to_be_hashed = "-".join([
            self.subject.curie,
            self.predicate,
            self.object.curie,
            self.api or "",
            self.api_infores_curie or "",
            json.dumps(self.qualifiers, sort_keys=True, default=str)
        ])
        return hashlib.md5(to_be_hashed.encode("utf-8")).hexdigest()

    def sanitized(self) -> Dict[str, Any]:
        """
        JSON-ready copy of the record, without its back reference to a query edge
        and without internal attribute bag entries, but with all computed fields.
        """
        return _strip_internal(self.model_dump(mode="json", exclude=BACK_REFERENCE_FIELDS))


def _strip_internal(data: Any) -> Any:
    if isinstance(data, dict):
        return {
            key: _strip_internal(value) for key, value in data.items()
            if not (isinstance(key, str) and key.startswith(INTERNAL_PREFIX))
        }
    if isinstance(data, list):
        return [_strip_internal(value) for value in data]
    return data
