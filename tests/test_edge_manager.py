"""
Unit tests of query edge scheduling and result joining
"""
import pytest

from conftest import build_edge, build_record

from fkgq.models.query_record import SemanticTypeEntry
from fkgq.services.util.query_edge import QueryNode, QueryEdge
from fkgq.services.util.edge_manager import EdgeManager, JoinStrategy, NoPendingEdgeError


def _counted_edge(qedge_id: str, subject_count: int = 0, object_count: int = 0) -> QueryEdge:
    edge = build_edge(qedge_id=qedge_id)
    edge.subject_entity_count = subject_count
    edge.object_entity_count = object_count
    return edge


def test_lowest_count_preference():
    a = _counted_edge("A", subject_count=5)
    b = _counted_edge("B", object_count=2)
    c = _counted_edge("C")
    edge_manager = EdgeManager([a, b, c])
    assert edge_manager.get_next() is b
    # handing out an edge does not mark it executed
    assert edge_manager.get_edges_not_executed() == 3


@pytest.mark.parametrize(
    "counts,expected",
    [
        ([(0, 0), (0, 0), (0, 0)], "e0"),      # no counts: first empty edge
        ([(0, 0), (7, 0), (0, 3)], "e2"),
        ([(4, 0), (0, 4), (9, 9)], "e1"),      # ties: the last one considered wins
        ([(5, 0), (2, 0), (3, 0)], "e1"),      # the running minimum is lowered
        ([(0, 0), (0, -1), (0, 0)], "e0"),     # non-positive counts are ignored
    ]
)
def test_get_next_is_deterministic(counts, expected):
    edges = [_counted_edge(f"e{index}", *count) for index, count in enumerate(counts)]
    edge_manager = EdgeManager(edges)
    assert edge_manager.get_next().get_id() == expected
    assert edge_manager.get_next().get_id() == expected


def test_get_next_skips_executed_edges():
    a = _counted_edge("A", subject_count=1)
    b = _counted_edge("B", object_count=2)
    a.executed = True
    edge_manager = EdgeManager({"first": [a], "second": [b]})
    assert len(edge_manager.edges) == 2
    assert edge_manager.get_next() is b


def test_get_next_without_pending_edges():
    a = _counted_edge("A", subject_count=1)
    edge_manager = EdgeManager([a], query_id="test-no-pending-edges")
    a.executed = True
    assert edge_manager.get_edges_not_executed() == 0
    with pytest.raises(NoPendingEdgeError):
        edge_manager.get_next()
    assert edge_manager.logs[-1]["level"] == "ERROR"


def test_get_next_chooses_lower_entity_value():
    edge = build_edge(subject_curies=["A:1", "A:2"], object_curies=["B:1"])
    edge.update_entity_counts()
    edge_manager = EdgeManager([edge], query_id="test-lower-entity-value")
    assert edge_manager.get_next() is edge
    assert edge.reverse
    assert edge.subject.held_curies == ["A:1", "A:2"]
    assert any("pick lower entity value" in entry["message"] for entry in edge_manager.logs)


def test_scheduling_loop():
    edges = [_counted_edge("A", subject_count=3), _counted_edge("B"), _counted_edge("C", object_count=1)]
    edge_manager = EdgeManager(edges)
    order = []
    while edge_manager.get_edges_not_executed():
        edge = edge_manager.get_next()
        assert not edge.executed
        edge.executed = True
        order.append(edge.get_id())
    assert order == ["C", "A", "B"]
    assert edge_manager.get_edges_not_executed() == 0


def test_refresh_edges():
    shared = QueryNode("n1", curies=["B:1"])
    first = QueryEdge("e0", subject=QueryNode("n0", curies=["A:1", "A:2"]), object=shared)
    second = QueryEdge("e1", subject=shared, object=QueryNode("n2"))
    edge_manager = EdgeManager([first, second])
    edge_manager.refresh_edges()
    assert (first.subject_entity_count, first.object_entity_count) == (2, 1)
    assert first.requires_entity_count_choice
    assert (second.subject_entity_count, second.object_entity_count) == (1, 0)


def test_join_filtering():
    edge = build_edge(subject_curies=["A:1"], object_curies=["B:2"])
    kept = build_record("A:1", "B:2")
    dropped = build_record("A:1", "B:3")
    edge.store_results([kept, dropped])
    edge.executed = True
    edge_manager = EdgeManager([edge], query_id="test-join-filtering")
    assert edge_manager.gather_results() == [kept]
    assert edge.results == [kept]
    assert "collected (1) results" in edge_manager.logs[-1]["message"]



def test_gather_results_again():
    edge = build_edge(subject_curies=["A:1"], object_curies=["B:2", "B:3"])
    edge.store_results([build_record("A:1", "B:2"), build_record("A:1", "B:3")])
    edge.executed = True
    edge_manager = EdgeManager([edge])
    first = edge_manager.gather_results()
    assert len(first) == 2
    # collecting once more does not accumulate records
    assert edge_manager.gather_results() == first
    assert len(edge_manager.results) == 2


def test_join_filtering_matches_any_identifier():
    edge = build_edge(subject_curies=["SYMBOL:CDK2"], object_curies=["MONDO:0005148"])
    record = build_record("NCBIGene:1017", "MONDO:0005148")
    record.subject.semantic_type_entries.append(
        SemanticTypeEntry(semantic_type="Gene", db_ids={"SYMBOL": "CDK2"})
    )
    edge.store_results([record])
    assert EdgeManager([edge]).gather_results() == [record]


def test_join_filtering_of_reversed_edge():
    edge = build_edge(subject_curies=["A:1"], object_curies=["B:2"])
    edge.reverse = True
    # executed from the object side: input nodes are objects, output nodes subjects
    kept = build_record("B:2", "A:1")
    dropped = build_record("A:1", "B:2")
    edge.store_results([kept, dropped])
    assert EdgeManager([edge]).gather_results() == [kept]


def test_join_filtering_without_bound_curies():
    edge = build_edge(subject_curies=["A:1"])
    edge.store_results([build_record("A:1", "B:2")])
    assert EdgeManager([edge]).gather_results() == []


def test_join_filtering_across_edges():
    gene = QueryNode("n1", categories=["biolink:Gene"], curies=["G:1"])
    first = QueryEdge("e0", subject=QueryNode("n0", curies=["D:1"]), object=gene)
    second = QueryEdge("e1", subject=gene, object=QueryNode("n2", curies=["C:1", "C:2"]))
    first.store_results([build_record("D:1", "G:1"), build_record("D:1", "G:2")])
    second.store_results([build_record("G:1", "C:1"), build_record("G:2", "C:2")])
    results = EdgeManager([first, second]).gather_results()
    assert [(record.subject.curie, record.object.curie) for record in results] == [
        ("D:1", "G:1"), ("G:1", "C:1")
    ]


def test_neighbor_intersection_strategy():
    first = build_edge(qedge_id="e0")
    second = build_edge(qedge_id="e1")
    shared = build_record("D:1", "G:1", subject_type="Disease", object_type="Gene")
    lonely = build_record("D:2", "G:9", subject_type="Disease", object_type="Gene")
    first.results = [shared, lonely]
    neighbor = build_record("G:1", "C:1", subject_type="Gene", object_type="Chemical")
    # same identifier, but of another semantic type
    mistyped = build_record("C:2", "D:2", subject_type="Chemical", object_type="Chemical")
    second.results = [neighbor, mistyped]

    edge_manager = EdgeManager([first, second], join_strategy=JoinStrategy.NEIGHBOR_INTERSECTION)
    results = edge_manager.gather_results()
    assert first.results == [shared]
    assert second.results == [neighbor]
    assert results == [shared, neighbor]


def test_neighbor_intersection_keeps_records_once():
    first = build_edge(qedge_id="e0")
    second = build_edge(qedge_id="e1")
    record = build_record("D:1", "G:1", subject_type="Disease", object_type="Gene")
    first.results = [record]
    second.results = [
        build_record("G:1", "C:1", subject_type="Gene", object_type="Chemical"),
        build_record("G:1", "C:2", subject_type="Gene", object_type="Chemical")
    ]
    EdgeManager([first, second], join_strategy=JoinStrategy.NEIGHBOR_INTERSECTION).gather_results()
    assert first.results == [record]
    assert len(second.results) == 2
