"""
Link-graph builder tests.
"""
import pytest

from ipdr.analytics.graph import GraphNode, build_graph, record_entities
from ipdr.data.errors import NotFound
from ipdr.data.normalize import canonicalize
from ipdr.data.schemas import EntityKind
from ipdr.data.store import build_dataset


def dataset_of(rows):
    records, report = canonicalize(rows)
    return build_dataset(records, report)


class TestBuildGraph:

    def test_empty_ids(self, session_dataset):
        graph = build_graph(session_dataset, [])
        assert graph.nodes == []
        assert graph.edges == []

    def test_single_record_two_entities(self):
        dataset = dataset_of([{"msisdn": "919800000001", "source_ip": "10.0.0.5"}])
        graph = build_graph(dataset, [0])

        assert [n.key for n in graph.nodes] == ["msisdn:919800000001", "ip:10.0.0.5"]
        assert len(graph.edges) == 1
        assert graph.edges[0].weight == 1
        assert graph.edges[0].records == [0]

    def test_scenario(self, scenario_dataset):
        graph = build_graph(scenario_dataset, [0, 1])

        assert {n.key for n in graph.nodes} == {
            "msisdn:919876500001", "msisdn:919876500002", "ip:10.0.0.5",
        }
        weights = {frozenset((e.source.key, e.target.key)): e.weight for e in graph.edges}
        assert weights == {
            frozenset(("msisdn:919876500001", "ip:10.0.0.5")): 1,
            frozenset(("msisdn:919876500002", "ip:10.0.0.5")): 1,
        }

    def test_record_without_entities_adds_nothing(self):
        dataset = dataset_of([{"protocol": "TCP"}])
        assert build_graph(dataset, [0]).nodes == []

    def test_single_entity_gives_node_no_edge(self):
        dataset = dataset_of([{"imei": "356938035643809"}])
        graph = build_graph(dataset, [0])
        assert [n.key for n in graph.nodes] == ["imei:356938035643809"]
        assert graph.edges == []

    def test_same_value_in_two_fields_is_one_node(self):
        dataset = dataset_of([{"msisdn": "111", "called_msisdn": "111", "source_ip": "10.0.0.1"}])
        graph = build_graph(dataset, [0])
        assert len(graph.nodes) == 2
        assert len(graph.edges) == 1
        assert graph.edges[0].weight == 1

    def test_case_variants_are_one_node(self):
        dataset = dataset_of([
            {"msisdn": "1", "src_ip": "FE80::1"},
            {"msisdn": "1", "src_ip": "fe80::1"},
        ])
        graph = build_graph(dataset, [0, 1])

        assert [n.key for n in graph.nodes] == ["msisdn:1", "ip:FE80::1"]
        assert graph.node_records[GraphNode(EntityKind.IP, "fe80::1")] == 2
        assert len(graph.edges) == 1
        assert graph.edges[0].weight == 2
        assert graph.edges[0].target.value == "FE80::1"

    def test_weight_counts_records(self, session_dataset):
        graph = build_graph(session_dataset, session_dataset.all_ids())
        a = GraphNode(EntityKind.MSISDN, "919800000001")
        ip = GraphNode(EntityKind.IP, "10.0.0.5")
        edge = graph.edge_between(a, ip)
        assert edge.weight == 2
        assert edge.records == [0, 1]
        assert graph.node_records[a] == 3

    def test_deterministic_regardless_of_id_order(self, session_dataset):
        g1 = build_graph(session_dataset, [4, 2, 0, 1, 3])
        g2 = build_graph(session_dataset, [0, 1, 2, 3, 4, 4])
        assert g1.to_dict() == g2.to_dict()

    def test_to_dict_shape(self, scenario_dataset):
        d = build_graph(scenario_dataset, [0, 1]).to_dict()
        ip = next(n for n in d["nodes"] if n["id"] == "ip:10.0.0.5")
        assert ip == {"id": "ip:10.0.0.5", "kind": "ip", "value": "10.0.0.5", "records": 2, "degree": 2}
        assert {"source", "target", "weight", "records"} == set(d["edges"][0])

    def test_unknown_id(self, session_dataset):
        with pytest.raises(NotFound):
            build_graph(session_dataset, [99])


class TestRecordEntities:

    def test_entity_order_and_kinds(self, session_dataset):
        keys = [n.key for n in record_entities(session_dataset.get(0))]
        assert keys == [
            "msisdn:919800000001", "msisdn:919800000009", "imei:356938035643809",
            "ip:10.0.0.5", "ip:142.250.1.1", "cell:CELL-A",
        ]
