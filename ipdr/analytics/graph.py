"""
Link graph — entities (numbers, devices, IPs, cells) that co-occur in records.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ipdr.config import ENTITY_FIELDS
from ipdr.data.errors import NotFound
from ipdr.data.normalize import clean_text, is_blank
from ipdr.data.schemas import CanonicalField, EntityKind, Record
from ipdr.data.store import Dataset, index_key

ENTITY_SOURCES = tuple((CanonicalField(f), EntityKind(k)) for f, k in ENTITY_FIELDS)


@dataclass(frozen=True, eq=False)
class GraphNode:
    """An entity; values differing only in case are the same node."""
    kind: EntityKind
    value: str

    @property
    def ident(self) -> tuple[EntityKind, str]:
        return (self.kind, index_key(self.value))

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.value}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GraphNode):
            return NotImplemented
        return self.ident == other.ident

    def __hash__(self) -> int:
        return hash(self.ident)


@dataclass
class GraphEdge:
    """Undirected; `source` is whichever endpoint was seen first."""
    source: GraphNode
    target: GraphNode
    weight: int = 0
    records: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "source": self.source.key,
            "target": self.target.key,
            "weight": self.weight,
            "records": list(self.records),
        }


@dataclass
class LinkGraph:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    node_records: dict[GraphNode, int] = field(default_factory=dict)

    def edge_between(self, a: GraphNode, b: GraphNode) -> GraphEdge | None:
        for e in self.edges:
            if {e.source, e.target} == {a, b}:
                return e
        return None

    def degree(self) -> dict[GraphNode, int]:
        deg = {n: 0 for n in self.nodes}
        for e in self.edges:
            deg[e.source] += 1
            deg[e.target] += 1
        return deg

    def to_dict(self) -> dict:
        deg = self.degree()
        return {
            "nodes": [
                {
                    "id": n.key,
                    "kind": n.kind.value,
                    "value": n.value,
                    "records": self.node_records.get(n, 0),
                    "degree": deg[n],
                }
                for n in self.nodes
            ],
            "edges": [e.to_dict() for e in self.edges],
        }


def record_entities(rec: Record) -> list[GraphNode]:
    """Distinct entities of a record, in entity-field order."""
    seen: dict[GraphNode, None] = {}
    for fld, kind in ENTITY_SOURCES:
        value = rec.fields.get(fld)
        if is_blank(value):
            continue
        seen.setdefault(GraphNode(kind, clean_text(value)), None)
    return list(seen)


def build_graph(dataset: Dataset, ids: Iterable[int]) -> LinkGraph:
    """Co-occurrence graph over the given records.

    Ids are walked in ascending order so the same id set always gives the
    same node and edge order. A record adds at most 1 to any edge's weight.
    """
    graph = LinkGraph()
    node_pos: dict[GraphNode, int] = {}
    edge_at: dict[tuple[int, int], GraphEdge] = {}

    for rid in sorted(set(ids)):
        if not 0 <= rid < len(dataset.records):
            raise NotFound(f"No record with id {rid}")
        entities = []
        for node in record_entities(dataset.records[rid]):
            if node not in node_pos:
                node_pos[node] = len(graph.nodes)
                graph.nodes.append(node)
            # Keep the first-seen spelling
            node = graph.nodes[node_pos[node]]
            graph.node_records[node] = graph.node_records.get(node, 0) + 1
            entities.append(node)

        for i, a in enumerate(entities):
            for b in entities[i + 1:]:
                pa, pb = node_pos[a], node_pos[b]
                key = (pa, pb) if pa < pb else (pb, pa)
                edge = edge_at.get(key)
                if edge is None:
                    first, second = (a, b) if pa < pb else (b, a)
                    edge = GraphEdge(source=first, target=second)
                    edge_at[key] = edge
                    graph.edges.append(edge)
                edge.weight += 1
                edge.records.append(rid)

    return graph
