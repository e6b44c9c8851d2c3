"""GraphEngine — lazy-built NetworkX graph from the store's nodes and edges.

Rebuilt per invocation, no cross-invocation cache.  Used by integrity checks,
which need whole-graph algorithms (cycle detection, in-degree scans) that are
awkward to express as single store queries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import networkx as nx

from orgdir.infrastructure import queries

if TYPE_CHECKING:
    from orgdir.domain.types import EdgeType, NodeLabel
    from orgdir.infrastructure.store import GraphStore

type _Graph = nx.MultiDiGraph


class GraphEngine:
    """Lazy-loading graph engine backed by the GraphStore."""

    def __init__(self, store: GraphStore) -> None:
        self._store = store
        self._graph: _Graph | None = None

    @property
    def graph(self) -> _Graph:
        """Return the graph, building from the store on first access."""
        if self._graph is None:
            self._graph = self._build_from_store()
        return self._graph

    def invalidate(self) -> None:
        """Clear the cached graph, forcing rebuild on next access."""
        self._graph = None

    def nodes_with_label(self, label: NodeLabel) -> list[int]:
        g = self.graph
        return [n for n, attrs in g.nodes(data=True) if attrs.get("label") == label.value]

    def edge_view(self, edge_type: EdgeType) -> nx.DiGraph:
        """Simple digraph holding only the edges of *edge_type* (all nodes kept)."""
        g = self.graph
        view: nx.DiGraph = nx.DiGraph()
        view.add_nodes_from(g.nodes(data=True))
        view.add_edges_from(
            (u, v, data) for u, v, data in g.edges(data=True) if data.get("edge_type") == edge_type.value
        )
        return view

    def _build_from_store(self) -> _Graph:
        """Build a NetworkX MultiDiGraph from the nodes and edges tables.

        Loads all nodes first (so isolated nodes appear in the graph),
        then adds edges keyed by edge id.
        """
        g: _Graph = nx.MultiDiGraph()
        for row in self._store.execute(queries.all_nodes()):
            g.add_node(row["id"], label=row["label"], name=row["name"], is_root=bool(row["is_root"]))
        for row in self._store.execute(queries.all_edges()):
            g.add_edge(
                row["source_id"],
                row["target_id"],
                key=row["id"],
                edge_type=row["edge_type"],
                properties=row["properties"] or {},
            )
        return g
