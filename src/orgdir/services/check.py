"""CheckService — read-only integrity report over the whole directory graph.

Follows the linter pattern: each category returns a list of issue dicts
``{category, severity, entity_id, message}``; nothing is modified.

Categories:
- ``tree``: root count, multiple parents, PARENT_OF cycles, orphan areas.
- ``collections``: area assignment, COMES_BEFORE cycles, chain shape.
- ``contacts``: membership exclusivity.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import networkx as nx

from orgdir.domain.types import EdgeType, NodeLabel
from orgdir.infrastructure.graph.engine import GraphEngine
from orgdir.services.base import BaseService

if TYPE_CHECKING:
    from orgdir.config.models import OrgdirConfig
    from orgdir.infrastructure.store import GraphStore

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

CAT_TREE = "tree"
CAT_COLLECTIONS = "collections"
CAT_CONTACTS = "contacts"

type Issue = dict[str, Any]


def _issue(category: str, severity: str, entity_id: int | None, message: str) -> Issue:
    return {"category": category, "severity": severity, "entity_id": entity_id, "message": message}


class CheckService(BaseService):
    """Reports structural problems the engines would otherwise trip over."""

    def __init__(self, store: GraphStore, config: OrgdirConfig | None = None) -> None:
        super().__init__(store, config)
        self._graph = GraphEngine(store)

    def check(self) -> dict[str, Any]:
        """Run every category against a fresh snapshot of the graph."""
        self._graph.invalidate()
        issues: list[Issue] = []
        issues.extend(self._check_tree())
        issues.extend(self._check_collections())
        issues.extend(self._check_contacts())
        errors = sum(1 for issue in issues if issue["severity"] == SEVERITY_ERROR)
        return {"issues": issues, "count": len(issues), "errors": errors}

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def _check_tree(self) -> list[Issue]:
        issues: list[Issue] = []
        g = self._graph.graph
        areas = self._graph.nodes_with_label(NodeLabel.AREA)
        tree = self._graph.edge_view(EdgeType.PARENT_OF)

        roots = [a for a in areas if g.nodes[a]["is_root"]]
        if not roots:
            issues.append(_issue(CAT_TREE, SEVERITY_ERROR, None, "Directory has no root area"))
        for extra in roots[1:]:
            issues.append(_issue(CAT_TREE, SEVERITY_ERROR, extra, f"Second root area {extra} (first is {roots[0]})"))
        for root in roots:
            if tree.in_degree(root):
                issues.append(_issue(CAT_TREE, SEVERITY_ERROR, root, f"Root area {root} has a parent"))

        for area in areas:
            parents = sorted(tree.predecessors(area))
            if len(parents) > 1:
                issues.append(
                    _issue(CAT_TREE, SEVERITY_ERROR, area, f"Area {area} has {len(parents)} parents: {parents}")
                )
            elif not parents and not g.nodes[area]["is_root"]:
                issues.append(_issue(CAT_TREE, SEVERITY_WARNING, area, f"Orphan area {area} ({g.nodes[area]['name']})"))

        for cycle in nx.simple_cycles(tree):
            first = min(cycle)
            issues.append(_issue(CAT_TREE, SEVERITY_ERROR, first, f"PARENT_OF cycle through areas {sorted(cycle)}"))
        return issues

    def _check_collections(self) -> list[Issue]:
        issues: list[Issue] = []
        collections = self._graph.nodes_with_label(NodeLabel.COLLECTION)
        owner = self._graph.edge_view(EdgeType.RESPONSIBLE_FOR)
        chain = self._graph.edge_view(EdgeType.COMES_BEFORE)

        area_of: dict[int, int] = {}
        for cid in collections:
            areas = sorted(owner.successors(cid))
            if not areas:
                issues.append(_issue(CAT_COLLECTIONS, SEVERITY_ERROR, cid, f"Collection {cid} serves no area"))
            elif len(areas) > 1:
                issues.append(
                    _issue(CAT_COLLECTIONS, SEVERITY_ERROR, cid, f"Collection {cid} serves several areas: {areas}")
                )
            if areas:
                area_of[cid] = areas[0]

        for cid in collections:
            preds = sorted(chain.predecessors(cid))
            if len(preds) > 1:
                issues.append(
                    _issue(CAT_COLLECTIONS, SEVERITY_WARNING, cid, f"Collection {cid} has several predecessors: {preds}")
                )
            for succ in chain.successors(cid):
                if cid in area_of and succ in area_of and area_of[cid] != area_of[succ]:
                    issues.append(
                        _issue(
                            CAT_COLLECTIONS,
                            SEVERITY_WARNING,
                            cid,
                            f"Collection {cid} comes before {succ}, which serves another area",
                        )
                    )

        for cycle in nx.simple_cycles(chain):
            issues.append(
                _issue(CAT_COLLECTIONS, SEVERITY_ERROR, min(cycle), f"COMES_BEFORE cycle through {sorted(cycle)}")
            )
        return issues

    def _check_contacts(self) -> list[Issue]:
        issues: list[Issue] = []
        membership = self._graph.edge_view(EdgeType.IN_COLLECTION)
        for contact in self._graph.nodes_with_label(NodeLabel.CONTACT):
            collections = sorted(membership.successors(contact))
            if len(collections) > 1:
                issues.append(
                    _issue(
                        CAT_CONTACTS,
                        SEVERITY_ERROR,
                        contact,
                        f"Contact {contact} is in several collections: {collections}",
                    )
                )
        return issues
