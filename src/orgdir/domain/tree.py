"""Tree reconstruction from flat edge rows (arena + index).

Both the area subtree and the collection succession forest arrive from the
store as flat lists.  They are rebuilt here from an id-indexed map built once
per query, then materialized recursively by lookup.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from orgdir.domain.models import Area, AreaTree, CollectionEntry, SuccessorLink


@dataclass(frozen=True)
class SubtreeRow:
    """One ``PARENT_OF`` edge below the subtree root."""

    parent_id: int
    child: Area


def build_child_index(rows: Iterable[SubtreeRow]) -> tuple[dict[int, list[int]], dict[int, Area]]:
    """Multimap ``parent_id -> [child_id, ...]`` in first-seen order, without duplicates."""
    children: dict[int, list[int]] = {}
    arena: dict[int, Area] = {}
    for row in rows:
        child_id = row.child.area_id
        siblings = children.setdefault(row.parent_id, [])
        if child_id not in siblings:
            siblings.append(child_id)
        arena.setdefault(child_id, row.child)
    return children, arena


def materialize_subtree(root: Area, rows: Iterable[SubtreeRow]) -> AreaTree:
    """Nest flat subtree rows under *root*.

    Children are ordered by name (then id) at every level.  A node is only
    materialized once, so a corrupted graph with a cycle cannot recurse forever.
    """
    children, arena = build_child_index(rows)
    visited: set[int] = set()

    def attach(area: Area) -> AreaTree:
        visited.add(area.area_id)
        kids = sorted(
            (arena[cid] for cid in children.get(area.area_id, [])),
            key=lambda a: (a.name, a.area_id),
        )
        return AreaTree(area=area, children=[attach(kid) for kid in kids if kid.area_id not in visited])

    return attach(root)


def ancestor_chain(start_id: int, parents: Mapping[int, int | None], stop_id: int | None = None) -> list[int]:
    """Ids from *start_id* upward, one per hop.

    The climb ends at *stop_id*, at an area with no known parent, or at the
    first repeated id (a corrupted, cyclic graph).
    """
    chain = [start_id]
    seen = {start_id}
    current = start_id
    while current != stop_id:
        parent = parents.get(current)
        if parent is None or parent in seen or parent not in parents:
            break
        chain.append(parent)
        seen.add(parent)
        current = parent
    return chain


@dataclass(frozen=True)
class SuccessionEdge:
    """A ``COMES_BEFORE`` edge between two collections of the same area."""

    predecessor_id: int
    successor_id: int
    note: str = ""


def build_succession_forest(
    entries: Mapping[int, CollectionEntry],
    edges: Iterable[SuccessionEdge],
) -> list[CollectionEntry]:
    """Nest each non-head collection under its predecessor; return the heads.

    Edges whose endpoints are not both in *entries* are ignored, so a chain
    that crosses into another area starts a new head here.  Only the first
    predecessor seen for a collection is honoured.  Collections caught in a
    ``COMES_BEFORE`` cycle have no head and are not returned.
    """
    predecessor: dict[int, SuccessionEdge] = {}
    for edge in edges:
        if edge.predecessor_id not in entries or edge.successor_id not in entries:
            continue
        if edge.successor_id == edge.predecessor_id:
            continue
        predecessor.setdefault(edge.successor_id, edge)

    followers: dict[int, list[SuccessionEdge]] = {}
    for edge in predecessor.values():
        followers.setdefault(edge.predecessor_id, []).append(edge)

    def nest(collection_id: int, seen: frozenset[int]) -> CollectionEntry:
        entry = entries[collection_id]
        links = [
            SuccessorLink(collection=nest(edge.successor_id, seen | {edge.successor_id}), note=edge.note)
            for edge in sorted(followers.get(collection_id, []), key=lambda e: e.successor_id)
            if edge.successor_id not in seen
        ]
        return entry.model_copy(update={"successors": links})

    return [nest(cid, frozenset({cid})) for cid in entries if cid not in predecessor]
