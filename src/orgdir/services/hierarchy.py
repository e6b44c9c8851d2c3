"""HierarchyEngine — area tree navigation, reconstruction and structural mutation.

Reads are single recursive queries (descent, subtree, ancestry); the tree is
rebuilt in memory from the flat rows by :mod:`orgdir.domain.tree`.  Writes
that touch more than one row run in a store transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from orgdir.domain.errors import InvalidOperationError, NotFoundError, ValidationError
from orgdir.domain.models import Area, AreaTree
from orgdir.domain.search import AncestorRow
from orgdir.domain.tree import SubtreeRow, ancestor_chain, materialize_subtree
from orgdir.domain.types import EdgeType, NodeLabel
from orgdir.infrastructure import queries
from orgdir.services._helpers import area_from_row
from orgdir.services.base import BaseService

if TYPE_CHECKING:
    from orgdir.domain.refs import AreaRef
    from orgdir.infrastructure.store import GraphStore

logger = logging.getLogger(__name__)

_AREA_FIELDS = ("name", "note")


def _clean_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Area name must be a non-empty string", name=name)
    return name.strip()


class HierarchyEngine(BaseService):
    """Owns area tree semantics."""

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def root(self) -> Area:
        """The single area flagged ``is_root``."""
        rows = self._store.execute(queries.root_areas())
        if not rows:
            raise NotFoundError("Directory has no root area", kind="area")
        if len(rows) > 1:
            logger.warning("Found %d root areas; using id %s", len(rows), rows[0]["area_id"])
        return area_from_row(rows[0])

    def create_root(self, name: str, note: str | None = None) -> Area:
        """Create the root area; fails if one already exists."""
        name = _clean_name(name)
        with self._store.transaction() as tx:
            if tx.execute(queries.root_areas()):
                raise InvalidOperationError("Directory already has a root area")
            props = {"note": note} if note else {}
            area_id = self._create_node(tx, NodeLabel.AREA, name=name, is_root=True, properties=props)
        logger.debug("Created root area %s", area_id)
        return Area(area_id=area_id, name=name, note=note or None, is_root=True)

    def orphans(self) -> list[Area]:
        """Areas with no parent that are not the root."""
        return [area_from_row(row) for row in self._store.execute(queries.orphan_areas())]

    def parent(self, area: AreaRef) -> Area | None:
        area = self.load_area(area)
        rows = self._store.execute(queries.parent_of(), {"area_id": area.area_id})
        return area_from_row(rows[0]) if rows else None

    def children(self, area: AreaRef) -> list[Area]:
        """Direct children sorted by name (case-sensitive), then id."""
        area = self.load_area(area)
        rows = self._store.execute(queries.children_of(), {"area_id": area.area_id})
        return sorted((area_from_row(row) for row in rows), key=lambda a: (a.name, a.area_id))

    def descend(self, area: AreaRef, names: Sequence[str]) -> Area:
        """Follow child names level by level from *area*.

        Raises:
            NotFoundError: If some level has no child of the given name.
        """
        start = self.load_area(area)
        if isinstance(names, str):
            raise ValidationError("descend() expects a sequence of names, not a string", names=names)
        names = list(names)
        if not names:
            return start
        params: dict[str, Any] = {"area_id": start.area_id}
        params.update({f"name_{depth}": name for depth, name in enumerate(names)})
        rows = self._store.execute(queries.descend(len(names)), params)
        if not rows:
            raise NotFoundError(
                f"No area at path {' / '.join(names)} below {start.name!r}",
                area_id=start.area_id,
                path=names,
            )
        return area_from_row(rows[0])

    # ------------------------------------------------------------------
    # Reconstruction
    # ------------------------------------------------------------------

    def subtree(self, area: AreaRef, max_depth: int | None = None) -> AreaTree:
        """Materialize the subtree under *area*, at most *max_depth* hops deep.

        Omitting *max_depth* walks the whole subtree.
        """
        if max_depth is not None and max_depth < 0:
            raise ValidationError("max_depth must be zero or positive", max_depth=max_depth)
        root = self.load_area(area)
        if max_depth == 0:
            return AreaTree(area=root)
        if max_depth is None:
            rows = self._store.execute(queries.subtree(), {"area_id": root.area_id})
        else:
            rows = self._store.execute(
                queries.subtree(bounded=True),
                {"area_id": root.area_id, "max_depth": max_depth},
            )
        return materialize_subtree(
            root,
            (SubtreeRow(parent_id=row["parent_id"], child=area_from_row(row)) for row in rows),
        )

    def ancestor_rows(self, area_ids: Iterable[int], *, stop_id: int | None = None) -> list[AncestorRow]:
        """Distance-tagged ancestors of each id, climbing until *stop_id* (or the top)."""
        ids = list(area_ids)
        if not ids:
            return []
        rows = self._store.execute(queries.ancestry(), {"ids": ids, "stop_id": -1 if stop_id is None else stop_id})

        arena: dict[int, dict[int, Area]] = {}
        parents: dict[int, dict[int, int | None]] = {}
        for row in rows:
            area = area_from_row(row)
            arena.setdefault(row["target_id"], {}).setdefault(area.area_id, area)
            links = parents.setdefault(row["target_id"], {})
            if links.get(area.area_id) is None:
                links[area.area_id] = row["parent_id"]  # lowest parent id first

        found: list[AncestorRow] = []
        for target_id in ids:
            if target_id not in arena:
                continue
            chain = ancestor_chain(target_id, parents[target_id], stop_id)
            found.extend(
                AncestorRow(target_id=target_id, distance=distance, ancestor=arena[target_id][ancestor_id])
                for distance, ancestor_id in enumerate(chain)
            )
        return found

    def ancestor_path(self, area: AreaRef, base: AreaRef | None = None) -> list[Area]:
        """Areas from *base* (or the top of the tree) down to *area*, both inclusive.

        Returns an empty list when *area* does not sit beneath *base*.
        """
        target = self.load_area(area)
        base_area = self.load_area(base) if base is not None else None
        rows = self.ancestor_rows([target.area_id], stop_id=base_area.area_id if base_area else None)

        by_distance: dict[int, Area] = {}
        for row in rows:
            by_distance.setdefault(row.distance, row.ancestor)

        if base_area is not None:
            base_distance = next(
                (d for d, a in sorted(by_distance.items()) if a.area_id == base_area.area_id),
                None,
            )
            if base_distance is None:
                return []
            by_distance = {d: a for d, a in by_distance.items() if d <= base_distance}

        return [by_distance[d] for d in sorted(by_distance, reverse=True)]

    def descendant_contact_counts(self, area_ids: Iterable[int]) -> dict[int, int]:
        """Contacts in collections of strict descendants, per area id (0 when none)."""
        ids = list(area_ids)
        if not ids:
            return {}
        rows = self._store.execute(
            queries.descendant_contact_counts(),
            {"ids": ids},
        )
        counts = {area_id: 0 for area_id in ids}
        counts.update({row["target_id"]: int(row["contacts"]) for row in rows})
        return counts

    def descendant_contact_count(self, area: AreaRef) -> int:
        area = self.load_area(area)
        return self.descendant_contact_counts([area.area_id])[area.area_id]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def insert_child(self, parent: AreaRef, name: str, note: str | None = None) -> Area:
        """Create a new area under *parent*."""
        name = _clean_name(name)
        with self._store.transaction() as tx:
            parent_area = self.load_area(parent, tx)
            props = {"note": note} if note else {}
            area_id = self._create_node(tx, NodeLabel.AREA, name=name, properties=props)
            self._create_edge(tx, parent_area.area_id, area_id, EdgeType.PARENT_OF)
        logger.debug("Inserted area %s under %s", area_id, parent_area.area_id)
        return Area(area_id=area_id, name=name, note=note or None)

    def detach(self, area: AreaRef) -> Area | None:
        """Cut *area* loose from its parent; the area itself survives as an orphan.

        Returns the former parent, or None if the area had none.
        """
        area = self.load_area(area)
        if area.is_root:
            raise InvalidOperationError("Cannot detach the root area", area_id=area.area_id)
        with self._store.transaction() as tx:
            return self._detach(tx, area)

    def _detach(self, store: GraphStore, area: Area) -> Area | None:
        rows = store.execute(queries.parent_of(), {"area_id": area.area_id})
        if not rows:
            return None
        store.execute(queries.delete_edges_by_id(), {"ids": [row["edge_id"] for row in rows]})
        return area_from_row(rows[0])

    def remove(self, area: AreaRef) -> Area | None:
        """Delete *area*, its whole subtree, and every collection they own.

        Contacts of those collections lose their membership, URL and
        availability edges but are not deleted.  Returns the former parent
        (None for an orphan).
        """
        area = self.load_area(area)
        if area.is_root:
            raise InvalidOperationError("Cannot remove the root area", area_id=area.area_id)

        with self._store.transaction() as tx:
            parent_rows = tx.execute(queries.parent_of(), {"area_id": area.area_id})
            descendants = tx.execute(queries.subtree_ids(), {"area_id": area.area_id})
            area_ids = [area.area_id, *(row["child_id"] for row in descendants if row["child_id"] != area.area_id)]

            owned = tx.execute(
                queries.incoming_sources(),
                {"ids": area_ids, "edge_type": EdgeType.RESPONSIBLE_FOR.value},
            )
            collection_ids = sorted({row["source_id"] for row in owned})

            contact_ids = self._stranded_contacts(tx, collection_ids)
            url_ids: list[int] = []
            if contact_ids:
                url_rows = tx.execute(
                    queries.outgoing_targets(),
                    {"ids": contact_ids, "edge_type": EdgeType.HAS_URL.value},
                )
                url_ids = sorted({row["target_id"] for row in url_rows})
                tx.execute(
                    queries.delete_outgoing_edges(),
                    {
                        "ids": contact_ids,
                        "edge_types": [EdgeType.HAS_URL.value, EdgeType.ONLY_WORKS.value],
                    },
                )

            doomed = area_ids + collection_ids + url_ids
            tx.execute(queries.delete_edges_touching(), {"ids": doomed})
            tx.execute(queries.delete_nodes(), {"ids": doomed})

        logger.debug(
            "Removed area %s: %d areas, %d collections, %d contacts stranded",
            area.area_id,
            len(area_ids),
            len(collection_ids),
            len(contact_ids),
        )
        return area_from_row(parent_rows[0]) if parent_rows else None

    @staticmethod
    def _stranded_contacts(store: GraphStore, collection_ids: list[int]) -> list[int]:
        """Members of *collection_ids* whose every membership is inside that set."""
        if not collection_ids:
            return []
        members = store.execute(queries.members_of_collections(), {"ids": collection_ids})
        candidate_ids = sorted({row["contact_id"] for row in members})
        if not candidate_ids:
            return []
        memberships = store.execute(queries.memberships_of_contacts(), {"ids": candidate_ids})
        doomed = set(collection_ids)
        keep_url = {row["contact_id"] for row in memberships if row["collection_id"] not in doomed}
        return [cid for cid in candidate_ids if cid not in keep_url]

    def reparent(self, area: AreaRef, new_parent: AreaRef) -> Area:
        """Move *area* (and its subtree) under *new_parent* in one step."""
        area = self.load_area(area)
        if area.is_root:
            raise InvalidOperationError("Cannot move the root area", area_id=area.area_id)
        target = self.load_area(new_parent)
        if target.area_id == area.area_id:
            raise InvalidOperationError("An area cannot be its own parent", area_id=area.area_id)
        below = self._store.execute(queries.subtree_ids(), {"area_id": area.area_id})
        if any(row["child_id"] == target.area_id for row in below):
            raise InvalidOperationError(
                "Cannot move an area beneath its own descendant",
                area_id=area.area_id,
                new_parent_id=target.area_id,
            )

        with self._unit_of_work() as uow:
            former = self._detach(uow, area)
            with self._later_phase("reparent", area_id=area.area_id, detached_from=former and former.area_id):
                self._create_edge(uow, target.area_id, area.area_id, EdgeType.PARENT_OF)
        logger.debug("Moved area %s under %s", area.area_id, target.area_id)
        return area

    def update(self, area: AreaRef, fields: Mapping[str, Any]) -> Area:
        """Change ``name`` and/or ``note``; other keys are ignored."""
        area = self.load_area(area)
        changes = {key: fields[key] for key in _AREA_FIELDS if key in fields}
        ignored = sorted(set(fields) - set(_AREA_FIELDS))
        if ignored:
            logger.debug("Ignoring non-updatable area fields: %s", ", ".join(ignored))
        if "name" in changes:
            changes["name"] = _clean_name(changes["name"])
        if not changes:
            return area

        with self._store.transaction() as tx:
            row = self._node(area.area_id, NodeLabel.AREA, tx)
            props = dict(row["properties"] or {})
            if "note" in changes:
                if changes["note"]:
                    props["note"] = changes["note"]
                else:
                    props.pop("note", None)
            name = changes.get("name", row["name"])
            self._update_node(tx, area.area_id, name, props)
        return area.model_copy(update={"name": name, "note": props.get("note")})
