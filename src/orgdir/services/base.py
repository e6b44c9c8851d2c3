"""BaseService — shared foundation of the directory engines.

Every engine receives the :class:`GraphStore` (and optional config) at
construction time.  Nothing here holds process-wide state: two directories
over two stores never share anything.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from orgdir.config.models import OrgdirConfig
from orgdir.domain.errors import NotFoundError, PartialFailure, StoreFailure
from orgdir.domain.models import Area, Collection, Contact
from orgdir.domain.refs import area_id_of, collection_id_of, contact_id_of
from orgdir.domain.types import NodeLabel
from orgdir.infrastructure import queries
from orgdir.services._helpers import (
    area_from_row,
    collection_from_row,
    contact_from_row,
    now_iso,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from orgdir.domain.refs import AreaRef, CollectionRef, ContactRef
    from orgdir.infrastructure.store import GraphStore

logger = logging.getLogger(__name__)


class BaseService:
    """Abstract base for the hierarchy, search, collection and contact engines.

    Usage::

        class HierarchyEngine(BaseService):
            def insert_child(self, parent, name, note=None) -> Area:
                with self._store.transaction() as tx:
                    ...
    """

    def __init__(self, store: GraphStore, config: OrgdirConfig | None = None) -> None:
        self._store = store
        self._config = config or OrgdirConfig()

    # ------------------------------------------------------------------
    # Multi-phase mutations
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self) -> Iterator[GraphStore]:
        """One transaction for every phase, unless ``store.atomic`` is off.

        With atomicity off each statement commits on its own, reproducing
        the phase-by-phase behaviour; :meth:`_later_phase` then reports a
        failure after the first phase as :class:`PartialFailure`.
        """
        if self._store.atomic:
            with self._store.transaction() as tx:
                yield tx
        else:
            yield self._store

    @contextmanager
    def _later_phase(self, op: str, **committed: Any) -> Iterator[None]:
        try:
            yield
        except StoreFailure as exc:
            if self._store.atomic:
                raise
            logger.error("%s: second phase failed after first phase committed", op)
            raise PartialFailure(
                f"{op} failed after its first phase committed: {exc.message}",
                op=op,
                **committed,
            ) from exc

    # ------------------------------------------------------------------
    # Node loading (id-or-handle boundary)
    # ------------------------------------------------------------------

    def _node(self, node_id: int, label: NodeLabel, store: GraphStore | None = None) -> dict[str, Any]:
        rows = (store or self._store).execute(queries.node_by_id(), {"node_id": node_id})
        if not rows or rows[0]["label"] != label.value:
            kind = label.value.lower()
            raise NotFoundError(f"No {kind} with id {node_id}", id=node_id, kind=kind)
        return rows[0]

    def load_area(self, ref: AreaRef, store: GraphStore | None = None) -> Area:
        """Return *ref* if it is already an Area, otherwise fetch it."""
        if isinstance(ref, Area):
            return ref
        row = self._node(area_id_of(ref), NodeLabel.AREA, store)
        return area_from_row({**row, "area_id": row["id"]})

    def load_collection(self, ref: CollectionRef, store: GraphStore | None = None) -> Collection:
        if isinstance(ref, Collection):
            return ref
        row = self._node(collection_id_of(ref), NodeLabel.COLLECTION, store)
        return collection_from_row({**row, "collection_id": row["id"]})

    def load_contact(self, ref: ContactRef, store: GraphStore | None = None) -> Contact:
        if isinstance(ref, Contact):
            return ref
        contact_id = contact_id_of(ref)
        rows = (store or self._store).execute(queries.contact_with_url(), {"contact_id": contact_id})
        if not rows:
            raise NotFoundError(f"No contact with id {contact_id}", id=contact_id, kind="contact")
        return contact_from_row(rows[0])

    def _require_ids(self, ids: list[int], label: NodeLabel, store: GraphStore | None = None) -> None:
        """Raise NotFoundError unless every id in *ids* is a node of *label*."""
        if not ids:
            return
        rows = (store or self._store).execute(queries.node_labels(), {"ids": ids})
        found = {row["id"] for row in rows if row["label"] == label.value}
        missing = [node_id for node_id in ids if node_id not in found]
        if missing:
            kind = label.value.lower()
            raise NotFoundError(f"No {kind} with id {missing[0]}", ids=missing, kind=kind)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _create_node(
        store: GraphStore,
        label: NodeLabel,
        *,
        name: str | None = None,
        is_root: bool = False,
        properties: Mapping[str, Any] | None = None,
    ) -> int:
        now = now_iso()
        rows = store.execute(
            queries.insert_node(),
            {
                "label": label.value,
                "name": name,
                "is_root": int(is_root),
                "properties": dict(properties or {}),
                "created": now,
                "modified": now,
            },
        )
        return int(rows[0]["id"])

    @staticmethod
    def _create_edge(
        store: GraphStore,
        source_id: int,
        target_id: int,
        edge_type: str,
        properties: Mapping[str, Any] | None = None,
    ) -> int:
        rows = store.execute(
            queries.insert_edge(),
            {
                "source_id": source_id,
                "target_id": target_id,
                "edge_type": edge_type,
                "properties": dict(properties or {}),
                "created": now_iso(),
            },
        )
        return int(rows[0]["id"])

    @staticmethod
    def _update_node(store: GraphStore, node_id: int, name: str | None, properties: Mapping[str, Any]) -> None:
        store.execute(
            queries.update_node(),
            {
                "node_id": node_id,
                "new_name": name,
                "new_properties": dict(properties),
                "new_modified": now_iso(),
            },
        )
