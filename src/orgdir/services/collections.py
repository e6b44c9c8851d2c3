"""CollectionEngine — collections, membership and succession chains.

A collection is served to exactly one area (``RESPONSIBLE_FOR``).  Collections
of an area may be chained with ``COMES_BEFORE`` edges; :meth:`contacts_by_area`
presents those chains as a forest rooted at the heads.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from orgdir.domain.errors import InvalidOperationError, ValidationError
from orgdir.domain.models import Area, Collection, CollectionEntry, Contact, SuccessorLink
from orgdir.domain.refs import contact_ids_of
from orgdir.domain.tree import SuccessionEdge, build_succession_forest
from orgdir.domain.types import EdgeType, NodeLabel
from orgdir.infrastructure import queries
from orgdir.services._helpers import (
    area_from_row,
    collection_from_row,
    contact_from_row,
    contact_sort_key,
)
from orgdir.services.base import BaseService

if TYPE_CHECKING:
    from collections.abc import Iterable

    from orgdir.domain.refs import AreaRef, CollectionRef, ContactRef
    from orgdir.infrastructure.store import GraphStore

logger = logging.getLogger(__name__)


class CollectionEngine(BaseService):
    """Owns collection semantics."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def area_of(self, collection: CollectionRef) -> Area:
        """The area *collection* is responsible for."""
        return self._area_in(self._store, self.load_collection(collection))

    def contacts(self, collection: CollectionRef) -> list[Contact]:
        """Members sorted by last name, then first name."""
        collection = self.load_collection(collection)
        return self._contacts_of([collection.collection_id]).get(collection.collection_id, [])

    def _contacts_of(self, collection_ids: list[int]) -> dict[int, list[Contact]]:
        if not collection_ids:
            return {}
        grouped: dict[int, dict[int, Contact]] = {}
        for row in self._store.execute(queries.collection_contacts(), {"ids": collection_ids}):
            members = grouped.setdefault(row["collection_id"], {})
            members.setdefault(row["contact_id"], contact_from_row(row))
        return {cid: sorted(members.values(), key=contact_sort_key) for cid, members in grouped.items()}

    def successors(self, collection: CollectionRef) -> list[Collection]:
        """Collections one ``COMES_BEFORE`` hop after *collection*."""
        collection = self.load_collection(collection)
        rows = self._store.execute(queries.successors_of(), {"collection_id": collection.collection_id})
        return [collection_from_row(row) for row in rows]

    def head_collections(self, area: AreaRef) -> list[Collection]:
        """Collections of *area* that have no predecessor."""
        area = self.load_area(area)
        rows = self._store.execute(queries.area_collections(heads_only=True), {"area_id": area.area_id})
        return [collection_from_row(row) for row in rows]

    def detail(self, collection: CollectionRef) -> CollectionEntry:
        """One collection with its contacts and its one-hop successors (with notes)."""
        collection = self.load_collection(collection)
        rows = self._store.execute(queries.successors_of(), {"collection_id": collection.collection_id})
        entries = {
            row["collection_id"]: CollectionEntry(**collection_from_row(row).model_dump())
            for row in rows
        }
        contacts = self._contacts_of([collection.collection_id, *entries])
        return CollectionEntry(
            collection_id=collection.collection_id,
            primary=collection.primary,
            contacts=contacts.get(collection.collection_id, []),
            successors=[
                SuccessorLink(
                    collection=entries[row["collection_id"]].model_copy(
                        update={"contacts": contacts.get(row["collection_id"], [])}
                    ),
                    note=(row["edge_properties"] or {}).get("note", ""),
                )
                for row in rows
            ],
        )

    def contacts_by_area(self, area: AreaRef) -> list[CollectionEntry]:
        """Every collection of *area* as a succession forest, heads at the top level.

        Empty collections are included.  Collections caught in a
        ``COMES_BEFORE`` cycle have no head and are therefore left out.
        """
        area = self.load_area(area)
        rows = self._store.execute(queries.area_collections(), {"area_id": area.area_id})
        ids = [row["collection_id"] for row in rows]
        contacts = self._contacts_of(ids)
        entries = {
            row["collection_id"]: CollectionEntry(
                collection_id=row["collection_id"],
                primary=bool((row["properties"] or {}).get("primary", False)),
                contacts=contacts.get(row["collection_id"], []),
            )
            for row in rows
        }
        if not ids:
            return []
        edges = self._store.execute(queries.succession_edges(), {"ids": ids})
        return build_succession_forest(
            entries,
            (
                SuccessionEdge(
                    predecessor_id=edge["source_id"],
                    successor_id=edge["target_id"],
                    note=(edge["properties"] or {}).get("note", ""),
                )
                for edge in edges
            ),
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def new_collection(self, area: AreaRef) -> Collection:
        """Create an empty, non-primary collection for *area*."""
        with self._store.transaction() as tx:
            area = self.load_area(area, tx)
            collection_id = self._new_collection(tx, area.area_id)
        return Collection(collection_id=collection_id)

    def _new_collection(self, store: GraphStore, area_id: int, *, primary: bool = False) -> int:
        collection_id = self._create_node(store, NodeLabel.COLLECTION, properties={"primary": primary})
        self._create_edge(store, collection_id, area_id, EdgeType.RESPONSIBLE_FOR)
        return collection_id

    def toggle_primary(self, collection: CollectionRef) -> Collection:
        with self._store.transaction() as tx:
            collection_id = self.load_collection(collection, tx).collection_id
            row = self._node(collection_id, NodeLabel.COLLECTION, tx)
            props = dict(row["properties"] or {})
            props["primary"] = not props.get("primary", False)
            self._update_node(tx, collection_id, None, props)
        return Collection(collection_id=collection_id, primary=props["primary"])

    def add_successor(self, predecessor: CollectionRef, successor: CollectionRef, note: str | None = None) -> Collection:
        """Link *predecessor* -> *successor*.  Cycles are not checked here; ``orgdir check`` reports them."""
        pred = self.load_collection(predecessor)
        succ = self.load_collection(successor)
        self._create_edge(
            self._store,
            pred.collection_id,
            succ.collection_id,
            EdgeType.COMES_BEFORE,
            {"note": note or ""},
        )
        return pred

    def remove_successor(self, predecessor: CollectionRef, successor: CollectionRef) -> Collection:
        """Unlink the pair; a missing link is not an error."""
        pred = self.load_collection(predecessor)
        succ = self.load_collection(successor)
        self._store.execute(
            queries.delete_edge_between(),
            {
                "source_id": pred.collection_id,
                "target_id": succ.collection_id,
                "edge_type": EdgeType.COMES_BEFORE.value,
            },
        )
        return pred

    def split(self, collection: CollectionRef, contacts: Iterable[ContactRef]) -> Collection:
        """Move the listed members of *collection* into a new collection of the same area.

        Listed contacts that are not members are skipped.

        Raises:
            ValidationError: If none of the listed contacts is a member.
        """
        wanted = set(contact_ids_of(contacts))
        if not wanted:
            raise ValidationError("split() needs at least one contact")
        source = self.load_collection(collection)

        with self._unit_of_work() as uow:
            members = uow.execute(queries.members_of_collections(), {"ids": [source.collection_id]})
            moving = [row for row in members if row["contact_id"] in wanted]
            if not moving:
                raise ValidationError(
                    f"None of the given contacts belongs to collection {source.collection_id}",
                    collection_id=source.collection_id,
                    contacts=sorted(wanted),
                )
            area = self._area_in(uow, source)
            uow.execute(queries.delete_edges_by_id(), {"ids": [row["edge_id"] for row in moving]})
            moved_ids = [row["contact_id"] for row in moving]
            with self._later_phase("split", collection_id=source.collection_id, detached=moved_ids):
                new_id = self._new_collection(uow, area.area_id)
                for contact_id in moved_ids:
                    self._create_edge(uow, contact_id, new_id, EdgeType.IN_COLLECTION)

        logger.debug("Split %d contacts from collection %s into %s", len(moved_ids), source.collection_id, new_id)
        return Collection(collection_id=new_id)

    @staticmethod
    def _area_in(store: GraphStore, collection: Collection) -> Area:
        rows = store.execute(queries.collection_area(), {"collection_id": collection.collection_id})
        if not rows:
            raise InvalidOperationError(
                f"Collection {collection.collection_id} is not assigned to an area",
                collection_id=collection.collection_id,
            )
        return area_from_row(rows[0])

    def merge(self, target: CollectionRef, source: CollectionRef) -> Collection:
        """Fold *source* into *target*: its members move over, then it is deleted.

        Every ``COMES_BEFORE`` edge touching *source* is dropped with it.
        """
        into = self.load_collection(target)
        gone = self.load_collection(source)
        if into.collection_id == gone.collection_id:
            raise ValidationError("Cannot merge a collection into itself", collection_id=into.collection_id)

        with self._unit_of_work() as uow:
            members = uow.execute(queries.members_of_collections(), {"ids": [gone.collection_id]})
            moved_ids = [row["contact_id"] for row in members]
            uow.execute(queries.delete_edges_touching(), {"ids": [gone.collection_id]})
            uow.execute(queries.delete_nodes(), {"ids": [gone.collection_id]})
            with self._later_phase("merge", source_id=gone.collection_id, detached=moved_ids):
                for contact_id in moved_ids:
                    self._create_edge(uow, contact_id, into.collection_id, EdgeType.IN_COLLECTION)

        logger.debug("Merged collection %s into %s (%d contacts)", gone.collection_id, into.collection_id, len(moved_ids))
        return into

    def new_contact(self, collection: CollectionRef, info: ContactRef | Mapping[str, Any]) -> Contact:
        """Add a contact to *collection*.

        *info* is either a reference to an existing contact (which leaves any
        earlier collection) or a field map for a new one.  Field maps keep the
        configured ``contacts.fields``; a ``url`` key creates a Url node.
        """
        target = self.load_collection(collection)
        if isinstance(info, Mapping) and "contact_id" not in info:
            return self._create_contact(target, info)

        contact = self.load_contact(info)  # type: ignore[arg-type]
        with self._store.transaction() as tx:
            earlier = tx.execute(queries.memberships_of_contacts(), {"ids": [contact.contact_id]})
            if earlier:
                tx.execute(queries.delete_edges_by_id(), {"ids": [row["edge_id"] for row in earlier]})
            self._create_edge(tx, contact.contact_id, target.collection_id, EdgeType.IN_COLLECTION)
        return contact

    def _create_contact(self, target: Collection, info: Mapping[str, Any]) -> Contact:
        allowed = self._config.contacts.fields
        fields = {key: value for key, value in info.items() if key in allowed and value is not None}
        url = info.get("url") or None
        with self._store.transaction() as tx:
            contact_id = self._create_node(tx, NodeLabel.CONTACT, properties=fields)
            self._create_edge(tx, contact_id, target.collection_id, EdgeType.IN_COLLECTION)
            if url:
                url_id = self._create_node(tx, NodeLabel.URL, properties={"url": str(url)})
                self._create_edge(tx, contact_id, url_id, EdgeType.HAS_URL)
        return Contact(contact_id=contact_id, info=fields, url=str(url) if url else None)
