"""Typed handles returned by the :class:`~orgdir.services.directory.Directory` façade.

A handle pairs a resolved model with the engines that operate on it, so
callers can write ``directory.area(7).children()`` instead of threading ids
through engine calls.  Handles raise :class:`DirectoryError`; wrap a call in
:meth:`Directory.call` to get a :class:`ServiceResult` instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from pathlib import Path

    from orgdir.domain.models import Area, AreaTree, Collection, CollectionEntry, Contact
    from orgdir.domain.refs import AreaRef, CollectionRef, ContactRef
    from orgdir.services.directory import Directory


class AreaHandle:
    """An area plus every operation that starts from it."""

    def __init__(self, directory: Directory, area: Area) -> None:
        self._directory = directory
        self.area = area

    @property
    def area_id(self) -> int:
        return self.area.area_id

    def __repr__(self) -> str:
        return f"AreaHandle({self.area.area_id}, {self.area.name!r})"

    # --- navigation ---

    def descend(self, names: Sequence[str]) -> Area:
        return self._directory.hierarchy.descend(self.area, names)

    def parent(self) -> Area | None:
        return self._directory.hierarchy.parent(self.area)

    def children(self) -> list[Area]:
        return self._directory.hierarchy.children(self.area)

    def subtree(self, max_depth: int | None = None) -> AreaTree:
        return self._directory.hierarchy.subtree(self.area, max_depth)

    def path(self, base: AreaRef | None = None) -> list[Area]:
        return self._directory.hierarchy.ancestor_path(self.area, base)

    def search(self, query: str, include_root: bool | None = None) -> list[list[Area]]:
        return self._directory.search_engine.search(self.area, query, include_root)

    def descendant_contact_count(self) -> int:
        return self._directory.hierarchy.descendant_contact_count(self.area)

    # --- collections ---

    def new_collection(self) -> Collection:
        return self._directory.collections.new_collection(self.area)

    def head_collections(self) -> list[Collection]:
        return self._directory.collections.head_collections(self.area)

    def contacts_by_area(self) -> list[CollectionEntry]:
        return self._directory.collections.contacts_by_area(self.area)

    # --- mutation ---

    def insert_child(self, name: str, note: str | None = None) -> Area:
        return self._directory.hierarchy.insert_child(self.area, name, note)

    def update(self, fields: Mapping[str, Any]) -> Area:
        self.area = self._directory.hierarchy.update(self.area, fields)
        return self.area

    def reparent(self, new_parent: AreaRef) -> Area:
        return self._directory.hierarchy.reparent(self.area, new_parent)

    def detach(self) -> Area | None:
        return self._directory.hierarchy.detach(self.area)

    def remove(self) -> Area | None:
        return self._directory.hierarchy.remove(self.area)

    def bulk_import(self, path: Path) -> Area:
        return self._directory.bulk_import(self.area, path)


class CollectionHandle:
    def __init__(self, directory: Directory, collection: Collection) -> None:
        self._directory = directory
        self.collection = collection

    @property
    def collection_id(self) -> int:
        return self.collection.collection_id

    def __repr__(self) -> str:
        return f"CollectionHandle({self.collection.collection_id})"

    def area(self) -> Area:
        return self._directory.collections.area_of(self.collection)

    def contacts(self) -> list[Contact]:
        return self._directory.collections.contacts(self.collection)

    def successors(self) -> list[Collection]:
        return self._directory.collections.successors(self.collection)

    def detail(self) -> CollectionEntry:
        return self._directory.collections.detail(self.collection)

    def toggle_primary(self) -> Collection:
        self.collection = self._directory.collections.toggle_primary(self.collection)
        return self.collection

    def add_successor(self, successor: CollectionRef, note: str | None = None) -> Collection:
        return self._directory.collections.add_successor(self.collection, successor, note)

    def remove_successor(self, successor: CollectionRef) -> Collection:
        return self._directory.collections.remove_successor(self.collection, successor)

    def split(self, contacts: Iterable[ContactRef]) -> Collection:
        return self._directory.collections.split(self.collection, contacts)

    def merge(self, source: CollectionRef) -> Collection:
        return self._directory.collections.merge(self.collection, source)

    def new_contact(self, info: ContactRef | Mapping[str, Any]) -> Contact:
        return self._directory.collections.new_contact(self.collection, info)


class ContactHandle:
    def __init__(self, directory: Directory, contact: Contact) -> None:
        self._directory = directory
        self.contact = contact

    @property
    def contact_id(self) -> int:
        return self.contact.contact_id

    def __repr__(self) -> str:
        return f"ContactHandle({self.contact.contact_id})"

    def update(self, fields: Mapping[str, Any]) -> Contact:
        self.contact = self._directory.contacts.update(self.contact, fields)
        return self.contact

    def detach(self, collection: CollectionRef) -> Contact:
        return self._directory.contacts.detach(self.contact, collection)

    def remove(self) -> Collection | dict[str, bool]:
        """Delete the contact; returns its former collection or ``{"success": True}``."""
        former = self._directory.contacts.remove(self.contact)
        return former if former is not None else {"success": True}
