"""Typed records returned by the directory engines.

All models are frozen: engines return fresh copies (``model_copy``) when a
value changes, so a model handed to a caller never mutates underneath it.
Models carry ids and data only, never a reference back to the store.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Contact(BaseModel):
    """A person record with an open field map."""

    model_config = {"frozen": True}

    contact_id: int
    info: dict[str, Any] = Field(default_factory=dict)
    url: str | None = None

    @property
    def first_name(self) -> str:
        return str(self.info.get("first_name") or "")

    @property
    def last_name(self) -> str:
        return str(self.info.get("last_name") or "")

    @property
    def position(self) -> str:
        return str(self.info.get("position") or "")


class Area(BaseModel):
    """A node of the organizational tree.

    ``descendant_contact_count`` and ``matched_contact`` are read-side
    annotations filled in by search; they are ``None`` everywhere else.
    """

    model_config = {"frozen": True}

    area_id: int
    name: str
    note: str | None = None
    is_root: bool = False
    descendant_contact_count: int | None = None
    matched_contact: Contact | None = None


class Collection(BaseModel):
    """A grouping of contacts served to exactly one area."""

    model_config = {"frozen": True}

    collection_id: int
    primary: bool = False


class AreaTree(BaseModel):
    """A materialized subtree: an area and its (name-sorted) children."""

    model_config = {"frozen": True}

    area: Area
    children: list[AreaTree] = Field(default_factory=list)

    def walk(self) -> list[Area]:
        """Return every area of the tree in depth-first pre-order."""
        found = [self.area]
        for child in self.children:
            found.extend(child.walk())
        return found


class SuccessorLink(BaseModel):
    """A ``COMES_BEFORE`` edge seen from the predecessor side."""

    model_config = {"frozen": True}

    collection: CollectionEntry
    note: str = ""


class CollectionEntry(BaseModel):
    """One collection of an area with its contacts and nested successors."""

    model_config = {"frozen": True}

    collection_id: int
    primary: bool = False
    contacts: list[Contact] = Field(default_factory=list)
    successors: list[SuccessorLink] = Field(default_factory=list)


class ImportArea(BaseModel):
    """One area of a bulk-import batch, with its contacts and sub-areas."""

    model_config = {"frozen": True}

    name: str
    note: str | None = None
    contacts: list[dict[str, Any]] = Field(default_factory=list)
    children: list[ImportArea] = Field(default_factory=list)


class ImportBatch(BaseModel):
    """Composite mutation produced by a bulk-import plugin.

    Every top-level entry becomes a child of the area the import targets.
    """

    model_config = {"frozen": True}

    areas: list[ImportArea] = Field(default_factory=list)


SuccessorLink.model_rebuild()
