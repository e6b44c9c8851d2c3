"""Shared service-layer helpers: timestamps and row-to-model translation."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from orgdir.domain.models import Area, Collection, Contact


def now_iso() -> str:
    """Current UTC time as standard ISO 8601."""
    return datetime.now(UTC).isoformat()


def area_from_row(row: dict[str, Any]) -> Area:
    props = row.get("properties") or {}
    return Area(
        area_id=row["area_id"],
        name=row["name"] or "",
        note=props.get("note"),
        is_root=bool(row.get("is_root")),
    )


def collection_from_row(row: dict[str, Any]) -> Collection:
    props = row.get("properties") or {}
    return Collection(collection_id=row["collection_id"], primary=bool(props.get("primary", False)))


def contact_from_row(row: dict[str, Any]) -> Contact:
    """Build a Contact from ``contact_id``/``contact_properties``/``url_properties`` columns."""
    url_props = row.get("url_properties") or {}
    return Contact(
        contact_id=row["contact_id"],
        info=dict(row.get("contact_properties") or {}),
        url=url_props.get("url"),
    )


def contact_sort_key(contact: Contact) -> tuple[str, str, int]:
    """Order by (last_name, first_name), with id as the final tie-break."""
    return (contact.last_name, contact.first_name, contact.contact_id)
