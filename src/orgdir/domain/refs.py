"""Id-or-handle references resolved to canonical integer ids.

Several operations accept either a raw id (``42`` or ``"42"``) or an
already-resolved model.  Callers pass whichever they hold; engines call the
``*_id_of`` helpers once at the boundary and work with ints from there on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from orgdir.domain.errors import NotFoundError, ValidationError

if TYPE_CHECKING:
    from orgdir.domain.models import Area, Collection, Contact

type AreaRef = Area | int | str
type CollectionRef = Collection | int | str
type ContactRef = Contact | int | str


def parse_id(raw: Any, kind: str = "node") -> int:
    """Convert a raw identifier into an int, raising ``NotFoundError`` if malformed."""
    if isinstance(raw, bool):
        raise NotFoundError(f"No {kind} with id {raw!r}", id=raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    raise NotFoundError(f"No {kind} with id {raw!r}", id=raw)


def _id_of(ref: Any, attr: str, kind: str) -> int:
    value = getattr(ref, attr, None)
    if value is not None:
        return int(value)
    if isinstance(ref, dict) and ref.get(attr) is not None:
        return parse_id(ref[attr], kind)
    return parse_id(ref, kind)


def area_id_of(ref: AreaRef) -> int:
    return _id_of(ref, "area_id", "area")


def collection_id_of(ref: CollectionRef) -> int:
    return _id_of(ref, "collection_id", "collection")


def contact_id_of(ref: ContactRef) -> int:
    return _id_of(ref, "contact_id", "contact")


def contact_ids_of(refs: Any) -> list[int]:
    """Resolve a sequence of contact references, preserving order and dropping duplicates."""
    if refs is None or isinstance(refs, (str, bytes, int)):
        raise ValidationError("Expected a list of contacts", contacts=refs)
    seen: dict[int, None] = {}
    for ref in refs:
        seen.setdefault(contact_id_of(ref), None)
    return list(seen)
