"""Node labels and edge types of the directory property graph."""

from __future__ import annotations

from enum import StrEnum


class NodeLabel(StrEnum):
    """Labels carried by rows of the ``nodes`` table."""

    AREA = "Area"
    COLLECTION = "Collection"
    CONTACT = "Contact"
    URL = "Url"
    DAY = "Day"


class EdgeType(StrEnum):
    """Relationship types carried by rows of the ``edges`` table.

    Direction is always ``source -> target``:

    - ``PARENT_OF``: parent Area -> child Area
    - ``RESPONSIBLE_FOR``: Collection -> Area it serves
    - ``COMES_BEFORE``: predecessor Collection -> successor Collection
    - ``IN_COLLECTION``: Contact -> Collection
    - ``HAS_URL``: Contact -> Url
    - ``ONLY_WORKS``: Contact -> Day (availability)
    """

    PARENT_OF = "PARENT_OF"
    RESPONSIBLE_FOR = "RESPONSIBLE_FOR"
    COMES_BEFORE = "COMES_BEFORE"
    IN_COLLECTION = "IN_COLLECTION"
    HAS_URL = "HAS_URL"
    ONLY_WORKS = "ONLY_WORKS"


ROOT_SENTINEL = "root"

DEFAULT_CONTACT_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "position",
    "phone",
    "email",
    "location",
    "notes",
)
