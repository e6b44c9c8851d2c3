"""Directory — the façade the CLI (and any other outer layer) talks to.

Responsibilities:
- resolve raw ids (or ``"root"``) to typed handles;
- a few directory-wide operations (orphans, contact search, batch reads,
  bulk import, integrity check);
- :meth:`Directory.call`, which runs any operation and returns a
  :class:`ServiceResult` with plain data, mapping :class:`DirectoryError`
  to a typed error payload and dispatching ``post_change`` hooks.

The store, config and plugin manager are injected; nothing here is global.
"""

from __future__ import annotations

import re
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import BaseModel

from orgdir.config.models import OrgdirConfig
from orgdir.domain.errors import DirectoryError, InvalidOperationError, NotFoundError, ValidationError
from orgdir.domain.refs import area_id_of
from orgdir.domain.types import ROOT_SENTINEL
from orgdir.infrastructure import queries
from orgdir.plugins.manager import PluginManager
from orgdir.services._helpers import contact_from_row, contact_sort_key
from orgdir.services.check import CheckService
from orgdir.services.collections import CollectionEngine
from orgdir.services.contacts import ContactStore
from orgdir.services.handles import AreaHandle, CollectionHandle, ContactHandle
from orgdir.services.hierarchy import HierarchyEngine
from orgdir.services.result import ServiceResult
from orgdir.services.search import SearchEngine

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from orgdir.config.settings import OrgdirSettings
    from orgdir.domain.models import Area, CollectionEntry, Contact, ImportArea
    from orgdir.domain.refs import AreaRef, CollectionRef, ContactRef
    from orgdir.infrastructure.store import GraphStore

_T = TypeVar("_T")

_UNSAFE_SEARCH_CHARS = re.compile(r"[^a-z0-9 -]")

log = structlog.get_logger(__name__)


def to_plain(value: Any) -> Any:
    """Convert models (recursively) to JSON-ready data, dropping unset annotations."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    if isinstance(value, Path):
        return str(value)
    return value


def _entity_id_of(value: Any) -> int | None:
    for attr in ("area_id", "collection_id", "contact_id"):
        found = getattr(value, attr, None)
        if found is not None:
            return int(found)
    return None


class Directory:
    """Entry point over one graph store."""

    def __init__(
        self,
        store: GraphStore,
        config: OrgdirConfig | None = None,
        plugins: PluginManager | None = None,
    ) -> None:
        self._store = store
        self._config = config or OrgdirConfig()
        self._plugins = plugins or PluginManager()
        self.hierarchy = HierarchyEngine(store, self._config)
        self.search_engine = SearchEngine(store, self._config, self.hierarchy)
        self.collections = CollectionEngine(store, self._config)
        self.contacts = ContactStore(store, self._config)
        self.checks = CheckService(store, self._config)

    @classmethod
    def from_settings(cls, settings: OrgdirSettings) -> Directory:
        """Open the configured database and load plugins."""
        from orgdir.infrastructure.store import SqlGraphStore
        from orgdir.plugins.builtins.json_import import JsonImportPlugin

        config = settings.config
        store = SqlGraphStore.open(settings.db_path, timeout=config.store.timeout, atomic=config.store.atomic)
        plugins = PluginManager()
        plugins.register_plugin(JsonImportPlugin(), name="json-import")
        if config.plugins.enabled:
            plugins.discover_and_load()
        return cls(store, config, plugins)

    @property
    def store(self) -> GraphStore:
        return self._store

    @property
    def config(self) -> OrgdirConfig:
        return self._config

    @property
    def plugins(self) -> PluginManager:
        return self._plugins

    def close(self) -> None:
        close = getattr(self._store, "close", None)
        if close is not None:
            close()

    # ------------------------------------------------------------------
    # Handles
    # ------------------------------------------------------------------

    def init_root(self, name: str | None = None, note: str | None = None) -> Area:
        """Create the root area (named ``directory.root_name`` by default)."""
        return self.hierarchy.create_root(name or self._config.directory.root_name, note)

    def root_area(self) -> AreaHandle:
        return AreaHandle(self, self.hierarchy.root())

    def area(self, ref: AreaRef) -> AreaHandle:
        """Resolve *ref* (an id, a model, or ``"root"``) to an :class:`AreaHandle`."""
        if isinstance(ref, str) and ref.strip().lower() == ROOT_SENTINEL:
            return self.root_area()
        return AreaHandle(self, self.hierarchy.load_area(ref))

    def collection(self, ref: CollectionRef) -> CollectionHandle:
        return CollectionHandle(self, self.collections.load_collection(ref))

    def contact(self, ref: ContactRef) -> ContactHandle:
        return ContactHandle(self, self.collections.load_contact(ref))

    # ------------------------------------------------------------------
    # Directory-wide operations
    # ------------------------------------------------------------------

    def orphan_areas(self) -> list[Area]:
        return self.hierarchy.orphans()

    def contact_search(self, query: str) -> list[Contact]:
        """Contacts whose first or last name starts with every term of *query*.

        Terms are lowercased and stripped of anything outside ``[a-z0-9 -]``.
        """
        terms = _UNSAFE_SEARCH_CHARS.sub("", query.lower()).split()
        if not terms:
            return []
        rows = self._store.execute(
            queries.contact_search(len(terms)),
            {f"term_{i}": term for i, term in enumerate(terms)},
        )
        found = [
            contact_from_row({"contact_id": row["contact_id"], "contact_properties": row["properties"]})
            for row in rows
        ]
        return sorted(found, key=contact_sort_key)

    def collection_detail(self, ref: CollectionRef) -> CollectionEntry:
        return self.collections.detail(ref)

    def batch_contacts_by_area(self, refs: Iterable[AreaRef]) -> dict[int, list[CollectionEntry]]:
        """``contacts_by_area`` for several areas at once, keyed by area id."""
        if isinstance(refs, (str, int)):
            raise ValidationError("Expected a list of area ids", ids=refs)
        result: dict[int, list[CollectionEntry]] = {}
        for ref in refs:
            area_id = area_id_of(ref)
            if area_id not in result:
                result[area_id] = self.collections.contacts_by_area(area_id)
        return result

    def bulk_import(self, area: AreaRef, path: Path | str) -> Area:
        """Hand *path* to the import plugins and apply the batch below *area* in one transaction."""
        target = self.area(area).area
        source = Path(path)
        if not source.is_file():
            raise NotFoundError(f"Import file not found: {source}", path=str(source))
        batch = self._plugins.bulk_import(target, source)

        with self._store.transaction() as tx:
            hierarchy = HierarchyEngine(tx, self._config)
            collections = CollectionEngine(tx, self._config)
            created = sum(self._import_area(hierarchy, collections, target, entry) for entry in batch.areas)
        log.info("bulk_import", area_id=target.area_id, path=str(source), areas=created)
        return target

    def _import_area(
        self,
        hierarchy: HierarchyEngine,
        collections: CollectionEngine,
        parent: Area,
        entry: ImportArea,
    ) -> int:
        area = hierarchy.insert_child(parent, entry.name, entry.note)
        if entry.contacts:
            collection = collections.new_collection(area)
            for info in entry.contacts:
                if "contact_id" in info:
                    raise InvalidOperationError("Import entries cannot reference existing contacts", area=entry.name)
                collections.new_contact(collection, info)
        return 1 + sum(self._import_area(hierarchy, collections, area, child) for child in entry.children)

    def check(self) -> dict[str, Any]:
        return self.checks.check()

    # ------------------------------------------------------------------
    # Result boundary
    # ------------------------------------------------------------------

    def call(
        self,
        op: str,
        func: Callable[[], _T],
        *,
        kind: str | None = None,
        entity_id: int | None = None,
    ) -> ServiceResult:
        """Run *func* and wrap its outcome in a :class:`ServiceResult`.

        On success the plain-data value is stored under ``data["result"]``.
        Passing *kind* marks the operation as a mutation: ``post_change``
        hooks run afterwards and their failures become warnings.
        """
        with structlog.contextvars.bound_contextvars(op=op):
            return self._call(op, func, kind, entity_id)

    def _call(self, op: str, func: Callable[[], _T], kind: str | None, entity_id: int | None) -> ServiceResult:
        start = time.perf_counter()
        try:
            value = func()
        except DirectoryError as exc:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            log.debug("directory.op", op=op, ok=False, code=exc.code, duration_ms=duration_ms)
            return ServiceResult.failure(op, exc, detail=to_plain(exc.detail), meta={"duration_ms": duration_ms})

        warnings: list[str] = []
        if kind is not None:
            warnings = self._plugins.notify(op, kind, entity_id if entity_id is not None else _entity_id_of(value))
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        log.debug("directory.op", op=op, ok=True, duration_ms=duration_ms)
        return ServiceResult(
            ok=True,
            op=op,
            data={"result": to_plain(value)},
            warnings=warnings,
            meta={"duration_ms": duration_ms},
        )
