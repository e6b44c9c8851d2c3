"""Plugin discovery, loading and hook dispatch.

Discovery: entry points in the ``orgdir.plugins`` group (pip-installed
plugins), loaded through pluggy's setuptools support, plus the built-in
plugins registered by the façade factory.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING

import pluggy

from orgdir.domain.errors import ImportFailure
from orgdir.plugins.hookspecs import OrgdirHookSpec

if TYPE_CHECKING:
    from pathlib import Path

    from orgdir.domain.models import Area, ImportBatch

PROJECT_NAME = "orgdir"
ENTRY_POINT_GROUP = "orgdir.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """Manages plugin registration and hook dispatch."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(OrgdirHookSpec)
        self._loaded = False

    def discover_and_load(self) -> list[str]:
        """Load entry-point plugins and return the names of all registered plugins."""
        self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        self._normalize_plugin_instances()
        self._loaded = True
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register a plugin instance directly (e.g. built-in plugins)."""
        resolved_name = name or plugin.__class__.__name__
        self._pm.register(plugin, name=resolved_name)
        logger.debug("Registered plugin: %s", resolved_name)

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    @property
    def is_loaded(self) -> bool:
        """Whether discover_and_load() has been called."""
        return self._loaded

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def list_plugin_names(self) -> list[str]:
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def bulk_import(self, area: Area, path: Path) -> ImportBatch:
        """Ask the import plugins for a batch; the first one to answer wins.

        Raises:
            ImportFailure: If no plugin handles *path*, or the one that does fails.
        """
        try:
            batch = self._pm.hook.orgdir_bulk_import(area=area, path=path)
        except ImportFailure:
            raise
        except Exception as exc:
            raise ImportFailure(f"Import plugin failed on {path.name}: {exc}", path=str(path)) from exc
        if batch is None:
            raise ImportFailure(f"No import plugin accepts {path.name}", path=str(path))
        return batch

    def notify(self, op: str, kind: str, entity_id: int | None) -> list[str]:
        """Dispatch ``post_change`` to every plugin; return one warning per failure."""
        kwargs = {"op": op, "kind": kind, "entity_id": entity_id}
        warnings: list[str] = []
        for impl in self._pm.hook.post_change.get_hookimpls():
            try:
                impl.function(**{name: kwargs[name] for name in impl.argnames})
            except Exception as exc:
                logger.warning("Plugin %s failed on post_change(%s)", impl.plugin_name, op, exc_info=True)
                warnings.append(f"Plugin {impl.plugin_name} failed on {op}: {exc}")
        return warnings

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _normalize_plugin_instances(self) -> None:
        """Replace registered plugin classes with instantiated objects.

        Entry-point loading may register a plugin class directly; hook
        dispatch against a class leaves ``self`` unbound.
        """
        for plugin in list(self._pm.get_plugins()):
            if not inspect.isclass(plugin) or not self._has_hook_impls(plugin):
                continue
            plugin_name = self._pm.get_name(plugin) or plugin.__name__
            self._pm.unregister(plugin)
            try:
                instance = plugin()
            except Exception:
                logger.warning("Failed to instantiate entry-point plugin %s", plugin_name, exc_info=True)
                continue
            self._pm.register(instance, name=plugin_name)
            logger.debug("Instantiated entry-point plugin: %s", plugin_name)

    @staticmethod
    def _has_hook_impls(cls: type) -> bool:
        """Whether *cls* carries ``@hookimpl`` methods (pluggy sets ``orgdir_impl``)."""
        for name in dir(cls):
            if name.startswith("_"):
                continue
            method = getattr(cls, name, None)
            if callable(method) and getattr(method, "orgdir_impl", None):
                return True
        return False
