"""Pluggy hook specifications for orgdir.

Two kinds of hook:

- ``orgdir_bulk_import`` turns a data file into an :class:`ImportBatch`.
  First non-None result wins, so a plugin returns None for files it does
  not understand.
- ``post_change`` is called after every successful mutation.  Failures are
  reported as warnings on the result, never as errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from pathlib import Path

    from orgdir.domain.models import Area, ImportBatch

hookspec = pluggy.HookspecMarker("orgdir")


class OrgdirHookSpec:
    """Hook specifications for the orgdir plugin system."""

    @hookspec(firstresult=True)
    def orgdir_bulk_import(self, area: Area, path: Path) -> ImportBatch | None:
        """Parse *path* into a batch of areas to create below *area*.

        Raise :class:`~orgdir.domain.errors.ImportFailure` if the file is
        meant for this plugin but cannot be read.
        """

    @hookspec
    def post_change(self, op: str, kind: str, entity_id: int | None) -> None:
        """Called after a mutation (``op``) touching an entity of ``kind``."""
