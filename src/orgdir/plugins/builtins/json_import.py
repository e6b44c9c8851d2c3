"""Built-in bulk importer for ``.json`` data files.

The file holds an :class:`~orgdir.domain.models.ImportBatch`, either as the
full object or as a bare list of areas::

    [
      {"name": "Housing", "contacts": [{"first_name": "Ann", "position": "Officer"}],
       "children": [{"name": "Off-campus"}]}
    ]

Files with any other suffix are left for other plugins.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pydantic

from orgdir.domain.errors import ImportFailure
from orgdir.domain.models import ImportBatch
from orgdir.plugins import hookimpl

if TYPE_CHECKING:
    from pathlib import Path

    from orgdir.domain.models import Area

logger = logging.getLogger(__name__)


class JsonImportPlugin:
    """Reads area batches from JSON files."""

    @hookimpl
    def orgdir_bulk_import(self, area: Area, path: Path) -> ImportBatch | None:
        if path.suffix.lower() != ".json":
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ImportFailure(f"Cannot read {path.name}: {exc}", path=str(path)) from exc

        if isinstance(raw, list):
            raw = {"areas": raw}
        try:
            batch = ImportBatch.model_validate(raw)
        except pydantic.ValidationError as exc:
            raise ImportFailure(
                f"{path.name} is not a valid import batch",
                path=str(path),
                errors=[err["msg"] for err in exc.errors()],
            ) from exc
        logger.debug("Parsed %d top-level areas from %s for area %s", len(batch.areas), path, area.area_id)
        return batch
