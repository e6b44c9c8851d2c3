"""Locate ``orgdir.toml``.

``ORGDIR_CONFIG`` names the file outright; otherwise the nearest
``orgdir.toml`` in the start directory or one of its parents is used, the
way git finds ``.git/``.  The directory holding the file becomes the
directory root that a relative ``[store] path`` resolves against.
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "orgdir.toml"
CONFIG_ENV_VAR = "ORGDIR_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Return the config file for *start* (default: cwd), or None.

    An ``ORGDIR_CONFIG`` that points at a missing file yields None rather
    than falling back to the walk-up.
    """
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        path = Path(explicit)
        return path if path.is_file() else None

    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None
