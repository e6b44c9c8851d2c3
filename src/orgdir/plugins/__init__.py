"""Extension layer — plugin system via pluggy.

INVARIANT: post-change plugin failures are warnings, never errors.
"""

import pluggy

from orgdir.plugins.manager import PluginManager

hookimpl = pluggy.HookimplMarker("orgdir")

__all__ = ["PluginManager", "hookimpl"]
