"""Extension layer — plugin system via pluggy.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints,
plus single-file plugins from a local directory.
INVARIANT: Plugin failures are warnings, never errors.
"""

from recurdates.plugins.manager import PluginManager, hookimpl

__all__ = ["PluginManager", "hookimpl"]
