"""Rule type discovery with a per-module cache.

The registry introspects a module once, keeps the concrete rule classes
it defines, and answers every later request for that module from the
cache.  Modules are assumed immutable once loaded: entries are never
re-scanned or invalidated for the lifetime of the registry.

INVARIANT: One entry per module name. Concurrent first scans of the same
module may both run discovery, but only the first result is committed.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
import sys
import threading
from pathlib import Path
from types import ModuleType

from recurdates.domain.rules import Rule
from recurdates.serialization.errors import ModuleScanError

logger = logging.getLogger(__name__)


class RuleTypeRegistry:
    """Cache of concrete rule types, keyed by module name.

    Parameters:
        base: The capability class. A discovered type must subclass it,
            be public, be defined in the scanned module, and not be
            abstract.
    """

    def __init__(self, base: type = Rule) -> None:
        self._base = base
        self._entries: dict[str, frozenset[type]] = {}
        self._lock = threading.Lock()

    @property
    def base(self) -> type:
        return self._base

    def ensure_scanned(self, module: ModuleType) -> None:
        """Discover the rule types in *module* unless already cached.

        Raises:
            ModuleScanError: If the module cannot be introspected. No
                entry is recorded for it in that case.
        """
        name = _module_name(module)
        with self._lock:
            if name in self._entries:
                return

        found = self._discover(module, name)

        with self._lock:
            if name in self._entries:
                logger.debug("Discarding duplicate scan of %s", name)
                return
            self._entries[name] = found
        logger.debug("Scanned rule module %s: %d rule type(s)", name, len(found))

    def all_known_types(self) -> frozenset[type]:
        """Union of the types found in every module scanned so far."""
        with self._lock:
            entries = list(self._entries.values())
        return frozenset().union(*entries)

    def types_for(self, module: ModuleType) -> frozenset[type]:
        """Return the cached types for *module* (scanning it if needed)."""
        self.ensure_scanned(module)
        with self._lock:
            return self._entries[_module_name(module)]

    def is_scanned(self, module: ModuleType | str) -> bool:
        name = module if isinstance(module, str) else _module_name(module)
        with self._lock:
            return name in self._entries

    def scanned_modules(self) -> list[str]:
        """Names of every module with a cache entry, in scan order."""
        with self._lock:
            return list(self._entries)

    def _discover(self, module: ModuleType, name: str) -> frozenset[type]:
        """Introspect *module* for concrete subclasses of the base type."""
        try:
            members = inspect.getmembers(module, inspect.isclass)
        except Exception as exc:
            raise ModuleScanError(name, str(exc) or type(exc).__name__) from exc

        found: set[type] = set()
        for attr_name, obj in members:
            if attr_name.startswith("_") or obj.__name__.startswith("_"):
                continue
            if obj.__module__ != name:
                continue  # skip imported classes
            if obj is self._base or not issubclass(obj, self._base):
                continue
            if inspect.isabstract(obj):
                continue
            found.add(obj)
        return frozenset(found)


def _module_name(module: ModuleType) -> str:
    name = getattr(module, "__name__", None)
    if not isinstance(name, str) or not name:
        raise ModuleScanError(repr(module), "module has no name")
    return name


def load_rule_module(path: Path, *, module_name: str | None = None) -> ModuleType:
    """Load a single-file Python module that defines custom rules.

    The module is registered in ``sys.modules`` under *module_name*
    (default ``recurdates_rules_<stem>``) before it executes; pydantic
    resolves the annotations of its models through that entry.

    Raises:
        ModuleScanError: If the file cannot be found or executed.
    """
    name = module_name or f"recurdates_rules_{path.stem}"
    if not path.is_file():
        raise ModuleScanError(name, f"no such file: {path}")

    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ModuleScanError(name, f"could not create module spec for {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        # Clean up partial module registration
        sys.modules.pop(name, None)
        raise ModuleScanError(name, f"failed to execute {path}") from exc

    logger.debug("Loaded rule module %s from %s", name, path)
    return module
