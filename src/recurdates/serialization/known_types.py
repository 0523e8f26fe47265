"""Known-type set construction.

A known-type set is the closed collection of classes one serialize or
deserialize call may emit or accept.  It is rebuilt on every call from:

- the core rule module (always implied, first),
- any modules the caller passes (scanned through the registry),
- any classes the caller passes explicitly.

The registry contributes *everything it has ever scanned*, not only the
modules named in the current call: once a module's types are known they
stay known for later calls on the same registry.
"""

from __future__ import annotations

from collections.abc import Iterable
from types import ModuleType
from typing import TypeAlias

from recurdates.domain import rules as core_rules
from recurdates.serialization.errors import InvalidArgumentKind
from recurdates.serialization.registry import RuleTypeRegistry

RuleSource: TypeAlias = ModuleType | type
"""A module to scan for rule types, or an explicit class."""


def partition_sources(
    items: Iterable[object],
) -> tuple[list[ModuleType], list[type]]:
    """Split *items* into modules and classes.

    Raises:
        InvalidArgumentKind: On the first element that is neither,
            naming its actual type.
    """
    modules: list[ModuleType] = []
    types: list[type] = []
    for item in items:
        if isinstance(item, ModuleType):
            modules.append(item)
        elif isinstance(item, type):
            types.append(item)
        else:
            raise InvalidArgumentKind(type(item).__qualname__)
    return modules, types


class KnownTypeSetBuilder:
    """Resolve caller-supplied rule sources into a known-type set.

    Parameters:
        registry: Cache used to scan modules.
        core_module: Module whose rule types are always included.
    """

    def __init__(
        self,
        registry: RuleTypeRegistry,
        *,
        core_module: ModuleType = core_rules,
    ) -> None:
        self._registry = registry
        self._core_module = core_module

    @property
    def registry(self) -> RuleTypeRegistry:
        return self._registry

    def build(self, items: Iterable[RuleSource] = ()) -> frozenset[type]:
        """Return the de-duplicated known-type set for *items*.

        All elements are validated before any module is scanned.
        """
        modules, explicit = partition_sources([self._core_module, *items])
        for module in modules:
            self._registry.ensure_scanned(module)
        return self._registry.all_known_types() | frozenset(explicit)
