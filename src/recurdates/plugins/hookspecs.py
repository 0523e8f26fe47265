"""Pluggy hook specifications for recurdates.

One setup-time hook lets plugins contribute rule modules and rule
classes to the serializer's known types.
"""

from __future__ import annotations

from types import ModuleType

import pluggy

hookspec = pluggy.HookspecMarker("recurdates")


class RecurdatesHookSpec:
    """Hook specifications for the recurdates plugin system."""

    @hookspec
    def register_rule_sources(self) -> list[ModuleType | type] | None:
        """Return modules to scan for rule types and/or explicit rule classes."""
