"""RuleSerializer — round-trip rule trees to text.

Rule types are found by introspecting modules; the built-in rule module
is always searched. Reusing one serializer reuses its registry, so each
module is introspected once no matter how many calls name it.

Usage::

    text = RuleSerializer.instance().serialize(rule)
    rule = RuleSerializer.instance().deserialize(text)

    # Custom rules: pass their module and/or their classes.
    text = serializer.serialize(custom_rule, [my_rules_module])
    rule = serializer.deserialize(text, [MyCustomRule])
"""

from __future__ import annotations

import importlib
import logging
import threading
from collections.abc import Iterable
from types import ModuleType
from typing import TYPE_CHECKING, TypeVar

from recurdates.domain import rules as core_rules
from recurdates.domain.rules import Rule
from recurdates.serialization.codec import DEFAULT_DISCRIMINATOR_KEY, PolymorphicCodec
from recurdates.serialization.errors import ModuleScanError, TypeMismatchError
from recurdates.serialization.known_types import (
    KnownTypeSetBuilder,
    RuleSource,
    partition_sources,
)
from recurdates.serialization.registry import RuleTypeRegistry

if TYPE_CHECKING:
    from recurdates.config.settings import RecurSettings

R = TypeVar("R", bound=Rule)

logger = logging.getLogger(__name__)


class RuleSerializer:
    """Serialize and deserialize :class:`Rule` trees.

    Holds no per-call state: the known-type set is rebuilt for every
    call, so one instance may be shared across threads.

    Parameters:
        registry: Type cache to use. Pass a fresh one for isolation;
            by default each serializer owns a private registry.
        core_module: Module whose rule types are always known.
        discriminator_key: JSON member naming each value's concrete type.
        indent: JSON indentation; ``None`` gives single-line text.
    """

    _instance: RuleSerializer | None = None
    _instance_lock = threading.Lock()

    def __init__(
        self,
        registry: RuleTypeRegistry | None = None,
        *,
        core_module: ModuleType = core_rules,
        discriminator_key: str = DEFAULT_DISCRIMINATOR_KEY,
        indent: int | None = None,
    ) -> None:
        self._registry = registry if registry is not None else RuleTypeRegistry()
        self._builder = KnownTypeSetBuilder(self._registry, core_module=core_module)
        self._discriminator_key = discriminator_key
        self._indent = indent
        self._pinned: tuple[type, ...] = ()
        self._pin_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Shared instance
    # ------------------------------------------------------------------

    @classmethod
    def instance(cls) -> RuleSerializer:
        """Process-wide serializer, built once from :class:`RecurSettings`.

        Use it to benefit from cached discovery across repeated calls.
        It is never torn down; tests that need fresh discovery should
        construct their own serializer instead.
        """
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    from recurdates.config.settings import RecurSettings

                    cls._instance = cls.from_settings(RecurSettings.load())
        return cls._instance

    @classmethod
    def from_settings(
        cls,
        settings: RecurSettings,
        *,
        registry: RuleTypeRegistry | None = None,
    ) -> RuleSerializer:
        """Build a serializer configured by *settings*.

        Modules listed in ``serialization.rule_modules`` and the modules and
        classes contributed by plugins are preloaded, which makes their
        types known to every later call on this serializer. When
        ``setup_logging`` is set, logging is configured first so that
        plugin warnings are rendered.

        Raises:
            ModuleScanError: If a configured module cannot be imported.
        """
        if settings.setup_logging:
            from recurdates.config.logging import configure_from_settings

            configure_from_settings(settings)

        serializer = cls(
            registry,
            discriminator_key=settings.serialization.discriminator_key,
            indent=settings.serialization.indent,
        )

        preload: list[RuleSource] = []
        for dotted in settings.serialization.rule_modules:
            try:
                preload.append(importlib.import_module(dotted))
            except ImportError as exc:
                raise ModuleScanError(dotted, str(exc)) from exc

        if settings.plugins.enabled:
            from recurdates.plugins.manager import PluginManager

            pm = PluginManager()
            pm.discover_and_load(local_dir=settings.plugins.local_dir)
            preload.extend(pm.collect_rule_sources())

        if preload:
            serializer.preload(preload)
        return serializer

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def registry(self) -> RuleTypeRegistry:
        return self._registry

    def preload(self, sources: Iterable[RuleSource]) -> frozenset[type]:
        """Scan *sources* now; return the resulting known-type set.

        Modules are remembered by the registry, so they widen every
        serializer sharing it. Explicit classes are pinned to this
        serializer only and join the known types of each later call.
        """
        sources = list(sources)
        _, explicit = partition_sources(sources)
        known = self._builder.build([*self._pinned, *sources])
        with self._pin_lock:
            self._pinned = tuple(dict.fromkeys([*self._pinned, *explicit]))
        logger.debug("Preloaded %d known rule type(s)", len(known))
        return known

    def known_types(self, extra: Iterable[RuleSource] = ()) -> frozenset[type]:
        """The known-type set a call with *extra* would use."""
        return self._builder.build([*self._pinned, *extra])

    def serialize(self, rule: Rule, extra: Iterable[RuleSource] = ()) -> str:
        """Encode *rule* to text.

        Args:
            rule: The rule tree to encode. It is not modified.
            extra: Modules to search for custom rule types and/or custom
                rule classes. The built-in rule module is always searched.

        Raises:
            InvalidArgumentKind: If *extra* holds something other than
                modules and classes.
            UnknownTypeError: If a rule in the tree has a type outside the
                known-type set.
            ModuleScanError: If a module in *extra* cannot be introspected.
        """
        return self._codec(extra).encode(rule)

    def deserialize(
        self,
        text: str,
        extra: Iterable[RuleSource] = (),
        *,
        rule_type: type[R] = Rule,  # type: ignore[assignment]
    ) -> R:
        """Rebuild a rule from *text*.

        Args:
            text: Output of :meth:`serialize`.
            extra: Modules and/or classes needed to resolve custom rule
                types. Must cover every type present in *text*.
            rule_type: Class the result must be an instance of.

        Raises:
            InvalidArgumentKind: If *extra* holds something other than
                modules and classes.
            UnknownTypeError: If *text* names a type outside the known-type set.
            MalformedTextError: If *text* is not a serialized rule.
            TypeMismatchError: If the result is not a *rule_type*.
        """
        decoded = self._codec(extra).decode(text)
        if not isinstance(decoded, rule_type):
            raise TypeMismatchError(rule_type, type(decoded))
        return decoded

    def _codec(self, extra: Iterable[RuleSource]) -> PolymorphicCodec:
        return PolymorphicCodec(
            self.known_types(extra),
            base=Rule,
            discriminator_key=self._discriminator_key,
            indent=self._indent,
        )
