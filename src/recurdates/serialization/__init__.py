"""Serialization layer — rule type discovery and polymorphic text round-trips.

Registry -> known-type set -> codec, fronted by RuleSerializer.
INVARIANT: Every module is introspected at most once per registry.
"""

from recurdates.serialization.errors import (
    InvalidArgumentKind,
    MalformedTextError,
    ModuleScanError,
    RuleSerializationError,
    TypeMismatchError,
    UnknownTypeError,
)
from recurdates.serialization.known_types import KnownTypeSetBuilder, RuleSource
from recurdates.serialization.registry import RuleTypeRegistry, load_rule_module
from recurdates.serialization.serializer import RuleSerializer

__all__ = [
    "InvalidArgumentKind",
    "KnownTypeSetBuilder",
    "MalformedTextError",
    "ModuleScanError",
    "RuleSerializationError",
    "RuleSerializer",
    "RuleSource",
    "RuleTypeRegistry",
    "TypeMismatchError",
    "UnknownTypeError",
    "load_rule_module",
]
