"""Serialization error taxonomy.

All errors are raised to the immediate caller and never retried.
Each also derives from the closest builtin so callers that only know
``TypeError``/``ValueError``/``LookupError`` still catch them.
"""

from __future__ import annotations


class RuleSerializationError(Exception):
    """Base class for every error raised by the serialization layer."""


class ModuleScanError(RuleSerializationError):
    """A supplied module could not be loaded or introspected."""

    def __init__(self, module_name: str, reason: str = "") -> None:
        self.module_name = module_name
        msg = f"Could not scan rule module {module_name!r}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class InvalidArgumentKind(RuleSerializationError, TypeError):
    """A module/type list element was neither a module nor a class."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(
            f"Rule sources should only contain modules or classes, but found: {kind}"
        )


class UnknownTypeError(RuleSerializationError, LookupError):
    """A concrete rule type is not part of the known-type set.

    Raised when encoding a rule whose class was not registered, and when
    decoding text whose discriminator names an unregistered class.
    """

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(
            f"Rule type {type_name!r} is not a known type; "
            "pass the module or class that defines it"
        )


class MalformedTextError(RuleSerializationError, ValueError):
    """Text is not a valid serialized rule."""


class TypeMismatchError(RuleSerializationError, TypeError):
    """A value is not an instance of the requested rule type."""

    def __init__(self, expected: type, actual: type) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Expected an instance of {expected.__qualname__}, got {actual.__qualname__}"
        )
