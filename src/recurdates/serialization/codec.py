"""Polymorphic JSON codec for rule trees.

Each rule is written as a JSON object holding its field values plus a
discriminator member naming its concrete class::

    {"$type": "recurdates.domain.rules.NthDayBeforeAfterRule",
     "nth": 3,
     "referenced_rule": {"$type": "recurdates.domain.rules.NthInMonthRule", ...}}

Plain fields are rendered by pydantic's JSON mode. Fields holding rules,
directly or inside lists, dicts and helper models, are encoded recursively
so that every nested rule carries its own discriminator. On decode, only
values whose declared field type can hold a rule are searched for
discriminators; a plain ``dict[str, str]`` keeps a ``"$type"`` key as data.

INVARIANT: The codec only emits and accepts classes in its known-type
set. Unknown classes are rejected, never coerced to a base type.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any, get_args, get_origin

from pydantic import BaseModel, TypeAdapter, ValidationError

from recurdates.domain.rules import Rule
from recurdates.serialization.errors import (
    MalformedTextError,
    TypeMismatchError,
    UnknownTypeError,
)

DEFAULT_DISCRIMINATOR_KEY = "$type"


def type_name(cls: type) -> str:
    """Discriminator for *cls*: its module-qualified name."""
    return f"{cls.__module__}.{cls.__qualname__}"


class PolymorphicCodec:
    """Encode and decode values of *base* against a known-type set.

    Parameters:
        known_types: Classes the codec may emit or accept. Entries that are
            not pydantic subclasses of *base* are ignored.
        base: The polymorphic root type.
        discriminator_key: JSON member holding the concrete type name.
        indent: Passed to :func:`json.dumps`; ``None`` gives compact,
            single-line output.
    """

    def __init__(
        self,
        known_types: Iterable[type],
        *,
        base: type[BaseModel] = Rule,
        discriminator_key: str = DEFAULT_DISCRIMINATOR_KEY,
        indent: int | None = None,
    ) -> None:
        self._base = base
        self._key = discriminator_key
        self._indent = indent
        self._by_name: dict[str, type[BaseModel]] = {
            type_name(cls): cls
            for cls in known_types
            if issubclass(cls, base) and issubclass(cls, BaseModel)
        }

    @property
    def known_names(self) -> list[str]:
        return sorted(self._by_name)

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, value: BaseModel) -> str:
        """Serialize *value* to JSON text.

        Raises:
            TypeMismatchError: If *value* is not an instance of the base.
            UnknownTypeError: If *value* or any nested rule has a class
                outside the known-type set.
        """
        if not isinstance(value, self._base):
            raise TypeMismatchError(self._base, type(value))
        payload = self._encode_model(value)
        if self._indent is None:
            return json.dumps(payload, separators=(",", ":"))
        return json.dumps(payload, indent=self._indent)

    def _encode_model(self, model: BaseModel) -> dict[str, Any]:
        cls = type(model)
        name = type_name(cls)
        if self._by_name.get(name) is not cls:
            raise UnknownTypeError(name)

        return {self._key: name, **self._encode_fields(model)}

    def _encode_fields(self, model: BaseModel) -> dict[str, Any]:
        nested = {
            field for field in type(model).model_fields if self._holds_base(getattr(model, field))
        }
        data = model.model_dump(mode="json", exclude=nested)
        for field in nested:
            data[field] = self._encode_value(getattr(model, field))
        return data

    def _encode_value(self, value: Any) -> Any:
        if isinstance(value, self._base):
            return self._encode_model(value)
        if isinstance(value, BaseModel):
            # Helper models carry no discriminator; their declared type rebuilds them.
            return self._encode_fields(value)
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self._encode_value(item) for item in value]
        if isinstance(value, dict):
            return {str(key): self._encode_value(item) for key, item in value.items()}
        return TypeAdapter(type(value)).dump_python(value, mode="json")

    def _holds_base(self, value: Any) -> bool:
        if isinstance(value, self._base):
            return True
        if isinstance(value, BaseModel):
            return any(self._holds_base(getattr(value, field)) for field in type(value).model_fields)
        if isinstance(value, (list, tuple, set, frozenset)):
            return any(self._holds_base(item) for item in value)
        if isinstance(value, dict):
            return any(self._holds_base(item) for item in value.values())
        return False

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self, text: str) -> BaseModel:
        """Rebuild a value from JSON text produced by :meth:`encode`.

        Raises:
            MalformedTextError: If *text* is not JSON, lacks a valid
                discriminator, or holds fields the concrete type rejects.
            UnknownTypeError: If a discriminator names a class outside the
                known-type set.
        """
        try:
            payload = json.loads(text)
        except RecursionError as exc:
            msg = "Serialized rule is nested too deeply"
            raise MalformedTextError(msg) from exc
        except (TypeError, ValueError) as exc:
            msg = f"Serialized rule is not valid JSON: {exc}"
            raise MalformedTextError(msg) from exc

        if not isinstance(payload, dict) or self._key not in payload:
            msg = f"Serialized rule must be a JSON object with a {self._key!r} member"
            raise MalformedTextError(msg)
        try:
            return self._decode_model(payload)
        except RecursionError as exc:
            msg = "Serialized rule is nested too deeply"
            raise MalformedTextError(msg) from exc

    def _decode_model(self, obj: dict[str, Any]) -> BaseModel:
        name = obj[self._key]
        if not isinstance(name, str):
            msg = f"Discriminator {self._key!r} must be a string, got {type(name).__name__}"
            raise MalformedTextError(msg)

        cls = self._by_name.get(name)
        if cls is None:
            raise UnknownTypeError(name)

        fields = self._decode_fields(cls, {k: v for k, v in obj.items() if k != self._key})
        try:
            return cls.model_validate(fields)
        except (ValidationError, TypeError) as exc:
            msg = f"Invalid fields for {name}: {exc}"
            raise MalformedTextError(msg) from exc

    def _decode_fields(self, cls: type[BaseModel], obj: dict[str, Any]) -> dict[str, Any]:
        declared = cls.model_fields
        return {
            key: self._decode_value(value, declared[key].annotation if key in declared else Any)
            for key, value in obj.items()
        }

    def _decode_value(self, value: Any, annotation: Any = Any) -> Any:
        # Values of fields that cannot hold a rule are left for pydantic as-is.
        if not self._may_hold_base(annotation):
            return value
        if isinstance(value, dict):
            if self._key in value:
                return self._decode_model(value)
            helper = self._helper_model(annotation)
            if helper is not None:
                return self._decode_fields(helper, value)
            return {key: self._decode_value(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._decode_value(item) for item in value]
        return value

    def _may_hold_base(self, annotation: Any, _seen: frozenset[type] = frozenset()) -> bool:
        if annotation is Any:
            return True
        if get_origin(annotation) is not None or not isinstance(annotation, type):
            return any(self._may_hold_base(arg, _seen) for arg in get_args(annotation))
        if issubclass(annotation, self._base):
            return True
        if issubclass(annotation, BaseModel) and annotation not in _seen:
            seen = _seen | {annotation}
            return any(
                self._may_hold_base(field.annotation, seen)
                for field in annotation.model_fields.values()
            )
        return False

    def _helper_model(self, annotation: Any) -> type[BaseModel] | None:
        """The non-rule model in *annotation*, e.g. ``Window`` in ``Window | None``."""
        candidates = get_args(annotation) if get_origin(annotation) is not None else (annotation,)
        for candidate in candidates:
            if (
                isinstance(candidate, type)
                and issubclass(candidate, BaseModel)
                and not issubclass(candidate, self._base)
            ):
                return candidate
        return None
