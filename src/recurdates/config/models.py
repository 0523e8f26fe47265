"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, recurdates.toml only contains
overrides. An absent file is equivalent to an empty one.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class SerializationConfig(BaseModel):
    """[serialization] section."""

    model_config = {"frozen": True}

    discriminator_key: str = Field(default="$type", min_length=1)
    indent: int | None = None
    # Dotted module names scanned for rule types when the serializer is built.
    rule_modules: list[str] = Field(default_factory=list)


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    enabled: bool = True
    local_dir: Path | None = None
