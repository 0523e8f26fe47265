"""Domain layer — the rule capability and the built-in rules.

This layer depends only on stdlib and pydantic.
It must never import from serialization, plugins, or config.
"""
