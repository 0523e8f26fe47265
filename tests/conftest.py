"""Shared pytest fixtures and test helpers for recurdates tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from types import ModuleType

import pytest
import structlog

from recurdates.serialization.registry import RuleTypeRegistry
from recurdates.serialization.serializer import RuleSerializer


@pytest.fixture
def registry() -> RuleTypeRegistry:
    """A fresh registry with nothing scanned."""
    return RuleTypeRegistry()


@pytest.fixture
def serializer(registry: RuleTypeRegistry) -> RuleSerializer:
    """A private serializer bound to the fresh ``registry`` fixture."""
    return RuleSerializer(registry)


@pytest.fixture
def custom_rules() -> ModuleType:
    """Module defining custom rules outside the core rule module."""
    from tests.fixtures import custom_rules

    return custom_rules


@pytest.fixture
def restore_logging() -> Generator[None]:
    """Put the ``recurdates`` logger and structlog back as they were."""
    pkg = logging.getLogger("recurdates")
    handlers, level, propagate = pkg.handlers[:], pkg.level, pkg.propagate
    yield
    pkg.handlers = handlers
    pkg.setLevel(level)
    pkg.propagate = propagate
    structlog.reset_defaults()


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def write_rule_module(path, body: str) -> None:
    """Write a single-file rule module that imports the Rule base."""
    header = "from datetime import date\n\nfrom recurdates.domain.rules import Rule\n\n\n"
    path.write_text(header + body, encoding="utf-8")


def builtin_rule_types() -> frozenset[type]:
    """Every concrete rule class defined in the core rule module."""
    from recurdates.domain import rules

    return frozenset(
        {
            rules.EveryDayRule,
            rules.NeverRule,
            rules.DayOfWeekRule,
            rules.DayOfMonthRule,
            rules.MonthOfYearRule,
            rules.SpecificDatesRule,
            rules.DateRangeRule,
            rules.NthInMonthRule,
            rules.NthDayBeforeAfterRule,
            rules.UnionRule,
            rules.IntersectionRule,
            rules.DifferenceRule,
        }
    )
