"""Rule models — the date-matching capability and the built-in variants.

Every rule answers one question: does it match a given date?  Rules
compose by reference (``NthInMonthRule``, ``NthDayBeforeAfterRule``) and
by set algebra (``UnionRule``, ``IntersectionRule``, ``DifferenceRule``),
so a schedule is a tree of rule models.

Concrete rules are discovered by :mod:`recurdates.serialization.registry`
through introspection of this module, which is why every concrete class
here must:

- be public (no leading underscore),
- subclass :class:`Rule` and implement :meth:`Rule.is_match`,
- be constructible with no arguments (every field has a default).

INVARIANT: Rules are frozen. Composition helpers return new rules.
"""

from __future__ import annotations

import calendar
import inspect
from abc import ABC, abstractmethod
from collections.abc import Iterator
from datetime import date, timedelta
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, Field, model_validator


class DayOfWeek(StrEnum):
    """Weekdays, in ``date.weekday()`` order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def of(cls, day: date) -> DayOfWeek:
        return list(cls)[day.weekday()]


def _days_in_month(day: date) -> Iterator[date]:
    _, last = calendar.monthrange(day.year, day.month)
    for n in range(1, last + 1):
        yield day.replace(day=n)


# ---------------------------------------------------------------------------
# Capability
# ---------------------------------------------------------------------------


class Rule(BaseModel, ABC):
    """Base rule — something that can be matched against a date.

    Subclasses declare their parameters as pydantic fields and implement
    :meth:`is_match`.  Fields typed as ``Rule`` may hold any concrete rule;
    the serializer records the concrete type alongside the field values.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    @model_validator(mode="after")
    def _reject_abstract(self) -> Self:
        # Nested validation allocates without __new__, bypassing ABC checks.
        if inspect.isabstract(type(self)):
            msg = f"{type(self).__qualname__} is abstract and cannot be built from data"
            raise ValueError(msg)
        return self

    @abstractmethod
    def is_match(self, day: date) -> bool:
        """Return True if *day* satisfies this rule."""

    def matches_between(self, start: date, end: date) -> Iterator[date]:
        """Yield every matching date in the closed range ``[start, end]``."""
        current = start
        while current <= end:
            if self.is_match(current):
                yield current
            current += timedelta(days=1)

    # --- Composition helpers ---

    def the_nth_occurrence_in_the_month(self, nth: int) -> NthInMonthRule:
        """Restrict this rule to its *nth* match in each month (-1 = last)."""
        return NthInMonthRule(nth=nth, referenced_rule=self)

    def days_after(self, days: int) -> NthDayBeforeAfterRule:
        return NthDayBeforeAfterRule(nth=days, referenced_rule=self)

    def days_before(self, days: int) -> NthDayBeforeAfterRule:
        return NthDayBeforeAfterRule(nth=-days, referenced_rule=self)

    def __or__(self, other: Rule) -> UnionRule:
        return UnionRule(rules=[self, other])

    def __and__(self, other: Rule) -> IntersectionRule:
        return IntersectionRule(rules=[self, other])

    def __sub__(self, other: Rule) -> DifferenceRule:
        return DifferenceRule(include=self, exclude=other)


# ---------------------------------------------------------------------------
# Calendar rules
# ---------------------------------------------------------------------------


class EveryDayRule(Rule):
    """Matches every date."""

    def is_match(self, day: date) -> bool:
        return True


class NeverRule(Rule):
    """Matches no date."""

    def is_match(self, day: date) -> bool:
        return False


class DayOfWeekRule(Rule):
    """Matches dates falling on one of *days*."""

    days: list[DayOfWeek] = Field(default_factory=list)

    def is_match(self, day: date) -> bool:
        return DayOfWeek.of(day) in self.days


class DayOfMonthRule(Rule):
    """Matches a fixed day of the month.

    Negative values count from the end of the month: ``-1`` is the last
    day.  Months shorter than ``day`` have no match.
    """

    day: int = Field(default=1, ge=-31, le=31)

    def is_match(self, day: date) -> bool:
        if self.day == 0:
            return False
        if self.day > 0:
            return day.day == self.day
        _, last = calendar.monthrange(day.year, day.month)
        return day.day == last + self.day + 1


class MonthOfYearRule(Rule):
    """Matches dates in one of *months* (1 = January)."""

    months: list[int] = Field(default_factory=list)

    def is_match(self, day: date) -> bool:
        return day.month in self.months


class SpecificDatesRule(Rule):
    """Matches an explicit list of dates."""

    dates: list[date] = Field(default_factory=list)

    def is_match(self, day: date) -> bool:
        return day in self.dates


class DateRangeRule(Rule):
    """Matches dates between *start* and *end*, inclusive.

    A missing bound is open.
    """

    start: date | None = None
    end: date | None = None

    def is_match(self, day: date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


# ---------------------------------------------------------------------------
# Referencing rules
# ---------------------------------------------------------------------------


class NthInMonthRule(Rule):
    """Matches the *nth* date of each month matched by *referenced_rule*.

    ``EveryDayRule().the_nth_occurrence_in_the_month(28)`` is the 28th of
    every month that has one; ``DayOfWeekRule(days=[FRIDAY])`` with
    ``nth=-1`` is the last Friday of each month.
    """

    nth: int = 1
    referenced_rule: Rule | None = None

    def is_match(self, day: date) -> bool:
        if self.nth == 0 or self.referenced_rule is None:
            return False
        if not self.referenced_rule.is_match(day):
            return False
        occurrences = [d for d in _days_in_month(day) if self.referenced_rule.is_match(d)]
        index = self.nth - 1 if self.nth > 0 else len(occurrences) + self.nth
        return 0 <= index < len(occurrences) and occurrences[index] == day


class NthDayBeforeAfterRule(Rule):
    """Matches dates *nth* days after a match of *referenced_rule*.

    Negative *nth* means "days before".
    """

    nth: int = 0
    referenced_rule: Rule | None = None

    def is_match(self, day: date) -> bool:
        if self.referenced_rule is None:
            return False
        try:
            shifted = day - timedelta(days=self.nth)
        except OverflowError:
            return False
        return self.referenced_rule.is_match(shifted)


# ---------------------------------------------------------------------------
# Set rules
# ---------------------------------------------------------------------------


class UnionRule(Rule):
    """Matches when any child rule matches."""

    rules: list[Rule] = Field(default_factory=list)

    def is_match(self, day: date) -> bool:
        return any(rule.is_match(day) for rule in self.rules)


class IntersectionRule(Rule):
    """Matches when every child rule matches. An empty intersection never matches."""

    rules: list[Rule] = Field(default_factory=list)

    def is_match(self, day: date) -> bool:
        return bool(self.rules) and all(rule.is_match(day) for rule in self.rules)


class DifferenceRule(Rule):
    """Matches *include* except where *exclude* also matches."""

    include: Rule | None = None
    exclude: Rule | None = None

    def is_match(self, day: date) -> bool:
        if self.include is None or not self.include.is_match(day):
            return False
        return self.exclude is None or not self.exclude.is_match(day)
