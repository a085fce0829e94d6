"""Filename date classification.

Rules are data: an ordered tuple of ``DateRule``. Each rule's regex yields
candidate matches, its extractor turns a match into ``(year, month)``, and
one shared validator accepts or rejects the candidate. The first accepted
candidate wins; a rejected one falls through to the next rule.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from ..core.config import MIN_YEAR, DatePreference
from ..core.models import UNCLASSIFIED, ClassificationResult, YearMonth

Extractor = Callable[["re.Match[str]"], Optional[tuple[int, int]]]


@dataclass(frozen=True, slots=True)
class DateRule:
    """One filename pattern and how to read (year, month) out of it."""
    name: str
    pattern: "re.Pattern[str]"
    extractor: Extractor


def _year_month(year_group: int, month_group: int) -> Extractor:
    def extract(m: "re.Match[str]") -> Optional[tuple[int, int]]:
        return int(m.group(year_group)), int(m.group(month_group))
    return extract


def _day_first(m: "re.Match[str]") -> Optional[tuple[int, int]]:
    day, month, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
    if not 1 <= day <= 31:
        return None
    return year, month


def _month_first(m: "re.Match[str]") -> Optional[tuple[int, int]]:
    return int(m.group(3)), int(m.group(1))


_NUMERIC_DATE = re.compile(r"(?<!\d)(\d{1,2})[-_/](\d{1,2})[-_/](\d{4})(?!\d)")

ISO_RULE = DateRule("iso", re.compile(r"(\d{4})[-_]?(\d{2})[-_]?(\d{2})"), _year_month(1, 2))
DAY_FIRST_RULE = DateRule("day-first", _NUMERIC_DATE, _day_first)
MONTH_FIRST_RULE = DateRule("month-first", _NUMERIC_DATE, _month_first)
COMPACT_RULE = DateRule(
    "compact", re.compile(r"(\d{4})(\d{2})(\d{2})(?:_\d{6})?"), _year_month(1, 2)
)
PARTIAL_RULE = DateRule("partial", re.compile(r"(\d{4})\D*(\d{2})"), _year_month(1, 2))


def build_rules(preference: DatePreference = DatePreference.DAY_FIRST) -> tuple[DateRule, ...]:
    """Ordered rule table for a day/month preference."""
    if preference == DatePreference.MONTH_FIRST:
        numeric = (MONTH_FIRST_RULE, DAY_FIRST_RULE)
    else:
        numeric = (DAY_FIRST_RULE, MONTH_FIRST_RULE)
    return (ISO_RULE, *numeric, COMPACT_RULE, PARTIAL_RULE)


class DateClassifier:
    """Maps a filename to a (year, month) target.

    A pure function of the filename and the current year. Pass
    ``current_year`` to pin the upper bound in tests.
    """

    def __init__(
        self,
        preference: DatePreference = DatePreference.DAY_FIRST,
        min_year: int = MIN_YEAR,
        current_year: Optional[int] = None,
    ):
        self._rules = build_rules(preference)
        self._min_year = min_year
        self._current_year = current_year

    @property
    def rules(self) -> tuple[DateRule, ...]:
        return self._rules

    @property
    def max_year(self) -> int:
        return self._current_year or date.today().year

    def is_valid(self, year: int, month: int) -> bool:
        return self._min_year <= year <= self.max_year and 1 <= month <= 12

    def match(self, filename: str) -> Optional[tuple[YearMonth, str]]:
        """Find the first accepted candidate.

        Returns:
            ``(YearMonth, rule_name)`` or None.
        """
        for rule in self._rules:
            for m in rule.pattern.finditer(filename):
                candidate = rule.extractor(m)
                if candidate is not None and self.is_valid(*candidate):
                    return YearMonth(*candidate), rule.name
        return None

    def classify(self, filename: str) -> ClassificationResult:
        found = self.match(filename)
        return found[0] if found else UNCLASSIFIED

    def classify_datetime(self, dt: datetime) -> ClassificationResult:
        """Apply the same validation window to a metadata or mtime date."""
        if self.is_valid(dt.year, dt.month):
            return YearMonth(dt.year, dt.month)
        return UNCLASSIFIED
