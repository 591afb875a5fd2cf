"""
Lunar Calendar Converter - lunar to solar date conversion.

Uses the lunar-python library (Chinese lunisolar calendar) for the actual
calendrical computation.

Usage:
    from lunar_birthday.lunar.converter import LunarCalendarConverter

    converter = LunarCalendarConverter()
    conversion = converter.convert(2026, 1, 1)
    # conversion.solar_date == date(2026, 2, 17)
    # conversion.label == "农历正月初一"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from lunar_python import Lunar, LunarMonth

from lunar_birthday.core.exceptions import LunarDateError

logger = logging.getLogger(__name__)

SHORT_MONTH_RULES = ("strict", "clamp")


@dataclass(frozen=True)
class LunarConversion:
    """A lunar date resolved to its solar date in one lunar year."""

    label: str
    solar_date: date


class LunarCalendarConverter:
    """
    Convert lunar (month, day) pairs to solar dates for a given lunar year.

    Short month rule:
        Lunar months have 29 or 30 days, varying by year. A birthday on day 30
        does not exist in years where that month is short.
        - "strict": raise LunarDateError
        - "clamp": use the last day (29) of the short month
    """

    def __init__(self, short_month_rule: str = "strict"):
        if short_month_rule not in SHORT_MONTH_RULES:
            raise ValueError(
                f"Unsupported short month rule: {short_month_rule} "
                f"(expected one of {', '.join(SHORT_MONTH_RULES)})"
            )
        self.short_month_rule = short_month_rule

    def convert(self, year: int, month: int, day: int) -> LunarConversion:
        """
        Convert a lunar date to a solar date.

        Args:
            year: Lunar year
            month: Lunar month (1-12, non-leap)
            day: Lunar day (1-30)

        Returns:
            LunarConversion with the solar date and a readable lunar label

        Raises:
            LunarDateError: If the date does not exist in that lunar year

        Examples:
            >>> LunarCalendarConverter().convert(2026, 8, 15).solar_date
            datetime.date(2026, 9, 25)
        """
        if not 1 <= month <= 12:
            raise LunarDateError(year, month, day, "month must be between 1 and 12")
        if not 1 <= day <= 30:
            raise LunarDateError(year, month, day, "day must be between 1 and 30")

        effective_day = self._resolve_day(year, month, day)

        try:
            lunar = Lunar.fromYmd(year, month, effective_day)
            solar = lunar.getSolar()
            solar_date = date(solar.getYear(), solar.getMonth(), solar.getDay())
        except LunarDateError:
            raise
        except Exception as e:
            raise LunarDateError(year, month, day, str(e)) from e

        label = f"农历{lunar.getMonthInChinese()}月{lunar.getDayInChinese()}"
        return LunarConversion(label=label, solar_date=solar_date)

    def _resolve_day(self, year: int, month: int, day: int) -> int:
        """Apply the short month rule to day 30."""
        if day < 30:
            return day

        try:
            lunar_month = LunarMonth.fromYm(year, month)
        except Exception as e:
            raise LunarDateError(year, month, day, str(e)) from e
        if lunar_month is None:
            raise LunarDateError(year, month, day, "month does not exist in that year")

        days = lunar_month.getDayCount()
        if day <= days:
            return day

        if self.short_month_rule == "clamp":
            logger.debug("Lunar %d-%d has %d days, clamping day %d", year, month, days, day)
            return days

        raise LunarDateError(year, month, day, f"only {days} days in that month")


def lunar_to_solar(year: int, month: int, day: int) -> date:
    """
    Convert a lunar date to a solar date with the strict rule.

    Args:
        year: Lunar year
        month: Lunar month (1-12)
        day: Lunar day (1-30)

    Returns:
        Solar date

    Examples:
        >>> lunar_to_solar(2026, 1, 1)
        datetime.date(2026, 2, 17)
    """
    return LunarCalendarConverter().convert(year, month, day).solar_date
