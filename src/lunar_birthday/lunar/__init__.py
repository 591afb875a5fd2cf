"""Lunar/solar calendar conversion."""

from lunar_birthday.lunar.converter import (
    SHORT_MONTH_RULES,
    LunarCalendarConverter,
    LunarConversion,
    lunar_to_solar,
)

__all__ = [
    "SHORT_MONTH_RULES",
    "LunarCalendarConverter",
    "LunarConversion",
    "lunar_to_solar",
]
