"""
Birthday Projector - expand lunar birthdays into dated occurrences.

For every record, one occurrence is produced per calendar year from the
current year through birth year + horizon, inclusive. Each year the lunar
month/day is converted again because its solar date moves. Years the converter
rejects (lunar day 30 in a 29-day month under the strict rule) are skipped and
reported as gaps; the rest of the record is still projected.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

from lunar_birthday.birthdays.records import BirthdayRecord
from lunar_birthday.core.exceptions import LunarDateError
from lunar_birthday.lunar.converter import LunarCalendarConverter, LunarConversion

logger = logging.getLogger(__name__)

DEFAULT_HORIZON = 120


class Converter(Protocol):
    def convert(self, year: int, month: int, day: int) -> LunarConversion: ...


@dataclass(frozen=True)
class BirthdayOccurrence:
    """One lunar birthday as it falls in one solar year."""

    title: str
    solar_date: date
    lunar_label: str
    name: str
    age: int
    year: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "solar_date": self.solar_date.isoformat(),
            "lunar_label": self.lunar_label,
            "name": self.name,
            "age": self.age,
            "year": self.year,
        }


@dataclass(frozen=True)
class ProjectionGap:
    """A year in which a birthday has no solar date under the active short month rule."""

    name: str
    year: int
    error: LunarDateError

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "year": self.year, "error": str(self.error)}


def format_title(name: str, age: int) -> str:
    """Event subject for a birthday occurrence."""
    return f"{name}'s {age}th lunar birthday"


class BirthdayProjector:
    """
    Projects birthday records onto solar dates.

    Usage:
        projector = BirthdayProjector()
        occurrences = projector.project_all(records)
    """

    def __init__(self, converter: Converter | None = None, horizon: int = DEFAULT_HORIZON):
        """
        Args:
            converter: Lunar converter (defaults to a strict LunarCalendarConverter)
            horizon: Years past the birth year to project
        """
        if horizon < 0:
            raise ValueError(f"horizon must not be negative, got {horizon}")
        self.converter = converter or LunarCalendarConverter()
        self.horizon = horizon

    def project(
        self,
        record: BirthdayRecord,
        current_year: int | None = None,
        gaps: list[ProjectionGap] | None = None,
    ) -> list[BirthdayOccurrence]:
        """
        Project one record.

        Args:
            record: Birthday record
            current_year: First year to project (defaults to this year)
            gaps: Receives a ProjectionGap for every year the converter rejects

        Returns:
            Occurrences ordered by year; empty when the horizon has already passed
        """
        if current_year is None:
            current_year = date.today().year

        last_year = record.lunar_year + self.horizon
        occurrences: list[BirthdayOccurrence] = []

        for year in range(current_year, last_year + 1):
            try:
                conversion = self.converter.convert(year, record.lunar_month, record.lunar_day)
            except LunarDateError as e:
                logger.warning("%s: no birthday in %d: %s", record.name, year, e)
                if gaps is not None:
                    gaps.append(ProjectionGap(name=record.name, year=year, error=e))
                continue
            age = year - record.lunar_year + 1
            occurrences.append(
                BirthdayOccurrence(
                    title=format_title(record.name, age),
                    solar_date=conversion.solar_date,
                    lunar_label=conversion.label,
                    name=record.name,
                    age=age,
                    year=year,
                )
            )

        if current_year > last_year:
            logger.debug("%s: horizon ended in %d, nothing to project", record.name, last_year)
        return occurrences

    def project_all(
        self,
        records: Iterable[BirthdayRecord],
        current_year: int | None = None,
        gaps: list[ProjectionGap] | None = None,
    ) -> list[BirthdayOccurrence]:
        """Project every record, keeping record order then year order."""
        if current_year is None:
            current_year = date.today().year

        occurrences: list[BirthdayOccurrence] = []
        for record in records:
            occurrences.extend(self.project(record, current_year, gaps))

        logger.info("Projected %d occurrences from %d", len(occurrences), current_year)
        return occurrences
