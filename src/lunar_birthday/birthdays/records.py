"""
Birthday record loading.

The record file is a JSON object mapping a person's name to their lunar
birthday as "YYYY-M-D":

    {
      "Alice": "1990-3-15",
      "Bob": "1985-12-1"
    }

A JSON list of {"name": ..., "birthday": ...} objects is also accepted; unlike
the object form it can hold the same name more than once.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from lunar_birthday.core.exceptions import RecordFormatError

logger = logging.getLogger(__name__)

LUNAR_DATE_PATTERN = re.compile(r"^\s*(\d{1,4})-(\d{1,2})-(\d{1,2})\s*$")


@dataclass(frozen=True)
class BirthdayRecord:
    """A person and their lunar birth date."""

    name: str
    lunar_year: int
    lunar_month: int
    lunar_day: int

    @property
    def lunar_birthday(self) -> tuple[int, int, int]:
        return (self.lunar_year, self.lunar_month, self.lunar_day)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "lunar_birthday": f"{self.lunar_year}-{self.lunar_month}-{self.lunar_day}",
        }


def parse_lunar_birthday(text: str) -> tuple[int, int, int]:
    """
    Parse a "YYYY-M-D" lunar date string.

    Args:
        text: Date string such as "1990-3-15"

    Returns:
        (year, month, day) tuple

    Raises:
        RecordFormatError: If the string is not three numeric components or
            month/day are out of the lunar range
    """
    if not isinstance(text, str):
        raise RecordFormatError(f"Lunar birthday must be a string, got {type(text).__name__}")

    match = LUNAR_DATE_PATTERN.match(text)
    if not match:
        raise RecordFormatError(f"Lunar birthday must look like YYYY-M-D, got {text!r}")

    year, month, day = (int(part) for part in match.groups())
    if year < 1:
        raise RecordFormatError(f"Lunar year out of range in {text!r}")
    if not 1 <= month <= 12:
        raise RecordFormatError(f"Lunar month out of range in {text!r}")
    if not 1 <= day <= 30:
        raise RecordFormatError(f"Lunar day out of range in {text!r}")

    return year, month, day


def _record_from(name: Any, birthday: Any, source: str) -> BirthdayRecord:
    if not isinstance(name, str) or not name.strip():
        raise RecordFormatError(f"Invalid name {name!r}", source=source)
    try:
        year, month, day = parse_lunar_birthday(birthday)
    except RecordFormatError as e:
        raise RecordFormatError(f"{name}: {e.message}", source=source) from e
    return BirthdayRecord(name=name.strip(), lunar_year=year, lunar_month=month, lunar_day=day)


def parse_birthday_records(data: Any, source: str = "<memory>") -> list[BirthdayRecord]:
    """
    Build records from already-decoded JSON data.

    Args:
        data: Mapping of name -> "YYYY-M-D", or list of {"name", "birthday"} objects
        source: Label used in error messages

    Returns:
        Records in input order
    """
    records: list[BirthdayRecord] = []

    if isinstance(data, dict):
        for name, birthday in data.items():
            records.append(_record_from(name, birthday, source))
    elif isinstance(data, list):
        for index, entry in enumerate(data):
            if not isinstance(entry, dict):
                raise RecordFormatError(f"Entry {index} must be an object", source=source)
            if "name" not in entry or "birthday" not in entry:
                raise RecordFormatError(
                    f"Entry {index} needs 'name' and 'birthday' fields", source=source
                )
            records.append(_record_from(entry["name"], entry["birthday"], source))
    else:
        raise RecordFormatError("Top level must be an object or a list", source=source)

    return records


def load_birthday_records(path: Path | str) -> list[BirthdayRecord]:
    """
    Read the whole record file once.

    Args:
        path: JSON file path

    Returns:
        Records in file order

    Raises:
        RecordFormatError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    if not path.exists():
        raise RecordFormatError("Birthday file not found", source=str(path))

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise RecordFormatError(f"Invalid JSON: {e}", source=str(path)) from e
    except OSError as e:
        raise RecordFormatError(f"Failed to read file: {e}", source=str(path)) from e

    records = parse_birthday_records(data, source=str(path))
    logger.info("Loaded %d birthday records from %s", len(records), path)
    return records
