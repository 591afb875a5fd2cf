"""Birthday records and their projection onto solar years."""

from lunar_birthday.birthdays.projector import (
    DEFAULT_HORIZON,
    BirthdayOccurrence,
    BirthdayProjector,
    ProjectionGap,
    format_title,
)
from lunar_birthday.birthdays.records import (
    BirthdayRecord,
    load_birthday_records,
    parse_birthday_records,
    parse_lunar_birthday,
)

__all__ = [
    "DEFAULT_HORIZON",
    "BirthdayOccurrence",
    "BirthdayProjector",
    "BirthdayRecord",
    "ProjectionGap",
    "format_title",
    "load_birthday_records",
    "parse_birthday_records",
    "parse_lunar_birthday",
]
