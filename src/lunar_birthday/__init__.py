"""
lunar-birthday - lunar birthday reminders in a Microsoft Graph calendar.

Converts lunar-calendar birth dates to solar dates for every year up to a
horizon and bulk-creates one all-day reminder event per year.
"""

__version__ = "1.0.0"

from lunar_birthday.core.config import Config, GraphSettings
from lunar_birthday.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    GraphAPIError,
    LunarBirthdayError,
    LunarDateError,
    RateLimitError,
    RecordFormatError,
    SessionNotInitializedError,
)

__all__ = [
    "__version__",
    "Config",
    "GraphSettings",
    "LunarBirthdayError",
    "AuthenticationError",
    "ConfigurationError",
    "GraphAPIError",
    "LunarDateError",
    "RateLimitError",
    "RecordFormatError",
    "SessionNotInitializedError",
]
