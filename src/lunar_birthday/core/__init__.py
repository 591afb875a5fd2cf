"""Core modules for lunar-birthday."""

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
from lunar_birthday.core.results import OperationResult

__all__ = [
    "Config",
    "GraphSettings",
    "OperationResult",
    "LunarBirthdayError",
    "AuthenticationError",
    "ConfigurationError",
    "GraphAPIError",
    "LunarDateError",
    "RateLimitError",
    "RecordFormatError",
    "SessionNotInitializedError",
]
