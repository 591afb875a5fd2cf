"""
Custom exceptions for lunar-birthday.

Exception hierarchy:
    LunarBirthdayError (base)
    ├── ConfigurationError
    ├── SessionNotInitializedError
    ├── AuthenticationError
    ├── GraphAPIError
    │   └── RateLimitError
    ├── RecordFormatError
    └── LunarDateError
"""

from __future__ import annotations

from typing import Any


class LunarBirthdayError(Exception):
    """Base exception for all lunar-birthday errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            details: Additional error details (optional)
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class ConfigurationError(LunarBirthdayError):
    """
    Raised when configuration is invalid or missing.

    Examples:
        - Missing Graph client id
        - Invalid YAML syntax
        - Empty scope list
    """

    pass


class SessionNotInitializedError(LunarBirthdayError):
    """Raised when a Graph operation is attempted before the auth session is initialized."""

    def __init__(self, message: str = "Graph has not been initialized for user auth"):
        super().__init__(message)


class AuthenticationError(LunarBirthdayError):
    """
    Raised when authentication fails.

    Examples:
        - Device flow could not be started
        - User declined or the device code expired
    """

    def __init__(
        self,
        message: str,
        service: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize authentication error.

        Args:
            message: Error message
            service: Service that failed authentication (e.g., "graph")
            details: Additional error details
        """
        super().__init__(message, details)
        self.service = service

    def __str__(self) -> str:
        if self.service:
            return f"[{self.service}] {self.message}"
        return self.message


class GraphAPIError(LunarBirthdayError):
    """
    Raised when a Microsoft Graph call fails.

    Examples:
        - Network error
        - API error response
        - Timeout
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize Graph API error.

        Args:
            message: Error message
            operation: Name of the operation (e.g., "create_event")
            status_code: HTTP status code if applicable
            details: Additional error details
        """
        super().__init__(message, details)
        self.operation = operation
        self.status_code = status_code

    def __str__(self) -> str:
        parts = []
        if self.operation:
            parts.append(f"[{self.operation}]")
        if self.status_code:
            parts.append(f"HTTP {self.status_code}:")
        parts.append(self.message)
        return " ".join(parts)


class RateLimitError(GraphAPIError):
    """
    Raised when Graph throttles a request.

    Includes retry information when available. Nothing retries automatically.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        retry_after: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, operation=operation, status_code=429, details=details)
        self.retry_after = retry_after

    def __str__(self) -> str:
        base = super().__str__()
        if self.retry_after:
            return f"{base} (retry after {self.retry_after}s)"
        return base


class RecordFormatError(LunarBirthdayError):
    """
    Raised when the birthday record file is malformed.

    Examples:
        - File is not valid JSON
        - Date is not in YYYY-M-D form
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.source}: {self.message}"
        return self.message


class LunarDateError(LunarBirthdayError):
    """Raised when a lunar date does not exist in the requested lunar year."""

    def __init__(self, year: int, month: int, day: int, reason: str | None = None):
        message = f"Invalid lunar date {year}-{month}-{day}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.year = year
        self.month = month
        self.day = day
