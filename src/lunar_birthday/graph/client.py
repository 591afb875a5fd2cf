"""
Microsoft Graph calendar client.

Async wrapper over the Graph v1.0 calendar endpoints used by lunar-birthday:
list calendars, list events, create a calendar and create an event.

Usage:
    async with initialize_graph(settings, on_device_code=print) as client:
        calendar = await client.create_calendar("LunarBirthday", "lightRed")
        await client.create_event(calendar["id"], "Alice's 35th lunar birthday",
                                  "2024-04-23T00:00:00", "2024-04-24T00:00:00",
                                  is_all_day=True)
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import httpx

from lunar_birthday.core.config import GraphSettings
from lunar_birthday.core.exceptions import (
    GraphAPIError,
    RateLimitError,
    SessionNotInitializedError,
)
from lunar_birthday.graph.auth import AuthSession, DeviceCodeCallback

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"

# Event times are wall-clock strings in this zone, independent of the host locale
DEFAULT_TIME_ZONE = "Asia/Shanghai"

CALENDAR_COLORS = (
    "auto",
    "lightBlue",
    "lightGreen",
    "lightOrange",
    "lightGray",
    "lightYellow",
    "lightTeal",
    "lightPink",
    "lightBrown",
    "lightRed",
    "maxColor",
)
FREE_BUSY_STATUSES = ("free", "tentative", "busy", "oof", "workingElsewhere", "unknown")
IMPORTANCE_LEVELS = ("low", "normal", "high")


def _check_choice(name: str, value: str, choices: tuple[str, ...]) -> None:
    if value not in choices:
        raise ValueError(f"Invalid {name} {value!r}; expected one of {', '.join(choices)}")


class GraphCalendarClient:
    """
    Calendar operations on the signed-in user's mailbox.

    Every operation requires an initialized AuthSession. The session and the
    underlying HTTP client are shared read-only by concurrent calls.
    """

    def __init__(
        self,
        session: AuthSession,
        base_url: str = GRAPH_API_BASE,
        time_zone: str = DEFAULT_TIME_ZONE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            session: Auth session providing access tokens
            base_url: Graph API root
            time_zone: Time zone attached to every event start/end
            timeout: HTTP timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.session = session
        self.base_url = base_url
        self.time_zone = time_zone
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._token_lock = asyncio.Lock()

    async def __aenter__(self) -> "GraphCalendarClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get the shared HTTP client, creating it on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_session(self) -> None:
        if not self.session.initialized:
            raise SessionNotInitializedError()

    async def _auth_headers(self) -> dict[str, str]:
        # MSAL is blocking and may wait on the user; one prompt at a time
        async with self._token_lock:
            token = await asyncio.to_thread(self.session.get_access_token)
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        self._ensure_session()
        headers = await self._auth_headers()

        logger.debug("%s %s (%s)", method, url, operation)
        try:
            response = await self._get_client().request(method, url, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise GraphAPIError(f"Request failed: {e}", operation=operation) from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Too many requests",
                operation=operation,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        if response.is_error:
            raise GraphAPIError(
                self._error_message(response),
                operation=operation,
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            error = response.json().get("error", {})
            code = error.get("code")
            message = error.get("message") or response.reason_phrase
            return f"{code}: {message}" if code else message
        except ValueError:
            return response.text or response.reason_phrase

    async def _get_collection(self, url: str, operation: str) -> list[dict[str, Any]]:
        """GET a collection, following @odata.nextLink pages."""
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        while next_url:
            page = await self._request("GET", next_url, operation)
            items.extend(page.get("value", []))
            next_url = page.get("@odata.nextLink")
        return items

    async def get_calendars(self) -> list[dict[str, Any]]:
        """
        List the user's calendars.

        Returns:
            Calendar resources (id, name, color, ...)
        """
        return await self._get_collection("me/calendars", "get_calendars")

    async def get_events(self, calendar_id: str) -> list[dict[str, Any]]:
        """
        List events in a calendar.

        Args:
            calendar_id: Calendar id

        Returns:
            Event resources
        """
        return await self._get_collection(f"me/calendars/{calendar_id}/events", "get_events")

    async def create_calendar(self, name: str, color: str = "auto") -> dict[str, Any]:
        """
        Create a calendar. Graph does not deduplicate by name.

        Args:
            name: Calendar display name
            color: One of CALENDAR_COLORS

        Returns:
            Created calendar resource; its "id" is the handle for create_event
        """
        _check_choice("calendar color", color, CALENDAR_COLORS)
        calendar = await self._request(
            "POST", "me/calendars", "create_calendar", json={"name": name, "color": color}
        )
        logger.info("Calendar created: %s (%s)", name, calendar.get("id"))
        return calendar

    async def create_event(
        self,
        calendar_id: str,
        subject: str,
        start: str,
        end: str,
        is_all_day: bool = False,
        is_reminder_on: bool = False,
        reminder_minutes_before_start: int = 0,
        show_as: str = "busy",
        body: dict[str, str] | None = None,
        importance: str = "normal",
        categories: list[str] | None = None,
    ) -> dict[str, Any]:
        """
        Create an event in a calendar.

        Args:
            calendar_id: Calendar id from create_calendar
            subject: Event subject
            start: Wall-clock start, e.g. "2024-04-23T00:00:00"
            end: Wall-clock end
            is_all_day: All-day event (start/end must be midnights)
            is_reminder_on: Enable the reminder
            reminder_minutes_before_start: Reminder lead time
            show_as: One of FREE_BUSY_STATUSES
            body: ItemBody dict ({"contentType": "text", "content": ...})
            importance: One of IMPORTANCE_LEVELS
            categories: Outlook category names

        Returns:
            Created event resource
        """
        _check_choice("free/busy status", show_as, FREE_BUSY_STATUSES)
        _check_choice("importance", importance, IMPORTANCE_LEVELS)

        event = {
            "subject": subject,
            "start": {"dateTime": start, "timeZone": self.time_zone},
            "end": {"dateTime": end, "timeZone": self.time_zone},
            "isAllDay": is_all_day,
            "isReminderOn": is_reminder_on,
            "reminderMinutesBeforeStart": reminder_minutes_before_start,
            "showAs": show_as,
            "body": body or {},
            "importance": importance,
            "categories": categories or [],
        }
        return await self._request(
            "POST", f"me/calendars/{calendar_id}/events", "create_event", json=event
        )


def initialize_graph(
    settings: GraphSettings,
    on_device_code: DeviceCodeCallback,
    token_cache_path: Path | str | None = None,
    **client_kwargs: Any,
) -> GraphCalendarClient:
    """
    Initialize user auth and return a client bound to the session.

    Args:
        settings: Graph client id, tenant and scopes
        on_device_code: Receives the device code sign-in message
        token_cache_path: Persistent MSAL cache file
        **client_kwargs: Passed to GraphCalendarClient

    Raises:
        ConfigurationError: If settings are incomplete (before any network activity)
    """
    session = AuthSession(settings, on_device_code, token_cache_path=token_cache_path)
    session.initialize()
    return GraphCalendarClient(session, **client_kwargs)
