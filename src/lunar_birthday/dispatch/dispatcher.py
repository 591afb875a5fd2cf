"""
BatchedDispatcher - create birthday events in fixed-size concurrent windows.

Occurrences are split into non-overlapping windows of `width` items in their
original order. Requests inside a window run concurrently; a window fully
settles before the next one starts.

Failure policy:
    CONTINUE: every occurrence gets a request, failures are recorded
    ABORT: stop after the window in which the first failure occurred
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Protocol

from lunar_birthday.birthdays.projector import BirthdayOccurrence
from lunar_birthday.core.exceptions import ConfigurationError
from lunar_birthday.core.results import OperationResult
from lunar_birthday.graph.client import FREE_BUSY_STATUSES, IMPORTANCE_LEVELS

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 2


class FailurePolicy(Enum):
    """What the dispatcher does after a failed request."""

    CONTINUE = "continue"
    ABORT = "abort"


def require_choice(key: str, value: Any, choices: Sequence[str]) -> None:
    """Raise ConfigurationError unless value is one of choices."""
    if value not in choices:
        raise ConfigurationError(
            f"Invalid {key} {value!r}",
            details={"expected": list(choices)},
        )


class EventCreator(Protocol):
    async def create_event(self, calendar_id: str, subject: str, start: str, end: str, **kwargs: Any) -> dict[str, Any]: ...


@dataclass(frozen=True)
class EventOptions:
    """Event fields shared by every birthday event."""

    is_all_day: bool = True
    is_reminder_on: bool = True
    reminder_minutes_before_start: int = 1440
    show_as: str = "free"
    importance: str = "normal"
    categories: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        require_choice("event.show_as", self.show_as, FREE_BUSY_STATUSES)
        require_choice("event.importance", self.importance, IMPORTANCE_LEVELS)
        if self.reminder_minutes_before_start < 0:
            raise ConfigurationError(
                f"Invalid reminder.minutes {self.reminder_minutes_before_start!r}: must not be negative"
            )


def build_event_request(occurrence: BirthdayOccurrence, options: EventOptions) -> dict[str, Any]:
    """
    Build create_event keyword arguments for one occurrence.

    The event spans the solar date as an all-day event (midnight to next midnight).
    """
    start = occurrence.solar_date
    end = start + timedelta(days=1)
    return {
        "subject": occurrence.title,
        "start": f"{start.isoformat()}T00:00:00",
        "end": f"{end.isoformat()}T00:00:00",
        "is_all_day": options.is_all_day,
        "is_reminder_on": options.is_reminder_on,
        "reminder_minutes_before_start": options.reminder_minutes_before_start,
        "show_as": options.show_as,
        "body": {"contentType": "text", "content": occurrence.lunar_label},
        "importance": options.importance,
        "categories": list(options.categories),
    }


@dataclass(frozen=True)
class OccurrenceResult:
    """Result of creating the event for one occurrence."""

    occurrence: BirthdayOccurrence
    result: OperationResult[dict[str, Any]]
    window: int

    @property
    def success(self) -> bool:
        return self.result.success

    @property
    def event_id(self) -> str | None:
        if self.result.success and self.result.value:
            return self.result.value.get("id")
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.occurrence.to_dict(),
            **self.result.to_dict(),
            "event_id": self.event_id,
            "window": self.window,
        }


@dataclass
class DispatchReport:
    """Outcome of a whole dispatch run."""

    windows: int = 0
    results: list[OccurrenceResult] = field(default_factory=list)
    skipped: list[BirthdayOccurrence] = field(default_factory=list)
    aborted: bool = False

    @property
    def requests(self) -> int:
        return len(self.results)

    @property
    def created(self) -> list[OccurrenceResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[OccurrenceResult]:
        return [r for r in self.results if not r.success]

    def to_dict(self) -> dict[str, Any]:
        return {
            "windows": self.windows,
            "requests": self.requests,
            "created": len(self.created),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "aborted": self.aborted,
        }


ResultHandler = Callable[[OccurrenceResult], None]


class BatchedDispatcher:
    """
    Submit occurrences through the calendar client in windows.

    Example:
        dispatcher = BatchedDispatcher(client, width=2)
        report = await dispatcher.dispatch(calendar_id, occurrences)
    """

    def __init__(
        self,
        client: EventCreator,
        width: int = DEFAULT_WIDTH,
        policy: FailurePolicy = FailurePolicy.CONTINUE,
        event_options: EventOptions | None = None,
        on_result: ResultHandler | None = None,
    ):
        """
        Args:
            client: Object exposing async create_event (GraphCalendarClient)
            width: Requests per window
            policy: Failure policy
            event_options: Shared event fields
            on_result: Called once per settled request, in window order
        """
        if width < 1:
            raise ValueError(f"width must be at least 1, got {width}")
        self.client = client
        self.width = width
        self.policy = policy
        self.event_options = event_options or EventOptions()
        self.on_result = on_result

    async def _create(self, calendar_id: str, occurrence: BirthdayOccurrence) -> OperationResult[dict[str, Any]]:
        request = build_event_request(occurrence, self.event_options)
        try:
            event = await self.client.create_event(calendar_id, **request)
        except Exception as e:
            logger.error("Error creating event %r on %s: %s", occurrence.title, occurrence.solar_date, e)
            return OperationResult.fail(e)
        logger.info("Event created with id %s (%s)", event.get("id"), occurrence.title)
        return OperationResult.ok(event)

    async def dispatch(self, calendar_id: str, occurrences: Sequence[BirthdayOccurrence]) -> DispatchReport:
        """
        Create one event per occurrence.

        Args:
            calendar_id: Target calendar id
            occurrences: Occurrences in submission order

        Returns:
            DispatchReport with per-occurrence results
        """
        report = DispatchReport()

        for start in range(0, len(occurrences), self.width):
            window = occurrences[start:start + self.width]
            window_index = report.windows
            report.windows += 1

            results = await asyncio.gather(*(self._create(calendar_id, o) for o in window))

            window_failed = False
            for occurrence, result in zip(window, results):
                item = OccurrenceResult(occurrence=occurrence, result=result, window=window_index)
                report.results.append(item)
                window_failed = window_failed or not result.success
                if self.on_result:
                    self.on_result(item)

            if window_failed and self.policy is FailurePolicy.ABORT:
                report.skipped = list(occurrences[start + self.width:])
                report.aborted = True
                logger.error(
                    "Aborting dispatch after window %d, %d occurrences skipped",
                    window_index,
                    len(report.skipped),
                )
                break

        logger.info(
            "Dispatch finished: %d windows, %d created, %d failed, %d skipped",
            report.windows,
            len(report.created),
            len(report.failed),
            len(report.skipped),
        )
        return report
