"""
BirthdaySync - end-to-end birthday calendar run.

Stages:
1. Record loading
2. Projection onto solar years
3. Calendar creation (one new calendar per run)
4. Batched event creation

Stages 1-2 run before anything remote, so a malformed file or bad option
leaves the account untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from lunar_birthday.birthdays.projector import (
    DEFAULT_HORIZON,
    BirthdayOccurrence,
    BirthdayProjector,
    ProjectionGap,
)
from lunar_birthday.birthdays.records import BirthdayRecord, load_birthday_records
from lunar_birthday.core.exceptions import ConfigurationError
from lunar_birthday.dispatch.dispatcher import (
    DEFAULT_WIDTH,
    BatchedDispatcher,
    DispatchReport,
    EventOptions,
    FailurePolicy,
    ResultHandler,
    require_choice,
)
from lunar_birthday.graph.client import CALENDAR_COLORS
from lunar_birthday.lunar.converter import SHORT_MONTH_RULES, LunarCalendarConverter

logger = logging.getLogger(__name__)


class CalendarClient(Protocol):
    async def create_calendar(self, name: str, color: str = ...) -> dict[str, Any]: ...

    async def create_event(self, calendar_id: str, subject: str, start: str, end: str, **kwargs: Any) -> dict[str, Any]: ...


@dataclass(frozen=True)
class SyncOptions:
    """Settings for one sync run."""

    calendar_name: str = "LunarBirthday"
    calendar_color: str = "lightRed"
    horizon: int = DEFAULT_HORIZON
    width: int = DEFAULT_WIDTH
    policy: FailurePolicy = FailurePolicy.CONTINUE
    short_month_rule: str = "strict"
    current_year: int | None = None
    dry_run: bool = False
    event_options: EventOptions = field(default_factory=EventOptions)

    def __post_init__(self) -> None:
        if not self.calendar_name or not self.calendar_name.strip():
            raise ConfigurationError("calendar.name must not be empty")
        require_choice("calendar.color", self.calendar_color, CALENDAR_COLORS)
        require_choice("sync.short_month_rule", self.short_month_rule, SHORT_MONTH_RULES)
        if self.horizon < 0:
            raise ConfigurationError(f"Invalid sync.horizon {self.horizon!r}: must not be negative")
        if self.width < 1:
            raise ConfigurationError(f"Invalid sync.width {self.width!r}: must be at least 1")


@dataclass
class SyncSummary:
    """What a sync run did."""

    records: list[BirthdayRecord]
    occurrences: list[BirthdayOccurrence]
    calendar_id: str | None = None
    report: DispatchReport | None = None
    gaps: list[ProjectionGap] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """False when any year could not be converted or any event was not created."""
        if self.gaps:
            return False
        if self.report is None:
            return True
        return not self.report.failed and not self.report.aborted

    def to_dict(self) -> dict[str, Any]:
        return {
            "records": len(self.records),
            "occurrences": len(self.occurrences),
            "gaps": [gap.to_dict() for gap in self.gaps],
            "calendar_id": self.calendar_id,
            "dispatch": self.report.to_dict() if self.report else None,
        }


class BirthdaySync:
    """
    Runs the full birthday calendar flow against a calendar client.

    Example:
        async with initialize_graph(settings, print) as client:
            summary = await BirthdaySync(client).run("birthdays.json", SyncOptions())
    """

    def __init__(self, client: CalendarClient | None, on_result: ResultHandler | None = None):
        """
        Args:
            client: Calendar client (may be None for dry runs)
            on_result: Per-occurrence callback forwarded to the dispatcher
        """
        self.client = client
        self.on_result = on_result

    def plan(self, records_path: Path | str, options: SyncOptions) -> SyncSummary:
        """Load and project without touching the network."""
        records = load_birthday_records(records_path)
        projector = BirthdayProjector(
            converter=LunarCalendarConverter(short_month_rule=options.short_month_rule),
            horizon=options.horizon,
        )
        gaps: list[ProjectionGap] = []
        occurrences = projector.project_all(records, current_year=options.current_year, gaps=gaps)
        return SyncSummary(records=records, occurrences=occurrences, gaps=gaps)

    async def run(self, records_path: Path | str, options: SyncOptions) -> SyncSummary:
        """
        Execute the sync.

        Records are loaded and projected before the calendar is created, so a
        malformed file fails before any remote change.

        Raises:
            RecordFormatError: Malformed birthday file
            GraphAPIError: Calendar creation failed
        """
        summary = self.plan(records_path, options)
        if options.dry_run:
            logger.info("Dry run: %d occurrences not submitted", len(summary.occurrences))
            return summary

        if self.client is None:
            raise ValueError("A calendar client is required unless dry_run is set")

        try:
            calendar = await self.client.create_calendar(options.calendar_name, options.calendar_color)
        except Exception as e:
            logger.error("Error creating calendar %s: %s", options.calendar_name, e)
            raise
        summary.calendar_id = calendar["id"]

        dispatcher = BatchedDispatcher(
            self.client,
            width=options.width,
            policy=options.policy,
            event_options=options.event_options,
            on_result=self.on_result,
        )
        summary.report = await dispatcher.dispatch(summary.calendar_id, summary.occurrences)
        return summary
