"""
lunar-birthday CLI - Click-based command line interface.

Usage:
    lunar-birthday sync birthdays.json          # Create the birthday calendar
    lunar-birthday sync birthdays.json --dry-run
    lunar-birthday preview birthdays.json       # Projection only, no sign-in
    lunar-birthday convert 1990-3-15 --year 2025
    lunar-birthday calendars                    # List calendars
    lunar-birthday events <calendar-id>         # List events in a calendar
    lunar-birthday logout                       # Delete the token cache
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Callable
from datetime import date
from functools import wraps
from pathlib import Path
from typing import TypeVar

import click

from lunar_birthday import __version__
from lunar_birthday.birthdays.projector import DEFAULT_HORIZON, BirthdayProjector, ProjectionGap
from lunar_birthday.birthdays.records import load_birthday_records, parse_lunar_birthday
from lunar_birthday.core.config import Config
from lunar_birthday.core.exceptions import LunarBirthdayError
from lunar_birthday.dispatch.dispatcher import DEFAULT_WIDTH, EventOptions, FailurePolicy, OccurrenceResult
from lunar_birthday.dispatch.pipeline import BirthdaySync, SyncOptions
from lunar_birthday.graph.auth import AuthSession
from lunar_birthday.graph.client import CALENDAR_COLORS, DEFAULT_TIME_ZONE, GraphCalendarClient, initialize_graph
from lunar_birthday.lunar.converter import SHORT_MONTH_RULES, LunarCalendarConverter

# Windows UTF-8 encoding
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

T = TypeVar("T")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def async_command(f: Callable[..., T]) -> Callable[..., T]:
    """Decorator to convert async function to Click command."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def handle_errors(f: Callable[..., T]) -> Callable[..., T]:
    """Turn package errors into a Click error message and exit code 1."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except LunarBirthdayError as e:
            raise click.ClickException(str(e)) from e

    return wrapper


def load_config(ctx: click.Context) -> Config:
    """Load configuration once per invocation."""
    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        obj["config"] = Config(config_path=obj.get("config_path"))
    return obj["config"]


def print_device_code(message: str) -> None:
    """Show the device code sign-in instructions."""
    click.echo(message)


def build_client(config: Config) -> GraphCalendarClient:
    return initialize_graph(
        config.graph_settings,
        print_device_code,
        token_cache_path=config.token_cache_path,
        time_zone=str(config.get("calendar.time_zone", DEFAULT_TIME_ZONE)),
    )


def echo_result(item: OccurrenceResult) -> None:
    """Per-event console line."""
    occurrence = item.occurrence
    if item.success:
        click.echo(f"Event created with id {item.event_id}: {occurrence.title} ({occurrence.solar_date})")
    else:
        click.echo(f"Error create event: {occurrence.title} ({occurrence.solar_date}): {item.result.error}")


def echo_gaps(gaps: list[ProjectionGap]) -> None:
    """Years a birthday could not be placed."""
    for gap in gaps:
        click.echo(f"Skipped {gap.name} {gap.year}: {gap.error}")


@click.group()
@click.version_option(__version__, prog_name="lunar-birthday")
@click.option("-c", "--config", "config_path", type=click.Path(dir_okay=False), help="YAML config file")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Lunar Birthday Calendar

    Projects lunar-calendar birthdays onto solar dates and creates one
    reminder event per year in a Microsoft Graph calendar.
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.argument("records_file", type=click.Path(dir_okay=False))
@click.option("--calendar-name", help="Calendar to create (default: LunarBirthday)")
@click.option("--color", type=click.Choice(CALENDAR_COLORS), help="Calendar color (default: lightRed)")
@click.option("--horizon", type=click.IntRange(min=0), help=f"Years past birth year (default: {DEFAULT_HORIZON})")
@click.option("--width", type=click.IntRange(min=1), help=f"Concurrent requests per window (default: {DEFAULT_WIDTH})")
@click.option("--year", "current_year", type=int, help="First year to project (default: this year)")
@click.option("--short-month", type=click.Choice(SHORT_MONTH_RULES), help="Lunar day 30 in a 29-day month")
@click.option("--abort-on-error", is_flag=True, help="Stop after the first failed window")
@click.option("--dry-run", is_flag=True, help="Project only, create nothing")
@click.pass_context
@handle_errors
def sync(
    ctx: click.Context,
    records_file: str,
    calendar_name: str | None,
    color: str | None,
    horizon: int | None,
    width: int | None,
    current_year: int | None,
    short_month: str | None,
    abort_on_error: bool,
    dry_run: bool,
) -> None:
    """Create a birthday calendar from a lunar birthday file."""
    config = load_config(ctx)

    options = SyncOptions(
        calendar_name=calendar_name or str(config.get("calendar.name", "LunarBirthday")),
        calendar_color=color or str(config.get("calendar.color", "lightRed")),
        horizon=horizon if horizon is not None else config.get_int("sync.horizon", DEFAULT_HORIZON),
        width=width if width is not None else config.get_int("sync.width", DEFAULT_WIDTH),
        policy=FailurePolicy.ABORT if abort_on_error else FailurePolicy.CONTINUE,
        short_month_rule=short_month or str(config.get("sync.short_month_rule", "strict")),
        current_year=current_year,
        dry_run=dry_run,
        event_options=EventOptions(
            is_reminder_on=bool(config.get("reminder.enabled", True)),
            reminder_minutes_before_start=config.get_int("reminder.minutes", 1440),
            show_as=str(config.get("event.show_as", "free")),
            importance=str(config.get("event.importance", "normal")),
            categories=tuple(config.get_list("event.categories")),
        ),
    )

    if dry_run:
        summary = BirthdaySync(None).plan(records_file, options)
        echo_gaps(summary.gaps)
        click.echo(f"Dry run: {len(summary.occurrences)} events from {len(summary.records)} records")
        return

    async def _run():
        async with build_client(config) as client:
            return await BirthdaySync(client, on_result=echo_result).run(records_file, options)

    summary = asyncio.run(_run())
    report = summary.report

    click.echo()
    echo_gaps(summary.gaps)
    click.echo(f"Calendar: {options.calendar_name} ({summary.calendar_id})")
    click.echo(
        f"Events: {len(report.created)} created, {len(report.failed)} failed, "
        f"{len(report.skipped)} skipped in {report.windows} windows"
    )
    if summary.gaps:
        click.echo(f"Unconverted: {len(summary.gaps)} (try --short-month clamp)")
    if not summary.ok:
        ctx.exit(1)


@cli.command()
@click.argument("records_file", type=click.Path(dir_okay=False))
@click.option("--horizon", type=click.IntRange(min=0), default=DEFAULT_HORIZON, show_default=True)
@click.option("--year", "current_year", type=int, help="First year to project (default: this year)")
@click.option("--short-month", type=click.Choice(SHORT_MONTH_RULES), default="strict", show_default=True)
@click.option("--limit", type=click.IntRange(min=0), default=0, help="Occurrences shown per person (0 = all)")
@click.option("--json", "as_json", is_flag=True, help="JSON output")
@handle_errors
def preview(
    records_file: str,
    horizon: int,
    current_year: int | None,
    short_month: str,
    limit: int,
    as_json: bool,
) -> None:
    """Show projected birthdays without signing in."""
    records = load_birthday_records(records_file)
    projector = BirthdayProjector(LunarCalendarConverter(short_month_rule=short_month), horizon=horizon)

    shown = []
    gaps: list[ProjectionGap] = []
    for record in records:
        occurrences = projector.project(record, current_year, gaps)
        shown.extend(occurrences[:limit] if limit else occurrences)

    if as_json:
        click.echo(json.dumps([o.to_dict() for o in shown], ensure_ascii=False, indent=2))
        return

    echo_gaps(gaps)
    if not shown:
        click.echo("No occurrences in range.")
        return
    for occurrence in shown:
        click.echo(f"  {occurrence.solar_date}  {occurrence.title}  ({occurrence.lunar_label})")


@cli.command()
@click.argument("lunar_date")
@click.option("--year", type=int, help="Lunar year to convert in (default: this year)")
@handle_errors
def convert(lunar_date: str, year: int | None) -> None:
    """Convert a lunar YYYY-M-D birthday to its solar date in one year."""
    birth_year, month, day = parse_lunar_birthday(lunar_date)
    target_year = year if year is not None else date.today().year
    conversion = LunarCalendarConverter().convert(target_year, month, day)
    click.echo(f"{conversion.solar_date.isoformat()} {conversion.label} (age {target_year - birth_year + 1})")


@cli.command()
@click.pass_context
@handle_errors
@async_command
async def calendars(ctx: click.Context) -> None:
    """List calendars of the signed-in user."""
    config = load_config(ctx)
    async with build_client(config) as client:
        items = await client.get_calendars()

    if not items:
        click.echo("No calendars.")
        return
    for item in items:
        click.echo(f"  {item.get('name')}  [{item.get('color')}]  {item.get('id')}")


@cli.command()
@click.argument("calendar_id")
@click.pass_context
@handle_errors
@async_command
async def events(ctx: click.Context, calendar_id: str) -> None:
    """List events in a calendar."""
    config = load_config(ctx)
    async with build_client(config) as client:
        items = await client.get_events(calendar_id)

    if not items:
        click.echo("No events.")
        return
    for item in items:
        start = (item.get("start") or {}).get("dateTime", "")
        click.echo(f"  {start[:10]}  {item.get('subject')}")


@cli.command()
@click.pass_context
@handle_errors
def logout(ctx: click.Context) -> None:
    """Delete the cached Microsoft sign-in."""
    config = load_config(ctx)
    session = AuthSession(config.graph_settings, print_device_code, token_cache_path=config.token_cache_path)
    session.initialize()
    if session.sign_out():
        click.echo("Token cache deleted.")
    else:
        click.echo("No token cache to delete.")


if __name__ == "__main__":
    cli()
