"""Batched event dispatch and the end-to-end sync run."""

from lunar_birthday.dispatch.dispatcher import (
    DEFAULT_WIDTH,
    BatchedDispatcher,
    DispatchReport,
    EventOptions,
    FailurePolicy,
    OccurrenceResult,
    build_event_request,
)
from lunar_birthday.dispatch.pipeline import BirthdaySync, SyncOptions, SyncSummary

__all__ = [
    "DEFAULT_WIDTH",
    "BatchedDispatcher",
    "BirthdaySync",
    "DispatchReport",
    "EventOptions",
    "FailurePolicy",
    "OccurrenceResult",
    "SyncOptions",
    "SyncSummary",
    "build_event_request",
]
