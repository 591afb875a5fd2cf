"""Microsoft Graph authentication and calendar client."""

from lunar_birthday.graph.auth import AuthSession, DeviceCodeCallback
from lunar_birthday.graph.client import (
    CALENDAR_COLORS,
    DEFAULT_TIME_ZONE,
    FREE_BUSY_STATUSES,
    GRAPH_API_BASE,
    IMPORTANCE_LEVELS,
    GraphCalendarClient,
    initialize_graph,
)

__all__ = [
    "AuthSession",
    "DeviceCodeCallback",
    "CALENDAR_COLORS",
    "DEFAULT_TIME_ZONE",
    "FREE_BUSY_STATUSES",
    "GRAPH_API_BASE",
    "IMPORTANCE_LEVELS",
    "GraphCalendarClient",
    "initialize_graph",
]
