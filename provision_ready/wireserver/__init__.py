"""WireServer protocol: goal state retrieval and readiness reporting.

    GET  machine?comp=goalstate  -> GoalState
    POST machine?comp=health     <- readiness document built from the GoalState

Both requests are wrapped by :func:`retry`; parsing and building are pure.
"""

from provision_ready.wireserver.client import HttpResponse, WireServerClient
from provision_ready.wireserver.goal_state import (
    GoalState,
    fetch_goal_state,
    parse_goal_state,
)
from provision_ready.wireserver.health import build_ready_document, report_ready
from provision_ready.wireserver.retry import retry, retry_with_config

__all__ = [
    # Transport
    "HttpResponse",
    "WireServerClient",
    # Goal state
    "GoalState",
    "fetch_goal_state",
    "parse_goal_state",
    # Health
    "build_ready_document",
    "report_ready",
    # Retry
    "retry",
    "retry_with_config",
]
