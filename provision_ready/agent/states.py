"""FSM state definitions for the provisioning handshake."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Optional


class HandshakeState(Enum):
    """States of one provisioning run."""

    START = auto()
    FETCHING_GOAL_STATE = auto()
    PARSING_GOAL_STATE = auto()
    BUILDING_READINESS = auto()
    REPORTING_READINESS = auto()

    # Terminal states
    DONE = auto()
    ABORTED = auto()

    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self in (HandshakeState.DONE, HandshakeState.ABORTED)

    @property
    def stage(self) -> str:
        """Name used in log context."""
        return self.name.lower()


# Valid state transitions
TRANSITIONS: dict[HandshakeState, set[HandshakeState]] = {
    HandshakeState.START: {
        HandshakeState.FETCHING_GOAL_STATE,
        HandshakeState.ABORTED,
    },
    HandshakeState.FETCHING_GOAL_STATE: {
        HandshakeState.PARSING_GOAL_STATE,
        HandshakeState.ABORTED,
    },
    HandshakeState.PARSING_GOAL_STATE: {
        HandshakeState.BUILDING_READINESS,
        HandshakeState.ABORTED,
    },
    HandshakeState.BUILDING_READINESS: {
        HandshakeState.REPORTING_READINESS,
        HandshakeState.ABORTED,
    },
    HandshakeState.REPORTING_READINESS: {
        HandshakeState.DONE,
        HandshakeState.ABORTED,
    },
    # Terminal states have no transitions
    HandshakeState.DONE: set(),
    HandshakeState.ABORTED: set(),
}


class TransitionError(Exception):
    """Invalid state transition."""

    def __init__(self, from_state: HandshakeState, to_state: HandshakeState) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid transition: {from_state.name} -> {to_state.name}"
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class HandshakeRun:
    """State of a single goal-state cycle."""

    run_id: str
    state: HandshakeState = HandshakeState.START
    entered_at: datetime = field(default_factory=_now)

    # (state name, time it was left)
    history: list[tuple[str, str]] = field(default_factory=list)

    # Set when the run is aborted
    error: Optional[Any] = None

    def can_transition_to(self, new_state: HandshakeState) -> bool:
        """Check if transition to new_state is valid."""
        return new_state in TRANSITIONS.get(self.state, set())

    def transition_to(self, new_state: HandshakeState) -> None:
        """
        Transition to a new state.

        Raises:
            TransitionError: If transition is invalid
        """
        if not self.can_transition_to(new_state):
            raise TransitionError(self.state, new_state)

        self.history.append((self.state.name, _now().isoformat()))
        self.state = new_state
        self.entered_at = _now()

    def abort(self, error: Any) -> None:
        """Move to ABORTED, recording the error that ended the run."""
        self.transition_to(HandshakeState.ABORTED)
        self.error = error

    @property
    def visited(self) -> list[str]:
        """Names of every state entered so far, in order."""
        return [name for name, _ in self.history] + [self.state.name]

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "state": self.state.name,
            "entered_at": self.entered_at.isoformat(),
            "history": self.history,
            "error": str(self.error) if self.error is not None else None,
        }
