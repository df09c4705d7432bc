"""Provisioning agent: runs the goal state / readiness handshake."""

from provision_ready.agent.orchestrator import ProvisioningAgent, run_provisioning
from provision_ready.agent.states import (
    TRANSITIONS,
    HandshakeRun,
    HandshakeState,
    TransitionError,
)

__all__ = [
    "ProvisioningAgent",
    "run_provisioning",
    "HandshakeRun",
    "HandshakeState",
    "TransitionError",
    "TRANSITIONS",
]
