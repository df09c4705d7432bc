from __future__ import annotations

import httpx
import pytest
from structlog.testing import capture_logs

from provision_ready.agent import orchestrator
from provision_ready.agent.orchestrator import ProvisioningAgent, run_provisioning
from provision_ready.agent.states import HandshakeState
from provision_ready.utils.result import (
    EncodeError,
    ExitCode,
    MissingElementError,
    Ok,
    ProtocolError,
)
from provision_ready.wireserver.goal_state import GoalState
from provision_ready.wireserver.health import build_ready_document


Scripted = list[tuple[int, bytes]]


class FakeWireServer:
    """Scripted WireServer: (status, body) pairs per endpoint, the last one repeats."""

    def __init__(self, goal_state: Scripted, health: Scripted) -> None:
        self.goal_state = goal_state
        self.health = health
        self.requests: list[httpx.Request] = []

    def _next(self, responses: Scripted) -> httpx.Response:
        status, body = responses.pop(0) if len(responses) > 1 else responses[0]
        return httpx.Response(status, content=body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        comp = request.url.params.get("comp")
        if comp == "goalstate":
            return self._next(self.goal_state)
        if comp == "health":
            return self._next(self.health)
        return httpx.Response(404)

    def calls(self, comp: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.params.get("comp") == comp]


def test_end_to_end_reports_ready(make_client, config, sample_goal_state, sleeps, fake_sleep):
    server = FakeWireServer(
        goal_state=[(200, sample_goal_state)],
        health=[(200, b"")],
    )
    agent = ProvisioningAgent(config, client=make_client(server), sleep=fake_sleep)

    result = agent.run()

    expected = GoalState(incarnation="7", container_id="abc", instance_id="inst-1")
    assert result.unwrap() == expected
    health_calls = server.calls("health")
    assert len(health_calls) == 1
    assert health_calls[0].content == build_ready_document(expected).unwrap()
    assert sleeps == []
    assert agent.last_run.state is HandshakeState.DONE
    assert agent.last_run.visited == [
        "START",
        "FETCHING_GOAL_STATE",
        "PARSING_GOAL_STATE",
        "BUILDING_READINESS",
        "REPORTING_READINESS",
        "DONE",
    ]


def test_fetch_never_succeeds_aborts_without_reporting(make_client, config, sleeps, fake_sleep):
    server = FakeWireServer(
        goal_state=[(500, b"")],
        health=[(200, b"")],
    )

    code = run_provisioning(config, client=make_client(server), sleep=fake_sleep)

    assert code == ExitCode.PROTOCOL_FAILED
    assert code != 0
    assert sleeps == [2.0, 4.0, 8.0, 16.0, 32.0, 64.0]
    assert len(server.calls("goalstate")) == 7
    assert server.calls("health") == []


def test_fetch_recovers_after_transient_failures(make_client, config, sample_goal_state, sleeps, fake_sleep):
    server = FakeWireServer(
        goal_state=[
            (503, b""),
            (503, b""),
            (200, sample_goal_state),
        ],
        health=[(200, b"")],
    )

    code = run_provisioning(config, client=make_client(server), sleep=fake_sleep)

    assert code == ExitCode.SUCCESS
    assert sleeps == [2.0, 4.0]


def test_report_is_retried(make_client, config, sample_goal_state, sleeps, fake_sleep):
    server = FakeWireServer(
        goal_state=[(200, sample_goal_state)],
        health=[(500, b""), (200, b"")],
    )

    code = run_provisioning(config, client=make_client(server), sleep=fake_sleep)

    assert code == ExitCode.SUCCESS
    assert len(server.calls("goalstate")) == 1
    assert len(server.calls("health")) == 2
    assert server.calls("health")[0].content == server.calls("health")[1].content
    assert sleeps == [2.0]


def test_report_never_succeeds(make_client, config, sample_goal_state, fake_sleep):
    server = FakeWireServer(
        goal_state=[(200, sample_goal_state)],
        health=[(400, b"")],
    )
    agent = ProvisioningAgent(config, client=make_client(server), sleep=fake_sleep)

    result = agent.run()

    assert result.unwrap_err() == ProtocolError(operation="report_ready", status_code=400)
    assert agent.last_run.state is HandshakeState.ABORTED
    assert agent.last_run.visited[-2:] == ["REPORTING_READINESS", "ABORTED"]


@pytest.mark.parametrize(
    "body, exit_code",
    [
        (b"<GoalState><Incarnation>", ExitCode.MALFORMED_DOCUMENT),
        (b"\xff\xfe\x00", ExitCode.DECODE_FAILED),
        (b"<GoalState><Incarnation>1</Incarnation></GoalState>", ExitCode.MISSING_ELEMENT),
    ],
)
def test_parse_failures_are_not_retried(make_client, config, sleeps, fake_sleep, body, exit_code):
    server = FakeWireServer(
        goal_state=[(200, body)],
        health=[(200, b"")],
    )

    code = run_provisioning(config, client=make_client(server), sleep=fake_sleep)

    assert code == exit_code
    assert len(server.calls("goalstate")) == 1
    assert server.calls("health") == []
    assert sleeps == []


def test_encode_failure_aborts_before_reporting(
    monkeypatch, make_client, config, sample_goal_state, sleeps, fake_sleep
):
    monkeypatch.setattr(
        orchestrator,
        "parse_goal_state",
        lambda raw: Ok(GoalState(incarnation="7", container_id="abc\x01", instance_id="i")),
    )
    server = FakeWireServer(
        goal_state=[(200, sample_goal_state)],
        health=[(200, b"")],
    )
    agent = ProvisioningAgent(config, client=make_client(server), sleep=fake_sleep)

    result = agent.run()

    assert isinstance(result.unwrap_err(), EncodeError)
    assert server.calls("health") == []
    assert sleeps == []
    assert agent.last_run.visited[-2:] == ["BUILDING_READINESS", "ABORTED"]
    assert run_provisioning(config, client=make_client(server), sleep=fake_sleep) == (
        ExitCode.ENCODE_FAILED
    )


def test_missing_element_error_reaches_caller(make_client, config, fake_sleep):
    body = b"<GoalState><Container/></GoalState>"
    server = FakeWireServer(
        goal_state=[(200, body)],
        health=[(200, b"")],
    )
    agent = ProvisioningAgent(config, client=make_client(server), sleep=fake_sleep)

    error = agent.run().unwrap_err()

    assert error == MissingElementError(tag="Incarnation", path="GoalState")


def test_read_goal_state_does_not_report(make_client, config, sample_goal_state, fake_sleep):
    server = FakeWireServer(
        goal_state=[(200, sample_goal_state)],
        health=[(200, b"")],
    )
    agent = ProvisioningAgent(config, client=make_client(server), sleep=fake_sleep)

    goal_state = agent.read_goal_state().unwrap()

    assert goal_state.container_id == "abc"
    assert server.calls("health") == []


def test_final_fetch_error_is_logged_at_abort(make_client, config, fake_sleep):
    server = FakeWireServer(goal_state=[(500, b"")], health=[(200, b"")])
    agent = ProvisioningAgent(config, client=make_client(server), sleep=fake_sleep)

    with capture_logs() as events:
        agent.run()

    names = [e["event"] for e in events]
    assert names.index("retry_limit_exceeded") < names.index("provisioning_aborted")
    assert names[-1] == "provisioning_aborted"
    aborted = events[-1]
    assert aborted["log_level"] == "error"
    assert aborted["error_kind"] == "ProtocolError"
    assert aborted["error"] == "HTTP status code 500 during fetch_goal_state"
    assert aborted["states"] == ["START", "FETCHING_GOAL_STATE", "ABORTED"]
    assert "reporting_ready" not in names


def test_parse_failure_is_logged_without_retry(make_client, config, fake_sleep):
    server = FakeWireServer(goal_state=[(200, b"<GoalState/>")], health=[(200, b"")])
    agent = ProvisioningAgent(config, client=make_client(server), sleep=fake_sleep)

    with capture_logs() as events:
        agent.run()

    names = [e["event"] for e in events]
    assert "attempt_failed" not in names
    assert names.count("provisioning_aborted") == 1
    assert events[-1]["error_kind"] == "MissingElementError"


def test_successful_run_logs_progress(make_client, config, sample_goal_state, fake_sleep):
    server = FakeWireServer(goal_state=[(200, sample_goal_state)], health=[(200, b"")])
    agent = ProvisioningAgent(config, client=make_client(server), sleep=fake_sleep)

    with capture_logs() as events:
        agent.run()

    names = [e["event"] for e in events if e["log_level"] == "info"]
    assert names == ["fetching_goal_state", "goal_state_parsed", "reporting_ready", "reported_ready"]
    parsed = next(e for e in events if e["event"] == "goal_state_parsed")
    assert parsed["incarnation"] == "7"
    assert parsed["instance_id"] == "inst-1"


def test_unexpected_exception_aborts_run(make_client, config, fake_sleep):
    def handler(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("transport exploded")

    agent = ProvisioningAgent(config, client=make_client(handler), sleep=fake_sleep)

    with capture_logs() as events:
        with pytest.raises(RuntimeError):
            agent.run()

    assert agent.last_run.state is HandshakeState.ABORTED
    assert isinstance(agent.last_run.error, RuntimeError)
    assert events[-1]["event"] == "provisioning_aborted"
    assert events[-1]["error_kind"] == "RuntimeError"
