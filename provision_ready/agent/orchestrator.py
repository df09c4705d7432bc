"""Sequencing of the provisioning handshake.

    START -> FETCHING_GOAL_STATE -> PARSING_GOAL_STATE -> BUILDING_READINESS
          -> REPORTING_READINESS -> DONE

Any failure moves the run to ABORTED. Fetching and reporting are retried
with backoff; parsing and building are deterministic and run once.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from provision_ready.agent.states import HandshakeRun, HandshakeState
from provision_ready.config.settings import AgentConfig
from provision_ready.utils.logging import (
    clear_run_context,
    get_logger,
    new_run_id,
    set_run_context,
    set_stage,
)
from provision_ready.utils.result import (
    Err,
    ExitCode,
    Ok,
    ProvisioningError,
    Result,
    exit_code_for,
)
from provision_ready.wireserver.client import WireServerClient
from provision_ready.wireserver.goal_state import (
    GoalState,
    fetch_goal_state,
    parse_goal_state,
)
from provision_ready.wireserver.health import build_ready_document, report_ready
from provision_ready.wireserver.retry import retry_with_config

logger = get_logger("agent.orchestrator")


class ProvisioningAgent:
    """
    Runs one goal-state cycle against the WireServer.

    Nothing is kept between runs; each call to :meth:`run` fetches a fresh
    goal state.
    """

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        client: Optional[WireServerClient] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the agent.

        Args:
            config: Agent configuration (defaults to the WireServer constants)
            client: Pre-built client; when omitted one is created per run
            sleep: Sleep function used between retries
        """
        self.config = config or AgentConfig()
        self._client = client
        self._sleep = sleep
        self.last_run: Optional[HandshakeRun] = None

    @contextmanager
    def _open_client(self) -> Iterator[WireServerClient]:
        if self._client is not None:
            yield self._client
            return
        with WireServerClient(self.config) as client:
            yield client

    def _enter(self, run: HandshakeRun, state: HandshakeState) -> None:
        run.transition_to(state)
        set_stage(state.stage)

    def _abort(self, run: HandshakeRun, error: ProvisioningError) -> Err:
        run.abort(error)
        set_stage(run.state.stage)
        logger.error(
            "provisioning_aborted",
            error=str(error),
            error_kind=type(error).__name__,
            states=run.visited,
        )
        return Err(error)

    def _fetch_raw(self, client: WireServerClient) -> Result[bytes, ProvisioningError]:
        return retry_with_config(
            lambda: fetch_goal_state(client),
            self.config.retry,
            sleep=self._sleep,
            description="fetch_goal_state",
        )

    def read_goal_state(self) -> Result[GoalState, ProvisioningError]:
        """Fetch and parse the goal state without reporting readiness."""
        with self._open_client() as client:
            return self._fetch_raw(client).and_then(parse_goal_state)

    def run(self) -> Result[GoalState, ProvisioningError]:
        """
        Fetch the goal state and report the instance ready for it.

        Returns:
            Ok(GoalState) that readiness was reported for, or the error that
            aborted the run
        """
        run = HandshakeRun(run_id=new_run_id())
        self.last_run = run
        set_run_context(run.run_id, stage=run.state.stage)

        try:
            with self._open_client() as client:
                self._enter(run, HandshakeState.FETCHING_GOAL_STATE)
                logger.info("fetching_goal_state", endpoint=client.endpoint)
                fetched = self._fetch_raw(client)
                if fetched.is_err():
                    return self._abort(run, fetched.unwrap_err())

                self._enter(run, HandshakeState.PARSING_GOAL_STATE)
                parsed = parse_goal_state(fetched.unwrap())
                if parsed.is_err():
                    return self._abort(run, parsed.unwrap_err())
                goal_state = parsed.unwrap()
                logger.info("goal_state_parsed", **goal_state.to_dict())

                self._enter(run, HandshakeState.BUILDING_READINESS)
                built = build_ready_document(goal_state)
                if built.is_err():
                    return self._abort(run, built.unwrap_err())
                document = built.unwrap()

                self._enter(run, HandshakeState.REPORTING_READINESS)
                logger.info("reporting_ready", incarnation=goal_state.incarnation)
                logger.debug("readiness_document", document=document.decode("utf-8"))
                reported = retry_with_config(
                    lambda: report_ready(client, document),
                    self.config.retry,
                    sleep=self._sleep,
                    description="report_ready",
                )
                if reported.is_err():
                    return self._abort(run, reported.unwrap_err())

                self._enter(run, HandshakeState.DONE)
                logger.info(
                    "reported_ready",
                    incarnation=goal_state.incarnation,
                    instance_id=goal_state.instance_id,
                )
                return Ok(goal_state)
        except Exception as e:
            if not run.state.is_terminal():
                run.abort(e)
                set_stage(run.state.stage)
                logger.error(
                    "provisioning_aborted",
                    error=str(e),
                    error_kind=type(e).__name__,
                    states=run.visited,
                )
            raise
        finally:
            clear_run_context()


def run_provisioning(
    config: Optional[AgentConfig] = None,
    client: Optional[WireServerClient] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Run one handshake and return the process exit code.

    Args:
        config: Agent configuration
        client: Optional pre-built client
        sleep: Sleep function used between retries

    Returns:
        ExitCode.SUCCESS, or the exit code for the error that aborted the run
    """
    agent = ProvisioningAgent(config=config, client=client, sleep=sleep)
    result = agent.run()
    if result.is_ok():
        return ExitCode.SUCCESS
    return exit_code_for(result.unwrap_err())
