"""Pytest configuration for provision_ready tests."""
import sys
from pathlib import Path

# Allow running the suite without an editable install
_PROJECT_ROOT = Path(__file__).parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import httpx
import pytest

from provision_ready.config.settings import AgentConfig
from provision_ready.utils.logging import configure_logging
from provision_ready.wireserver.client import WireServerClient

SAMPLE_GOAL_STATE = (
    b"<GoalState><Incarnation>7</Incarnation><Container><ContainerId>abc</ContainerId>"
    b"<RoleInstanceList><RoleInstance><InstanceId>inst-1</InstanceId></RoleInstance>"
    b"</RoleInstanceList></Container></GoalState>"
)


@pytest.fixture(autouse=True)
def _logging_to_current_stderr():
    """Point structlog at the stream pytest is capturing for this test."""
    configure_logging(level="debug", format_type="text", stream=sys.stderr)
    yield


@pytest.fixture
def sample_goal_state() -> bytes:
    return SAMPLE_GOAL_STATE


@pytest.fixture
def config() -> AgentConfig:
    return AgentConfig(endpoint="http://wireserver.test")


@pytest.fixture
def make_client(config):
    """Build a WireServerClient whose requests go to ``handler``."""
    opened: list[httpx.Client] = []

    def _make(handler) -> WireServerClient:
        http = httpx.Client(transport=httpx.MockTransport(handler))
        opened.append(http)
        return WireServerClient(config, http_client=http)

    yield _make

    for http in opened:
        http.close()


@pytest.fixture
def sleeps() -> list[float]:
    """Records requested backoff intervals instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append
