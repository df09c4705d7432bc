"""Goal state retrieval and parsing."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from xml.etree import ElementTree as ET

from provision_ready.utils.logging import get_logger
from provision_ready.utils.result import (
    DecodeError,
    Err,
    MalformedDocumentError,
    MissingElementError,
    Ok,
    ProtocolError,
    Result,
    TransportError,
)
from provision_ready.wireserver.client import WireServerClient

logger = get_logger("wireserver.goal_state")

GOAL_STATE_PATH = "machine?comp=goalstate"


@dataclass(frozen=True)
class GoalState:
    """Identity of this instance for one goal-state epoch."""

    incarnation: str
    container_id: str
    instance_id: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def fetch_goal_state(
    client: WireServerClient,
) -> Result[bytes, TransportError | ProtocolError]:
    """
    Retrieve the raw goal state document.

    Args:
        client: WireServer client

    Returns:
        Ok(body) on HTTP 200, otherwise a transport or protocol error
    """
    result = client.send(
        "GET",
        GOAL_STATE_PATH,
        headers=client.version_headers(),
        operation="fetch_goal_state",
    )
    if result.is_err():
        return result

    response = result.unwrap()
    if response.status_code != 200:
        return Err(ProtocolError(
            operation="fetch_goal_state",
            status_code=response.status_code,
        ))
    return Ok(response.body)


def _child(
    element: ET.Element,
    tag: str,
    path: str,
) -> Result[ET.Element, MissingElementError]:
    child = element.find(tag)
    if child is None:
        return Err(MissingElementError(tag=tag, path=path))
    return Ok(child)


def _text(element: ET.Element) -> str:
    return element.text or ""


def parse_goal_state(
    raw: bytes,
) -> Result[GoalState, DecodeError | MalformedDocumentError | MissingElementError]:
    """
    Parse a goal state document.

    The lookup path is fixed: ``Incarnation`` and ``Container`` under the
    root, ``ContainerId`` and ``RoleInstanceList/RoleInstance/InstanceId``
    under the container. Only the first ``RoleInstance`` is read. A missing
    element is an error; an empty one yields ``""``.

    Args:
        raw: Response body

    Returns:
        Ok(GoalState) or the first error encountered
    """
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        return Err(DecodeError(message=str(e), cause=e))

    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        return Err(MalformedDocumentError(message=str(e), cause=e))

    root_path = root.tag

    result = _child(root, "Incarnation", root_path)
    if result.is_err():
        return result
    incarnation = result.unwrap()

    result = _child(root, "Container", root_path)
    if result.is_err():
        return result
    container = result.unwrap()
    container_path = f"{root_path}/Container"

    result = _child(container, "ContainerId", container_path)
    if result.is_err():
        return result
    container_id = result.unwrap()

    result = _child(container, "RoleInstanceList", container_path)
    if result.is_err():
        return result
    role_instance_list = result.unwrap()
    list_path = f"{container_path}/RoleInstanceList"

    result = _child(role_instance_list, "RoleInstance", list_path)
    if result.is_err():
        return result
    role_instance = result.unwrap()

    # TODO: report readiness for every RoleInstance once multi-instance
    # containers are confirmed to exist; only the first is read today.
    result = _child(role_instance, "InstanceId", f"{list_path}/RoleInstance")
    if result.is_err():
        return result
    instance_id = result.unwrap()

    goal_state = GoalState(
        incarnation=_text(incarnation),
        container_id=_text(container_id),
        instance_id=_text(instance_id),
    )
    logger.debug("goal_state_decoded", **goal_state.to_dict())
    return Ok(goal_state)
