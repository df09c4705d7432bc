"""Readiness document construction and reporting."""

from __future__ import annotations

import io
import re
from xml.sax.saxutils import XMLGenerator, escape

from provision_ready.utils.logging import get_logger
from provision_ready.utils.result import (
    EncodeError,
    Err,
    Ok,
    ProtocolError,
    Result,
    TransportError,
)
from provision_ready.wireserver.client import WireServerClient
from provision_ready.wireserver.goal_state import GoalState

logger = get_logger("wireserver.health")

HEALTH_PATH = "machine?comp=health"
READY_STATE = "Ready"
CONTENT_TYPE = "text/xml; charset=utf-8"

# Characters outside the XML 1.0 Char production
_INVALID_XML_CHARS = re.compile(
    r"[^\t\n\r\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]"
)


class _HealthGenerator(XMLGenerator):
    """XMLGenerator that keeps carriage returns through a parse round trip."""

    def characters(self, content: str) -> None:
        if content:
            self._finish_pending_start_element()
            self._write(escape(content, {"\r": "&#13;"}))


class _HealthWriter:
    """Streaming element writer over ``XMLGenerator``."""

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._generator = _HealthGenerator(
            self._buffer,
            encoding="utf-8",
            short_empty_elements=False,
        )
        self._generator.startDocument()

    def start(self, tag: str) -> None:
        self._generator.startElement(tag, {})

    def end(self, tag: str) -> None:
        self._generator.endElement(tag)

    def leaf(self, tag: str, text: str) -> None:
        self.start(tag)
        self._generator.characters(text)
        self.end(tag)

    def finish(self) -> bytes:
        self._generator.endDocument()
        return self._buffer.getvalue()


def _check_text(field: str, value: str) -> Result[str, EncodeError]:
    match = _INVALID_XML_CHARS.search(value)
    if match:
        return Err(EncodeError(
            field=field,
            message=(
                f"character U+{ord(match.group()):04X} at offset {match.start()} "
                "cannot be represented in XML"
            ),
        ))
    return Ok(value)


def build_ready_document(goal_state: GoalState) -> Result[bytes, EncodeError]:
    """
    Serialize the health report asserting this instance is ready.

    The element layout is fixed; the goal state fields are written as text
    nodes. The same goal state always produces the same bytes.

    Args:
        goal_state: Parsed goal state

    Returns:
        Ok(document bytes) or Err(EncodeError)
    """
    for field, value in goal_state.to_dict().items():
        checked = _check_text(field, value)
        if checked.is_err():
            return checked

    try:
        w = _HealthWriter()
        w.start("Health")
        w.leaf("GoalStateIncarnation", goal_state.incarnation)
        w.start("Container")
        w.leaf("ContainerId", goal_state.container_id)
        w.start("RoleInstanceList")
        w.start("Role")
        w.leaf("InstanceId", goal_state.instance_id)
        w.start("Health")
        w.leaf("State", READY_STATE)
        w.end("Health")
        w.end("Role")
        w.end("RoleInstanceList")
        w.end("Container")
        w.end("Health")
        document = w.finish()
    except (ValueError, UnicodeError) as e:
        return Err(EncodeError(field="document", message=str(e)))

    logger.debug("readiness_document_built", length=len(document))
    return Ok(document)


def report_ready(
    client: WireServerClient,
    document: bytes,
) -> Result[None, TransportError | ProtocolError]:
    """
    Post the readiness document to the WireServer.

    Args:
        client: WireServer client
        document: Output of :func:`build_ready_document`

    Returns:
        Ok(None) on HTTP 200, otherwise a transport or protocol error
    """
    headers = client.version_headers()
    headers.update({
        "x-ms-agent-name": client.config.protocol.agent_name,
        "content-type": CONTENT_TYPE,
        "content-length": str(len(document)),
    })

    result = client.send(
        "POST",
        HEALTH_PATH,
        headers=headers,
        body=document,
        operation="report_ready",
    )
    if result.is_err():
        return result

    response = result.unwrap()
    if response.status_code != 200:
        return Err(ProtocolError(
            operation="report_ready",
            status_code=response.status_code,
        ))
    return Ok(None)
