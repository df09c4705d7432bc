"""HTTP transport for the WireServer.

Thin wrapper over ``httpx.Client`` that turns every transport-level failure
into a ``TransportError`` value. Status codes are not interpreted here; the
fetcher and reporter decide what a non-200 answer means.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from provision_ready.config.settings import AgentConfig
from provision_ready.utils.logging import get_logger
from provision_ready.utils.result import Err, Ok, Result, TransportError

logger = get_logger("wireserver.client")


@dataclass(frozen=True)
class HttpResponse:
    """Status and body of a completed request."""

    status_code: int
    body: bytes


class WireServerClient:
    """
    Sends requests to the WireServer endpoint.

    The client owns its ``httpx.Client`` unless one is passed in, in which
    case closing is left to the caller.
    """

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.config = config or AgentConfig()
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(
            timeout=httpx.Timeout(self.config.protocol.timeout),
            follow_redirects=False,
        )

    @property
    def endpoint(self) -> str:
        return self.config.endpoint.rstrip("/")

    def url_for(self, path: str) -> str:
        return f"{self.endpoint}/{path.lstrip('/')}"

    def version_headers(self) -> dict[str, str]:
        """Headers every WireServer request carries."""
        return {"x-ms-version": self.config.protocol.version}

    def send(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        body: Optional[bytes] = None,
        operation: str = "request",
    ) -> Result[HttpResponse, TransportError]:
        """
        Perform one request.

        Args:
            method: HTTP method
            path: Path and query relative to the endpoint
            headers: Request headers
            body: Optional request body
            operation: Name used in errors and logs

        Returns:
            Ok(HttpResponse) for any status code, Err(TransportError) if the
            request could not complete
        """
        url = self.url_for(path)
        logger.debug("http_request", method=method, url=url, operation=operation)

        try:
            response = self._http.request(method, url, headers=headers, content=body)
        except httpx.HTTPError as e:
            return Err(TransportError(
                operation=operation,
                message=str(e) or type(e).__name__,
                cause=e,
            ))

        logger.debug(
            "http_response",
            operation=operation,
            status_code=response.status_code,
            length=len(response.content),
        )
        return Ok(HttpResponse(status_code=response.status_code, body=response.content))

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "WireServerClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
