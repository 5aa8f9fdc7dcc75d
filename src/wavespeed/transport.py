"""Single HTTP exchange with connection-level retry.

Only network-layer failures (DNS, refused connection, TLS handshake, a
client-side timeout before a response arrived) are retried here. Any HTTP
response ends the loop: 2xx is returned, everything else becomes an
``HTTPStatusError`` for the caller to classify.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from .deadline import Deadline
from .exceptions import (
    CancelledError,
    ConnectionExhaustedError,
    DeadlineExceededError,
    HTTPStatusError,
    ProtocolError,
)
from .telemetry import TelemetryContext, TelemetryContextProtocol

log = logging.getLogger(__name__)


class TransportRetrier:
    """Executes one request, retrying on transport errors with linear back-off."""

    def __init__(
        self,
        http_client: httpx.Client,
        *,
        max_connection_retries: int,
        retry_interval: float,
        connection_timeout: float,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self._client = http_client
        self.max_connection_retries = max_connection_retries
        self.retry_interval = retry_interval
        self.connection_timeout = connection_timeout
        self._telemetry = telemetry or TelemetryContext()

    def _timeout_for(self, deadline: Deadline) -> httpx.Timeout:
        # Connect is capped by the configured connection timeout; the rest of
        # the exchange may use whatever is left of the run budget.
        remaining = deadline.remaining()
        return httpx.Timeout(remaining, connect=min(self.connection_timeout, remaining))

    def exchange(
        self,
        method: str,
        url: str,
        *,
        deadline: Deadline,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
        files: dict[str, Any] | None = None,
        description: str = "request",
        task_id: str | None = None,
    ) -> httpx.Response:
        """Send the request and return the 2xx response.

        Raises:
            ConnectionExhaustedError: Every attempt failed at the transport layer.
            HTTPStatusError: The service answered with a non-2xx status.
            DeadlineExceededError: The run budget ran out before an attempt.
            CancelledError: The run was cancelled while waiting to retry.
        """
        total_attempts = self.max_connection_retries + 1

        for attempt in range(1, total_attempts + 1):
            if deadline.cancelled:
                raise CancelledError(task_id)
            if deadline.expired():
                raise DeadlineExceededError(deadline.timeout, task_id)

            try:
                response = self._client.request(
                    method,
                    url,
                    headers=headers,
                    content=content,
                    files=files,
                    timeout=self._timeout_for(deadline),
                )
            except httpx.TransportError as e:
                if attempt >= total_attempts:
                    raise ConnectionExhaustedError(
                        f"{description} failed: {e}", attempts=total_attempts
                    ) from e

                delay = self.retry_interval * attempt
                if delay >= deadline.remaining():
                    # The back-off alone would outlive the run budget
                    raise DeadlineExceededError(deadline.timeout, task_id) from e
                log.warning(
                    "Connection error during %s on attempt %d/%d: %s. Retrying in %.1f seconds...",
                    description,
                    attempt,
                    total_attempts,
                    e,
                    delay,
                )
                self._telemetry.count("connection_retry", attempt=attempt)
                if not deadline.sleep(delay):
                    raise CancelledError(task_id) from e
                continue

            if not response.is_success:
                raise HTTPStatusError(
                    f"{description} failed",
                    status_code=response.status_code,
                    body=response.text,
                    url=url,
                )
            return response

        # range() always yields at least once and every path above returns or raises
        raise AssertionError("unreachable")


def decode_json(response: httpx.Response, *, context: str) -> Any:
    """Decode a JSON body, mapping malformed payloads to ``ProtocolError``."""
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"{context}: response is not valid JSON: {e}") from e
