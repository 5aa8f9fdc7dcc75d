"""WaveSpeed API client: run models and upload files."""

from __future__ import annotations

import logging
from pathlib import Path
import threading
from types import TracebackType
from typing import Any, Self

import httpx

from .config import ClientConfig, RunOptions, resolve_config
from .deadline import Deadline
from .exceptions import InvalidArgumentError
from .models import Prediction, RunResult
from .runner import TaskRunner
from .telemetry import TelemetryContext, TelemetryContextProtocol
from .transport import TransportRetrier
from .upload import FileUploader

log = logging.getLogger(__name__)


class Client:
    """Client bound to one immutable configuration.

    Instances may be shared between threads; each ``run`` call keeps its own
    state and the underlying ``httpx.Client`` is thread-safe.

    Examples:
        with create_client() as client:
            result = client.run("wavespeed-ai/z-image/turbo", {"prompt": "Cat"})
            print(result.outputs[0])
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        http_client: httpx.Client | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        """Create a client.

        Args:
            config: Frozen configuration; resolved from the environment when omitted.
            http_client: Optional pre-built ``httpx.Client``; the caller keeps
                ownership and must close it.
            telemetry: Optional telemetry context shared by all components.
        """
        self.config = config or resolve_config().to_frozen()
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client()
        self._telemetry = telemetry or TelemetryContext()

        self.transport = TransportRetrier(
            self._http,
            max_connection_retries=self.config.max_connection_retries,
            retry_interval=self.config.retry_interval,
            connection_timeout=self.config.connection_timeout,
            telemetry=self._telemetry,
        )
        self.runner = TaskRunner(self.config, self.transport, telemetry=self._telemetry)
        self.uploader = FileUploader(self.config, self.transport)

        log.debug("Client initialized: %s", self.config)

    def run(
        self,
        model: str,
        input: dict[str, Any] | None = None,  # noqa: A002
        *,
        timeout: float | None = None,
        poll_interval: float | None = None,
        enable_sync_mode: bool | None = None,
        max_retries: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RunResult:
        """Run a model and wait for its outputs.

        Keyword arguments left as ``None`` fall back to the client configuration.
        """
        options = RunOptions(
            timeout=timeout,
            poll_interval=poll_interval,
            enable_sync_mode=enable_sync_mode,
            max_retries=max_retries,
        )
        return self.runner.run(model, input, options, cancel_event=cancel_event)

    def get_result(self, task_id: str, *, timeout: float | None = None) -> Prediction:
        """Fetch the current state of a previously submitted task."""
        if timeout is not None and timeout <= 0:
            raise InvalidArgumentError(f"timeout must be positive, got {timeout}")
        deadline = Deadline(self.config.timeout if timeout is None else timeout)
        return self.runner.get_result(
            task_id, deadline=deadline, headers=self.runner.auth_headers()
        )

    def upload(self, file: str | Path, *, timeout: float | None = None) -> str:
        """Upload a local file and return its download URL."""
        return self.uploader.upload(file, timeout=timeout)

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            self._http.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


def create_client(
    api_key: str | None = None,
    *,
    env_file: str | Path | None = None,
    http_client: httpx.Client | None = None,
    telemetry: TelemetryContextProtocol | None = None,
    **overrides: Any,
) -> Client:
    """Build a client from defaults, ``WAVESPEED_*`` variables and overrides.

    Examples:
        client = create_client()  # environment only
        client = create_client("sk-...", max_retries=2, timeout=120)
    """
    resolved = resolve_config({"api_key": api_key, **overrides}, use_env_file=env_file)
    return Client(resolved.to_frozen(), http_client=http_client, telemetry=telemetry)
