"""Scripted fake of the WaveSpeed HTTP API for tests.

``FakeService`` is an ``httpx.MockTransport`` handler. Each route holds a
queue of steps; a step is either a JSON-able dict (HTTP 200), an
``httpx.Response``, an exception class from ``httpx`` to raise, or a callable
taking the request. The last step of a queue repeats once the queue runs dry.
"""

from collections.abc import Callable
from dataclasses import replace
import json
from typing import Any

import httpx

from wavespeed import Client, ClientConfig

BASE_URL = "https://api.test"
API_ROOT = f"{BASE_URL}/api/v3"

type Step = dict[str, Any] | httpx.Response | type[Exception] | Callable[[httpx.Request], Any]


def envelope(
    status: str | None = "completed",
    *,
    task_id: str | None = "task-123",
    outputs: list[Any] | None = None,
    error: str | None = None,
    code: int = 200,
    model: str = "wavespeed-ai/flux-dev",
) -> dict[str, Any]:
    """Build a prediction response body."""
    data: dict[str, Any] = {"id": task_id, "model": model, "input": {}}
    if status is not None:
        data["status"] = status
    if outputs is not None:
        data["outputs"] = outputs
    if error is not None:
        data["error"] = error
    return {"code": code, "message": "success" if code == 200 else "error", "data": data}


def submitted(task_id: str = "task-123") -> dict[str, Any]:
    return envelope("created", task_id=task_id)


class FakeService:
    """Routes requests to per-endpoint step queues and records them."""

    def __init__(
        self,
        *,
        submit: list[Step] | None = None,
        poll: list[Step] | None = None,
        upload: list[Step] | None = None,
    ) -> None:
        self.routes: dict[str, list[Step]] = {
            "submit": list(submit or []),
            "poll": list(poll or []),
            "upload": list(upload or []),
        }
        self.requests: list[httpx.Request] = []

    def _route(self, request: httpx.Request) -> str:
        path = request.url.path
        if path.endswith("/media/upload/binary"):
            return "upload"
        if request.method == "GET" and path.endswith("/result"):
            return "poll"
        return "submit"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes[self._route(request)]
        if not queue:
            raise AssertionError(f"unexpected request: {request.method} {request.url}")
        step = queue.pop(0) if len(queue) > 1 else queue[0]

        if isinstance(step, type) and issubclass(step, Exception):
            raise step("simulated transport failure", request=request)
        if isinstance(step, httpx.Response):
            return step
        if callable(step):
            return step(request)
        return httpx.Response(200, json=step)

    def calls(self, route: str) -> list[httpx.Request]:
        return [r for r in self.requests if self._route(r) == route]

    def submit_bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.calls("submit")]


def make_config(**overrides: Any) -> ClientConfig:
    """Fast defaults: no back-off, no connection retries, short budget."""
    base = ClientConfig(
        api_key="test-key",
        base_url=BASE_URL,
        connection_timeout=10.0,
        timeout=30.0,
        poll_interval=0.0,
        max_retries=0,
        max_connection_retries=0,
        retry_interval=0.0,
    )
    return replace(base, **overrides)


def make_client(service: FakeService, **overrides: Any) -> Client:
    http_client = httpx.Client(transport=httpx.MockTransport(service))
    return Client(make_config(**overrides), http_client=http_client)
