"""Telemetry for runs, submissions and polls.

Off by default: ``TelemetryContext()`` hands back one shared no-op object so
the hot path costs a method call. Set ``WAVESPEED_TELEMETRY=1`` (or
``DEBUG=1``) and pass at least one reporter to get scoped timings and
counters such as ``run.poll.poll_iteration`` or ``run.submit.connection_retry``.
"""

from collections import deque
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
import logging
import os
import time
from types import TracebackType
from typing import Any, Protocol, Self, runtime_checkable

log = logging.getLogger(__name__)

# Per-thread / per-task scope path, e.g. ("run", "poll")
_active_scopes: ContextVar[tuple[str, ...]] = ContextVar("wavespeed_scopes", default=())

# Evaluated once at import time
_TELEMETRY_ENABLED = (
    os.getenv("WAVESPEED_TELEMETRY") == "1" or os.getenv("DEBUG") == "1"
)


@runtime_checkable
class TelemetryReporter(Protocol):
    """Anything that accepts timings and metrics keyed by dotted scope path."""

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None: ...  # noqa: D102
    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None: ...  # noqa: D102


def _position(parents: tuple[str, ...]) -> dict[str, Any]:
    return {
        "depth": len(parents),
        "parent_scope": ".".join(parents) or None,
    }


@dataclass(frozen=True, slots=True)
class _DisabledTelemetry:
    """Stateless stand-in used whenever telemetry is off."""

    def __call__(self, name: str, **metadata: Any) -> Self:  # noqa: ARG002
        return self

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        return None

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        pass

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        pass


class _ScopedTelemetry:
    """Forwards scope timings and metrics to every reporter."""

    __slots__ = ("reporters",)

    def __init__(self, *reporters: TelemetryReporter):
        self.reporters = reporters

    def __call__(
        self, name: str, **metadata: Any
    ) -> AbstractContextManager["_ScopedTelemetry"]:
        if not name or not isinstance(name, str):
            raise ValueError("Scope name must be a non-empty string")
        return self._timed(name, metadata)

    @contextmanager
    def _timed(self, name: str, metadata: dict[str, Any]) -> Iterator["_ScopedTelemetry"]:
        parents = _active_scopes.get()
        token = _active_scopes.set((*parents, name))
        started = time.perf_counter()
        try:
            yield self
        finally:
            elapsed = time.perf_counter() - started
            _active_scopes.reset(token)
            self._dispatch(
                "record_timing",
                ".".join((*parents, name)),
                elapsed,
                {**_position(parents), **metadata},
            )

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        """Record a value under the current scope path."""
        parents = _active_scopes.get()
        self._dispatch(
            "record_metric",
            ".".join((*parents, name)),
            value,
            {**_position(parents), **metadata},
        )

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        """Record a counter increment, e.g. one connection retry."""
        self.metric(name, increment, metric_type="counter", **metadata)

    def _dispatch(
        self, method: str, scope: str, value: Any, metadata: dict[str, Any]
    ) -> None:
        # A broken reporter must never fail a run
        for reporter in self.reporters:
            try:
                getattr(reporter, method)(scope, value, **metadata)
            except Exception as e:
                log.error(
                    "Telemetry reporter '%s' failed: %s",
                    type(reporter).__name__,
                    e,
                    exc_info=True,
                )


_DISABLED = _DisabledTelemetry()

type TelemetryContextProtocol = _ScopedTelemetry | _DisabledTelemetry


def TelemetryContext(*reporters: TelemetryReporter) -> TelemetryContextProtocol:  # noqa: N802
    """Return a telemetry context.

    Factory returns either a reporting context or the shared disabled
    instance when telemetry is off or no reporter was given.
    """
    if _TELEMETRY_ENABLED and reporters:
        return _ScopedTelemetry(*reporters)
    return _DISABLED


class InMemoryReporter:
    """Keeps recent timings and metrics per scope; handy in tests and notebooks.

    Example:
        reporter = InMemoryReporter()
        client = Client(config, telemetry=TelemetryContext(reporter))
        client.run("wavespeed-ai/flux-dev", {"prompt": "Cat"})
        print(reporter.get_report())
    """

    def __init__(self, max_entries_per_scope: int = 1000):
        self.max_entries = max_entries_per_scope
        self.timings: dict[str, deque[tuple[float, dict[str, Any]]]] = {}
        self.metrics: dict[str, deque[tuple[Any, dict[str, Any]]]] = {}

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None:
        self.timings.setdefault(scope, deque(maxlen=self.max_entries)).append(
            (duration, metadata)
        )

    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None:
        self.metrics.setdefault(scope, deque(maxlen=self.max_entries)).append(
            (value, metadata)
        )

    def total(self, scope: str) -> float:
        """Sum of numeric values recorded under ``scope``."""
        return sum(
            value
            for value, _ in self.metrics.get(scope, ())
            if isinstance(value, int | float)
        )

    def get_report(self) -> str:
        """One line per scope: call count and durations, then counter totals."""
        lines = ["=== Telemetry Report ==="]
        for scope, entries in sorted(self.timings.items()):
            durations = [duration for duration, _ in entries]
            lines.append(
                f"{scope:<30} | Calls: {len(durations):<4} | "
                f"Avg: {sum(durations) / len(durations):.4f}s | "
                f"Total: {sum(durations):.4f}s"
            )
        lines.extend(
            f"{scope:<30} | Count: {len(self.metrics[scope]):<4} | "
            f"Total: {self.total(scope):,.0f}"
            for scope in sorted(self.metrics)
        )
        return "\n".join(lines)
