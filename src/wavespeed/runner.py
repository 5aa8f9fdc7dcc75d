"""Submit, poll and task-level retry for a single prediction.

One ``run`` call drives exactly one logical task:

1. submit the input (``POST {api}/{model}``);
2. in sync mode the submit response is already terminal; otherwise poll
   ``GET {api}/predictions/{id}/result`` until ``completed`` or ``failed``;
3. if the whole attempt fails with a transient error, back off and start
   over with a fresh submission.

All sleeps and timeouts draw from one ``Deadline`` created at call entry.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
import logging
import threading
from typing import Any

from .config import ClientConfig, EffectiveRunSettings, RunOptions
from .constants import (
    RESULT_PATH,
    SUBMIT_PATH,
    SYNC_MODE_FIELD,
    UNKNOWN_ERROR,
    UNKNOWN_TASK_ID,
)
from .deadline import Deadline
from .exceptions import (
    CancelledError,
    DeadlineExceededError,
    InvalidArgumentError,
    MissingCredentialError,
    MissingTaskIDError,
    ProtocolError,
    TaskFailedError,
    WaveSpeedError,
    is_retryable,
)
from .models import Prediction, PredictionEnvelope, RunResult, TaskState, parse_envelope
from .telemetry import TelemetryContext, TelemetryContextProtocol
from .transport import TransportRetrier, decode_json

log = logging.getLogger(__name__)


class TaskRunner:
    """State machine that turns one run request into HTTP exchanges."""

    def __init__(
        self,
        config: ClientConfig,
        transport: TransportRetrier,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self.config = config
        self.transport = transport
        self._telemetry = telemetry or TelemetryContext()

    # --- Public entry points ---

    def run(
        self,
        model: str,
        input: Mapping[str, Any] | None = None,  # noqa: A002
        options: RunOptions | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> RunResult:
        """Run a model to completion and return its outputs.

        Args:
            model: Model identifier, e.g. ``"wavespeed-ai/flux-dev"``.
            input: Model input; never mutated.
            options: Per-call overrides of the client defaults.
            cancel_event: Setting this event from another thread aborts the run.

        Raises:
            InvalidArgumentError: Empty model id or a non-mapping input.
            MissingCredentialError: No API key configured.
            TaskFailedError: The service reported the task as failed.
            DeadlineExceededError: The overall timeout was reached.
            WaveSpeedError: Any other terminal error; the last one when
                task-level retries are exhausted.
        """
        model = self._validate_model(model)
        document = self._validate_input(input)
        settings = (options or RunOptions()).resolve(self.config)
        headers = self.auth_headers()
        deadline = Deadline(settings.timeout, cancel_event=cancel_event)

        total_attempts = settings.max_retries + 1
        last_error: WaveSpeedError | None = None

        with self._telemetry("run", model=model, sync=settings.enable_sync_mode):
            for attempt in range(total_attempts):
                try:
                    return self._attempt(model, document, settings, deadline, headers)
                except WaveSpeedError as e:
                    last_error = e
                    if not is_retryable(e) or attempt >= settings.max_retries:
                        break

                    delay = self.config.retry_interval * (attempt + 1)
                    if delay >= deadline.remaining():
                        raise DeadlineExceededError(deadline.timeout) from e
                    log.warning(
                        "Task attempt %d/%d failed: %s. Retrying in %.1f seconds...",
                        attempt + 1,
                        total_attempts,
                        e,
                        delay,
                    )
                    self._telemetry.count("task_retry", attempt=attempt + 1)
                    if not deadline.sleep(delay):
                        raise CancelledError() from e

        if last_error is None:
            raise WaveSpeedError(f"all {total_attempts} attempts failed")
        raise last_error

    def submit(
        self,
        model: str,
        document: Mapping[str, Any],
        *,
        enable_sync_mode: bool,
        deadline: Deadline,
        headers: dict[str, str],
    ) -> str | RunResult:
        """Send the work request.

        Returns:
            The task id in async mode, or the terminal ``RunResult`` in sync mode.
        """
        body = dict(document)
        if enable_sync_mode:
            body[SYNC_MODE_FIELD] = True
        try:
            content = json.dumps(body).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"input is not JSON serializable: {e}") from e

        url = self.config.api_root + SUBMIT_PATH.format(model=model)
        with self._telemetry("submit", model=model):
            response = self.transport.exchange(
                "POST",
                url,
                deadline=deadline,
                headers=headers,
                content=content,
                description="submit prediction",
            )
            envelope = parse_envelope(
                PredictionEnvelope,
                decode_json(response, context="submit prediction"),
                context="submit prediction",
            )

        if enable_sync_mode:
            return self._sync_result(envelope, model)

        task_id = envelope.data.id if envelope.data else None
        if not task_id:
            raise MissingTaskIDError(f"no request ID in response: {envelope!r}")
        log.debug("Submitted %s as task %s", model, task_id)
        return task_id

    def get_result(
        self, task_id: str, *, deadline: Deadline, headers: dict[str, str]
    ) -> Prediction:
        """Fetch the current state of a task once."""
        if not task_id:
            raise InvalidArgumentError("task_id is required")
        url = self.config.api_root + RESULT_PATH.format(task_id=task_id)
        context = f"get result for task {task_id}"
        response = self.transport.exchange(
            "GET",
            url,
            deadline=deadline,
            headers=headers,
            description=context,
            task_id=task_id,
        )
        envelope = parse_envelope(
            PredictionEnvelope, decode_json(response, context=context), context=context
        )
        return Prediction.from_payload(envelope.data, context=context)

    def wait(
        self,
        task_id: str,
        *,
        model: str,
        poll_interval: float,
        deadline: Deadline,
        headers: dict[str, str],
    ) -> RunResult:
        """Poll a task until it reaches a terminal state."""
        with self._telemetry("poll", model=model):
            while True:
                # Checked before every exchange so an exhausted budget is never
                # hidden behind one more round-trip.
                if deadline.cancelled:
                    raise CancelledError(task_id)
                if deadline.expired():
                    raise DeadlineExceededError(deadline.timeout, task_id)

                prediction = self.get_result(task_id, deadline=deadline, headers=headers)
                self._telemetry.count("poll_iteration")

                if prediction.status is TaskState.COMPLETED:
                    log.debug("Task %s completed", task_id)
                    return RunResult.from_prediction(
                        prediction, model=model, task_id=task_id
                    )
                if prediction.status is TaskState.FAILED:
                    raise TaskFailedError(task_id, prediction.error or UNKNOWN_ERROR)

                if not deadline.sleep(min(poll_interval, deadline.remaining())):
                    raise CancelledError(task_id)

    # --- Internals ---

    def _attempt(
        self,
        model: str,
        document: Mapping[str, Any],
        settings: EffectiveRunSettings,
        deadline: Deadline,
        headers: dict[str, str],
    ) -> RunResult:
        outcome = self.submit(
            model,
            document,
            enable_sync_mode=settings.enable_sync_mode,
            deadline=deadline,
            headers=headers,
        )
        if isinstance(outcome, RunResult):
            return outcome
        return self.wait(
            outcome,
            model=model,
            poll_interval=settings.poll_interval,
            deadline=deadline,
            headers=headers,
        )

    def _sync_result(self, envelope: PredictionEnvelope, model: str) -> RunResult:
        data = envelope.data
        if data is None:
            raise ProtocolError("submit prediction: invalid response format: missing data")

        # Anything short of "completed" is a failure in sync mode; there is
        # no handle to poll.
        if data.status != TaskState.COMPLETED.value:
            raise TaskFailedError(data.id or UNKNOWN_TASK_ID, data.error or UNKNOWN_ERROR)

        prediction = Prediction.from_payload(data, context="submit prediction")
        return RunResult.from_prediction(prediction, model=model)

    def auth_headers(self) -> dict[str, str]:
        if not self.config.api_key:
            raise MissingCredentialError()
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }

    @staticmethod
    def _validate_model(model: Any) -> str:
        normalized = model.strip().strip("/") if isinstance(model, str) else ""
        if not normalized:
            raise InvalidArgumentError("model is required")
        return normalized

    @staticmethod
    def _validate_input(document: Any) -> Mapping[str, Any]:
        if document is None:
            return {}
        if not isinstance(document, Mapping):
            raise InvalidArgumentError(
                f"input must be a mapping, got {type(document).__name__}"
            )
        return document
