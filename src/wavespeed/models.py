"""Wire models and result types for predictions.

The JSON envelope is validated with Pydantic; everything the runner hands back
to callers is a plain frozen dataclass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from .constants import ENVELOPE_OK
from .exceptions import ProtocolError, ServiceError


class TaskState(str, Enum):
    """Task status as reported by the service."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskState.PROCESSING


class PredictionPayload(BaseModel):
    """The ``data`` object of a prediction response."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    model: str | None = None
    status: str | None = None
    input: Any = None
    outputs: list[Any] | None = None
    error: str | None = None


class PredictionEnvelope(BaseModel):
    """Top-level ``{code, message, data}`` response body."""

    model_config = ConfigDict(extra="ignore")

    code: int | None = None
    message: str | None = None
    data: PredictionPayload | None = None


class UploadPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    download_url: str | None = None


class UploadEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: int | None = None
    message: str | None = None
    data: UploadPayload | None = None


def parse_envelope[E: BaseModel](
    model: type[E], body: Any, *, context: str
) -> E:
    """Validate a decoded JSON body and enforce the envelope ``code``.

    Raises:
        ProtocolError: If the body does not have the envelope shape.
        ServiceError: If the envelope reports a non-200 ``code``.
    """
    try:
        envelope = model.model_validate(body)
    except ValidationError as e:
        raise ProtocolError(f"{context}: invalid response format: {e}") from e

    code = getattr(envelope, "code", None)
    if code is not None and code != ENVELOPE_OK:
        raise ServiceError(
            f"{context} failed",
            code=code,
            service_message=getattr(envelope, "message", None) or "",
        )
    return envelope


@dataclass(frozen=True)
class Prediction:
    """A task snapshot with a recognized status."""

    id: str | None
    status: TaskState
    model: str | None = None
    outputs: tuple[Any, ...] = ()
    error: str | None = None
    input: Any = None

    @classmethod
    def from_payload(cls, data: PredictionPayload | None, *, context: str) -> Prediction:
        """Build a prediction, rejecting missing data or unknown statuses."""
        if data is None:
            raise ProtocolError(f"{context}: invalid response format: missing data")
        if data.status is None:
            raise ProtocolError(f"{context}: missing status in response")
        try:
            status = TaskState(data.status)
        except ValueError:
            raise ProtocolError(
                f"{context}: unrecognized status {data.status!r}"
            ) from None
        return cls(
            id=data.id or None,
            status=status,
            model=data.model,
            outputs=tuple(data.outputs or ()),
            error=data.error or None,
            input=data.input,
        )


@dataclass(frozen=True)
class RunResult:
    """Normalized outcome of a successful run."""

    outputs: tuple[Any, ...]
    task_id: str | None = None
    model: str | None = None
    prediction: Prediction | None = field(default=None, repr=False)

    @classmethod
    def from_prediction(
        cls, prediction: Prediction, *, model: str, task_id: str | None = None
    ) -> RunResult:
        return cls(
            outputs=prediction.outputs,
            task_id=task_id or prediction.id,
            model=prediction.model or model,
            prediction=prediction,
        )

    def __getitem__(self, key: str) -> Any:
        """Mapping-style access, e.g. ``result["outputs"]``."""
        if key == "outputs":
            return list(self.outputs)
        raise KeyError(key)
