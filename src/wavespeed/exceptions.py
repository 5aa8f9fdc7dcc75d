"""Exceptions raised by the WaveSpeed client.

Every error carries a ``transient`` flag decided where the error is built.
The task-level retry loop reads that flag and nothing else.
"""

from .constants import API_KEY_ENV_VAR, RETRYABLE_STATUS_CODES


def _is_transient_status(code: int) -> bool:
    return 500 <= code <= 599 or code in RETRYABLE_STATUS_CODES


class WaveSpeedError(Exception):
    """Base exception for WaveSpeed client errors"""  # noqa: D415

    transient: bool = False


class InvalidArgumentError(WaveSpeedError):
    """Raised when caller input is rejected before any request is sent"""  # noqa: D415


class MissingCredentialError(WaveSpeedError):
    """Raised when no API key is configured"""  # noqa: D415

    def __init__(self, message: str | None = None):  # noqa: D107
        super().__init__(
            message
            or f"API key is required. Set {API_KEY_ENV_VAR} or pass api_key to the client."
        )


class ConnectionExhaustedError(WaveSpeedError):
    """Raised when every connection attempt for one exchange failed"""  # noqa: D415

    transient = True

    def __init__(self, message: str, *, attempts: int):  # noqa: D107
        super().__init__(f"{message} after {attempts} attempts")
        self.attempts = attempts


class HTTPStatusError(WaveSpeedError):
    """Raised when the service answers with a non-2xx status"""  # noqa: D415

    def __init__(self, message: str, *, status_code: int, body: str, url: str = ""):  # noqa: D107
        super().__init__(f"{message}: HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body
        self.url = url
        self.transient = _is_transient_status(status_code)


class ServiceError(WaveSpeedError):
    """Raised when an HTTP 200 response carries a failing envelope code"""  # noqa: D415

    def __init__(self, message: str, *, code: int, service_message: str = ""):  # noqa: D107
        super().__init__(f"{message}: code {code}: {service_message}")
        self.code = code
        self.service_message = service_message
        self.transient = _is_transient_status(code)


class ProtocolError(WaveSpeedError):
    """Raised when a response does not match the expected contract"""  # noqa: D415


class MissingTaskIDError(ProtocolError):
    """Raised when an asynchronous submission returns no task id"""  # noqa: D415


class DeadlineExceededError(WaveSpeedError):
    """Raised when the overall run budget is spent"""  # noqa: D415

    def __init__(self, timeout: float, task_id: str | None = None):  # noqa: D107
        where = f" (task_id: {task_id})" if task_id else ""
        super().__init__(f"prediction timed out after {timeout:g} seconds{where}")
        self.timeout = timeout
        self.task_id = task_id


class TaskFailedError(WaveSpeedError):
    """Raised when the service reports a task as failed"""  # noqa: D415

    def __init__(self, task_id: str, error: str):  # noqa: D107
        super().__init__(f"prediction failed (task_id: {task_id}): {error}")
        self.task_id = task_id
        self.error = error


class CancelledError(WaveSpeedError):
    """Raised when the caller cancels a run in progress"""  # noqa: D415

    def __init__(self, task_id: str | None = None):  # noqa: D107
        where = f" (task_id: {task_id})" if task_id else ""
        super().__init__(f"prediction cancelled{where}")
        self.task_id = task_id


class UploadError(WaveSpeedError):
    """Raised when a file upload cannot be completed"""  # noqa: D415


def is_retryable(error: BaseException) -> bool:
    """Whether a failed run attempt may be repeated from scratch."""
    return isinstance(error, WaveSpeedError) and error.transient
