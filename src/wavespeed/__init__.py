"""Python client for the WaveSpeed inference API."""

import importlib.metadata
import logging

from wavespeed.client import Client, create_client
from wavespeed.config import ClientConfig, RunOptions, resolve_config
from wavespeed.exceptions import (
    CancelledError,
    ConnectionExhaustedError,
    DeadlineExceededError,
    HTTPStatusError,
    InvalidArgumentError,
    MissingCredentialError,
    MissingTaskIDError,
    ProtocolError,
    ServiceError,
    TaskFailedError,
    UploadError,
    WaveSpeedError,
    is_retryable,
)
from wavespeed.models import Prediction, RunResult, TaskState
from wavespeed.telemetry import InMemoryReporter, TelemetryContext, TelemetryReporter

# Version handling
try:
    __version__ = importlib.metadata.version("wavespeed")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Set up a null handler for the library's root logger.
# This prevents 'No handler found' errors if the consuming app has no logging configured.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [  # noqa: RUF022
    # Client
    "Client",
    "create_client",
    # Configuration
    "ClientConfig",
    "RunOptions",
    "resolve_config",
    # Results
    "RunResult",
    "Prediction",
    "TaskState",
    # Telemetry (extension points)
    "TelemetryContext",
    "TelemetryReporter",
    "InMemoryReporter",
    # Exceptions
    "WaveSpeedError",
    "InvalidArgumentError",
    "MissingCredentialError",
    "ConnectionExhaustedError",
    "HTTPStatusError",
    "ServiceError",
    "ProtocolError",
    "MissingTaskIDError",
    "DeadlineExceededError",
    "TaskFailedError",
    "CancelledError",
    "UploadError",
    "is_retryable",
]
