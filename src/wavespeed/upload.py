"""
File upload to the WaveSpeed media endpoint
"""  # noqa: D200, D212, D415

import logging
from pathlib import Path

from .config import ClientConfig
from .constants import ENVELOPE_OK, UPLOAD_PATH
from .deadline import Deadline
from .exceptions import InvalidArgumentError, MissingCredentialError, UploadError
from .models import UploadEnvelope, parse_envelope
from .transport import TransportRetrier, decode_json

log = logging.getLogger(__name__)


class FileUploader:
    """Uploads local files and returns their download URL"""  # noqa: D415

    def __init__(self, config: ClientConfig, transport: TransportRetrier):  # noqa: D107
        self.config = config
        self.transport = transport

    def upload(self, file_path: str | Path, *, timeout: float | None = None) -> str:
        """Upload a file as multipart field ``file`` and return ``download_url``."""
        if not self.config.api_key:
            raise MissingCredentialError()
        if timeout is not None and timeout <= 0:
            raise InvalidArgumentError(f"timeout must be positive, got {timeout}")

        path = Path(file_path)
        try:
            payload = path.read_bytes()
        except FileNotFoundError as e:
            raise UploadError(f"file not found: {path}") from e
        except OSError as e:
            raise UploadError(f"cannot read {path}: {e}") from e

        deadline = Deadline(self.config.timeout if timeout is None else timeout)
        response = self.transport.exchange(
            "POST",
            self.config.api_root + UPLOAD_PATH,
            deadline=deadline,
            headers={"Authorization": f"Bearer {self.config.api_key}"},
            files={"file": (path.name, payload)},
            description="upload file",
        )
        envelope = parse_envelope(
            UploadEnvelope,
            decode_json(response, context="upload file"),
            context="upload",
        )
        if envelope.code != ENVELOPE_OK:
            # A missing code is a failure for uploads
            raise UploadError(f"upload failed: unexpected response code {envelope.code}")

        download_url = envelope.data.download_url if envelope.data else None
        if not download_url:
            raise UploadError("upload failed: no download_url in response")
        log.debug("Uploaded %s (%d bytes)", path.name, len(payload))
        return download_url
