"""Unit tests for the submit/poll state machine and task-level retry."""

import json
import logging
import threading
import time

import httpx
import pytest

from tests.helpers import API_ROOT, FakeService, envelope, submitted
from wavespeed import (
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
)

pytestmark = pytest.mark.unit

MODEL = "wavespeed-ai/z-image/turbo"


class TestValidation:
    def test_missing_api_key_fails_before_any_request(self, client_factory, service):
        client = client_factory(service, api_key=None)

        with pytest.raises(MissingCredentialError, match="WAVESPEED_API_KEY"):
            client.run(MODEL, {"prompt": "Cat"})

        assert service.requests == []

    @pytest.mark.parametrize("model", ["", "   ", "/", None])
    def test_empty_model_is_rejected(self, client_factory, service, model):
        client = client_factory(service)

        with pytest.raises(InvalidArgumentError, match="model is required"):
            client.run(model, {"prompt": "Cat"})

        assert service.requests == []

    def test_non_mapping_input_is_rejected(self, client_factory, service):
        client = client_factory(service)

        with pytest.raises(InvalidArgumentError, match="input must be a mapping"):
            client.run(MODEL, ["prompt"])  # type: ignore[arg-type]

    def test_unserializable_input_is_rejected(self, client_factory, service):
        client = client_factory(service)

        with pytest.raises(InvalidArgumentError, match="not JSON serializable"):
            client.run(MODEL, {"prompt": object()})

        assert service.requests == []


class TestSubmit:
    def test_request_shape(self, client_factory):
        """Should POST the input as JSON to the model path with a bearer token."""
        service = FakeService(submit=[submitted("t-1")], poll=[envelope(task_id="t-1")])
        client = client_factory(service)

        client.run(f" /{MODEL}/ ", {"prompt": "Cat", "seed": 7})

        request = service.calls("submit")[0]
        assert request.method == "POST"
        assert str(request.url) == f"{API_ROOT}/{MODEL}"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {"prompt": "Cat", "seed": 7}

    def test_input_is_not_mutated(self, client_factory):
        service = FakeService(submit=[envelope(outputs=["a.png"])])
        client = client_factory(service)
        document = {"prompt": "Cat"}

        client.run(MODEL, document, enable_sync_mode=True)

        assert document == {"prompt": "Cat"}
        assert service.submit_bodies()[0]["enable_sync_mode"] is True

    def test_none_input_sends_empty_object(self, client_factory):
        service = FakeService(submit=[envelope(outputs=[])])
        client = client_factory(service)

        client.run(MODEL, enable_sync_mode=True)

        assert service.submit_bodies() == [{"enable_sync_mode": True}]

    def test_missing_task_id_is_not_retried(self, client_factory):
        service = FakeService(submit=[submitted(task_id=None)])
        client = client_factory(service, max_retries=3)

        with pytest.raises(MissingTaskIDError, match="no request ID"):
            client.run(MODEL, {"prompt": "Cat"})

        assert len(service.calls("submit")) == 1
        assert service.calls("poll") == []

    def test_envelope_error_code_is_service_error(self, client_factory):
        service = FakeService(submit=[envelope(code=400)])
        client = client_factory(service, max_retries=2)

        with pytest.raises(ServiceError) as exc_info:
            client.run(MODEL, {"prompt": "Cat"})

        assert exc_info.value.code == 400
        assert not exc_info.value.transient
        assert len(service.calls("submit")) == 1

    def test_transient_envelope_code_is_retried(self, client_factory, recorded_sleeps):
        service = FakeService(
            submit=[envelope(code=503), submitted("t-2")],
            poll=[envelope(task_id="t-2", outputs=["x"])],
        )
        client = client_factory(service, max_retries=1, retry_interval=2.0)

        result = client.run(MODEL, {"prompt": "Cat"})

        assert result.outputs == ("x",)
        assert len(service.calls("submit")) == 2
        assert recorded_sleeps[0] == 2.0

    def test_malformed_json_is_protocol_error(self, client_factory):
        service = FakeService(submit=[httpx.Response(200, text="not json")])
        client = client_factory(service, max_retries=2)

        with pytest.raises(ProtocolError, match="not valid JSON"):
            client.run(MODEL, {"prompt": "Cat"})

        assert len(service.calls("submit")) == 1


class TestPolling:
    def test_poll_url_uses_task_id(self, client_factory):
        service = FakeService(
            submit=[submitted("abc")], poll=[envelope(task_id="abc", outputs=["o"])]
        )
        client = client_factory(service)

        client.run(MODEL, {"prompt": "Cat"})

        request = service.calls("poll")[0]
        assert request.method == "GET"
        assert str(request.url) == f"{API_ROOT}/predictions/abc/result"

    def test_completed_without_outputs_yields_empty_tuple(self, client_factory):
        service = FakeService(submit=[submitted()], poll=[envelope("completed")])
        client = client_factory(service)

        result = client.run(MODEL, {"prompt": "Cat"})

        assert result.outputs == ()
        assert result["outputs"] == []

    @pytest.mark.parametrize("status", ["created", "queued", "weird"])
    def test_unrecognized_status_is_protocol_error(self, client_factory, status):
        service = FakeService(submit=[submitted()], poll=[envelope(status)])
        client = client_factory(service, max_retries=2)

        with pytest.raises(ProtocolError, match="unrecognized status"):
            client.run(MODEL, {"prompt": "Cat"})

        assert len(service.calls("submit")) == 1

    def test_missing_status_is_protocol_error(self, client_factory):
        service = FakeService(submit=[submitted()], poll=[envelope(None)])
        client = client_factory(service)

        with pytest.raises(ProtocolError, match="missing status"):
            client.run(MODEL, {"prompt": "Cat"})

    def test_poll_interval_between_fetches(self, client_factory, recorded_sleeps):
        service = FakeService(
            submit=[submitted()],
            poll=[envelope("processing"), envelope("processing"), envelope(outputs=["o"])],
        )
        client = client_factory(service, poll_interval=0.75)

        client.run(MODEL, {"prompt": "Cat"})

        assert recorded_sleeps == [0.75, 0.75]

    def test_per_call_poll_interval_overrides_client(self, client_factory, recorded_sleeps):
        service = FakeService(
            submit=[submitted()],
            poll=[envelope("processing"), envelope(outputs=["o"])],
        )
        client = client_factory(service, poll_interval=5.0)

        client.run(MODEL, {"prompt": "Cat"}, poll_interval=0.2)

        assert recorded_sleeps == [0.2]

    def test_poll_failure_restarts_whole_task(self, client_factory, recorded_sleeps):
        """Should resubmit from scratch when a poll fails transiently."""
        service = FakeService(
            submit=[submitted("first"), submitted("second")],
            poll=[httpx.Response(503, text="busy"), envelope(task_id="second", outputs=["o"])],
        )
        client = client_factory(service, max_retries=1)

        result = client.run(MODEL, {"prompt": "Cat"})

        assert result.task_id == "second"
        assert len(service.calls("submit")) == 2
        assert [r.url.path.split("/")[-2] for r in service.calls("poll")] == [
            "first",
            "second",
        ]


class TestTaskRetry:
    def test_linear_backoff_between_attempts(self, client_factory, recorded_sleeps):
        service = FakeService(submit=[httpx.Response(500, text="boom")])
        client = client_factory(service, max_retries=3, retry_interval=1.5)

        with pytest.raises(HTTPStatusError):
            client.run(MODEL, {"prompt": "Cat"})

        assert len(service.calls("submit")) == 4
        assert recorded_sleeps == [1.5, 3.0, 4.5]

    def test_per_call_max_retries_overrides_client(self, client_factory, recorded_sleeps):
        service = FakeService(submit=[httpx.Response(500, text="boom")])
        client = client_factory(service, max_retries=5)

        with pytest.raises(HTTPStatusError):
            client.run(MODEL, {"prompt": "Cat"}, max_retries=0)

        assert len(service.calls("submit")) == 1

    def test_connection_exhaustion_is_retried_at_task_level(
        self, client_factory, recorded_sleeps
    ):
        """Should nest the two retry loops: (task retries + 1) x (connection retries + 1)."""
        service = FakeService(submit=[httpx.ConnectError])
        client = client_factory(service, max_retries=1, max_connection_retries=2)

        with pytest.raises(ConnectionExhaustedError):
            client.run(MODEL, {"prompt": "Cat"})

        assert len(service.calls("submit")) == 6

    def test_backoff_longer_than_budget_ends_at_once(self, client_factory):
        """Should not sleep a task back-off that outlasts the remaining budget."""
        service = FakeService(submit=[httpx.Response(503, text="busy")])
        client = client_factory(service, max_retries=2, retry_interval=2.0)

        started = time.monotonic()
        with pytest.raises(DeadlineExceededError) as exc_info:
            client.run(MODEL, {"prompt": "Cat"}, timeout=0.3)

        assert time.monotonic() - started < 1.0
        assert isinstance(exc_info.value.__cause__, HTTPStatusError)
        assert len(service.calls("submit")) == 1

    def test_task_retry_is_logged(self, client_factory, recorded_sleeps, caplog):
        service = FakeService(
            submit=[httpx.Response(502, text="bad gateway"), submitted()],
            poll=[envelope(outputs=["o"])],
        )
        client = client_factory(service, max_retries=1)

        with caplog.at_level(logging.WARNING, logger="wavespeed.runner"):
            client.run(MODEL, {"prompt": "Cat"})

        assert "Task attempt 1/2 failed" in caplog.text

    def test_failed_task_is_terminal(self, client_factory):
        service = FakeService(
            submit=[submitted("t-x")], poll=[envelope("failed", task_id="t-x", error="bad")]
        )
        client = client_factory(service, max_retries=4)

        with pytest.raises(TaskFailedError, match="bad"):
            client.run(MODEL, {"prompt": "Cat"})

        assert len(service.calls("submit")) == 1


class TestSyncMode:
    def test_sync_failure_without_id_uses_unknown(self, client_factory):
        service = FakeService(submit=[envelope("processing", task_id=None)])
        client = client_factory(service)

        with pytest.raises(TaskFailedError) as exc_info:
            client.run(MODEL, {"prompt": "Cat"}, enable_sync_mode=True)

        assert exc_info.value.task_id == "unknown"
        assert exc_info.value.error == "Unknown error"

    def test_sync_missing_data_is_protocol_error(self, client_factory):
        service = FakeService(submit=[{"code": 200, "message": "success"}])
        client = client_factory(service)

        with pytest.raises(ProtocolError, match="missing data"):
            client.run(MODEL, {"prompt": "Cat"}, enable_sync_mode=True)


class TestCancellation:
    def test_preset_event_cancels_before_submit(self, client_factory, service):
        client = client_factory(service)
        event = threading.Event()
        event.set()

        with pytest.raises(CancelledError):
            client.run(MODEL, {"prompt": "Cat"}, cancel_event=event)

        assert service.requests == []

    def test_cancel_during_polling(self, client_factory):
        event = threading.Event()

        def processing_then_cancel(request):
            event.set()
            return httpx.Response(200, json=envelope("processing", task_id="t-c"))

        service = FakeService(submit=[submitted("t-c")], poll=[processing_then_cancel])
        client = client_factory(service, poll_interval=10.0, max_retries=3)

        with pytest.raises(CancelledError) as exc_info:
            client.run(MODEL, {"prompt": "Cat"}, cancel_event=event)

        assert exc_info.value.task_id == "t-c"
        assert len(service.calls("poll")) == 1
        assert len(service.calls("submit")) == 1
