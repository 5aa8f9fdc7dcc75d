"""
Global test configuration.
"""

import os

import pytest

from tests.helpers import FakeService, make_client


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def isolate_wavespeed_env(request, monkeypatch):
    """Ensure a clean WAVESPEED_* environment for each test.

    Escape hatch: mark a test with @pytest.mark.allow_env_pollution to keep the
    current environment unchanged.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith("WAVESPEED_"):
            monkeypatch.delenv(key, raising=False)
    # Avoid DEBUG toggles affecting telemetry paths
    monkeypatch.delenv("DEBUG", raising=False)


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "allow_env_pollution: keep WAVESPEED_* variables for this test"
    )


@pytest.fixture
def service():
    """An empty FakeService; tests fill in the route queues."""
    return FakeService()


@pytest.fixture
def client_factory():
    """Build clients bound to a FakeService, closing them after the test."""
    created = []

    def _make(service: FakeService, **overrides):
        client = make_client(service, **overrides)
        created.append(client)
        return client

    yield _make

    for client in created:
        client._http.close()


@pytest.fixture
def recorded_sleeps(monkeypatch):
    """Replace Deadline.sleep with an instant fake that records each delay."""
    from wavespeed.deadline import Deadline

    delays: list[float] = []

    def _fake_sleep(self, seconds):
        delays.append(seconds)
        return not self.cancelled

    monkeypatch.setattr(Deadline, "sleep", _fake_sleep)
    return delays
