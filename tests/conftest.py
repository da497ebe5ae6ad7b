import os

import pytest

from component_bus.page import Page
from component_bus.testing.mocks.transport import RecordingTransport
from tests.helpers.components import Recorder


@pytest.fixture(autouse=True)
def restore_environment():
    """AUTOUSE: Restores environment variables changed by a test (e.g. via monkeypatch or os.environ)."""
    original_environ = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_environ)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def page(transport: RecordingTransport) -> Page:
    """A page wired to a recording transport."""
    return Page(transport=transport)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def client():
    """FastAPI TestClient with the application lifespan running.

    The app is imported lazily so environment changes made by a test are seen by `Settings`.
    """
    from fastapi.testclient import TestClient

    from component_bus.main import app

    with TestClient(app) as test_client:
        yield test_client
