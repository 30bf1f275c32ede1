import pytest
from fastapi.testclient import TestClient

from minecraft_world_manager.web.dependencies import get_app_context
from minecraft_world_manager.web.main import app


@pytest.fixture
def client(app_context):
    """A test client whose requests use the test application context."""
    app.dependency_overrides[get_app_context] = lambda: app_context
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
