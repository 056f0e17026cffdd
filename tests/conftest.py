"""
Pytest configuration and fixtures for the test suite.
"""
import os
import sys

import pytest

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from fastapi.testclient import TestClient

from credential_library import CredentialManager
from metadata_app.config import ServerConfig
from metadata_app.server import create_app
from tests.fixtures.credential_mocks import StaticSource, service_account_credential


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test"
    )


@pytest.fixture(scope="session")
def anyio_backend():
    """Set the async backend for pytest-asyncio."""
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep host credentials and configuration out of the tests."""
    for name in list(os.environ):
        if name.startswith("METADATA_EMULATOR_") or name.startswith("TIMEOUT_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("CLOUDSDK_CONFIG", raising=False)
    monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS", raising=False)


@pytest.fixture
def server_config():
    """Configuration with two simple scopes."""
    return ServerConfig(scopes=("a", "b"))


@pytest.fixture
def static_source():
    """Credential source resolving to a service account in project 'proj'."""
    return StaticSource(service_account_credential())


@pytest.fixture
def make_client(server_config):
    """Factory building a TestClient around a given credential source."""
    clients = []

    def _make(source, config=None):
        app = create_app(config or server_config, CredentialManager([source]))
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client, static_source):
    return make_client(static_source)


@pytest.fixture
def flavor():
    return {"Metadata-Flavor": "Google"}
