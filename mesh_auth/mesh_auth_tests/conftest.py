"""
Shared fixtures for the authentication service tests.

Each test gets its own SQLite file under tmp_path, and the logger service is
replaced by an httpx.MockTransport that records what it receives.
"""
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from mesh_auth.mesh_auth.auth_service.config import Settings
from mesh_auth.mesh_auth.auth_service.db import create_db_engine, init_db
from mesh_auth.mesh_auth.auth_service.main import create_app
from mesh_auth.mesh_auth.auth_service.store import UserStore

LOGGER_URL = "http://logger-service/log"


class LoggerServiceStub:
    """Stands in for the logger service and records posted entries."""

    def __init__(self, status_code: int = 202, fail: bool = False):
        self.status_code = status_code
        self.fail = fail
        self.entries = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            raise httpx.ConnectError("logger-service is down", request=request)
        self.entries.append({"url": str(request.url), **json.loads(request.content)})
        return httpx.Response(self.status_code)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'users.db'}"


@pytest.fixture
def engine(database_url):
    engine = create_db_engine(database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return UserStore(engine, timeout_seconds=3.0)


@pytest.fixture
def logger_service():
    return LoggerServiceStub()


@pytest.fixture
def test_settings(database_url):
    return Settings(DATABASE_URL=database_url, LOGGER_SERVICE_URL=LOGGER_URL)


@pytest.fixture
def client(test_settings, logger_service):
    app = create_app(test_settings, notifier_transport=httpx.MockTransport(logger_service))
    with TestClient(app) as c:
        yield c
