"""Test configuration."""
import os
from pathlib import Path
from typing import Callable, Dict

import httpx
import pytest
from dotenv import load_dotenv
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"

# Load test environment variables
test_env_path = Path(__file__).parents[3] / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from lexibook.config import DAY_MS
from lexibook.services.api_client import ApiClient
from lexibook.server.app import create_app
from lexibook.storage import MemoryKeyValueStore

API_URL = "http://testserver/api"
JWT_SECRET = "test-secret-key-that-is-long-enough-for-hs256"

fake = Faker()


class FakeClock:
    """Clock returning a settable epoch-millis value."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int = 0, days: int = 0) -> None:
        self.now += millis + days * DAY_MS


def flask_handler(app) -> Callable[[httpx.Request], httpx.Response]:
    """httpx transport handler that answers requests with the Flask test client."""
    client = app.test_client()

    def handler(request: httpx.Request) -> httpx.Response:
        headers = {
            name: value for name, value in request.headers.items()
            if name.lower() in ("authorization", "content-type")
        }
        response = client.open(
            request.url.raw_path.decode("ascii"),
            method=request.method,
            headers=headers,
            data=request.content,
        )
        return httpx.Response(
            response.status_code,
            content=response.get_data(),
            headers={"Content-Type": response.content_type},
        )

    return handler


@pytest.fixture
def clock() -> FakeClock:
    """A clock pinned to an arbitrary instant."""
    return FakeClock(1_700_000_000_000)


@pytest.fixture
def store() -> MemoryKeyValueStore:
    """An empty in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture
def server_app(tmp_path):
    """Sync server backed by a fresh SQLite file."""
    app = create_app(
        database_url=f"sqlite:///{tmp_path / 'server.db'}",
        jwt_secret=JWT_SECRET,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def server_client(server_app):
    """Flask test client for the sync server."""
    return server_app.test_client()


@pytest.fixture
def api(server_app) -> ApiClient:
    """HTTP layer talking to the in-process sync server."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(flask_handler(server_app)))
    return ApiClient(API_URL, http_client=http_client)


@pytest.fixture
def account() -> Dict[str, str]:
    """Credentials for a new user."""
    return {
        "username": fake.unique.user_name(),
        "email": fake.unique.email(),
        "password": fake.password(length=12),
    }


@pytest.fixture
def auth_headers(server_client, account) -> Dict[str, str]:
    """Bearer headers of a freshly registered user."""
    response = server_client.post("/api/auth/register", json=account)
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.get_json()['token']}"}
