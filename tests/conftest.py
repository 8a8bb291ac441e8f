"""Test configuration."""
import os
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from datetime import datetime
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

# --- Config env par défaut
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("REMOTE_SYNC_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from civictrust import db  # noqa: E402
from civictrust.config import Settings  # noqa: E402
from civictrust.main import app  # noqa: E402
from civictrust.schemas.state import AppState  # noqa: E402
from civictrust.services import engine  # noqa: E402
from civictrust.services.dispatcher import Dispatcher, get_dispatcher  # noqa: E402
from civictrust.services.remote import RemoteClient, get_remote_client, reset_remote_stats  # noqa: E402
from civictrust.services.state_store import StateStore  # noqa: E402
from factories import DEMO_PASSWORDS, NOW  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def state() -> AppState:
    return engine.initial_state(NOW)


@pytest.fixture
def database(tmp_path: Path) -> Iterator[str]:
    """Fresh SQLite file per test, wired into the shared engine."""

    url = f"sqlite:///{tmp_path / 'civictrust_test.db'}"
    db.close_engine()
    db.init_engine(url)
    db.create_all()
    yield url
    db.close_engine()


@pytest.fixture
def offline_remote() -> RemoteClient:
    reset_remote_stats()
    return RemoteClient(Settings(REMOTE_SYNC_ENABLED=False))


@pytest.fixture
def store(database: str) -> StateStore:
    return StateStore(db.get_sessionmaker(), "test_state")


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def dispatcher(store: StateStore, offline_remote: RemoteClient, clock: Callable[[], datetime]) -> Dispatcher:
    return Dispatcher(store, offline_remote, clock=clock)


@pytest.fixture
def override_dependencies(dispatcher: Dispatcher, offline_remote: RemoteClient) -> Iterator[None]:
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_remote_client] = lambda: offline_remote
    yield
    app.dependency_overrides.pop(get_dispatcher, None)
    app.dependency_overrides.pop(get_remote_client, None)


@pytest.fixture
async def client(override_dependencies: None) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def login_as(client: AsyncClient) -> Callable[[str], Awaitable[dict[str, str]]]:
    async def _login(role: str) -> dict[str, str]:
        email, password = DEMO_PASSWORDS[role]
        response = await client.post(
            "/auth/login", json={"email": email, "password": password, "device_id": f"{role}-device"}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['session_token']}"}

    return _login
