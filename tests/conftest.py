import os

# Must be set before importing app so the module-level store never points at a
# real data file. load_dotenv() does not override existing env vars.
os.environ.setdefault("DATA_FILE", os.path.join(os.path.dirname(__file__), "_unused_todos.json"))

import pytest
from fastapi.testclient import TestClient

from app import app, get_service
from store import JsonFileStore, MemoryStore
from tasks import TaskService


@pytest.fixture
def store():
    """An empty in-memory document."""
    return MemoryStore()


@pytest.fixture
def file_store(tmp_path):
    """A JsonFileStore under the per-test tmp dir, opened and closed around the test."""
    s = JsonFileStore(tmp_path / "data" / "todos.json")
    s.open()
    yield s
    s.close()


@pytest.fixture
def service(store):
    return TaskService(store)


@pytest.fixture
def client(service):
    """
    A TestClient whose get_service dependency is overridden to use the
    per-test in-memory store.

    TestClient is used without the context manager so the startup hook does
    not open the module-level file store.
    """
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app, raise_server_exceptions=True)
    app.dependency_overrides.clear()


@pytest.fixture
def alice(client):
    """A user with two tasks already on the list."""
    for text in ("write tests", "buy milk"):
        r = client.post("/api/tasks/alice", json={"text": text})
        assert r.status_code == 200
    return "alice"
