import pytest
from fastapi.testclient import TestClient

from taskboard.config import Settings
from taskboard.main import create_app
from taskboard.storage.snapshot import TaskSnapshot
from taskboard.storage.task_store import TaskStore


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "tasks.json"


@pytest.fixture
def snapshot(data_file):
    return TaskSnapshot(data_file)


@pytest.fixture
def store(snapshot):
    store = TaskStore(snapshot)
    store.start()
    yield store
    store.stop()


@pytest.fixture
def settings(data_file):
    return Settings(data_file=data_file, request_timeout=5.0, listener_buffer_size=4)


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as client:
        yield client
