import pytest

import quillflow.persistence as persistence
from quillflow.persistence import InMemoryContentRepository
from quillflow.queues import InMemoryJobQueue
from tests.fixtures.collaborators import make_services


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    for name in (
        "QUILLFLOW_CONFIG",
        "QUILLFLOW_DATABASE_URL",
        "DATABASE_URL",
        "QUILLFLOW_QUEUE",
        "QUILLFLOW_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None


@pytest.fixture
def repository():
    return InMemoryContentRepository()


@pytest.fixture
def queue():
    return InMemoryJobQueue(backoff_delay=0, poll_interval=0.01)


@pytest.fixture
def services(repository):
    return make_services(repository)
