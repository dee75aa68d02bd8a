"""Global fixtures: in-memory key/value medium, store, services."""

import pytest

from taskflow.core.services import ProjectService, TagService, TaskService
from taskflow.database.store import DocumentStore

from tests.fakes import MemoryKeyValueStore


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv: MemoryKeyValueStore) -> DocumentStore:
    """DocumentStore over an empty in-memory medium."""
    return DocumentStore(kv)


@pytest.fixture
def tasks(store: DocumentStore) -> TaskService:
    return TaskService(store)


@pytest.fixture
def projects(store: DocumentStore) -> ProjectService:
    return ProjectService(store)


@pytest.fixture
def tags(store: DocumentStore) -> TagService:
    return TagService(store)
