"""Shared fixtures for the file store tests."""

import os

# Pin the settings the tests rely on before the app module is imported
os.environ['STORAGE_BACKEND'] = 'memory'
os.environ['UPLOADS_NAMING'] = 'random'
os.environ['UPLOADS_RESPONSE'] = 'redirect'
os.environ['SAFE_UPLOADS_PATH'] = '/safe'
os.environ['SAFE_UPLOADS_NAMING'] = 'original'

import pytest
from fastapi.testclient import TestClient

from filestore.core.database import get_store
from filestore.services.memory_store import MemoryBlobStore
from helpers import CHUNK_SIZE
from main import app


@pytest.fixture
def store() -> MemoryBlobStore:
    """Empty in-memory store with a small chunk size.

    Returns:
        MemoryBlobStore instance.
    """
    return MemoryBlobStore(chunk_size=CHUNK_SIZE)


@pytest.fixture
def client(store: MemoryBlobStore):
    """Test client whose routes use the ``store`` fixture.

    Yields:
        TestClient bound to the application.
    """
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
