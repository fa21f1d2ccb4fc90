"""Shared fixtures."""

from __future__ import annotations

import os
import tempfile

# Keep test runs from writing logs and databases into the working tree
os.environ.setdefault(
    "DOCKER_COLLECTOR_LOG_FILE", os.path.join(tempfile.gettempdir(), "docker_collector_tests.log")
)
os.environ.setdefault(
    "DOCKER_COLLECTOR_DB_PATH", os.path.join(tempfile.gettempdir(), "docker_collector_tests.db")
)

import pytest  # noqa: E402

from docker_collector.models import CollectionError  # noqa: E402
from docker_collector.store import DocumentStore  # noqa: E402


@pytest.fixture
def document_store(tmp_path):
    store = DocumentStore(tmp_path / "collector.db")
    yield store
    store.close()


@pytest.fixture
def collection_error():
    return CollectionError(errorCode="ping", errorMessages="Ping of tcp://b:2375 failed")
