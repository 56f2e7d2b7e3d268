# tests/conftest.py

from __future__ import annotations

import pytest

from taskboard.app import create_app
from taskboard.config import TestingConfig
from taskboard.stores.sqlite_store import SqliteTaskStore


@pytest.fixture()
def store():
    """Fresh in-memory SQLite store per test."""
    s = SqliteTaskStore(":memory:")
    yield s
    s.close()


@pytest.fixture()
def app(store):
    return create_app(TestingConfig, store=store)


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_task(client):
    """POST a task and return the created JSON record."""

    def _make(**overrides):
        body = {"title": "Test task", "description": "Test description", "priority": "medium"}
        body.update(overrides)
        resp = client.post("/api/tasks", json=body)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()

    return _make
