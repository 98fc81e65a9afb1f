"""API fixtures: a TestClient over an in-memory service with a manual timer backend."""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from actionflow.api.app import create_app


@pytest.fixture
def app(service, settings):
    return create_app(service, settings=settings)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    # entering the client runs the lifespan (scheduler start, drain on exit)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def workflow_body():
    return {
        "name": "Order follow-up",
        "description": "Notify, pause, open a task",
        "trigger": {"type": "manual"},
        "actions": [
            {
                "id": "notify",
                "type": "notification",
                "config": {"message": "New order", "recipients": ["sales"]},
            },
            {"id": "pause", "type": "wait", "config": {"duration": 2, "unit": "seconds"}},
            {"id": "ticket", "type": "task", "config": {"title": "T"}},
        ],
    }
