"""Pytest fixtures and configuration for tasklens tests."""

import pytest
import uuid
from datetime import date
from fastapi.testclient import TestClient

from tasklens.config import ProviderSettings, Settings
from tasklens.integrations.model_providers import ModelProvider
from tasklens.models.task import Task


# Wednesday; the Monday-based week is 2025-01-13 .. 2025-01-19
TODAY = date(2025, 1, 15)


class StubProvider(ModelProvider):
    """Model provider returning canned responses (or raising canned errors) in order."""

    def __init__(self, *responses):
        super().__init__(ProviderSettings(api_key="test-key"))
        self.responses = list(responses)
        self.calls = []

    async def complete(self, system_prompt, history, user_message):
        self.calls.append(
            {"system_prompt": system_prompt, "history": list(history), "user_message": user_message}
        )
        response = self.responses.pop(0) if self.responses else "{}"
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def today():
    """Fixed reference day for date keywords."""
    return TODAY


@pytest.fixture
def settings():
    """Default settings."""
    return Settings()


@pytest.fixture
def sample_task_base():
    """Base task data for creating test tasks.

    Returns a dict with default task attributes that can be overridden.
    """
    return {
        "id": str(uuid.uuid4()),
        "text": "Test task",
        "status_category": "open",
        "status_symbol": None,
        "priority": None,
        "due_date": None,
        "created_date": None,
        "completed_date": None,
        "folder": None,
        "tags": [],
        "note_tags": [],
        "parent_id": None,
        "recurring": False,
    }


@pytest.fixture
def make_task(sample_task_base):
    """Factory for tasks with a fresh id and overridden attributes."""
    def _make(**overrides):
        return Task(**{**sample_task_base, "id": str(uuid.uuid4()), **overrides})
    return _make


@pytest.fixture
def stub_provider():
    """Factory for StubProvider instances."""
    return StubProvider


@pytest.fixture
def test_client(settings):
    """Create a FastAPI test client with settings overridden and no real provider."""
    from tasklens.api.app import app, get_settings

    app.dependency_overrides[get_settings] = lambda: settings

    with TestClient(app) as client:
        yield client

    # Clean up dependency overrides
    app.dependency_overrides.clear()
