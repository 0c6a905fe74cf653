"""
Global fixtures for all unit tests.

This conftest provides autouse fixtures that prevent real external service calls:
- MongoDB connection attempts (would cause 5-30s timeout per test)
- Environment variable isolation (prevents credential leakage)

It also provides shared builders for Sessions and fake collaborators.
"""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# Set test environment BEFORE any imports to prevent Config from loading real values
os.environ["SESSION_STORE"] = "memory"
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("MEDIA_AUTH_TOKEN", None)

from src.common.logger import set_global_debug_mode
from src.common.repositories import InMemorySessionStore, reset_session_store
from src.common.schemas import LanguageLevel, Session, Stage
from src.common.tenants import reset_tenant_registry
from src.services.channels import RecordingChannel


@pytest.fixture(autouse=True)
def mock_mongodb():
    """
    Prevent MongoDB connection attempts in all unit tests.

    MongoClient("") defaults to localhost:27017, causing 5-30s timeout per test.
    """
    with patch("pymongo.MongoClient") as mock_client:
        mock_instance = MagicMock()
        mock_db = MagicMock()
        mock_collection = MagicMock()

        # Setup chain: client["db"]["collection"]
        mock_instance.__getitem__ = MagicMock(return_value=mock_db)
        mock_db.__getitem__ = MagicMock(return_value=mock_collection)
        mock_collection.find_one = MagicMock(return_value=None)
        mock_collection.find = MagicMock(return_value=[])

        mock_client.return_value = mock_instance
        yield mock_client


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Isolate test environment from real credentials and configurations.

    This prevents:
    - Real API keys being used if tests accidentally call the model
    - Reviewer e-mails being sent through Resend
    - Singletons leaking state between tests
    """
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-mock-key")
    monkeypatch.setenv("SESSION_STORE", "memory")
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    monkeypatch.delenv("MEDIA_AUTH_TOKEN", raising=False)
    reset_session_store()
    reset_tenant_registry()
    set_global_debug_mode(False)
    yield
    reset_session_store()
    reset_tenant_registry()


@pytest.fixture
def memory_store():
    """Fresh in-memory session store."""
    return InMemorySessionStore()


@pytest.fixture
def channel():
    """Outbound channel that records every text."""
    return RecordingChannel()


@pytest.fixture
def make_session():
    """Factory for Sessions with sensible defaults."""

    def _make(stage: Stage = Stage.COLLECTING_DATA, **fields) -> Session:
        data = {
            "identity": "whatsapp:+40712345678",
            "tenant_id": "default_001",
            "stage": stage,
        }
        data.update(fields)
        return Session(**data)

    return _make


@pytest.fixture
def complete_profile():
    """Profile fields that satisfy every required field plus language."""
    return {
        "name": "Ion Popescu",
        "education": "Technical High School",
        "experience_summary": "3 years as reach truck driver in a Rotterdam warehouse",
        "hard_skills": ["Reach Truck", "EPT", "RF Scanner"],
        "language_level": LanguageLevel.B1,
    }


@pytest.fixture
def mock_extraction_client():
    """ExtractionClient double; set .extract.return_value / side_effect per test."""
    client = MagicMock()
    client.extract = AsyncMock()
    return client
