"""
Shared fixtures for the extraction pipeline tests.
"""

import os
from unittest.mock import patch

import httpx
import pytest

from core.config import Settings
from core.models import Listing
from core.net import HTTPClient
from core.notifications import Notifier
from core.store import MemoryStore

TEST_ENV = {
    'EXTRACTION_STORE': 'memory',
    'API_POPULATION_ENABLED': 'true',
    'GREENHOUSE_ENABLED': 'true',
    'LEVER_ENABLED': 'true',
    'AI_EXTRACTION_ENABLED': 'true',
    'AI_POSTPROCESS_ENABLED': 'false',
    'AI_EXTRACTION_TIMEOUT': '120',
}


@pytest.fixture
def settings():
    """Settings built from a clean, deterministic environment."""
    with patch.dict(os.environ, TEST_ENV, clear=True):
        yield Settings()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def make_listing(store):
    """Factory adding a listing to the memory store."""
    def _make(url: str, listing_id: int = 1, **fields) -> Listing:
        return store.add_listing(Listing(id=listing_id, url=url, **fields))
    return _make


@pytest.fixture
def mock_client():
    """Factory for an HTTPClient whose requests are answered by handler(request)."""
    def _make(handler) -> HTTPClient:
        return HTTPClient(user_agent="test-agent", timeout=5.0, transport=httpx.MockTransport(handler))
    return _make
