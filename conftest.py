"""
Pytest configuration and fixtures.
"""

import os
import sys
from unittest.mock import patch, AsyncMock

# Add app directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# Set test environment
os.environ["TESTING"] = "1"
os.environ["ADMIN_KEY"] = "test-admin-key"
os.environ["INGEST_API_KEY"] = "test-ingest-key"

import pytest


@pytest.fixture
def mock_geocode():
    """Mock the Nominatim lookup so tests never hit the network."""
    with patch("geocoding.geocode", new_callable=AsyncMock) as mock:
        mock.return_value = None
        yield mock
