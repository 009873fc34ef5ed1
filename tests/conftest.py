"""Shared pytest fixtures for druva-msp tests."""

import pytest
from httpx import Response

from druva_msp.config import DruvaMspSettings

BASE_URL = "https://apis.druva.com"
TOKEN_URL = f"{BASE_URL}/msp/auth/v1/token"


@pytest.fixture
def mock_settings():
    """Return test settings that don't require real credentials."""
    return DruvaMspSettings(
        client_id="test-client-id",
        client_secret="test-client-secret",
    )


@pytest.fixture
def base_url():
    """Base URL for mocked API."""
    return BASE_URL


@pytest.fixture
def mock_auth(respx_mock):
    """Mock the token endpoint on the respx_mock router."""
    return respx_mock.post(TOKEN_URL).mock(
        return_value=Response(
            200,
            json={
                "access_token": "mock-token",
                "expires_in": 3600,
                "token_type": "Bearer",
            },
        )
    )


def page(items_key, items, next_token=None, **extra):
    """Build a page response body."""
    body = {items_key: items, **extra}
    if next_token is not None:
        body["nextPageToken"] = next_token
    return body


def records(start, count):
    """Return count distinct records numbered from start."""
    return [{"id": i} for i in range(start, start + count)]
