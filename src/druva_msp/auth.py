"""OAuth2 client-credentials token handling for the Druva MSP API."""

import logging
import time
from typing import Optional

import httpx

from druva_msp.config import DruvaMspSettings
from druva_msp.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class TokenManager:
    """
    Exchanges client credentials for a bearer token.

    By default every call to get_token() performs a fresh grant, so each API
    request carries a token minted for it. With settings.cache_token enabled
    the token is reused until it is within 5 minutes of expiry.

    Attributes:
        settings: DruvaMspSettings instance with credentials

    Example:
        settings = DruvaMspSettings()
        token_manager = TokenManager(settings)

        async with httpx.AsyncClient() as client:
            token = await token_manager.get_token(client)
            # Use token for API requests
    """

    REFRESH_BUFFER_SECONDS = 300  # Refresh 5 minutes before expiry
    DEFAULT_EXPIRES_IN = 3600

    def __init__(self, settings: DruvaMspSettings):
        """
        Initialize the token manager.

        Args:
            settings: DruvaMspSettings instance containing API credentials
        """
        self.settings = settings
        self._token: Optional[str] = None
        self._expires_at: float = 0

    @property
    def _is_token_valid(self) -> bool:
        """Check if a cached token exists and isn't near expiry."""
        if self._token is None:
            return False
        return time.time() < (self._expires_at - self.REFRESH_BUFFER_SECONDS)

    async def get_token(self, client: httpx.AsyncClient) -> str:
        """
        Return a token for the next API request.

        Args:
            client: httpx.AsyncClient instance for making the grant request

        Returns:
            Bearer token string

        Raises:
            AuthenticationError: If the grant fails
        """
        if not self.settings.cache_token:
            return await self.fetch_token(client)
        if not self._is_token_valid:
            await self.fetch_token(client)
        return self._token  # type: ignore

    async def fetch_token(self, client: httpx.AsyncClient) -> str:
        """
        Perform the client_credentials grant.

        Sends the client ID and secret as HTTP Basic credentials with a
        form-encoded grant_type body.

        Returns:
            The access_token from the grant response

        Raises:
            AuthenticationError: If the request fails or no token is returned
        """
        auth = httpx.BasicAuth(
            self.settings.client_id,
            self.settings.client_secret.get_secret_value(),
        )

        try:
            response = await client.post(
                self.settings.token_url,
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
                auth=auth,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise AuthenticationError(
                f"Authentication failed: {e.response.status_code} - {e.response.text}"
            ) from e
        except httpx.RequestError as e:
            raise AuthenticationError(
                f"Authentication request failed: {e}"
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError(
                "Authentication failed: token endpoint returned a non-JSON body"
            ) from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token or not isinstance(token, str):
            raise AuthenticationError(
                "Failed to obtain access token from Druva MSP API"
            )

        logger.debug("Obtained access token from %s", self.settings.token_url)
        self._token = token
        self._expires_at = time.time() + float(
            data.get("expires_in") or self.DEFAULT_EXPIRES_IN
        )
        return token

    def clear(self) -> None:
        """Clear cached token, forcing a new grant on next request."""
        self._token = None
        self._expires_at = 0
