"""Configuration management via environment variables."""

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_REPORT_PAGE_SIZE = 100


class DruvaMspSettings(BaseSettings):
    """
    Druva MSP API configuration.

    All values are read from environment variables prefixed with DRUVA_MSP_.
    A .env file in the current directory is loaded automatically.

    Attributes:
        client_id: API client ID from the Druva MSP console
        client_secret: API secret key (stored securely)
        base_url: API root, used for both the token grant and API calls
        enable_debug: Emit request/response traces for reporting endpoints
        max_requests: Request ceiling for a single aggregation
        default_page_size: Page size for general listing endpoints
        report_page_size: Page size for report endpoints (clamped to 1-100)
        timeout: Per-request timeout in seconds
        cache_token: Reuse a bearer token across requests until near expiry

    Example:
        # Set environment variables:
        # DRUVA_MSP_CLIENT_ID=your-id
        # DRUVA_MSP_CLIENT_SECRET=your-secret

        settings = DruvaMspSettings()
        print(settings.token_url)
    """

    client_id: str
    client_secret: SecretStr
    base_url: str = "https://apis.druva.com"
    enable_debug: bool = False
    max_requests: int = Field(default=100, ge=1)
    default_page_size: int = Field(default=100, ge=1)
    report_page_size: int = 100
    timeout: float = 30.0
    cache_token: bool = False

    model_config = SettingsConfigDict(
        env_prefix="DRUVA_MSP_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("report_page_size")
    @classmethod
    def _clamp_report_page_size(cls, value: int) -> int:
        return min(max(1, value), MAX_REPORT_PAGE_SIZE)

    @property
    def api_base_url(self) -> str:
        """Base URL without a trailing slash."""
        return self.base_url.rstrip("/")

    @property
    def token_url(self) -> str:
        """Client-credentials token endpoint."""
        return f"{self.api_base_url}/msp/auth/v1/token"
