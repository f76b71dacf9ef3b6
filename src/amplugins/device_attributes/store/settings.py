"""Access-management connection settings.

Settings can be provided via:
1. Environment variables (AM_*)
2. CLI arguments (--base-url, --admin-user, --admin-password)
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AmSettings(BaseSettings):
    """Access-management connection and authentication settings."""

    model_config = SettingsConfigDict(
        env_prefix="AM_",
        extra="ignore",
    )

    # Connection
    base_url: str = Field(
        default="http://localhost:8080/am",
        description="Access-management base URL including the deployment path",
    )
    timeout: float = Field(
        default=30.0,
        description="HTTP request timeout in seconds",
    )
    cookie_name: str = Field(
        default="iPlanetDirectoryPro",
        description="Session cookie name, also accepted as request header",
    )

    # Admin user authentication
    admin_user: str | None = Field(
        default=None,
        description="Administrator username (root realm)",
    )
    admin_password: str | None = Field(
        default=None,
        description="Administrator password",
    )

    @property
    def json_url(self) -> str:
        """Get the REST endpoint root."""
        return f"{self.base_url.rstrip('/')}/json"

    @property
    def has_admin_credentials(self) -> bool:
        return bool(self.admin_user and self.admin_password)

    def with_overrides(
        self,
        *,
        base_url: str | None = None,
        admin_user: str | None = None,
        admin_password: str | None = None,
        timeout: float | None = None,
    ) -> "AmSettings":
        """Create a new settings instance with CLI overrides applied."""
        return AmSettings(
            base_url=base_url or self.base_url,
            timeout=timeout or self.timeout,
            cookie_name=self.cookie_name,
            admin_user=admin_user or self.admin_user,
            admin_password=admin_password or self.admin_password,
        )
