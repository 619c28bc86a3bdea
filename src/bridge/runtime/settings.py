"""Operator-side environment settings.

The HTTP service reads everything through ``config.yaml``; the CLI also
needs a few inputs that only make sense on an operator machine (a test
identity token, the anon key). They are loaded here from the process
environment and an optional ``.env`` file.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentVariables(BaseSettings):
    """Simple primitive values loaded from environment variables and .env files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = Field(
        default="development", validation_alias="APP_ENVIRONMENT"
    )

    platform_url: str | None = Field(default=None, validation_alias="SUPABASE_URL")
    platform_anon_key: str | None = Field(
        default=None, validation_alias="SUPABASE_ANON_KEY"
    )
    bridge_url: str | None = Field(default=None, validation_alias="BRIDGE_URL")
    external_test_token: str | None = Field(
        default=None, validation_alias="CLERK_TEST_JWT"
    )

    # Values that must never be echoed back by the CLI.
    database_url: str | None = Field(default=None, validation_alias="SUPABASE_DB_URL")
    service_role_key: str | None = Field(
        default=None, validation_alias="SUPABASE_SERVICE_ROLE_KEY"
    )
    jwt_secret: str | None = Field(default=None, validation_alias="SUPABASE_JWT_SECRET")

    @property
    def secret_values(self) -> list[str]:
        """Configured secret values, for output redaction."""
        candidates = [
            self.platform_anon_key,
            self.service_role_key,
            self.jwt_secret,
            self.external_test_token,
            self.database_url,
        ]
        return [value for value in candidates if value]
