"""Pydantic models for parsing the config.yaml configuration file.

This module contains Pydantic models that correspond to the structure of config.yaml.
These models handle validation and type conversion of the YAML configuration data.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, computed_field

# Name-based UUID namespace used for every external subject. Changing it
# re-keys every user, so it is only configurable for isolated test systems.
DEFAULT_IDENTITY_NAMESPACE = "6ba7b811-9dad-11d1-80b4-00c04fd430c8"


class CORSConfig(BaseModel):
    """CORS configuration for the application."""

    origins: list[str] = Field(default=["*"])
    allow_credentials: bool = False
    allow_methods: list[str] = Field(default=["POST", "OPTIONS"])
    allow_headers: list[str] = Field(
        default=["authorization", "x-client-info", "apikey", "content-type"]
    )


class RateLimiterConfig(BaseModel):
    """Rate limiter configuration model."""

    requests: int = Field(default=10, description="Number of requests allowed per window")
    window_ms: int = Field(default=60000, description="Time window in milliseconds")
    enabled: bool = Field(default=True, description="Enable rate limiting")


class RedisConfig(BaseModel):
    """Redis configuration model."""

    enabled: bool = Field(default=False, description="Enable Redis-backed cache store")
    url: str = Field(default="", description="Redis connection URL")
    password: str | None = Field(
        default=None, description="Password for Redis authentication"
    )
    decode_responses: bool = Field(
        default=True, description="Decode Redis responses to strings"
    )
    socket_timeout: float = Field(default=2.0, description="Socket timeout in seconds")

    @computed_field
    @property
    def connection_string(self) -> str:
        """Construct the Redis connection string with password if provided."""
        if self.password:
            if "@" in self.url:
                return self.url
            parts = self.url.split("://", 1)
            if len(parts) == 2:
                scheme, rest = parts
                return f"{scheme}://:{self.password}@{rest}"
        return self.url


class JWTConfig(BaseModel):
    """Inbound JWT validation configuration."""

    allowed_algorithms: list[str] = Field(
        default_factory=lambda: ["RS256", "RS512", "ES256", "ES384"],
        description="JWT algorithms allowed for inbound token validation",
    )
    clock_skew: int = Field(default=60, description="Clock skew tolerance in seconds")
    jwks_cache_ttl: int = Field(
        default=600,
        description="Seconds a fetched key set is reused before it is fetched again",
    )
    jwks_fetch_timeout: float = Field(
        default=5.0, description="Timeout in seconds for key set downloads"
    )


class FederationConfig(BaseModel):
    """Identity provider settings used to trust inbound tokens."""

    issuer: str | None = Field(default=None, description="Expected token issuer URL")
    audience: str | None = Field(default=None, description="Expected token audience")
    jwks_url: str | None = Field(
        default=None, description="Override for the issuer key set URL"
    )
    identity_namespace: str = Field(
        default=DEFAULT_IDENTITY_NAMESPACE,
        description="UUIDv5 namespace used to map external subjects",
    )
    placeholder_email_prefix: str = Field(
        default="idp", description="Local-part prefix for synthesized email addresses"
    )
    placeholder_email_domain: str = Field(
        default="example.invalid",
        description="Non-routable domain for synthesized email addresses",
    )

    @computed_field
    @property
    def jwks_endpoint(self) -> str | None:
        """Key set URL, defaulting to the issuer's well-known location."""
        if self.jwks_url:
            return self.jwks_url
        if not self.issuer:
            return None
        return f"{self.issuer.rstrip('/')}/.well-known/jwks.json"


class PlatformConfig(BaseModel):
    """Data platform endpoints, credentials and minted token shape."""

    url: str | None = Field(default=None, description="Data platform base URL")
    service_role_key: str | None = Field(
        default=None, description="Privileged key for admin and RPC calls"
    )
    anon_key: str | None = Field(default=None, description="Public anon key")
    jwt_secret: str | None = Field(
        default=None, description="HS256 secret shared with the data platform"
    )
    token_audience: str = Field(default="authenticated")
    token_role: str = Field(default="authenticated")
    token_ttl_seconds: int = Field(default=3600, description="Minted token lifetime")
    token_cache_ttl_seconds: int = Field(
        default=55, description="Per-user minted token reuse window (0 disables)"
    )
    request_timeout: float = Field(
        default=10.0, description="Timeout in seconds for platform API calls"
    )
    installer_backend: Literal["rpc", "sql"] = Field(
        default="rpc",
        description="Run the installer through the REST RPC boundary or a direct connection",
    )

    @computed_field
    @property
    def base_url(self) -> str | None:
        return self.url.rstrip("/") if self.url else None


class DatabaseConfig(BaseModel):
    """Privileged database connection used by the installer and introspector."""

    url: str | None = Field(default=None, description="Privileged Postgres URL")
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=5, description="Maximum pool overflow")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    pool_recycle: int = Field(default=1800, description="Pool recycle time in seconds")
    connect_timeout: int = Field(default=10, description="Connect timeout in seconds")
    caller_id_expression: str = Field(
        default="auth.uid()",
        description="SQL expression yielding the caller's mapped id inside policies",
    )
    service_role: str = Field(
        default="service_role",
        description="Only role allowed to execute the bootstrap procedures",
    )


class DiagnosticsConfig(BaseModel):
    """Layered diagnostics settings."""

    bridge_url: str = Field(
        default="http://localhost:8000", description="Base URL of this bridge service"
    )
    probe_timeout: float = Field(default=3.0, description="Per-probe timeout in seconds")
    max_fix_attempts: int = Field(default=1, description="Automatic fix attempts")


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "plain"] = Field(default="json", description="Log format")
    file: str | None = Field(default=None, description="Log file path")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class AppConfig(BaseModel):
    """Application configuration model."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    host: str = Field(default="localhost", description="Application host")
    port: int = Field(default=8000, description="Application port")
    cors: CORSConfig = Field(
        default_factory=CORSConfig, description="CORS configuration"
    )


class ConfigData(BaseModel):
    """Root configuration model that matches the config.yaml structure."""

    rate_limiter: RateLimiterConfig = Field(
        default_factory=RateLimiterConfig, description="Rate limiter configuration"
    )
    redis: RedisConfig = Field(
        default_factory=RedisConfig, description="Redis configuration"
    )
    jwt: JWTConfig = Field(
        default_factory=JWTConfig, description="JWT validation configuration"
    )
    federation: FederationConfig = Field(
        default_factory=FederationConfig, description="Identity provider configuration"
    )
    platform: PlatformConfig = Field(
        default_factory=PlatformConfig, description="Data platform configuration"
    )
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    diagnostics: DiagnosticsConfig = Field(
        default_factory=DiagnosticsConfig, description="Diagnostics configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    app: AppConfig = Field(
        default_factory=AppConfig, description="Application configuration"
    )

    def missing_federation_settings(self, *, minting: bool = True) -> list[str]:
        """Return the environment variable names of required settings that are unset.

        Args:
            minting: Include the signing secret, which only token issuance needs.

        Returns:
            Variable names in a stable order, empty when everything is present.
        """
        required: list[tuple[str, str | None]] = [
            ("SUPABASE_URL", self.platform.url),
            ("SUPABASE_SERVICE_ROLE_KEY", self.platform.service_role_key),
            ("CLERK_JWT_ISSUER", self.federation.issuer),
            ("CLERK_EXPECTED_AUDIENCE", self.federation.audience),
        ]
        if minting:
            required.append(("SUPABASE_JWT_SECRET", self.platform.jwt_secret))
        return [name for name, value in required if not value]
