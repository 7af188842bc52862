"""Pydantic models for parsing the config.yaml configuration file.

This module contains Pydantic models that correspond to the structure of config.yaml.
These models handle validation and type conversion of the YAML configuration data.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, computed_field


class CORSConfig(BaseModel):
    """CORS configuration for the application."""

    origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "https://flattr.io",
            "https://www.flattr.io",
        ]
    )
    allow_credentials: bool = True
    allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    )
    allow_headers: list[str] = Field(default=["*"])


class RedisConfig(BaseModel):
    """Redis configuration model."""

    enabled: bool = Field(default=False, description="Enable Redis service")
    url: str = Field(default="", description="Redis connection URL")
    password: str | None = Field(
        default=None, description="Password for Redis authentication"
    )
    decode_responses: bool = Field(
        default=True, description="Decode Redis responses to strings"
    )
    max_connections: int = Field(default=20, description="Connection pool size")
    socket_timeout: float = Field(default=5.0, description="Socket timeout in seconds")
    socket_connect_timeout: float = Field(
        default=2.0, description="Socket connect timeout in seconds"
    )

    @computed_field
    @property
    def connection_string(self) -> str:
        """Construct the Redis connection string with password if provided."""
        if self.password:
            if "@" in self.url:
                # URL already has auth info
                return self.url
            parts = self.url.split("://", 1)
            if len(parts) == 2:
                scheme, rest = parts
                return f"{scheme}://:{self.password}@{rest}"
        return self.url

    @property
    def sanitized_connection_string(self) -> str:
        """Connection string with any password masked, safe for logs."""
        if "@" not in self.connection_string or "://" not in self.connection_string:
            return self.connection_string
        scheme, rest = self.connection_string.split("://", 1)
        return f"{scheme}://***@{rest.split('@', 1)[1]}"


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "plain"] = Field(default="json", description="Log format")
    file: str = Field(default="", description="Log file path (empty = console only)")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class DatabaseConfig(BaseModel):
    """Database configuration model."""

    url: str = Field(
        default="sqlite:///./flattr_auth.db",
        description="Database connection URL",
    )
    pool_size: int = Field(default=20, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum pool overflow")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    pool_recycle: int = Field(default=1800, description="Pool recycle time in seconds")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class SessionConfig(BaseModel):
    """Session credential (JWT) configuration."""

    signing_secret: str | None = Field(
        default=None, description="HS256 secret used to sign session credentials"
    )
    issuer: str = Field(default="flattr-auth", description="Issuer claim value")
    ttl_seconds: int = Field(
        default=7 * 24 * 3600, description="Credential lifetime in seconds"
    )
    clock_skew: int = Field(
        default=0, description="Leeway in seconds when checking expiry"
    )


class CookieConfig(BaseModel):
    """Session cookie delivery configuration."""

    name: str = Field(default="auth-token", description="Session cookie name")
    max_age: int = Field(default=7 * 24 * 3600, description="Cookie Max-Age")
    production_domain: str = Field(
        default="flattr.io",
        description="Apex domain whose hosts share the cookie across subdomains",
    )
    tunnel_suffixes: list[str] = Field(
        default_factory=lambda: [
            "ngrok-free.app",
            "ngrok.io",
            "free.pinggy.link",
            "vercel.app",
            "onrender.com",
        ],
        description="Preview/tunnel domains where the cookie stays host-only",
    )


class CarrierProviderConfig(BaseModel):
    """Carrier identity (Truecaller) callback configuration."""

    enabled: bool = Field(default=True)
    timeout_seconds: float = Field(default=10.0)
    duplicate_ttl_seconds: int = Field(
        default=60, description="How long a processed requestId is remembered"
    )
    guard_max_entries: int = Field(
        default=10_000, description="Upper bound for the in-memory duplicate guard"
    )


class PhoneLinkProviderConfig(BaseModel):
    """Phone link verification (Phone.email) configuration."""

    enabled: bool = Field(default=True)
    timeout_seconds: float = Field(default=10.0)
    allowed_hosts: list[str] = Field(
        default_factory=lambda: ["user.phone.email"],
        description="Hosts a user_json_url may point at",
    )


class OAuthProviderConfig(BaseModel):
    """OAuth2/OIDC (LinkedIn) configuration."""

    enabled: bool = Field(default=True)
    name: str = Field(default="linkedin")
    timeout_seconds: float = Field(default=10.0)
    token_endpoint: str = Field(
        default="https://www.linkedin.com/oauth/v2/accessToken",
        description="OAuth token endpoint URL",
    )
    userinfo_endpoint: str = Field(
        default="https://api.linkedin.com/v2/userinfo",
        description="OIDC userinfo endpoint URL",
    )
    client_id: str | None = Field(default=None, description="OAuth client ID")
    client_secret: str | None = Field(default=None, description="OAuth client secret")
    redirect_uri: str | None = Field(
        default=None, description="Redirect URI registered with the provider"
    )


class ProvidersConfig(BaseModel):
    """Identity provider configuration."""

    carrier: CarrierProviderConfig = Field(default_factory=CarrierProviderConfig)
    phone_link: PhoneLinkProviderConfig = Field(
        default_factory=PhoneLinkProviderConfig
    )
    oauth: OAuthProviderConfig = Field(default_factory=OAuthProviderConfig)

    def enabled_map(self) -> dict[str, bool]:
        return {
            "carrier": self.carrier.enabled,
            "phone_link": self.phone_link.enabled,
            "oauth": self.oauth.enabled,
        }


class AppConfig(BaseModel):
    """Application configuration model."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    host: str = Field(default="localhost", description="Application host")
    port: int = Field(default=8000, description="Application port")
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Fallback frontend URL for post-login redirects",
    )
    cors: CORSConfig = Field(
        default_factory=CORSConfig, description="CORS configuration"
    )


class ConfigData(BaseModel):
    """Root configuration model that matches the config.yaml structure."""

    redis: RedisConfig = Field(
        default_factory=RedisConfig, description="Redis configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    app: AppConfig = Field(
        default_factory=AppConfig, description="Application configuration"
    )
    session: SessionConfig = Field(
        default_factory=SessionConfig, description="Session credential configuration"
    )
    cookies: CookieConfig = Field(
        default_factory=CookieConfig, description="Session cookie configuration"
    )
    providers: ProvidersConfig = Field(
        default_factory=ProvidersConfig, description="Identity provider configuration"
    )

    def missing_required_settings(self) -> list[str]:
        """Names of settings the service cannot start without."""
        missing = []
        if not self.session.signing_secret:
            missing.append("session.signing_secret")
        oauth = self.providers.oauth
        if oauth.enabled:
            for field_name in ("client_id", "client_secret", "redirect_uri"):
                if not getattr(oauth, field_name):
                    missing.append(f"providers.oauth.{field_name}")
        return missing
