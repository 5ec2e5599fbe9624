"""Authentication and access gate configuration."""

import os

from pydantic import BaseModel, Field

from auth.types import Role


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Resolved once at startup. Idle timeout is in milliseconds to match the
    `lastActivity` cookie format; rate limit windows are in minutes.
    """

    # Session settings
    session_timeout_ms: int = Field(
        default=1_800_000,  # 30 minutes
        description="Maximum idle time since last authorized admin request",
        ge=60_000,
        le=86_400_000,
    )
    production: bool = Field(
        default=False,
        description="Production deployment - cookies are marked Secure",
    )
    activity_cookie_max_age_seconds: int = Field(
        default=24 * 60 * 60,
        description="Browser lifetime of the lastActivity and csrfToken cookies",
        ge=60,
    )
    refresh_cookie_max_age_seconds: int = Field(
        default=30 * 24 * 60 * 60,  # 30 days
        description="Browser lifetime of the identity refresh token cookie",
        ge=60,
    )

    # Rate limiting
    login_rate_limit_attempts: int = Field(
        default=5,
        description="Max login attempts per email per window",
        ge=1,
        le=20,
    )
    login_rate_limit_window_minutes: int = Field(
        default=15,
        description="Login rate limit window duration",
        ge=5,
        le=60,
    )
    payment_rate_limit_attempts: int = Field(
        default=10,
        description="Max payment intents per client address per window",
        ge=1,
        le=100,
    )
    payment_rate_limit_window_minutes: int = Field(
        default=5,
        description="Payment rate limit window duration",
        ge=1,
        le=60,
    )

    @classmethod
    def from_env(cls) -> "AuthConfig":
        """Build config from SESSION_TIMEOUT and APP_ENV."""
        values = {"production": os.getenv("APP_ENV", "development").lower() == "production"}
        timeout = os.getenv("SESSION_TIMEOUT")
        if timeout:
            values["session_timeout_ms"] = int(timeout)
        return cls(**values)


class GateConfig(BaseModel):
    """Paths guarded by the access gate and where denials are sent."""

    protected_prefix: str = "/admin"
    login_path: str = "/admin/login"
    forbidden_path: str = "/403"
    public_paths: frozenset[str] = frozenset({"/admin/login"})
    restricted_paths: dict[str, Role] = Field(
        default_factory=lambda: {"/admin/settings": Role.SUPERADMIN},
        description="Path prefixes reserved for exactly one role",
    )
