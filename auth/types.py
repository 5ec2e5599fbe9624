"""Pydantic models for the auth domain."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Application role carried on a user profile."""

    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"

    @classmethod
    def parse(cls, value: str | None) -> "Role":
        """
        Canonicalize a stored role.

        Case and surrounding whitespace are ignored. Anything unrecognised
        becomes USER, which never passes the admin checks.
        """
        if not value:
            return cls.USER
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.USER

    @property
    def is_privileged(self) -> bool:
        return self in PRIVILEGED_ROLES


PRIVILEGED_ROLES = frozenset({Role.SUPERADMIN, Role.ADMIN, Role.MODERATOR})


class UserProfile(BaseModel):
    """Application user record keyed by the identity provider's user id."""

    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    role: Role = Role.USER
    is_active: bool = True
    is_verified: bool = False
    two_factor_enabled: bool = False
    last_login: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    def to_public(self) -> dict:
        """Client-facing representation (camelCase, no internal fields)."""
        return {
            "id": str(self.id),
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phone": self.phone,
            "role": self.role.value,
            "isActive": self.is_active,
            "isVerified": self.is_verified,
            "twoFactorEnabled": self.two_factor_enabled,
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
        }


class ProfileUpdate(BaseModel):
    """Self-service profile fields. Role and activation are not editable here."""

    first_name: str | None = Field(None, alias="firstName", max_length=100)
    last_name: str | None = Field(None, alias="lastName", max_length=100)
    phone: str | None = Field(None, max_length=32)

    model_config = {"populate_by_name": True}


class LoginRequest(BaseModel):
    """Login payload. Presence of email/password is checked by the service."""

    email: str | None = None
    password: str | None = None
    two_factor_code: str | None = Field(None, alias="twoFactorToken")

    model_config = {"populate_by_name": True}


class LoginResult(BaseModel):
    """Outcome of a login attempt that passed credential and role checks."""

    requires_2fa: bool = False
    profile: UserProfile | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    expires_at: datetime | None = None
