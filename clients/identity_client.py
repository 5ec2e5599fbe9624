"""
Identity provider client for the hosted Supabase auth service (GoTrue).

Password sign-in, access token introspection, sign-out and TOTP second
factor verification over the GoTrue REST API. Every call is a single
attempt; callers decide what a failure means.
"""

import json
import logging
from datetime import datetime, timezone
from uuid import UUID

import requests
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """Base class for identity provider failures."""


class IdentityAuthError(IdentityError):
    """The provider rejected the credentials, token or code."""


class IdentityUnavailableError(IdentityError):
    """The provider could not be reached or answered with a server error."""


class IdentityFactor(BaseModel):
    """A second factor enrolled on an identity."""

    id: str
    factor_type: str
    status: str


class IdentityUser(BaseModel):
    """The provider's view of an authenticated identity."""

    id: UUID
    email: str | None = None
    factors: list[IdentityFactor] = Field(default_factory=list)

    @property
    def verified_totp_factor(self) -> IdentityFactor | None:
        for factor in self.factors:
            if factor.factor_type == "totp" and factor.status == "verified":
                return factor
        return None


class IdentitySession(BaseModel):
    """Token pair issued by the provider."""

    access_token: str
    refresh_token: str
    expires_in: int = 3600
    expires_at: datetime | None = None
    user: IdentityUser


class IdentityClient:
    """GoTrue REST client authenticated with the project's anon key."""

    def __init__(self, base_url: str, anon_key: str, timeout: float = 10):
        """
        Args:
            base_url: Project URL, e.g. https://abc.supabase.co
            anon_key: Public anon key sent as the `apikey` header

        Raises:
            ValueError: If any credential is empty
        """
        if not base_url:
            raise ValueError("base_url is required")
        if not anon_key:
            raise ValueError("anon_key is required")

        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.anon_key = anon_key
        self.timeout = timeout

    def _headers(self, access_token: str | None = None) -> dict:
        headers = {
            "apikey": self.anon_key,
            "Content-Type": "application/json",
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        access_token: str | None = None,
        payload: dict | None = None,
        params: dict | None = None,
    ) -> dict:
        """
        Send one request and decode the JSON body.

        Raises:
            IdentityAuthError: 4xx answer from the provider
            IdentityUnavailableError: Transport failure or 5xx answer
        """
        try:
            response = requests.request(
                method,
                f"{self.auth_url}{path}",
                headers=self._headers(access_token),
                json=payload,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Identity provider connection failed: {e}")
            raise IdentityUnavailableError(f"Connection failed: {e}")

        if response.status_code == 204 or not response.content:
            data = {}
        else:
            try:
                data = response.json()
            except json.JSONDecodeError:
                logger.error(f"Identity provider returned invalid JSON (status {response.status_code})")
                raise IdentityUnavailableError("Invalid response from identity provider")

        if response.status_code >= 500:
            logger.error(f"Identity provider error {response.status_code} on {path}")
            raise IdentityUnavailableError("Identity provider unavailable")

        if response.status_code >= 400:
            message = (
                data.get("error_description")
                or data.get("msg")
                or data.get("message")
                or data.get("error")
                or "Authentication failed"
            )
            raise IdentityAuthError(message)

        return data

    def _to_session(self, data: dict) -> IdentitySession:
        expires_at = data.get("expires_at")
        return IdentitySession(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_in=data.get("expires_in") or 3600,
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc) if expires_at else None,
            user=IdentityUser.model_validate(data["user"]),
        )

    def sign_in_with_password(self, email: str, password: str) -> IdentitySession:
        """Exchange email and password for a session."""
        data = self._request(
            "POST",
            "/token",
            payload={"email": email, "password": password},
            params={"grant_type": "password"},
        )
        return self._to_session(data)

    def get_user(self, access_token: str) -> IdentityUser:
        """Resolve the identity behind an access token."""
        data = self._request("GET", "/user", access_token=access_token)
        return IdentityUser.model_validate(data)

    def sign_out(self, access_token: str) -> None:
        """Revoke the session behind an access token (all refresh tokens of it)."""
        self._request("POST", "/logout", access_token=access_token)
        logger.info("Identity session revoked")

    def verify_totp(self, access_token: str, code: str) -> IdentitySession:
        """
        Verify a TOTP code against the identity's verified factor.

        Returns the upgraded (aal2) session.

        Raises:
            IdentityAuthError: No verified factor enrolled, or code rejected
        """
        user = self.get_user(access_token)
        factor = user.verified_totp_factor
        if factor is None:
            raise IdentityAuthError("No verified two-factor method enrolled")

        challenge = self._request(
            "POST", f"/factors/{factor.id}/challenge", access_token=access_token
        )
        data = self._request(
            "POST",
            f"/factors/{factor.id}/verify",
            access_token=access_token,
            payload={"challenge_id": challenge["id"], "code": code},
        )
        return self._to_session(data)
