"""Authentication service - admin login, logout and self-service profile."""

import logging
from uuid import UUID

from auth.config import AuthConfig
from auth.profiles import ProfileStore
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.types import LoginResult, ProfileUpdate, UserProfile
from auth.exceptions import (
    InsufficientRoleError,
    InvalidCredentialsError,
    InvalidTwoFactorCodeError,
    MissingCredentialsError,
    NotAuthenticatedError,
    ProfileNotFoundError,
    RateLimitedError,
    SignOutError,
    UserInactiveError,
)
from clients.identity_client import IdentityAuthError, IdentityClient, IdentityError
from core.audit import AuditAction, AuditRecorder, compute_changes

logger = logging.getLogger(__name__)

TWO_FACTOR_CODE_LENGTH = 6


class AuthService:
    """Orchestrates admin authentication.

    Handles:
    - Password login with profile, activation, role and second factor checks
    - Logout
    - Resolving the profile behind an access token
    - Self-service profile updates (audited)
    """

    def __init__(
        self,
        config: AuthConfig,
        identity_client: IdentityClient,
        profile_store: ProfileStore,
        rate_limiter: RateLimiter,
        security_logger: SecurityLogger,
        audit: AuditRecorder,
    ):
        self._config = config
        self._identity = identity_client
        self._profiles = profile_store
        self._rate_limiter = rate_limiter
        self._security_logger = security_logger
        self._audit = audit

    def login(
        self,
        email: str | None,
        password: str | None,
        two_factor_code: str | None,
        ip_address: str | None,
        user_agent: str | None,
    ) -> LoginResult:
        """Authenticate an administrator.

        Flow:
        1. Require email and password
        2. Per-email rate limit
        3. Verify credentials with the identity provider
        4. Require an active profile with a privileged role
        5. If two-factor is enabled: ask for the code, or verify it
        6. Record last login (best effort)

        The second-factor prompt only happens after step 4, so an
        unprivileged account never learns whether it has 2FA enabled.

        Returns:
            LoginResult with requires_2fa=True and no tokens when a code is
            still needed, otherwise the profile and provider tokens.

        Raises:
            MissingCredentialsError, RateLimitedError, InvalidCredentialsError,
            ProfileNotFoundError, UserInactiveError, InsufficientRoleError,
            InvalidTwoFactorCodeError
        """
        if not email or not email.strip() or not password:
            raise MissingCredentialsError("Email and password are required")

        email = email.strip().lower()

        try:
            self._rate_limiter.check_rate_limit(email)
        except RateLimitedError:
            self._security_logger.log(
                SecurityEvent.RATE_LIMITED,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise

        try:
            session = self._identity.sign_in_with_password(email, password)
        except IdentityAuthError as e:
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "invalid_credentials"},
            )
            raise InvalidCredentialsError(str(e))

        profile = self._profiles.get_by_id(session.user.id)

        if profile is None:
            self._log_denied(email, session.user.id, ip_address, user_agent, "profile_not_found")
            raise ProfileNotFoundError("User profile not found")

        if profile.is_active is False:
            self._log_denied(email, profile.id, ip_address, user_agent, "user_inactive")
            raise UserInactiveError("Account is deactivated")

        if not profile.role.is_privileged:
            self._log_denied(email, profile.id, ip_address, user_agent, "insufficient_role")
            raise InsufficientRoleError("Access denied. Insufficient privileges.")

        if profile.two_factor_enabled:
            if not two_factor_code:
                self._security_logger.log(
                    SecurityEvent.TWO_FACTOR_REQUIRED,
                    email=email,
                    user_id=profile.id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
                return LoginResult(requires_2fa=True)

            code = two_factor_code.strip()
            if len(code) != TWO_FACTOR_CODE_LENGTH or not code.isdigit():
                self._log_two_factor_failed(email, profile.id, ip_address, user_agent, "malformed_code")
                raise InvalidTwoFactorCodeError("Invalid two-factor code")

            try:
                session = self._identity.verify_totp(session.access_token, code)
            except IdentityAuthError as e:
                self._log_two_factor_failed(email, profile.id, ip_address, user_agent, "rejected_code")
                raise InvalidTwoFactorCodeError(str(e))

        self._record_last_login(profile.id)
        self._rate_limiter.reset_rate_limit(email)

        self._security_logger.log(
            SecurityEvent.LOGIN_SUCCEEDED,
            email=email,
            user_id=profile.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return LoginResult(
            profile=profile,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in,
            expires_at=session.expires_at,
        )

    def _record_last_login(self, user_id: UUID) -> None:
        """Best-effort last login stamp. Failures are logged, never raised."""
        try:
            self._profiles.touch_last_login(user_id)
        except Exception:
            logger.exception(f"Failed to record last login for {user_id}")

    def _log_denied(
        self,
        email: str,
        user_id: UUID,
        ip_address: str | None,
        user_agent: str | None,
        reason: str,
    ) -> None:
        self._security_logger.log(
            SecurityEvent.LOGIN_DENIED,
            email=email,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"reason": reason},
        )

    def _log_two_factor_failed(
        self,
        email: str,
        user_id: UUID,
        ip_address: str | None,
        user_agent: str | None,
        reason: str,
    ) -> None:
        self._security_logger.log(
            SecurityEvent.TWO_FACTOR_FAILED,
            email=email,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"reason": reason},
        )

    def logout(self, access_token: str | None, ip_address: str | None, user_agent: str | None) -> None:
        """End the provider session, if there is one.

        Raises:
            SignOutError: If the identity provider refuses the sign-out.
        """
        if access_token:
            try:
                self._identity.sign_out(access_token)
            except IdentityError as e:
                raise SignOutError(str(e))

        self._security_logger.log(
            SecurityEvent.LOGOUT,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def optional_user_id(self, access_token: str | None) -> UUID | None:
        """Identity behind an access token, or None for guests and bad tokens."""
        if not access_token:
            return None
        try:
            return self._identity.get_user(access_token).id
        except IdentityError:
            return None

    def current_profile(self, access_token: str | None) -> UserProfile:
        """Resolve the profile behind an access token.

        Raises:
            NotAuthenticatedError: No token, or provider rejected it.
            ProfileNotFoundError: Identity has no profile.
        """
        if not access_token:
            raise NotAuthenticatedError("Unauthorized")
        try:
            identity = self._identity.get_user(access_token)
        except IdentityAuthError:
            raise NotAuthenticatedError("Unauthorized")

        profile = self._profiles.get_by_id(identity.id)
        if profile is None:
            raise ProfileNotFoundError("User profile not found")
        return profile

    def update_profile(
        self,
        profile: UserProfile,
        update: ProfileUpdate,
        ip_address: str | None,
        user_agent: str | None,
    ) -> UserProfile:
        """Apply a self-service update and audit the field-level diff.

        Raises:
            ProfileNotFoundError: Profile vanished between lookup and update.
        """
        updated = self._profiles.update_profile(profile.id, update)
        if updated is None:
            raise ProfileNotFoundError("User profile not found")

        changes = compute_changes(
            profile.model_dump(mode="json"),
            updated.model_dump(mode="json"),
        )
        if changes:
            self._audit.record(
                action=AuditAction.UPDATE_PROFILE,
                resource_type="user",
                resource_id=profile.id,
                details=changes,
                ip_address=ip_address,
                user_agent=user_agent,
                user_id=profile.id,
            )

        return updated
