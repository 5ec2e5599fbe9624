"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidCredentialsError(AuthError):
    """Identity provider rejected the email/password. Message is the provider's."""


class MissingCredentialsError(AuthError):
    """Email or password absent from the login request."""


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class ProfileNotFoundError(AuthError):
    """
    Authenticated identity has no application profile.

    Distinct from being unauthenticated: the credentials were good.
    """


class UserInactiveError(AuthError):
    """User account is deactivated. Login not permitted."""


class InsufficientRoleError(AuthError):
    """Valid identity without an admin role."""


class InvalidTwoFactorCodeError(AuthError):
    """Second factor code malformed or rejected."""


class SignOutError(AuthError):
    """Identity provider refused to end the session."""


class NotAuthenticatedError(AuthError):
    """No usable identity session on the request."""
