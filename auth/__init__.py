"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    InvalidCredentialsError,
    MissingCredentialsError,
    RateLimitedError,
    ProfileNotFoundError,
    UserInactiveError,
    InsufficientRoleError,
    InvalidTwoFactorCodeError,
    SignOutError,
    NotAuthenticatedError,
)
from auth.types import (
    Role,
    PRIVILEGED_ROLES,
    UserProfile,
    ProfileUpdate,
    LoginRequest,
    LoginResult,
)
from auth.config import AuthConfig, GateConfig
from auth.cookies import CookiePolicy
from auth.profiles import ProfileStore
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.service import AuthService
from auth.security_middleware import AccessGate, GateDecision, GateOutcome
from auth.api import create_auth_router
