"""Access gate for the admin area - one allow/deny decision per request."""

import logging
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

from auth.config import AuthConfig, GateConfig
from auth.cookies import (
    ACCESS_TOKEN_COOKIE,
    CSRF_COOKIE,
    CSRF_HEADER,
    LAST_ACTIVITY_COOKIE,
    CookiePolicy,
    csrf_tokens_match,
    set_last_activity,
)
from auth.profiles import ProfileStore
from auth.types import UserProfile
from clients.identity_client import IdentityClient, IdentityError
from utils.timezone import now_millis
from utils.user_context import set_current_user_id, clear_current_user_id

logger = logging.getLogger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# lastActivity stamps ahead of our clock by more than this are rejected
CLOCK_SKEW_MS = 60_000


class GateOutcome(Enum):
    """Terminal states of the gate, in evaluation order."""

    ALLOW = "allow"
    SESSION_EXPIRED = "session_expired"
    CSRF_FAILED = "csrf_failed"
    UNAUTHENTICATED = "unauthenticated"
    USER_NOT_FOUND = "user_not_found"
    ROLE_FORBIDDEN = "role_forbidden"
    PATH_FORBIDDEN = "path_forbidden"


# Outcomes that send the browser back to the login page with a reason.
# Everything else that isn't ALLOW goes to the forbidden page, no detail.
LOGIN_REDIRECT_OUTCOMES = frozenset({
    GateOutcome.SESSION_EXPIRED,
    GateOutcome.UNAUTHENTICATED,
    GateOutcome.USER_NOT_FOUND,
})


@dataclass(frozen=True)
class GateDecision:
    """Result of evaluating one request."""

    outcome: GateOutcome
    profile: UserProfile | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is GateOutcome.ALLOW


class AccessGate(BaseHTTPMiddleware):
    """Middleware guarding every route under the admin prefix.

    Checks, in order, stopping at the first failure:
    1. Idle timeout from the 'lastActivity' cookie (missing counts as expired)
    2. CSRF double-submit on mutating methods
    3. Identity provider session from the access token cookie
    4. Application profile exists
    5. Profile role is privileged
    6. Path-specific role requirement

    Allowed requests get the profile on request.state.profile, the user id in
    user context, and a refreshed 'lastActivity' cookie on the response.
    Denials write no cookies.
    """

    def __init__(
        self,
        app,
        identity_client: IdentityClient,
        profile_store: ProfileStore,
        config: AuthConfig,
        gate_config: GateConfig | None = None,
    ):
        super().__init__(app)
        self._identity = identity_client
        self._profiles = profile_store
        self._config = config
        self._gate = gate_config or GateConfig()
        self._cookie_policy = CookiePolicy.from_config(config)

    def _is_guarded(self, path: str) -> bool:
        prefix = self._gate.protected_prefix
        return path == prefix or path.startswith(prefix + "/")

    def _is_public_path(self, path: str) -> bool:
        return path.rstrip("/") in self._gate.public_paths

    def _required_role(self, path: str):
        for restricted, role in self._gate.restricted_paths.items():
            if path == restricted or path.startswith(restricted + "/"):
                return role
        return None

    def _is_idle_expired(self, request: Request) -> bool:
        raw = request.cookies.get(LAST_ACTIVITY_COOKIE)
        if not raw:
            return True
        try:
            last_activity = int(raw)
        except ValueError:
            return True
        idle = now_millis() - last_activity
        if idle < -CLOCK_SKEW_MS:
            return True
        return idle > self._config.session_timeout_ms

    def evaluate(self, request: Request) -> GateDecision:
        """Run every check against a guarded, non-public request."""
        if self._is_idle_expired(request):
            return GateDecision(GateOutcome.SESSION_EXPIRED)

        if request.method.upper() in MUTATING_METHODS:
            if not csrf_tokens_match(
                request.cookies.get(CSRF_COOKIE),
                request.headers.get(CSRF_HEADER),
            ):
                return GateDecision(GateOutcome.CSRF_FAILED)

        access_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
        if not access_token:
            return GateDecision(GateOutcome.UNAUTHENTICATED)

        try:
            identity = self._identity.get_user(access_token)
        except IdentityError as e:
            logger.info(f"Session rejected by identity provider: {type(e).__name__}")
            return GateDecision(GateOutcome.UNAUTHENTICATED)

        profile = self._profiles.get_by_id(identity.id)
        if profile is None:
            return GateDecision(GateOutcome.USER_NOT_FOUND)

        if not profile.role.is_privileged:
            return GateDecision(GateOutcome.ROLE_FORBIDDEN, profile)

        required = self._required_role(request.url.path)
        if required is not None and profile.role is not required:
            return GateDecision(GateOutcome.PATH_FORBIDDEN, profile)

        return GateDecision(GateOutcome.ALLOW, profile)

    def _deny(self, request: Request, decision: GateDecision) -> RedirectResponse:
        logger.warning(
            f"Admin access denied: {decision.outcome.value} "
            f"{request.method} {request.url.path}"
        )
        if decision.outcome in LOGIN_REDIRECT_OUTCOMES:
            query = urlencode({"reason": decision.outcome.value})
            return RedirectResponse(f"{self._gate.login_path}?{query}")
        return RedirectResponse(self._gate.forbidden_path)

    async def dispatch(self, request: Request, call_next):
        """Process request through the gate."""
        path = request.url.path

        if not self._is_guarded(path) or self._is_public_path(path):
            return await call_next(request)

        decision = self.evaluate(request)
        if not decision.allowed:
            return self._deny(request, decision)

        set_current_user_id(decision.profile.id)
        request.state.profile = decision.profile

        try:
            response = await call_next(request)
            set_last_activity(response, self._cookie_policy)
            return response
        finally:
            # Always clear context
            clear_current_user_id()
