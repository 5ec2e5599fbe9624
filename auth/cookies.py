"""Session cookie names, attribute policy and writers.

Two classes of cookie:
- identity cookies (provider access/refresh tokens): httpOnly, SameSite=Lax
- gate cookies (lastActivity, csrfToken): SameSite=Strict; csrfToken is the
  only one readable by client script, since it is echoed in x-csrf-token

Clearing a cookie reuses the attributes it was set with.
"""

import secrets

from pydantic import BaseModel
from starlette.responses import Response

from auth.config import AuthConfig
from utils.timezone import now_millis

ACCESS_TOKEN_COOKIE = "sb-access-token"
REFRESH_TOKEN_COOKIE = "sb-refresh-token"
LAST_ACTIVITY_COOKIE = "lastActivity"
CSRF_COOKIE = "csrfToken"
CSRF_HEADER = "x-csrf-token"

CSRF_TOKEN_BYTES = 32


class CookiePolicy(BaseModel):
    """Cookie attributes resolved once from config."""

    secure: bool
    activity_max_age: int
    refresh_max_age: int
    path: str = "/"

    model_config = {"frozen": True}

    @classmethod
    def from_config(cls, config: AuthConfig) -> "CookiePolicy":
        return cls(
            secure=config.production,
            activity_max_age=config.activity_cookie_max_age_seconds,
            refresh_max_age=config.refresh_cookie_max_age_seconds,
        )


def new_csrf_token() -> str:
    """Generate a double-submit CSRF token."""
    return secrets.token_urlsafe(CSRF_TOKEN_BYTES)


def csrf_tokens_match(cookie_token: str | None, header_token: str | None) -> bool:
    """Double-submit check: both present, non-empty and equal."""
    if not cookie_token or not header_token:
        return False
    return secrets.compare_digest(cookie_token.encode(), header_token.encode())


def set_last_activity(response: Response, policy: CookiePolicy) -> None:
    """Stamp the idle-timeout cookie with the current time."""
    response.set_cookie(
        key=LAST_ACTIVITY_COOKIE,
        value=str(now_millis()),
        httponly=True,
        secure=policy.secure,
        samesite="strict",
        max_age=policy.activity_max_age,
        path=policy.path,
    )


def issue_session_cookies(
    response: Response,
    policy: CookiePolicy,
    access_token: str,
    refresh_token: str,
    access_max_age: int,
) -> str:
    """
    Write every cookie a fresh admin session needs.

    Returns the CSRF token so the caller can hand it to the client.
    """
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=access_token,
        httponly=True,
        secure=policy.secure,
        samesite="lax",
        max_age=access_max_age,
        path=policy.path,
    )
    response.set_cookie(
        key=REFRESH_TOKEN_COOKIE,
        value=refresh_token,
        httponly=True,
        secure=policy.secure,
        samesite="lax",
        max_age=policy.refresh_max_age,
        path=policy.path,
    )
    set_last_activity(response, policy)

    csrf_token = new_csrf_token()
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf_token,
        httponly=False,
        secure=policy.secure,
        samesite="strict",
        max_age=policy.activity_max_age,
        path=policy.path,
    )
    return csrf_token


def clear_session_cookies(response: Response, policy: CookiePolicy) -> None:
    """Expire every session-bearing cookie immediately."""
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.set_cookie(
            key=name,
            value="",
            httponly=True,
            secure=policy.secure,
            samesite="lax",
            max_age=0,
            path=policy.path,
        )
    response.set_cookie(
        key=LAST_ACTIVITY_COOKIE,
        value="",
        httponly=True,
        secure=policy.secure,
        samesite="strict",
        max_age=0,
        path=policy.path,
    )
    response.set_cookie(
        key=CSRF_COOKIE,
        value="",
        httponly=False,
        secure=policy.secure,
        samesite="strict",
        max_age=0,
        path=policy.path,
    )
