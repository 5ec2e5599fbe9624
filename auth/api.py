"""HTTP routes for authentication."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.base import success_response, error_json, ErrorCodes
from api.middleware import get_client_ip
from auth.config import AuthConfig
from auth.cookies import (
    ACCESS_TOKEN_COOKIE,
    CSRF_COOKIE,
    CSRF_HEADER,
    CookiePolicy,
    clear_session_cookies,
    csrf_tokens_match,
    issue_session_cookies,
)
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
from auth.service import AuthService
from auth.types import LoginRequest, ProfileUpdate


def create_auth_router(auth_service: AuthService, config: AuthConfig) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(tags=["auth"])
    cookie_policy = CookiePolicy.from_config(config)

    @router.post("/login")
    async def login(request: Request, body: LoginRequest):
        """Password login for administrators.

        Returns:
            - data.requires2FA=True: credentials and role accepted, code needed
            - data.user: logged in, session cookies set
        """
        try:
            result = auth_service.login(
                email=body.email,
                password=body.password,
                two_factor_code=body.two_factor_code,
                ip_address=get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except MissingCredentialsError as e:
            return error_json(400, ErrorCodes.INVALID_REQUEST, str(e))
        except RateLimitedError as e:
            return error_json(
                429,
                ErrorCodes.RATE_LIMITED,
                f"Too many login attempts. Please wait {e.retry_after_seconds} seconds.",
                headers={"Retry-After": str(e.retry_after_seconds)},
            )
        except InvalidCredentialsError as e:
            return error_json(401, ErrorCodes.INVALID_CREDENTIALS, str(e))
        except ProfileNotFoundError as e:
            return error_json(404, ErrorCodes.NOT_FOUND, str(e))
        except UserInactiveError as e:
            return error_json(403, ErrorCodes.ACCOUNT_DEACTIVATED, str(e))
        except InsufficientRoleError as e:
            return error_json(403, ErrorCodes.FORBIDDEN, str(e))
        except InvalidTwoFactorCodeError as e:
            return error_json(401, ErrorCodes.INVALID_2FA_CODE, str(e))

        if result.requires_2fa:
            return success_response({
                "requires2FA": True,
                "message": "Two-factor authentication code required",
            }).model_dump(mode="json")

        response = JSONResponse(
            content=success_response({
                "user": result.profile.to_public(),
                "session": {
                    "expires_at": result.expires_at.isoformat() if result.expires_at else None,
                },
            }).model_dump(mode="json"),
        )
        issue_session_cookies(
            response,
            cookie_policy,
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            access_max_age=result.expires_in,
        )
        return response

    @router.post("/logout")
    async def logout(request: Request):
        """Sign out with the provider and clear every session cookie."""
        try:
            auth_service.logout(
                access_token=request.cookies.get(ACCESS_TOKEN_COOKIE),
                ip_address=get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except SignOutError as e:
            return error_json(400, ErrorCodes.SIGN_OUT_FAILED, str(e))

        response = JSONResponse(
            content=success_response({"message": "Logged out successfully"}).model_dump(mode="json"),
        )
        clear_session_cookies(response, cookie_policy)
        return response

    @router.get("/profile")
    async def get_profile(request: Request):
        """Profile of the signed-in user."""
        try:
            profile = auth_service.current_profile(request.cookies.get(ACCESS_TOKEN_COOKIE))
        except NotAuthenticatedError as e:
            return error_json(401, ErrorCodes.NOT_AUTHENTICATED, str(e))
        except ProfileNotFoundError as e:
            return error_json(404, ErrorCodes.NOT_FOUND, str(e))

        return success_response({"user": profile.to_public()}).model_dump(mode="json")

    @router.put("/profile")
    async def update_profile(request: Request, body: ProfileUpdate):
        """Update first name, last name and phone of the signed-in user."""
        if not csrf_tokens_match(request.cookies.get(CSRF_COOKIE), request.headers.get(CSRF_HEADER)):
            return error_json(403, ErrorCodes.CSRF_FAILED, "Forbidden")

        try:
            profile = auth_service.current_profile(request.cookies.get(ACCESS_TOKEN_COOKIE))
            updated = auth_service.update_profile(
                profile,
                body,
                ip_address=get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except NotAuthenticatedError as e:
            return error_json(401, ErrorCodes.NOT_AUTHENTICATED, str(e))
        except ProfileNotFoundError as e:
            return error_json(404, ErrorCodes.NOT_FOUND, str(e))

        return success_response({"user": updated.to_public()}).model_dump(mode="json")

    return router
