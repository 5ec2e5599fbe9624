"""POST /api/payment/create and /api/payment/webhook."""

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.base import success_response, error_json, ErrorCodes
from api.middleware import get_client_ip
from auth.cookies import ACCESS_TOKEN_COOKIE
from auth.exceptions import RateLimitedError
from auth.rate_limiter import RateLimiter
from auth.service import AuthService
from core.models import PaymentNotification
from core.services.payment_service import (
    InvalidSignatureError,
    PaymentConflictError,
    PaymentMismatchError,
    PaymentNotFoundError,
    PaymentService,
    PaymentValidationError,
)

logger = logging.getLogger(__name__)


def create_payments_router(
    payment_service: PaymentService,
    auth_service: AuthService,
    rate_limiter: RateLimiter,
) -> APIRouter:
    router = APIRouter(tags=["payments"])

    @router.post("/create")
    async def create_payment(request: Request):
        """Create a pending payment and return the signed checkout fields."""
        ip_address = get_client_ip(request)

        try:
            rate_limiter.check_rate_limit(ip_address or "unknown")
        except RateLimitedError as e:
            return error_json(
                429,
                ErrorCodes.RATE_LIMITED,
                "Too many payment requests. Please try again later.",
                headers={"Retry-After": str(e.retry_after_seconds)},
            )

        try:
            body = await request.json()
        except json.JSONDecodeError:
            return error_json(400, ErrorCodes.INVALID_REQUEST, "Request body must be JSON")
        if not isinstance(body, dict):
            return error_json(400, ErrorCodes.INVALID_REQUEST, "Request body must be a JSON object")

        # Guests may pay; a bad or missing session just means no attribution
        user_id = auth_service.optional_user_id(request.cookies.get(ACCESS_TOKEN_COOKIE))

        try:
            intent = payment_service.create_intent(
                body,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=request.headers.get("User-Agent"),
            )
        except PaymentValidationError as e:
            return error_json(400, ErrorCodes.VALIDATION_ERROR, str(e), details=e.errors)
        except PaymentConflictError as e:
            return error_json(409, ErrorCodes.ALREADY_EXISTS, str(e))

        return JSONResponse(
            status_code=201,
            content=success_response(intent.model_dump(mode="json")).model_dump(mode="json"),
        )

    @router.post("/webhook")
    async def payment_webhook(request: Request):
        """Gateway notification. Form-encoded, authenticated by md5sig."""
        form = await request.form()

        try:
            notification = PaymentNotification.model_validate(dict(form))
        except ValidationError:
            return error_json(400, ErrorCodes.INVALID_REQUEST, "Malformed payment notification")

        try:
            payment = payment_service.handle_notification(notification)
        except InvalidSignatureError as e:
            return error_json(400, ErrorCodes.INVALID_SIGNATURE, str(e))
        except PaymentNotFoundError as e:
            return error_json(404, ErrorCodes.NOT_FOUND, str(e))
        except PaymentMismatchError as e:
            return error_json(400, ErrorCodes.PAYMENT_MISMATCH, str(e))

        return success_response({
            "order_id": payment.order_id,
            "status": payment.status.value,
        }).model_dump(mode="json")

    return router
