"""Tests for payment routes."""

from decimal import Decimal
from unittest.mock import Mock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.errors import register_error_handlers
from api.payments import create_payments_router
from auth.exceptions import RateLimitedError
from auth.rate_limiter import RateLimiter
from auth.service import AuthService
from core.models import Payment, PaymentIntent, PaymentStatus
from core.services.payment_service import (
    InvalidSignatureError,
    PaymentConflictError,
    PaymentMismatchError,
    PaymentNotFoundError,
    PaymentService,
    PaymentValidationError,
)
from utils.timezone import now_utc


@pytest.fixture
def mock_payment_service():
    return Mock(spec=PaymentService)


@pytest.fixture
def mock_auth_service():
    mock = Mock(spec=AuthService)
    mock.optional_user_id.return_value = None
    return mock


@pytest.fixture
def mock_rate_limiter():
    return Mock(spec=RateLimiter)


@pytest.fixture
def client(mock_payment_service, mock_auth_service, mock_rate_limiter):
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(
        create_payments_router(mock_payment_service, mock_auth_service, mock_rate_limiter),
        prefix="/api/payment",
    )
    return TestClient(app, raise_server_exceptions=False)


def intent() -> PaymentIntent:
    return PaymentIntent(
        payment_id=uuid4(),
        payhere_fields={"order_id": "ORD-1001", "amount": "1500.50", "hash": "ABC"},
        payhere_url="https://sandbox.payhere.lk/pay/checkout",
    )


class TestCreatePayment:
    """POST /api/payment/create"""

    def test_created(self, client, mock_payment_service):
        created = intent()
        mock_payment_service.create_intent.return_value = created

        response = client.post("/api/payment/create", json={"order_id": "ORD-1001"})

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["payment_id"] == str(created.payment_id)
        assert data["payhere_fields"]["hash"] == "ABC"
        assert data["payhere_url"] == "https://sandbox.payhere.lk/pay/checkout"

    def test_guest_passes_no_user(self, client, mock_payment_service, mock_auth_service):
        mock_payment_service.create_intent.return_value = intent()

        client.post("/api/payment/create", json={"order_id": "ORD-1001"})

        assert mock_payment_service.create_intent.call_args.kwargs["user_id"] is None
        mock_auth_service.optional_user_id.assert_called_once_with(None)

    def test_signed_in_user_attributed(self, client, mock_payment_service, mock_auth_service, test_user_id):
        mock_auth_service.optional_user_id.return_value = test_user_id
        mock_payment_service.create_intent.return_value = intent()

        client.post(
            "/api/payment/create",
            json={"order_id": "ORD-1001"},
            cookies={"sb-access-token": "access-token"},
            headers={"x-forwarded-for": "203.0.113.7"},
        )

        mock_auth_service.optional_user_id.assert_called_once_with("access-token")
        kwargs = mock_payment_service.create_intent.call_args.kwargs
        assert kwargs["user_id"] == test_user_id
        assert kwargs["ip_address"] == "203.0.113.7"

    def test_validation_errors_listed(self, client, mock_payment_service):
        errors = ["amount must be at most 10000000", "email is not a valid email address"]
        mock_payment_service.create_intent.side_effect = PaymentValidationError(errors)

        response = client.post("/api/payment/create", json={"amount": 10_000_001})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"] == errors
        assert "amount must be at most 10000000" in error["message"]

    def test_conflict(self, client, mock_payment_service):
        mock_payment_service.create_intent.side_effect = PaymentConflictError(
            "Payment with order ID ORD-1001 already exists"
        )

        response = client.post("/api/payment/create", json={"order_id": "ORD-1001"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_EXISTS"

    def test_rate_limited_by_client_address(self, client, mock_payment_service, mock_rate_limiter):
        mock_rate_limiter.check_rate_limit.side_effect = RateLimitedError(retry_after_seconds=90)

        response = client.post(
            "/api/payment/create",
            json={"order_id": "ORD-1001"},
            headers={"x-forwarded-for": "203.0.113.7"},
        )

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "90"
        mock_rate_limiter.check_rate_limit.assert_called_once_with("203.0.113.7")
        mock_payment_service.create_intent.assert_not_called()

    @pytest.mark.parametrize("content", [b"not json", b"[1, 2]"])
    def test_body_must_be_json_object(self, client, mock_payment_service, content):
        response = client.post(
            "/api/payment/create",
            content=content,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"
        mock_payment_service.create_intent.assert_not_called()

    def test_unexpected_failure_is_generic_500(self, client, mock_payment_service):
        mock_payment_service.create_intent.side_effect = RuntimeError("pool exhausted")

        response = client.post("/api/payment/create", json={"order_id": "ORD-1001"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"
        assert "pool exhausted" not in response.text


def completed_payment() -> Payment:
    now = now_utc()
    return Payment(
        id=uuid4(),
        order_id="ORD-1001",
        user_id=None,
        amount=Decimal("1500.50"),
        currency="LKR",
        status=PaymentStatus.COMPLETED,
        customer_email="nimal@example.com",
        customer_phone="+94771234567",
        customer_name="Nimal Silva",
        merchant_id="1211149",
        created_at=now,
        updated_at=now,
    )


NOTIFICATION_FORM = {
    "merchant_id": "1211149",
    "order_id": "ORD-1001",
    "payment_id": "320025071278",
    "payhere_amount": "1500.50",
    "payhere_currency": "LKR",
    "status_code": "2",
    "md5sig": "ABCDEF",
}


class TestWebhook:
    """POST /api/payment/webhook"""

    def test_applies_notification(self, client, mock_payment_service):
        mock_payment_service.handle_notification.return_value = completed_payment()

        response = client.post("/api/payment/webhook", data=NOTIFICATION_FORM)

        assert response.status_code == 200
        assert response.json()["data"] == {"order_id": "ORD-1001", "status": "completed"}
        notification = mock_payment_service.handle_notification.call_args.args[0]
        assert notification.status_code == "2"
        assert notification.md5sig == "ABCDEF"

    def test_missing_fields(self, client, mock_payment_service):
        response = client.post("/api/payment/webhook", data={"order_id": "ORD-1001"})

        assert response.status_code == 400
        mock_payment_service.handle_notification.assert_not_called()

    @pytest.mark.parametrize("error,status,code", [
        (InvalidSignatureError("Invalid payment signature"), 400, "INVALID_SIGNATURE"),
        (PaymentNotFoundError("Payment for order ORD-1001 not found"), 404, "NOT_FOUND"),
        (PaymentMismatchError("mismatch"), 400, "PAYMENT_MISMATCH"),
    ])
    def test_failures(self, client, mock_payment_service, error, status, code):
        mock_payment_service.handle_notification.side_effect = error

        response = client.post("/api/payment/webhook", data=NOTIFICATION_FORM)

        assert response.status_code == status
        assert response.json()["error"]["code"] == code

    def test_webhook_not_rate_limited(self, client, mock_payment_service, mock_rate_limiter):
        mock_payment_service.handle_notification.return_value = completed_payment()

        client.post("/api/payment/webhook", data=NOTIFICATION_FORM)

        mock_rate_limiter.check_rate_limit.assert_not_called()
