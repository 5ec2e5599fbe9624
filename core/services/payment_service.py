"""
Payment service for PayHere hosted checkout.

Builds payment intents (validated, hashed, persisted as pending) and applies
gateway notifications. order_id is the idempotency key: the UNIQUE constraint
on payments.order_id guarantees at most one record per order even when two
requests race past the existence check.
"""

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from psycopg2 import errors as pg_errors

from clients.postgres_client import PostgresClient
from core.audit import AuditAction, AuditRecorder
from core.models import (
    CheckoutRequest,
    Payment,
    PaymentCreate,
    PaymentIntent,
    PaymentNotification,
    PaymentStatus,
)
from core.payhere import (
    PayHereConfig,
    format_amount,
    generate_hash,
    validate_payment_data,
    verify_notification_signature,
)
from core.validation import ValidationRule, validate_input
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

MAX_PAYMENT_AMOUNT = 10_000_000

CHECKOUT_RULES = [
    ValidationRule("order_id", "string", required=True),
    ValidationRule("amount", "number", required=True, min=0, exclusive_min=True, max=MAX_PAYMENT_AMOUNT),
    ValidationRule("currency", "string", required=True),
    ValidationRule("first_name", "string", required=True, max_length=100),
    ValidationRule("last_name", "string", required=True, max_length=100),
    ValidationRule("email", "string", required=True, max_length=255),
    ValidationRule("phone", "string", required=True, max_length=32),
    ValidationRule("address", "string", required=True, max_length=255),
    ValidationRule("city", "string", required=True, max_length=100),
    ValidationRule("country", "string", required=True, max_length=100),
    ValidationRule("items", "string", max_length=255),
]


class PaymentError(Exception):
    """Base class for payment failures."""


class PaymentValidationError(PaymentError):
    """Checkout payload broke one or more rules. Carries every violation."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Validation failed: {', '.join(errors)}")


class PaymentConflictError(PaymentError):
    """A payment for this order_id already exists."""


class InvalidSignatureError(PaymentError):
    """Notification signature or merchant does not match."""


class PaymentNotFoundError(PaymentError):
    """No payment for the notified order."""


class PaymentMismatchError(PaymentError):
    """Notified amount or currency differs from the stored payment."""


class PaymentService:
    """Service for payment intents and gateway notifications."""

    def __init__(self, postgres: PostgresClient, audit: AuditRecorder, config: PayHereConfig):
        self.postgres = postgres
        self.audit = audit
        self.config = config

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_order_id(self, order_id: str) -> Payment | None:
        """Get payment by order id."""
        result = self.postgres.execute_single(
            "SELECT * FROM payments WHERE order_id = %s",
            (order_id,)
        )
        return Payment.model_validate(result) if result else None

    def total_revenue(self) -> Decimal:
        """Sum of completed payment amounts."""
        total = self.postgres.execute_scalar(
            "SELECT COALESCE(SUM(amount), 0) FROM payments WHERE status = %s",
            (PaymentStatus.COMPLETED.value,)
        )
        return Decimal(total or 0)

    # =========================================================================
    # Intent creation
    # =========================================================================

    def validate_checkout(self, body: dict[str, Any]) -> CheckoutRequest:
        """
        Run field-level rules, then gateway rules, collecting every violation.

        Raises:
            PaymentValidationError: If any rule fails
        """
        errors = validate_input(body, CHECKOUT_RULES).errors
        errors.extend(validate_payment_data(body))
        if errors:
            raise PaymentValidationError(errors)

        return CheckoutRequest(
            order_id=body["order_id"],
            amount=Decimal(str(body["amount"])),
            currency=body["currency"],
            first_name=body["first_name"].strip(),
            last_name=body["last_name"].strip(),
            email=body["email"].strip(),
            phone=body["phone"].strip(),
            address=body["address"].strip(),
            city=body["city"].strip(),
            country=body["country"].strip(),
            items=body.get("items") or None,
        )

    def _insert(self, data: PaymentCreate) -> Payment:
        """
        Insert a pending payment.

        Raises:
            PaymentConflictError: If the order_id is already taken
        """
        now = now_utc()
        try:
            rows = self.postgres.execute_returning(
                """
                INSERT INTO payments (
                    id, order_id, user_id, amount, currency, status,
                    customer_email, customer_phone, customer_name, merchant_id,
                    items, billing_details, metadata,
                    created_at, updated_at
                ) VALUES (
                    %s, %s, %s, %s, %s, %s,
                    %s, %s, %s, %s,
                    %s, %s, %s,
                    %s, %s
                )
                RETURNING *
                """,
                (
                    uuid4(), data.order_id, data.user_id, data.amount, data.currency,
                    PaymentStatus.PENDING.value,
                    data.customer_email, data.customer_phone, data.customer_name, data.merchant_id,
                    data.items, data.billing_details, data.metadata,
                    now, now,
                )
            )
        except pg_errors.UniqueViolation:
            raise PaymentConflictError(f"Payment with order ID {data.order_id} already exists")

        return Payment.model_validate(rows[0])

    def create_intent(
        self,
        body: dict[str, Any],
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> PaymentIntent:
        """
        Create a pending payment and the signed PayHere checkout fields.

        Args:
            body: Raw checkout payload
            user_id: Signed-in user, or None for guest checkout
            ip_address: Client address, stored in metadata and audit
            user_agent: Client user agent, for audit

        Returns:
            Payment id, gateway fields (including hash) and checkout URL

        Raises:
            PaymentValidationError: If the payload is invalid
            PaymentConflictError: If a payment for the order already exists
        """
        checkout = self.validate_checkout(body)

        if self.get_by_order_id(checkout.order_id) is not None:
            raise PaymentConflictError(
                f"Payment with order ID {checkout.order_id} already exists"
            )

        amount = format_amount(checkout.amount)
        merchant_id = self.config.merchant_id
        payment_hash = generate_hash(
            merchant_id,
            checkout.order_id,
            amount,
            checkout.currency,
            self.config.merchant_secret.get_secret_value(),
        )

        payment = self._insert(PaymentCreate(
            order_id=checkout.order_id,
            user_id=user_id,
            amount=Decimal(amount),
            currency=checkout.currency,
            customer_email=checkout.email,
            customer_phone=checkout.phone,
            customer_name=f"{checkout.first_name} {checkout.last_name}",
            merchant_id=merchant_id,
            items=checkout.items,
            billing_details={
                "first_name": checkout.first_name,
                "last_name": checkout.last_name,
                "address": checkout.address,
                "city": checkout.city,
                "country": checkout.country,
            },
            metadata={
                "created_from": "api",
                "ip_address": ip_address,
            },
        ))

        logger.info(f"Created payment {payment.id} for order {payment.order_id}")

        # Guest checkouts are not audited
        if user_id is not None:
            self.audit.record(
                action=AuditAction.PAYMENT_INITIATED,
                resource_type="payment",
                resource_id=payment.id,
                details={
                    "order_id": checkout.order_id,
                    "amount": amount,
                    "currency": checkout.currency,
                },
                ip_address=ip_address,
                user_agent=user_agent,
                user_id=user_id,
            )

        fields = {
            "merchant_id": merchant_id,
            "return_url": self.config.return_url,
            "cancel_url": self.config.cancel_url,
            "notify_url": self.config.notify_url,
            "order_id": checkout.order_id,
            "items": checkout.items or checkout.order_id,
            "currency": checkout.currency,
            "amount": amount,
            "first_name": checkout.first_name,
            "last_name": checkout.last_name,
            "email": checkout.email,
            "phone": checkout.phone,
            "address": checkout.address,
            "city": checkout.city,
            "country": checkout.country,
            "hash": payment_hash,
        }

        return PaymentIntent(
            payment_id=payment.id,
            payhere_fields=fields,
            payhere_url=self.config.checkout_url,
        )

    # =========================================================================
    # Notifications
    # =========================================================================

    def handle_notification(self, notification: PaymentNotification) -> Payment:
        """
        Verify and apply a gateway notification.

        Status moves only out of pending. A repeat notification for a payment
        that already left pending returns the stored record unchanged.

        Raises:
            InvalidSignatureError: Wrong merchant or md5sig
            PaymentNotFoundError: Unknown order
            PaymentMismatchError: Amount or currency differs from the record
            ValueError: Unknown status code
        """
        valid = notification.merchant_id == self.config.merchant_id and verify_notification_signature(
            notification.merchant_id,
            notification.order_id,
            notification.payhere_amount,
            notification.payhere_currency,
            notification.status_code,
            notification.md5sig,
            self.config.merchant_secret.get_secret_value(),
        )
        if not valid:
            logger.warning(f"Rejected notification with bad signature for order {notification.order_id}")
            raise InvalidSignatureError("Invalid payment signature")

        payment = self.get_by_order_id(notification.order_id)
        if payment is None:
            raise PaymentNotFoundError(f"Payment for order {notification.order_id} not found")

        if (
            format_amount(notification.payhere_amount) != format_amount(payment.amount)
            or notification.payhere_currency != payment.currency
        ):
            logger.warning(f"Notification amount/currency mismatch for order {payment.order_id}")
            raise PaymentMismatchError("Notified amount or currency does not match the payment")

        new_status = PaymentStatus.from_gateway_code(notification.status_code)
        if new_status == PaymentStatus.PENDING or payment.is_final:
            return payment

        rows = self.postgres.execute_returning(
            """
            UPDATE payments
            SET status = %s, gateway_payment_id = %s, status_message = %s, updated_at = %s
            WHERE order_id = %s AND status = %s
            RETURNING *
            """,
            (
                new_status.value,
                notification.payment_id,
                notification.status_message,
                now_utc(),
                payment.order_id,
                PaymentStatus.PENDING.value,
            )
        )

        if not rows:
            # Another notification won the transition
            return self.get_by_order_id(payment.order_id) or payment

        updated = Payment.model_validate(rows[0])
        logger.info(f"Payment {updated.id} for order {updated.order_id} is now {updated.status.value}")
        return updated
