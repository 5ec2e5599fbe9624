"""Core domain models."""

from core.models.payment import (
    Payment,
    PaymentCreate,
    PaymentIntent,
    PaymentNotification,
    PaymentStatus,
    CheckoutRequest,
)

__all__ = [
    "Payment", "PaymentCreate", "PaymentIntent", "PaymentNotification",
    "PaymentStatus", "CheckoutRequest",
]
