"""Payment domain models.

Amounts are Decimal with two places, matching numeric(12,2) in the database
and the gateway's two-decimal string format.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class PaymentStatus(str, Enum):
    """Payment lifecycle status. Only pending may change, and only once."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def from_gateway_code(cls, status_code: str) -> "PaymentStatus":
        """
        Map a PayHere status_code.

        2 success, 0 pending, -1 canceled, -2 failed, -3 charged back.

        Raises:
            ValueError: Unknown status code
        """
        mapping = {
            "2": cls.COMPLETED,
            "0": cls.PENDING,
            "-1": cls.FAILED,
            "-2": cls.FAILED,
            "-3": cls.FAILED,
        }
        try:
            return mapping[status_code.strip()]
        except KeyError:
            raise ValueError(f"Unknown gateway status code '{status_code}'")


class CheckoutRequest(BaseModel):
    """Checkout payload after validation."""

    order_id: str
    amount: Decimal
    currency: str
    first_name: str
    last_name: str
    email: str
    phone: str
    address: str
    city: str
    country: str
    items: str | None = None


class PaymentCreate(BaseModel):
    """Data required to persist a new payment intent."""

    order_id: str
    user_id: UUID | None = None
    amount: Decimal
    currency: str
    customer_email: str
    customer_phone: str
    customer_name: str
    merchant_id: str
    items: str | None = None
    billing_details: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


class Payment(BaseModel):
    """Full payment record as stored."""

    id: UUID
    order_id: str
    user_id: UUID | None
    amount: Decimal
    currency: str
    status: PaymentStatus
    customer_email: str
    customer_phone: str
    customer_name: str
    merchant_id: str
    items: str | None = None
    billing_details: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    gateway_payment_id: str | None = None
    status_message: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_final(self) -> bool:
        return self.status != PaymentStatus.PENDING


class PaymentIntent(BaseModel):
    """What the client needs to redirect to the hosted checkout."""

    payment_id: UUID
    payhere_fields: dict[str, str]
    payhere_url: str


class PaymentNotification(BaseModel):
    """Asynchronous notification posted by the gateway (form fields)."""

    merchant_id: str
    order_id: str
    payment_id: str | None = None
    payhere_amount: str
    payhere_currency: str
    status_code: str
    md5sig: str
    status_message: str | None = None
    method: str | None = None
