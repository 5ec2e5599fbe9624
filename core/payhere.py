"""
PayHere hosted checkout - the hashing contract shared with the gateway.

Checkout hash (sent with the redirect fields):
    UPPER(MD5(merchant_id + order_id + amount + currency + UPPER(MD5(secret))))

Notification signature (md5sig on the webhook):
    UPPER(MD5(merchant_id + order_id + payhere_amount + payhere_currency
              + status_code + UPPER(MD5(secret))))

Amounts are always two-decimal strings without separators ("1500.00").
The merchant secret never leaves the server.
"""

import hashlib
import hmac
import re
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from pydantic import BaseModel, Field, SecretStr

from core.validation import is_number

SANDBOX_CHECKOUT_URL = "https://sandbox.payhere.lk/pay/checkout"
LIVE_CHECKOUT_URL = "https://www.payhere.lk/pay/checkout"

SUPPORTED_CURRENCIES = frozenset({"LKR", "USD", "GBP", "EUR", "AUD"})

ORDER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_TWO_PLACES = Decimal("0.01")


class PayHereConfig(BaseModel):
    """Merchant credentials and the public base URL used for callbacks."""

    merchant_id: str = Field(..., min_length=1)
    merchant_secret: SecretStr
    base_url: str = Field(
        default="http://localhost:8000",
        description="Public base URL for return/cancel/notify callbacks",
    )
    sandbox: bool = True

    @property
    def checkout_url(self) -> str:
        return SANDBOX_CHECKOUT_URL if self.sandbox else LIVE_CHECKOUT_URL

    @property
    def return_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/payment/success"

    @property
    def cancel_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/payment/cancel"

    @property
    def notify_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/api/payment/webhook"


def _md5_upper(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest().upper()


def format_amount(amount: float | int | str | Decimal) -> str:
    """Canonical two-decimal amount string, rounded half up.

    Raises:
        ValueError: If amount is not numeric.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return f"{value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP):.2f}"


def generate_hash(
    merchant_id: str,
    order_id: str,
    amount: str,
    currency: str,
    merchant_secret: str,
) -> str:
    """Checkout hash over already-formatted fields. Pure function."""
    return _md5_upper(
        f"{merchant_id}{order_id}{amount}{currency}{_md5_upper(merchant_secret)}"
    )


def generate_notification_signature(
    merchant_id: str,
    order_id: str,
    amount: str,
    currency: str,
    status_code: str,
    merchant_secret: str,
) -> str:
    """Expected md5sig for a gateway notification."""
    return _md5_upper(
        f"{merchant_id}{order_id}{amount}{currency}{status_code}{_md5_upper(merchant_secret)}"
    )


def verify_notification_signature(
    merchant_id: str,
    order_id: str,
    amount: str,
    currency: str,
    status_code: str,
    md5sig: str,
    merchant_secret: str,
) -> bool:
    """Constant-time check of a notification's md5sig."""
    if not md5sig:
        return False
    expected = generate_notification_signature(
        merchant_id, order_id, amount, currency, status_code, merchant_secret
    )
    return hmac.compare_digest(expected.encode(), md5sig.upper().encode())


def validate_payment_data(data: dict) -> list[str]:
    """Gateway-specific checks on top of field-level validation.

    Returns:
        Every violation found (empty list if the payload is acceptable).
    """
    errors = []

    order_id = data.get("order_id")
    if isinstance(order_id, str) and not ORDER_ID_PATTERN.match(order_id):
        errors.append("order_id may only contain letters, digits, '-' and '_' (max 64)")

    currency = data.get("currency")
    if isinstance(currency, str):
        if not CURRENCY_PATTERN.match(currency):
            errors.append("currency must be a three-letter upper-case ISO code")
        elif currency not in SUPPORTED_CURRENCIES:
            errors.append(
                f"currency {currency} is not supported "
                f"(supported: {', '.join(sorted(SUPPORTED_CURRENCIES))})"
            )

    email = data.get("email")
    if isinstance(email, str) and not EMAIL_PATTERN.match(email.strip()):
        errors.append("email is not a valid email address")

    amount = data.get("amount")
    if is_number(amount) and Decimal(str(amount)).normalize().as_tuple().exponent < -2:
        errors.append("amount may have at most two decimal places")

    return errors
