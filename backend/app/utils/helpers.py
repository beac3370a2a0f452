"""Utility helper functions."""

import hashlib
import hmac
import uuid
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal


def generate_uuid() -> str:
    """Generate a unique UUID."""
    return str(uuid.uuid4())


def format_order_number(sequence: int, when: datetime | None = None) -> str:
    """Build a human-readable order number from a store-wide sequence."""
    when = when or datetime.now(UTC)
    return f"ORD-{when:%Y%m%d}-{sequence:06d}"


def round_money(amount: float) -> float:
    """Round a major-unit amount to two decimal places."""
    return float(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def to_minor_units(amount: float) -> int:
    """Convert a major-unit amount to integer minor units (e.g. rupees to paise)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> float:
    """Convert integer minor units back to a major-unit amount."""
    return float(Decimal(amount) / 100)


def generate_payment_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    """Generate the hex HMAC-SHA256 signature the gateway attaches to a payment."""
    message = f"{gateway_order_id}|{gateway_payment_id}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_payment_signature(
    secret: str, gateway_order_id: str, gateway_payment_id: str, signature: str
) -> bool:
    """Check a gateway payment signature."""
    expected = generate_payment_signature(secret, gateway_order_id, gateway_payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
