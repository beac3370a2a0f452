"""Utilities package."""

from app.utils.helpers import (
    format_order_number,
    from_minor_units,
    generate_payment_signature,
    generate_uuid,
    round_money,
    to_minor_units,
    verify_payment_signature,
)
from app.utils.logger import setup_logging

__all__ = [
    "setup_logging",
    "generate_uuid",
    "format_order_number",
    "round_money",
    "to_minor_units",
    "from_minor_units",
    "generate_payment_signature",
    "verify_payment_signature",
]
