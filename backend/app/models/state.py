"""Order and payment state machines.

Transitions are listed explicitly as ``(source, target) -> roles``. Anything
not in a table is rejected, including re-entering the current state.
"""

from enum import Enum

from app.exceptions import IllegalTransition
from app.models.order import OrderStatus, PaymentStatus


class Role(str, Enum):
    """Actor requesting a transition."""

    SYSTEM = "system"
    ADMIN = "admin"


ORDER_TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], frozenset[Role]] = {
    (OrderStatus.PENDING, OrderStatus.CONFIRMED): frozenset({Role.SYSTEM, Role.ADMIN}),
    (OrderStatus.PENDING, OrderStatus.CANCELLED): frozenset({Role.SYSTEM, Role.ADMIN}),
    (OrderStatus.CONFIRMED, OrderStatus.PROCESSING): frozenset({Role.ADMIN}),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED): frozenset({Role.ADMIN}),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED): frozenset({Role.ADMIN}),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED): frozenset({Role.ADMIN}),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED): frozenset({Role.ADMIN}),
}

PAYMENT_TRANSITIONS: dict[tuple[PaymentStatus, PaymentStatus], frozenset[Role]] = {
    (PaymentStatus.PENDING, PaymentStatus.COMPLETED): frozenset({Role.SYSTEM}),
    (PaymentStatus.PENDING, PaymentStatus.FAILED): frozenset({Role.SYSTEM}),
    (PaymentStatus.FAILED, PaymentStatus.COMPLETED): frozenset({Role.SYSTEM}),
}

TERMINAL_ORDER_STATES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def can_transition_order(source: OrderStatus, target: OrderStatus, role: Role) -> bool:
    """Check whether ``role`` may move an order from ``source`` to ``target``."""
    return role in ORDER_TRANSITIONS.get((source, target), frozenset())


def can_transition_payment(source: PaymentStatus, target: PaymentStatus, role: Role) -> bool:
    """Check whether ``role`` may move a payment from ``source`` to ``target``."""
    return role in PAYMENT_TRANSITIONS.get((source, target), frozenset())


def ensure_order_transition(source: OrderStatus, target: OrderStatus, role: Role) -> None:
    """Raise IllegalTransition unless the order transition is permitted."""
    if not can_transition_order(source, target, role):
        raise IllegalTransition(
            f"Cannot change order status from {source.value} to {target.value}",
            details={"from": source.value, "to": target.value, "role": role.value},
        )


def ensure_payment_transition(source: PaymentStatus, target: PaymentStatus, role: Role) -> None:
    """Raise IllegalTransition unless the payment transition is permitted."""
    if not can_transition_payment(source, target, role):
        raise IllegalTransition(
            f"Cannot change payment status from {source.value} to {target.value}",
            details={"from": source.value, "to": target.value, "role": role.value},
        )


def allowed_order_targets(source: OrderStatus, role: Role) -> list[OrderStatus]:
    """List the states ``role`` may move an order to from ``source``."""
    return [
        target
        for (src, target), roles in ORDER_TRANSITIONS.items()
        if src == source and role in roles
    ]
