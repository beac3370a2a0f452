import pytest

from app.exceptions import IllegalTransition
from app.models.order import OrderStatus, PaymentStatus
from app.models.state import (
    TERMINAL_ORDER_STATES,
    Role,
    allowed_order_targets,
    can_transition_order,
    can_transition_payment,
    ensure_order_transition,
    ensure_payment_transition,
)


def test_system_confirms_pending_order():
    assert can_transition_order(OrderStatus.PENDING, OrderStatus.CONFIRMED, Role.SYSTEM)


def test_system_cannot_drive_fulfilment():
    assert not can_transition_order(OrderStatus.CONFIRMED, OrderStatus.PROCESSING, Role.SYSTEM)
    assert not can_transition_order(OrderStatus.SHIPPED, OrderStatus.DELIVERED, Role.SYSTEM)


def test_admin_fulfilment_path():
    path = [
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
    ]
    for source, target in zip(path, path[1:]):
        ensure_order_transition(source, target, Role.ADMIN)


def test_same_state_is_rejected():
    with pytest.raises(IllegalTransition):
        ensure_order_transition(OrderStatus.CONFIRMED, OrderStatus.CONFIRMED, Role.SYSTEM)


def test_shipped_order_cannot_be_cancelled():
    with pytest.raises(IllegalTransition) as exc_info:
        ensure_order_transition(OrderStatus.SHIPPED, OrderStatus.CANCELLED, Role.ADMIN)

    assert exc_info.value.details == {"from": "shipped", "to": "cancelled", "role": "admin"}
    assert exc_info.value.status_code == 409


def test_terminal_states_have_no_exits():
    for state in TERMINAL_ORDER_STATES:
        assert allowed_order_targets(state, Role.ADMIN) == []
        assert allowed_order_targets(state, Role.SYSTEM) == []


def test_allowed_targets_from_pending():
    assert set(allowed_order_targets(OrderStatus.PENDING, Role.SYSTEM)) == {
        OrderStatus.CONFIRMED,
        OrderStatus.CANCELLED,
    }


def test_payment_transitions():
    assert can_transition_payment(PaymentStatus.PENDING, PaymentStatus.COMPLETED, Role.SYSTEM)
    assert can_transition_payment(PaymentStatus.FAILED, PaymentStatus.COMPLETED, Role.SYSTEM)
    assert not can_transition_payment(PaymentStatus.COMPLETED, PaymentStatus.FAILED, Role.SYSTEM)
    assert not can_transition_payment(PaymentStatus.PENDING, PaymentStatus.COMPLETED, Role.ADMIN)

    with pytest.raises(IllegalTransition):
        ensure_payment_transition(PaymentStatus.COMPLETED, PaymentStatus.COMPLETED, Role.SYSTEM)
