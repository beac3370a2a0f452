import pytest

from app.exceptions import (
    IllegalTransition,
    InvalidInput,
    InvalidSignature,
    OrderNotFound,
    UpstreamGatewayError,
)
from app.models.order import OrderStatus, PaymentStatus
from app.models.request import CheckoutRequest
from app.services.payment_service import PaymentService, summarize_payment
from app.utils.helpers import generate_payment_signature
from tests.conftest import SHIPPING, sign


async def start_gateway_checkout(checkout_service, quantity=2):
    response = await checkout_service.checkout(
        CheckoutRequest(
            items=[{"productId": "P2", "quantity": quantity}],
            shippingInfo=SHIPPING,
            paymentMethod="gateway",
            totalAmount=600 * quantity,
        )
    )
    return response.gatewayOrderId, response.orderId


async def test_verify_confirms_order_and_commits_stock(checkout_service, payment_service, store, products):
    gateway_order_id, order_id = await start_gateway_checkout(checkout_service)

    response = await payment_service.verify_payment(
        gateway_order_id, "pay_001", sign(gateway_order_id, "pay_001")
    )

    assert response.message == "Payment verified successfully"
    assert response.orderId == order_id
    assert response.payment["amount"] == 1200.0
    assert response.payment["method"] == "upi"

    order = await store.get_order(order_id)
    assert order.orderStatus == OrderStatus.CONFIRMED
    assert order.paymentInfo.status == PaymentStatus.COMPLETED
    assert order.paymentInfo.gatewayPaymentId == "pay_001"
    assert order.stockCommitted
    assert order.statusHistory[-1].trigger == "payment_verified"
    assert (await store.find_product("P2")).stock == 3


async def test_replayed_verification_commits_stock_once(checkout_service, payment_service, store, products):
    gateway_order_id, order_id = await start_gateway_checkout(checkout_service)
    signature = sign(gateway_order_id, "pay_001")

    await payment_service.verify_payment(gateway_order_id, "pay_001", signature)
    replay = await payment_service.verify_payment(gateway_order_id, "pay_001", signature)

    assert replay.message == "Payment already verified"
    assert replay.orderId == order_id
    assert (await store.find_product("P2")).stock == 3


async def test_second_payment_for_confirmed_order_is_rejected(checkout_service, payment_service, products):
    gateway_order_id, _ = await start_gateway_checkout(checkout_service)
    await payment_service.verify_payment(gateway_order_id, "pay_001", sign(gateway_order_id, "pay_001"))

    with pytest.raises(IllegalTransition):
        await payment_service.verify_payment(
            gateway_order_id, "pay_002", sign(gateway_order_id, "pay_002")
        )


async def test_invalid_signature_leaves_order_untouched(checkout_service, payment_service, store, products):
    gateway_order_id, order_id = await start_gateway_checkout(checkout_service)
    signature = sign(gateway_order_id, "pay_001")
    tampered = signature[:-1] + ("0" if signature[-1] != "0" else "1")

    with pytest.raises(InvalidSignature, match="Invalid payment signature"):
        await payment_service.verify_payment(gateway_order_id, "pay_001", tampered)

    order = await store.get_order(order_id)
    assert order.orderStatus == OrderStatus.PENDING
    assert order.paymentInfo.status == PaymentStatus.PENDING
    assert order.paymentInfo.gatewayPaymentId is None
    assert (await store.find_product("P2")).stock == 5


@pytest.mark.parametrize(
    "gateway_order_id, payment_id, signature",
    [(None, "pay_001", "sig"), ("order_1", "", "sig"), ("order_1", "pay_001", None)],
)
async def test_missing_verification_data(payment_service, gateway_order_id, payment_id, signature):
    with pytest.raises(InvalidInput, match="Missing payment verification data"):
        await payment_service.verify_payment(gateway_order_id, payment_id, signature)


async def test_unknown_gateway_order(payment_service, products):
    with pytest.raises(OrderNotFound):
        await payment_service.verify_payment(
            "order_unknown", "pay_001", sign("order_unknown", "pay_001")
        )


async def test_paid_signature_cannot_confirm_unbound_order(payment_service, order_factory, store, products):
    paid = await order_factory(items=[("P1", 1, 250.0)], gateway_order_id="order_paid")
    unbound = await order_factory(items=[("P2", 5, 600.0)])
    signature = sign("order_paid", "pay_001")

    with pytest.raises(OrderNotFound):
        await payment_service.verify_payment("order_paid", "pay_001", signature, order_id=unbound.orderId)

    stored = await store.get_order(unbound.orderId)
    assert stored.orderStatus == OrderStatus.PENDING
    assert stored.paymentInfo.gatewayOrderId is None
    assert (await store.find_product("P2")).stock == 5

    response = await payment_service.verify_payment("order_paid", "pay_001", signature)

    assert response.orderId == paid.orderId
    assert (await store.get_order(paid.orderId)).orderStatus == OrderStatus.CONFIRMED


async def test_matching_order_hint_is_accepted(payment_service, order_factory, store, products):
    order = await order_factory(items=[("P1", 1, 250.0)], gateway_order_id="order_hinted")

    response = await payment_service.verify_payment(
        "order_hinted", "pay_001", sign("order_hinted", "pay_001"), order_id=order.orderId
    )

    assert response.orderId == order.orderId
    assert (await store.get_order(order.orderId)).orderStatus == OrderStatus.CONFIRMED


async def test_verification_requires_configured_secret(settings, store, gateway, order_factory, products):
    service = PaymentService(store, gateway, settings.model_copy(update={"razorpay_key_secret": ""}))
    order = await order_factory(gateway_order_id="order_x")
    forged = generate_payment_signature("", "order_x", "pay_001")

    with pytest.raises(UpstreamGatewayError, match="not configured"):
        await service.verify_payment("order_x", "pay_001", forged, order_id=order.orderId)

    assert (await store.get_order(order.orderId)).orderStatus == OrderStatus.PENDING


async def test_order_hint_for_other_gateway_order_is_rejected(payment_service, order_factory, store, products):
    order = await order_factory(gateway_order_id="order_original")

    with pytest.raises(OrderNotFound):
        await payment_service.verify_payment(
            "order_other", "pay_001", sign("order_other", "pay_001"), order_id=order.orderId
        )

    assert (await store.get_order(order.orderId)).orderStatus == OrderStatus.PENDING


async def test_paid_order_without_stock_is_flagged(payment_service, order_factory, store, products):
    order = await order_factory(items=[("P2", 9, 600.0)], gateway_order_id="order_short")

    response = await payment_service.verify_payment(
        "order_short", "pay_001", sign("order_short", "pay_001")
    )

    assert response.message == "Payment verified successfully"
    stored = await store.get_order(order.orderId)
    assert stored.orderStatus == OrderStatus.CONFIRMED
    assert stored.stockShortfall
    assert not stored.stockCommitted
    assert (await store.find_product("P2")).stock == 5


async def test_payment_fetch_failure_does_not_fail_verification(
    checkout_service, payment_service, gateway, products
):
    gateway_order_id, _ = await start_gateway_checkout(checkout_service)
    gateway.fail_fetch = True

    response = await payment_service.verify_payment(
        gateway_order_id, "pay_001", sign(gateway_order_id, "pay_001")
    )

    assert response.message == "Payment verified successfully"
    assert response.payment is None


async def test_failed_payment_can_be_retried(checkout_service, payment_service, store, products):
    gateway_order_id, order_id = await start_gateway_checkout(checkout_service)

    failed = await payment_service.record_failure(gateway_order_id, "Card declined")
    again = await payment_service.record_failure(gateway_order_id, "Card declined")

    assert failed.paymentInfo.status == PaymentStatus.FAILED
    assert failed.paymentInfo.failureReason == "Card declined"
    assert failed.orderStatus == OrderStatus.PENDING
    assert again.paymentInfo.status == PaymentStatus.FAILED

    await payment_service.verify_payment(gateway_order_id, "pay_002", sign(gateway_order_id, "pay_002"))

    order = await store.get_order(order_id)
    assert order.paymentInfo.status == PaymentStatus.COMPLETED
    assert order.paymentInfo.failureReason is None
    assert order.orderStatus == OrderStatus.CONFIRMED


async def test_failure_for_unknown_order(payment_service, products):
    with pytest.raises(OrderNotFound):
        await payment_service.record_failure("order_unknown", "Card declined")


async def test_failure_after_verification_is_rejected(checkout_service, payment_service, products):
    gateway_order_id, _ = await start_gateway_checkout(checkout_service)
    await payment_service.verify_payment(gateway_order_id, "pay_001", sign(gateway_order_id, "pay_001"))

    with pytest.raises(IllegalTransition):
        await payment_service.record_failure(gateway_order_id, "Card declined")


async def test_payment_details_are_detailed(payment_service):
    response = await payment_service.get_payment_details("pay_001")

    assert response.payment["id"] == "pay_001"
    assert response.payment["amount"] == 1200.0
    assert response.payment["vpa"] == "asha@upi"


async def test_capture_converts_to_minor_units(payment_service):
    response = await payment_service.capture_payment("pay_001", 549.99)

    assert response.message == "Payment captured successfully"
    assert response.payment["amount"] == 549.99
    assert response.payment["status"] == "captured"


async def test_partial_and_full_refund(payment_service):
    partial = await payment_service.refund_payment("pay_001", amount=100)
    full = await payment_service.refund_payment("pay_001")

    assert partial.message == "Refund created successfully"
    assert partial.payment["amount"] == 100.0
    assert full.payment["amount"] == 1200.0


def test_summarize_payment_omits_details_by_default():
    payment = {"id": "pay_1", "status": "captured", "method": "card", "amount": 5050, "currency": "INR", "bank": "HDFC"}

    assert summarize_payment(payment) == {
        "id": "pay_1",
        "status": "captured",
        "method": "card",
        "amount": 50.5,
        "currency": "INR",
    }
    assert summarize_payment(payment, detailed=True)["bank"] == "HDFC"
