import json
import logging

from app.utils.logger import build_formatter


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("app.services", logging.INFO, __file__, 1, "Order %s created", ("ORD-1",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_adds_service_fields(settings):
    formatter = build_formatter(settings.model_copy(update={"log_format": "json"}))

    data = json.loads(formatter.format(make_record(orderId="order-1")))

    assert data["message"] == "Order ORD-1 created"
    assert data["level"] == "INFO"
    assert data["service"] == "Storefront Checkout API"
    assert data["environment"] == "development"
    assert data["orderId"] == "order-1"


def test_text_formatter(settings):
    formatter = build_formatter(settings)

    assert "INFO - Order ORD-1 created" in formatter.format(make_record())
