from datetime import datetime
from decimal import Decimal

import pytest

from core.extensions import db, mail
from models.orderModels import Order, OrderItem
from services import notifications
from tests.conftest import auth_headers

ALL_DOWN = {"sms": 1.0, "email": 1.0, "push": 1.0, "whatsapp": 1.0}


@pytest.fixture
def stored_order(user, products):
    order = Order(
        user_id=user.id,
        total=Decimal("5800.00"),
        shipping_name="Anita Oraon",
        shipping_phone="9876543210",
        shipping_address="12 Main Road",
        shipping_city="Ranchi",
        shipping_state="Jharkhand",
        shipping_zip_code="834006",
        shipping_country="India",
        created_at=datetime(2026, 10, 1, 9, 30),
    )
    db.session.add(order)
    db.session.flush()
    db.session.add_all([
        OrderItem(order_id=order.id, product_id="p1", quantity=2, price=Decimal("2500.00")),
        OrderItem(order_id=order.id, product_id="p2", quantity=1, price=Decimal("800.00")),
    ])
    db.session.commit()
    return order


def test_build_delivery_notification(stored_order):
    notification = notifications.build_delivery_notification(stored_order)

    assert notification.order_id == stored_order.id
    assert notification.customer_name == "Anita Oraon"
    assert notification.customer_phone == "9876543210"
    assert notification.delivery_address == "12 Main Road, Ranchi, Jharkhand 834006, India"
    assert notification.total_amount == 5800.00
    assert notification.priority == "NORMAL"
    assert notification.created_at == "2026-10-01T09:30:00"
    assert [(i.name, i.quantity, i.price) for i in notification.items] == [
        ("Sohrai Print Kurta", 2, 2500.00),
        ("Dokra Brass Stole Pin", 1, 800.00),
    ]


def test_all_channels_succeed(app, stored_order):
    notification = notifications.build_delivery_notification(stored_order)

    with mail.record_messages() as outbox:
        assert notifications.send_delivery_notification(notification) is True

    assert len(outbox) == 1
    assert outbox[0].subject == f"New Delivery Order #{stored_order.id}"
    assert outbox[0].recipients == ["delivery@tribalfashion.com"]


def test_partial_failure_still_counts_as_delivered(app, stored_order, monkeypatch):
    def down(notification):
        raise notifications.ChannelUnavailable("down")

    for channel in ("sms", "push", "whatsapp"):
        monkeypatch.setitem(notifications.CHANNELS, channel, down)

    notification = notifications.build_delivery_notification(stored_order)
    assert notifications.send_delivery_notification(notification) is True


def test_every_channel_is_attempted_when_some_fail(app, stored_order, monkeypatch):
    attempted = []

    def record(name, fail):
        def sender(notification):
            attempted.append(name)
            if fail:
                raise notifications.ChannelUnavailable(name)
        return sender

    monkeypatch.setitem(notifications.CHANNELS, "sms", record("sms", True))
    monkeypatch.setitem(notifications.CHANNELS, "email", record("email", True))
    monkeypatch.setitem(notifications.CHANNELS, "push", record("push", True))
    monkeypatch.setitem(notifications.CHANNELS, "whatsapp", record("whatsapp", False))

    notification = notifications.build_delivery_notification(stored_order)
    assert notifications.send_delivery_notification(notification) is True
    assert sorted(attempted) == ["email", "push", "sms", "whatsapp"]


def test_total_failure_returns_false(app, stored_order):
    app.config["NOTIFICATION_FAILURE_RATES"] = ALL_DOWN
    notification = notifications.build_delivery_notification(stored_order)

    with mail.record_messages() as outbox:
        assert notifications.send_delivery_notification(notification) is False
    assert outbox == []


def test_notification_failure_does_not_affect_order(client, app, user, order_payload):
    app.config["NOTIFICATION_FAILURE_RATES"] = ALL_DOWN

    response = client.post("/api/orders", json=order_payload(), headers=auth_headers(user))

    assert response.status_code == 201
    order = db.session.get(Order, response.get_json()["data"]["id"])
    assert order is not None
    assert order.status == "PENDING"
    assert order.payment_status == "PENDING"


def test_dispatch_crash_is_swallowed(app, stored_order, monkeypatch):
    def explode(notification, app=None):
        raise RuntimeError("pool exhausted")

    monkeypatch.setattr(notifications, "send_delivery_notification", explode)

    assert notifications.dispatch_order_notification(stored_order) is False


def test_unbuildable_notification_is_swallowed(app, stored_order, monkeypatch):
    def broken(order):
        raise RuntimeError("items could not be loaded")

    monkeypatch.setattr(notifications, "build_delivery_notification", broken)

    assert notifications.dispatch_order_notification(stored_order) is False


def test_unbuildable_notification_does_not_fail_order(client, user, order_payload, monkeypatch):
    def broken(order):
        raise RuntimeError("items could not be loaded")

    monkeypatch.setattr(notifications, "build_delivery_notification", broken)

    response = client.post("/api/orders", json=order_payload(), headers=auth_headers(user))

    assert response.status_code == 201
    assert db.session.get(Order, response.get_json()["data"]["id"]) is not None


def test_dispatch_runs_in_background_when_not_eager(app, stored_order):
    app.config["NOTIFICATIONS_EAGER"] = False

    future = notifications.dispatch_order_notification(stored_order)

    assert future.result(timeout=10) is True


def test_order_placement_dispatches_notification(client, user, order_payload, monkeypatch):
    dispatched = []
    monkeypatch.setattr("routes.orders.dispatch_order_notification", dispatched.append)

    response = client.post("/api/orders", json=order_payload(), headers=auth_headers(user))

    assert response.status_code == 201
    assert [order.id for order in dispatched] == [response.get_json()["data"]["id"]]


def test_delivery_agent_contacts():
    agents = notifications.get_delivery_agent_contacts()
    assert len(agents) == 3
    assert all(agent["isActive"] for agent in agents)

    agents[0]["name"] = "changed"
    assert notifications.get_delivery_agent_contacts()[0]["name"] == "Rajesh Kumar"
