"""
Delivery notifications.

Once an order is stored, the delivery team is alerted over four independent
channels: SMS, email, push and WhatsApp. Email goes out through Flask-Mail;
the other three are simulated senders that only log their payload. Any
channel may be unavailable, and the dispatch counts as delivered when at
least one channel got through.

Dispatch never raises into the order flow: outcomes are logged and that is
all.
"""
import logging
import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, asdict
from typing import List

from core.imports import current_app, Message
from core.extensions import mail

logger = logging.getLogger(__name__)

# background pool for fire-and-forget dispatches
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="delivery-notify")

DELIVERY_AGENTS = [
    {
        "id": "agent-001",
        "name": "Rajesh Kumar",
        "phone": "+91-9876543210",
        "email": "rajesh@tribalfashion.com",
        "area": "Delhi NCR",
        "isActive": True,
    },
    {
        "id": "agent-002",
        "name": "Priya Sharma",
        "phone": "+91-9876543211",
        "email": "priya@tribalfashion.com",
        "area": "Mumbai",
        "isActive": True,
    },
    {
        "id": "agent-003",
        "name": "Amit Singh",
        "phone": "+91-9876543212",
        "email": "amit@tribalfashion.com",
        "area": "Bangalore",
        "isActive": True,
    },
]


class ChannelUnavailable(Exception):
    pass


@dataclass
class NotificationItem:
    name: str
    quantity: int
    price: float


@dataclass
class DeliveryNotification:
    order_id: str
    customer_name: str
    customer_phone: str
    delivery_address: str
    total_amount: float
    items: List[NotificationItem] = field(default_factory=list)
    created_at: str = ""
    priority: str = "NORMAL"

    def to_dict(self):
        return asdict(self)


def build_delivery_notification(order):
    address = (
        f"{order.shipping_address}, {order.shipping_city}, "
        f"{order.shipping_state} {order.shipping_zip_code}, {order.shipping_country}"
    )
    items = [
        NotificationItem(
            name=item.product.name if item.product else "Unknown Product",
            quantity=item.quantity,
            price=float(item.price),
        )
        for item in order.items
    ]
    return DeliveryNotification(
        order_id=order.id,
        customer_name=order.shipping_name,
        customer_phone=order.shipping_phone,
        delivery_address=address,
        total_amount=float(order.total),
        items=items,
        created_at=order.created_at.isoformat() if order.created_at else "",
        priority="NORMAL",
    )


def _check_outage(channel):
    rate = current_app.config.get("NOTIFICATION_FAILURE_RATES", {}).get(channel, 0.0)
    if random.random() < rate:
        raise ChannelUnavailable(f"{channel} service unavailable")


def _item_lines(notification, bullet):
    return "\n".join(
        f"{bullet} {item.name} x{item.quantity} - ₹{item.price}" for item in notification.items
    )


def send_sms(notification):
    _check_outage("sms")
    message = (
        f"New delivery order #{notification.order_id}\n"
        f"Customer: {notification.customer_name}\n"
        f"Phone: {notification.customer_phone}\n"
        f"Address: {notification.delivery_address}\n"
        f"Amount: ₹{notification.total_amount}\n"
        f"Priority: {notification.priority}"
    )
    recipients = [agent["phone"] for agent in get_delivery_agent_contacts() if agent["isActive"]]
    logger.info("SMS notification to %s:\n%s", ", ".join(recipients), message)


def send_otp_sms(phone_number, code):
    """Send a login code over the SMS channel; raises ChannelUnavailable on outage."""
    _check_outage("sms")
    logger.info("SMS to %s: Your Tribal Fashion verification code is %s", phone_number, code)


def send_email(notification):
    _check_outage("email")
    items_html = "".join(
        f"<li>{item.name} x{item.quantity} - ₹{item.price}</li>" for item in notification.items
    )
    msg = Message(
        subject=f"New Delivery Order #{notification.order_id}",
        recipients=[current_app.config["DELIVERY_TEAM_EMAIL"]],
    )
    msg.html = (
        "<h2>New Delivery Order</h2>"
        f"<p><strong>Order ID:</strong> {notification.order_id}</p>"
        f"<p><strong>Customer:</strong> {notification.customer_name}</p>"
        f"<p><strong>Phone:</strong> {notification.customer_phone}</p>"
        f"<p><strong>Address:</strong> {notification.delivery_address}</p>"
        f"<p><strong>Total Amount:</strong> ₹{notification.total_amount}</p>"
        f"<p><strong>Priority:</strong> {notification.priority}</p>"
        f"<p><strong>Items:</strong></p><ul>{items_html}</ul>"
        f"<p><strong>Order Date:</strong> {notification.created_at}</p>"
    )
    try:
        mail.send(msg)
    except Exception as e:
        raise ChannelUnavailable(f"email service unavailable: {e}") from e
    logger.info("Email notification sent to %s", current_app.config["DELIVERY_TEAM_EMAIL"])


def send_push(notification):
    _check_outage("push")
    push_data = {
        "to": "delivery_agents_topic",
        "notification": {
            "title": f"New Delivery Order #{notification.order_id}",
            "body": f"{notification.customer_name} - {notification.delivery_address}",
        },
        "data": {
            "orderId": notification.order_id,
            "customerPhone": notification.customer_phone,
            "totalAmount": str(notification.total_amount),
            "priority": notification.priority,
        },
    }
    logger.info("Push notification: %s", push_data)


def send_whatsapp(notification):
    _check_outage("whatsapp")
    message = (
        "*New Delivery Order*\n\n"
        f"*Order ID:* {notification.order_id}\n"
        f"*Customer:* {notification.customer_name}\n"
        f"*Phone:* {notification.customer_phone}\n"
        f"*Address:* {notification.delivery_address}\n"
        f"*Amount:* ₹{notification.total_amount}\n"
        f"*Priority:* {notification.priority}\n\n"
        f"*Items:*\n{_item_lines(notification, '•')}\n\n"
        "Please confirm receipt of this order."
    )
    logger.info("WhatsApp notification:\n%s", message)


CHANNELS = {
    "sms": send_sms,
    "email": send_email,
    "push": send_push,
    "whatsapp": send_whatsapp,
}


def _run_channel(app, name, sender, notification):
    with app.app_context():
        sender(notification)
    return name


def send_delivery_notification(notification, app=None):
    """
    Send ``notification`` on every channel at once.

    All channels are awaited; a failing channel does not stop the others.
    Returns True when at least one channel succeeded.
    """
    app = app or current_app._get_current_object()
    successes = 0

    with ThreadPoolExecutor(max_workers=len(CHANNELS)) as pool:
        futures = {
            pool.submit(_run_channel, app, name, sender, notification): name
            for name, sender in CHANNELS.items()
        }
        for future, name in futures.items():
            try:
                future.result()
                successes += 1
            except Exception as e:
                logger.warning("Delivery notification via %s failed for order %s: %s", name, notification.order_id, e)

    logger.info(
        "Delivery notifications for order %s: %d/%d successful",
        notification.order_id, successes, len(CHANNELS)
    )
    return successes > 0


def _dispatch(app, notification):
    try:
        delivered = send_delivery_notification(notification, app)
    except Exception:
        logger.exception("Delivery notification for order %s crashed", notification.order_id)
        return False
    if not delivered:
        logger.warning("No channel delivered the notification for order %s", notification.order_id)
    return delivered


def dispatch_order_notification(order):
    """
    Fire-and-forget alert for a stored order.

    The notification is built here, while the order is still attached to the
    request session, and sent on the background pool. With
    ``NOTIFICATIONS_EAGER`` the send happens inline. Returns the future, or
    the boolean outcome when eager. An order that cannot be turned into a
    notification is logged and reported as False.
    """
    app = current_app._get_current_object()
    try:
        notification = build_delivery_notification(order)
    except Exception:
        logger.exception("Could not build a delivery notification")
        return False
    logger.info("Dispatching delivery notification for order %s", notification.order_id)

    if app.config.get("NOTIFICATIONS_EAGER"):
        return _dispatch(app, notification)
    return _executor.submit(_dispatch, app, notification)


def get_delivery_agent_contacts():
    return [dict(agent) for agent in DELIVERY_AGENTS]
