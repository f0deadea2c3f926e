"""
Order validation and persistence.

Every function takes the caller's ``Identity`` explicitly; nothing here reads
the request or the token.
"""
import logging

from core.imports import current_app, SQLAlchemyError, IntegrityError, Decimal, InvalidOperation
from core.extensions import db
from core.errors import ValidationError, NotFoundError, UpstreamError
from models.orderModels import Order, OrderItem, ORDER_STATUSES, PAYMENT_METHODS
from models.productModels import Product

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
SHIPPING_FIELDS = ("name", "phone", "address", "city", "state", "zipCode")


class DuplicatePaymentError(Exception):
    """Another order already holds this gateway payment id."""


def _amount(value, field):
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValidationError(f"{field} must be a valid amount")
        return amount.quantize(CENT)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a valid amount")


def _parse_items(items):
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for index, item in enumerate(items):
        field = f"items[{index}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{field} must be an object")

        product_id = item.get("productId")
        if not isinstance(product_id, str) or not product_id.strip():
            raise ValidationError(f"{field}.productId is required")

        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(f"{field}.quantity must be a positive integer")

        price = _amount(item.get("price"), f"{field}.price")
        if price < 0:
            raise ValidationError(f"{field}.price must not be negative")

        product = db.session.get(Product, product_id.strip())
        if not product:
            raise ValidationError(f"{field}.productId refers to an unknown product")
        if price != Decimal(product.price).quantize(CENT):
            raise ValidationError(f"{field}.price does not match the current product price")

        lines.append({"product": product, "quantity": quantity, "price": price})
    return lines


def _parse_shipping(shipping, default_country):
    if not isinstance(shipping, dict):
        raise ValidationError("shippingAddress is required")

    parsed = {}
    for key in SHIPPING_FIELDS:
        value = shipping.get(key)
        value = value.strip() if isinstance(value, str) else ""
        if not value:
            raise ValidationError(f"shippingAddress.{key} is required")
        parsed[key] = value

    country = shipping.get("country")
    parsed["country"] = country.strip() if isinstance(country, str) and country.strip() else default_country
    return parsed


def parse_order_request(data):
    """
    Validate a storefront order body and return the normalised request.

    Raises ``ValidationError`` naming the first offending field. The catalog
    price is captured for each line and the total has to match the lines
    to the cent.
    """
    if not isinstance(data, dict):
        raise ValidationError("Order data is required")

    lines = _parse_items(data.get("items"))

    total = _amount(data.get("total"), "total")
    if total <= 0:
        raise ValidationError("total must be greater than 0")
    expected = sum((line["price"] * line["quantity"] for line in lines), Decimal("0")).quantize(CENT)
    if total != expected:
        raise ValidationError("total does not match the sum of item prices")

    shipping = _parse_shipping(
        data.get("shippingAddress"),
        current_app.config.get("DEFAULT_SHIPPING_COUNTRY", "India")
    )

    payment_method = data.get("paymentMethod") or "COD"
    if not isinstance(payment_method, str) or payment_method.upper() not in PAYMENT_METHODS:
        raise ValidationError(f"paymentMethod must be one of {', '.join(PAYMENT_METHODS)}")

    return {
        "lines": lines,
        "total": total,
        "shipping": shipping,
        "payment_method": payment_method.upper(),
    }


def create_order(identity, order_request, payment=None):
    """
    Persist an order and all of its items as one unit.

    ``payment`` carries ``payment_id`` and ``payment_order_id`` for a verified
    online payment; without it the order is cash on delivery. A payment id that
    is already stored raises ``DuplicatePaymentError``.
    """
    shipping = order_request["shipping"]
    order = Order(
        user_id=identity.user_id,
        total=order_request["total"],
        status="PENDING",
        shipping_name=shipping["name"],
        shipping_phone=shipping["phone"],
        shipping_address=shipping["address"],
        shipping_city=shipping["city"],
        shipping_state=shipping["state"],
        shipping_zip_code=shipping["zipCode"],
        shipping_country=shipping["country"],
    )
    if payment:
        order.payment_method = "ONLINE"
        order.payment_status = "COMPLETED"
        order.payment_id = payment["payment_id"]
        order.payment_order_id = payment["payment_order_id"]
    else:
        order.payment_method = "COD"
        order.payment_status = "PENDING"

    try:
        db.session.add(order)
        db.session.flush()

        for line in order_request["lines"]:
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=line["product"].id,
                quantity=line["quantity"],
                price=line["price"]
            ))

        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if payment and find_order_by_payment(payment["payment_id"]):
            raise DuplicatePaymentError(payment["payment_id"]) from e
        raise UpstreamError("Failed to create order") from e
    except SQLAlchemyError as e:
        db.session.rollback()
        raise UpstreamError("Failed to create order") from e

    logger.info(
        "Order %s created for user %s (%s, total %s)",
        order.id, identity.user_id, order.payment_method, order.total
    )
    return order


def find_order_by_payment(payment_id):
    return Order.query.filter_by(payment_id=payment_id).first()


def get_order(identity, order_id):
    order = Order.query.filter_by(id=order_id, user_id=identity.user_id).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def list_orders(identity, status=None, page=1, limit=10):
    query = Order.query.filter_by(user_id=identity.user_id)
    if status:
        status = status.upper()
        if status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")
        query = query.filter_by(status=status)

    return query.order_by(Order.created_at.desc(), Order.id).paginate(
        page=page, per_page=limit, error_out=False
    )


def update_order_status(order_id, status):
    if not isinstance(status, str) or status.upper() not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")

    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    previous = order.status
    order.status = status.upper()
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise UpstreamError("Failed to update order") from e

    logger.info("Order %s status %s -> %s", order.id, previous, order.status)
    return order
