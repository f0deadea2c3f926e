from core.extensions import db
from core.imports import datetime, uuid

ORDER_STATUSES = ("PENDING", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED")
PAYMENT_METHODS = ("COD", "ONLINE")
PAYMENT_STATUSES = ("PENDING", "COMPLETED")


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    total = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), default="PENDING", nullable=False)

    shipping_name = db.Column(db.String(200), nullable=False)
    shipping_phone = db.Column(db.String(20), nullable=False)
    shipping_address = db.Column(db.String(500), nullable=False)
    shipping_city = db.Column(db.String(100), nullable=False)
    shipping_state = db.Column(db.String(100), nullable=False)
    shipping_zip_code = db.Column(db.String(20), nullable=False)
    shipping_country = db.Column(db.String(100), nullable=False)

    payment_method = db.Column(db.String(10), default="COD", nullable=False)
    payment_status = db.Column(db.String(20), default="PENDING", nullable=False)
    payment_id = db.Column(db.String(100), unique=True, nullable=True)  # gateway payment id, ONLINE only
    payment_order_id = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship("OrderItem", backref="order", cascade="all, delete-orphan", order_by="OrderItem.id")

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "total": float(self.total),
            "status": self.status,
            "paymentMethod": self.payment_method,
            "paymentStatus": self.payment_status,
            "paymentId": self.payment_id,
            "paymentOrderId": self.payment_order_id,
            "shippingName": self.shipping_name,
            "shippingPhone": self.shipping_phone,
            "shippingAddress": self.shipping_address,
            "shippingCity": self.shipping_city,
            "shippingState": self.shipping_state,
            "shippingZipCode": self.shipping_zip_code,
            "shippingCountry": self.shipping_country,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "items": [item.to_dict() for item in self.items],
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)  # unit price at order time

    product = db.relationship("Product")

    def to_dict(self):
        return {
            "id": self.id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "price": float(self.price),
            "product": self.product.summary() if self.product else None,
        }
