from core.extensions import db
from core.imports import datetime, uuid


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    price = db.Column(db.Numeric(10, 2), nullable=False)
    image = db.Column(db.String(500), nullable=True)
    category = db.Column(db.String(100), nullable=True, index=True)
    featured = db.Column(db.Boolean, default=False)
    inventory = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def summary(self):
        return {
            "id": self.id,
            "name": self.name,
            "image": self.image,
            "price": float(self.price),
        }

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": float(self.price),
            "image": self.image,
            "category": self.category,
            "featured": self.featured,
            "inventory": self.inventory,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
