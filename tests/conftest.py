from decimal import Decimal

import pytest

from main import create_app
from core.config import TestConfig
from core.extensions import db, bcrypt
from core.auth import issue_token
from models.userModel import User
from models.productModels import Product


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email, role="USER", phone=None, password="password123"):
    user = User(
        email=email,
        password=bcrypt.generate_password_hash(password).decode("utf-8"),
        first_name="Test",
        last_name="User",
        phone=phone,
        role=role
    )
    db.session.add(user)
    db.session.commit()
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture
def user(app):
    return make_user("buyer@example.com")


@pytest.fixture
def other_user(app):
    return make_user("other@example.com")


@pytest.fixture
def admin(app):
    return make_user("admin@example.com", role="ADMIN")


@pytest.fixture
def products(app):
    kurta = Product(id="p1", name="Sohrai Print Kurta", price=Decimal("2500.00"), category="kurtas", featured=True, inventory=10)
    stole = Product(id="p2", name="Dokra Brass Stole Pin", price=Decimal("800.00"), category="accessories", inventory=25)
    db.session.add_all([kurta, stole])
    db.session.commit()
    return {"p1": kurta, "p2": stole}


@pytest.fixture
def order_payload(products):
    def build(**overrides):
        payload = {
            "items": [{"productId": "p1", "quantity": 2, "price": 2500.00}],
            "total": 5000.00,
            "shippingAddress": {
                "name": "Anita Oraon",
                "phone": "9876543210",
                "address": "12 Main Road, Kanke",
                "city": "Ranchi",
                "state": "Jharkhand",
                "zipCode": "834006",
            },
        }
        payload.update(overrides)
        return payload
    return build
