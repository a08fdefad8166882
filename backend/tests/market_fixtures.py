from __future__ import annotations

import os
import time
import unittest
from decimal import Decimal

from campus_market import create_app
from campus_market.extensions import db
from campus_market.models import Product, User
from campus_market.services import cart_service, checkout_service
from campus_market.utils.jwt_utils import create_token

ADDRESS = {
    "street": "12 College Ave",
    "city": "Ithaca",
    "state": "NY",
    "zip_code": "14850",
    "country": "US",
}

CARD = {
    "card_number": "4242424242424242",
    "card_holder_name": "Test Buyer",
    "expiry_date": "12/30",
    "cvv": "123",
}


def make_user(name: str, *, role: str = "user", email: str | None = None, campus: str = "North") -> User:
    suffix = time.time_ns()
    row = User(
        name=name,
        email=(email or f"{name.lower().replace(' ', '-')}-{suffix}@campus.test").lower(),
        role=role,
        campus=campus,
    )
    row.set_password("password123")
    db.session.add(row)
    db.session.commit()
    return row


def make_product(seller: User, *, name: str = "Desk Lamp", price: str = "10.00", quantity: int = 5) -> Product:
    row = Product(
        seller_id=int(seller.id),
        name=name,
        description=f"{name} in good shape",
        price=Decimal(price),
        total_quantity=quantity,
        status="available",
        campus=seller.campus,
    )
    db.session.add(row)
    db.session.commit()
    return row


def buy(buyer: User, product: Product, quantity: int = 1):
    cart_service.add_item(buyer, product.id, quantity)
    return checkout_service.create_order(buyer, dict(ADDRESS), dict(ADDRESS), dict(CARD))


def auth_headers(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_token(int(user_id))}"}


class MarketTestCase(unittest.TestCase):
    """Fresh in-memory schema per test, app context pushed for the test body."""

    @classmethod
    def setUpClass(cls):
        cls._prev_db_uri = os.getenv("SQLALCHEMY_DATABASE_URI")
        cls._prev_db_url = os.getenv("DATABASE_URL")
        db_uri = "sqlite:///:memory:"
        os.environ["SQLALCHEMY_DATABASE_URI"] = db_uri
        os.environ["DATABASE_URL"] = db_uri
        cls.app = create_app()
        cls.app.config.update(TESTING=True)
        cls.client = cls.app.test_client()

    @classmethod
    def tearDownClass(cls):
        if cls._prev_db_uri is None:
            os.environ.pop("SQLALCHEMY_DATABASE_URI", None)
        else:
            os.environ["SQLALCHEMY_DATABASE_URI"] = cls._prev_db_uri
        if cls._prev_db_url is None:
            os.environ.pop("DATABASE_URL", None)
        else:
            os.environ["DATABASE_URL"] = cls._prev_db_url

    def setUp(self):
        self.ctx = self.app.app_context()
        self.ctx.push()
        db.drop_all()
        db.create_all()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()
