from __future__ import annotations

import unittest
from decimal import Decimal

from market_fixtures import MarketTestCase, make_product, make_user

from campus_market.errors import InsufficientStock, NotFound, ProductUnavailable, SellerInactive, ValidationError
from campus_market.extensions import db
from campus_market.models import Product, User
from campus_market.services import cart_service


class CartFlowTestCase(MarketTestCase):
    def setUp(self):
        super().setUp()
        self.seller = make_user("Seller")
        self.buyer = make_user("Buyer")
        self.product = make_product(self.seller, price="10.00", quantity=3)

    def test_add_merges_quantity_and_totals(self):
        cart_service.add_item(self.buyer, self.product.id, 1)
        cart = cart_service.add_item(self.buyer, self.product.id, 2)
        self.assertEqual(len(cart.items), 1)
        self.assertEqual(cart.items[0].quantity, 3)
        self.assertEqual(cart.to_dict()["total_amount"], "30.00")

    def test_add_beyond_available_is_rejected(self):
        cart_service.add_item(self.buyer, self.product.id, 2)
        with self.assertRaises(InsufficientStock) as ctx:
            cart_service.add_item(self.buyer, self.product.id, 2)
        self.assertEqual(ctx.exception.requested, 4)
        self.assertEqual(ctx.exception.available, 3)
        self.assertEqual(cart_service.get_cart(self.buyer).items[0].quantity, 2)

    def test_cannot_buy_own_product(self):
        with self.assertRaises(ValidationError):
            cart_service.add_item(self.seller, self.product.id, 1)

    def test_banned_seller_blocks_add(self):
        seller = db.session.get(User, self.seller.id)
        seller.is_banned = True
        db.session.commit()
        with self.assertRaises(SellerInactive):
            cart_service.add_item(self.buyer, self.product.id, 1)

    def test_sold_product_blocks_add(self):
        product = db.session.get(Product, self.product.id)
        product.status = "sold"
        db.session.commit()
        with self.assertRaises(ProductUnavailable):
            cart_service.add_item(self.buyer, self.product.id, 1)

    def test_zero_quantity_is_invalid(self):
        with self.assertRaises(ValidationError):
            cart_service.add_item(self.buyer, self.product.id, 0)

    def test_update_refreshes_price_snapshot(self):
        cart_service.add_item(self.buyer, self.product.id, 1)
        product = db.session.get(Product, self.product.id)
        product.price = Decimal("12.50")
        db.session.commit()

        cart = cart_service.update_item(self.buyer, self.product.id, 2)
        self.assertEqual(cart.items[0].price, Decimal("12.50"))
        self.assertEqual(cart.to_dict()["total_amount"], "25.00")

    def test_remove_and_clear(self):
        other = make_product(self.seller, name="Chair", price="5.00", quantity=1)
        cart_service.add_item(self.buyer, self.product.id, 1)
        cart_service.add_item(self.buyer, other.id, 1)

        cart = cart_service.remove_item(self.buyer, self.product.id)
        self.assertEqual([i.product_id for i in cart.items], [other.id])
        self.assertEqual(cart.to_dict()["total_amount"], "5.00")

        with self.assertRaises(NotFound):
            cart_service.remove_item(self.buyer, self.product.id)

        cart = cart_service.clear_cart(self.buyer)
        self.assertEqual(cart.items, [])
        self.assertEqual(cart.to_dict()["total_amount"], "0.00")


if __name__ == "__main__":
    unittest.main()
