from __future__ import annotations

import unittest

from market_fixtures import MarketTestCase, buy, make_product, make_user

from campus_market.errors import Conflict, Forbidden, InsufficientStock, InvalidState
from campus_market.extensions import db
from campus_market.models import Order, Payment, PlatformEvent, Product, User
from campus_market.services import order_state_service, payment_service, soft_delete_service
from campus_market.services.inventory_service import available_quantity


class SoftDeleteCascadeTestCase(MarketTestCase):
    def setUp(self):
        super().setUp()
        self.admin = make_user("Admin", role="admin")
        self.seller = make_user("Seller")
        self.buyer = make_user("Buyer", email="buyer@campus.test")
        self.product = make_product(self.seller, price="10.00", quantity=5)
        self.own_product = make_product(self.buyer, name="Textbook", price="30.00", quantity=1)
        self.order = buy(self.buyer, self.product, 1)

    def test_delete_user_stamps_only_their_rows(self):
        other_buyer = make_user("Other")
        other_order = buy(other_buyer, self.product, 1)

        soft_delete_service.delete_user(self.buyer.id, self.admin)

        user = db.session.get(User, self.buyer.id)
        product = db.session.get(Product, self.own_product.id)
        order = db.session.get(Order, self.order.id)
        self.assertTrue(user.is_deleted)
        self.assertTrue(product.is_deleted)
        self.assertTrue(order.is_deleted)
        self.assertEqual(user.deletion_batch, product.deletion_batch)
        self.assertEqual(order.deleted_by, self.admin.id)
        self.assertFalse(db.session.get(Order, other_order.id).is_deleted)
        self.assertFalse(db.session.get(Product, self.product.id).is_deleted)

    def test_restore_user_reverses_exactly_the_cascade(self):
        separate = make_product(self.buyer, name="Lamp", price="8.00", quantity=1)
        soft_delete_service.delete_product(separate.id, self.buyer)

        soft_delete_service.delete_user(self.buyer.id, self.admin)
        soft_delete_service.restore_user(self.buyer.id, self.admin)

        self.assertFalse(db.session.get(User, self.buyer.id).is_deleted)
        self.assertFalse(db.session.get(Product, self.own_product.id).is_deleted)
        self.assertFalse(db.session.get(Order, self.order.id).is_deleted)
        self.assertTrue(db.session.get(Product, separate.id).is_deleted)

    def test_restore_user_blocked_by_email_collision(self):
        soft_delete_service.delete_user(self.buyer.id, self.admin)
        make_user("Buyer Again", email="buyer@campus.test")

        with self.assertRaises(Conflict):
            soft_delete_service.restore_user(self.buyer.id, self.admin)
        self.assertTrue(db.session.get(User, self.buyer.id).is_deleted)
        self.assertEqual(PlatformEvent.query.filter_by(event_type="user_restored_rejected").count(), 1)

    def test_delete_user_twice_is_invalid(self):
        soft_delete_service.delete_user(self.buyer.id, self.admin)
        with self.assertRaises(InvalidState):
            soft_delete_service.delete_user(self.buyer.id, self.admin)
        with self.assertRaises(Forbidden):
            soft_delete_service.restore_user(self.buyer.id, self.seller)

    def test_product_with_active_order_cannot_be_deleted(self):
        with self.assertRaises(Conflict):
            soft_delete_service.delete_product(self.product.id, self.seller)
        with self.assertRaises(Forbidden):
            soft_delete_service.delete_product(self.product.id, self.buyer)

        order_state_service.cancel_order(self.order.id, self.buyer)
        product = soft_delete_service.delete_product(self.product.id, self.admin)
        self.assertTrue(product.is_deleted)
        event = PlatformEvent.query.filter_by(event_type="product_deleted_rejected").first()
        self.assertIsNotNone(event)
        self.assertEqual(event.actor_user_id, self.seller.id)

    def test_restore_product_requires_live_seller(self):
        soft_delete_service.delete_user(self.buyer.id, self.admin)
        with self.assertRaises(InvalidState):
            soft_delete_service.restore_product(self.own_product.id, self.admin)
        with self.assertRaises(InvalidState):
            soft_delete_service.restore_product(self.product.id, self.admin)

    def test_restore_order_rechecks_stock(self):
        soft_delete_service.delete_order(self.order.id, self.admin)
        other = make_user("Other")
        buy(other, self.product, 5)

        with self.assertRaises(InsufficientStock):
            soft_delete_service.restore_order(self.order.id, self.admin)
        self.assertTrue(db.session.get(Order, self.order.id).is_deleted)

    def test_restore_user_rechecks_stock_for_cascaded_orders(self):
        last_unit = make_product(self.seller, name="Bike Lock", price="15.00", quantity=1)
        held = buy(self.buyer, last_unit, 1)
        soft_delete_service.delete_user(self.buyer.id, self.admin)
        other = make_user("Other")
        buy(other, last_unit, 1)

        with self.assertRaises(InsufficientStock):
            soft_delete_service.restore_user(self.buyer.id, self.admin)

        self.assertTrue(db.session.get(User, self.buyer.id).is_deleted)
        self.assertTrue(db.session.get(Order, held.id).is_deleted)
        self.assertTrue(db.session.get(Product, self.own_product.id).is_deleted)
        self.assertEqual(available_quantity(db.session.get(Product, last_unit.id)), 0)
        self.assertEqual(PlatformEvent.query.filter_by(event_type="user_restored_rejected").count(), 1)

    def test_restore_user_skips_stock_check_for_cancelled_orders(self):
        last_unit = make_product(self.seller, name="Bike Lock", price="15.00", quantity=1)
        held = buy(self.buyer, last_unit, 1)
        order_state_service.cancel_order(held.id, self.buyer)
        soft_delete_service.delete_user(self.buyer.id, self.admin)
        buy(make_user("Other"), last_unit, 1)

        soft_delete_service.restore_user(self.buyer.id, self.admin)
        self.assertFalse(db.session.get(Order, held.id).is_deleted)
        self.assertEqual(available_quantity(db.session.get(Product, last_unit.id)), 0)

    def test_restore_exchanged_order_rechecks_stock(self):
        order_state_service.set_order_status(self.order.id, "met_and_exchanged", self.admin)
        soft_delete_service.delete_order(self.order.id, self.admin)
        buy(make_user("Other"), self.product, 5)

        with self.assertRaises(InsufficientStock):
            soft_delete_service.restore_order(self.order.id, self.admin)
        self.assertTrue(db.session.get(Order, self.order.id).is_deleted)

    def test_restore_order_requires_live_buyer(self):
        soft_delete_service.delete_user(self.buyer.id, self.admin)
        with self.assertRaises(InvalidState):
            soft_delete_service.restore_order(self.order.id, self.admin)

    def test_payment_delete_and_restore(self):
        payment_id = Payment.query.filter_by(order_id=self.order.id).one().id
        with self.assertRaises(Forbidden):
            soft_delete_service.delete_payment(payment_id, self.buyer)

        payment = soft_delete_service.delete_payment(payment_id, self.admin)
        self.assertTrue(payment.is_deleted)
        self.assertEqual(payment.deleted_by, self.admin.id)
        self.assertEqual(payment_service.payments_for_order(self.order.id), [])
        with self.assertRaises(InvalidState):
            soft_delete_service.delete_payment(payment_id, self.admin)

        payment = soft_delete_service.restore_payment(payment_id, self.admin)
        self.assertFalse(payment.is_deleted)
        self.assertIsNone(payment.deleted_at)
        self.assertEqual(len(payment_service.payments_for_order(self.order.id)), 1)
        with self.assertRaises(InvalidState):
            soft_delete_service.restore_payment(payment_id, self.admin)

    def test_restore_payment_requires_live_order_and_user(self):
        payment_id = Payment.query.filter_by(order_id=self.order.id).one().id
        soft_delete_service.delete_payment(payment_id, self.admin)
        soft_delete_service.delete_order(self.order.id, self.admin)
        with self.assertRaises(InvalidState):
            soft_delete_service.restore_payment(payment_id, self.admin)

        soft_delete_service.restore_order(self.order.id, self.admin)
        soft_delete_service.delete_user(self.buyer.id, self.admin)
        with self.assertRaises(InvalidState):
            soft_delete_service.restore_payment(payment_id, self.admin)
        self.assertTrue(db.session.get(Payment, payment_id).is_deleted)
        self.assertEqual(PlatformEvent.query.filter_by(event_type="payment_restored_rejected").count(), 2)

    def test_ban_blocks_selling_until_unbanned(self):
        soft_delete_service.ban_user(self.seller.id, self.admin, reason="spam")
        user = db.session.get(User, self.seller.id)
        self.assertTrue(user.is_banned)
        self.assertEqual(user.ban_reason, "spam")
        with self.assertRaises(InvalidState):
            soft_delete_service.ban_user(self.seller.id, self.admin)
        soft_delete_service.unban_user(self.seller.id, self.admin)
        self.assertFalse(db.session.get(User, self.seller.id).is_banned)


if __name__ == "__main__":
    unittest.main()
