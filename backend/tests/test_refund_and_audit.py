from __future__ import annotations

import json
import unittest

from market_fixtures import MarketTestCase, buy, make_product, make_user

from campus_market.errors import Forbidden, Frozen, InvalidState, ValidationError
from campus_market.extensions import db
from campus_market.models import Order, OrderItem, Payment
from campus_market.services import dispute_service, payment_service
from campus_market.services.inventory_service import available_quantity
from campus_market.services.reconciliation_service import audit_inventory


class RefundTestCase(MarketTestCase):
    def setUp(self):
        super().setUp()
        self.admin = make_user("Admin", role="admin")
        self.seller = make_user("Seller")
        self.buyer = make_user("Buyer")
        self.product = make_product(self.seller, price="10.00", quantity=5)
        self.order = buy(self.buyer, self.product, 2)
        self.payment = Payment.query.filter_by(order_id=self.order.id).one()

    def test_refund_cancels_order(self):
        payment = payment_service.refund_payment(self.payment.id, self.admin, reason="Seller no-show")
        self.assertEqual(payment.status, "refunded")
        self.assertEqual(payment.to_dict()["refund_amount"], "20.00")
        self.assertEqual(payment.refund_reason, "Seller no-show")
        self.assertEqual(db.session.get(Order, self.order.id).status, "cancelled")
        self.assertEqual(available_quantity(self.product), 5)

        with self.assertRaises(InvalidState):
            payment_service.refund_payment(self.payment.id, self.admin)

    def test_refund_guards(self):
        with self.assertRaises(Forbidden):
            payment_service.refund_payment(self.payment.id, self.buyer)
        with self.assertRaises(ValidationError):
            payment_service.refund_payment(self.payment.id, self.admin, amount="25.00")

        dispute_service.open_dispute(self.order.id, "Never showed up", self.buyer)
        with self.assertRaises(Frozen):
            payment_service.refund_payment(self.payment.id, self.admin)
        self.assertEqual(db.session.get(Payment, self.payment.id).status, "completed")


class InventoryAuditTestCase(MarketTestCase):
    def setUp(self):
        super().setUp()
        self.seller = make_user("Seller")
        self.buyer = make_user("Buyer")
        self.product = make_product(self.seller, quantity=2)
        self.order = buy(self.buyer, self.product, 2)

    def test_clean_inventory(self):
        summary = audit_inventory()
        self.assertEqual(summary["product_count"], 1)
        self.assertEqual(summary["oversold_count"], 0)

    def test_reports_reservations_above_stock(self):
        item = OrderItem.query.filter_by(order_id=self.order.id).one()
        item.quantity = 3
        db.session.commit()

        summary = audit_inventory()
        self.assertEqual(summary["oversold_count"], 1)
        self.assertEqual(summary["oversold_items"][0]["excess"], 1)

    def test_cli_command(self):
        runner = self.app.test_cli_runner()
        result = runner.invoke(args=["inventory-audit"])
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(json.loads(result.output)["oversold_count"], 0)


if __name__ == "__main__":
    unittest.main()
