from __future__ import annotations

import unittest

from market_fixtures import MarketTestCase, buy, make_product, make_user

from campus_market.errors import Conflict, Forbidden, Frozen, InvalidTransition, NotFound, ValidationError
from campus_market.extensions import db
from campus_market.models import Dispute, Order, PlatformEvent
from campus_market.services import dispute_service, order_state_service, soft_delete_service
from campus_market.services.inventory_service import available_quantity


class DisputeLockTestCase(MarketTestCase):
    def setUp(self):
        super().setUp()
        self.seller = make_user("Seller")
        self.buyer = make_user("Buyer")
        self.stranger = make_user("Stranger")
        self.admin = make_user("Admin", role="admin")
        self.product = make_product(self.seller, price="10.00", quantity=5)
        self.order = buy(self.buyer, self.product, 2)

    def _open(self, actor=None, reason="Item was not as described"):
        return dispute_service.open_dispute(self.order.id, reason, actor or self.buyer)

    def test_open_dispute_freezes_order_without_changing_status(self):
        dispute = self._open()
        order = db.session.get(Order, self.order.id)
        self.assertEqual(order.status, "waiting_to_meet")
        self.assertEqual(order.dispute_id, dispute.id)
        self.assertEqual(dispute.messages[0].sender_role, "buyer")
        self.assertEqual(dispute.product_ids(), [self.product.id])

        with self.assertRaises(Frozen):
            order_state_service.confirm(self.order.id, "buyer", self.buyer)
        with self.assertRaises(Frozen):
            order_state_service.cancel_order(self.order.id, self.seller)
        with self.assertRaises(Frozen):
            order_state_service.set_order_status(self.order.id, "cancelled", self.admin)
        self.assertEqual(available_quantity(self.product), 3)

    def test_dispute_outranks_already_confirmed(self):
        order_state_service.confirm(self.order.id, "buyer", self.buyer)
        self._open(actor=self.seller)
        with self.assertRaises(Frozen):
            order_state_service.confirm(self.order.id, "buyer", self.buyer)
        self.assertTrue(db.session.get(Order, self.order.id).buyer_confirmed)

    def test_open_rules(self):
        with self.assertRaises(Forbidden):
            self._open(actor=self.stranger)
        with self.assertRaises(ValidationError):
            self._open(reason="   ")
        with self.assertRaises(NotFound):
            dispute_service.open_dispute(9999, "Missing order here", self.buyer)
        self._open(actor=self.seller)
        with self.assertRaises(Conflict):
            self._open()

    def test_messages(self):
        dispute = self._open()
        with self.assertRaises(ValidationError):
            dispute_service.add_dispute_message(dispute.id, "too short", self.buyer)
        with self.assertRaises(Forbidden):
            dispute_service.add_dispute_message(dispute.id, "I was not part of this", self.stranger)

        dispute = dispute_service.add_dispute_message(dispute.id, "  Seller here, it was fine\x00  ", self.seller)
        self.assertEqual(dispute.messages[-1].body, "Seller here, it was fine")
        self.assertEqual(dispute.status, "open")

        dispute = dispute_service.add_dispute_message(dispute.id, "Admin is reviewing this case", self.admin)
        self.assertEqual(dispute.status, "under_review")
        self.assertEqual(dispute.messages[-1].sender_role, "admin")

    def test_resolve_cancels_order_and_releases_stock(self):
        dispute = self._open()
        dispute = dispute_service.resolve_dispute(dispute.id, "Refund the buyer", self.admin)

        self.assertEqual(dispute.status, "resolved")
        self.assertEqual(dispute.resolution, "Refund the buyer")
        self.assertEqual(dispute.resolved_by, self.admin.id)
        self.assertEqual(dispute.messages[-1].body, "Dispute resolved: Refund the buyer")
        self.assertEqual(db.session.get(Order, self.order.id).status, "cancelled")
        self.assertEqual(available_quantity(self.product), 5)

        with self.assertRaises(InvalidTransition):
            dispute_service.resolve_dispute(dispute.id, "Again", self.admin)
        with self.assertRaises(InvalidTransition):
            dispute_service.close_dispute(dispute.id, self.admin)
        with self.assertRaises(Frozen):
            dispute_service.add_dispute_message(dispute.id, "Any update on this one?", self.buyer)
        self.assertEqual(
            PlatformEvent.query.filter_by(event_type="dispute_resolve_rejected").count(),
            1,
        )

    def test_resolve_requires_admin(self):
        dispute = self._open()
        with self.assertRaises(Forbidden):
            dispute_service.resolve_dispute(dispute.id, "I win", self.buyer)

    def test_close_leaves_order_and_unfreezes(self):
        dispute = self._open()
        dispute = dispute_service.close_dispute(dispute.id, self.admin)
        self.assertEqual(dispute.status, "closed")
        self.assertEqual(db.session.get(Order, self.order.id).status, "waiting_to_meet")
        order = order_state_service.confirm(self.order.id, "buyer", self.buyer)
        self.assertTrue(order.buyer_confirmed)

    def test_deleted_order_freezes_dispute(self):
        dispute = self._open()
        soft_delete_service.delete_order(self.order.id, self.admin)
        with self.assertRaises(Frozen):
            dispute_service.add_dispute_message(dispute.id, "Still waiting on this", self.buyer)
        with self.assertRaises(Frozen):
            dispute_service.resolve_dispute(dispute.id, "Refund", self.admin)
        with self.assertRaises(Frozen):
            dispute_service.close_dispute(dispute.id, self.admin)
        self.assertEqual(dispute_service.get_dispute(dispute.id, self.buyer).status, "open")

    def test_restore_conflicts_with_newer_dispute(self):
        first = self._open()
        dispute_service.delete_dispute(first.id, self.admin)
        self.assertIsNone(db.session.get(Order, self.order.id).dispute_id)

        second = self._open(actor=self.seller)
        with self.assertRaises(Conflict):
            dispute_service.restore_dispute(first.id, self.admin)

        dispute_service.delete_dispute(second.id, self.admin)
        restored = dispute_service.restore_dispute(first.id, self.admin)
        self.assertFalse(restored.is_deleted)
        self.assertEqual(Dispute.active_for_order(self.order.id).id, first.id)


if __name__ == "__main__":
    unittest.main()
