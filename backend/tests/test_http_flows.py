from __future__ import annotations

import unittest

from market_fixtures import ADDRESS, CARD, MarketTestCase, auth_headers, make_user

from campus_market.extensions import db
from campus_market.models import Order, PlatformEvent


class HttpFlowsTestCase(MarketTestCase):
    def setUp(self):
        super().setUp()
        self.seller_id = int(make_user("Seller").id)
        self.buyer_id = int(make_user("Buyer").id)
        self.admin_id = int(make_user("Admin", role="admin").id)

    def _create_listing(self, quantity=5) -> int:
        res = self.client.post(
            "/api/products",
            json={"name": "Mini Fridge", "price": "10.00", "quantity": quantity, "condition": "good"},
            headers=auth_headers(self.seller_id),
        )
        self.assertEqual(res.status_code, 201)
        product = res.get_json()["product"]
        self.assertEqual(product["available_quantity"], quantity)
        return int(product["id"])

    def _checkout(self, product_id: int, quantity: int) -> dict:
        res = self.client.post(
            "/api/cart/items",
            json={"product_id": product_id, "quantity": quantity},
            headers=auth_headers(self.buyer_id),
        )
        self.assertEqual(res.status_code, 200)
        res = self.client.post(
            "/api/orders",
            json={"shipping_address": ADDRESS, "billing_address": ADDRESS, "payment_details": CARD},
            headers=auth_headers(self.buyer_id),
        )
        self.assertEqual(res.status_code, 201)
        return res.get_json()["order"]

    def test_meetup_flow_over_http(self):
        product_id = self._create_listing()
        order = self._checkout(product_id, 2)
        self.assertEqual(order["total_amount"], "20.00")
        self.assertEqual(order["seller"]["id"], self.seller_id)
        self.assertEqual(order["payments"][0]["card"]["last4"], "4242")

        res = self.client.get(f"/api/products/{product_id}")
        self.assertEqual(res.get_json()["product"]["available_quantity"], 3)

        res = self.client.put(f"/api/orders/{order['id']}/buyer-confirm", headers=auth_headers(self.buyer_id))
        self.assertEqual(res.get_json()["order"]["status"], "waiting_to_meet")
        res = self.client.put(f"/api/orders/{order['id']}/buyer-confirm", headers=auth_headers(self.buyer_id))
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.get_json()["error"], "ALREADY_CONFIRMED")
        res = self.client.put(f"/api/orders/{order['id']}/seller-confirm", headers=auth_headers(self.seller_id))
        self.assertEqual(res.get_json()["order"]["status"], "met_and_exchanged")
        res = self.client.put(f"/api/orders/{order['id']}/cancel", headers=auth_headers(self.buyer_id))
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.get_json()["error"], "INVALID_TRANSITION")

        res = self.client.get("/api/orders/seller", headers=auth_headers(self.seller_id))
        items = res.get_json()["items"]
        self.assertEqual([o["id"] for o in items], [order["id"]])
        self.assertFalse(items[0]["buyer"]["is_banned"])

        res = self.client.get(f"/api/products/{product_id}/stats", headers=auth_headers(self.seller_id))
        self.assertEqual(res.get_json()["stats"]["sold"], 2)

    def test_quantity_guard_over_http(self):
        product_id = self._create_listing(quantity=3)
        self._checkout(product_id, 2)
        res = self.client.put(
            f"/api/products/{product_id}",
            json={"quantity": 1},
            headers=auth_headers(self.seller_id),
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.get_json()["details"]["minimum"], 2)

        res = self.client.delete(f"/api/products/{product_id}", headers=auth_headers(self.seller_id))
        self.assertEqual(res.status_code, 409)

    def test_admin_dispute_resolution_over_http(self):
        product_id = self._create_listing()
        order = self._checkout(product_id, 1)

        res = self.client.post(
            "/api/disputes",
            json={"order_id": order["id"], "reason": "Item arrived broken"},
            headers=auth_headers(self.buyer_id),
        )
        dispute_id = res.get_json()["dispute"]["id"]

        res = self.client.put(
            f"/api/admin/orders/{order['id']}/status",
            json={"status": "cancelled"},
            headers=auth_headers(self.admin_id),
        )
        self.assertEqual(res.status_code, 423)

        res = self.client.put(
            f"/api/disputes/{dispute_id}/resolve",
            json={"resolution": "Buyer refunded in person"},
            headers=auth_headers(self.buyer_id),
        )
        self.assertEqual(res.status_code, 403)

        res = self.client.put(
            f"/api/disputes/{dispute_id}/resolve",
            json={"resolution": "Buyer refunded in person"},
            headers=auth_headers(self.admin_id),
        )
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json()["dispute"]["status"], "resolved")
        self.assertEqual(db.session.get(Order, order["id"]).status, "cancelled")

        res = self.client.get("/api/disputes", headers=auth_headers(self.seller_id))
        items = res.get_json()["items"]
        self.assertEqual(len(items), 1)
        self.assertFalse(items[0]["order_deleted"])

        res = self.client.get(f"/api/disputes/{dispute_id}", headers=auth_headers(self.buyer_id))
        self.assertEqual(len(res.get_json()["dispute"]["messages"]), 2)

    def test_admin_user_lifecycle_over_http(self):
        product_id = self._create_listing()
        self._checkout(product_id, 1)

        res = self.client.delete(f"/api/admin/users/{self.buyer_id}", headers=auth_headers(self.buyer_id))
        self.assertEqual(res.status_code, 403)

        res = self.client.delete(f"/api/admin/users/{self.buyer_id}", headers=auth_headers(self.admin_id))
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.get_json()["user"]["is_deleted"])

        res = self.client.get("/api/cart", headers=auth_headers(self.buyer_id))
        self.assertEqual(res.status_code, 401)
        res = self.client.get(f"/api/products/{product_id}")
        self.assertEqual(res.get_json()["product"]["available_quantity"], 5)

        res = self.client.put(f"/api/admin/users/{self.buyer_id}/restore", headers=auth_headers(self.admin_id))
        self.assertEqual(res.status_code, 200)
        res = self.client.get("/api/orders", headers=auth_headers(self.buyer_id))
        self.assertEqual(len(res.get_json()["items"]), 1)

        events = {e.event_type for e in PlatformEvent.query.all()}
        self.assertIn("user_deleted", events)
        self.assertIn("user_restored", events)

    def test_admin_payment_delete_and_restore_over_http(self):
        product_id = self._create_listing()
        order = self._checkout(product_id, 1)
        payment_id = order["payments"][0]["id"]

        res = self.client.delete(f"/api/admin/payments/{payment_id}", headers=auth_headers(self.admin_id))
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.get_json()["payment"]["is_deleted"])
        res = self.client.get(f"/api/orders/{order['id']}", headers=auth_headers(self.buyer_id))
        self.assertEqual(res.get_json()["order"]["payments"], [])

        res = self.client.put(f"/api/admin/payments/{payment_id}/restore", headers=auth_headers(self.admin_id))
        self.assertEqual(res.status_code, 200)
        self.assertFalse(res.get_json()["payment"]["is_deleted"])
        res = self.client.put(f"/api/admin/payments/{payment_id}/restore", headers=auth_headers(self.admin_id))
        self.assertEqual(res.status_code, 409)

    def test_health_and_version(self):
        res = self.client.get("/api/health")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json()["db"], "ok")
        res = self.client.get("/api/version")
        self.assertTrue(res.get_json()["ok"])


if __name__ == "__main__":
    unittest.main()
