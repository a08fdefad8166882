from __future__ import annotations

import unittest

from market_fixtures import MarketTestCase, auth_headers, make_product, make_user

from campus_market.extensions import db


class ApiErrorContractTestCase(MarketTestCase):
    def _assert_error(self, res, status: int, code: str | None = None) -> dict:
        self.assertEqual(res.status_code, status)
        self.assertTrue(res.is_json)
        body = res.get_json(force=True) or {}
        self.assertFalse(bool(body.get("ok", True)))
        self.assertTrue(str(body.get("message") or "").strip())
        self.assertEqual(int(body.get("status") or 0), status)
        self.assertTrue(str(body.get("trace_id") or "").strip())
        if code is not None:
            self.assertEqual(body.get("error"), code)
        return body

    def test_unknown_api_route_returns_json_error_shape(self):
        res = self.client.get("/api/does-not-exist")
        self._assert_error(res, 404)

    def test_missing_token_is_unauthorized(self):
        res = self.client.get("/api/cart")
        self._assert_error(res, 401, "UNAUTHORIZED")

    def test_banned_user_is_forbidden(self):
        user = make_user("Banned")
        user.is_banned = True
        db.session.commit()
        res = self.client.get("/api/cart", headers=auth_headers(user.id))
        self._assert_error(res, 403, "FORBIDDEN")

    def test_insufficient_stock_carries_details(self):
        seller = make_user("Seller")
        buyer = make_user("Buyer")
        product = make_product(seller, quantity=1)
        seller_id, buyer_id, product_id = int(seller.id), int(buyer.id), int(product.id)

        res = self.client.post(
            "/api/cart/items",
            json={"product_id": product_id, "quantity": 2},
            headers=auth_headers(buyer_id),
        )
        body = self._assert_error(res, 409, "INSUFFICIENT_STOCK")
        self.assertEqual(body["details"], {"product_id": product_id, "requested": 2, "available": 1})

        res = self.client.post("/api/cart/items", json={"product_id": product_id}, headers=auth_headers(seller_id))
        self._assert_error(res, 400, "VALIDATION_ERROR")

    def test_frozen_order_maps_to_423(self):
        seller = make_user("Seller")
        buyer = make_user("Buyer")
        product = make_product(seller, quantity=3)
        seller_id, buyer_id, product_id = int(seller.id), int(buyer.id), int(product.id)

        self.client.post("/api/cart/items", json={"product_id": product_id, "quantity": 1}, headers=auth_headers(buyer_id))
        res = self.client.post(
            "/api/orders",
            json={
                "shipping_address": {"street": "1 Main", "city": "Ithaca", "zip_code": "14850", "country": "US"},
                "billing_address": {"street": "1 Main", "city": "Ithaca", "zip_code": "14850", "country": "US"},
                "payment_details": {"card_number": "4111 1111 1111 1111", "card_holder_name": "B Buyer"},
            },
            headers=auth_headers(buyer_id),
        )
        self.assertEqual(res.status_code, 201)
        order_id = res.get_json()["order"]["id"]

        res = self.client.post(
            "/api/disputes",
            json={"order_id": order_id, "reason": "Seller did not show up"},
            headers=auth_headers(buyer_id),
        )
        self.assertEqual(res.status_code, 201)

        res = self.client.put(f"/api/orders/{order_id}/seller-confirm", headers=auth_headers(seller_id))
        self._assert_error(res, 423, "FROZEN")


if __name__ == "__main__":
    unittest.main()
