from __future__ import annotations

import unittest

from order_fixtures import OrderTestCase, bearer


class ApiErrorContractTestCase(OrderTestCase):
    def assertErrorShape(self, res, status: int, code: str):
        self.assertEqual(res.status_code, status)
        self.assertTrue(res.is_json)
        body = res.get_json(force=True) or {}
        self.assertFalse(bool(body.get("ok", True)))
        self.assertEqual((body.get("error") or {}).get("code"), code)
        self.assertTrue(str(body.get("message") or "").strip())
        self.assertEqual(int(body.get("status") or 0), status)
        self.assertTrue(str(body.get("trace_id") or "").strip())
        return body

    def test_unknown_api_route_returns_json_error_shape(self):
        res = self.client.get("/api/does-not-exist")
        self.assertErrorShape(res, 404, "NOT_FOUND")

    def test_missing_or_bad_token_is_unauthorized(self):
        self.assertErrorShape(self.client.get("/api/orders"), 401, "UNAUTHORIZED")
        res = self.client.get("/api/orders", headers={"Authorization": "Bearer not-a-token"})
        self.assertErrorShape(res, 401, "UNAUTHORIZED")

    def test_request_id_is_echoed_as_trace_id(self):
        res = self.client.get("/api/orders/999", headers={**bearer(self.world.admin), "X-Request-Id": "trace-abc"})
        body = self.assertErrorShape(res, 404, "ORDER_NOT_FOUND")
        self.assertEqual(body["trace_id"], "trace-abc")
        self.assertEqual(res.headers.get("X-Request-Id"), "trace-abc")

    def test_domain_errors_map_to_status_codes(self):
        order = self.place()
        res = self.client.post(f"/api/orders/{order.id}/vendor/accept", headers=bearer(self.world.customer), json={})
        self.assertErrorShape(res, 403, "NOT_VENDOR_OWNER")

        res = self.client.post(f"/api/orders/{order.id}/driver/pickup", headers=bearer(self.world.driver))
        self.assertErrorShape(res, 403, "NOT_ASSIGNED_DRIVER")

        self.client.post(f"/api/orders/{order.id}/cancel", headers=bearer(self.world.customer), json={"reason": "nope"})
        res = self.client.post(f"/api/orders/{order.id}/vendor/accept", headers=bearer(self.world.vendor_owner), json={})
        body = self.assertErrorShape(res, 409, "INVALID_STATUS")
        self.assertEqual(body["error"]["kind"], "invalid_transition")
        self.assertEqual(body["details"]["status"], "CANCELLED")

        res = self.client.get("/api/orders?status=LOST", headers=bearer(self.world.admin))
        self.assertErrorShape(res, 422, "INVALID_STATUS_FILTER")

    def test_health(self):
        res = self.client.get("/api/health")
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.get_json()["ok"])


if __name__ == "__main__":
    unittest.main()
