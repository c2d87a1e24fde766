from __future__ import annotations

import unittest
from datetime import datetime, timedelta

from order_fixtures import OrderTestCase, bearer, fund_wallet


class OrdersApiFlowTestCase(OrderTestCase):
    def post(self, path: str, actor, payload: dict | None = None, status: int = 200) -> dict:
        res = self.client.post(path, headers=bearer(actor), json=payload or {})
        self.assertEqual(res.status_code, status, res.get_data(as_text=True))
        return res.get_json()

    def get(self, path: str, actor, status: int = 200) -> dict:
        res = self.client.get(path, headers=bearer(actor))
        self.assertEqual(res.status_code, status, res.get_data(as_text=True))
        return res.get_json()

    def create(self, method: str = "cash") -> int:
        body = self.post(
            "/api/orders",
            self.world.customer,
            {
                "vendor_id": self.world.vendor_id,
                "address_id": self.world.address_id,
                "items": [{"product_id": self.world.product_id, "quantity": 1}],
                "payment_method": method,
                "notes": "Ring twice",
            },
            status=201,
        )
        self.assertEqual(body["order"]["status"], "PLACED")
        self.assertNotIn("delivery_otp", body["order"])
        return int(body["order"]["id"])

    def test_wallet_order_over_http(self):
        fund_wallet(self.world.customer.id, 300)
        order_id = self.create("wallet")
        self.post(f"/api/orders/{order_id}/vendor/accept", self.world.vendor_owner, {"preparation_time": 0})
        body = self.post(f"/api/orders/{order_id}/assign-driver", self.world.manager, {"driver_id": self.world.driver.id})
        self.assertEqual(body["order"]["manager_id"], self.world.manager.id)
        self.post(f"/api/orders/{order_id}/driver/accept", self.world.driver)
        self.post(f"/api/orders/{order_id}/driver/pickup", self.world.driver)
        self.post(f"/api/orders/{order_id}/driver/transit", self.world.driver)

        otp = self.get(f"/api/protection/orders/{order_id}/otp", self.world.customer)["otp"]
        body = self.post(f"/api/orders/{order_id}/deliver", self.world.driver, {"otp": otp})
        self.assertEqual(body["order"]["status"], "COMPLETED")

        status = self.get(f"/api/protection/orders/{order_id}", self.world.customer)["protection"]
        self.assertTrue(status["can_confirm_delivery"])
        body = self.post(f"/api/protection/orders/{order_id}/confirm", self.world.customer)
        self.assertEqual(body["held_balance"]["status"], "RELEASED")

        listing = self.get("/api/orders?status=COMPLETED&limit=5", self.world.customer)
        self.assertEqual(listing["total"], 1)
        self.assertEqual(listing["items"][0]["id"], order_id)
        self.assertEqual(self.get("/api/orders", self.world.other_driver)["total"], 0)
        self.get(f"/api/orders/{order_id}", self.world.other_driver, status=403)

        snapshots = self.get(f"/api/reports/commissions/orders/{order_id}", self.world.customer)["items"]
        self.assertEqual(sorted(s["source"] for s in snapshots), ["DRIVER", "VENDOR"])

    def test_cash_order_over_http(self):
        order_id = self.create()
        self.post(f"/api/orders/{order_id}/vendor/accept", self.world.vendor_owner)
        self.post(f"/api/orders/{order_id}/assign-driver", self.world.admin, {"driver_id": self.world.driver.id})
        self.post(f"/api/orders/{order_id}/driver/accept", self.world.driver)
        self.post(f"/api/orders/{order_id}/deliver", self.world.driver)

        self.assertEqual(len(self.get("/api/cash/driver/pending", self.world.driver)["items"]), 1)
        self.post(f"/api/cash/orders/{order_id}/report", self.world.driver)
        pending = self.get("/api/cash/manager/pending", self.world.manager)["items"]
        self.assertEqual(pending[0]["amount_due"], 120.0)
        body = self.post(f"/api/cash/orders/{order_id}/confirm", self.world.manager, {"note": "ok"})
        self.assertEqual(body["confirmation"]["amount"], 120.0)

        start = (datetime.utcnow() - timedelta(days=1)).isoformat()
        end = (datetime.utcnow() + timedelta(days=1)).isoformat()
        body = self.post(
            "/api/cash/payouts",
            self.world.admin,
            {"manager_id": self.world.manager.id, "start": start, "end": end},
            status=201,
        )
        self.assertEqual(body["payout"]["amount"], 120.0)
        summary = self.get("/api/cash/manager/summary", self.world.manager)["summary"]
        self.assertEqual(summary["cash_on_hand"], 0.0)

        res = self.client.post("/api/cash/payouts", headers=bearer(self.world.admin), json={"manager_id": self.world.manager.id, "start": "yesterday"})
        self.assertEqual(res.status_code, 422)
        self.assertEqual(res.get_json()["error"]["code"], "INVALID_DATE")

        platform = self.get("/api/reports/commissions/platform", self.world.admin)["totals"]
        self.assertEqual(platform["orders"], 1)
        self.assertEqual(platform["platform_total"], 17.0)
        drivers = self.get("/api/reports/commissions/drivers", self.world.driver)["items"]
        self.assertEqual(drivers[0]["driver_net"], 18.0)
        vendors = self.get(f"/api/reports/commissions/vendors?vendor_id={self.world.vendor_id}", self.world.vendor_owner)["items"]
        self.assertEqual(vendors[0]["vendor_net"], 85.0)
        months = self.get(f"/api/reports/commissions/monthly?year={datetime.utcnow().year}", self.world.admin)["months"]
        self.assertEqual(sum(m["orders"] for m in months), 1)
        self.get("/api/reports/commissions/platform", self.world.manager, status=403)

    def test_dispute_over_http(self):
        fund_wallet(self.world.customer.id, 300)
        order_id = self.create("wallet")
        self.deliver_wallet(order_id)
        body = self.post(
            f"/api/protection/orders/{order_id}/dispute",
            self.world.customer,
            {"reason": "Damaged", "description": "Box was crushed"},
            status=201,
        )
        self.assertEqual(body["dispute"]["status"], "PENDING")
        self.post(f"/api/protection/orders/{order_id}/dispute/response", self.world.driver, {"response": "Left intact"})
        body = self.post(f"/api/protection/orders/{order_id}/dispute/resolve", self.world.admin, {"decision": "customer"})
        self.assertEqual(body["dispute"]["status"], "RESOLVED_CUSTOMER")

    def test_admin_settings(self):
        settings = self.get("/api/admin/settings", self.world.admin)["settings"]
        self.assertEqual(settings["vendor_commission_rate"], 15.0)
        res = self.client.put("/api/admin/settings", headers=bearer(self.world.admin), json={"max_driver_debt": 250})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json()["settings"]["max_driver_debt"], 250.0)

        res = self.client.put("/api/admin/settings", headers=bearer(self.world.admin), json={"surge": 2})
        self.assertEqual(res.status_code, 422)
        self.assertEqual(res.get_json()["error"]["code"], "UNKNOWN_SETTING")
        self.get("/api/admin/settings", self.world.manager, status=403)


if __name__ == "__main__":
    unittest.main()
