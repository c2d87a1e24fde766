from __future__ import annotations

import unittest

from order_fixtures import OrderTestCase, fund_wallet

from swiftdrop.extensions import db
from swiftdrop.models import Dispute, DisputeAuditLog, HeldBalance, Order
from swiftdrop.utils.wallets import wallet_balance


class BuyerProtectionTestCase(OrderTestCase):
    def setUp(self):
        super().setUp()
        fund_wallet(self.world.customer.id, 500)
        self.order = self.place(method="wallet")
        self.order_id = int(self.order.id)

    def test_status_reports_actions_available(self):
        status = self.coordinator.get_protection_status(self.world.customer, self.order_id)
        self.assertTrue(status["is_protected"])
        self.assertFalse(status["can_confirm_delivery"])

        self.deliver_wallet(self.order_id)
        status = self.coordinator.get_protection_status(self.world.customer, self.order_id)
        self.assertTrue(status["can_confirm_delivery"])
        self.assertTrue(status["can_dispute"])
        self.assertEqual(status["held_balance"]["status"], "HELD")
        self.assertOrderError("ROLE_NOT_ALLOWED", self.coordinator.get_protection_status, self.world.driver, self.order_id)

    def test_dispute_needs_completed_order_and_reason(self):
        self.assertOrderError("ORDER_NOT_COMPLETED", self.coordinator.create_dispute, self.world.customer, self.order_id, "Missing item")
        self.deliver_wallet(self.order_id)
        self.assertOrderError("DISPUTE_REASON_REQUIRED", self.coordinator.create_dispute, self.world.customer, self.order_id, "  ")
        self.assertOrderError("NOT_ORDER_OWNER", self.coordinator.create_dispute, self.world.vendor_owner, self.order_id, "x")

    def test_dispute_resolved_for_customer_refunds(self):
        self.deliver_wallet(self.order_id)
        dispute = self.coordinator.create_dispute(self.world.customer, self.order_id, "Missing item", "Drinks never arrived")
        self.assertEqual(dispute.status, "PENDING")
        self.assertEqual(HeldBalance.query.filter_by(order_id=self.order_id).one().status, "DISPUTED")
        self.assertIn("DISPUTE_OPENED", self.notifications.keys_for(self.world.driver.id))
        duplicate = self.assertOrderError("DISPUTE_ALREADY_EXISTS", self.coordinator.create_dispute, self.world.customer, self.order_id, "Again")
        self.assertEqual(duplicate.kind, "invalid_transition")
        self.assertOrderError(
            "NO_HELD_BALANCE_OR_ALREADY_PROCESSED",
            self.coordinator.confirm_delivery_receipt,
            self.world.customer,
            self.order_id,
        )

        response = self.coordinator.add_driver_response(self.world.driver, self.order_id, "Handed over in full")
        self.assertEqual(response.driver_response, "Handed over in full")
        self.assertIn("DISPUTE_RESPONSE", self.notifications.keys_for(self.world.customer.id))
        self.assertOrderError("NOT_ASSIGNED_DRIVER", self.coordinator.add_driver_response, self.world.other_driver, self.order_id, "me too")

        self.assertOrderError("ROLE_NOT_ALLOWED", self.coordinator.resolve_dispute, self.world.manager, self.order_id, "customer")
        self.assertOrderError("INVALID_DECISION", self.coordinator.resolve_dispute, self.world.admin, self.order_id, "split")
        resolved = self.coordinator.resolve_dispute(self.world.admin, self.order_id, "customer", "Receipt shows missing drinks")
        self.assertEqual(resolved.status, "RESOLVED_CUSTOMER")
        self.assertEqual(resolved.resolved_by, self.world.admin.id)
        self.assertEqual(HeldBalance.query.filter_by(order_id=self.order_id).one().status, "REFUNDED")
        self.assertEqual(wallet_balance(db.session, self.world.customer.id), 500.0)
        self.assertEqual(wallet_balance(db.session, self.world.vendor_owner.id), 0.0)
        self.assertEqual(db.session.get(Order, self.order_id).payment_status, "unpaid")

        actions = [row.action for row in DisputeAuditLog.query.order_by(DisputeAuditLog.id.asc()).all()]
        self.assertEqual(actions, ["created", "driver_response", "resolved"])
        self.assertOrderError("DISPUTE_NOT_PENDING", self.coordinator.resolve_dispute, self.world.admin, self.order_id, "driver")

    def test_dispute_resolved_for_driver_releases_funds(self):
        self.deliver_wallet(self.order_id)
        self.coordinator.create_dispute(self.world.customer, self.order_id, "Late delivery")
        resolved = self.coordinator.resolve_dispute(self.world.admin, self.order_id, "driver")
        self.assertEqual(resolved.status, "RESOLVED_DRIVER")
        hold = HeldBalance.query.filter_by(order_id=self.order_id).one()
        self.assertEqual(hold.status, "RELEASED")
        self.assertEqual(hold.release_type, "ADMIN_RESOLUTION")
        self.assertEqual(wallet_balance(db.session, self.world.vendor_owner.id), 85.0)
        self.assertEqual(wallet_balance(db.session, self.world.driver.id), 18.0)
        self.assertIn("FUNDS_RELEASED", self.notifications.keys_for(self.world.vendor_owner.id))
        self.assertEqual(Dispute.query.count(), 1)

    def test_cash_orders_have_no_protection(self):
        cash = self.place()
        self.deliver_cash(cash.id)
        self.assertOrderError("NOT_WALLET_ORDER", self.coordinator.confirm_delivery_receipt, self.world.customer, cash.id)


if __name__ == "__main__":
    unittest.main()
