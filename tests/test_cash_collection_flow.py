from __future__ import annotations

import unittest
from datetime import datetime, timedelta

from order_fixtures import OrderTestCase, fund_wallet

from swiftdrop.extensions import db
from swiftdrop.models import ManagerAuditLog, ManagerCashConfirmation, Order
from swiftdrop.services.actors import Actor
from swiftdrop.utils.wallets import wallet_balance


class CashSettlementTestCase(OrderTestCase):
    def balance(self, actor) -> float:
        return wallet_balance(db.session, actor.id)

    def test_completion_posts_splits_and_driver_debt(self):
        order = self.place(tip=10)
        completed = self.deliver_cash(order.id)
        self.assertEqual(completed.status, "COMPLETED")
        self.assertEqual(completed.payment_status, "unpaid")
        self.assertEqual(self.balance(self.world.vendor_owner), 85.0)
        self.assertEqual(self.balance(self.world.admin), 17.0)
        # +18 delivery pay, -120 cash due (130 total minus the 10 tip the driver keeps)
        self.assertEqual(self.balance(self.world.driver), -102.0)
        self.assertIn("ORDER_COMPLETED", self.notifications.keys_for(self.world.customer.id))

    def test_delivery_without_pickup_still_applies_driver_commission(self):
        order = self.place()
        self.to_driver_accepted(order.id)
        completed = self.coordinator.mark_delivered(self.world.driver, order.id)
        self.assertEqual(completed.status, "COMPLETED")
        self.assertTrue(completed.driver_commission_applied)
        self.assertEqual(completed.driver_net, 18.0)
        self.assertEqual(completed.platform_total_commission, 17.0)

    def test_manager_outside_zone_cannot_complete(self):
        order = self.place()
        self.to_shipped(order.id)
        stranger = Actor(id=self.world.manager.id, role="manager", zone_id=self.world.zone_id + 1)
        self.assertOrderError("ORDER_OUTSIDE_ZONE", self.coordinator.mark_delivered, stranger, order.id)
        completed = self.coordinator.mark_delivered(self.world.manager, order.id)
        self.assertEqual(completed.status, "COMPLETED")


class CashHandoverTestCase(OrderTestCase):
    def test_report_confirm_and_payout(self):
        order = self.place()
        self.to_shipped(order.id)
        self.assertOrderError("ORDER_NOT_COMPLETED", self.coordinator.report_cash_collection, self.world.driver, order.id)
        self.coordinator.mark_delivered(self.world.driver, order.id)
        self.assertOrderError(
            "CASH_NOT_REPORTED", self.coordinator.confirm_cash_receipt, self.world.manager, order.id
        )

        self.coordinator.report_cash_collection(self.world.driver, order.id)
        self.assertIn("CASH_REPORTED", self.notifications.keys_for(self.world.manager.id))
        error = self.assertOrderError(
            "CASH_ALREADY_REPORTED", self.coordinator.report_cash_collection, self.world.driver, order.id
        )
        self.assertEqual(error.kind, "invalid_transition")
        pending = self.coordinator.manager_pending_cash_orders(self.world.manager)
        self.assertEqual([(row["order_id"], row["amount_due"], row["reported"]) for row in pending], [(order.id, 120.0, True)])
        self.assertEqual(len(self.coordinator.driver_pending_cash_orders(self.world.driver)), 1)

        confirmation = self.coordinator.confirm_cash_receipt(self.world.manager, order.id, note="Counted twice")
        self.assertEqual(confirmation.amount, 120.0)
        self.assertEqual(db.session.get(Order, order.id).payment_status, "paid")
        self.assertEqual(wallet_balance(db.session, self.world.driver.id), 18.0)
        self.assertEqual(ManagerAuditLog.query.filter_by(action="confirm_cash", target_id=order.id).count(), 1)
        self.assertEqual(self.coordinator.manager_pending_cash_orders(self.world.manager), [])
        error = self.assertOrderError("ORDER_ALREADY_PAID", self.coordinator.confirm_cash_receipt, self.world.manager, order.id)
        self.assertEqual(error.kind, "invalid_transition")

        summary = self.coordinator.manager_cash_summary(self.world.manager)
        self.assertEqual(summary["confirmations_total"], 120.0)
        self.assertEqual(summary["cash_on_hand"], 120.0)

        start = datetime.utcnow() - timedelta(days=1)
        end = datetime.utcnow() + timedelta(days=1)
        payout = self.coordinator.confirm_manager_payout(self.world.admin, self.world.manager.id, start, end)
        self.assertEqual(payout.amount, 120.0)
        self.assertEqual(payout.confirmation_count, 1)
        self.assertIn("PAYOUT_CONFIRMED", self.notifications.keys_for(self.world.manager.id))
        error = self.assertOrderError(
            "PAYOUT_ALREADY_CONFIRMED",
            self.coordinator.confirm_manager_payout,
            self.world.admin,
            self.world.manager.id,
            start,
            end,
        )
        self.assertEqual(error.kind, "validation")

        summary = self.coordinator.manager_cash_summary(self.world.admin, manager_id=self.world.manager.id)
        self.assertEqual(summary["payouts_total"], 120.0)
        self.assertEqual(summary["cash_on_hand"], 0.0)

    def test_cash_on_hand_is_confirmations_minus_payouts(self):
        for _ in range(2):
            order = self.place()
            self.deliver_cash(order.id)
            self.coordinator.report_cash_collection(self.world.driver, order.id)
            self.coordinator.confirm_cash_receipt(self.world.manager, order.id)

        rows = ManagerCashConfirmation.query.order_by(ManagerCashConfirmation.id.asc()).all()
        rows[0].confirmed_at = datetime.utcnow() - timedelta(days=10)
        db.session.commit()

        self.coordinator.confirm_manager_payout(
            self.world.admin,
            self.world.manager.id,
            datetime.utcnow() - timedelta(days=11),
            datetime.utcnow() - timedelta(days=9),
        )
        summary = self.coordinator.manager_cash_summary(self.world.manager)
        self.assertEqual(summary["confirmations_total"], 240.0)
        self.assertEqual(summary["payouts_total"], 120.0)
        self.assertEqual(summary["cash_on_hand"], 120.0)

        self.assertOrderError(
            "NO_CASH_CONFIRMATIONS",
            self.coordinator.confirm_manager_payout,
            self.world.admin,
            self.world.manager.id,
            datetime.utcnow() - timedelta(days=30),
            datetime.utcnow() - timedelta(days=20),
        )

    def test_rules_for_non_cash_orders_and_roles(self):
        fund_wallet(self.world.customer.id, 500)
        order = self.place(method="wallet")
        self.deliver_wallet(order.id)
        self.assertOrderError("NOT_COD_ORDER", self.coordinator.report_cash_collection, self.world.driver, order.id)
        self.assertOrderError(
            "ROLE_NOT_ALLOWED",
            self.coordinator.confirm_manager_payout,
            self.world.manager,
            self.world.manager.id,
            datetime.utcnow() - timedelta(days=1),
            datetime.utcnow(),
        )
        self.assertOrderError(
            "INVALID_DATE_RANGE",
            self.coordinator.confirm_manager_payout,
            self.world.admin,
            self.world.manager.id,
            datetime.utcnow(),
            datetime.utcnow() - timedelta(days=1),
        )
        self.assertOrderError(
            "MANAGER_NOT_FOUND",
            self.coordinator.confirm_manager_payout,
            self.world.admin,
            self.world.driver.id,
            datetime.utcnow() - timedelta(days=1),
            datetime.utcnow(),
        )


if __name__ == "__main__":
    unittest.main()
