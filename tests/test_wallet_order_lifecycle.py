from __future__ import annotations

import os
import unittest
from unittest import mock

from order_fixtures import OrderTestCase, fund_wallet

from swiftdrop.extensions import db
from swiftdrop.models import DriverProfile, HeldBalance, Order, SubscriptionPlan, Vendor, WalletTxn
from swiftdrop.services.orders.settlement import reverse_party_credits
from swiftdrop.utils.platform_settings import MIN_DELIVERY_FEE, set_setting
from swiftdrop.utils.wallets import post_txn, wallet_balance


class WalletOrderLifecycleTestCase(OrderTestCase):
    def setUp(self):
        super().setUp()
        fund_wallet(self.world.customer.id, 500)

    def balance(self, actor) -> float:
        return wallet_balance(db.session, actor.id)

    def test_pickup_rewrites_hold_split(self):
        order = self.place(method="wallet", tip=5)
        self.to_shipped(order.id)
        hold = HeldBalance.query.filter_by(order_id=order.id).one()
        self.assertEqual(hold.driver_id, self.world.driver.id)
        self.assertEqual(hold.vendor_amount, 85.0)
        self.assertEqual(hold.driver_amount, 23.0)
        self.assertEqual(hold.admin_amount, 17.0)
        self.assertAlmostEqual(hold.vendor_amount + hold.driver_amount + hold.admin_amount, hold.total_amount)

    def test_wrong_code_is_rejected_and_rotated(self):
        order = self.place(method="wallet")
        self.to_shipped(order.id)
        issued = db.session.get(Order, order.id).delivery_otp
        wrong = f"{(int(issued) + 1) % 1000000:06d}"

        self.assertOrderError("INVALID_DELIVERY_OTP", self.coordinator.mark_delivered, self.world.driver, order.id, otp=wrong)
        db.session.expire_all()
        current = db.session.get(Order, order.id)
        self.assertEqual(current.status, "SHIPPED")
        self.assertNotEqual(current.delivery_otp, issued)
        self.assertOrderError("INVALID_DELIVERY_OTP", self.coordinator.mark_delivered, self.world.driver, order.id, otp=issued)
        self.assertOrderError("OTP_REQUIRED", self.coordinator.mark_delivered, self.world.driver, order.id)

    def test_delivery_then_confirmation_pays_every_party(self):
        order = self.place(method="wallet")
        self.assertEqual(self.balance(self.world.customer), 380.0)
        completed = self.deliver_wallet(order.id)
        self.assertEqual(completed.status, "COMPLETED")
        self.assertIsNone(completed.delivery_otp)
        self.assertIn("CONFIRM_DELIVERY", self.notifications.keys_for(self.world.customer.id))
        profile = DriverProfile.query.filter_by(user_id=self.world.driver.id).one()
        self.assertEqual(profile.status, "AVAILABLE")

        # Nothing moves until the customer confirms.
        self.assertEqual(self.balance(self.world.vendor_owner), 0.0)
        hold = self.coordinator.confirm_delivery_receipt(self.world.customer, order.id)
        self.assertEqual(hold.status, "RELEASED")
        self.assertEqual(hold.release_type, "CUSTOMER_CONFIRMATION")
        self.assertEqual(self.balance(self.world.vendor_owner), 85.0)
        self.assertEqual(self.balance(self.world.driver), 18.0)
        self.assertEqual(self.balance(self.world.admin), 17.0)
        self.assertEqual(self.balance(self.world.customer), 380.0)

        held_rows = WalletTxn.query.filter_by(order_id=order.id, kind="order_payment_held").all()
        self.assertEqual([row.balance_type for row in held_rows], ["RELEASED"])
        self.assertOrderError(
            "NO_HELD_BALANCE_OR_ALREADY_PROCESSED",
            self.coordinator.confirm_delivery_receipt,
            self.world.customer,
            order.id,
        )

    def test_subsidised_driver_pay_is_debited_from_platform(self):
        plan = SubscriptionPlan(name="Pro", price=499, total_orders=5)
        db.session.add(plan)
        db.session.flush()
        vendor = db.session.get(Vendor, self.world.vendor_id)
        vendor.subscription_plan_id = plan.id
        vendor.subscription_orders_remaining = 5
        db.session.commit()
        set_setting(MIN_DELIVERY_FEE, 5)

        order = self.place(method="wallet")
        self.assertEqual(order.order_total, 105.0)
        self.deliver_wallet(order.id)
        completed = db.session.get(Order, order.id)
        self.assertEqual(completed.driver_net, 15.0)
        self.assertEqual(completed.platform_total_commission, -10.0)

        self.coordinator.confirm_delivery_receipt(self.world.customer, order.id)
        self.assertEqual(self.balance(self.world.vendor_owner), 100.0)
        self.assertEqual(self.balance(self.world.driver), 15.0)
        self.assertEqual(self.balance(self.world.admin), -10.0)
        self.assertEqual(self.balance(self.world.customer), 395.0)

        released = WalletTxn.query.filter(WalletTxn.order_id == order.id, WalletTxn.kind != "order_payment_held").all()
        credited = sum(row.amount if row.direction == "credit" else -row.amount for row in released)
        self.assertAlmostEqual(credited, 105.0)

    def test_out_of_band_credit_is_reversed_once(self):
        order = self.place()
        self.to_shipped(order.id)
        # Nothing reachable credits a party before COMPLETED.
        self.assertEqual(WalletTxn.query.filter_by(order_id=order.id).count(), 0)

        post_txn(
            db.session,
            user_id=self.world.vendor_owner.id,
            direction="credit",
            amount=40,
            kind="vendor_earnings",
            order_id=order.id,
        )
        db.session.commit()
        self.coordinator.cancel_order(self.world.admin, order.id, reason="Manual adjustment undone")
        self.assertEqual(self.balance(self.world.vendor_owner), 0.0)

        vendor = db.session.get(Vendor, self.world.vendor_id)
        self.assertEqual(reverse_party_credits(db.session, db.session.get(Order, order.id), vendor), {})

    def test_cancel_after_pickup_restores_customer(self):
        order = self.place(method="wallet")
        self.to_shipped(order.id)
        cancelled = self.coordinator.cancel_order(self.world.admin, order.id, reason="Vendor closed")
        self.assertEqual(cancelled.payment_status, "unpaid")
        self.assertEqual(self.balance(self.world.customer), 500.0)
        self.assertEqual(HeldBalance.query.filter_by(order_id=order.id).one().status, "REFUNDED")
        self.assertEqual(self.balance(self.world.vendor_owner), 0.0)
        self.assertEqual(self.balance(self.world.driver), 0.0)

    def test_customer_code_only_during_delivery(self):
        order = self.place(method="wallet")
        self.assertOrderError("OTP_NOT_AVAILABLE", self.coordinator.get_delivery_otp, self.world.customer, order.id)
        self.to_shipped(order.id)
        self.assertOrderError("NOT_ORDER_OWNER", self.coordinator.get_delivery_otp, self.world.driver, order.id)
        first = self.coordinator.get_delivery_otp(self.world.customer, order.id)["otp"]
        self.assertEqual(db.session.get(Order, order.id).delivery_otp, first)

    def test_broadcast_failure_does_not_undo_commit(self):
        order = self.place(method="wallet")
        frames_before = len(self.broadcaster.frames)
        with mock.patch.dict(os.environ, {"MOCK_BROADCAST_FORCE_FAIL": "1"}):
            accepted = self.coordinator.vendor_accept(self.world.vendor_owner, order.id)
        self.assertEqual(accepted.status, "VENDOR_ACCEPTED")
        db.session.expire_all()
        self.assertEqual(db.session.get(Order, order.id).status, "VENDOR_ACCEPTED")
        self.assertEqual(len(self.broadcaster.frames), frames_before)
        self.assertIn("ORDER_ACCEPTED", self.notifications.keys_for(self.world.customer.id))


if __name__ == "__main__":
    unittest.main()
