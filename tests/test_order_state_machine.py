from __future__ import annotations

import unittest
from types import SimpleNamespace

from order_fixtures import OrderTestCase, fund_wallet

from swiftdrop.errors import InvalidTransitionError, ValidationFailureError
from swiftdrop.extensions import db
from swiftdrop.models import CommissionSnapshot, DriverProfile, Order, PlatformEvent, SubscriptionPlan, Vendor
from swiftdrop.services.order_state import OrderStatus, move_to, require_status
from swiftdrop.utils.wallets import wallet_balance


class TransitionGraphTestCase(unittest.TestCase):
    def test_terminal_states_have_no_exits(self):
        for status in OrderStatus.TERMINAL:
            self.assertEqual(OrderStatus.ALLOWED[status], set())

    def test_every_state_can_be_cancelled_until_terminal(self):
        for status in OrderStatus.all():
            if status in OrderStatus.TERMINAL:
                continue
            self.assertTrue(OrderStatus.can_transition(status, OrderStatus.CANCELLED), status)

    def test_move_to_rejects_unlisted_edges(self):
        order = SimpleNamespace(id=7, status=OrderStatus.PLACED)
        with self.assertRaises(InvalidTransitionError) as ctx:
            move_to(order, OrderStatus.SHIPPED)
        self.assertEqual(ctx.exception.details, {"status": "PLACED", "target": "SHIPPED"})
        self.assertEqual(order.status, OrderStatus.PLACED)

        self.assertEqual(move_to(order, OrderStatus.VENDOR_ACCEPTED), OrderStatus.PLACED)
        self.assertEqual(order.status, OrderStatus.VENDOR_ACCEPTED)
        self.assertEqual(require_status(order, OrderStatus.ASSIGNABLE), OrderStatus.VENDOR_ACCEPTED)


class VendorStepTestCase(OrderTestCase):
    def test_accept_applies_commission_once(self):
        order = self.place()
        accepted = self.coordinator.vendor_accept(self.world.vendor_owner, order.id, preparation_time=15)
        self.assertEqual(accepted.status, "VENDOR_ACCEPTED")
        self.assertEqual(accepted.vendor_commission_value, 15.0)
        self.assertEqual(accepted.vendor_net, 85.0)
        self.assertTrue(accepted.vendor_commission_applied)
        self.assertIsNotNone(accepted.estimated_ready_at)
        self.assertEqual(CommissionSnapshot.query.filter_by(order_id=order.id, source="VENDOR").count(), 1)

        self.assertOrderError("INVALID_STATUS", self.coordinator.vendor_accept, self.world.vendor_owner, order.id)
        self.assertIn("ORDER_ACCEPTED", self.notifications.keys_for(self.world.customer.id))

    def test_paid_plan_vendor_pays_no_commission(self):
        plan = SubscriptionPlan(name="Pro", price=499, total_orders=2)
        db.session.add(plan)
        db.session.flush()
        vendor = db.session.get(Vendor, self.world.vendor_id)
        vendor.subscription_plan_id = plan.id
        vendor.subscription_orders_remaining = 1
        db.session.commit()

        first = self.place()
        second = self.place()
        accepted = self.coordinator.vendor_accept(self.world.vendor_owner, first.id)
        self.assertEqual(accepted.vendor_commission_value, 0.0)
        self.assertEqual(accepted.vendor_net, 100.0)
        self.assertEqual(CommissionSnapshot.query.filter_by(order_id=first.id).count(), 0)
        self.assertEqual(db.session.get(Vendor, self.world.vendor_id).subscription_orders_remaining, 0)
        self.assertOrderError(
            "SUBSCRIPTION_ORDER_LIMIT_REACHED",
            self.coordinator.vendor_accept,
            self.world.vendor_owner,
            second.id,
        )

    def test_other_users_cannot_accept(self):
        order = self.place()
        self.assertOrderError("NOT_VENDOR_OWNER", self.coordinator.vendor_accept, self.world.customer, order.id)
        self.assertOrderError(
            "INVALID_PREPARATION_TIME",
            self.coordinator.vendor_accept,
            self.world.vendor_owner,
            order.id,
            preparation_time=-5,
        )

    def test_commission_reentry_is_a_validation_failure(self):
        order = self.place()
        db.session.get(Order, order.id).vendor_commission_applied = True
        db.session.commit()

        error = self.assertOrderError("COMMISSION_ALREADY_APPLIED", self.coordinator.vendor_accept, self.world.vendor_owner, order.id)
        self.assertIsInstance(error, ValidationFailureError)
        self.assertEqual(error.kind, "validation")
        self.assertEqual(db.session.get(Order, order.id).status, "PLACED")
        self.assertEqual(CommissionSnapshot.query.filter_by(order_id=order.id).count(), 0)

    def test_reject_refunds_wallet_order(self):
        fund_wallet(self.world.customer.id, 200)
        order = self.place(method="wallet")
        self.assertEqual(wallet_balance(db.session, self.world.customer.id), 80.0)
        rejected = self.coordinator.vendor_reject(self.world.vendor_owner, order.id, reason="Out of stock")
        self.assertEqual(rejected.status, "VENDOR_REJECTED")
        self.assertEqual(rejected.cancel_reason, "Out of stock")
        self.assertEqual(rejected.payment_status, "unpaid")
        self.assertEqual(wallet_balance(db.session, self.world.customer.id), 200.0)


class DriverStepTestCase(OrderTestCase):
    def test_pickup_waits_for_preparation(self):
        order = self.place()
        self.coordinator.vendor_accept(self.world.vendor_owner, order.id, preparation_time=30)
        self.coordinator.assign_driver(self.world.admin, order.id, self.world.driver.id)
        self.coordinator.driver_accept(self.world.driver, order.id)
        self.assertOrderError("ORDER_NOT_READY_YET", self.coordinator.confirm_pickup, self.world.driver, order.id)

    def test_pickup_applies_driver_commission_and_issues_code(self):
        order = self.place()
        shipped = self.to_shipped(order.id)
        self.assertEqual(shipped.status, "SHIPPED")
        self.assertEqual(shipped.driver_net, 18.0)
        self.assertEqual(shipped.driver_commission_value, 2.0)
        self.assertEqual(shipped.platform_total_commission, 17.0)
        self.assertRegex(shipped.delivery_otp, r"^\d{6}$")
        transit = self.coordinator.start_transit(self.world.driver, order.id)
        self.assertEqual(transit.status, "IN_TRANSIT")

    def test_driver_reject_frees_driver_for_reassignment(self):
        order = self.place()
        self.coordinator.vendor_accept(self.world.vendor_owner, order.id)
        self.coordinator.assign_driver(self.world.admin, order.id, self.world.driver.id)
        rejected = self.coordinator.driver_reject(self.world.driver, order.id, reason="Flat tyre")
        self.assertEqual(rejected.status, "DRIVER_REJECTED")
        self.assertIsNone(rejected.driver_id)
        profile = DriverProfile.query.filter_by(user_id=self.world.driver.id).one()
        self.assertEqual(profile.status, "AVAILABLE")
        self.assertIn("DRIVER_REJECTED", self.notifications.keys_for(self.world.manager.id))

        again = self.coordinator.assign_driver(self.world.admin, order.id, self.world.other_driver.id)
        self.assertEqual(again.status, "DRIVER_PENDING")

    def test_only_assigned_driver_acts(self):
        order = self.place()
        self.coordinator.vendor_accept(self.world.vendor_owner, order.id)
        self.coordinator.assign_driver(self.world.admin, order.id, self.world.driver.id)
        self.assertOrderError("NOT_ASSIGNED_DRIVER", self.coordinator.driver_accept, self.world.other_driver, order.id)


class CancellationTestCase(OrderTestCase):
    def test_customer_cancels_before_pickup_only(self):
        first = self.place()
        cancelled = self.coordinator.cancel_order(self.world.customer, first.id, reason="Changed my mind")
        self.assertEqual(cancelled.status, "CANCELLED")

        second = self.place()
        self.to_shipped(second.id)
        self.assertOrderError("ORDER_CANNOT_BE_CANCELLED", self.coordinator.cancel_order, self.world.customer, second.id)

    def test_cancelled_order_is_terminal(self):
        order = self.place()
        self.coordinator.cancel_order(self.world.customer, order.id)
        self.assertOrderError("ORDER_CANNOT_BE_CANCELLED", self.coordinator.cancel_order, self.world.admin, order.id)
        self.assertOrderError("INVALID_STATUS", self.coordinator.vendor_accept, self.world.vendor_owner, order.id)

    def test_admin_cancel_after_pickup_resets_commissions_and_driver(self):
        order = self.place()
        self.to_shipped(order.id)
        cancelled = self.coordinator.cancel_order(self.world.admin, order.id, reason="Address unreachable")
        self.assertEqual(cancelled.platform_total_commission, 0.0)
        self.assertFalse(cancelled.vendor_commission_applied)
        self.assertFalse(cancelled.driver_commission_applied)
        profile = DriverProfile.query.filter_by(user_id=self.world.driver.id).one()
        self.assertEqual(profile.status, "AVAILABLE")
        self.assertIn("ORDER_CANCELLED", self.notifications.keys_for(self.world.driver.id))

        event = PlatformEvent.query.filter_by(event_type="ORDER_CANCELLED", subject_id=str(order.id)).one()
        self.assertEqual(event.previous_status, "SHIPPED")
        self.assertEqual(event.new_status, "CANCELLED")

    def test_driver_problem_report_cancels_with_delivery_failed(self):
        order = self.place()
        self.to_shipped(order.id)
        failed = self.coordinator.report_problem(self.world.driver, order.id, reason="Customer not answering")
        self.assertEqual(failed.status, "CANCELLED")
        self.assertIn("DELIVERY_FAILED", self.notifications.keys_for(self.world.customer.id))
        self.assertIn("DELIVERY_FAILED", self.notifications.keys_for(self.world.manager.id))
        self.assertEqual(PlatformEvent.query.filter_by(event_type="DELIVERY_FAILED").count(), 1)


if __name__ == "__main__":
    unittest.main()
