from __future__ import annotations

import unittest
from datetime import datetime, timedelta

from order_fixtures import OrderTestCase, fund_wallet

from swiftdrop.extensions import db
from swiftdrop.jobs import order_jobs
from swiftdrop.models import HeldBalance, JobRun, Order
from swiftdrop.tasks.order_tasks import _retry_countdown
from swiftdrop.utils.wallets import wallet_balance


class RetryBackoffTestCase(unittest.TestCase):
    def test_backoff_doubles_and_caps(self):
        self.assertEqual(_retry_countdown(0), 5)
        self.assertEqual(_retry_countdown(3), 40)
        self.assertEqual(_retry_countdown(12), 900)


class AutoReleaseJobTestCase(OrderTestCase):
    def test_due_holds_on_completed_orders_are_released(self):
        fund_wallet(self.world.customer.id, 500)
        due = self.place(method="wallet")
        self.deliver_wallet(due.id)
        waiting = self.place(method="wallet")

        for order_id in (due.id, waiting.id):
            hold = HeldBalance.query.filter_by(order_id=order_id).one()
            hold.auto_release_date = datetime.utcnow() - timedelta(minutes=1)
        db.session.commit()

        result = order_jobs.process_auto_releases(coordinator=self.coordinator)
        self.assertTrue(result["ok"])
        self.assertEqual(result["candidates"], 1)
        self.assertEqual(result["processed"], 1)

        released = HeldBalance.query.filter_by(order_id=due.id).one()
        self.assertEqual(released.status, "RELEASED")
        self.assertEqual(released.release_type, "TIMEOUT_RELEASE")
        self.assertEqual(HeldBalance.query.filter_by(order_id=waiting.id).one().status, "HELD")
        self.assertEqual(wallet_balance(db.session, self.world.vendor_owner.id), 85.0)

        run = JobRun.query.filter_by(job_name="process_auto_releases").one()
        self.assertTrue(run.ok)
        self.assertEqual(run.processed, 1)

        again = order_jobs.process_auto_releases(coordinator=self.coordinator)
        self.assertEqual(again["candidates"], 0)

    def test_coordinator_skips_ineligible_hold(self):
        fund_wallet(self.world.customer.id, 500)
        order = self.place(method="wallet")
        self.assertIsNone(self.coordinator.auto_release(order.id, now=datetime.utcnow() + timedelta(days=30)))


class StaleOrderJobTestCase(OrderTestCase):
    def test_unanswered_orders_time_out_and_refund(self):
        fund_wallet(self.world.customer.id, 500)
        stale = self.place(method="wallet")
        fresh = self.place()
        accepted = self.place()
        self.coordinator.vendor_accept(self.world.vendor_owner, accepted.id)
        for order_id in (stale.id, accepted.id):
            db.session.get(Order, order_id).created_at = datetime.utcnow() - timedelta(hours=2)
        db.session.commit()

        result = order_jobs.cancel_stale_orders(coordinator=self.coordinator)
        self.assertEqual(result["processed"], 1)
        db.session.expire_all()
        timed_out = db.session.get(Order, stale.id)
        self.assertEqual(timed_out.status, "CANCELLED")
        self.assertEqual(timed_out.cancel_reason, "Vendor did not respond in time")
        self.assertEqual(db.session.get(Order, fresh.id).status, "PLACED")
        self.assertEqual(db.session.get(Order, accepted.id).status, "VENDOR_ACCEPTED")
        self.assertEqual(wallet_balance(db.session, self.world.customer.id), 500.0)


class ReadyNotificationJobTestCase(OrderTestCase):
    def test_ready_orders_notify_once(self):
        ready = self.place()
        later = self.place()
        self.coordinator.vendor_accept(self.world.vendor_owner, ready.id, preparation_time=0)
        self.coordinator.vendor_accept(self.world.vendor_owner, later.id, preparation_time=45)
        self.notifications.sent.clear()

        result = order_jobs.send_ready_notifications(coordinator=self.coordinator)
        self.assertEqual(result["processed"], 1)
        self.assertTrue(db.session.get(Order, ready.id).is_ready_notification_sent)
        self.assertFalse(db.session.get(Order, later.id).is_ready_notification_sent)
        self.assertEqual(self.notifications.keys_for(self.world.customer.id), ["ORDER_READY"])
        self.assertEqual(self.notifications.keys_for(self.world.manager.id), ["ORDER_READY"])

        self.assertEqual(order_jobs.send_ready_notifications(coordinator=self.coordinator)["candidates"], 0)


if __name__ == "__main__":
    unittest.main()
