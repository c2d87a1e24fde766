from __future__ import annotations

import logging
from datetime import datetime, timedelta

from swiftdrop.extensions import db
from swiftdrop.integrations.broadcast import build_broadcast_sink
from swiftdrop.integrations.lifecycle import PlatformEventLifecycleSink
from swiftdrop.integrations.notifications import build_notification_sink
from swiftdrop.services.actors import Actor
from swiftdrop.services.orders.cancellation import CancellationHandler
from swiftdrop.services.orders.cash import CashHandler
from swiftdrop.services.orders.creation import CreationHandler
from swiftdrop.services.orders.delivery import DeliveryHandler, DeliveryOtpMismatch
from swiftdrop.services.orders.driver import DriverHandler
from swiftdrop.services.orders.protection import ProtectionHandler
from swiftdrop.services.orders.query import QueryHandler
from swiftdrop.services.orders.transaction import OrderTx
from swiftdrop.services.orders.vendor import VendorHandler

logger = logging.getLogger(__name__)


class OrderCoordinator:
    """Entry point for every order operation.

    Each public method runs one unit of work: the handler mutates rows through
    an ``OrderTx``, the coordinator commits (or rolls back on any exception),
    and only then hands the queued notifications, broadcasts and lifecycle
    events to the sinks. Sink failures are logged and never undo the commit.
    """

    def __init__(self, *, notifications=None, broadcaster=None, lifecycle=None, session=None):
        self.notifications = notifications or build_notification_sink()
        self.broadcaster = broadcaster or build_broadcast_sink()
        self.lifecycle = lifecycle or PlatformEventLifecycleSink()
        self._session = session

        self.cancellation = CancellationHandler()
        self.creation = CreationHandler()
        self.vendor = VendorHandler()
        self.driver = DriverHandler()
        self.delivery = DeliveryHandler(self.cancellation)
        self.cash = CashHandler()
        self.protection = ProtectionHandler()
        self.query = QueryHandler()

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def _run(self, fn, *args, **kwargs):
        tx = OrderTx(self.session)
        try:
            result = fn(tx, *args, **kwargs)
            tx.session.commit()
        except Exception:
            tx.session.rollback()
            raise
        self._dispatch(tx)
        return result

    def _dispatch(self, tx: OrderTx) -> None:
        for entry in tx.outbox:
            try:
                if entry.channel == "notify":
                    user_id, template_key, payload = entry.args
                    self.notifications.notify(user_id, template_key, payload)
                elif entry.channel == "notify_many":
                    user_ids, template_key, payload = entry.args
                    self.notifications.notify_many(user_ids, template_key, payload)
                elif entry.channel == "broadcast":
                    self.broadcaster.broadcast_order_update(*entry.args, **entry.kwargs)
                elif entry.channel == "lifecycle":
                    self.lifecycle.track_lifecycle_event(*entry.args, **entry.kwargs)
            except Exception:
                logger.exception("order_side_effect_failed channel=%s", entry.channel)
                self.session.rollback()

    # Creation / vendor

    def create_order(self, actor: Actor, **fields):
        return self._run(self.creation.create_order, actor, **fields)

    def vendor_accept(self, actor: Actor, order_id: int, preparation_time: int | None = None):
        return self._run(self.vendor.accept, actor, order_id, preparation_time=preparation_time)

    def vendor_reject(self, actor: Actor, order_id: int, reason: str = ""):
        return self._run(self.vendor.reject, actor, order_id, reason=reason)

    # Dispatch / driver

    def assign_driver(self, actor: Actor, order_id: int, driver_id: int):
        return self._run(self.driver.assign_driver, actor, order_id, driver_id)

    def driver_accept(self, actor: Actor, order_id: int):
        return self._run(self.driver.accept, actor, order_id)

    def driver_reject(self, actor: Actor, order_id: int, reason: str = ""):
        return self._run(self.driver.reject, actor, order_id, reason=reason)

    def confirm_pickup(self, actor: Actor, order_id: int):
        return self._run(self.driver.confirm_pickup, actor, order_id)

    def start_transit(self, actor: Actor, order_id: int):
        return self._run(self.driver.start_transit, actor, order_id)

    # Delivery / cancellation

    def mark_delivered(self, actor: Actor, order_id: int, otp: str | None = None):
        try:
            return self._run(self.delivery.mark_delivered, actor, order_id, otp=otp)
        except DeliveryOtpMismatch:
            # A wrong code burns the current one.
            self._run(self.delivery.rotate_otp, order_id)
            raise

    def report_problem(self, actor: Actor, order_id: int, reason: str = ""):
        return self._run(self.delivery.report_problem, actor, order_id, reason=reason)

    def cancel_order(self, actor: Actor, order_id: int, reason: str = ""):
        return self._run(self.cancellation.cancel_order, actor, order_id, reason=reason)

    # Queries

    def find_all(self, actor: Actor, status=None, page: int = 1, limit: int = 20) -> dict:
        return self.query.find_all(self.session, actor, status=status, page=page, limit=limit)

    def find_one(self, actor: Actor, order_id: int):
        return self.query.find_one(self.session, actor, order_id)

    # Cash

    def report_cash_collection(self, actor: Actor, order_id: int):
        return self._run(self.cash.report_cash_collection, actor, order_id)

    def confirm_cash_receipt(self, actor: Actor, order_id: int, note: str = ""):
        return self._run(self.cash.confirm_cash_receipt, actor, order_id, note=note)

    def confirm_manager_payout(self, actor: Actor, manager_id: int, start: datetime, end: datetime, note: str = ""):
        return self._run(self.cash.confirm_manager_payout, actor, manager_id=manager_id, start=start, end=end, note=note)

    def manager_pending_cash_orders(self, actor: Actor) -> list[dict]:
        return self.cash.manager_pending_cash_orders(self.session, actor)

    def manager_cash_summary(self, actor: Actor, manager_id: int | None = None, start=None, end=None) -> dict:
        return self.cash.manager_cash_summary(self.session, actor, manager_id=manager_id, start=start, end=end)

    def driver_pending_cash_orders(self, actor: Actor) -> list[dict]:
        return self.cash.driver_pending_cash_orders(self.session, actor)

    # Protection

    def confirm_delivery_receipt(self, actor: Actor, order_id: int):
        return self._run(self.protection.confirm_delivery_receipt, actor, order_id)

    def create_dispute(self, actor: Actor, order_id: int, reason: str, description: str = ""):
        return self._run(self.protection.create_dispute, actor, order_id, reason=reason, description=description)

    def add_driver_response(self, actor: Actor, order_id: int, response: str):
        return self._run(self.protection.add_driver_response, actor, order_id, response=response)

    def resolve_dispute(self, actor: Actor, order_id: int, decision: str, notes: str = ""):
        return self._run(self.protection.resolve_dispute, actor, order_id, decision=decision, notes=notes)

    def get_protection_status(self, actor: Actor, order_id: int) -> dict:
        order = self.query.find_one(self.session, actor, order_id)
        return self.protection.get_protection_status(self.session, actor, order)

    def get_delivery_otp(self, actor: Actor, order_id: int) -> dict:
        return self._run(self.protection.get_delivery_otp, actor, order_id)

    # Scheduled work, one order per unit of work

    def auto_release(self, order_id: int, now: datetime | None = None):
        return self._run(self.protection.auto_release, Actor.system(), order_id, now=now)

    def cancel_if_stale(self, order_id: int, timeout_minutes: int, now: datetime | None = None):
        cutoff = (now or datetime.utcnow()) - timedelta(minutes=int(timeout_minutes))
        return self._run(self.cancellation.cancel_if_stale, Actor.system(), order_id, cutoff=cutoff)

    def notify_ready(self, order_id: int, now: datetime | None = None) -> bool:
        return self._run(self.vendor.notify_ready, order_id, now=now)
