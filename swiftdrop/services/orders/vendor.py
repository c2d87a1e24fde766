from __future__ import annotations

import logging
from datetime import datetime, timedelta

from swiftdrop.errors import ValidationFailureError
from swiftdrop.integrations.notifications import templates
from swiftdrop.models import Vendor
from swiftdrop.services.actors import Actor
from swiftdrop.services.commission_service import apply_vendor_commission
from swiftdrop.services.order_state import OrderStatus, move_to, require_status
from swiftdrop.services.orders.base import load_vendor, require_vendor_owner, zone_manager_ids
from swiftdrop.services.orders.settlement import refund_customer

logger = logging.getLogger(__name__)


class VendorHandler:
    def accept(self, tx, actor: Actor, order_id: int, *, preparation_time: int | None = None):
        order = tx.load_order(order_id)
        vendor = load_vendor(tx.session, order.vendor_id)
        require_vendor_owner(actor, vendor)
        require_status(order, OrderStatus.PLACED)
        if order.vendor_commission_applied:
            raise ValidationFailureError("COMMISSION_ALREADY_APPLIED", "Vendor commission was already applied")

        self._consume_subscription_order(vendor)

        if preparation_time is None or preparation_time == "":
            minutes = int(vendor.preparation_time_minutes or 0)
        else:
            try:
                minutes = int(preparation_time)
            except (TypeError, ValueError):
                raise ValidationFailureError("INVALID_PREPARATION_TIME", "preparation_time must be an integer")
            if minutes < 0:
                raise ValidationFailureError("INVALID_PREPARATION_TIME", "preparation_time cannot be negative")

        apply_vendor_commission(tx.session, order, vendor, tx.settings)
        previous = move_to(order, OrderStatus.VENDOR_ACCEPTED)
        now = datetime.utcnow()
        order.estimated_ready_at = now + timedelta(minutes=minutes)
        order.is_ready_notification_sent = False
        order.updated_at = now
        logger.info(
            "order_vendor_accepted order_id=%s commission=%.2f net=%.2f",
            order.id,
            order.vendor_commission_value,
            order.vendor_net,
        )

        tx.notify(int(order.author_id), templates.ORDER_ACCEPTED, order_id=int(order.id), preparation_time=minutes)
        tx.broadcast(order)
        tx.track(order, "VENDOR_ACCEPTED", previous, actor, preparation_time=minutes)
        return order

    def reject(self, tx, actor: Actor, order_id: int, *, reason: str = ""):
        order = tx.load_order(order_id)
        vendor = load_vendor(tx.session, order.vendor_id)
        require_vendor_owner(actor, vendor)
        require_status(order, OrderStatus.PLACED)

        previous = move_to(order, OrderStatus.VENDOR_REJECTED)
        order.cancel_reason = (reason or "").strip()[:240] or None
        order.updated_at = datetime.utcnow()
        refunded = refund_customer(
            tx.session,
            order,
            actor_user_id=actor.id,
            reason=f"Refund for rejected order #{int(order.id)}",
        )

        tx.notify(int(order.author_id), templates.ORDER_REJECTED, order_id=int(order.id), reason=order.cancel_reason or "")
        tx.broadcast(order)
        tx.track(order, "VENDOR_REJECTED", previous, actor, reason=order.cancel_reason or "", refunded=refunded)
        return order

    def _consume_subscription_order(self, vendor: Vendor) -> None:
        plan = vendor.subscription_plan
        if plan is None or plan.is_free() or int(plan.total_orders) == -1:
            return
        remaining = int(vendor.subscription_orders_remaining or 0)
        if remaining <= 0:
            raise ValidationFailureError(
                "SUBSCRIPTION_ORDER_LIMIT_REACHED",
                "Vendor subscription has no orders left",
                details={"vendor_id": int(vendor.id)},
            )
        vendor.subscription_orders_remaining = remaining - 1

    def notify_ready(self, tx, order_id: int, *, now: datetime | None = None) -> bool:
        """Tell everyone waiting on a prepared order, once."""
        now = now or datetime.utcnow()
        order = tx.load_order(order_id)
        if (
            order.is_ready_notification_sent
            or order.estimated_ready_at is None
            or order.estimated_ready_at > now
            or (order.status or "") not in OrderStatus.AWAITING_READY
        ):
            return False
        order.is_ready_notification_sent = True
        recipients = [order.author_id, order.driver_id] + zone_manager_ids(tx.session, order.zone_id)
        tx.notify_many(recipients, templates.ORDER_READY, order_id=int(order.id))
        tx.broadcast(order)
        return True
