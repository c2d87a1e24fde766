from __future__ import annotations

import logging
from datetime import datetime

from swiftdrop.errors import ForbiddenError, InvalidTransitionError
from swiftdrop.integrations.notifications import templates
from swiftdrop.models import Order
from swiftdrop.services.actors import Actor, Role
from swiftdrop.services.assignment_guard import release_driver
from swiftdrop.services.commission_service import zero_commissions
from swiftdrop.services.order_state import OrderStatus, move_to
from swiftdrop.services.orders.base import load_vendor, require_manager_zone, zone_manager_ids
from swiftdrop.services.orders.settlement import refund_customer, reverse_party_credits

logger = logging.getLogger(__name__)


class Canceller:
    """Narrow port handed to handlers that end an order without owning cancellation."""

    def cancel(self, tx, order: Order, actor: Actor, *, reason: str = "", event_type: str = "ORDER_CANCELLED") -> Order:
        raise NotImplementedError


class CancellationHandler(Canceller):
    def cancel_order(self, tx, actor: Actor, order_id: int, *, reason: str = "") -> Order:
        order = tx.load_order(order_id)
        vendor = load_vendor(tx.session, order.vendor_id)
        self._authorize(actor, order, vendor)
        return self.cancel(tx, order, actor, reason=reason)

    def _authorize(self, actor: Actor, order: Order, vendor) -> None:
        status = (order.status or "").upper()
        if status in OrderStatus.TERMINAL:
            raise InvalidTransitionError(
                "ORDER_CANNOT_BE_CANCELLED",
                f"Order #{int(order.id)} is already {status}",
                details={"status": status},
            )
        if actor.role in (Role.ADMIN, Role.SYSTEM):
            return
        if actor.role == Role.MANAGER:
            require_manager_zone(actor, order)
            return
        if actor.role == Role.CUSTOMER:
            if int(order.author_id) != int(actor.id or 0):
                raise ForbiddenError("NOT_ORDER_OWNER", "Only the customer who placed this order can cancel it")
        elif actor.role == Role.VENDOR:
            if int(vendor.author_id) != int(actor.id or 0):
                raise ForbiddenError("NOT_VENDOR_OWNER", "Only the vendor owner can cancel this order")
        else:
            raise ForbiddenError("ROLE_NOT_ALLOWED", f"Role {actor.role} cannot cancel orders")
        if status not in OrderStatus.PRE_PICKUP:
            raise InvalidTransitionError(
                "ORDER_CANNOT_BE_CANCELLED",
                f"Order #{int(order.id)} can no longer be cancelled",
                details={"status": status},
            )

    def cancel(self, tx, order: Order, actor: Actor, *, reason: str = "", event_type: str = "ORDER_CANCELLED") -> Order:
        """Shared cancellation: status, commissions, money and driver in one unit of work."""
        session = tx.session
        vendor = load_vendor(session, order.vendor_id)
        previous = move_to(order, OrderStatus.CANCELLED, code="ORDER_CANNOT_BE_CANCELLED")
        order.cancel_reason = (reason or "").strip()[:240] or None
        order.updated_at = datetime.utcnow()

        refunded = refund_customer(session, order, actor_user_id=actor.id, reason=f"Refund for cancelled order #{int(order.id)}")
        reversed_amounts = reverse_party_credits(session, order, vendor)
        zero_commissions(order)
        release_driver(session, order.driver_id)

        logger.info(
            "order_cancelled order_id=%s previous=%s refunded=%.2f actor_role=%s",
            order.id,
            previous,
            refunded,
            actor.role,
        )
        template = templates.DELIVERY_FAILED if event_type == "DELIVERY_FAILED" else templates.ORDER_CANCELLED
        payload = {"order_id": int(order.id), "reason": order.cancel_reason or ""}
        tx.notify(int(order.author_id), template, **payload)
        if actor.role != Role.VENDOR:
            tx.notify(int(vendor.author_id), template, **payload)
        if order.driver_id and actor.role != Role.DRIVER:
            tx.notify(int(order.driver_id), template, **payload)
        if event_type == "DELIVERY_FAILED":
            tx.notify_many(zone_manager_ids(session, order.zone_id), template, **payload)
        tx.broadcast(order)
        tx.track(
            order,
            event_type,
            previous,
            actor,
            reason=order.cancel_reason or "",
            refunded=refunded,
            reversed={str(k): v for k, v in reversed_amounts.items()},
        )
        return order

    def cancel_if_stale(self, tx, actor: Actor, order_id: int, *, cutoff: datetime) -> Order | None:
        order = tx.load_order(order_id)
        if (order.status or "") != OrderStatus.PLACED or order.created_at is None or order.created_at > cutoff:
            return None
        return self.cancel(tx, order, actor, reason="Vendor did not respond in time", event_type="ORDER_TIMED_OUT")
