from __future__ import annotations

import hmac
import logging
from datetime import datetime

from swiftdrop.errors import ForbiddenError, ValidationFailureError
from swiftdrop.integrations.notifications import templates
from swiftdrop.models import Order
from swiftdrop.services.actors import Actor, Role
from swiftdrop.services.assignment_guard import release_driver
from swiftdrop.services.commission_service import apply_driver_commission
from swiftdrop.services.escrow_service import update_split_at_pickup
from swiftdrop.services.order_state import OrderStatus, move_to, require_status
from swiftdrop.services.orders.base import generate_otp, load_vendor, require_assigned_driver, require_manager_zone
from swiftdrop.services.orders.settlement import settle_cash_order

logger = logging.getLogger(__name__)


class DeliveryOtpMismatch(ValidationFailureError):
    def __init__(self, order_id: int):
        super().__init__("INVALID_DELIVERY_OTP", "Delivery code does not match", details={"order_id": int(order_id)})
        self.order_id = int(order_id)


class DeliveryHandler:
    def __init__(self, canceller):
        self.canceller = canceller

    def mark_delivered(self, tx, actor: Actor, order_id: int, *, otp: str | None = None) -> Order:
        session = tx.session
        order = tx.load_order(order_id)
        if actor.role == Role.DRIVER:
            require_assigned_driver(actor, order)
        elif actor.role == Role.MANAGER:
            require_manager_zone(actor, order)
        elif actor.role != Role.ADMIN:
            raise ForbiddenError("ROLE_NOT_ALLOWED", f"Role {actor.role} cannot complete deliveries")
        require_status(order, OrderStatus.DRIVER_ENGAGED)

        if order.is_wallet():
            code = (str(otp) if otp is not None else "").strip()
            if not code:
                raise ValidationFailureError("OTP_REQUIRED", "Delivery code is required for wallet orders")
            if not order.delivery_otp or not hmac.compare_digest(code, order.delivery_otp):
                logger.info("delivery_otp_mismatch order_id=%s actor_role=%s", order.id, actor.role)
                raise DeliveryOtpMismatch(int(order.id))

        vendor = load_vendor(session, order.vendor_id)
        settings = tx.settings
        pickup_skipped = not order.driver_commission_applied
        if pickup_skipped:
            apply_driver_commission(session, order, settings)
            if order.is_wallet():
                update_split_at_pickup(session, order=order, auto_release_days=settings.wallet_auto_release_days)

        previous = move_to(order, OrderStatus.COMPLETED)
        order.delivery_otp = None
        order.updated_at = datetime.utcnow()
        release_driver(session, order.driver_id)
        if order.is_cash():
            settle_cash_order(session, order, vendor)
        logger.info("order_completed order_id=%s method=%s pickup_skipped=%s", order.id, order.payment_method, pickup_skipped)

        template = templates.CONFIRM_DELIVERY if order.is_wallet() else templates.ORDER_COMPLETED
        tx.notify(int(order.author_id), template, order_id=int(order.id))
        tx.notify(int(vendor.author_id), templates.ORDER_COMPLETED, order_id=int(order.id))
        tx.broadcast(order)
        tx.track(order, "ORDER_COMPLETED", previous, actor, pickup_skipped=pickup_skipped)
        return order

    def rotate_otp(self, tx, order_id: int) -> str:
        order = tx.load_order(order_id)
        order.delivery_otp = generate_otp()
        order.updated_at = datetime.utcnow()
        return order.delivery_otp

    def report_problem(self, tx, actor: Actor, order_id: int, *, reason: str = "") -> Order:
        order = tx.load_order(order_id)
        require_assigned_driver(actor, order)
        require_status(order, OrderStatus.DRIVER_ENGAGED)
        reason = (reason or "").strip() or "Driver reported a delivery problem"
        logger.info("delivery_problem_reported order_id=%s driver_id=%s", order.id, actor.id)
        return self.canceller.cancel(tx, order, actor, reason=reason, event_type="DELIVERY_FAILED")
