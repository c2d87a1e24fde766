from __future__ import annotations

import json
import logging
from datetime import datetime

from swiftdrop.errors import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationFailureError
from swiftdrop.integrations.notifications import templates
from swiftdrop.models import DriverProfile, ManagerAuditLog, Order, User
from swiftdrop.services.actors import Actor, Role
from swiftdrop.services.assignment_guard import claim_driver, release_driver
from swiftdrop.services.commission_service import apply_driver_commission
from swiftdrop.services.escrow_service import update_split_at_pickup
from swiftdrop.services.order_state import OrderStatus, move_to, require_status
from swiftdrop.services.orders.base import (
    generate_otp,
    load_vendor,
    require_assigned_driver,
    require_manager_zone,
    require_vendor_owner,
    zone_manager_ids,
)
from swiftdrop.services.orders.settlement import cash_due
from swiftdrop.utils.commission import money_major_to_minor, money_minor_to_major
from swiftdrop.utils.wallets import wallet_balance

logger = logging.getLogger(__name__)


def check_debt_ceiling(session, order: Order, driver_id: int, max_driver_debt: float) -> dict:
    """Refuse a cash order that would push the driver's cash debt past the ceiling."""
    balance = wallet_balance(session, driver_id)
    balance_minor = money_major_to_minor(-balance) if balance < 0 else 0
    expected_minor = money_major_to_minor(cash_due(order)) if order.is_cash() else 0
    ceiling_minor = money_major_to_minor(max_driver_debt)
    info = {
        "current_debt": money_minor_to_major(balance_minor),
        "expected_cash": money_minor_to_major(expected_minor),
        "max_driver_debt": money_minor_to_major(ceiling_minor),
    }
    if balance_minor + expected_minor > ceiling_minor:
        raise ValidationFailureError(
            "DRIVER_MAX_DEBT_EXCEEDED",
            "Driver cash debt would exceed the configured ceiling",
            details=info,
        )
    return info


class DriverHandler:
    def assign_driver(self, tx, actor: Actor, order_id: int, driver_id: int) -> Order:
        session = tx.session
        order = tx.load_order(order_id)
        vendor = load_vendor(session, order.vendor_id)
        if actor.role == Role.MANAGER:
            require_manager_zone(actor, order)
        elif actor.role == Role.VENDOR:
            require_vendor_owner(actor, vendor)
        elif actor.role != Role.ADMIN:
            raise ForbiddenError("ROLE_NOT_ALLOWED", f"Role {actor.role} cannot assign drivers")

        status = (order.status or "").upper()
        if status in OrderStatus.TERMINAL:
            raise InvalidTransitionError(
                "CANNOT_ASSIGN_DRIVER_TO_CLOSED_ORDER",
                f"Order #{int(order.id)} is {status}",
                details={"status": status},
            )
        require_status(order, OrderStatus.ASSIGNABLE)

        try:
            driver_id = int(driver_id)
        except (TypeError, ValueError):
            raise ValidationFailureError("INVALID_DRIVER_ID", "driver_id must be an integer")
        driver = session.get(User, driver_id)
        if driver is None or (driver.role or "").lower() != Role.DRIVER:
            raise NotFoundError("DRIVER_NOT_FOUND", f"Driver #{driver_id} not found")
        profile = session.query(DriverProfile).filter_by(user_id=driver_id).first()
        if profile is None:
            raise ValidationFailureError("DRIVER_PROFILE_NOT_INITIALIZED", "Driver has no dispatch profile")

        if actor.role == Role.MANAGER:
            driver_zone = profile.zone_id or driver.zone_id
            if not driver_zone or int(driver_zone) != int(actor.zone_id):
                raise ForbiddenError("DRIVER_OUTSIDE_ZONE", "Driver works outside the manager's zone")
            if not profile.is_online:
                raise ValidationFailureError("DRIVER_OFFLINE", "Driver is offline")
            debt = check_debt_ceiling(session, order, driver_id, tx.settings.max_driver_debt)
            session.add(
                ManagerAuditLog(
                    manager_id=int(actor.id),
                    action="assign_driver",
                    target_type="order",
                    target_id=int(order.id),
                    meta=json.dumps({"driver_id": driver_id, **debt}),
                    created_at=datetime.utcnow(),
                )
            )

        previous_driver = int(order.driver_id) if order.driver_id else None
        if previous_driver != driver_id:
            claim_driver(session, driver_id)
            if previous_driver:
                release_driver(session, previous_driver)

        previous = move_to(order, OrderStatus.DRIVER_PENDING)
        order.driver_id = driver_id
        if actor.role == Role.MANAGER:
            order.manager_id = int(actor.id)
        order.updated_at = datetime.utcnow()
        logger.info("order_driver_assigned order_id=%s driver_id=%s previous_driver=%s", order.id, driver_id, previous_driver)

        tx.notify(driver_id, templates.DRIVER_ASSIGNED, order_id=int(order.id))
        if previous_driver and previous_driver != driver_id:
            tx.notify(previous_driver, templates.ORDER_CANCELLED, order_id=int(order.id))
        tx.broadcast(order)
        tx.track(order, "DRIVER_ASSIGNED", previous, actor, driver_id=driver_id, previous_driver_id=previous_driver)
        return order

    def accept(self, tx, actor: Actor, order_id: int) -> Order:
        order = tx.load_order(order_id)
        require_assigned_driver(actor, order)
        require_status(order, OrderStatus.DRIVER_PENDING)
        if order.is_cash():
            check_debt_ceiling(tx.session, order, int(actor.id), tx.settings.max_driver_debt)

        vendor = load_vendor(tx.session, order.vendor_id)
        previous = move_to(order, OrderStatus.DRIVER_ACCEPTED)
        order.updated_at = datetime.utcnow()

        tx.notify(int(order.author_id), templates.DRIVER_ACCEPTED, order_id=int(order.id))
        tx.notify(int(vendor.author_id), templates.DRIVER_ACCEPTED, order_id=int(order.id))
        tx.broadcast(order)
        tx.track(order, "DRIVER_ACCEPTED", previous, actor)
        return order

    def reject(self, tx, actor: Actor, order_id: int, *, reason: str = "") -> Order:
        order = tx.load_order(order_id)
        require_assigned_driver(actor, order)
        require_status(order, OrderStatus.DRIVER_PENDING)

        release_driver(tx.session, order.driver_id)
        previous = move_to(order, OrderStatus.DRIVER_REJECTED)
        order.driver_id = None
        order.updated_at = datetime.utcnow()

        tx.notify_many(
            zone_manager_ids(tx.session, order.zone_id),
            templates.DRIVER_REJECTED,
            order_id=int(order.id),
            reason=(reason or "").strip(),
        )
        tx.broadcast(order)
        tx.track(order, "DRIVER_REJECTED", previous, actor, driver_id=int(actor.id), reason=(reason or "").strip())
        return order

    def confirm_pickup(self, tx, actor: Actor, order_id: int) -> Order:
        order = tx.load_order(order_id)
        require_assigned_driver(actor, order)
        require_status(order, OrderStatus.DRIVER_ACCEPTED)
        now = datetime.utcnow()
        if order.estimated_ready_at is not None and order.estimated_ready_at > now:
            raise ValidationFailureError(
                "ORDER_NOT_READY_YET",
                "Order is still being prepared",
                details={"estimated_ready_at": order.estimated_ready_at.isoformat()},
            )

        settings = tx.settings
        if not order.driver_commission_applied:
            apply_driver_commission(tx.session, order, settings)
        order.delivery_otp = generate_otp()
        previous = move_to(order, OrderStatus.SHIPPED)
        order.updated_at = now
        if order.is_wallet():
            update_split_at_pickup(tx.session, order=order, auto_release_days=settings.wallet_auto_release_days)
        logger.info(
            "order_picked_up order_id=%s driver_net=%.2f platform_total=%.2f",
            order.id,
            order.driver_net,
            order.platform_total_commission,
        )

        tx.notify(int(order.author_id), templates.ORDER_SHIPPED, order_id=int(order.id))
        tx.broadcast(order)
        tx.track(order, "ORDER_SHIPPED", previous, actor)
        return order

    def start_transit(self, tx, actor: Actor, order_id: int) -> Order:
        order = tx.load_order(order_id)
        require_assigned_driver(actor, order)
        require_status(order, OrderStatus.SHIPPED)
        previous = move_to(order, OrderStatus.IN_TRANSIT)
        order.updated_at = datetime.utcnow()

        tx.notify(int(order.author_id), templates.ORDER_IN_TRANSIT, order_id=int(order.id))
        tx.broadcast(order)
        tx.track(order, "ORDER_IN_TRANSIT", previous, actor)
        return order

