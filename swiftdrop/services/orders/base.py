from __future__ import annotations

import secrets

from swiftdrop.errors import ForbiddenError, NotFoundError
from swiftdrop.models import Order, User, Vendor
from swiftdrop.services.actors import Actor, Role


def generate_otp() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def load_vendor(session, vendor_id: int) -> Vendor:
    vendor = session.get(Vendor, int(vendor_id))
    if vendor is None:
        raise NotFoundError("VENDOR_NOT_FOUND", f"Vendor #{vendor_id} not found")
    return vendor


def require_role(actor: Actor, *roles: str) -> None:
    if actor.role not in roles:
        raise ForbiddenError("ROLE_NOT_ALLOWED", f"Role {actor.role} cannot perform this action")


def require_vendor_owner(actor: Actor, vendor: Vendor) -> None:
    if actor.role == Role.ADMIN:
        return
    if actor.role != Role.VENDOR or int(vendor.author_id) != int(actor.id or 0):
        raise ForbiddenError("NOT_VENDOR_OWNER", "Only the vendor owner can manage this order")


def require_order_author(actor: Actor, order: Order) -> None:
    if actor.role != Role.CUSTOMER or int(order.author_id) != int(actor.id or 0):
        raise ForbiddenError("NOT_ORDER_OWNER", "Only the customer who placed this order can do that")


def require_assigned_driver(actor: Actor, order: Order) -> None:
    if actor.role != Role.DRIVER or not order.driver_id or int(order.driver_id) != int(actor.id or 0):
        raise ForbiddenError("NOT_ASSIGNED_DRIVER", "Order is not assigned to this driver")


def require_manager_zone(actor: Actor, order: Order) -> None:
    if actor.role != Role.MANAGER:
        raise ForbiddenError("ROLE_NOT_ALLOWED", "Manager role required")
    if not actor.zone_id:
        raise ForbiddenError("MANAGER_NO_ZONE", "Manager has no zone assigned")
    if not order.zone_id or int(order.zone_id) != int(actor.zone_id):
        raise ForbiddenError("ORDER_OUTSIDE_ZONE", "Order is outside the manager's zone")


def can_view(actor: Actor, order: Order, vendor: Vendor | None) -> bool:
    if actor.role in (Role.ADMIN, Role.SYSTEM):
        return True
    uid = int(actor.id or 0)
    if actor.role == Role.CUSTOMER:
        return int(order.author_id) == uid
    if actor.role == Role.VENDOR:
        return vendor is not None and int(vendor.author_id) == uid
    if actor.role == Role.DRIVER:
        return bool(order.driver_id) and int(order.driver_id) == uid
    if actor.role == Role.MANAGER:
        return bool(actor.zone_id) and bool(order.zone_id) and int(order.zone_id) == int(actor.zone_id)
    return False


def zone_manager_ids(session, zone_id: int | None) -> list[int]:
    if not zone_id:
        return []
    rows = session.query(User.id).filter(User.role == Role.MANAGER, User.zone_id == int(zone_id)).all()
    return [int(r[0]) for r in rows]
