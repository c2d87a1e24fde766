from __future__ import annotations

from swiftdrop.errors import ForbiddenError, NotFoundError, ValidationFailureError
from swiftdrop.models import Order, Vendor
from swiftdrop.services.actors import Actor, Role
from swiftdrop.services.order_state import OrderStatus
from swiftdrop.services.orders.base import can_view

MAX_PAGE_SIZE = 100


def _parse_statuses(raw) -> list[str]:
    if not raw:
        return []
    parts = raw if isinstance(raw, (list, tuple)) else str(raw).split(",")
    statuses = [p.strip().upper() for p in parts if p and p.strip()]
    unknown = [s for s in statuses if s not in OrderStatus.ALLOWED]
    if unknown:
        raise ValidationFailureError("INVALID_STATUS_FILTER", f"Unknown status {unknown[0]}", details={"unknown": unknown})
    return statuses


class QueryHandler:
    def find_all(self, session, actor: Actor, *, status=None, page: int = 1, limit: int = 20) -> dict:
        q = session.query(Order)
        if actor.role == Role.CUSTOMER:
            q = q.filter(Order.author_id == int(actor.id))
        elif actor.role == Role.VENDOR:
            q = q.join(Vendor, Vendor.id == Order.vendor_id).filter(Vendor.author_id == int(actor.id))
        elif actor.role == Role.DRIVER:
            q = q.filter(Order.driver_id == int(actor.id))
        elif actor.role == Role.MANAGER:
            if not actor.zone_id:
                raise ForbiddenError("MANAGER_NO_ZONE", "Manager has no zone assigned")
            q = q.filter(Order.zone_id == int(actor.zone_id))
        elif actor.role != Role.ADMIN:
            raise ForbiddenError("ROLE_NOT_ALLOWED", f"Role {actor.role} cannot list orders")

        statuses = _parse_statuses(status)
        if statuses:
            q = q.filter(Order.status.in_(statuses))

        try:
            page = max(1, int(page or 1))
            limit = int(limit or 20)
        except (TypeError, ValueError):
            raise ValidationFailureError("INVALID_PAGINATION", "page and limit must be integers")
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        total = q.count()
        rows = q.order_by(Order.created_at.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return {
            "items": [o.to_dict() for o in rows],
            "page": page,
            "limit": limit,
            "total": int(total),
        }

    def find_one(self, session, actor: Actor, order_id: int) -> Order:
        order = session.get(Order, int(order_id))
        if order is None:
            raise NotFoundError("ORDER_NOT_FOUND", f"Order #{order_id} not found")
        vendor = session.get(Vendor, int(order.vendor_id))
        if not can_view(actor, order, vendor):
            raise ForbiddenError("ORDER_ACCESS_DENIED", "You cannot view this order")
        return order
