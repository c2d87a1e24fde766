from __future__ import annotations

from swiftdrop.errors import InvalidTransitionError


class OrderStatus:
    PLACED = "PLACED"
    VENDOR_ACCEPTED = "VENDOR_ACCEPTED"
    VENDOR_REJECTED = "VENDOR_REJECTED"
    DRIVER_PENDING = "DRIVER_PENDING"
    DRIVER_ACCEPTED = "DRIVER_ACCEPTED"
    DRIVER_REJECTED = "DRIVER_REJECTED"
    SHIPPED = "SHIPPED"
    IN_TRANSIT = "IN_TRANSIT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    TERMINAL = frozenset({COMPLETED, CANCELLED})

    ALLOWED = {
        PLACED: {VENDOR_ACCEPTED, VENDOR_REJECTED, CANCELLED},
        VENDOR_ACCEPTED: {DRIVER_PENDING, CANCELLED},
        DRIVER_PENDING: {DRIVER_PENDING, DRIVER_ACCEPTED, DRIVER_REJECTED, CANCELLED},
        DRIVER_REJECTED: {DRIVER_PENDING, CANCELLED},
        DRIVER_ACCEPTED: {SHIPPED, COMPLETED, CANCELLED},
        SHIPPED: {IN_TRANSIT, COMPLETED, CANCELLED},
        IN_TRANSIT: {COMPLETED, CANCELLED},
        VENDOR_REJECTED: {CANCELLED},
        COMPLETED: set(),
        CANCELLED: set(),
    }

    # Driver has the goods or is about to collect them.
    DRIVER_ENGAGED = frozenset({DRIVER_ACCEPTED, SHIPPED, IN_TRANSIT})
    # Customers and vendors may only cancel before pickup.
    PRE_PICKUP = frozenset({PLACED, VENDOR_ACCEPTED, VENDOR_REJECTED, DRIVER_PENDING, DRIVER_REJECTED, DRIVER_ACCEPTED})
    ASSIGNABLE = frozenset({VENDOR_ACCEPTED, DRIVER_PENDING, DRIVER_REJECTED})
    AWAITING_READY = frozenset({VENDOR_ACCEPTED, DRIVER_PENDING, DRIVER_ACCEPTED})

    @classmethod
    def all(cls) -> list[str]:
        return list(cls.ALLOWED.keys())

    @classmethod
    def can_transition(cls, current: str, target: str) -> bool:
        return target in cls.ALLOWED.get((current or "").upper(), set())


def require_status(order, allowed, *, code: str = "INVALID_STATUS") -> str:
    """Fail unless the order currently sits in one of the allowed states."""
    current = (order.status or "").upper()
    allowed_set = {allowed} if isinstance(allowed, str) else set(allowed)
    if current not in allowed_set:
        raise InvalidTransitionError(
            code,
            f"Order #{int(order.id)} is {current}",
            details={"status": current, "expected": sorted(allowed_set)},
        )
    return current


def move_to(order, target: str, *, code: str = "INVALID_STATUS") -> str:
    """Apply a status change along the graph; returns the previous status."""
    current = (order.status or "").upper()
    if not OrderStatus.can_transition(current, target):
        raise InvalidTransitionError(
            code,
            f"Order #{int(order.id)} cannot move from {current} to {target}",
            details={"status": current, "target": target},
        )
    order.status = target
    return current
