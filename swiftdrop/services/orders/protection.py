from __future__ import annotations

import json
import logging
from datetime import datetime

from swiftdrop.errors import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationFailureError
from swiftdrop.integrations.notifications import templates
from swiftdrop.models import Dispute, DisputeAuditLog, HeldBalance, Order
from swiftdrop.services.actors import Actor, Role
from swiftdrop.services.escrow_service import (
    HeldBalanceStatus,
    ReleaseType,
    mark_disputed,
    refund_hold,
    release_hold,
)
from swiftdrop.services.order_state import OrderStatus, require_status
from swiftdrop.services.orders.base import generate_otp, require_manager_zone, require_order_author, require_role

logger = logging.getLogger(__name__)


class DisputeStatus:
    PENDING = "PENDING"
    RESOLVED_CUSTOMER = "RESOLVED_CUSTOMER"
    RESOLVED_DRIVER = "RESOLVED_DRIVER"


DECISIONS = {
    "customer": DisputeStatus.RESOLVED_CUSTOMER,
    "driver": DisputeStatus.RESOLVED_DRIVER,
}


def _locked_hold(session, order_id: int) -> HeldBalance | None:
    return session.query(HeldBalance).filter_by(order_id=int(order_id)).with_for_update().first()


def _latest_dispute(session, order_id: int) -> Dispute | None:
    return session.query(Dispute).filter_by(order_id=int(order_id)).order_by(Dispute.id.desc()).first()


def _audit(session, dispute: Dispute, actor: Actor, action: str, **meta) -> None:
    session.add(
        DisputeAuditLog(
            dispute_id=int(dispute.id),
            actor_user_id=actor.id,
            action=action,
            meta=json.dumps(meta) if meta else None,
            created_at=datetime.utcnow(),
        )
    )


class ProtectionHandler:
    def _protected_hold(self, tx, order: Order) -> HeldBalance:
        require_status(order, OrderStatus.COMPLETED, code="ORDER_NOT_COMPLETED")
        if not order.is_wallet():
            raise ValidationFailureError("NOT_WALLET_ORDER", "Only wallet orders carry buyer protection")
        hold = _locked_hold(tx.session, int(order.id))
        if hold is None or hold.status != HeldBalanceStatus.HELD:
            raise ValidationFailureError(
                "NO_HELD_BALANCE_OR_ALREADY_PROCESSED",
                f"Order #{int(order.id)} has no held payment to act on",
                details={"hold_status": hold.status if hold else None},
            )
        return hold

    def confirm_delivery_receipt(self, tx, actor: Actor, order_id: int) -> HeldBalance:
        order = tx.load_order(order_id)
        require_order_author(actor, order)
        hold = self._protected_hold(tx, order)
        release_hold(tx.session, hold, release_type=ReleaseType.CUSTOMER_CONFIRMATION, actor_user_id=actor.id)
        logger.info("delivery_receipt_confirmed order_id=%s", order.id)

        tx.notify_many([hold.vendor_user_id, hold.driver_id], templates.FUNDS_RELEASED, order_id=int(order.id))
        tx.track(order, "FUNDS_RELEASED", order.status, actor, release_type=ReleaseType.CUSTOMER_CONFIRMATION)
        return hold

    def create_dispute(self, tx, actor: Actor, order_id: int, *, reason: str, description: str = "") -> Dispute:
        session = tx.session
        order = tx.load_order(order_id)
        require_order_author(actor, order)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailureError("DISPUTE_REASON_REQUIRED", "A dispute needs a reason")
        if _latest_dispute(session, int(order.id)) is not None:
            raise InvalidTransitionError("DISPUTE_ALREADY_EXISTS", f"Order #{int(order.id)} already has a dispute")
        hold = self._protected_hold(tx, order)

        mark_disputed(hold)
        dispute = Dispute(
            order_id=int(order.id),
            held_balance_id=int(hold.id),
            customer_id=int(order.author_id),
            driver_id=int(order.driver_id) if order.driver_id else None,
            reason=reason[:64],
            description=(description or "").strip() or None,
            status=DisputeStatus.PENDING,
            created_at=datetime.utcnow(),
        )
        session.add(dispute)
        session.flush()
        _audit(session, dispute, actor, "created", reason=dispute.reason)
        logger.info("dispute_opened order_id=%s dispute_id=%s", order.id, dispute.id)

        tx.notify(order.driver_id, templates.DISPUTE_OPENED, order_id=int(order.id))
        tx.track(order, "DISPUTE_OPENED", order.status, actor, dispute_id=int(dispute.id), reason=dispute.reason)
        return dispute

    def add_driver_response(self, tx, actor: Actor, order_id: int, *, response: str) -> Dispute:
        session = tx.session
        order = tx.load_order(order_id)
        dispute = _latest_dispute(session, int(order.id))
        if dispute is None:
            raise NotFoundError("DISPUTE_NOT_FOUND", f"Order #{int(order.id)} has no dispute")
        if actor.role != Role.DRIVER or not dispute.driver_id or int(dispute.driver_id) != int(actor.id or 0):
            raise ForbiddenError("NOT_ASSIGNED_DRIVER", "Only the order's driver can respond to this dispute")
        if dispute.status != DisputeStatus.PENDING:
            raise InvalidTransitionError("DISPUTE_NOT_PENDING", "Dispute is already resolved", details={"status": dispute.status})
        text = (response or "").strip()
        if not text:
            raise ValidationFailureError("RESPONSE_REQUIRED", "Response text is required")

        dispute.driver_response = text
        dispute.driver_responded_at = datetime.utcnow()
        _audit(session, dispute, actor, "driver_response")

        tx.notify(int(dispute.customer_id), templates.DISPUTE_RESPONSE, order_id=int(order.id))
        tx.track(order, "DISPUTE_DRIVER_RESPONSE", order.status, actor, dispute_id=int(dispute.id))
        return dispute

    def resolve_dispute(self, tx, actor: Actor, order_id: int, *, decision: str, notes: str = "") -> Dispute:
        require_role(actor, Role.ADMIN)
        session = tx.session
        order = tx.load_order(order_id)
        dispute = _latest_dispute(session, int(order.id))
        if dispute is None:
            raise NotFoundError("DISPUTE_NOT_FOUND", f"Order #{int(order.id)} has no dispute")
        if dispute.status != DisputeStatus.PENDING:
            raise InvalidTransitionError("DISPUTE_NOT_PENDING", "Dispute is already resolved", details={"status": dispute.status})
        decision = (decision or "").strip().lower()
        if decision not in DECISIONS:
            raise ValidationFailureError("INVALID_DECISION", "decision must be 'customer' or 'driver'")

        hold = _locked_hold(session, int(order.id))
        if hold is None:
            raise ValidationFailureError("NO_HELD_BALANCE_OR_ALREADY_PROCESSED", "Dispute has no held payment")
        if decision == "customer":
            refund_hold(session, hold, actor_user_id=actor.id, reason=f"Dispute refund for order #{int(order.id)}")
            order.payment_status = "unpaid"
        else:
            release_hold(session, hold, release_type=ReleaseType.ADMIN_RESOLUTION, actor_user_id=actor.id)

        now = datetime.utcnow()
        dispute.status = DECISIONS[decision]
        dispute.resolution_notes = (notes or "").strip() or None
        dispute.resolved_by = int(actor.id)
        dispute.resolved_at = now
        order.updated_at = now
        _audit(session, dispute, actor, "resolved", decision=decision)
        logger.info("dispute_resolved order_id=%s decision=%s", order.id, decision)

        tx.notify_many([dispute.customer_id, dispute.driver_id], templates.DISPUTE_RESOLVED, order_id=int(order.id))
        if decision == "driver":
            tx.notify(hold.vendor_user_id, templates.FUNDS_RELEASED, order_id=int(order.id))
        tx.broadcast(order)
        tx.track(order, "DISPUTE_RESOLVED", order.status, actor, dispute_id=int(dispute.id), decision=decision)
        return dispute

    def get_protection_status(self, session, actor: Actor, order: Order) -> dict:
        if actor.role == Role.CUSTOMER:
            require_order_author(actor, order)
        elif actor.role == Role.MANAGER:
            require_manager_zone(actor, order)
        elif actor.role != Role.ADMIN:
            raise ForbiddenError("ROLE_NOT_ALLOWED", f"Role {actor.role} cannot read buyer protection")

        hold = session.query(HeldBalance).filter_by(order_id=int(order.id)).first()
        dispute = _latest_dispute(session, int(order.id))
        actionable = (
            (order.status or "") == OrderStatus.COMPLETED
            and hold is not None
            and hold.status == HeldBalanceStatus.HELD
        )
        is_owner = actor.role == Role.CUSTOMER and int(order.author_id) == int(actor.id or 0)
        return {
            "order_id": int(order.id),
            "order_status": order.status,
            "is_protected": order.is_wallet(),
            "held_balance": hold.to_dict() if hold else None,
            "dispute": dispute.to_dict() if dispute else None,
            "can_confirm_delivery": bool(actionable and is_owner),
            "can_dispute": bool(actionable and is_owner and dispute is None),
        }

    def get_delivery_otp(self, tx, actor: Actor, order_id: int) -> dict:
        order = tx.load_order(order_id)
        require_order_author(actor, order)
        if not order.is_wallet():
            raise ValidationFailureError("NOT_WALLET_ORDER", "Delivery codes are only issued for wallet orders")
        require_status(order, (OrderStatus.SHIPPED, OrderStatus.IN_TRANSIT), code="OTP_NOT_AVAILABLE")
        order.delivery_otp = generate_otp()
        order.updated_at = datetime.utcnow()
        return {"order_id": int(order.id), "otp": order.delivery_otp}

    def auto_release(self, tx, actor: Actor, order_id: int, *, now: datetime | None = None) -> HeldBalance | None:
        """Release one due hold. Returns None when the hold is no longer eligible."""
        now = now or datetime.utcnow()
        order = tx.load_order(order_id)
        hold = _locked_hold(tx.session, int(order.id))
        if (
            hold is None
            or hold.status != HeldBalanceStatus.HELD
            or (order.status or "") != OrderStatus.COMPLETED
            or hold.auto_release_date is None
            or hold.auto_release_date > now
        ):
            return None
        release_hold(tx.session, hold, release_type=ReleaseType.TIMEOUT_RELEASE, actor_user_id=None)
        tx.notify_many([hold.vendor_user_id, hold.driver_id, hold.customer_id], templates.FUNDS_RELEASED, order_id=int(order.id))
        tx.track(order, "FUNDS_RELEASED", order.status, actor, release_type=ReleaseType.TIMEOUT_RELEASE)
        return hold
