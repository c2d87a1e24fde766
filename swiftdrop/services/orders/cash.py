from __future__ import annotations

import json
import logging
from datetime import datetime

from swiftdrop.errors import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationFailureError
from swiftdrop.integrations.notifications import templates
from swiftdrop.models import ManagerAuditLog, ManagerCashConfirmation, ManagerPayoutConfirmation, Order, User
from swiftdrop.services.actors import Actor, Role
from swiftdrop.services.order_state import OrderStatus, require_status
from swiftdrop.services.orders.base import require_assigned_driver, require_manager_zone, require_role, zone_manager_ids
from swiftdrop.services.orders.settlement import KIND_CASH_HANDOVER, cash_due
from swiftdrop.utils.commission import money_major_to_minor, money_minor_to_major
from swiftdrop.utils.events import log_event
from swiftdrop.utils.wallets import post_txn

logger = logging.getLogger(__name__)


def _require_cash(order: Order) -> None:
    if not order.is_cash():
        raise ValidationFailureError("NOT_COD_ORDER", f"Order #{int(order.id)} is not cash on delivery")


def _sum_minor(values) -> int:
    return sum(money_major_to_minor(v) for v in values)


class CashHandler:
    def report_cash_collection(self, tx, actor: Actor, order_id: int) -> Order:
        order = tx.load_order(order_id)
        require_assigned_driver(actor, order)
        _require_cash(order)
        require_status(order, OrderStatus.COMPLETED, code="ORDER_NOT_COMPLETED")
        if order.cash_reported_at is not None:
            raise InvalidTransitionError("CASH_ALREADY_REPORTED", f"Cash for order #{int(order.id)} was already reported")

        order.cash_reported_at = datetime.utcnow()
        order.updated_at = order.cash_reported_at
        amount = cash_due(order)
        logger.info("cash_reported order_id=%s driver_id=%s amount=%.2f", order.id, actor.id, amount)

        tx.notify_many(zone_manager_ids(tx.session, order.zone_id), templates.CASH_REPORTED, order_id=int(order.id), amount=amount)
        tx.broadcast(order)
        tx.track(order, "CASH_REPORTED", order.status, actor, amount=amount)
        return order

    def confirm_cash_receipt(self, tx, actor: Actor, order_id: int, *, note: str = "") -> ManagerCashConfirmation:
        session = tx.session
        order = tx.load_order(order_id)
        require_manager_zone(actor, order)
        _require_cash(order)
        if order.cash_reported_at is None:
            raise ValidationFailureError("CASH_NOT_REPORTED", "Driver has not reported this cash yet")
        if (order.payment_status or "") == "paid":
            raise InvalidTransitionError("ORDER_ALREADY_PAID", f"Order #{int(order.id)} is already paid")

        amount = cash_due(order)
        now = datetime.utcnow()
        confirmation = ManagerCashConfirmation(
            manager_id=int(actor.id),
            driver_id=int(order.driver_id),
            order_id=int(order.id),
            amount=amount,
            note=(note or "").strip()[:240] or None,
            confirmed_at=now,
        )
        session.add(confirmation)
        order.payment_status = "paid"
        order.updated_at = now
        post_txn(
            session,
            user_id=int(order.driver_id),
            direction="credit",
            amount=amount,
            kind=KIND_CASH_HANDOVER,
            reference=f"order:{int(order.id)}",
            note=f"Cash handed over for order #{int(order.id)}",
            order_id=int(order.id),
        )
        session.add(
            ManagerAuditLog(
                manager_id=int(actor.id),
                action="confirm_cash",
                target_type="order",
                target_id=int(order.id),
                meta=json.dumps({"driver_id": int(order.driver_id), "amount": amount}),
                created_at=now,
            )
        )
        session.flush()
        logger.info("cash_confirmed order_id=%s manager_id=%s amount=%.2f", order.id, actor.id, amount)

        tx.notify(int(order.driver_id), templates.CASH_CONFIRMED, order_id=int(order.id), amount=amount)
        tx.broadcast(order)
        tx.track(order, "CASH_CONFIRMED", order.status, actor, amount=amount, manager_id=int(actor.id))
        return confirmation

    def confirm_manager_payout(self, tx, actor: Actor, *, manager_id: int, start: datetime, end: datetime,
                               note: str = "") -> ManagerPayoutConfirmation:
        require_role(actor, Role.ADMIN)
        session = tx.session
        manager = session.get(User, int(manager_id))
        if manager is None or (manager.role or "").lower() != Role.MANAGER:
            raise NotFoundError("MANAGER_NOT_FOUND", f"Manager #{manager_id} not found")
        if start is None or end is None or start >= end:
            raise ValidationFailureError("INVALID_DATE_RANGE", "start must be before end")

        duplicate = (
            session.query(ManagerPayoutConfirmation.id)
            .filter_by(manager_id=int(manager_id), period_start=start, period_end=end)
            .first()
        )
        if duplicate is not None:
            raise ValidationFailureError("PAYOUT_ALREADY_CONFIRMED", "A payout for this period was already confirmed")

        amounts = [
            row[0]
            for row in session.query(ManagerCashConfirmation.amount)
            .filter(
                ManagerCashConfirmation.manager_id == int(manager_id),
                ManagerCashConfirmation.confirmed_at >= start,
                ManagerCashConfirmation.confirmed_at < end,
            )
            .all()
        ]
        if not amounts:
            raise ValidationFailureError("NO_CASH_CONFIRMATIONS", "Manager has no cash confirmations in this period")

        total = money_minor_to_major(_sum_minor(amounts))
        payout = ManagerPayoutConfirmation(
            manager_id=int(manager_id),
            admin_id=int(actor.id),
            amount=total,
            period_start=start,
            period_end=end,
            confirmation_count=len(amounts),
            note=(note or "").strip()[:240] or None,
            created_at=datetime.utcnow(),
        )
        session.add(payout)
        session.flush()
        log_event(
            "manager_payout_confirmed",
            actor_user_id=int(actor.id),
            actor_role=actor.role,
            subject_type="user",
            subject_id=int(manager_id),
            idempotency_key=f"manager_payout:{int(manager_id)}:{start.isoformat()}:{end.isoformat()}",
            metadata={"amount": total, "confirmations": len(amounts)},
        )
        logger.info("manager_payout_confirmed manager_id=%s amount=%.2f count=%s", manager_id, total, len(amounts))
        tx.notify(int(manager_id), templates.PAYOUT_CONFIRMED, amount=f"{total:.2f}")
        return payout

    # Reports

    def manager_pending_cash_orders(self, session, actor: Actor) -> list[dict]:
        require_role(actor, Role.MANAGER)
        if not actor.zone_id:
            raise ForbiddenError("MANAGER_NO_ZONE", "Manager has no zone assigned")
        rows = (
            session.query(Order)
            .filter(
                Order.zone_id == int(actor.zone_id),
                Order.payment_method == "cash",
                Order.status == OrderStatus.COMPLETED,
                Order.payment_status != "paid",
            )
            .order_by(Order.id.asc())
            .all()
        )
        return [self._pending_row(o) for o in rows]

    def driver_pending_cash_orders(self, session, actor: Actor) -> list[dict]:
        require_role(actor, Role.DRIVER)
        rows = (
            session.query(Order)
            .filter(
                Order.driver_id == int(actor.id),
                Order.payment_method == "cash",
                Order.status == OrderStatus.COMPLETED,
                Order.payment_status != "paid",
            )
            .order_by(Order.id.asc())
            .all()
        )
        return [self._pending_row(o) for o in rows]

    def manager_cash_summary(self, session, actor: Actor, *, manager_id: int | None = None,
                             start: datetime | None = None, end: datetime | None = None) -> dict:
        if actor.role == Role.MANAGER:
            if manager_id is not None and int(manager_id) != int(actor.id):
                raise ForbiddenError("ROLE_NOT_ALLOWED", "Managers can only read their own cash summary")
            manager_id = int(actor.id)
        elif actor.role == Role.ADMIN:
            if manager_id is None:
                raise ValidationFailureError("MANAGER_ID_REQUIRED", "manager_id is required")
        else:
            raise ForbiddenError("ROLE_NOT_ALLOWED", f"Role {actor.role} cannot read cash summaries")

        conf_q = session.query(ManagerCashConfirmation.amount).filter(ManagerCashConfirmation.manager_id == int(manager_id))
        pay_q = session.query(ManagerPayoutConfirmation.amount).filter(ManagerPayoutConfirmation.manager_id == int(manager_id))
        all_conf_minor = _sum_minor(r[0] for r in conf_q.all())
        all_pay_minor = _sum_minor(r[0] for r in pay_q.all())

        if start is not None:
            conf_q = conf_q.filter(ManagerCashConfirmation.confirmed_at >= start)
            pay_q = pay_q.filter(ManagerPayoutConfirmation.created_at >= start)
        if end is not None:
            conf_q = conf_q.filter(ManagerCashConfirmation.confirmed_at < end)
            pay_q = pay_q.filter(ManagerPayoutConfirmation.created_at < end)
        period_conf = [r[0] for r in conf_q.all()]
        period_pay = [r[0] for r in pay_q.all()]

        return {
            "manager_id": int(manager_id),
            "period_start": start.isoformat() if start else None,
            "period_end": end.isoformat() if end else None,
            "confirmations_count": len(period_conf),
            "confirmations_total": money_minor_to_major(_sum_minor(period_conf)),
            "payouts_count": len(period_pay),
            "payouts_total": money_minor_to_major(_sum_minor(period_pay)),
            "cash_on_hand": money_minor_to_major(all_conf_minor - all_pay_minor),
        }

    def _pending_row(self, order: Order) -> dict:
        return {
            "order_id": int(order.id),
            "driver_id": int(order.driver_id) if order.driver_id else None,
            "amount_due": cash_due(order),
            "order_total": float(order.order_total or 0.0),
            "tip_amount": float(order.tip_amount or 0.0),
            "reported": order.cash_reported_at is not None,
            "cash_reported_at": order.cash_reported_at.isoformat() if order.cash_reported_at else None,
            "completed_at": order.updated_at.isoformat() if order.updated_at else None,
        }
