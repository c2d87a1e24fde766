from __future__ import annotations

import logging
from datetime import datetime, timedelta

from swiftdrop.errors import ValidationFailureError
from swiftdrop.models import HeldBalance, Order, Vendor, WalletTxn
from swiftdrop.utils.events import log_event
from swiftdrop.utils.wallets import platform_user_id, post_signed, post_txn

logger = logging.getLogger(__name__)

HOLD_REASON_AWAITING_CONFIRMATION = "awaiting_delivery_confirmation"

KIND_HELD_PAYMENT = "order_payment_held"
KIND_REFUND = "order_refund"
KIND_VENDOR_EARNINGS = "vendor_earnings"
KIND_DRIVER_EARNINGS = "driver_earnings"
KIND_PLATFORM_COMMISSION = "platform_commission"


class HeldBalanceStatus:
    HELD = "HELD"
    RELEASED = "RELEASED"
    REFUNDED = "REFUNDED"
    DISPUTED = "DISPUTED"

    ALLOWED = {
        HELD: {RELEASED, REFUNDED, DISPUTED},
        DISPUTED: {RELEASED, REFUNDED},
        RELEASED: set(),
        REFUNDED: set(),
    }


class ReleaseType:
    CUSTOMER_CONFIRMATION = "CUSTOMER_CONFIRMATION"
    TIMEOUT_RELEASE = "TIMEOUT_RELEASE"
    ADMIN_RESOLUTION = "ADMIN_RESOLUTION"


def _transition(hold: HeldBalance, target: str) -> str:
    current = (hold.status or HeldBalanceStatus.HELD).upper()
    if target not in HeldBalanceStatus.ALLOWED.get(current, set()):
        raise ValidationFailureError(
            "NO_HELD_BALANCE_OR_ALREADY_PROCESSED",
            f"Held balance for order #{int(hold.order_id)} is {current}",
            details={"status": current, "target": target},
        )
    hold.status = target
    hold.updated_at = datetime.utcnow()
    return current


def hold_for_order(session, order_id: int) -> HeldBalance | None:
    return session.query(HeldBalance).filter_by(order_id=int(order_id)).first()


def open_hold(session, *, order: Order, vendor: Vendor, auto_release_days: int) -> HeldBalance:
    """Debit the customer's spendable balance into escrow for a wallet order."""
    ref = f"order:{int(order.id)}"
    post_txn(
        session,
        user_id=int(order.author_id),
        direction="debit",
        amount=float(order.order_total or 0.0),
        kind=KIND_HELD_PAYMENT,
        reference=ref,
        note=f"Payment held for order #{int(order.id)}",
        order_id=int(order.id),
        balance_type="HELD",
    )
    hold = HeldBalance(
        order_id=int(order.id),
        customer_id=int(order.author_id),
        vendor_user_id=int(vendor.author_id),
        total_amount=float(order.order_total or 0.0),
        vendor_amount=float(order.vendor_earnings or 0.0),
        driver_amount=0.0,
        admin_amount=float(order.admin_commission_amount or 0.0),
        status=HeldBalanceStatus.HELD,
        hold_reason=HOLD_REASON_AWAITING_CONFIRMATION,
        auto_release_date=datetime.utcnow() + timedelta(days=int(auto_release_days)),
    )
    session.add(hold)
    session.flush()
    return hold


def update_split_at_pickup(session, *, order: Order, auto_release_days: int) -> HeldBalance | None:
    hold = hold_for_order(session, int(order.id))
    if hold is None or hold.status != HeldBalanceStatus.HELD:
        return hold
    hold.driver_id = int(order.driver_id) if order.driver_id else None
    hold.vendor_amount = float(order.vendor_net or 0.0)
    hold.driver_amount = round(float(order.driver_net or 0.0) + float(order.tip_amount or 0.0), 2)
    hold.admin_amount = float(order.platform_total_commission or 0.0)
    hold.auto_release_date = datetime.utcnow() + timedelta(days=int(auto_release_days))
    hold.updated_at = datetime.utcnow()
    return hold


def release_hold(session, hold: HeldBalance, *, release_type: str, actor_user_id: int | None = None) -> HeldBalance:
    """Credit every party its portion and close the hold."""
    previous = _transition(hold, HeldBalanceStatus.RELEASED)
    ref = f"order:{int(hold.order_id)}"
    post_txn(
        session,
        user_id=int(hold.vendor_user_id),
        direction="credit",
        amount=float(hold.vendor_amount or 0.0),
        kind=KIND_VENDOR_EARNINGS,
        reference=ref,
        note=f"Released earnings for order #{int(hold.order_id)}",
        order_id=int(hold.order_id),
    )
    if hold.driver_id and float(hold.driver_amount or 0.0) > 0:
        post_txn(
            session,
            user_id=int(hold.driver_id),
            direction="credit",
            amount=float(hold.driver_amount),
            kind=KIND_DRIVER_EARNINGS,
            reference=ref,
            note=f"Released delivery pay for order #{int(hold.order_id)}",
            order_id=int(hold.order_id),
        )
    if float(hold.admin_amount or 0.0) != 0:
        # Negative when the minimum driver pay exceeds the platform's take.
        post_signed(
            session,
            user_id=platform_user_id(session),
            amount=float(hold.admin_amount),
            kind=KIND_PLATFORM_COMMISSION,
            reference=ref,
            note=f"Platform commission for order #{int(hold.order_id)}",
            order_id=int(hold.order_id),
        )
    (
        session.query(WalletTxn)
        .filter(
            WalletTxn.order_id == int(hold.order_id),
            WalletTxn.kind == KIND_HELD_PAYMENT,
            WalletTxn.balance_type == "HELD",
        )
        .update({WalletTxn.balance_type: "RELEASED"}, synchronize_session=False)
    )
    hold.released_at = datetime.utcnow()
    hold.release_type = release_type
    log_event(
        "held_balance_released",
        actor_user_id=actor_user_id,
        subject_type="order",
        subject_id=int(hold.order_id),
        idempotency_key=f"held_balance_released:{int(hold.order_id)}",
        metadata={"release_type": release_type, "previous_status": previous},
    )
    return hold


def refund_hold(session, hold: HeldBalance, *, actor_user_id: int | None = None, reason: str = "") -> HeldBalance:
    """Return the full held amount to the customer."""
    previous = _transition(hold, HeldBalanceStatus.REFUNDED)
    post_txn(
        session,
        user_id=int(hold.customer_id),
        direction="credit",
        amount=float(hold.total_amount or 0.0),
        kind=KIND_REFUND,
        reference=f"order:{int(hold.order_id)}",
        note=(reason or f"Refund for order #{int(hold.order_id)}"),
        order_id=int(hold.order_id),
    )
    hold.refunded_at = datetime.utcnow()
    log_event(
        "held_balance_refunded",
        actor_user_id=actor_user_id,
        subject_type="order",
        subject_id=int(hold.order_id),
        idempotency_key=f"held_balance_refunded:{int(hold.order_id)}",
        metadata={"previous_status": previous, "reason": reason},
    )
    return hold


def mark_disputed(hold: HeldBalance) -> HeldBalance:
    _transition(hold, HeldBalanceStatus.DISPUTED)
    return hold
