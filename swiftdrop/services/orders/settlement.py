from __future__ import annotations

import logging

from swiftdrop.models import Order, Vendor
from swiftdrop.services.escrow_service import (
    KIND_DRIVER_EARNINGS,
    KIND_PLATFORM_COMMISSION,
    KIND_REFUND,
    KIND_VENDOR_EARNINGS,
    HeldBalanceStatus,
    hold_for_order,
    refund_hold,
)
from swiftdrop.utils.commission import money_major_to_minor, money_minor_to_major
from swiftdrop.utils.wallets import net_posted_for_order, platform_user_id, post_signed, post_txn

logger = logging.getLogger(__name__)

KIND_COD_CASH_DUE = "cod_cash_due"
KIND_CASH_HANDOVER = "cash_handover"
KIND_REVERSAL = "order_reversal"

PARTY_KINDS = (KIND_VENDOR_EARNINGS, KIND_DRIVER_EARNINGS, KIND_PLATFORM_COMMISSION, KIND_REVERSAL)


def cash_due(order: Order) -> float:
    """Cash a driver collects on behalf of the platform; the tip stays with the driver."""
    due = money_major_to_minor(order.order_total) - money_major_to_minor(order.tip_amount)
    return money_minor_to_major(max(0, due))


def refund_customer(session, order: Order, *, actor_user_id: int | None, reason: str = "") -> float:
    """Return a paid wallet order's total to the customer. Returns the refunded amount."""
    if not order.is_wallet() or (order.payment_status or "") != "paid":
        return 0.0
    hold = hold_for_order(session, int(order.id))
    if hold is not None and hold.status in (HeldBalanceStatus.HELD, HeldBalanceStatus.DISPUTED):
        refund_hold(session, hold, actor_user_id=actor_user_id, reason=reason)
    else:
        post_txn(
            session,
            user_id=int(order.author_id),
            direction="credit",
            amount=float(order.order_total or 0.0),
            kind=KIND_REFUND,
            reference=f"order:{int(order.id)}",
            note=(reason or f"Refund for order #{int(order.id)}"),
            order_id=int(order.id),
        )
    order.payment_status = "unpaid"
    return float(order.order_total or 0.0)


def reverse_party_credits(session, order: Order, vendor: Vendor) -> dict:
    """Undo vendor, driver and platform postings for the order by exactly what was posted.

    Party credits are only posted once an order is COMPLETED, which is
    terminal, so no cancellation the state machine allows finds a non-zero
    net today. This stays as a guard against credits posted out of band.
    Reversal rows carry their own kind and count toward the net, so a second
    pass finds nothing left to reverse.
    """
    parties = {int(vendor.author_id)}
    if order.driver_id:
        parties.add(int(order.driver_id))
    parties.add(platform_user_id(session))
    reversed_amounts = {}
    for user_id in sorted(parties):
        net = net_posted_for_order(session, order_id=int(order.id), user_id=user_id, kinds=PARTY_KINDS)
        if net == 0:
            continue
        post_signed(
            session,
            user_id=user_id,
            amount=-net,
            kind=KIND_REVERSAL,
            reference=f"order:{int(order.id)}",
            note=f"Reversal for cancelled order #{int(order.id)}",
            order_id=int(order.id),
        )
        reversed_amounts[user_id] = net
    if reversed_amounts:
        logger.info("order_credits_reversed order_id=%s parties=%s", order.id, reversed_amounts)
    return reversed_amounts


def settle_cash_order(session, order: Order, vendor: Vendor) -> None:
    """Post a completed cash order's splits and the driver's cash debt."""
    ref = f"order:{int(order.id)}"
    post_txn(
        session,
        user_id=int(vendor.author_id),
        direction="credit",
        amount=float(order.vendor_net or 0.0),
        kind=KIND_VENDOR_EARNINGS,
        reference=ref,
        note=f"Vendor earnings for cash order #{int(order.id)}",
        order_id=int(order.id),
    )
    if order.driver_id:
        post_txn(
            session,
            user_id=int(order.driver_id),
            direction="credit",
            amount=float(order.driver_net or 0.0),
            kind=KIND_DRIVER_EARNINGS,
            reference=ref,
            note=f"Delivery pay for cash order #{int(order.id)}",
            order_id=int(order.id),
        )
        post_txn(
            session,
            user_id=int(order.driver_id),
            direction="debit",
            amount=cash_due(order),
            kind=KIND_COD_CASH_DUE,
            reference=ref,
            note=f"Cash collected for order #{int(order.id)}",
            order_id=int(order.id),
        )
    post_signed(
        session,
        user_id=platform_user_id(session),
        amount=float(order.platform_total_commission or 0.0),
        kind=KIND_PLATFORM_COMMISSION,
        reference=ref,
        note=f"Platform commission for cash order #{int(order.id)}",
        order_id=int(order.id),
    )
