from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func

from swiftdrop.extensions import db
from swiftdrop.models import CommissionSnapshot, Order, Vendor
from swiftdrop.services.order_state import OrderStatus
from swiftdrop.utils.commission import (
    compute_driver_commission_minor,
    compute_vendor_commission_minor,
    money_major_to_minor,
    money_minor_to_major,
    signed_major_to_minor,
)

logger = logging.getLogger(__name__)

SOURCE_VENDOR = "VENDOR"
SOURCE_DRIVER = "DRIVER"


def record_snapshot(session, *, order: Order, source: str, party_user_id: int | None, rate: float,
                    base_amount: float, value: float, net_amount: float) -> CommissionSnapshot:
    existing = session.query(CommissionSnapshot).filter_by(order_id=int(order.id), source=source).first()
    if existing is not None:
        return existing
    row = CommissionSnapshot(
        order_id=int(order.id),
        source=source,
        party_user_id=int(party_user_id) if party_user_id else None,
        vendor_id=int(order.vendor_id),
        rate=float(rate or 0.0),
        base_amount=float(base_amount or 0.0),
        value=float(value or 0.0),
        net_amount=float(net_amount or 0.0),
        created_at=datetime.utcnow(),
    )
    session.add(row)
    return row


def _refresh_platform_total(order: Order) -> None:
    if order.vendor_commission_applied and order.driver_commission_applied:
        order.platform_total_commission = money_minor_to_major(
            money_major_to_minor(order.vendor_commission_value)
            + signed_major_to_minor(order.driver_commission_value)
        )


def apply_vendor_commission(session, order: Order, vendor: Vendor, settings) -> dict:
    base_minor = money_major_to_minor(order.order_subtotal) - money_major_to_minor(order.discount_amount)
    free_plan = vendor.on_free_plan()
    result = compute_vendor_commission_minor(
        base_minor=base_minor,
        rate_pct=settings.vendor_commission_rate,
        free_plan=free_plan,
    )
    order.vendor_commission_rate = float(result["rate"])
    order.vendor_commission_value = money_minor_to_major(result["value_minor"])
    order.vendor_net = money_minor_to_major(result["net_minor"])
    order.vendor_commission_applied = True
    if free_plan:
        record_snapshot(
            session,
            order=order,
            source=SOURCE_VENDOR,
            party_user_id=int(vendor.author_id),
            rate=order.vendor_commission_rate,
            base_amount=money_minor_to_major(result["base_minor"]),
            value=order.vendor_commission_value,
            net_amount=order.vendor_net,
        )
    _refresh_platform_total(order)
    return result


def apply_driver_commission(session, order: Order, settings) -> dict:
    result = compute_driver_commission_minor(
        fee_minor=money_major_to_minor(order.delivery_charge),
        rate_pct=settings.driver_commission_rate,
        min_pay_minor=money_major_to_minor(settings.min_delivery_pay),
    )
    order.driver_commission_rate = float(result["rate"])
    order.driver_net = money_minor_to_major(result["net_minor"])
    order.driver_commission_value = money_minor_to_major(result["value_minor"])
    order.driver_commission_applied = True
    if result["floor_applied"]:
        logger.info("driver_min_pay_floor_applied order_id=%s", order.id)
    record_snapshot(
        session,
        order=order,
        source=SOURCE_DRIVER,
        party_user_id=int(order.driver_id) if order.driver_id else None,
        rate=order.driver_commission_rate,
        base_amount=money_minor_to_major(result["base_minor"]),
        value=order.driver_commission_value,
        net_amount=order.driver_net,
    )
    _refresh_platform_total(order)
    return result


def zero_commissions(order: Order) -> None:
    order.admin_commission_amount = 0.0
    order.admin_commission_percentage = 0.0
    order.vendor_commission_rate = 0.0
    order.vendor_commission_value = 0.0
    order.vendor_net = 0.0
    order.driver_commission_rate = 0.0
    order.driver_commission_value = 0.0
    order.driver_net = 0.0
    order.platform_total_commission = 0.0
    order.vendor_commission_applied = False
    order.driver_commission_applied = False


def _in_range(query, column, start: datetime | None, end: datetime | None):
    if start is not None:
        query = query.filter(column >= start)
    if end is not None:
        query = query.filter(column < end)
    return query


def snapshots_for_order(order_id: int) -> list[dict]:
    rows = CommissionSnapshot.query.filter_by(order_id=int(order_id)).order_by(CommissionSnapshot.id.asc()).all()
    return [r.to_dict() for r in rows]


def totals_by_source(*, start: datetime | None = None, end: datetime | None = None,
                     vendor_id: int | None = None, party_user_id: int | None = None) -> dict:
    q = db.session.query(
        CommissionSnapshot.source,
        func.count(CommissionSnapshot.id),
        func.coalesce(func.sum(CommissionSnapshot.value), 0.0),
        func.coalesce(func.sum(CommissionSnapshot.net_amount), 0.0),
    )
    q = _in_range(q, CommissionSnapshot.created_at, start, end)
    if vendor_id is not None:
        q = q.filter(CommissionSnapshot.vendor_id == int(vendor_id))
    if party_user_id is not None:
        q = q.filter(CommissionSnapshot.party_user_id == int(party_user_id))
    out = {
        SOURCE_VENDOR: {"count": 0, "commission": 0.0, "net": 0.0},
        SOURCE_DRIVER: {"count": 0, "commission": 0.0, "net": 0.0},
    }
    for source, count, value, net in q.group_by(CommissionSnapshot.source).all():
        out[source] = {"count": int(count or 0), "commission": round(float(value or 0.0), 2), "net": round(float(net or 0.0), 2)}
    return out


def platform_commission_total(*, start: datetime | None = None, end: datetime | None = None) -> dict:
    q = db.session.query(
        func.count(Order.id),
        func.coalesce(func.sum(Order.vendor_commission_value), 0.0),
        func.coalesce(func.sum(Order.driver_commission_value), 0.0),
        func.coalesce(func.sum(Order.platform_total_commission), 0.0),
    ).filter(Order.vendor_commission_applied.is_(True), Order.driver_commission_applied.is_(True))
    count, vendor_total, driver_total, platform_total = _in_range(q, Order.created_at, start, end).one()
    return {
        "orders": int(count or 0),
        "vendor_commission": round(float(vendor_total or 0.0), 2),
        "driver_commission": round(float(driver_total or 0.0), 2),
        "platform_total": round(float(platform_total or 0.0), 2),
    }


def vendor_net_receivables(*, vendor_id: int | None = None, start: datetime | None = None,
                           end: datetime | None = None) -> list[dict]:
    q = db.session.query(
        Order.vendor_id,
        func.count(Order.id),
        func.coalesce(func.sum(Order.vendor_net), 0.0),
        func.coalesce(func.sum(Order.vendor_commission_value), 0.0),
    ).filter(Order.status == OrderStatus.COMPLETED)
    if vendor_id is not None:
        q = q.filter(Order.vendor_id == int(vendor_id))
    q = _in_range(q, Order.created_at, start, end).group_by(Order.vendor_id).order_by(Order.vendor_id.asc())
    return [
        {
            "vendor_id": int(vid),
            "orders": int(count or 0),
            "vendor_net": round(float(net or 0.0), 2),
            "commission": round(float(commission or 0.0), 2),
        }
        for vid, count, net, commission in q.all()
    ]


def driver_earnings(*, driver_id: int | None = None, start: datetime | None = None,
                    end: datetime | None = None) -> list[dict]:
    q = db.session.query(
        Order.driver_id,
        func.count(Order.id),
        func.coalesce(func.sum(Order.driver_net), 0.0),
        func.coalesce(func.sum(Order.tip_amount), 0.0),
        func.coalesce(func.sum(Order.driver_commission_value), 0.0),
    ).filter(Order.status == OrderStatus.COMPLETED, Order.driver_id.isnot(None))
    if driver_id is not None:
        q = q.filter(Order.driver_id == int(driver_id))
    q = _in_range(q, Order.created_at, start, end).group_by(Order.driver_id).order_by(Order.driver_id.asc())
    return [
        {
            "driver_id": int(did),
            "orders": int(count or 0),
            "driver_net": round(float(net or 0.0), 2),
            "tips": round(float(tips or 0.0), 2),
            "commission": round(float(commission or 0.0), 2),
        }
        for did, count, net, tips, commission in q.all()
    ]


def monthly_report(*, year: int) -> list[dict]:
    start = datetime(int(year), 1, 1)
    end = datetime(int(year) + 1, 1, 1)
    rows = (
        Order.query.filter(
            Order.status == OrderStatus.COMPLETED,
            Order.created_at >= start,
            Order.created_at < end,
        )
        .with_entities(
            Order.created_at,
            Order.vendor_commission_value,
            Order.driver_commission_value,
            Order.platform_total_commission,
            Order.order_total,
        )
        .all()
    )
    months = {
        m: {"month": m, "orders": 0, "vendor_commission": 0, "driver_commission": 0, "platform_total": 0, "gross": 0}
        for m in range(1, 13)
    }
    for created_at, vendor_value, driver_value, platform_total, gross in rows:
        bucket = months[created_at.month]
        bucket["orders"] += 1
        bucket["vendor_commission"] += money_major_to_minor(vendor_value)
        bucket["driver_commission"] += signed_major_to_minor(driver_value)
        bucket["platform_total"] += signed_major_to_minor(platform_total)
        bucket["gross"] += money_major_to_minor(gross)
    report = []
    for m in range(1, 13):
        bucket = months[m]
        report.append(
            {
                "month": m,
                "orders": bucket["orders"],
                "vendor_commission": money_minor_to_major(bucket["vendor_commission"]),
                "driver_commission": money_minor_to_major(bucket["driver_commission"]),
                "platform_total": money_minor_to_major(bucket["platform_total"]),
                "gross": money_minor_to_major(bucket["gross"]),
            }
        )
    return report
