from __future__ import annotations

import logging
from datetime import datetime, timedelta

from swiftdrop.errors import OrderError
from swiftdrop.extensions import db
from swiftdrop.models import HeldBalance, Order
from swiftdrop.services.escrow_service import HeldBalanceStatus
from swiftdrop.services.order_state import OrderStatus
from swiftdrop.services.orders import OrderCoordinator
from swiftdrop.utils.job_runs import record_job_run
from swiftdrop.utils.platform_settings import get_platform_settings

logger = logging.getLogger(__name__)


def _now():
    return datetime.utcnow()


def _run_batch(job_name: str, order_ids: list[int], step) -> dict:
    """Apply ``step`` to each order in its own unit of work and record the run."""
    started = _now()
    processed = 0
    failed = 0
    errors = []
    for order_id in order_ids:
        try:
            if step(order_id):
                processed += 1
        except OrderError as exc:
            failed += 1
            errors.append(f"{order_id}:{exc.code}")
            logger.warning("%s_skipped order_id=%s code=%s", job_name, order_id, exc.code)
        except Exception as exc:
            db.session.rollback()
            failed += 1
            errors.append(f"{order_id}:{type(exc).__name__}")
            logger.exception("%s_failed order_id=%s", job_name, order_id)
    record_job_run(
        job_name=job_name,
        ok=failed == 0,
        started_at=started,
        processed=processed,
        failed=failed,
        error="; ".join(errors) or None,
    )
    return {"ok": failed == 0, "job": job_name, "candidates": len(order_ids), "processed": processed, "failed": failed}


def process_auto_releases(*, coordinator: OrderCoordinator | None = None, limit: int = 500) -> dict:
    """Release held payments whose protection window has passed on completed orders."""
    coordinator = coordinator or OrderCoordinator()
    now = _now()
    order_ids = [
        int(row[0])
        for row in db.session.query(HeldBalance.order_id)
        .join(Order, Order.id == HeldBalance.order_id)
        .filter(
            HeldBalance.status == HeldBalanceStatus.HELD,
            HeldBalance.auto_release_date <= now,
            Order.status == OrderStatus.COMPLETED,
        )
        .order_by(HeldBalance.auto_release_date.asc())
        .limit(int(limit))
        .all()
    ]
    return _run_batch("process_auto_releases", order_ids, lambda oid: coordinator.auto_release(oid, now=now) is not None)


def cancel_stale_orders(*, coordinator: OrderCoordinator | None = None, limit: int = 500) -> dict:
    """Cancel orders the vendor never answered within the configured timeout."""
    coordinator = coordinator or OrderCoordinator()
    now = _now()
    timeout = get_platform_settings().order_timeout_minutes
    cutoff = now - timedelta(minutes=timeout)
    order_ids = [
        int(row[0])
        for row in db.session.query(Order.id)
        .filter(Order.status == OrderStatus.PLACED, Order.created_at <= cutoff)
        .order_by(Order.created_at.asc())
        .limit(int(limit))
        .all()
    ]
    return _run_batch(
        "cancel_stale_orders",
        order_ids,
        lambda oid: coordinator.cancel_if_stale(oid, timeout, now=now) is not None,
    )


def send_ready_notifications(*, coordinator: OrderCoordinator | None = None, limit: int = 500) -> dict:
    coordinator = coordinator or OrderCoordinator()
    now = _now()
    order_ids = [
        int(row[0])
        for row in db.session.query(Order.id)
        .filter(
            Order.estimated_ready_at.isnot(None),
            Order.estimated_ready_at <= now,
            Order.is_ready_notification_sent.is_(False),
            Order.status.in_(sorted(OrderStatus.AWAITING_READY)),
        )
        .order_by(Order.estimated_ready_at.asc())
        .limit(int(limit))
        .all()
    ]
    return _run_batch("send_ready_notifications", order_ids, lambda oid: coordinator.notify_ready(oid, now=now))


def run_all(*, coordinator: OrderCoordinator | None = None) -> dict:
    coordinator = coordinator or OrderCoordinator()
    return {
        "auto_releases": process_auto_releases(coordinator=coordinator),
        "stale_orders": cancel_stale_orders(coordinator=coordinator),
        "ready_notifications": send_ready_notifications(coordinator=coordinator),
    }
