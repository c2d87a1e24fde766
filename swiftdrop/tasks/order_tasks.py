from __future__ import annotations

import json
import logging
import time
from datetime import datetime

from celery import shared_task
from flask import current_app

from swiftdrop.jobs import order_jobs

logger = logging.getLogger(__name__)


def _task_log(task_name: str, *, status: str, started_at: float, trace_id: str = "", **extra):
    duration_ms = int(max(0.0, (time.perf_counter() - float(started_at))) * 1000.0)
    payload = {
        "task_name": task_name,
        "status": status,
        "duration_ms": duration_ms,
        "trace_id": str(trace_id or ""),
        "timestamp": datetime.utcnow().isoformat(),
    }
    payload.update(extra or {})
    current_app.logger.info(json.dumps(payload, default=str))


def _retry_countdown(retries: int) -> int:
    # Exponential backoff with cap.
    return int(min(900, max(5, 5 * (2 ** int(max(0, retries))))))


def _run_job(task, task_name: str, job, trace_id: str = "") -> dict:
    started = time.perf_counter()
    try:
        result = job()
    except Exception as exc:
        if int(task.request.retries or 0) < int(task.max_retries or 0):
            countdown = _retry_countdown(int(task.request.retries or 0))
            _task_log(task_name, status="retrying", started_at=started, trace_id=trace_id, detail=str(exc), countdown=countdown)
            raise task.retry(exc=exc, countdown=countdown)
        _task_log(task_name, status="failed", started_at=started, trace_id=trace_id, detail=str(exc))
        raise
    _task_log(
        task_name,
        status="ok" if result.get("ok") else "partial",
        started_at=started,
        trace_id=trace_id,
        processed=result.get("processed", 0),
        failed=result.get("failed", 0),
    )
    return result


@shared_task(bind=True, name="swiftdrop.tasks.order_tasks.process_auto_releases", max_retries=3)
def process_auto_releases_task(self, trace_id: str = ""):
    return _run_job(self, "process_auto_releases", order_jobs.process_auto_releases, trace_id)


@shared_task(bind=True, name="swiftdrop.tasks.order_tasks.cancel_stale_orders", max_retries=3)
def cancel_stale_orders_task(self, trace_id: str = ""):
    return _run_job(self, "cancel_stale_orders", order_jobs.cancel_stale_orders, trace_id)


@shared_task(bind=True, name="swiftdrop.tasks.order_tasks.send_ready_notifications", max_retries=3)
def send_ready_notifications_task(self, trace_id: str = ""):
    return _run_job(self, "send_ready_notifications", order_jobs.send_ready_notifications, trace_id)
