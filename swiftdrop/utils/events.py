from __future__ import annotations

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from swiftdrop.extensions import db
from swiftdrop.models import PlatformEvent
from swiftdrop.utils.observability import get_request_id

logger = logging.getLogger(__name__)


def _safe_value(value: Any):
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _safe_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_safe_value(v) for v in value]
    return str(value)


def _safe_json(data: Any) -> str:
    normalized = _safe_value(data if isinstance(data, dict) else {"value": data})
    return json.dumps(normalized, separators=(",", ":"), ensure_ascii=False)


def log_event(
    event_type: str,
    *,
    actor_user_id: int | None = None,
    actor_role: str | None = None,
    subject_type: str | None = None,
    subject_id: int | str | None = None,
    previous_status: str | None = None,
    new_status: str | None = None,
    idempotency_key: str | None = None,
    metadata: dict | None = None,
) -> PlatformEvent | None:
    """Best-effort event writer inside a savepoint.

    The caller owns the commit. Failures are logged and return None.
    """
    key = (idempotency_key or "").strip()[:180] or None
    try:
        if key:
            existing = PlatformEvent.query.filter_by(idempotency_key=key).first()
            if existing:
                return existing

        event = PlatformEvent(
            event_type=(event_type or "unknown").strip()[:80],
            actor_user_id=int(actor_user_id) if actor_user_id is not None else None,
            actor_role=(actor_role or "").strip()[:32] or None,
            subject_type=(subject_type or "").strip()[:80] or None,
            subject_id=str(subject_id)[:120] if subject_id is not None else None,
            previous_status=(previous_status or "")[:24] or None,
            new_status=(new_status or "")[:24] or None,
            request_id=(get_request_id() or "")[:80] or None,
            idempotency_key=key,
            metadata_json=_safe_json(metadata or {}),
        )
        with db.session.begin_nested():
            db.session.add(event)
            db.session.flush()
        return event
    except IntegrityError:
        # Lost an idempotency race; the winner's row is the event.
        if key:
            return PlatformEvent.query.filter_by(idempotency_key=key).first()
        return None
    except SQLAlchemyError as exc:
        logger.warning("platform_event_write_failed type=%s err=%s", event_type, exc)
        return None
