from __future__ import annotations

import json

from swiftdrop.extensions import db
from swiftdrop.integrations.common import DeliveryResult
from swiftdrop.integrations.notifications.base import NotificationSink
from swiftdrop.integrations.notifications.templates import render
from swiftdrop.models import Notification


class InAppNotificationSink(NotificationSink):
    """Queues in-app notification rows; push/SMS workers drain the queue."""

    name = "in_app"

    def notify(self, user_id: int, template_key: str, payload: dict | None = None) -> DeliveryResult:
        data = dict(payload or {})
        title, message = render(template_key, data)
        row = Notification(
            user_id=int(user_id),
            order_id=int(data["order_id"]) if data.get("order_id") else None,
            template_key=template_key[:48],
            channel="in_app",
            title=title[:160],
            message=message,
            status="queued",
            meta=json.dumps(data, separators=(",", ":"), default=str),
        )
        db.session.add(row)
        db.session.commit()
        return DeliveryResult(ok=True, code="OK", message="queued", raw={"notification_id": int(row.id)})
