from __future__ import annotations

from swiftdrop.integrations.common import DeliveryResult
from swiftdrop.integrations.notifications.base import NotificationSink


class MockNotificationSink(NotificationSink):
    name = "mock"

    def __init__(self):
        self.sent: list[tuple[int, str, dict]] = []

    def notify(self, user_id: int, template_key: str, payload: dict | None = None) -> DeliveryResult:
        self.sent.append((int(user_id), template_key, dict(payload or {})))
        return DeliveryResult(ok=True, code="OK", message="mock_sent")

    def keys_for(self, user_id: int) -> list[str]:
        return [key for uid, key, _ in self.sent if uid == int(user_id)]
