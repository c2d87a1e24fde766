from __future__ import annotations

import os

from swiftdrop.integrations.common import IntegrationMisconfiguredError
from swiftdrop.integrations.notifications.base import NotificationSink
from swiftdrop.integrations.notifications.in_app_provider import InAppNotificationSink
from swiftdrop.integrations.notifications.mock_provider import MockNotificationSink


def build_notification_sink(mode: str | None = None) -> NotificationSink:
    resolved = (mode or os.getenv("NOTIFICATIONS_MODE") or "in_app").strip().lower()
    if resolved == "in_app":
        return InAppNotificationSink()
    if resolved == "mock":
        return MockNotificationSink()
    raise IntegrationMisconfiguredError(f"INTEGRATION_MISCONFIGURED:unknown notifications mode {resolved}")
