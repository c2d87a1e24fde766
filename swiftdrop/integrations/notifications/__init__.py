from swiftdrop.integrations.notifications.base import NotificationSink
from swiftdrop.integrations.notifications.factory import build_notification_sink

__all__ = ["NotificationSink", "build_notification_sink"]
