from __future__ import annotations

from swiftdrop.integrations.common import DeliveryResult


class NotificationSink:
    name = "unknown"

    def notify(self, user_id: int, template_key: str, payload: dict | None = None) -> DeliveryResult:
        raise NotImplementedError

    def notify_many(self, user_ids: list[int], template_key: str, payload: dict | None = None) -> list[DeliveryResult]:
        seen: set[int] = set()
        results = []
        for uid in user_ids:
            if uid is None or int(uid) in seen:
                continue
            seen.add(int(uid))
            results.append(self.notify(int(uid), template_key, payload))
        return results
