from __future__ import annotations

import os

from swiftdrop.integrations.broadcast.base import BroadcastSink, ORDER_UPDATED_EVENT, order_rooms
from swiftdrop.integrations.common import DeliveryResult


class MockBroadcastSink(BroadcastSink):
    """Keeps every emitted frame in memory for tests and local runs."""

    name = "mock"

    def __init__(self):
        self.frames: list[dict] = []

    def _force_failure(self) -> bool:
        return (os.getenv("MOCK_BROADCAST_FORCE_FAIL") or "").strip() == "1"

    def broadcast_order_update(self, order_view: dict, zone_id: int | None = None) -> DeliveryResult:
        if self._force_failure():
            raise RuntimeError("mock broadcast forced failure")
        rooms = order_rooms(order_view, zone_id)
        for room in rooms:
            self.frames.append({"room": room, "event": ORDER_UPDATED_EVENT, "payload": dict(order_view)})
        return DeliveryResult(ok=True, code="OK", message="mock_emitted", raw={"rooms": rooms})

    def rooms_for(self, order_id: int) -> list[str]:
        return [f["room"] for f in self.frames if f["payload"].get("id") == order_id]
