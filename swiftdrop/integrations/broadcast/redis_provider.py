from __future__ import annotations

import json

import redis

from swiftdrop.integrations.broadcast.base import BroadcastSink, ORDER_UPDATED_EVENT, order_rooms
from swiftdrop.integrations.common import DeliveryResult


class RedisBroadcastSink(BroadcastSink):
    """Publishes order frames on one pub/sub channel per room.

    The socket gateway subscribes to ``<prefix>:<room>`` and relays frames to
    connected clients.
    """

    name = "redis"

    def __init__(self, *, url: str, channel_prefix: str = "swiftdrop:rooms"):
        self._client = redis.Redis.from_url(url, socket_timeout=1.0, socket_connect_timeout=1.0)
        self._prefix = channel_prefix.rstrip(":")

    def broadcast_order_update(self, order_view: dict, zone_id: int | None = None) -> DeliveryResult:
        rooms = order_rooms(order_view, zone_id)
        frame = json.dumps({"event": ORDER_UPDATED_EVENT, "payload": order_view}, separators=(",", ":"))
        receivers = 0
        pipe = self._client.pipeline(transaction=False)
        for room in rooms:
            pipe.publish(f"{self._prefix}:{room}", frame)
        for count in pipe.execute():
            receivers += int(count or 0)
        return DeliveryResult(ok=True, code="OK", message="published", raw={"rooms": rooms, "receivers": receivers})
