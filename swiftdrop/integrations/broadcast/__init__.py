from swiftdrop.integrations.broadcast.base import BroadcastSink, order_rooms
from swiftdrop.integrations.broadcast.factory import build_broadcast_sink

__all__ = ["BroadcastSink", "order_rooms", "build_broadcast_sink"]
