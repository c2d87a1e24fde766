from __future__ import annotations

from swiftdrop.integrations.common import DeliveryResult

ORDER_UPDATED_EVENT = "order_updated"


def order_rooms(order_view: dict, zone_id: int | None = None) -> list[str]:
    """Rooms interested in one order, most specific first."""
    rooms = [f"order_{order_view.get('id')}"]
    if order_view.get("vendor_id"):
        rooms.append(f"vendor_{order_view['vendor_id']}")
    if order_view.get("author_id"):
        rooms.append(f"user_{order_view['author_id']}")
    if order_view.get("driver_id"):
        rooms.append(f"driver_{order_view['driver_id']}")
    if zone_id:
        rooms.append(f"zone_{zone_id}")
    return rooms


class BroadcastSink:
    name = "unknown"

    def broadcast_order_update(self, order_view: dict, zone_id: int | None = None) -> DeliveryResult:
        raise NotImplementedError


class DisabledBroadcastSink(BroadcastSink):
    name = "disabled"

    def broadcast_order_update(self, order_view: dict, zone_id: int | None = None) -> DeliveryResult:
        return DeliveryResult(ok=True, code="DISABLED", message="broadcast disabled")
