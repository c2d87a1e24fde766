from __future__ import annotations

from dataclasses import dataclass, field

from swiftdrop.errors import NotFoundError
from swiftdrop.models import Order
from swiftdrop.utils.platform_settings import PlatformSettings, get_platform_settings


@dataclass
class OutboxEntry:
    channel: str  # notify | notify_many | broadcast | lifecycle
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)


class OrderTx:
    """Transaction handle threaded through every mutating handler call.

    Wraps the session for one unit of work and collects the side effects that
    may only run once that unit of work has committed.
    """

    def __init__(self, session, settings: PlatformSettings | None = None):
        self.session = session
        self._settings = settings
        self.outbox: list[OutboxEntry] = []

    @property
    def settings(self) -> PlatformSettings:
        if self._settings is None:
            self._settings = get_platform_settings()
        return self._settings

    def load_order(self, order_id: int, *, lock: bool = True) -> Order:
        q = self.session.query(Order).filter(Order.id == int(order_id))
        if lock:
            q = q.with_for_update()
        order = q.first()
        if order is None:
            raise NotFoundError("ORDER_NOT_FOUND", f"Order #{order_id} not found")
        return order

    def notify(self, user_id: int | None, template_key: str, **payload) -> None:
        if user_id:
            self.outbox.append(OutboxEntry("notify", (int(user_id), template_key, payload)))

    def notify_many(self, user_ids, template_key: str, **payload) -> None:
        ids = [int(uid) for uid in (user_ids or []) if uid]
        if ids:
            self.outbox.append(OutboxEntry("notify_many", (ids, template_key, payload)))

    def broadcast(self, order: Order) -> None:
        self.session.flush()
        view = order.to_dict()
        self.outbox.append(OutboxEntry("broadcast", (view,), {"zone_id": order.zone_id}))

    def track(self, order: Order, event_type: str, previous_status: str | None, actor, **metadata) -> None:
        self.session.flush()
        self.outbox.append(
            OutboxEntry(
                "lifecycle",
                (int(order.id), event_type, previous_status, order.status, actor.id, actor.role),
                {"metadata": metadata or None},
            )
        )
