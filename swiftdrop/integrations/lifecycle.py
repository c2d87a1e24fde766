from __future__ import annotations

from swiftdrop.extensions import db
from swiftdrop.utils.events import log_event


class LifecycleEventSink:
    def track_lifecycle_event(
        self,
        order_id: int,
        event_type: str,
        previous_status: str | None,
        new_status: str | None,
        actor_id: int | None,
        actor_role: str | None,
        metadata: dict | None = None,
    ) -> None:
        raise NotImplementedError


class PlatformEventLifecycleSink(LifecycleEventSink):
    """Persists lifecycle transitions as platform events."""

    def track_lifecycle_event(
        self,
        order_id: int,
        event_type: str,
        previous_status: str | None,
        new_status: str | None,
        actor_id: int | None,
        actor_role: str | None,
        metadata: dict | None = None,
    ) -> None:
        log_event(
            event_type,
            actor_user_id=actor_id,
            actor_role=actor_role,
            subject_type="order",
            subject_id=int(order_id),
            previous_status=previous_status,
            new_status=new_status,
            metadata=metadata,
        )
        db.session.commit()
