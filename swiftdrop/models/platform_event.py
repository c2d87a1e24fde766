from datetime import datetime
import json

from swiftdrop.extensions import db


class PlatformEvent(db.Model):
    """Order lifecycle and audit events."""

    __tablename__ = "platform_events"

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    event_type = db.Column(db.String(80), nullable=False, index=True)
    actor_user_id = db.Column(db.Integer, nullable=True, index=True)
    actor_role = db.Column(db.String(32), nullable=True)

    subject_type = db.Column(db.String(80), nullable=True, index=True)
    subject_id = db.Column(db.String(120), nullable=True, index=True)

    previous_status = db.Column(db.String(24), nullable=True)
    new_status = db.Column(db.String(24), nullable=True)

    request_id = db.Column(db.String(80), nullable=True, index=True)
    idempotency_key = db.Column(db.String(180), nullable=True, unique=True, index=True)
    metadata_json = db.Column(db.Text, nullable=True)

    def metadata_dict(self) -> dict:
        raw = self.metadata_json
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except ValueError:
            return {"raw": str(raw)}
        return parsed if isinstance(parsed, dict) else {"raw": str(raw)}

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "event_type": self.event_type or "",
            "actor_user_id": int(self.actor_user_id) if self.actor_user_id is not None else None,
            "actor_role": self.actor_role or "",
            "subject_type": self.subject_type or "",
            "subject_id": self.subject_id or "",
            "previous_status": self.previous_status or "",
            "new_status": self.new_status or "",
            "request_id": self.request_id or "",
            "metadata": self.metadata_dict(),
        }
