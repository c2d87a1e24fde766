from datetime import datetime
import json

from swiftdrop.extensions import db


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, nullable=True, index=True)

    template_key = db.Column(db.String(48), nullable=False, index=True)
    channel = db.Column(db.String(32), nullable=False, default="in_app")
    title = db.Column(db.String(160), nullable=True)
    message = db.Column(db.Text, nullable=False, default="")

    status = db.Column(db.String(24), nullable=False, default="queued")  # queued | sent | failed
    is_read = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    meta = db.Column(db.Text, nullable=True)

    def meta_dict(self) -> dict:
        raw = (self.meta or "").strip()
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "template_key": self.template_key,
            "channel": self.channel or "in_app",
            "title": self.title or "",
            "message": self.message or "",
            "status": self.status or "queued",
            "is_read": bool(self.is_read),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "meta": self.meta_dict(),
        }
