from datetime import datetime
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from swiftdrop.extensions import db


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False, default="")
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)
    phone = db.Column(db.String(32), unique=True, index=True, nullable=True)

    password_hash = db.Column(db.String(255), nullable=False, default="")

    # customer | vendor | driver | manager | admin
    role = db.Column(db.String(32), nullable=False, default="customer", index=True)

    # Managers and drivers operate inside one zone.
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def set_password(self, raw_password: str) -> None:
        self.password_hash = generate_password_hash(raw_password)

    def check_password(self, raw_password: str) -> bool:
        return check_password_hash(self.password_hash, raw_password)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": getattr(self, "phone", None),
            "role": self.role or "customer",
            "zone_id": int(self.zone_id) if self.zone_id is not None else None,
            "is_active": bool(self.is_active),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
