from datetime import datetime

from swiftdrop.extensions import db


class DriverStatus:
    OFFLINE = "OFFLINE"
    AVAILABLE = "AVAILABLE"
    BUSY = "BUSY"


class DriverProfile(db.Model):
    __tablename__ = "driver_profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)

    # Lock variable for dispatch. Written by the assignment guard and by
    # order transitions that free the driver.
    status = db.Column(db.String(16), nullable=False, default=DriverStatus.OFFLINE, index=True)
    is_online = db.Column(db.Boolean, nullable=False, default=False)

    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=True, index=True)
    vehicle_type = db.Column(db.String(32), nullable=True)

    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "user_id": int(self.user_id),
            "status": self.status or DriverStatus.OFFLINE,
            "is_online": bool(self.is_online),
            "zone_id": int(self.zone_id) if self.zone_id is not None else None,
            "vehicle_type": self.vehicle_type or "",
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
