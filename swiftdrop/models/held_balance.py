from datetime import datetime

from swiftdrop.extensions import db


class HeldBalance(db.Model):
    __tablename__ = "held_balances"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, unique=True, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    vendor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    driver_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    vendor_amount = db.Column(db.Float, nullable=False, default=0.0)
    driver_amount = db.Column(db.Float, nullable=False, default=0.0)
    admin_amount = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(db.String(16), nullable=False, default="HELD", index=True)
    hold_reason = db.Column(db.String(64), nullable=True)
    auto_release_date = db.Column(db.DateTime, nullable=True, index=True)

    released_at = db.Column(db.DateTime, nullable=True)
    release_type = db.Column(db.String(32), nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "order_id": int(self.order_id),
            "status": self.status,
            "total_amount": float(self.total_amount or 0.0),
            "vendor_amount": float(self.vendor_amount or 0.0),
            "driver_amount": float(self.driver_amount or 0.0),
            "admin_amount": float(self.admin_amount or 0.0),
            "hold_reason": self.hold_reason or "",
            "auto_release_date": self.auto_release_date.isoformat() if self.auto_release_date else None,
            "released_at": self.released_at.isoformat() if self.released_at else None,
            "release_type": self.release_type or "",
            "refunded_at": self.refunded_at.isoformat() if self.refunded_at else None,
        }


class Dispute(db.Model):
    __tablename__ = "disputes"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    held_balance_id = db.Column(db.Integer, db.ForeignKey("held_balances.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    reason = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(24), nullable=False, default="PENDING", index=True)

    driver_response = db.Column(db.Text, nullable=True)
    driver_responded_at = db.Column(db.DateTime, nullable=True)
    resolution_notes = db.Column(db.Text, nullable=True)
    resolved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "order_id": int(self.order_id),
            "customer_id": int(self.customer_id),
            "driver_id": int(self.driver_id) if self.driver_id else None,
            "reason": self.reason,
            "description": self.description or "",
            "status": self.status,
            "driver_response": self.driver_response or "",
            "driver_responded_at": self.driver_responded_at.isoformat() if self.driver_responded_at else None,
            "resolution_notes": self.resolution_notes or "",
            "resolved_by": int(self.resolved_by) if self.resolved_by else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class DisputeAuditLog(db.Model):
    __tablename__ = "dispute_audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    dispute_id = db.Column(db.Integer, db.ForeignKey("disputes.id"), nullable=False, index=True)
    actor_user_id = db.Column(db.Integer, nullable=True)
    action = db.Column(db.String(64), nullable=False)
    meta = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
