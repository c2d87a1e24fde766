from datetime import datetime

from swiftdrop.extensions import db


class ManagerCashConfirmation(db.Model):
    """A manager confirmed that a driver handed over one order's cash."""

    __tablename__ = "manager_cash_confirmations"

    id = db.Column(db.Integer, primary_key=True)
    manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, unique=True, index=True)
    amount = db.Column(db.Float, nullable=False, default=0.0)
    note = db.Column(db.String(240), nullable=True)
    confirmed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "manager_id": int(self.manager_id),
            "driver_id": int(self.driver_id),
            "order_id": int(self.order_id),
            "amount": float(self.amount or 0.0),
            "note": self.note or "",
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
        }


class ManagerPayoutConfirmation(db.Model):
    """An admin paid a manager out for the cash collected over a date range."""

    __tablename__ = "manager_payout_confirmations"

    id = db.Column(db.Integer, primary_key=True)
    manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    amount = db.Column(db.Float, nullable=False, default=0.0)
    period_start = db.Column(db.DateTime, nullable=False, index=True)
    period_end = db.Column(db.DateTime, nullable=False)
    confirmation_count = db.Column(db.Integer, nullable=False, default=0)
    note = db.Column(db.String(240), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "manager_id": int(self.manager_id),
            "admin_id": int(self.admin_id),
            "amount": float(self.amount or 0.0),
            "period_start": self.period_start.isoformat() if self.period_start else None,
            "period_end": self.period_end.isoformat() if self.period_end else None,
            "confirmation_count": int(self.confirmation_count or 0),
            "note": self.note or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class ManagerAuditLog(db.Model):
    __tablename__ = "manager_audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    action = db.Column(db.String(48), nullable=False)
    target_type = db.Column(db.String(32), nullable=False, default="order")
    target_id = db.Column(db.Integer, nullable=True, index=True)
    meta = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
