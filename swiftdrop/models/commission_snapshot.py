from datetime import datetime

from swiftdrop.extensions import db


class CommissionSnapshot(db.Model):
    """Immutable audit row for one commission application on one order."""

    __tablename__ = "commission_snapshots"
    __table_args__ = (db.UniqueConstraint("order_id", "source", name="uq_commission_snapshots_order_source"),)

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    source = db.Column(db.String(16), nullable=False, index=True)  # VENDOR | DRIVER
    party_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True, index=True)

    rate = db.Column(db.Float, nullable=False, default=0.0)
    base_amount = db.Column(db.Float, nullable=False, default=0.0)
    value = db.Column(db.Float, nullable=False, default=0.0)
    net_amount = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "order_id": int(self.order_id),
            "source": self.source,
            "party_user_id": int(self.party_user_id) if self.party_user_id else None,
            "vendor_id": int(self.vendor_id) if self.vendor_id else None,
            "rate": float(self.rate or 0.0),
            "base_amount": float(self.base_amount or 0.0),
            "value": float(self.value or 0.0),
            "net_amount": float(self.net_amount or 0.0),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
