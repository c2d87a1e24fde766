from datetime import datetime

from swiftdrop.extensions import db


class Wallet(db.Model):
    __tablename__ = "wallets"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)
    # Drivers may go negative while they hold customers' cash.
    balance = db.Column(db.Float, nullable=False, default=0.0)
    currency = db.Column(db.String(8), nullable=False, default="EGP")
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "user_id": int(self.user_id),
            "balance": float(self.balance or 0.0),
            "currency": self.currency or "EGP",
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class WalletTxn(db.Model):
    __tablename__ = "wallet_txns"

    id = db.Column(db.Integer, primary_key=True)
    wallet_id = db.Column(db.Integer, db.ForeignKey("wallets.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    direction = db.Column(db.String(8), nullable=False)  # credit | debit
    amount = db.Column(db.Float, nullable=False, default=0.0)
    kind = db.Column(db.String(48), nullable=False, index=True)
    # AVAILABLE | HELD | RELEASED
    balance_type = db.Column(db.String(16), nullable=False, default="AVAILABLE")

    reference = db.Column(db.String(80), nullable=True, index=True)
    note = db.Column(db.String(240), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    def signed_amount(self) -> float:
        if (self.direction or "").strip().lower() == "debit":
            return -abs(float(self.amount or 0.0))
        return abs(float(self.amount or 0.0))

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "wallet_id": int(self.wallet_id),
            "user_id": int(self.user_id),
            "order_id": int(self.order_id) if self.order_id else None,
            "direction": self.direction,
            "amount": float(self.amount or 0.0),
            "kind": self.kind,
            "balance_type": self.balance_type or "AVAILABLE",
            "reference": self.reference or "",
            "note": self.note or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
