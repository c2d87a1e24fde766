from datetime import datetime

from swiftdrop.extensions import db


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)

    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    address_id = db.Column(db.Integer, db.ForeignKey("addresses.id"), nullable=True)
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=True, index=True)

    status = db.Column(db.String(24), nullable=False, default="PLACED", index=True)

    payment_method = db.Column(db.String(16), nullable=False, default="cash")  # cash | wallet | other
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")  # paid | unpaid

    order_subtotal = db.Column(db.Float, nullable=False, default=0.0)
    discount_amount = db.Column(db.Float, nullable=False, default=0.0)
    delivery_charge = db.Column(db.Float, nullable=False, default=0.0)
    tip_amount = db.Column(db.Float, nullable=False, default=0.0)
    order_total = db.Column(db.Float, nullable=False, default=0.0)
    distance_km = db.Column(db.Float, nullable=False, default=0.0)
    coupon_code = db.Column(db.String(40), nullable=True)

    # Estimates taken at creation time.
    admin_commission_percentage = db.Column(db.Float, nullable=False, default=0.0)
    admin_commission_amount = db.Column(db.Float, nullable=False, default=0.0)
    vendor_earnings = db.Column(db.Float, nullable=False, default=0.0)

    # Frozen once the matching *_applied flag is set.
    vendor_commission_rate = db.Column(db.Float, nullable=False, default=0.0)
    vendor_commission_value = db.Column(db.Float, nullable=False, default=0.0)
    vendor_net = db.Column(db.Float, nullable=False, default=0.0)
    driver_commission_rate = db.Column(db.Float, nullable=False, default=0.0)
    driver_commission_value = db.Column(db.Float, nullable=False, default=0.0)
    driver_net = db.Column(db.Float, nullable=False, default=0.0)
    platform_total_commission = db.Column(db.Float, nullable=False, default=0.0)
    vendor_commission_applied = db.Column(db.Boolean, nullable=False, default=False)
    driver_commission_applied = db.Column(db.Boolean, nullable=False, default=False)

    delivery_otp = db.Column(db.String(6), nullable=True)
    estimated_ready_at = db.Column(db.DateTime, nullable=True)
    is_ready_notification_sent = db.Column(db.Boolean, nullable=False, default=False)
    cash_reported_at = db.Column(db.DateTime, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    cancel_reason = db.Column(db.String(240), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    items = db.relationship("OrderItem", backref="order", lazy="selectin", order_by="OrderItem.id")

    def is_wallet(self) -> bool:
        return (self.payment_method or "").strip().lower() == "wallet"

    def is_cash(self) -> bool:
        return (self.payment_method or "").strip().lower() == "cash"

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "author_id": int(self.author_id),
            "vendor_id": int(self.vendor_id),
            "driver_id": int(self.driver_id) if self.driver_id else None,
            "manager_id": int(self.manager_id) if self.manager_id else None,
            "address_id": int(self.address_id) if self.address_id else None,
            "zone_id": int(self.zone_id) if self.zone_id else None,
            "status": self.status or "PLACED",
            "payment_method": self.payment_method or "cash",
            "payment_status": self.payment_status or "unpaid",
            "order_subtotal": float(self.order_subtotal or 0.0),
            "discount_amount": float(self.discount_amount or 0.0),
            "delivery_charge": float(self.delivery_charge or 0.0),
            "tip_amount": float(self.tip_amount or 0.0),
            "order_total": float(self.order_total or 0.0),
            "distance_km": float(self.distance_km or 0.0),
            "coupon_code": self.coupon_code or "",
            "admin_commission_percentage": float(self.admin_commission_percentage or 0.0),
            "admin_commission_amount": float(self.admin_commission_amount or 0.0),
            "vendor_earnings": float(self.vendor_earnings or 0.0),
            "vendor_commission_rate": float(self.vendor_commission_rate or 0.0),
            "vendor_commission_value": float(self.vendor_commission_value or 0.0),
            "vendor_net": float(self.vendor_net or 0.0),
            "driver_commission_rate": float(self.driver_commission_rate or 0.0),
            "driver_commission_value": float(self.driver_commission_value or 0.0),
            "driver_net": float(self.driver_net or 0.0),
            "platform_total_commission": float(self.platform_total_commission or 0.0),
            "vendor_commission_applied": bool(self.vendor_commission_applied),
            "driver_commission_applied": bool(self.driver_commission_applied),
            "estimated_ready_at": self.estimated_ready_at.isoformat() if self.estimated_ready_at else None,
            "cash_reported_at": self.cash_reported_at.isoformat() if self.cash_reported_at else None,
            "notes": self.notes or "",
            "cancel_reason": self.cancel_reason or "",
            "products": [item.to_dict() for item in (self.items or [])],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    name = db.Column(db.String(160), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Float, nullable=False, default=0.0)
    line_total = db.Column(db.Float, nullable=False, default=0.0)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "product_id": int(self.product_id),
            "name": self.name or "",
            "quantity": int(self.quantity or 0),
            "unit_price": float(self.unit_price or 0.0),
            "line_total": float(self.line_total or 0.0),
        }
