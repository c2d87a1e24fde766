from datetime import datetime

from swiftdrop.extensions import db


class Zone(db.Model):
    __tablename__ = "zones"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {"id": int(self.id), "name": self.name or "", "is_active": bool(self.is_active)}


class SubscriptionPlan(db.Model):
    __tablename__ = "subscription_plans"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0)
    # -1 means unlimited orders for the plan period.
    total_orders = db.Column(db.Integer, nullable=False, default=-1)

    def is_free(self) -> bool:
        return float(self.price or 0.0) <= 0.0

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "name": self.name or "",
            "price": float(self.price or 0.0),
            "total_orders": int(self.total_orders if self.total_orders is not None else -1),
        }


class Vendor(db.Model):
    __tablename__ = "vendors"

    id = db.Column(db.Integer, primary_key=True)
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    title = db.Column(db.String(160), nullable=False)
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=True, index=True)

    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    subscription_plan_id = db.Column(db.Integer, db.ForeignKey("subscription_plans.id"), nullable=True)
    subscription_orders_remaining = db.Column(db.Integer, nullable=True)
    preparation_time_minutes = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    subscription_plan = db.relationship("SubscriptionPlan", lazy="joined")

    def on_free_plan(self) -> bool:
        plan = self.subscription_plan
        return plan is None or plan.is_free()

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "author_id": int(self.author_id),
            "title": self.title or "",
            "zone_id": int(self.zone_id) if self.zone_id is not None else None,
            "subscription_plan_id": int(self.subscription_plan_id) if self.subscription_plan_id else None,
            "subscription_orders_remaining": self.subscription_orders_remaining,
            "preparation_time_minutes": int(self.preparation_time_minutes or 0),
        }


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    name = db.Column(db.String(160), nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0)
    discount_price = db.Column(db.Float, nullable=True)
    # -1 means stock is not tracked.
    quantity = db.Column(db.Integer, nullable=False, default=-1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def unit_price(self) -> float:
        discounted = self.discount_price
        if discounted is not None and float(discounted) > 0:
            return float(discounted)
        return float(self.price or 0.0)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "vendor_id": int(self.vendor_id),
            "name": self.name or "",
            "price": float(self.price or 0.0),
            "discount_price": float(self.discount_price) if self.discount_price is not None else None,
            "quantity": int(self.quantity if self.quantity is not None else -1),
        }


class Address(db.Model):
    __tablename__ = "addresses"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    label = db.Column(db.String(80), nullable=True)
    line1 = db.Column(db.String(255), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "user_id": int(self.user_id),
            "label": self.label or "",
            "line1": self.line1 or "",
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


class Coupon(db.Model):
    __tablename__ = "coupons"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), nullable=False, unique=True, index=True)
    # Null vendor means the coupon is valid platform-wide.
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True, index=True)
    discount_type = db.Column(db.String(16), nullable=False, default="percentage")  # percentage | flat
    value = db.Column(db.Float, nullable=False, default=0.0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    expires_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "code": self.code,
            "vendor_id": int(self.vendor_id) if self.vendor_id else None,
            "discount_type": self.discount_type or "percentage",
            "value": float(self.value or 0.0),
            "is_active": bool(self.is_active),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
