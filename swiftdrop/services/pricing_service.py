from __future__ import annotations

import math
from dataclasses import dataclass, field, asdict
from datetime import datetime

from swiftdrop.errors import NotFoundError, ValidationFailureError
from swiftdrop.models import Coupon, Order, Product
from swiftdrop.utils.commission import (
    compute_vendor_commission_minor,
    money_major_to_minor,
    money_minor_to_major,
)

EARTH_RADIUS_KM = 6371.0


@dataclass
class PricedLine:
    product_id: int
    name: str
    quantity: int
    unit_price: float
    line_total: float


@dataclass
class PricingQuote:
    lines: list[PricedLine] = field(default_factory=list)
    order_subtotal: float = 0.0
    discount_amount: float = 0.0
    delivery_charge: float = 0.0
    tip_amount: float = 0.0
    order_total: float = 0.0
    distance_km: float = 0.0
    coupon_code: str | None = None
    free_delivery_applied: bool = False
    admin_commission_percentage: float = 0.0
    admin_commission_amount: float = 0.0
    vendor_earnings: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def haversine_km(lat1, lon1, lat2, lon2) -> float:
    if None in (lat1, lon1, lat2, lon2):
        return 0.0
    p1, p2 = math.radians(float(lat1)), math.radians(float(lat2))
    dp = p2 - p1
    dl = math.radians(float(lon2) - float(lon1))
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 2)


def delivery_fee_for(distance_km: float, *, per_km: float, minimum: float) -> float:
    distance_minor = money_major_to_minor(distance_km)
    raw_minor = (distance_minor * money_major_to_minor(per_km) + 50) // 100
    return money_minor_to_major(max(int(raw_minor), money_major_to_minor(minimum)))


def _resolve_lines(session, vendor_id: int, items: list[dict]) -> list[tuple[Product, int]]:
    if not items:
        raise ValidationFailureError("ORDER_ITEMS_REQUIRED", "An order needs at least one product")
    resolved = []
    for raw in items:
        try:
            product_id = int(raw.get("product_id"))
            quantity = int(raw.get("quantity") or 1)
        except (TypeError, ValueError):
            raise ValidationFailureError("INVALID_ORDER_ITEM", "product_id and quantity must be integers")
        if quantity <= 0:
            raise ValidationFailureError("INVALID_QUANTITY", "Quantity must be positive")
        product = session.get(Product, product_id)
        if product is None or not product.is_active:
            raise NotFoundError("PRODUCT_NOT_FOUND", f"Product #{product_id} not found")
        if int(product.vendor_id) != int(vendor_id):
            raise ValidationFailureError("PRODUCT_VENDOR_MISMATCH", f"Product #{product_id} belongs to another vendor")
        resolved.append((product, quantity))
    return resolved


def _coupon_discount_minor(session, code: str | None, vendor_id: int, subtotal_minor: int) -> tuple[int, str | None]:
    code = (code or "").strip().upper()
    if not code:
        return 0, None
    coupon = session.query(Coupon).filter_by(code=code).first()
    now = datetime.utcnow()
    if (
        coupon is None
        or not coupon.is_active
        or (coupon.expires_at is not None and coupon.expires_at < now)
        or (coupon.vendor_id is not None and int(coupon.vendor_id) != int(vendor_id))
    ):
        raise ValidationFailureError("INVALID_COUPON", f"Coupon {code} is not valid for this order")
    if (coupon.discount_type or "percentage") == "flat":
        discount = money_major_to_minor(coupon.value)
    else:
        pct = max(0.0, min(float(coupon.value or 0.0), 100.0))
        discount = int((subtotal_minor * pct + 50) // 100)
    return min(discount, subtotal_minor), code


def is_first_order(session, customer_id: int) -> bool:
    return session.query(Order.id).filter(Order.author_id == int(customer_id)).first() is None


def quote_order(session, *, customer_id: int, vendor, address, items: list[dict], tip_amount: float = 0.0,
                coupon_code: str | None = None, settings) -> PricingQuote:
    resolved = _resolve_lines(session, int(vendor.id), items)
    lines = []
    subtotal_minor = 0
    for product, quantity in resolved:
        unit_minor = money_major_to_minor(product.unit_price())
        line_minor = unit_minor * quantity
        subtotal_minor += line_minor
        lines.append(
            PricedLine(
                product_id=int(product.id),
                name=product.name or "",
                quantity=quantity,
                unit_price=money_minor_to_major(unit_minor),
                line_total=money_minor_to_major(line_minor),
            )
        )

    distance = haversine_km(
        getattr(vendor, "latitude", None),
        getattr(vendor, "longitude", None),
        getattr(address, "latitude", None),
        getattr(address, "longitude", None),
    )
    delivery_minor = money_major_to_minor(
        delivery_fee_for(distance, per_km=settings.delivery_fee_per_km, minimum=settings.min_delivery_fee)
    )
    free_delivery = False
    if settings.first_order_free_delivery_enabled and is_first_order(session, customer_id):
        delivery_minor = 0
        free_delivery = True

    discount_minor, applied_code = _coupon_discount_minor(session, coupon_code, int(vendor.id), subtotal_minor)
    tip_minor = money_major_to_minor(tip_amount)

    commission = compute_vendor_commission_minor(
        base_minor=subtotal_minor - discount_minor,
        rate_pct=settings.vendor_commission_rate,
        free_plan=vendor.on_free_plan(),
    )
    total_minor = subtotal_minor + delivery_minor + tip_minor - discount_minor
    if total_minor < 0:
        total_minor = 0

    return PricingQuote(
        lines=lines,
        order_subtotal=money_minor_to_major(subtotal_minor),
        discount_amount=money_minor_to_major(discount_minor),
        delivery_charge=money_minor_to_major(delivery_minor),
        tip_amount=money_minor_to_major(tip_minor),
        order_total=money_minor_to_major(total_minor),
        distance_km=distance,
        coupon_code=applied_code,
        free_delivery_applied=free_delivery,
        admin_commission_percentage=float(commission["rate"]),
        admin_commission_amount=money_minor_to_major(commission["value_minor"]),
        vendor_earnings=money_minor_to_major(commission["net_minor"]),
    )
