from __future__ import annotations

import logging
from datetime import datetime

from swiftdrop.errors import ForbiddenError, NotFoundError, ValidationFailureError
from swiftdrop.integrations.notifications import templates
from swiftdrop.models import Address, Order, OrderItem, Product
from swiftdrop.services.actors import Actor, Role
from swiftdrop.services.escrow_service import open_hold
from swiftdrop.services.order_state import OrderStatus
from swiftdrop.services.orders.base import load_vendor, require_role
from swiftdrop.services.pricing_service import quote_order
from swiftdrop.utils.commission import money_major_to_minor
from swiftdrop.utils.wallets import wallet_balance

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("cash", "wallet", "other")


class CreationHandler:
    def create_order(
        self,
        tx,
        actor: Actor,
        *,
        vendor_id: int,
        address_id: int,
        items: list[dict],
        payment_method: str,
        tip_amount: float = 0.0,
        coupon_code: str | None = None,
        notes: str | None = None,
    ) -> Order:
        require_role(actor, Role.CUSTOMER)
        session = tx.session
        settings = tx.settings

        method = (payment_method or "").strip().lower()
        if method not in PAYMENT_METHODS:
            raise ValidationFailureError("INVALID_PAYMENT_METHOD", f"Unknown payment method {payment_method!r}")
        if method == "wallet" and not settings.wallet_enabled:
            raise ValidationFailureError("PAYMENT_METHOD_DISABLED", "Wallet payments are disabled")
        if method == "cash" and not settings.cash_on_delivery_enabled:
            raise ValidationFailureError("PAYMENT_METHOD_DISABLED", "Cash on delivery is disabled")
        try:
            tip = float(tip_amount or 0.0)
        except (TypeError, ValueError):
            raise ValidationFailureError("INVALID_TIP", "tip_amount must be a number")
        if tip < 0:
            raise ValidationFailureError("INVALID_TIP", "tip_amount cannot be negative")

        vendor = load_vendor(session, vendor_id)
        if not vendor.is_active:
            raise ValidationFailureError("VENDOR_INACTIVE", "Vendor is not accepting orders")
        address = session.get(Address, int(address_id)) if address_id else None
        if address is None:
            raise NotFoundError("ADDRESS_NOT_FOUND", f"Address #{address_id} not found")
        if int(address.user_id) != int(actor.id):
            raise ForbiddenError("ADDRESS_NOT_OWNED", "Address belongs to another user")

        quote = quote_order(
            session,
            customer_id=int(actor.id),
            vendor=vendor,
            address=address,
            items=items,
            tip_amount=tip,
            coupon_code=coupon_code,
            settings=settings,
        )
        subtotal_minor = money_major_to_minor(quote.order_subtotal)
        if settings.min_order_amount > 0 and subtotal_minor < money_major_to_minor(settings.min_order_amount):
            raise ValidationFailureError(
                "ORDER_BELOW_MINIMUM",
                f"Minimum order amount is {settings.min_order_amount:.2f}",
                details={"min_order_amount": settings.min_order_amount},
            )
        if settings.max_order_amount > 0 and subtotal_minor > money_major_to_minor(settings.max_order_amount):
            raise ValidationFailureError(
                "ORDER_ABOVE_MAXIMUM",
                f"Maximum order amount is {settings.max_order_amount:.2f}",
                details={"max_order_amount": settings.max_order_amount},
            )

        self._take_stock(session, quote.lines)

        if method == "wallet":
            balance = wallet_balance(session, int(actor.id))
            if money_major_to_minor(balance) < money_major_to_minor(quote.order_total):
                raise ValidationFailureError(
                    "INSUFFICIENT_WALLET_BALANCE",
                    "Wallet balance does not cover the order total",
                    details={"balance": balance, "order_total": quote.order_total},
                )

        now = datetime.utcnow()
        order = Order(
            author_id=int(actor.id),
            vendor_id=int(vendor.id),
            address_id=int(address.id),
            zone_id=int(vendor.zone_id) if vendor.zone_id else None,
            status=OrderStatus.PLACED,
            payment_method=method,
            payment_status="unpaid",
            order_subtotal=quote.order_subtotal,
            discount_amount=quote.discount_amount,
            delivery_charge=quote.delivery_charge,
            tip_amount=quote.tip_amount,
            order_total=quote.order_total,
            distance_km=quote.distance_km,
            coupon_code=quote.coupon_code,
            admin_commission_percentage=quote.admin_commission_percentage,
            admin_commission_amount=quote.admin_commission_amount,
            vendor_earnings=quote.vendor_earnings,
            notes=(notes or "").strip() or None,
            created_at=now,
            updated_at=now,
        )
        session.add(order)
        session.flush()
        for line in quote.lines:
            session.add(
                OrderItem(
                    order_id=int(order.id),
                    product_id=line.product_id,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
            )

        if method == "wallet":
            open_hold(session, order=order, vendor=vendor, auto_release_days=settings.wallet_auto_release_days)
            order.payment_status = "paid"

        session.flush()
        session.refresh(order, ["items"])
        logger.info("order_created order_id=%s total=%.2f method=%s", order.id, order.order_total, method)

        tx.notify(
            int(vendor.author_id),
            templates.ORDER_PLACED,
            order_id=int(order.id),
            total=float(order.order_total),
        )
        tx.broadcast(order)
        tx.track(order, "ORDER_CREATED", None, actor, payment_method=method)
        return order

    def _take_stock(self, session, lines) -> None:
        for line in lines:
            product = session.query(Product).filter_by(id=int(line.product_id)).with_for_update().first()
            if product is None:
                raise NotFoundError("PRODUCT_NOT_FOUND", f"Product #{line.product_id} not found")
            if int(product.quantity) == -1:
                continue
            if int(product.quantity) < int(line.quantity):
                raise ValidationFailureError(
                    "INSUFFICIENT_STOCK",
                    f"Only {int(product.quantity)} of {product.name} left",
                    details={"product_id": int(product.id), "available": int(product.quantity)},
                )
            product.quantity = int(product.quantity) - int(line.quantity)
