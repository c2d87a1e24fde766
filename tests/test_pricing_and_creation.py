from __future__ import annotations

import unittest
from datetime import datetime, timedelta

from order_fixtures import OrderTestCase, fund_wallet

from swiftdrop.extensions import db
from swiftdrop.models import Coupon, HeldBalance, Order, Product
from swiftdrop.services.pricing_service import delivery_fee_for, haversine_km
from swiftdrop.utils.platform_settings import (
    FIRST_ORDER_FREE_DELIVERY_ENABLED,
    MIN_ORDER_AMOUNT,
    WALLET_ENABLED,
    set_setting,
)
from swiftdrop.utils.wallets import wallet_balance


class DeliveryFeeTestCase(unittest.TestCase):
    def test_per_km_fee_with_minimum(self):
        self.assertEqual(delivery_fee_for(3.5, per_km=5, minimum=10), 17.5)
        self.assertEqual(delivery_fee_for(1.0, per_km=5, minimum=10), 10.0)

    def test_haversine_handles_missing_coordinates(self):
        self.assertEqual(haversine_km(None, 31.2, 30.0, 31.3), 0.0)
        # Roughly 11.1 km per 0.1 degree of latitude.
        self.assertAlmostEqual(haversine_km(30.0, 31.0, 30.1, 31.0), 11.12, delta=0.05)


class OrderPricingTestCase(OrderTestCase):
    def test_cash_order_totals_and_vendor_preview(self):
        order = self.place(tip=5)
        self.assertEqual(order.status, "PLACED")
        self.assertEqual(order.order_subtotal, 100.0)
        self.assertEqual(order.delivery_charge, 20.0)
        self.assertEqual(order.tip_amount, 5.0)
        self.assertEqual(order.order_total, 125.0)
        self.assertEqual(order.admin_commission_amount, 15.0)
        self.assertEqual(order.vendor_earnings, 85.0)
        self.assertEqual(order.payment_status, "unpaid")
        self.assertEqual(len(order.items), 1)
        self.assertIn("ORDER_PLACED", self.notifications.keys_for(self.world.vendor_owner.id))

    def test_percentage_coupon_reduces_commission_base(self):
        db.session.add(Coupon(code="SAVE10", discount_type="percentage", value=10))
        db.session.commit()
        order = self.place(quantity=2, coupon="save10")
        self.assertEqual(order.order_subtotal, 200.0)
        self.assertEqual(order.discount_amount, 20.0)
        self.assertEqual(order.order_total, 200.0)
        self.assertEqual(order.admin_commission_amount, 27.0)
        self.assertEqual(order.vendor_earnings, 153.0)
        self.assertEqual(order.coupon_code, "SAVE10")

    def test_flat_coupon_and_expired_coupon(self):
        db.session.add_all(
            [
                Coupon(code="FLAT30", discount_type="flat", value=30),
                Coupon(code="OLD", discount_type="flat", value=30, expires_at=datetime.utcnow() - timedelta(days=1)),
            ]
        )
        db.session.commit()
        order = self.place(coupon="FLAT30")
        self.assertEqual(order.discount_amount, 30.0)
        self.assertEqual(order.order_total, 90.0)
        self.assertOrderError("INVALID_COUPON", self.place, coupon="OLD")

    def test_first_order_free_delivery(self):
        set_setting(FIRST_ORDER_FREE_DELIVERY_ENABLED, True)
        first = self.place()
        second = self.place()
        self.assertEqual(first.delivery_charge, 0.0)
        self.assertEqual(first.order_total, 100.0)
        self.assertEqual(second.delivery_charge, 20.0)


class OrderCreationRulesTestCase(OrderTestCase):
    def test_stock_is_decremented_and_never_oversold(self):
        product = db.session.get(Product, self.world.product_id)
        product.quantity = 1
        db.session.commit()

        self.assertOrderError("INSUFFICIENT_STOCK", self.place, quantity=2)
        self.assertEqual(db.session.get(Product, self.world.product_id).quantity, 1)
        self.place(quantity=1)
        self.assertEqual(db.session.get(Product, self.world.product_id).quantity, 0)
        self.assertOrderError("INSUFFICIENT_STOCK", self.place)

    def test_minimum_order_amount(self):
        set_setting(MIN_ORDER_AMOUNT, 150)
        self.assertOrderError("ORDER_BELOW_MINIMUM", self.place)
        self.assertEqual(Order.query.count(), 0)

    def test_wallet_order_requires_balance_and_opens_hold(self):
        self.assertOrderError("INSUFFICIENT_WALLET_BALANCE", self.place, method="wallet")
        fund_wallet(self.world.customer.id, 500)
        order = self.place(method="wallet")
        self.assertEqual(order.payment_status, "paid")
        self.assertEqual(wallet_balance(db.session, self.world.customer.id), 380.0)
        hold = HeldBalance.query.filter_by(order_id=order.id).one()
        self.assertEqual(hold.status, "HELD")
        self.assertEqual(hold.total_amount, 120.0)

    def test_disabled_wallet_and_bad_inputs(self):
        set_setting(WALLET_ENABLED, False)
        self.assertOrderError("PAYMENT_METHOD_DISABLED", self.place, method="wallet")
        self.assertOrderError("INVALID_PAYMENT_METHOD", self.place, method="crypto")
        self.assertOrderError("INVALID_TIP", self.place, tip=-1)

    def test_only_customers_place_orders(self):
        self.assertOrderError(
            "ROLE_NOT_ALLOWED",
            self.coordinator.create_order,
            self.world.driver,
            vendor_id=self.world.vendor_id,
            address_id=self.world.address_id,
            items=[{"product_id": self.world.product_id, "quantity": 1}],
            payment_method="cash",
        )


if __name__ == "__main__":
    unittest.main()
