from __future__ import annotations

import unittest

from swiftdrop.utils.commission import (
    compute_driver_commission_minor,
    compute_vendor_commission_minor,
    driver_commission,
    money_major_to_minor,
    money_minor_to_major,
    signed_major_to_minor,
    vendor_commission,
)


class VendorCommissionMinorTestCase(unittest.TestCase):
    def test_free_plan_pays_percentage_of_base(self):
        result = compute_vendor_commission_minor(base_minor=10000, rate_pct=15, free_plan=True)
        self.assertEqual(result["value_minor"], 1500)
        self.assertEqual(result["net_minor"], 8500)
        self.assertEqual(result["value_minor"] + result["net_minor"], 10000)

    def test_paid_plan_pays_nothing(self):
        result = compute_vendor_commission_minor(base_minor=10000, rate_pct=15, free_plan=False)
        self.assertEqual(result["value_minor"], 0)
        self.assertEqual(result["net_minor"], 10000)
        self.assertEqual(result["rate"], 0.0)

    def test_half_up_rounding(self):
        # 12.5% of 0.99 = 0.12375 -> 12 minor
        result = compute_vendor_commission_minor(base_minor=99, rate_pct=12.5, free_plan=True)
        self.assertEqual(result["value_minor"], 12)
        # 10% of 1.05 = 0.105 -> 11 minor
        self.assertEqual(compute_vendor_commission_minor(base_minor=105, rate_pct=10, free_plan=True)["value_minor"], 11)

    def test_negative_base_is_clamped(self):
        result = compute_vendor_commission_minor(base_minor=-500, rate_pct=15, free_plan=True)
        self.assertEqual(result["base_minor"], 0)
        self.assertEqual(result["value_minor"], 0)


class DriverCommissionMinorTestCase(unittest.TestCase):
    def test_percentage_cut_above_floor(self):
        result = compute_driver_commission_minor(fee_minor=2000, rate_pct=10, min_pay_minor=1500)
        self.assertEqual(result["net_minor"], 1800)
        self.assertEqual(result["value_minor"], 200)
        self.assertFalse(result["floor_applied"])

    def test_floor_lifts_driver_pay(self):
        result = compute_driver_commission_minor(fee_minor=2000, rate_pct=50, min_pay_minor=1500)
        self.assertEqual(result["net_minor"], 1500)
        self.assertEqual(result["value_minor"], 500)
        self.assertTrue(result["floor_applied"])

    def test_floor_above_fee_makes_platform_subsidise(self):
        result = compute_driver_commission_minor(fee_minor=1000, rate_pct=10, min_pay_minor=1500)
        self.assertEqual(result["net_minor"], 1500)
        self.assertEqual(result["value_minor"], -500)

    def test_major_unit_helpers(self):
        self.assertEqual(driver_commission(20.0, 10, 15.0), (18.0, 2.0))
        self.assertEqual(vendor_commission(100.0, 15), 15.0)


class MoneyConversionTestCase(unittest.TestCase):
    def test_major_minor_round_trip_is_half_up(self):
        self.assertEqual(money_major_to_minor(0.125), 13)
        self.assertEqual(money_major_to_minor(-4), 0)
        self.assertEqual(signed_major_to_minor(-4.005), -401)
        self.assertEqual(money_minor_to_major(1999), 19.99)
        self.assertEqual(money_major_to_minor(None), 0)


if __name__ == "__main__":
    unittest.main()
