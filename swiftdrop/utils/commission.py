from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

VENDOR_RULE_FREE_PLAN = "VENDOR_FREE_PLAN_PCT_V1"
VENDOR_RULE_PAID_PLAN = "VENDOR_PAID_PLAN_ZERO_V1"
DRIVER_RULE_FLOORED = "DRIVER_PCT_MIN_PAY_FLOOR_V1"


def _to_decimal(value) -> Decimal:
    try:
        return Decimal(str(value if value is not None else 0))
    except Exception:
        return Decimal("0")


def _clamp_minor(value: int | float | Decimal | None) -> int:
    try:
        parsed = int(value or 0)
    except Exception:
        parsed = 0
    return parsed if parsed > 0 else 0


def money_major_to_minor(amount: float | Decimal | int | None) -> int:
    minor = (_to_decimal(amount) * Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return _clamp_minor(int(minor))


def signed_major_to_minor(amount: float | Decimal | int | None) -> int:
    """Like money_major_to_minor but keeps the sign (debts, subsidies)."""
    return int((_to_decimal(amount) * Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def money_minor_to_major(minor: int | float | Decimal | None) -> float:
    try:
        parsed = Decimal(int(minor or 0))
    except Exception:
        parsed = Decimal("0")
    return float((parsed / Decimal("100")).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def round2(value: float | Decimal | int | None) -> float:
    return float(_to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _pct_minor_half_up(amount_minor: int, rate_pct: float | Decimal | int) -> int:
    rate = _to_decimal(rate_pct)
    if rate < 0:
        rate = Decimal("0")
    raw = (Decimal(int(amount_minor)) * rate) / Decimal("100")
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_vendor_commission_minor(*, base_minor: int, rate_pct: float, free_plan: bool) -> dict:
    """Vendor share of the merchandise base (subtotal minus discount).

    Only vendors on a zero-price plan pay a per-order commission.
    """
    base = _clamp_minor(base_minor)
    if not free_plan:
        return {
            "rule": VENDOR_RULE_PAID_PLAN,
            "rate": 0.0,
            "base_minor": int(base),
            "value_minor": 0,
            "net_minor": int(base),
        }
    value = _pct_minor_half_up(base, rate_pct)
    net = base - value
    if net < 0:
        net = 0
    return {
        "rule": VENDOR_RULE_FREE_PLAN,
        "rate": float(_to_decimal(rate_pct)),
        "base_minor": int(base),
        "value_minor": int(value),
        "net_minor": int(net),
    }


def compute_driver_commission_minor(*, fee_minor: int, rate_pct: float, min_pay_minor: int) -> dict:
    """Driver pay out of the delivery fee, floored at the minimum pay.

    value_minor is always fee - net, so it turns negative when the floor
    exceeds the fee and the platform covers the gap.
    """
    fee = _clamp_minor(fee_minor)
    floor = _clamp_minor(min_pay_minor)
    cut = _pct_minor_half_up(fee, rate_pct)
    net = min(fee, fee - cut)
    if net < floor:
        net = floor
    return {
        "rule": DRIVER_RULE_FLOORED,
        "rate": float(_to_decimal(rate_pct)),
        "base_minor": int(fee),
        "raw_cut_minor": int(cut),
        "net_minor": int(net),
        "value_minor": int(fee - net),
        "floor_applied": bool(net == floor and fee - cut < floor),
    }


def vendor_commission(base: float, rate_pct: float) -> float:
    return money_minor_to_major(_pct_minor_half_up(money_major_to_minor(base), rate_pct))


def driver_commission(fee: float, rate_pct: float, min_pay: float) -> tuple[float, float]:
    """Return (driver_net, driver_commission_value) in major units."""
    result = compute_driver_commission_minor(
        fee_minor=money_major_to_minor(fee),
        rate_pct=rate_pct,
        min_pay_minor=money_major_to_minor(min_pay),
    )
    return money_minor_to_major(result["net_minor"]), money_minor_to_major(result["value_minor"])
