from __future__ import annotations

import logging
import os
from dataclasses import dataclass, asdict
from datetime import datetime

from swiftdrop.extensions import db
from swiftdrop.models import AppSetting

logger = logging.getLogger(__name__)


VENDOR_COMMISSION_RATE = "vendor_commission_rate"
DRIVER_COMMISSION_RATE = "driver_commission_rate"
MIN_DELIVERY_PAY = "min_delivery_pay"
MIN_DELIVERY_FEE = "min_delivery_fee"
DELIVERY_FEE_PER_KM = "delivery_fee_per_km"
WALLET_AUTO_RELEASE_DAYS = "wallet_auto_release_days"
MAX_DRIVER_DEBT = "max_driver_debt"
ORDER_TIMEOUT_MINUTES = "order_timeout_minutes"
FIRST_ORDER_FREE_DELIVERY_ENABLED = "first_order_free_delivery_enabled"
WALLET_ENABLED = "wallet_enabled"
CASH_ON_DELIVERY_ENABLED = "cash_on_delivery_enabled"
MIN_ORDER_AMOUNT = "min_order_amount"
MAX_ORDER_AMOUNT = "max_order_amount"

DEFAULTS: dict[str, str] = {
    VENDOR_COMMISSION_RATE: "10",
    DRIVER_COMMISSION_RATE: "10",
    MIN_DELIVERY_PAY: "0",
    MIN_DELIVERY_FEE: "0",
    DELIVERY_FEE_PER_KM: "0",
    WALLET_AUTO_RELEASE_DAYS: "7",
    MAX_DRIVER_DEBT: "1000",
    ORDER_TIMEOUT_MINUTES: "30",
    FIRST_ORDER_FREE_DELIVERY_ENABLED: "false",
    WALLET_ENABLED: "true",
    CASH_ON_DELIVERY_ENABLED: "true",
    MIN_ORDER_AMOUNT: "0",
    MAX_ORDER_AMOUNT: "0",
}


@dataclass(frozen=True)
class PlatformSettings:
    vendor_commission_rate: float
    driver_commission_rate: float
    min_delivery_pay: float
    min_delivery_fee: float
    delivery_fee_per_km: float
    wallet_auto_release_days: int
    max_driver_debt: float
    order_timeout_minutes: int
    first_order_free_delivery_enabled: bool
    wallet_enabled: bool
    cash_on_delivery_enabled: bool
    min_order_amount: float
    max_order_amount: float

    def to_dict(self) -> dict:
        return asdict(self)


def _env_default(key: str) -> str:
    # SETTING_VENDOR_COMMISSION_RATE=15 overrides the built-in default.
    raw = (os.getenv(f"SETTING_{key.upper()}") or "").strip()
    return raw if raw else DEFAULTS.get(key, "")


def _as_float(key: str, raw: str | None) -> float:
    try:
        value = float((raw or "").strip())
    except ValueError:
        logger.warning("setting_not_numeric key=%s value=%r", key, raw)
        value = float(_env_default(key) or 0)
    return value if value >= 0 else 0.0


def _as_int(key: str, raw: str | None, *, minimum: int = 0) -> int:
    value = int(_as_float(key, raw))
    return value if value >= minimum else minimum


def _as_bool(raw: str | None) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes", "on")


def load_raw_settings() -> dict[str, str]:
    values = {key: _env_default(key) for key in DEFAULTS}
    for row in AppSetting.query.filter(AppSetting.key.in_(list(DEFAULTS.keys()))).all():
        if row.value is not None and str(row.value).strip() != "":
            values[row.key] = str(row.value)
    return values


def get_platform_settings() -> PlatformSettings:
    raw = load_raw_settings()
    return PlatformSettings(
        vendor_commission_rate=_as_float(VENDOR_COMMISSION_RATE, raw[VENDOR_COMMISSION_RATE]),
        driver_commission_rate=_as_float(DRIVER_COMMISSION_RATE, raw[DRIVER_COMMISSION_RATE]),
        min_delivery_pay=_as_float(MIN_DELIVERY_PAY, raw[MIN_DELIVERY_PAY]),
        min_delivery_fee=_as_float(MIN_DELIVERY_FEE, raw[MIN_DELIVERY_FEE]),
        delivery_fee_per_km=_as_float(DELIVERY_FEE_PER_KM, raw[DELIVERY_FEE_PER_KM]),
        wallet_auto_release_days=_as_int(WALLET_AUTO_RELEASE_DAYS, raw[WALLET_AUTO_RELEASE_DAYS], minimum=1),
        max_driver_debt=_as_float(MAX_DRIVER_DEBT, raw[MAX_DRIVER_DEBT]),
        order_timeout_minutes=_as_int(ORDER_TIMEOUT_MINUTES, raw[ORDER_TIMEOUT_MINUTES], minimum=1),
        first_order_free_delivery_enabled=_as_bool(raw[FIRST_ORDER_FREE_DELIVERY_ENABLED]),
        wallet_enabled=_as_bool(raw[WALLET_ENABLED]),
        cash_on_delivery_enabled=_as_bool(raw[CASH_ON_DELIVERY_ENABLED]),
        min_order_amount=_as_float(MIN_ORDER_AMOUNT, raw[MIN_ORDER_AMOUNT]),
        max_order_amount=_as_float(MAX_ORDER_AMOUNT, raw[MAX_ORDER_AMOUNT]),
    )


def set_setting(key: str, value) -> AppSetting:
    if key not in DEFAULTS:
        raise ValueError(f"unknown_setting {key}")
    row = AppSetting.query.filter_by(key=key).first()
    if row is None:
        row = AppSetting(key=key)
        db.session.add(row)
    row.value = str(value).strip().lower() if isinstance(value, bool) else str(value)
    row.updated_at = datetime.utcnow()
    db.session.commit()
    return row
