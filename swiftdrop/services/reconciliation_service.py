from __future__ import annotations

import json
from datetime import datetime

from swiftdrop.extensions import db
from swiftdrop.models import (
    HeldBalance,
    ManagerCashConfirmation,
    ManagerPayoutConfirmation,
    Order,
    ReconciliationReport,
    Wallet,
    WalletTxn,
)
from swiftdrop.services.orders.settlement import cash_due
from swiftdrop.utils.commission import money_major_to_minor, money_minor_to_major, signed_major_to_minor


def _signed_minor(txn: WalletTxn) -> int:
    minor = money_major_to_minor(txn.amount)
    return -minor if (txn.direction or "").strip().lower() == "debit" else minor


def recompute_wallet_balances(*, tolerance: float = 0.01) -> dict:
    """Compare every stored wallet balance with the signed sum of its txns."""
    wallets = Wallet.query.order_by(Wallet.user_id.asc()).all()
    tolerance_minor = money_major_to_minor(tolerance)
    drift_items = []

    for wallet in wallets:
        computed_minor = sum(_signed_minor(t) for t in WalletTxn.query.filter_by(wallet_id=int(wallet.id)).all())
        stored_minor = signed_major_to_minor(wallet.balance)
        drift_minor = stored_minor - computed_minor
        if abs(drift_minor) > tolerance_minor:
            drift_items.append(
                {
                    "wallet_id": int(wallet.id),
                    "user_id": int(wallet.user_id),
                    "stored_balance": money_minor_to_major(stored_minor),
                    "computed_balance": money_minor_to_major(computed_minor),
                    "drift": money_minor_to_major(drift_minor),
                }
            )

    held_orders = (
        db.session.query(Order.id)
        .filter(Order.payment_method == "wallet", Order.payment_status == "paid")
        .outerjoin(HeldBalance, HeldBalance.order_id == Order.id)
        .filter(HeldBalance.id.is_(None))
        .all()
    )
    for (order_id,) in held_orders:
        drift_items.append({"order_id": int(order_id), "issue": "paid_wallet_order_without_hold"})

    return {
        "ok": True,
        "scope": "wallet_ledger",
        "wallet_count": len(wallets),
        "drift_count": len(drift_items),
        "drift_items": drift_items,
        "generated_at": datetime.utcnow().isoformat(),
    }


def reconcile_cash_ledger() -> dict:
    """Rebuild cash-on-hand per manager from confirmations and payouts and flag mismatches."""
    drift_items = []
    managers: dict[int, dict] = {}

    for conf in ManagerCashConfirmation.query.order_by(ManagerCashConfirmation.id.asc()).all():
        bucket = managers.setdefault(int(conf.manager_id), {"confirmed_minor": 0, "paid_out_minor": 0, "confirmations": 0})
        bucket["confirmed_minor"] += money_major_to_minor(conf.amount)
        bucket["confirmations"] += 1
        order = db.session.get(Order, int(conf.order_id))
        if order is None:
            drift_items.append({"confirmation_id": int(conf.id), "issue": "order_missing"})
            continue
        if money_major_to_minor(conf.amount) != money_major_to_minor(cash_due(order)):
            drift_items.append(
                {
                    "confirmation_id": int(conf.id),
                    "order_id": int(order.id),
                    "issue": "amount_mismatch",
                    "confirmed": float(conf.amount or 0.0),
                    "expected": cash_due(order),
                }
            )
        if (order.payment_status or "") != "paid":
            drift_items.append({"confirmation_id": int(conf.id), "order_id": int(order.id), "issue": "order_not_paid"})

    for payout in ManagerPayoutConfirmation.query.order_by(ManagerPayoutConfirmation.id.asc()).all():
        bucket = managers.setdefault(int(payout.manager_id), {"confirmed_minor": 0, "paid_out_minor": 0, "confirmations": 0})
        bucket["paid_out_minor"] += money_major_to_minor(payout.amount)
        in_range = (
            ManagerCashConfirmation.query.filter(
                ManagerCashConfirmation.manager_id == int(payout.manager_id),
                ManagerCashConfirmation.confirmed_at >= payout.period_start,
                ManagerCashConfirmation.confirmed_at < payout.period_end,
            ).all()
        )
        expected_minor = sum(money_major_to_minor(c.amount) for c in in_range)
        if expected_minor != money_major_to_minor(payout.amount):
            drift_items.append(
                {
                    "payout_id": int(payout.id),
                    "manager_id": int(payout.manager_id),
                    "issue": "payout_mismatch",
                    "paid_out": float(payout.amount or 0.0),
                    "expected": money_minor_to_major(expected_minor),
                }
            )

    per_manager = [
        {
            "manager_id": manager_id,
            "confirmations": bucket["confirmations"],
            "confirmed_total": money_minor_to_major(bucket["confirmed_minor"]),
            "paid_out_total": money_minor_to_major(bucket["paid_out_minor"]),
            "cash_on_hand": money_minor_to_major(bucket["confirmed_minor"] - bucket["paid_out_minor"]),
        }
        for manager_id, bucket in sorted(managers.items())
    ]
    return {
        "ok": True,
        "scope": "cash_ledger",
        "managers": per_manager,
        "drift_count": len(drift_items),
        "drift_items": drift_items,
        "generated_at": datetime.utcnow().isoformat(),
    }


def persist_report(summary: dict, *, created_by: int | None = None) -> ReconciliationReport:
    report = ReconciliationReport(
        scope=(summary.get("scope") or "wallet_ledger")[:64],
        summary_json=json.dumps(summary)[:200000],
        drift_count=int(summary.get("drift_count") or 0),
        created_by=int(created_by) if created_by is not None else None,
        created_at=datetime.utcnow(),
    )
    db.session.add(report)
    db.session.commit()
    return report
