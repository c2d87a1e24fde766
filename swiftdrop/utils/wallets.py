from __future__ import annotations

import os
from datetime import datetime

from swiftdrop.models import User, Wallet, WalletTxn
from swiftdrop.utils.commission import money_major_to_minor, money_minor_to_major

CREDIT = "credit"
DEBIT = "debit"


def platform_user_id(session) -> int:
    """The platform account is the oldest admin unless PLATFORM_USER_ID is set."""
    raw = (os.getenv("PLATFORM_USER_ID") or "").strip()
    if raw.isdigit():
        return int(raw)
    admin = session.query(User).filter_by(role="admin").order_by(User.id.asc()).first()
    if admin is None:
        raise RuntimeError("platform account missing: create an admin user or set PLATFORM_USER_ID")
    return int(admin.id)


def get_or_create_wallet(session, user_id: int) -> Wallet:
    wallet = session.query(Wallet).filter_by(user_id=int(user_id)).first()
    if wallet is None:
        wallet = Wallet(user_id=int(user_id), balance=0.0)
        session.add(wallet)
        session.flush()
    return wallet


def wallet_balance(session, user_id: int) -> float:
    wallet = session.query(Wallet).filter_by(user_id=int(user_id)).first()
    return float(wallet.balance or 0.0) if wallet else 0.0


def post_txn(
    session,
    *,
    user_id: int,
    direction: str,
    amount: float,
    kind: str,
    reference: str = "",
    note: str = "",
    order_id: int | None = None,
    balance_type: str = "AVAILABLE",
) -> WalletTxn | None:
    """Append one ledger row and move the wallet balance by the same amount.

    Zero amounts are skipped. The balance moves with a SQL-side increment so
    concurrent postings on one wallet never overwrite each other.
    """
    minor = money_major_to_minor(abs(float(amount or 0.0)))
    if minor <= 0:
        return None
    direction = (direction or "").strip().lower()
    if direction not in (CREDIT, DEBIT):
        raise ValueError(f"invalid_txn_direction {direction}")
    value = money_minor_to_major(minor)

    wallet = get_or_create_wallet(session, user_id)
    txn = WalletTxn(
        wallet_id=int(wallet.id),
        user_id=int(user_id),
        order_id=int(order_id) if order_id is not None else None,
        direction=direction,
        amount=value,
        kind=(kind or "adjustment")[:48],
        balance_type=(balance_type or "AVAILABLE")[:16],
        reference=(reference or "")[:80] or None,
        note=(note or "")[:240] or None,
        created_at=datetime.utcnow(),
    )
    session.add(txn)
    signed = value if direction == CREDIT else -value
    session.query(Wallet).filter(Wallet.id == wallet.id).update(
        {Wallet.balance: Wallet.balance + signed, Wallet.updated_at: datetime.utcnow()},
        synchronize_session=False,
    )
    session.expire(wallet, ["balance", "updated_at"])
    return txn


def post_signed(session, *, user_id: int, amount: float, kind: str, **kwargs) -> WalletTxn | None:
    """Credit a positive amount, debit a negative one."""
    value = float(amount or 0.0)
    direction = CREDIT if value >= 0 else DEBIT
    return post_txn(session, user_id=user_id, direction=direction, amount=abs(value), kind=kind, **kwargs)


def net_posted_for_order(session, *, order_id: int, user_id: int, kinds: tuple[str, ...]) -> float:
    """Signed sum of one party's postings of the given kinds for one order."""
    rows = (
        session.query(WalletTxn)
        .filter(WalletTxn.order_id == int(order_id), WalletTxn.user_id == int(user_id), WalletTxn.kind.in_(kinds))
        .all()
    )
    total_minor = 0
    for row in rows:
        minor = money_major_to_minor(row.amount)
        total_minor += minor if row.direction == CREDIT else -minor
    return money_minor_to_major(total_minor)
