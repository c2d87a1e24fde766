"""order core: catalog inputs, orders, commissions, held balances, wallets, cash ledger

Revision ID: a1c0ffee0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "a1c0ffee0001"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(bind, table_name: str) -> bool:
    return sa.inspect(bind).has_table(table_name)


def _id():
    return sa.Column("id", sa.Integer(), primary_key=True)


def _money(name: str):
    return sa.Column(name, sa.Float(), nullable=False, server_default="0")


def _fk(name: str, target: str, *, nullable: bool = True, index: bool = True, unique: bool = False):
    return sa.Column(name, sa.Integer(), sa.ForeignKey(target), nullable=nullable, index=index, unique=unique)


def upgrade():
    bind = op.get_bind()

    if not _table_exists(bind, "zones"):
        op.create_table(
            "zones",
            _id(),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        )

    if not _table_exists(bind, "users"):
        op.create_table(
            "users",
            _id(),
            sa.Column("name", sa.String(length=120), nullable=False, server_default=""),
            sa.Column("email", sa.String(length=255), nullable=False, unique=True, index=True),
            sa.Column("phone", sa.String(length=32), nullable=True, unique=True, index=True),
            sa.Column("password_hash", sa.String(length=255), nullable=False, server_default=""),
            sa.Column("role", sa.String(length=32), nullable=False, server_default="customer", index=True),
            _fk("zone_id", "zones.id"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(bind, "subscription_plans"):
        op.create_table(
            "subscription_plans",
            _id(),
            sa.Column("name", sa.String(length=120), nullable=False),
            _money("price"),
            sa.Column("total_orders", sa.Integer(), nullable=False, server_default="-1"),
        )

    if not _table_exists(bind, "vendors"):
        op.create_table(
            "vendors",
            _id(),
            _fk("author_id", "users.id", nullable=False),
            sa.Column("title", sa.String(length=160), nullable=False),
            _fk("zone_id", "zones.id"),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            _fk("subscription_plan_id", "subscription_plans.id", index=False),
            sa.Column("subscription_orders_remaining", sa.Integer(), nullable=True),
            sa.Column("preparation_time_minutes", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(bind, "products"):
        op.create_table(
            "products",
            _id(),
            _fk("vendor_id", "vendors.id", nullable=False),
            sa.Column("name", sa.String(length=160), nullable=False),
            _money("price"),
            sa.Column("discount_price", sa.Float(), nullable=True),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="-1"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        )

    if not _table_exists(bind, "addresses"):
        op.create_table(
            "addresses",
            _id(),
            _fk("user_id", "users.id", nullable=False),
            sa.Column("label", sa.String(length=80), nullable=True),
            sa.Column("line1", sa.String(length=255), nullable=True),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
        )

    if not _table_exists(bind, "coupons"):
        op.create_table(
            "coupons",
            _id(),
            sa.Column("code", sa.String(length=40), nullable=False, unique=True, index=True),
            _fk("vendor_id", "vendors.id"),
            sa.Column("discount_type", sa.String(length=16), nullable=False, server_default="percentage"),
            _money("value"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("expires_at", sa.DateTime(), nullable=True),
        )

    if not _table_exists(bind, "driver_profiles"):
        op.create_table(
            "driver_profiles",
            _id(),
            _fk("user_id", "users.id", nullable=False, unique=True),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="OFFLINE", index=True),
            sa.Column("is_online", sa.Boolean(), nullable=False, server_default=sa.false()),
            _fk("zone_id", "zones.id"),
            sa.Column("vehicle_type", sa.String(length=32), nullable=True),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(bind, "orders"):
        op.create_table(
            "orders",
            _id(),
            _fk("author_id", "users.id", nullable=False),
            _fk("vendor_id", "vendors.id", nullable=False),
            _fk("driver_id", "users.id"),
            _fk("manager_id", "users.id"),
            _fk("address_id", "addresses.id", index=False),
            _fk("zone_id", "zones.id"),
            sa.Column("status", sa.String(length=24), nullable=False, server_default="PLACED", index=True),
            sa.Column("payment_method", sa.String(length=16), nullable=False, server_default="cash"),
            sa.Column("payment_status", sa.String(length=16), nullable=False, server_default="unpaid"),
            _money("order_subtotal"),
            _money("discount_amount"),
            _money("delivery_charge"),
            _money("tip_amount"),
            _money("order_total"),
            _money("distance_km"),
            sa.Column("coupon_code", sa.String(length=40), nullable=True),
            _money("admin_commission_percentage"),
            _money("admin_commission_amount"),
            _money("vendor_earnings"),
            _money("vendor_commission_rate"),
            _money("vendor_commission_value"),
            _money("vendor_net"),
            _money("driver_commission_rate"),
            _money("driver_commission_value"),
            _money("driver_net"),
            _money("platform_total_commission"),
            sa.Column("vendor_commission_applied", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("driver_commission_applied", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("delivery_otp", sa.String(length=6), nullable=True),
            sa.Column("estimated_ready_at", sa.DateTime(), nullable=True),
            sa.Column("is_ready_notification_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("cash_reported_at", sa.DateTime(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("cancel_reason", sa.String(length=240), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, index=True),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(bind, "order_items"):
        op.create_table(
            "order_items",
            _id(),
            _fk("order_id", "orders.id", nullable=False),
            _fk("product_id", "products.id", nullable=False, index=False),
            sa.Column("name", sa.String(length=160), nullable=True),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            _money("unit_price"),
            _money("line_total"),
        )

    if not _table_exists(bind, "commission_snapshots"):
        op.create_table(
            "commission_snapshots",
            _id(),
            _fk("order_id", "orders.id", nullable=False),
            sa.Column("source", sa.String(length=16), nullable=False, index=True),
            _fk("party_user_id", "users.id"),
            _fk("vendor_id", "vendors.id"),
            _money("rate"),
            _money("base_amount"),
            _money("value"),
            _money("net_amount"),
            sa.Column("created_at", sa.DateTime(), nullable=False, index=True),
            sa.UniqueConstraint("order_id", "source", name="uq_commission_snapshots_order_source"),
        )

    if not _table_exists(bind, "held_balances"):
        op.create_table(
            "held_balances",
            _id(),
            _fk("order_id", "orders.id", nullable=False, unique=True),
            _fk("customer_id", "users.id", nullable=False),
            _fk("vendor_user_id", "users.id", nullable=False, index=False),
            _fk("driver_id", "users.id", index=False),
            _money("total_amount"),
            _money("vendor_amount"),
            _money("driver_amount"),
            _money("admin_amount"),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="HELD", index=True),
            sa.Column("hold_reason", sa.String(length=64), nullable=True),
            sa.Column("auto_release_date", sa.DateTime(), nullable=True, index=True),
            sa.Column("released_at", sa.DateTime(), nullable=True),
            sa.Column("release_type", sa.String(length=32), nullable=True),
            sa.Column("refunded_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(bind, "disputes"):
        op.create_table(
            "disputes",
            _id(),
            _fk("order_id", "orders.id", nullable=False),
            _fk("held_balance_id", "held_balances.id", nullable=False, index=False),
            _fk("customer_id", "users.id", nullable=False),
            _fk("driver_id", "users.id"),
            sa.Column("reason", sa.String(length=64), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=24), nullable=False, server_default="PENDING", index=True),
            sa.Column("driver_response", sa.Text(), nullable=True),
            sa.Column("driver_responded_at", sa.DateTime(), nullable=True),
            sa.Column("resolution_notes", sa.Text(), nullable=True),
            _fk("resolved_by", "users.id", index=False),
            sa.Column("resolved_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, index=True),
        )

    if not _table_exists(bind, "dispute_audit_logs"):
        op.create_table(
            "dispute_audit_logs",
            _id(),
            _fk("dispute_id", "disputes.id", nullable=False),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("action", sa.String(length=64), nullable=False),
            sa.Column("meta", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(bind, "wallets"):
        op.create_table(
            "wallets",
            _id(),
            _fk("user_id", "users.id", nullable=False, unique=True),
            _money("balance"),
            sa.Column("currency", sa.String(length=8), nullable=False, server_default="EGP"),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(bind, "wallet_txns"):
        op.create_table(
            "wallet_txns",
            _id(),
            _fk("wallet_id", "wallets.id", nullable=False),
            _fk("user_id", "users.id", nullable=False),
            _fk("order_id", "orders.id"),
            sa.Column("direction", sa.String(length=8), nullable=False),
            _money("amount"),
            sa.Column("kind", sa.String(length=48), nullable=False, index=True),
            sa.Column("balance_type", sa.String(length=16), nullable=False, server_default="AVAILABLE"),
            sa.Column("reference", sa.String(length=80), nullable=True, index=True),
            sa.Column("note", sa.String(length=240), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, index=True),
        )

    if not _table_exists(bind, "manager_cash_confirmations"):
        op.create_table(
            "manager_cash_confirmations",
            _id(),
            _fk("manager_id", "users.id", nullable=False),
            _fk("driver_id", "users.id", nullable=False),
            _fk("order_id", "orders.id", nullable=False, unique=True),
            _money("amount"),
            sa.Column("note", sa.String(length=240), nullable=True),
            sa.Column("confirmed_at", sa.DateTime(), nullable=False, index=True),
        )

    if not _table_exists(bind, "manager_payout_confirmations"):
        op.create_table(
            "manager_payout_confirmations",
            _id(),
            _fk("manager_id", "users.id", nullable=False),
            _fk("admin_id", "users.id", nullable=False, index=False),
            _money("amount"),
            sa.Column("period_start", sa.DateTime(), nullable=False, index=True),
            sa.Column("period_end", sa.DateTime(), nullable=False),
            sa.Column("confirmation_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("note", sa.String(length=240), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, index=True),
        )

    if not _table_exists(bind, "manager_audit_logs"):
        op.create_table(
            "manager_audit_logs",
            _id(),
            _fk("manager_id", "users.id", nullable=False),
            sa.Column("action", sa.String(length=48), nullable=False),
            sa.Column("target_type", sa.String(length=32), nullable=False, server_default="order"),
            sa.Column("target_id", sa.Integer(), nullable=True, index=True),
            sa.Column("meta", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(bind, "app_settings"):
        op.create_table(
            "app_settings",
            _id(),
            sa.Column("key", sa.String(length=80), nullable=False, unique=True, index=True),
            sa.Column("value", sa.Text(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(bind, "notifications"):
        op.create_table(
            "notifications",
            _id(),
            _fk("user_id", "users.id", nullable=False),
            sa.Column("order_id", sa.Integer(), nullable=True, index=True),
            sa.Column("template_key", sa.String(length=48), nullable=False, index=True),
            sa.Column("channel", sa.String(length=32), nullable=False, server_default="in_app"),
            sa.Column("title", sa.String(length=160), nullable=True),
            sa.Column("message", sa.Text(), nullable=False, server_default=""),
            sa.Column("status", sa.String(length=24), nullable=False, server_default="queued"),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("meta", sa.Text(), nullable=True),
        )

    if not _table_exists(bind, "platform_events"):
        op.create_table(
            "platform_events",
            _id(),
            sa.Column("created_at", sa.DateTime(), nullable=False, index=True),
            sa.Column("event_type", sa.String(length=80), nullable=False, index=True),
            sa.Column("actor_user_id", sa.Integer(), nullable=True, index=True),
            sa.Column("actor_role", sa.String(length=32), nullable=True),
            sa.Column("subject_type", sa.String(length=80), nullable=True, index=True),
            sa.Column("subject_id", sa.String(length=120), nullable=True, index=True),
            sa.Column("previous_status", sa.String(length=24), nullable=True),
            sa.Column("new_status", sa.String(length=24), nullable=True),
            sa.Column("request_id", sa.String(length=80), nullable=True, index=True),
            sa.Column("idempotency_key", sa.String(length=180), nullable=True, unique=True, index=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
        )

    if not _table_exists(bind, "job_runs"):
        op.create_table(
            "job_runs",
            _id(),
            sa.Column("job_name", sa.String(length=64), nullable=False, index=True),
            sa.Column("ran_at", sa.DateTime(), nullable=False, index=True),
            sa.Column("ok", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("duration_ms", sa.Integer(), nullable=True),
            sa.Column("processed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("failed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("error", sa.Text(), nullable=True),
        )

    if not _table_exists(bind, "reconciliation_reports"):
        op.create_table(
            "reconciliation_reports",
            _id(),
            sa.Column("scope", sa.String(length=64), nullable=False, server_default="wallet_ledger"),
            sa.Column("summary_json", sa.Text(), nullable=True),
            sa.Column("drift_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, index=True),
        )


def downgrade():
    for table in (
        "reconciliation_reports",
        "job_runs",
        "platform_events",
        "notifications",
        "app_settings",
        "manager_audit_logs",
        "manager_payout_confirmations",
        "manager_cash_confirmations",
        "wallet_txns",
        "wallets",
        "dispute_audit_logs",
        "disputes",
        "held_balances",
        "commission_snapshots",
        "order_items",
        "orders",
        "driver_profiles",
        "coupons",
        "addresses",
        "products",
        "vendors",
        "subscription_plans",
        "users",
        "zones",
    ):
        op.drop_table(table)
