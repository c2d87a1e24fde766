from swiftdrop.models.user import User
from swiftdrop.models.driver_profile import DriverProfile, DriverStatus
from swiftdrop.models.catalog import Zone, SubscriptionPlan, Vendor, Product, Address, Coupon
from swiftdrop.models.order import Order, OrderItem
from swiftdrop.models.commission_snapshot import CommissionSnapshot
from swiftdrop.models.held_balance import HeldBalance, Dispute, DisputeAuditLog
from swiftdrop.models.wallet import Wallet, WalletTxn
from swiftdrop.models.cash_ledger import ManagerCashConfirmation, ManagerPayoutConfirmation, ManagerAuditLog
from swiftdrop.models.app_setting import AppSetting
from swiftdrop.models.notification import Notification
from swiftdrop.models.platform_event import PlatformEvent
from swiftdrop.models.job_run import JobRun
from swiftdrop.models.reconciliation_report import ReconciliationReport

__all__ = [
    "User",
    "DriverProfile",
    "DriverStatus",
    "Zone",
    "SubscriptionPlan",
    "Vendor",
    "Product",
    "Address",
    "Coupon",
    "Order",
    "OrderItem",
    "CommissionSnapshot",
    "HeldBalance",
    "Dispute",
    "DisputeAuditLog",
    "Wallet",
    "WalletTxn",
    "ManagerCashConfirmation",
    "ManagerPayoutConfirmation",
    "ManagerAuditLog",
    "AppSetting",
    "Notification",
    "PlatformEvent",
    "JobRun",
    "ReconciliationReport",
]
