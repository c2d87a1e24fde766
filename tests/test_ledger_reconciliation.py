from __future__ import annotations

import json
import unittest

from order_fixtures import OrderTestCase, fund_wallet

from swiftdrop.extensions import db
from swiftdrop.models import ManagerCashConfirmation, ReconciliationReport, Wallet
from swiftdrop.services.reconciliation_service import persist_report, reconcile_cash_ledger, recompute_wallet_balances


class WalletReconciliationTestCase(OrderTestCase):
    def setUp(self):
        super().setUp()
        fund_wallet(self.world.customer.id, 500)
        released = self.place(method="wallet", tip=5)
        self.deliver_wallet(released.id)
        self.coordinator.confirm_delivery_receipt(self.world.customer, released.id)
        cancelled = self.place(method="wallet")
        self.coordinator.cancel_order(self.world.customer, cancelled.id, reason="Changed my mind")
        self.deliver_cash(self.place().id)

    def test_ledger_matches_stored_balances_after_flows(self):
        summary = recompute_wallet_balances()
        self.assertTrue(summary["ok"])
        self.assertEqual(summary["scope"], "wallet_ledger")
        self.assertGreaterEqual(summary["wallet_count"], 4)
        self.assertEqual(summary["drift_count"], 0, summary["drift_items"])

    def test_tampered_balance_is_reported(self):
        wallet = Wallet.query.filter_by(user_id=self.world.vendor_owner.id).one()
        wallet.balance = float(wallet.balance) + 7.5
        db.session.commit()

        summary = recompute_wallet_balances()
        self.assertEqual(summary["drift_count"], 1)
        item = summary["drift_items"][0]
        self.assertEqual(item["user_id"], self.world.vendor_owner.id)
        self.assertEqual(item["drift"], 7.5)

    def test_report_is_persisted(self):
        report = persist_report(recompute_wallet_balances(), created_by=self.world.admin.id)
        stored = db.session.get(ReconciliationReport, report.id)
        self.assertEqual(stored.scope, "wallet_ledger")
        self.assertEqual(stored.drift_count, 0)
        self.assertEqual(json.loads(stored.summary_json)["scope"], "wallet_ledger")


class CashReconciliationTestCase(OrderTestCase):
    def setUp(self):
        super().setUp()
        order = self.place(tip=10)
        self.deliver_cash(order.id)
        self.coordinator.report_cash_collection(self.world.driver, order.id)
        self.confirmation = self.coordinator.confirm_cash_receipt(self.world.manager, order.id)

    def test_clean_cash_ledger(self):
        summary = reconcile_cash_ledger()
        self.assertEqual(summary["drift_count"], 0, summary["drift_items"])
        manager = summary["managers"][0]
        self.assertEqual(manager["manager_id"], self.world.manager.id)
        self.assertEqual(manager["confirmed_total"], 120.0)
        self.assertEqual(manager["cash_on_hand"], 120.0)

    def test_confirmation_amount_mismatch(self):
        row = db.session.get(ManagerCashConfirmation, self.confirmation.id)
        row.amount = 100.0
        db.session.commit()

        summary = reconcile_cash_ledger()
        self.assertEqual([item["issue"] for item in summary["drift_items"]], ["amount_mismatch"])
        self.assertEqual(summary["drift_items"][0]["expected"], 120.0)

    def test_cli_exits_non_zero_on_drift(self):
        runner = self.app.test_cli_runner()
        result = runner.invoke(args=["reconcile-ledger", "--scope", "cash", "--persist"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(ReconciliationReport.query.count(), 1)

        db.session.get(ManagerCashConfirmation, self.confirmation.id).amount = 1.0
        db.session.commit()
        result = runner.invoke(args=["reconcile-ledger", "--scope", "cash"])
        self.assertEqual(result.exit_code, 2)
        self.assertIn("amount_mismatch", result.output)


if __name__ == "__main__":
    unittest.main()
