"""Tests for BudgetMonitor and BudgetAlertService."""

from datetime import datetime, timedelta

import pytest

from conftest import make_tx
from finance_tracker.config import BudgetSettings
from finance_tracker.models.ledger import BudgetState, Category, NotificationPriority, TxType
from finance_tracker.services.budget import (
    AlwaysAlert,
    BudgetAlertService,
    BudgetMonitor,
    CooldownAlert,
    policy_from_settings,
)


@pytest.fixture
def monitor() -> BudgetMonitor:
    return BudgetMonitor()


class TestBudgetMonitor:
    """Tests for the pure budget evaluation."""

    def test_exceeded(self, monitor, now):
        """Test 150 spent against 100 is EXCEEDED at 150%."""
        txs = [make_tx(100, now), make_tx(50, now)]
        status = monitor.evaluate(txs, 100, now)
        assert status.state == BudgetState.EXCEEDED
        assert status.percentage == 150
        assert status.spent == 150

    def test_within_budget(self, monitor, now):
        """Test 50 spent against 100 is OK at 50%."""
        status = monitor.evaluate([make_tx(50, now)], 100, now)
        assert status.state == BudgetState.OK
        assert status.percentage == 50

    def test_exactly_at_budget_is_ok(self, monitor, now):
        """Test that spending equal to the budget is not exceeded."""
        status = monitor.evaluate([make_tx(100, now)], 100, now)
        assert status.state == BudgetState.OK
        assert status.percentage == 100

    @pytest.mark.parametrize("budget", [0, -1, -250.5])
    def test_unset_budget(self, monitor, now, budget):
        """Test that a non-positive budget is always UNSET."""
        status = monitor.evaluate([make_tx(1000, now)], budget, now)
        assert status.state == BudgetState.UNSET
        assert status.percentage == 0

    def test_income_is_ignored(self, monitor, now):
        """Test that income does not count as spending."""
        txs = [make_tx(500, now, type=TxType.INCOME), make_tx(30, now)]
        assert monitor.evaluate(txs, 100, now).spent == 30

    def test_only_current_calendar_month(self, monitor, now):
        """Test that last month's expenses are excluded."""
        last_month = datetime(2026, 9, 28, 12, 0)
        txs = [make_tx(80, last_month), make_tx(40, now)]
        status = monitor.evaluate(txs, 100, now)
        assert status.spent == 40
        assert status.state == BudgetState.OK

    def test_start_of_month_boundary(self, monitor):
        """Test that the first minute of the month counts."""
        first = datetime(2026, 10, 1, 0, 0)
        status = monitor.evaluate([make_tx(10, first)], 100, datetime(2026, 10, 2, 9, 0))
        assert status.spent == 10

    def test_percentage_rounds_half_up(self, monitor, now):
        """Test rounding of the percentage."""
        status = monitor.evaluate([make_tx(12.5, now)], 1000, now)
        assert status.percentage == 1
        status = monitor.evaluate([make_tx(0.5, now)], 200, now)
        assert status.percentage == 0

    def test_monthly_summary(self, monitor, now):
        """Test income, expense and per-category totals."""
        txs = [
            make_tx(1000, now, type=TxType.INCOME, category="Salary"),
            make_tx(30, now, category="Food"),
            make_tx(20, now, category="Food"),
            make_tx(70, now, category="Transport"),
            make_tx(99, datetime(2026, 9, 10, 10, 0), category="Food"),
        ]
        categories = [Category(name="Food", type=TxType.EXPENSE, emoji="🍔")]
        summary = monitor.monthly_summary(txs, now, categories)
        assert summary.income == 1000
        assert summary.expense == 120
        assert summary.balance == 880
        assert [(row.name, row.amount) for row in summary.expense_by_category] == [
            ("Transport", 70),
            ("Food", 50),
        ]
        assert summary.expense_by_category[1].emoji == "🍔"


class TestAlertPolicies:
    """Tests for alert deduplication strategies."""

    def test_always_alert(self, monitor, now):
        """Test that every exceeded evaluation alerts."""
        status = monitor.evaluate([make_tx(200, now)], 100, now)
        policy = AlwaysAlert()
        policy.record_alert(now)
        assert policy.should_alert(status, now)

    def test_cooldown(self, monitor, now):
        """Test that a cooldown suppresses repeats inside the window."""
        status = monitor.evaluate([make_tx(200, now)], 100, now)
        policy = CooldownAlert(timedelta(hours=1))
        assert policy.should_alert(status, now)
        policy.record_alert(now)
        assert not policy.should_alert(status, now + timedelta(minutes=30))
        assert policy.should_alert(status, now + timedelta(hours=1))

    def test_policy_from_settings(self):
        """Test policy selection."""
        assert isinstance(policy_from_settings(BudgetSettings()), AlwaysAlert)
        cooldown = policy_from_settings(BudgetSettings(alert_cooldown_minutes=15))
        assert isinstance(cooldown, CooldownAlert)


class TestBudgetAlertService:
    """Tests for alert dispatch."""

    def test_exceeded_alert(self, store, sink, now):
        """Test the exceeded notification content."""
        store.save_transactions([make_tx(150, now)])
        store.set_budget(100)
        status = BudgetAlertService(store, sink).check(now)
        assert status.is_exceeded
        assert sink.sent == [(
            "Budget Exceeded",
            "You have exceeded your monthly budget by $50.00! ($150.00 of $100.00)",
            NotificationPriority.HIGH,
        )]

    def test_repeat_checks_alert_again(self, store, sink, now):
        """Test that the default policy does not deduplicate."""
        store.save_transactions([make_tx(150, now)])
        store.set_budget(100)
        service = BudgetAlertService(store, sink)
        service.check(now)
        service.check(now)
        assert sink.titles == ["Budget Exceeded", "Budget Exceeded"]

    def test_cooldown_suppresses(self, store, sink, now):
        """Test that a cooldown policy suppresses the second alert."""
        store.save_transactions([make_tx(150, now)])
        store.set_budget(100)
        service = BudgetAlertService(store, sink, policy=CooldownAlert(timedelta(hours=1)))
        service.check(now)
        service.check(now + timedelta(minutes=5))
        assert sink.titles == ["Budget Exceeded"]

    def test_unset_never_alerts(self, store, sink, now):
        """Test that no budget means no notification."""
        store.save_transactions([make_tx(5000, now)])
        status = BudgetAlertService(store, sink).check(now)
        assert status.state == BudgetState.UNSET
        assert sink.sent == []

    def test_within_budget_no_alert(self, store, sink, now):
        """Test that being under budget is silent by default."""
        store.save_transactions([make_tx(95, now)])
        store.set_budget(100)
        BudgetAlertService(store, sink).check(now)
        assert sink.sent == []

    def test_approaching_tier(self, store, sink, now):
        """Test the optional soft warning."""
        store.save_transactions([make_tx(95, now)])
        store.set_budget(100)
        settings = BudgetSettings(approaching_alert_enabled=True, approaching_threshold_percent=90)
        BudgetAlertService(store, sink, settings=settings).check(now)
        assert sink.sent == [(
            "Budget Alert",
            "You've used 95% of your monthly budget ($95.00 of $100.00)",
            NotificationPriority.DEFAULT,
        )]

    def test_amounts_use_ledger_currency(self, store, sink, now):
        """Test that alert amounts are shown in the ledger currency."""
        store.save_transactions([make_tx(150, now)])
        store.set_budget(100)
        store.set_currency("EUR")
        BudgetAlertService(store, sink).check(now)
        assert "€50.00" in sink.sent[0][1]
