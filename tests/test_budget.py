"""
Unit tests for the budget engine.

Verifies:
- Manual totals (stored total or sum of items)
- Dynamic project totals follow their sub-projects
- Financial progress and remaining figures
- Normalization of budget updates
- Lenient parsing of stored budget documents
"""
import pytest

from studio_portal.core.errors import InvalidInput
from studio_portal.models.budget import Budget, BudgetType
from studio_portal.models.transaction import Transaction
from studio_portal.services.budget import (
    apply_budget_update,
    budget_summary,
    financial_progress,
    remaining,
    resolve_budget_total,
)


class TestResolveBudgetTotal:

    def test_manual_uses_stored_total(self):
        assert resolve_budget_total({"total": 120000, "type": "manual"}) == 120000

    def test_manual_sums_items(self):
        budget = {"total": 1, "items": [{"description": "Logo", "amount": 40000}, {"description": "Site", "amount": 60000}]}
        assert resolve_budget_total(budget) == 100000

    def test_dynamic_sums_children(self):
        children = [{"total": 1000}, {"total": 2500}]
        assert resolve_budget_total({"total": 0, "type": "dynamic"}, children) == 3500

    def test_dynamic_follows_child_changes(self):
        project = {"total": 3500, "type": "dynamic"}
        children = [{"total": 1000}, {"total": 2500}]
        children[1] = {"total": 0, "items": [{"description": "Extra", "amount": 4000}]}
        assert resolve_budget_total(project, children) == 5000

    def test_dynamic_without_children_resolves_as_manual(self):
        assert resolve_budget_total({"total": 700, "type": "dynamic"}) == 700

    def test_dynamic_children_do_not_recurse(self):
        children = [{"total": 300, "type": "dynamic"}]
        assert resolve_budget_total({"type": "dynamic"}, children) == 300

    def test_dynamic_with_no_sub_projects_is_zero(self):
        assert resolve_budget_total({"total": 900, "type": "dynamic"}, []) == 0


class TestFigures:

    @pytest.mark.parametrize("total,received,expected", [
        (0, 500, 0),
        (-10, 500, 0),
        (1000, 0, 0),
        (1000, 333, 33),
        (1000, 1500, 100),
    ])
    def test_financial_progress(self, total, received, expected):
        assert financial_progress(total, received) == expected

    def test_remaining_never_negative(self):
        assert remaining(1000, 400) == 600
        assert remaining(1000, 1400) == 0

    def test_budget_summary(self):
        transactions = [
            Transaction(description="Deposit", amount=500, type="income", status="completed"),
            Transaction(description="Second", amount=300, type="income", status="pending"),
            Transaction(description="Stock", amount=100, type="expense", status="completed"),
        ]
        summary = budget_summary(2000, transactions)
        assert summary.received == 500
        assert summary.expense == 100
        assert summary.balance == 400
        assert summary.remaining == 1500
        assert summary.financial_progress == 25
        assert summary.scheduled_income == 300


class TestApplyBudgetUpdate:

    def test_items_get_ids_and_total_is_resolved(self):
        budget = apply_budget_update({"total": 0, "items": [{"description": "Logo", "amount": 40000}]})
        assert budget.items[0].id
        assert budget.total == 40000

    def test_dynamic_total_from_children(self):
        budget = apply_budget_update({"type": "dynamic"}, [{"total": 1000}, {"total": 2500}])
        assert budget.type == BudgetType.DYNAMIC
        assert budget.total == 3500

    def test_negative_amounts_rejected(self):
        with pytest.raises(InvalidInput):
            apply_budget_update({"total": -5})
        with pytest.raises(InvalidInput):
            apply_budget_update({"items": [{"description": "Refund", "amount": -100}]})

    def test_malformed_update_rejected(self):
        with pytest.raises(InvalidInput):
            apply_budget_update({"total": "lots"})

    def test_existing_item_ids_are_kept(self):
        budget = apply_budget_update({"items": [{"id": "line-1", "description": "Logo", "amount": 1}]})
        assert budget.items[0].id == "line-1"


class TestBudgetParsing:

    @pytest.mark.parametrize("raw", [None, "oops", {"total": "lots"}])
    def test_malformed_reads_as_empty(self, raw):
        budget = Budget.from_raw(raw)
        assert budget.total == 0
        assert budget.type == BudgetType.MANUAL

    def test_unknown_type_reads_as_manual(self):
        assert Budget.from_raw({"total": 10, "type": "fixed"}).type == BudgetType.MANUAL

    def test_float_amounts_are_rounded(self):
        assert Budget.from_raw({"total": 10.6}).total == 11

    def test_notes_and_extras_survive(self):
        raw = Budget.from_raw({"total": 10, "notes": "50% upfront", "currency": "EUR"}).to_raw()
        assert raw["notes"] == "50% upfront"
        assert raw["currency"] == "EUR"
