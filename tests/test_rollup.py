"""
Unit tests for the financial rollup.
"""
from studio_portal.models.transaction import Transaction, TransactionType
from studio_portal.services.rollup import (
    TransactionFilter,
    filter_transactions,
    group_by_item,
    group_by_sub_project,
    rollup,
)


def _tx(amount, type="income", status="completed", **links):
    return Transaction(description="Row", amount=amount, type=type, status=status, **links)


LEDGER = [
    _tx(500, project_id="p1", sub_project_id="sp1", sub_project_item_id="t1"),
    _tx(300, status="pending", project_id="p1", sub_project_id="sp1"),
    _tx(100, type="expense", project_id="p1", sub_project_id="sp2", sub_project_item_id="t9"),
    _tx(50, type="expense", status="pending", project_id="p1"),
    _tx(9999, project_id="p2", client_id="c2"),
]


class TestRollup:

    def test_pending_rows_are_scheduled_not_realized(self):
        result = rollup(LEDGER, TransactionFilter(project_id="p1"))
        assert (result.income, result.expense, result.balance) == (500, 100, 400)
        assert result.scheduled_income == 300
        assert result.scheduled_expense == 50
        assert result.count == 4

    def test_empty_ledger(self):
        result = rollup([])
        assert (result.income, result.expense, result.balance, result.count) == (0, 0, 0, 0)

    def test_amounts_stay_integers(self):
        result = rollup([_tx(1999), _tx(1)])
        assert result.income == 2000
        assert isinstance(result.income, int)

    def test_negative_balance(self):
        result = rollup([_tx(100), _tx(250, type="expense")])
        assert result.balance == -150


class TestFilter:

    def test_filters_compose_by_and(self):
        rows = filter_transactions(LEDGER, TransactionFilter(project_id="p1", type=TransactionType.expense))
        assert [row.amount for row in rows] == [100, 50]

    def test_no_filter_keeps_everything(self):
        assert len(filter_transactions(LEDGER)) == len(LEDGER)

    def test_filter_by_client(self):
        assert rollup(LEDGER, TransactionFilter(client_id="c2")).income == 9999


class TestGrouping:

    def test_group_by_sub_project(self):
        rows = [row for row in LEDGER if row.project_id == "p1"]
        groups = group_by_sub_project(rows)
        assert set(groups) == {"sp1", "sp2", None}
        assert groups["sp1"].income == 500
        assert groups["sp1"].scheduled_income == 300
        assert groups["sp2"].expense == 100
        assert sum(g.count for g in groups.values()) == len(rows)

    def test_group_by_item(self):
        groups = group_by_item(LEDGER)
        assert groups["t1"].income == 500
        assert groups["t9"].expense == 100
