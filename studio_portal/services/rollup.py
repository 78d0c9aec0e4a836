"""
Financial Rollup

Aggregates ledger rows into income, expense and balance figures. Only completed
rows count as realized; pending rows are reported separately as scheduled.

Amounts stay integers in the smallest currency unit throughout. Converting to a
display currency is the presentation layer's job and never happens here, so repeated
rollups cannot drift.
"""
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel

from studio_portal.models.transaction import TransactionStatus, TransactionType


class TransactionFilter(BaseModel):
    """
    Filter over the ledger. Every set dimension must match (AND); unset ones are ignored.
    """
    project_id: Optional[str] = None
    sub_project_id: Optional[str] = None
    sub_project_item_id: Optional[str] = None
    client_id: Optional[str] = None
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None

    def matches(self, transaction: Any) -> bool:
        for field, expected in self.model_dump(exclude_none=True).items():
            if getattr(transaction, field, None) != expected:
                return False
        return True


class Rollup(BaseModel):
    """
    Aggregated ledger figures.

    Attributes:
        income: Sum of completed income
        expense: Sum of completed expenses
        balance: income - expense
        scheduled_income: Sum of pending income
        scheduled_expense: Sum of pending expenses
        count: Number of rows aggregated (any status)
    """
    income: int = 0
    expense: int = 0
    balance: int = 0
    scheduled_income: int = 0
    scheduled_expense: int = 0
    count: int = 0


def filter_transactions(transactions: Iterable[Any], filter: Optional[TransactionFilter] = None) -> List[Any]:
    if filter is None:
        return list(transactions)
    return [t for t in transactions if filter.matches(t)]


def rollup(transactions: Iterable[Any], filter: Optional[TransactionFilter] = None) -> Rollup:
    """
    Aggregate transactions, optionally restricted by a filter.

    Completed income 500, pending income 300 and completed expense 100 give
    income=500, expense=100, balance=400 and scheduled_income=300.
    """
    result = Rollup()
    for transaction in filter_transactions(transactions, filter):
        amount = transaction.amount or 0
        is_income = transaction.type == TransactionType.income
        if transaction.status == TransactionStatus.pending:
            if is_income:
                result.scheduled_income += amount
            else:
                result.scheduled_expense += amount
        elif is_income:
            result.income += amount
        else:
            result.expense += amount
        result.count += 1
    result.balance = result.income - result.expense
    return result


def _group(transactions: Iterable[Any], key: str) -> Dict[Optional[str], Rollup]:
    buckets: "OrderedDict[Optional[str], list]" = OrderedDict()
    for transaction in transactions:
        buckets.setdefault(getattr(transaction, key, None), []).append(transaction)
    return {group: rollup(rows) for group, rows in buckets.items()}


def group_by_sub_project(transactions: Iterable[Any]) -> Dict[Optional[str], Rollup]:
    """Rollup per sub_project_id; rows without one are grouped under None."""
    return _group(transactions, "sub_project_id")


def group_by_item(transactions: Iterable[Any]) -> Dict[Optional[str], Rollup]:
    """Rollup per sub_project_item_id (stage or task)."""
    return _group(transactions, "sub_project_item_id")
