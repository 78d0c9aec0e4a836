"""
Budget Engine

Computes effective budget totals and joins them with the ledger.

- manual budgets: the sum of their line items when there are any, otherwise the
  stored total
- dynamic budgets (projects only): the sum of the project's sub-project totals

Dynamic totals are recomputed from the children on every read. The stored copy is
only a cache for readers that do not go through this module, refreshed whenever a
project or sub-project budget is saved.
"""
import uuid
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ValidationError

from studio_portal.core.errors import InvalidInput
from studio_portal.models.budget import Budget, BudgetType
from studio_portal.services.rollup import rollup
from studio_portal.services.task_tree import percent_of


class BudgetSummary(BaseModel):
    """
    Planned vs. realized figures for one budget.

    Attributes:
        total: Effective budget total
        received: Completed income
        expense: Completed expenses
        balance: received - expense
        remaining: What is still to be received, never negative
        financial_progress: received as a percentage of total, capped at 100
        scheduled_income: Pending income
    """
    total: int = 0
    received: int = 0
    expense: int = 0
    balance: int = 0
    remaining: int = 0
    financial_progress: int = 0
    scheduled_income: int = 0


def resolve_budget_total(budget: Any, child_budgets: Optional[Iterable[Any]] = None) -> int:
    """
    Effective total of a budget.

    Args:
        budget: Budget (or raw budget document)
        child_budgets: Budgets of the sub-projects when resolving a project. Omit at
            sub-project level; a dynamic budget without children resolves as manual,
            since dynamic budgets do not recurse.

    Returns:
        int: The total in the smallest currency unit
    """
    budget = Budget.from_raw(budget)
    if budget.type == BudgetType.DYNAMIC and child_budgets is not None:
        return sum(resolve_budget_total(child) for child in child_budgets)
    if budget.items:
        return sum(item.amount for item in budget.items)
    return budget.total


def financial_progress(total: int, income_received: int) -> int:
    """Percentage of the budget already received, 0 for an empty budget, at most 100."""
    if total <= 0:
        return 0
    return min(100, percent_of(income_received, total))


def remaining(total: int, income_received: int) -> int:
    return max(0, total - income_received)


def apply_budget_update(update: Any, child_budgets: Optional[Iterable[Any]] = None) -> Budget:
    """
    Normalize a budget about to be saved.

    Line items get ids when they have none and the stored total is set to the
    resolved total, so item edits and dynamic sums are reflected immediately.

    Raises:
        InvalidInput: For malformed documents or negative amounts
    """
    if isinstance(update, Budget):
        budget = update.model_copy(deep=True)
    else:
        try:
            budget = Budget.model_validate(update or {})
        except ValidationError as exc:
            raise InvalidInput(f"Invalid budget: {exc.error_count()} error(s)") from exc

    if budget.total < 0 or any(item.amount < 0 for item in budget.items):
        raise InvalidInput("Budget amounts must not be negative")

    for item in budget.items:
        if not item.id:
            item.id = str(uuid.uuid4())
    budget.total = resolve_budget_total(budget, child_budgets)
    return budget


def budget_summary(total: int, transactions: Iterable[Any]) -> BudgetSummary:
    """Join a budget total with the (already scoped) ledger rows it is paid by."""
    figures = rollup(transactions)
    return BudgetSummary(
        total=total,
        received=figures.income,
        expense=figures.expense,
        balance=figures.balance,
        remaining=remaining(total, figures.income),
        financial_progress=financial_progress(total, figures.income),
        scheduled_income=figures.scheduled_income,
    )
