"""
Budget Endpoints Module

Budget pages for projects and sub-projects: the budget document, its effective
total, and what has been received and spent against it according to the ledger.

Any caller with access to the project may read its budgets; only administrators
change them. Dynamic project totals are recomputed from the sub-projects on every
read, and the stored copy is refreshed whenever a project or sub-project budget is
saved.
"""
import logging
from typing import Any, Dict
from fastapi import APIRouter, Depends

from studio_portal.api import deps
from studio_portal.db.store import PortalStore
from studio_portal.models.budget import Budget
from studio_portal.models.user import Caller
from studio_portal.schemas.budget import (
    ItemFigures,
    ProjectBudgetView,
    SubProjectBudgetLine,
    SubProjectBudgetView,
)
from studio_portal.services.access import AccessResolver
from studio_portal.services.budget import apply_budget_update, budget_summary, resolve_budget_total
from studio_portal.services.rollup import TransactionFilter, group_by_item, group_by_sub_project
from studio_portal.services.task_tree import item_name

logger = logging.getLogger(__name__)

router = APIRouter()


def _project_view(store: PortalStore, project_id: str) -> ProjectBudgetView:
    project = store.load_project(project_id)
    sub_projects = store.list_sub_projects(project_id)
    budget = Budget.from_raw(project.budget).model_copy(deep=True)
    budget.total = resolve_budget_total(budget, [sp.budget for sp in sub_projects])
    transactions = store.list_transactions(TransactionFilter(project_id=project_id))
    return ProjectBudgetView(
        budget=budget,
        summary=budget_summary(budget.total, transactions),
        sub_projects=[
            SubProjectBudgetLine(sub_project_id=sp.id, name=sp.name, total=resolve_budget_total(sp.budget))
            for sp in sub_projects
        ],
        by_sub_project={
            key or "project": figures for key, figures in group_by_sub_project(transactions).items()
        },
    )


def _sub_project_view(store: PortalStore, sub_project_id: str) -> SubProjectBudgetView:
    sub_project = store.load_sub_project(sub_project_id)
    budget = Budget.from_raw(sub_project.budget).model_copy(deep=True)
    budget.total = resolve_budget_total(budget)
    transactions = store.list_transactions(TransactionFilter(sub_project_id=sub_project_id))
    return SubProjectBudgetView(
        budget=budget,
        summary=budget_summary(budget.total, transactions),
        by_item=[
            ItemFigures(item_id=item_id, name=item_name(sub_project.content, item_id), figures=figures)
            for item_id, figures in group_by_item(transactions).items()
            if item_id is not None
        ],
    )


@router.get("/projects/{project_id}", response_model=ProjectBudgetView)
def read_project_budget(
    project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Get a project's budget with its ledger figures.

    Returns:
        ProjectBudgetView: The budget (with its resolved total), received/spent
        figures, each sub-project's total and ledger figures per sub-project

    Raises:
        Unauthorized: If the caller has no access to the project
        NotFound: If the project doesn't exist
    """
    resolver.resolve(current_caller, project_id)
    return _project_view(store, project_id)


@router.put("/projects/{project_id}", response_model=ProjectBudgetView)
def update_project_budget(
    project_id: str,
    budget_in: Dict[str, Any],
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Replace a project's budget document.

    Args:
        budget_in: Budget document {total, type, items, notes}; amounts in the
            smallest currency unit

    Raises:
        InvalidInput: If the document is malformed or has negative amounts
        NotFound: If the project doesn't exist
    """
    store.load_project(project_id)
    children = [sp.budget for sp in store.list_sub_projects(project_id)]
    budget = apply_budget_update(budget_in, children)
    store.save_project(project_id, {"budget": budget.to_raw()})
    logger.info("Budget of project %s saved by %s", project_id, current_admin.email)
    return _project_view(store, project_id)


@router.get("/sub-projects/{sub_project_id}", response_model=SubProjectBudgetView)
def read_sub_project_budget(
    sub_project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Get a sub-project's budget with its ledger figures, broken down per stage or
    task the ledger rows were booked against.
    """
    sub_project = store.load_sub_project(sub_project_id)
    resolver.resolve(current_caller, sub_project.project_id)
    return _sub_project_view(store, sub_project_id)


@router.put("/sub-projects/{sub_project_id}", response_model=SubProjectBudgetView)
def update_sub_project_budget(
    sub_project_id: str,
    budget_in: Dict[str, Any],
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Replace a sub-project's budget document.

    A dynamic parent project's stored total is refreshed in the same request.

    Raises:
        InvalidInput: If the document is malformed or has negative amounts
        NotFound: If the sub-project doesn't exist
    """
    sub_project = store.load_sub_project(sub_project_id)
    budget = apply_budget_update(budget_in)
    store.save_sub_project(sub_project_id, {"budget": budget.to_raw()})
    logger.info("Budget of sub-project %s saved by %s", sub_project_id, current_admin.email)
    store.refresh_dynamic_total(sub_project.project_id)
    return _sub_project_view(store, sub_project_id)
