"""
Dashboard Endpoints Module

Landing-page views: the tasks assigned to the calling client, and budget/progress
overviews for every project the caller can see.
"""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends

from studio_portal.api import deps
from studio_portal.core.errors import Unauthorized
from studio_portal.db.store import PortalStore
from studio_portal.models.user import Caller
from studio_portal.services.dashboard import (
    ClientTaskSummary,
    ProjectOverview,
    client_task_summary,
    project_overview,
)
from studio_portal.services.rollup import TransactionFilter

router = APIRouter()


@router.get("/tasks", response_model=ClientTaskSummary)
def my_tasks(
    today: Optional[date] = None,
    client_id: str = Depends(deps.get_current_client_id),
    store: PortalStore = Depends(deps.get_store),
):
    """
    Tasks assigned to the calling client across every project they can access.

    Args:
        today: Reference date for overdue flags (defaults to the current date)

    Returns:
        ClientTaskSummary: Totals, next deadline and the assigned tasks
    """
    projects = store.list_projects_for_client(client_id)
    sub_projects = store.list_sub_projects_for_projects(project.id for project in projects)
    return client_task_summary(client_id, sub_projects, today=today)


@router.get("/projects", response_model=List[ProjectOverview])
def project_overviews(
    store: PortalStore = Depends(deps.get_store),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Budget and progress overview of every project visible to the caller.

    Raises:
        Unauthorized: If a client caller has no Client record
    """
    if current_caller.is_client:
        client = store.load_client(current_caller.email)
        if client is None:
            raise Unauthorized("No client record for this account")
        projects = store.list_projects_for_client(client.id)
    else:
        projects = store.list_projects()

    overviews = []
    for project in projects:
        sub_projects = store.list_sub_projects(project.id)
        transactions = store.list_transactions(TransactionFilter(project_id=project.id))
        overviews.append(project_overview(project, sub_projects, transactions))
    return overviews
