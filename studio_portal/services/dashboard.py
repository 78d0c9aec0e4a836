"""
Dashboard Aggregation

Read-side views combining the task tree, the budget engine and the ledger:
- project_overview: what the admin and client budget pages show per project
- client_task_summary: the tasks assigned to one client across their projects
"""
from datetime import date
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel

from studio_portal.models.content import TaskItem
from studio_portal.services.budget import BudgetSummary, budget_summary, resolve_budget_total
from studio_portal.services.task_tree import Progress, combined_progress, is_overdue, tasks_assigned_to


class ProjectOverview(BaseModel):
    project_id: str
    name: str
    status: str
    budget_total: int
    budget: BudgetSummary
    progress: Progress
    sub_project_count: int


class AssignedTask(BaseModel):
    project_id: str
    sub_project_id: str
    sub_project_name: str
    stage_name: str
    task: TaskItem
    overdue: bool = False


class ClientTaskSummary(BaseModel):
    """
    Attributes:
        total: Tasks assigned to the client
        completed: Assigned tasks already completed
        pending: Assigned tasks still open
        next_deadline: Earliest due date among pending tasks
        tasks: Every assigned task, completed or not
    """
    total: int = 0
    completed: int = 0
    pending: int = 0
    next_deadline: Optional[date] = None
    tasks: List[AssignedTask] = []


def project_total(project: Any, sub_projects: Iterable[Any]) -> int:
    """Effective budget total of a project, summing its sub-projects when dynamic."""
    return resolve_budget_total(project.budget, [sp.budget for sp in sub_projects])


def project_overview(project: Any, sub_projects: Iterable[Any], transactions: Iterable[Any]) -> ProjectOverview:
    """
    Budget and task figures for one project.

    ``transactions`` should already be scoped to the project; sub-project rows are
    part of the project's figures.
    """
    sub_projects = list(sub_projects)
    total = project_total(project, sub_projects)
    status = project.status.value if hasattr(project.status, "value") else str(project.status)
    return ProjectOverview(
        project_id=project.id,
        name=project.name,
        status=status,
        budget_total=total,
        budget=budget_summary(total, transactions),
        progress=combined_progress(sp.content for sp in sub_projects),
        sub_project_count=len(sub_projects),
    )


def _parse_due(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def client_task_summary(client_id: str, sub_projects: Iterable[Any], today: Optional[date] = None) -> ClientTaskSummary:
    """
    Collect the tasks assigned to a client across the given sub-projects.

    Callers pass only sub-projects of projects the client has access to; assignment
    entries on other projects grant nothing and are not looked at here.
    """
    summary = ClientTaskSummary()
    for sub_project in sub_projects:
        for stage, task in tasks_assigned_to(sub_project.content, client_id):
            summary.total += 1
            if task.completed:
                summary.completed += 1
            else:
                summary.pending += 1
                due = _parse_due(task.due_date)
                if due is not None and (summary.next_deadline is None or due < summary.next_deadline):
                    summary.next_deadline = due
            summary.tasks.append(AssignedTask(
                project_id=sub_project.project_id,
                sub_project_id=sub_project.id,
                sub_project_name=sub_project.name,
                stage_name=stage.name,
                task=task,
                overdue=is_overdue(task, today),
            ))
    return summary
