from typing import Dict, List, Optional

from pydantic import BaseModel

from studio_portal.models.budget import Budget
from studio_portal.services.budget import BudgetSummary
from studio_portal.services.rollup import Rollup


# Properties to return for a budget page
class BudgetView(BaseModel):
    budget: Budget
    summary: BudgetSummary


class SubProjectBudgetLine(BaseModel):
    sub_project_id: str
    name: str
    total: int


class ProjectBudgetView(BudgetView):
    sub_projects: List[SubProjectBudgetLine] = []
    # Ledger figures per sub-project; rows booked on the project itself are keyed "project"
    by_sub_project: Dict[str, Rollup] = {}


class ItemFigures(BaseModel):
    item_id: str
    name: Optional[str] = None
    figures: Rollup


class SubProjectBudgetView(BudgetView):
    by_item: List[ItemFigures] = []
