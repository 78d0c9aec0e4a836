from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from studio_portal.models.content import TaskItem
from studio_portal.services.task_tree import Progress


# Request bodies for task tree operations. Both snake_case and the document's
# camelCase spellings are accepted.
class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StageCreate(_Request):
    name: str
    id: Optional[str] = None


class StageRename(_Request):
    name: str


class TaskCreate(_Request):
    text: str
    id: Optional[str] = None
    description: Optional[str] = None
    assigned_to: List[str] = Field(default_factory=list, alias="assignedTo")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    due_date: Optional[str] = Field(default=None, alias="dueDate")


class TaskMove(_Request):
    from_stage_id: str = Field(alias="fromStageId")
    to_stage_id: str = Field(alias="toStageId")


class ChecklistCreate(_Request):
    title: str
    id: Optional[str] = None


class ChecklistItemCreate(_Request):
    text: str


class CommentCreate(_Request):
    text: str


class AttachmentCreate(_Request):
    url: str
    name: Optional[str] = None
    type: str = "link"


# Properties to receive when reordering sub-projects
class SubProjectOrder(_Request):
    ordered_ids: List[str] = Field(alias="orderedIds")


# Properties to return for one task of the board
class TaskDetail(BaseModel):
    stage_id: str
    stage_name: str
    task: TaskItem
    checklist_progress: Progress
    overdue: bool = False


class StageProgress(BaseModel):
    stage_id: str
    name: str
    progress: Progress
