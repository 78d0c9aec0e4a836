"""
Task Tree Engine

Operations over a single sub-project's content document (stages -> tasks ->
checklists / comments / attachments).

The document is a value: every mutator parses its input, works on a deep copy and
returns the new document, leaving the input untouched. Callers persist the returned
document whole, so two concurrent writers simply overwrite each other (last write
wins). Tasks are addressed by arena-style indices (``TaskLocation``) rather than by
references into the tree.

Lookups raise NotFound; malformed requests raise InvalidInput before anything is
changed.
"""
import uuid
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ValidationError

from studio_portal.core.errors import InvalidInput, NotFound
from studio_portal.models.content import (
    Attachment,
    Checklist,
    ChecklistItem,
    Comment,
    Content,
    Stage,
    TaskItem,
)
from studio_portal.models.user import Caller

ContentLike = Union[Content, Dict[str, Any], None]

# Fields update_task_fields may merge, keyed by every accepted spelling
EDITABLE_FIELDS = {
    "text": "text",
    "description": "description",
    "completed": "completed",
    "start_date": "start_date",
    "startDate": "start_date",
    "due_date": "due_date",
    "dueDate": "due_date",
    "assigned_to": "assigned_to",
    "assignedTo": "assigned_to",
    "checklists": "checklists",
    "attachments": "attachments",
    "comments": "comments",
}


class TaskLocation(NamedTuple):
    stage_index: int
    task_index: int


class Progress(BaseModel):
    total: int = 0
    completed: int = 0
    percent: int = 0


class ScheduledTask(BaseModel):
    id: str
    name: str
    stage_name: str
    start: date
    end: date
    completed: bool


class ScheduleGroup(BaseModel):
    sub_project_id: str
    sub_project_name: str
    tasks: List[ScheduledTask]


class Schedule(BaseModel):
    """Timeline of every dated task, grouped by sub-project."""
    groups: List[ScheduleGroup] = []
    start: Optional[date] = None
    end: Optional[date] = None
    total_days: int = 0


def percent_of(part: int, whole: int) -> int:
    """Integer percentage rounded half up; 0 when ``whole`` is not positive."""
    if whole <= 0:
        return 0
    return (part * 200 + whole) // (2 * whole)


def _copy(content: ContentLike) -> Content:
    return Content.from_raw(content, strict=True).model_copy(deep=True)


def _require_text(value: Optional[str], what: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f"{what} must not be empty")
    return str(value).strip()


def _existing_ids(content: Content) -> set:
    ids = set()
    for stage in content.stages:
        ids.add(stage.id)
        for task in stage.items:
            ids.add(task.id)
    return ids


def _new_id(content: Content, supplied: Optional[str] = None) -> str:
    # Stage and task ids share one namespace: ledger rows may reference either
    new_id = supplied or str(uuid.uuid4())
    if new_id in _existing_ids(content):
        raise InvalidInput(f"Duplicate id in content document: {new_id}")
    return new_id


def _child_id(existing: Iterable[Any], supplied: Optional[str] = None) -> str:
    new_id = supplied or str(uuid.uuid4())
    if any(node.id == new_id for node in existing):
        raise InvalidInput(f"Duplicate id: {new_id}")
    return new_id


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

def find_task(content: ContentLike, task_id: str) -> TaskLocation:
    """
    Locate a task by id.

    Stages are scanned in order, then tasks in order; the first match wins.

    Raises:
        NotFound: If no task has this id
    """
    content = Content.from_raw(content)
    for stage_index, stage in enumerate(content.stages):
        for task_index, task in enumerate(stage.items):
            if task.id == task_id:
                return TaskLocation(stage_index, task_index)
    raise NotFound("Task", task_id)


def get_task(content: ContentLike, task_id: str) -> TaskItem:
    content = Content.from_raw(content)
    location = find_task(content, task_id)
    return content.stages[location.stage_index].items[location.task_index]


def find_stage(content: ContentLike, stage_id: str) -> int:
    content = Content.from_raw(content)
    for stage_index, stage in enumerate(content.stages):
        if stage.id == stage_id:
            return stage_index
    raise NotFound("Stage", stage_id)


def item_name(content: ContentLike, item_id: Optional[str]) -> Optional[str]:
    """
    Resolve a ledger row's ``sub_project_item_id`` to a readable name.

    The id may reference a stage (its name) or a task (its text). Older documents
    used "title"/"name" keys, which are honoured as fallbacks.
    """
    if not item_id:
        return None
    content = Content.from_raw(content)
    for stage in content.stages:
        if stage.id == item_id:
            return stage.name or getattr(stage, "title", None)
        for task in stage.items:
            if task.id == item_id:
                return (
                    task.text
                    or getattr(task, "title", None)
                    or getattr(task, "name", None)
                    or task.description
                )
    return None


def tasks_assigned_to(content: ContentLike, client_id: str) -> List[Tuple[Stage, TaskItem]]:
    """Every task assigned to the client, with the stage it sits in, in board order."""
    content = Content.from_raw(content)
    return [
        (stage, task)
        for stage in content.stages
        for task in stage.items
        if client_id in task.assigned_to
    ]


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def is_overdue(task: TaskItem, today: Optional[date] = None) -> bool:
    """A task is overdue when it is not completed and its due date has passed."""
    due = _parse_date(task.due_date)
    if due is None or task.completed:
        return False
    return due < (today or date.today())


# ---------------------------------------------------------------------------
# Stage mutations
# ---------------------------------------------------------------------------

def add_stage(content: ContentLike, name: str, stage_id: Optional[str] = None) -> Content:
    name = _require_text(name, "Stage name")
    new = _copy(content)
    new.stages.append(Stage(id=_new_id(new, stage_id), name=name, items=[]))
    return new


def rename_stage(content: ContentLike, stage_id: str, name: str) -> Content:
    name = _require_text(name, "Stage name")
    new = _copy(content)
    new.stages[find_stage(new, stage_id)].name = name
    return new


def remove_stage(content: ContentLike, stage_id: str) -> Content:
    """Delete a stage and every task in it. There is no soft delete."""
    new = _copy(content)
    del new.stages[find_stage(new, stage_id)]
    return new


# ---------------------------------------------------------------------------
# Task mutations
# ---------------------------------------------------------------------------

def add_task(
    content: ContentLike,
    stage_id: str,
    text: str,
    assigned_to: Sequence[str] = (),
    task_id: Optional[str] = None,
    description: Optional[str] = None,
    start_date: Optional[str] = None,
    due_date: Optional[str] = None,
) -> Content:
    """
    Append a new, not yet completed task to a stage.

    A new UUID is generated unless ``task_id`` is supplied; a supplied id that
    collides with any stage or task id in the document is rejected.
    """
    text = _require_text(text, "Task text")
    new = _copy(content)
    stage_index = find_stage(new, stage_id)
    task = TaskItem(
        id=_new_id(new, task_id),
        text=text,
        description=description,
        completed=False,
        assigned_to=list(dict.fromkeys(assigned_to)),
        start_date=start_date,
        due_date=due_date,
    )
    new.stages[stage_index].items.append(task)
    return new


def remove_task(content: ContentLike, stage_id: str, task_id: str) -> Content:
    new = _copy(content)
    stage = new.stages[find_stage(new, stage_id)]
    for index, task in enumerate(stage.items):
        if task.id == task_id:
            del stage.items[index]
            return new
    raise NotFound("Task", task_id)


def toggle_completion(content: ContentLike, task_id: str) -> Content:
    new = _copy(content)
    location = find_task(new, task_id)
    task = new.stages[location.stage_index].items[location.task_index]
    task.completed = not task.completed
    return new


def move_task(content: ContentLike, task_id: str, from_stage_id: str, to_stage_id: str) -> Content:
    """
    Move a task to the end of another stage.

    Moving within the same stage is a no-op: reordering inside a stage is not
    supported, and the task keeps no position in its new stage.
    """
    new = _copy(content)
    if from_stage_id == to_stage_id:
        return new
    source = new.stages[find_stage(new, from_stage_id)]
    target = new.stages[find_stage(new, to_stage_id)]
    for index, task in enumerate(source.items):
        if task.id == task_id:
            target.items.append(source.items.pop(index))
            return new
    raise NotFound("Task", task_id)


def update_task_fields(content: ContentLike, task_id: str, fields: Dict[str, Any]) -> Content:
    """
    Merge editable fields into a task.

    Accepts snake_case or the document's camelCase keys. Anything else (including
    ``id``) is rejected before the document is touched.
    """
    unknown = [key for key in fields if key not in EDITABLE_FIELDS]
    if unknown:
        raise InvalidInput(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    if "text" in fields:
        _require_text(fields["text"], "Task text")

    new = _copy(content)
    location = find_task(new, task_id)
    stage = new.stages[location.stage_index]
    data = stage.items[location.task_index].model_dump()
    for key, value in fields.items():
        if isinstance(value, list):
            value = [v.model_dump() if isinstance(v, BaseModel) else v for v in value]
        data[EDITABLE_FIELDS[key]] = value
    try:
        stage.items[location.task_index] = TaskItem.model_validate(data)
    except ValidationError as exc:
        raise InvalidInput(f"Invalid task fields: {exc.error_count()} error(s)") from exc
    return new


def toggle_assignment(content: ContentLike, task_id: str, client_id: str) -> Content:
    new = _copy(content)
    location = find_task(new, task_id)
    task = new.stages[location.stage_index].items[location.task_index]
    if client_id in task.assigned_to:
        task.assigned_to = [c for c in task.assigned_to if c != client_id]
    else:
        task.assigned_to = task.assigned_to + [client_id]
    return new


# ---------------------------------------------------------------------------
# Task details: checklists, comments, attachments
# ---------------------------------------------------------------------------

def _task_in(new: Content, task_id: str) -> TaskItem:
    location = find_task(new, task_id)
    return new.stages[location.stage_index].items[location.task_index]


def _checklist_in(task: TaskItem, checklist_id: str) -> Checklist:
    for checklist in task.checklists:
        if checklist.id == checklist_id:
            return checklist
    raise NotFound("Checklist", checklist_id)


def add_checklist(content: ContentLike, task_id: str, title: str, checklist_id: Optional[str] = None) -> Content:
    title = _require_text(title, "Checklist title")
    new = _copy(content)
    task = _task_in(new, task_id)
    task.checklists.append(Checklist(id=_child_id(task.checklists, checklist_id), title=title, items=[]))
    return new


def add_checklist_item(content: ContentLike, task_id: str, checklist_id: str, text: str) -> Content:
    text = _require_text(text, "Checklist item text")
    new = _copy(content)
    checklist = _checklist_in(_task_in(new, task_id), checklist_id)
    checklist.items.append(ChecklistItem(id=_child_id(checklist.items), text=text, completed=False))
    return new


def toggle_checklist_item(content: ContentLike, task_id: str, checklist_id: str, item_id: str) -> Content:
    new = _copy(content)
    checklist = _checklist_in(_task_in(new, task_id), checklist_id)
    for item in checklist.items:
        if item.id == item_id:
            item.completed = not item.completed
            return new
    raise NotFound("Checklist item", item_id)


def remove_checklist_item(content: ContentLike, task_id: str, checklist_id: str, item_id: str) -> Content:
    new = _copy(content)
    checklist = _checklist_in(_task_in(new, task_id), checklist_id)
    remaining = [item for item in checklist.items if item.id != item_id]
    if len(remaining) == len(checklist.items):
        raise NotFound("Checklist item", item_id)
    checklist.items = remaining
    return new


def add_comment(
    content: ContentLike,
    task_id: str,
    text: str,
    author: Caller,
    now: Optional[datetime] = None,
) -> Content:
    text = _require_text(text, "Comment")
    new = _copy(content)
    task = _task_in(new, task_id)
    task.comments.append(
        Comment(
            id=_child_id(task.comments),
            text=text,
            user_id=author.user_id,
            user_name=author.name or author.email,
            user_role=author.role.value,
            created_at=(now or datetime.utcnow()).isoformat(),
        )
    )
    return new


def add_attachment(
    content: ContentLike,
    task_id: str,
    url: str,
    name: Optional[str] = None,
    kind: str = "link",
) -> Content:
    url = _require_text(url, "Attachment url")
    new = _copy(content)
    task = _task_in(new, task_id)
    task.attachments.append(
        Attachment(id=_child_id(task.attachments), name=(name or "").strip() or url, url=url, type=kind)
    )
    return new


def remove_attachment(content: ContentLike, task_id: str, attachment_id: str) -> Content:
    new = _copy(content)
    task = _task_in(new, task_id)
    remaining = [a for a in task.attachments if a.id != attachment_id]
    if len(remaining) == len(task.attachments):
        raise NotFound("Attachment", attachment_id)
    task.attachments = remaining
    return new


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def _progress(completed: int, total: int) -> Progress:
    return Progress(total=total, completed=completed, percent=percent_of(completed, total))


def stage_progress(stage: Stage) -> Progress:
    return _progress(sum(1 for task in stage.items if task.completed), len(stage.items))


def progress(content: ContentLike) -> Progress:
    """Completed vs total tasks over every stage of the document."""
    content = Content.from_raw(content)
    total = completed = 0
    for stage in content.stages:
        total += len(stage.items)
        completed += sum(1 for task in stage.items if task.completed)
    return _progress(completed, total)


def combined_progress(contents: Iterable[ContentLike]) -> Progress:
    """Task progress across several documents, e.g. every sub-project of a project."""
    total = completed = 0
    for content in contents:
        part = progress(content)
        total += part.total
        completed += part.completed
    return _progress(completed, total)


def checklist_progress(task: TaskItem) -> Progress:
    items = [item for checklist in task.checklists for item in checklist.items]
    return _progress(sum(1 for item in items if item.completed), len(items))


def schedule(sub_projects: Iterable[Any]) -> Schedule:
    """
    Build a timeline from every task that has both a start and a due date.

    Accepts SubProject rows (anything with ``id``, ``name`` and ``content``). Tasks
    are sorted by start date within each sub-project; sub-projects without dated
    tasks are left out.
    """
    groups = []
    start = end = None
    for sub_project in sub_projects:
        content = Content.from_raw(sub_project.content)
        tasks = []
        for stage in content.stages:
            for task in stage.items:
                task_start = _parse_date(task.start_date)
                task_end = _parse_date(task.due_date)
                if task_start is None or task_end is None:
                    continue
                tasks.append(ScheduledTask(
                    id=task.id,
                    name=task.text,
                    stage_name=stage.name,
                    start=task_start,
                    end=task_end,
                    completed=task.completed,
                ))
                start = task_start if start is None else min(start, task_start)
                end = task_end if end is None else max(end, task_end)
        if tasks:
            tasks.sort(key=lambda t: t.start)
            groups.append(ScheduleGroup(
                sub_project_id=sub_project.id,
                sub_project_name=sub_project.name,
                tasks=tasks,
            ))
    if start is None:
        return Schedule()
    return Schedule(groups=groups, start=start, end=end, total_days=(end - start).days + 1)
