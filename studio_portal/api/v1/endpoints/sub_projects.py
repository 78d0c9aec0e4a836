"""
Sub-Project Endpoints Module

This module exposes a sub-project and every operation on its task tree (stages,
tasks, checklists, comments and attachments).

Each mutating request:
1. Loads the sub-project and re-resolves the caller's access to its project
2. Checks the caller may make this particular change
3. Applies the change to a copy of the content document
4. Saves the whole document back (last write wins)

Structural changes (stages, adding/removing/moving tasks, replacing the document)
need an administrator or a client who is not read-only. Changes to a single task
are also open to a read-only client the task is assigned to: they may tick the task
and its checklist items, edit its dates and text, and comment. Assignment,
attachments, checklist structure and the stored comment list stay locked.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
from fastapi import APIRouter, Depends
from pydantic import ValidationError

from studio_portal.api import deps
from studio_portal.core.errors import InvalidInput
from studio_portal.db.store import PortalStore
from studio_portal.models.content import Content
from studio_portal.models.resources import Credential, Link
from studio_portal.models.sub_project import SubProject, SubProjectRead, SubProjectUpdate
from studio_portal.models.user import Caller
from studio_portal.schemas.content import (
    AttachmentCreate,
    ChecklistCreate,
    ChecklistItemCreate,
    CommentCreate,
    StageCreate,
    StageProgress,
    StageRename,
    TaskCreate,
    TaskDetail,
    TaskMove,
)
from studio_portal.services import resources, task_tree
from studio_portal.services.access import (
    AccessResolver,
    ProjectAccess,
    require_content_mutation,
    require_task_mutation,
)
from studio_portal.services.task_tree import Progress

logger = logging.getLogger(__name__)

router = APIRouter()


def _load(store: PortalStore, resolver: AccessResolver, caller: Caller, sub_project_id: str) -> Tuple[SubProject, ProjectAccess]:
    sub_project = store.load_sub_project(sub_project_id)
    access = resolver.resolve(caller, sub_project.project_id)
    return sub_project, access


def _load_for_structure(store, resolver, caller, sub_project_id) -> Tuple[SubProject, Content]:
    sub_project, access = _load(store, resolver, caller, sub_project_id)
    require_content_mutation(caller, access)
    return sub_project, Content.from_raw(sub_project.content, strict=True)


def _load_for_task(store, resolver, caller, sub_project_id, task_id, fields=()) -> Tuple[SubProject, Content]:
    sub_project, access = _load(store, resolver, caller, sub_project_id)
    content = Content.from_raw(sub_project.content, strict=True)
    require_task_mutation(caller, task_tree.get_task(content, task_id), access, fields)
    return sub_project, content


def _save(store: PortalStore, sub_project: SubProject, content: Content, action: str, caller: Caller) -> SubProject:
    saved = store.save_sub_project_content(sub_project.id, content)
    logger.info("%s on sub-project %s by %s", action, sub_project.id, caller.email)
    return saved


@router.get("/{sub_project_id}", response_model=SubProjectRead)
def read_sub_project(
    sub_project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Get a sub-project with its content and budget documents.

    Raises:
        NotFound: If the sub-project doesn't exist
        Unauthorized: If the caller has no access to the owning project
    """
    sub_project, _ = _load(store, resolver, current_caller, sub_project_id)
    return sub_project


@router.patch("/{sub_project_id}", response_model=SubProjectRead)
def update_sub_project(
    sub_project_id: str,
    sub_project_update: SubProjectUpdate,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """Update sub-project metadata (name, description, status)."""
    return store.save_sub_project(sub_project_id, sub_project_update.model_dump(exclude_unset=True))


@router.delete("/{sub_project_id}")
def delete_sub_project(
    sub_project_id: str,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Delete a sub-project. Ledger rows that referenced it stay on the project.

    Returns:
        dict: Success message
    """
    store.delete_sub_project(sub_project_id)
    return {"status": "success", "detail": "Sub-project deleted"}


@router.get("/{sub_project_id}/progress", response_model=Progress)
def read_sub_project_progress(
    sub_project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    sub_project, _ = _load(store, resolver, current_caller, sub_project_id)
    return task_tree.progress(sub_project.content)


@router.get("/{sub_project_id}/progress/stages", response_model=List[StageProgress])
def read_stage_progress(
    sub_project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """Task completion per stage, in board order."""
    sub_project, _ = _load(store, resolver, current_caller, sub_project_id)
    content = Content.from_raw(sub_project.content)
    return [
        StageProgress(stage_id=stage.id, name=stage.name, progress=task_tree.stage_progress(stage))
        for stage in content.stages
    ]


@router.put("/{sub_project_id}/content", response_model=SubProjectRead)
def replace_content(
    sub_project_id: str,
    content_in: Dict[str, Any],
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Replace the whole task tree of a sub-project.

    Unlike stored documents, which are read leniently, a replacement must be a
    valid content document.

    Raises:
        InvalidInput: If the document is malformed
    """
    sub_project, _ = _load_for_structure(store, resolver, current_caller, sub_project_id)
    try:
        content = Content.model_validate(content_in)
    except ValidationError as exc:
        raise InvalidInput(f"Invalid content document: {exc.error_count()} error(s)") from exc
    return _save(store, sub_project, content, "Replaced content", current_caller)


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

@router.post("/{sub_project_id}/stages", response_model=SubProjectRead)
def add_stage(
    sub_project_id: str,
    stage_in: StageCreate,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    sub_project, content = _load_for_structure(store, resolver, current_caller, sub_project_id)
    content = task_tree.add_stage(content, stage_in.name, stage_in.id)
    return _save(store, sub_project, content, "Added stage", current_caller)


@router.patch("/{sub_project_id}/stages/{stage_id}", response_model=SubProjectRead)
def rename_stage(
    sub_project_id: str,
    stage_id: str,
    stage_in: StageRename,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    sub_project, content = _load_for_structure(store, resolver, current_caller, sub_project_id)
    content = task_tree.rename_stage(content, stage_id, stage_in.name)
    return _save(store, sub_project, content, "Renamed stage", current_caller)


@router.delete("/{sub_project_id}/stages/{stage_id}", response_model=SubProjectRead)
def remove_stage(
    sub_project_id: str,
    stage_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """Remove a stage together with every task in it."""
    sub_project, content = _load_for_structure(store, resolver, current_caller, sub_project_id)
    content = task_tree.remove_stage(content, stage_id)
    return _save(store, sub_project, content, "Removed stage", current_caller)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

@router.post("/{sub_project_id}/stages/{stage_id}/tasks", response_model=SubProjectRead)
def add_task(
    sub_project_id: str,
    stage_id: str,
    task_in: TaskCreate,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Append a new task to a stage.

    Raises:
        NotFound: If the stage doesn't exist
        InvalidInput: If the text is empty or a supplied id is already in use
    """
    sub_project, content = _load_for_structure(store, resolver, current_caller, sub_project_id)
    content = task_tree.add_task(
        content,
        stage_id,
        task_in.text,
        assigned_to=task_in.assigned_to,
        task_id=task_in.id,
        description=task_in.description,
        start_date=task_in.start_date,
        due_date=task_in.due_date,
    )
    return _save(store, sub_project, content, "Added task", current_caller)


@router.delete("/{sub_project_id}/stages/{stage_id}/tasks/{task_id}", response_model=SubProjectRead)
def remove_task(
    sub_project_id: str,
    stage_id: str,
    task_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    sub_project, content = _load_for_structure(store, resolver, current_caller, sub_project_id)
    content = task_tree.remove_task(content, stage_id, task_id)
    return _save(store, sub_project, content, "Removed task", current_caller)


@router.post("/{sub_project_id}/tasks/{task_id}/move", response_model=SubProjectRead)
def move_task(
    sub_project_id: str,
    task_id: str,
    move: TaskMove,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """Move a task to the end of another stage; moving within a stage changes nothing."""
    sub_project, content = _load_for_structure(store, resolver, current_caller, sub_project_id)
    content = task_tree.move_task(content, task_id, move.from_stage_id, move.to_stage_id)
    return _save(store, sub_project, content, "Moved task", current_caller)


@router.get("/{sub_project_id}/tasks/{task_id}", response_model=TaskDetail)
def read_task(
    sub_project_id: str,
    task_id: str,
    today: Optional[date] = None,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Get one task with its stage, checklist progress and overdue flag.

    Args:
        today: Date to judge overdue against (defaults to the server's date)

    Raises:
        NotFound: If the sub-project or the task doesn't exist
    """
    sub_project, _ = _load(store, resolver, current_caller, sub_project_id)
    content = Content.from_raw(sub_project.content)
    location = task_tree.find_task(content, task_id)
    stage = content.stages[location.stage_index]
    task = stage.items[location.task_index]
    return TaskDetail(
        stage_id=stage.id,
        stage_name=stage.name,
        task=task,
        checklist_progress=task_tree.checklist_progress(task),
        overdue=task_tree.is_overdue(task, today),
    )


@router.post("/{sub_project_id}/tasks/{task_id}/toggle", response_model=SubProjectRead)
def toggle_task(
    sub_project_id: str,
    task_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Flip a task's completion.

    Read-only clients may do this for tasks assigned to them.
    """
    sub_project, content = _load_for_task(store, resolver, current_caller, sub_project_id, task_id)
    content = task_tree.toggle_completion(content, task_id)
    return _save(store, sub_project, content, "Toggled task", current_caller)


@router.patch("/{sub_project_id}/tasks/{task_id}", response_model=SubProjectRead)
def update_task(
    sub_project_id: str,
    task_id: str,
    task_update: Dict[str, Any],
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Merge editable fields into a task.

    Args:
        task_update: Fields to change, in snake_case or camelCase

    Raises:
        InvalidInput: For fields that cannot be edited or invalid values
        Unauthorized: If the caller may not change this task, or is a read-only
            assignee changing a locked field
    """
    sub_project, content = _load_for_task(
        store, resolver, current_caller, sub_project_id, task_id, fields=task_update.keys()
    )
    content = task_tree.update_task_fields(content, task_id, task_update)
    return _save(store, sub_project, content, "Updated task", current_caller)


@router.post("/{sub_project_id}/tasks/{task_id}/assignees/{client_id}", response_model=SubProjectRead)
def toggle_assignee(
    sub_project_id: str,
    task_id: str,
    client_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """Assign the client to the task, or unassign them if already assigned."""
    sub_project, content = _load_for_task(
        store, resolver, current_caller, sub_project_id, task_id, fields=("assigned_to",)
    )
    content = task_tree.toggle_assignment(content, task_id, client_id)
    return _save(store, sub_project, content, "Toggled assignee", current_caller)


# ---------------------------------------------------------------------------
# Checklists, comments and attachments
# ---------------------------------------------------------------------------

@router.post("/{sub_project_id}/tasks/{task_id}/checklists", response_model=SubProjectRead)
def add_checklist(
    sub_project_id: str,
    task_id: str,
    checklist_in: ChecklistCreate,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    sub_project, content = _load_for_task(
        store, resolver, current_caller, sub_project_id, task_id, fields=("checklists",)
    )
    content = task_tree.add_checklist(content, task_id, checklist_in.title, checklist_in.id)
    return _save(store, sub_project, content, "Added checklist", current_caller)


@router.post("/{sub_project_id}/tasks/{task_id}/checklists/{checklist_id}/items", response_model=SubProjectRead)
def add_checklist_item(
    sub_project_id: str,
    task_id: str,
    checklist_id: str,
    item_in: ChecklistItemCreate,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    sub_project, content = _load_for_task(
        store, resolver, current_caller, sub_project_id, task_id, fields=("checklists",)
    )
    content = task_tree.add_checklist_item(content, task_id, checklist_id, item_in.text)
    return _save(store, sub_project, content, "Added checklist item", current_caller)


@router.post(
    "/{sub_project_id}/tasks/{task_id}/checklists/{checklist_id}/items/{item_id}/toggle",
    response_model=SubProjectRead,
)
def toggle_checklist_item(
    sub_project_id: str,
    task_id: str,
    checklist_id: str,
    item_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    sub_project, content = _load_for_task(store, resolver, current_caller, sub_project_id, task_id)
    content = task_tree.toggle_checklist_item(content, task_id, checklist_id, item_id)
    return _save(store, sub_project, content, "Toggled checklist item", current_caller)


@router.delete(
    "/{sub_project_id}/tasks/{task_id}/checklists/{checklist_id}/items/{item_id}",
    response_model=SubProjectRead,
)
def remove_checklist_item(
    sub_project_id: str,
    task_id: str,
    checklist_id: str,
    item_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    sub_project, content = _load_for_task(
        store, resolver, current_caller, sub_project_id, task_id, fields=("checklists",)
    )
    content = task_tree.remove_checklist_item(content, task_id, checklist_id, item_id)
    return _save(store, sub_project, content, "Removed checklist item", current_caller)


@router.post("/{sub_project_id}/tasks/{task_id}/comments", response_model=SubProjectRead)
def add_comment(
    sub_project_id: str,
    task_id: str,
    comment_in: CommentCreate,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """Comment on a task as the calling user; name and role are taken from the token."""
    sub_project, content = _load_for_task(store, resolver, current_caller, sub_project_id, task_id)
    content = task_tree.add_comment(content, task_id, comment_in.text, current_caller)
    return _save(store, sub_project, content, "Added comment", current_caller)


@router.post("/{sub_project_id}/tasks/{task_id}/attachments", response_model=SubProjectRead)
def add_attachment(
    sub_project_id: str,
    task_id: str,
    attachment_in: AttachmentCreate,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """Attach a link to a task. Not available to read-only accounts."""
    sub_project, content = _load_for_task(
        store, resolver, current_caller, sub_project_id, task_id, fields=("attachments",)
    )
    content = task_tree.add_attachment(
        content, task_id, attachment_in.url, name=attachment_in.name, kind=attachment_in.type
    )
    return _save(store, sub_project, content, "Added attachment", current_caller)


@router.delete("/{sub_project_id}/tasks/{task_id}/attachments/{attachment_id}", response_model=SubProjectRead)
def remove_attachment(
    sub_project_id: str,
    task_id: str,
    attachment_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    sub_project, content = _load_for_task(
        store, resolver, current_caller, sub_project_id, task_id, fields=("attachments",)
    )
    content = task_tree.remove_attachment(content, task_id, attachment_id)
    return _save(store, sub_project, content, "Removed attachment", current_caller)


# ---------------------------------------------------------------------------
# Links and shared credentials
# ---------------------------------------------------------------------------

@router.get("/{sub_project_id}/links", response_model=List[Link])
def read_links(
    sub_project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    sub_project, _ = _load(store, resolver, current_caller, sub_project_id)
    return resources.read_links(sub_project.links)


@router.put("/{sub_project_id}/links", response_model=List[Link])
def replace_links(
    sub_project_id: str,
    links_in: List[Link],
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """Replace the sub-project's links. Rows without a title or url are dropped."""
    links = resources.dump_list(resources.clean_links(links_in))
    sub_project = store.save_sub_project(sub_project_id, {"links": links})
    logger.info("Saved %d link(s) on sub-project %s", len(links), sub_project_id)
    return resources.read_links(sub_project.links)


@router.get("/{sub_project_id}/credentials", response_model=List[Credential])
def read_credentials(
    sub_project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """Shared logins with their passwords decrypted."""
    sub_project, _ = _load(store, resolver, current_caller, sub_project_id)
    return resources.open_credentials(sub_project.credentials)


@router.put("/{sub_project_id}/credentials", response_model=List[Credential])
def replace_credentials(
    sub_project_id: str,
    credentials_in: List[Credential],
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Replace the sub-project's shared logins.

    Passwords arrive in plain text and are encrypted before they are stored.
    """
    sub_project = store.save_sub_project(
        sub_project_id, {"credentials": resources.seal_credentials(credentials_in)}
    )
    logger.info("Saved credentials on sub-project %s", sub_project_id)
    return resources.open_credentials(sub_project.credentials)
