"""
Access Resolver

Decides what a caller may do with a project, its sub-projects and their tasks.

Two independent grant sources give a client access to a project:
1. The legacy single owner (Project.owner_client_id)
2. A ProjectClientLink row in the many-to-many link table

Both are plain inputs to one decision function, so neither path is special-cased
elsewhere. Every role other than "client" is an administrator.

Access is re-derived on every request: links can change between two requests, so
nothing here is cached.
"""
import logging
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel

from studio_portal.core.errors import Unauthorized
from studio_portal.models.client import Client
from studio_portal.models.content import TaskItem
from studio_portal.models.project import Project
from studio_portal.models.user import Caller

logger = logging.getLogger(__name__)

# Task fields a read-only assignee may not set directly. Comments are only appended
# through add_comment, stamped with the caller; checklist items may only be ticked.
ASSIGNEE_LOCKED_FIELDS = frozenset({"assigned_to", "assignedTo", "attachments", "comments", "checklists"})


class AccessLevel(str, Enum):
    ADMIN = "admin"
    OWNER = "owner"
    NONE = "none"


class ProjectAccess(BaseModel):
    """
    Result of resolving a caller against one project.

    Attributes:
        level: AccessLevel granted
        client_id: The caller's Client id when the caller is a client
    """
    level: AccessLevel
    client_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.level == AccessLevel.ADMIN


def resolve_project_access(
    caller: Caller,
    project: Project,
    client: Optional[Client],
    linked_client_ids: Iterable[str],
) -> ProjectAccess:
    """
    Resolve a caller's access level for a project.

    Args:
        caller: The identity making the request
        project: The project being accessed
        client: The Client record matching the caller's email (None if there is none)
        linked_client_ids: Client ids linked to the project via ProjectClientLink

    Returns:
        ProjectAccess: admin for non-clients, owner for the legacy owner or a linked
        client, none otherwise

    Raises:
        Unauthorized: If the caller is a client without a Client record
    """
    if not caller.is_client:
        return ProjectAccess(level=AccessLevel.ADMIN)

    if client is None:
        raise Unauthorized("No client record for this account")

    if project.owner_client_id is not None and client.id == project.owner_client_id:
        return ProjectAccess(level=AccessLevel.OWNER, client_id=client.id)

    if client.id in set(linked_client_ids):
        return ProjectAccess(level=AccessLevel.OWNER, client_id=client.id)

    return ProjectAccess(level=AccessLevel.NONE, client_id=client.id)


def require_project_access(access: ProjectAccess) -> ProjectAccess:
    if access.level == AccessLevel.NONE:
        raise Unauthorized("Not authorized for this project")
    return access


def resolve_task_mutation(caller: Caller, task: TaskItem, access: ProjectAccess) -> bool:
    """
    Whether the caller may mutate a single task.

    Admins always may. Clients with project access may when they are not in
    read-only mode, or when the task is assigned to them; this is what lets a
    read-only client still tick off the work assigned to them. Must be re-checked on
    every mutating call.
    """
    if access.level == AccessLevel.NONE:
        return False
    if access.level == AccessLevel.ADMIN:
        return True
    if not caller.is_read_only:
        return True
    return access.client_id is not None and access.client_id in task.assigned_to


def resolve_content_mutation(caller: Caller, access: ProjectAccess) -> bool:
    """Whether the caller may change the tree's structure (stages, adding/removing/moving tasks)."""
    if access.level == AccessLevel.NONE:
        return False
    return access.level == AccessLevel.ADMIN or not caller.is_read_only


def require_task_mutation(caller: Caller, task: TaskItem, access: ProjectAccess, fields: Iterable[str] = ()) -> None:
    if not resolve_task_mutation(caller, task, access):
        raise Unauthorized("Not authorized to change this task")
    if access.level != AccessLevel.ADMIN and caller.is_read_only:
        locked = ASSIGNEE_LOCKED_FIELDS.intersection(fields)
        if locked:
            raise Unauthorized(f"Read-only accounts cannot change: {', '.join(sorted(locked))}")


def require_content_mutation(caller: Caller, access: ProjectAccess) -> None:
    if not resolve_content_mutation(caller, access):
        raise Unauthorized("Project content is read-only for this account")


def require_admin(caller: Caller) -> Caller:
    """Project, client, budget and ledger administration is for admins only."""
    if caller.is_client:
        raise Unauthorized("Administrator access required")
    return caller


class AccessResolver:
    """
    Resolves access against the store.

    Loads the caller's Client record, the project and its links on every call.
    """

    def __init__(self, store):
        self.store = store

    def resolve(self, caller: Caller, project_id: str) -> ProjectAccess:
        """
        Resolve and enforce access to a project.

        Raises:
            Unauthorized: Client without a Client record, or without a grant
            NotFound: If the project does not exist
        """
        if not caller.is_client:
            # Admins still get NotFound for missing projects
            project = self.store.load_project(project_id)
            return resolve_project_access(caller, project, None, ())

        client = self.store.load_client(caller.email)
        if client is None:
            logger.info("Rejected %s: no client record", caller.email)
            raise Unauthorized("No client record for this account")

        project = self.store.load_project(project_id)
        linked = [link.client_id for link in self.store.list_project_client_links(project_id)]
        access = resolve_project_access(caller, project, client, linked)
        if access.level == AccessLevel.NONE:
            logger.info("Rejected client %s for project %s", client.id, project_id)
        return require_project_access(access)
