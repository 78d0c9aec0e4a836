"""
Project Endpoints Module

This module provides CRUD endpoints for managing projects and their sub-projects.
Administrators (every non-client role) see and modify all projects. Clients see the
projects they own (legacy owner) or are linked to, and never modify them here.

Access is resolved again on every request, since links can change at any time.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends

from studio_portal.api import deps
from studio_portal.core.errors import Unauthorized
from studio_portal.db.store import PortalStore
from studio_portal.models.project import Project, ProjectCreate, ProjectRead, ProjectUpdate
from studio_portal.models.resources import Credential, Link, ProjectFile
from studio_portal.models.sub_project import SubProject, SubProjectCreate, SubProjectRead
from studio_portal.models.user import Caller
from studio_portal.schemas.content import SubProjectOrder
from studio_portal.schemas.project import ProjectDetail
from studio_portal.services import resources
from studio_portal.services.access import AccessResolver, require_content_mutation
from studio_portal.services.dashboard import ProjectOverview, project_overview, project_total
from studio_portal.services.ordering import validate_permutation
from studio_portal.services.rollup import TransactionFilter
from studio_portal.services.task_tree import Progress, Schedule, combined_progress, schedule

logger = logging.getLogger(__name__)

router = APIRouter()


def to_project_read(store: PortalStore, project: Project, sub_projects: Optional[List[SubProject]] = None) -> ProjectRead:
    """
    Build the read schema of a project: its linked clients, resolved budget total
    and resource lists. Credentials stay behind their own endpoint.
    """
    if sub_projects is None:
        sub_projects = store.list_sub_projects(project.id)
    return ProjectRead(
        **project.model_dump(exclude={"credentials", "links", "files"}),
        links=resources.read_links(project.links),
        files=resources.read_files(project.files),
        client_ids=[link.client_id for link in store.list_project_client_links(project.id)],
        budget_total=project_total(project, sub_projects),
    )


@router.get("", response_model=List[ProjectRead])
def list_projects(
    skip: int = 0,
    limit: int = 100,
    store: PortalStore = Depends(deps.get_store),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Retrieve the projects visible to the caller.

    Admins see all projects (paginated); clients see the union of projects they own
    and projects they are linked to.

    Args:
        skip: Number of records to skip (admins only)
        limit: Maximum number of records to return (admins only)
        store: Storage collaborator
        current_caller: Authenticated caller

    Returns:
        List[ProjectRead]: Projects with their client links and budget totals

    Raises:
        Unauthorized: If a client caller has no Client record
    """
    if current_caller.is_client:
        client = store.load_client(current_caller.email)
        if client is None:
            raise Unauthorized("No client record for this account")
        projects = store.list_projects_for_client(client.id)
    else:
        projects = store.list_projects(skip=skip, limit=limit)
    return [to_project_read(store, project) for project in projects]


@router.get("/{project_id}", response_model=ProjectDetail)
def read_project(
    project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Get a project with its ordered sub-projects and overall task progress.

    Raises:
        Unauthorized: If the caller has no access to the project
        NotFound: If the project doesn't exist
    """
    resolver.resolve(current_caller, project_id)
    project = store.load_project(project_id)
    sub_projects = store.list_sub_projects(project_id)
    read = to_project_read(store, project, sub_projects)
    return ProjectDetail(
        **read.model_dump(),
        sub_projects=[SubProjectRead.model_validate(sp, from_attributes=True) for sp in sub_projects],
        progress=combined_progress(sp.content for sp in sub_projects),
    )


@router.post("", response_model=ProjectRead)
def create_project(
    project_in: ProjectCreate,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Create a new project and link it to its clients.

    The first client id becomes the legacy owner as well.

    Args:
        project_in: Project data, including the client ids to link
        store: Storage collaborator
        current_admin: Authenticated administrator

    Returns:
        ProjectRead: The newly created project
    """
    project = store.create_project(project_in.model_dump(exclude={"client_ids"}), project_in.client_ids)
    return to_project_read(store, project, [])


@router.patch("/{project_id}", response_model=ProjectRead)
def update_project(
    project_id: str,
    project_update: ProjectUpdate,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Update an existing project.

    If the update includes "client_ids", the project's client links are replaced
    with the new list ([] removes every link). Budgets are updated through the
    budget endpoints.

    Raises:
        NotFound: If the project doesn't exist
    """
    patch = project_update.model_dump(exclude_unset=True)
    # None means don't update, [] means clear all links
    client_ids = patch.pop("client_ids", None)

    project = store.save_project(project_id, patch)
    if client_ids is not None:
        project = store.set_project_clients(project_id, client_ids)
    return to_project_read(store, project)


@router.delete("/{project_id}")
def delete_project(
    project_id: str,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Delete a project with its sub-projects, client links and ledger rows.

    Returns:
        dict: Success message
    """
    store.delete_project(project_id)
    logger.info("Project %s deleted by %s", project_id, current_admin.email)
    return {"status": "success", "detail": "Project deleted"}


@router.post("/{project_id}/clients/{client_id}", response_model=ProjectRead)
def link_client(
    project_id: str,
    client_id: str,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Give one more client access to the project. Linking twice changes nothing.

    Raises:
        NotFound: If the project or the client doesn't exist
    """
    store.add_project_client(project_id, client_id)
    return to_project_read(store, store.load_project(project_id))


@router.delete("/{project_id}/clients/{client_id}", response_model=ProjectRead)
def unlink_client(
    project_id: str,
    client_id: str,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """Revoke one client's link to the project. The legacy owner keeps access."""
    store.remove_project_client(project_id, client_id)
    return to_project_read(store, store.load_project(project_id))


@router.get("/{project_id}/sub-projects", response_model=List[SubProjectRead])
def list_sub_projects(
    project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """Sub-projects of a project in display order."""
    resolver.resolve(current_caller, project_id)
    return store.list_sub_projects(project_id)


@router.post("/{project_id}/sub-projects", response_model=SubProjectRead)
def create_sub_project(
    project_id: str,
    sub_project_in: SubProjectCreate,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Create a sub-project at the end of the project's order, with an empty task tree.

    Raises:
        NotFound: If the project doesn't exist
    """
    return store.create_sub_project(project_id, sub_project_in.model_dump())


@router.put("/{project_id}/sub-projects/order", response_model=List[SubProjectRead])
def reorder_sub_projects(
    project_id: str,
    order: SubProjectOrder,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Persist a drag-and-drop order: each sub-project's position becomes its index
    in ``ordered_ids``.

    The order must list every sub-project of the project exactly once; it is
    checked before anything is written and then saved in one transaction.

    Raises:
        NotFound: If the project doesn't exist
        InvalidInput: If the order is not a permutation of the project's sub-projects
    """
    store.load_project(project_id)
    validate_permutation(store.list_sub_projects(project_id), order.ordered_ids)
    return store.save_positions(project_id, order.ordered_ids)


@router.get("/{project_id}/progress", response_model=Progress)
def read_project_progress(
    project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """Task completion across every sub-project of the project."""
    resolver.resolve(current_caller, project_id)
    return combined_progress(sp.content for sp in store.list_sub_projects(project_id))


@router.get("/{project_id}/schedule", response_model=Schedule)
def read_project_schedule(
    project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Timeline of the project's tasks that have both a start and a due date,
    grouped by sub-project.
    """
    resolver.resolve(current_caller, project_id)
    return schedule(store.list_sub_projects(project_id))


@router.get("/{project_id}/overview", response_model=ProjectOverview)
def read_project_overview(
    project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """Budget figures joined with the ledger, plus task progress."""
    resolver.resolve(current_caller, project_id)
    project = store.load_project(project_id)
    transactions = store.list_transactions(TransactionFilter(project_id=project_id))
    return project_overview(project, store.list_sub_projects(project_id), transactions)


# ---------------------------------------------------------------------------
# Links, shared credentials and files
#
# Anyone with access may read them. Writes follow the task-content rule: admins
# and writable clients only.
# ---------------------------------------------------------------------------

def _require_resource_edit(resolver: AccessResolver, caller: Caller, project_id: str) -> None:
    access = resolver.resolve(caller, project_id)
    require_content_mutation(caller, access)


@router.get("/{project_id}/links", response_model=List[Link])
def read_links(
    project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    resolver.resolve(current_caller, project_id)
    return resources.read_links(store.load_project(project_id).links)


@router.put("/{project_id}/links", response_model=List[Link])
def replace_links(
    project_id: str,
    links_in: List[Link],
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Replace the project's links. Rows without a title or url are dropped.

    Raises:
        Unauthorized: If the caller may not edit this project
    """
    _require_resource_edit(resolver, current_caller, project_id)
    links = resources.dump_list(resources.clean_links(links_in))
    project = store.save_project(project_id, {"links": links})
    logger.info("Saved %d link(s) on project %s by %s", len(links), project_id, current_caller.email)
    return resources.read_links(project.links)


@router.get("/{project_id}/credentials", response_model=List[Credential])
def read_credentials(
    project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Shared logins with their passwords decrypted.

    A password that no longer decrypts (the key changed) comes back as null.
    """
    resolver.resolve(current_caller, project_id)
    return resources.open_credentials(store.load_project(project_id).credentials)


@router.put("/{project_id}/credentials", response_model=List[Credential])
def replace_credentials(
    project_id: str,
    credentials_in: List[Credential],
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Replace the project's shared logins.

    Passwords arrive in plain text and are encrypted before they are stored.
    Rows with every field blank are dropped.

    Raises:
        Unauthorized: If the caller may not edit this project
    """
    _require_resource_edit(resolver, current_caller, project_id)
    project = store.save_project(project_id, {"credentials": resources.seal_credentials(credentials_in)})
    logger.info("Saved credentials on project %s by %s", project_id, current_caller.email)
    return resources.open_credentials(project.credentials)


@router.get("/{project_id}/files", response_model=List[ProjectFile])
def read_files(
    project_id: str,
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    resolver.resolve(current_caller, project_id)
    return resources.read_files(store.load_project(project_id).files)


@router.put("/{project_id}/files", response_model=List[ProjectFile])
def replace_files(
    project_id: str,
    files_in: List[ProjectFile],
    store: PortalStore = Depends(deps.get_store),
    resolver: AccessResolver = Depends(deps.get_access_resolver),
    current_caller: Caller = Depends(deps.get_current_caller),
):
    """
    Replace the project's file list. Files without a url are dropped; new files
    are stamped with the upload time.

    Raises:
        Unauthorized: If the caller may not edit this project
    """
    _require_resource_edit(resolver, current_caller, project_id)
    files = resources.dump_list(resources.clean_files(files_in))
    project = store.save_project(project_id, {"files": files})
    logger.info("Saved %d file(s) on project %s by %s", len(files), project_id, current_caller.email)
    return resources.read_files(project.files)
