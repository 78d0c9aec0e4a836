"""
Client Endpoints Module

Administrator CRUD for the studio's clients. A client's email is the login identity
matched against client-role callers, so changing it changes who is that client.
"""
import logging
from typing import List
from fastapi import APIRouter, Depends

from studio_portal.api import deps
from studio_portal.db.store import PortalStore
from studio_portal.models.client import Client, ClientCreate, ClientUpdate
from studio_portal.models.user import Caller

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[Client])
def list_clients(
    skip: int = 0,
    limit: int = 100,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Retrieve a paginated list of clients, ordered by name.
    """
    return store.list_clients(skip=skip, limit=limit)


@router.get("/{client_id}", response_model=Client)
def read_client(
    client_id: str,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    return store.get_client(client_id)


@router.post("", response_model=Client)
def create_client(
    client_in: ClientCreate,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Create a new client.

    Args:
        client_in: Client data to create
        store: Storage collaborator
        current_admin: Authenticated administrator

    Returns:
        Client: The newly created client
    """
    return store.create_client(client_in.model_dump())


@router.patch("/{client_id}", response_model=Client)
def update_client(
    client_id: str,
    client_update: ClientUpdate,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Update an existing client. Only the fields present in the request are changed.

    Raises:
        NotFound: If the client doesn't exist
    """
    return store.save_client(client_id, client_update.model_dump(exclude_unset=True))


@router.delete("/{client_id}")
def delete_client(
    client_id: str,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Delete a client.

    Every access grant the client had is revoked (links and legacy ownership);
    ledger rows keep their history without the client reference.

    Returns:
        dict: Success message
    """
    store.delete_client(client_id)
    logger.info("Client %s deleted by %s", client_id, current_admin.email)
    return {"status": "success", "detail": "Client deleted"}
