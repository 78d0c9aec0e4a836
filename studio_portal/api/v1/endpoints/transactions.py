"""
Transaction Endpoints Module

Administrator access to the ledger: filtered listing, rollup statistics and
create/update/delete of single rows. Amounts are integers in the smallest currency
unit, both in requests and in responses.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends

from studio_portal.api import deps
from studio_portal.core.errors import InvalidInput
from studio_portal.db.store import PortalStore
from studio_portal.models.transaction import (
    Transaction,
    TransactionCreate,
    TransactionRead,
    TransactionStatus,
    TransactionType,
    TransactionUpdate,
)
from studio_portal.models.user import Caller
from studio_portal.services.rollup import Rollup, TransactionFilter, rollup

logger = logging.getLogger(__name__)

router = APIRouter()

# Columns a patch may change but never clear
REQUIRED_FIELDS = ("description", "amount", "type", "status")


def _filter(
    project_id: Optional[str] = None,
    sub_project_id: Optional[str] = None,
    sub_project_item_id: Optional[str] = None,
    client_id: Optional[str] = None,
    type: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
) -> TransactionFilter:
    # Query parameters shared by the list and stats endpoints
    return TransactionFilter(
        project_id=project_id,
        sub_project_id=sub_project_id,
        sub_project_item_id=sub_project_item_id,
        client_id=client_id,
        type=type,
        status=status,
    )


@router.get("", response_model=List[TransactionRead])
def list_transactions(
    skip: int = 0,
    limit: int = 100,
    filter: TransactionFilter = Depends(_filter),
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Retrieve ledger rows, newest first.

    Every filter given must match; filters left out are ignored.

    Args:
        skip: Number of records to skip (for pagination)
        limit: Maximum number of records to return
        filter: project_id, sub_project_id, sub_project_item_id, client_id, type
            and status query parameters

    Returns:
        List[TransactionRead]: Matching transactions
    """
    return store.list_transactions(filter, skip=skip, limit=limit)


@router.get("/stats", response_model=Rollup)
def transaction_stats(
    filter: TransactionFilter = Depends(_filter),
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Income, expense and balance over the matching rows.

    Only completed rows are realized; pending rows are reported as scheduled.
    """
    return rollup(store.list_transactions(filter))


@router.get("/{transaction_id}", response_model=TransactionRead)
def read_transaction(
    transaction_id: str,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    return store.load_transaction(transaction_id)


@router.post("", response_model=TransactionRead)
def create_transaction(
    transaction_in: TransactionCreate,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Record a new ledger row.

    Links to projects, sub-projects, items and clients are stored as given and are
    not checked against existing records.
    """
    return store.save_transaction(Transaction.model_validate(transaction_in))


@router.patch("/{transaction_id}", response_model=TransactionRead)
def update_transaction(
    transaction_id: str,
    transaction_update: TransactionUpdate,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Update an existing ledger row. Only the fields present in the request change.

    Raises:
        NotFound: If the transaction doesn't exist
        InvalidInput: If a required field is sent as null
    """
    patch = transaction_update.model_dump(exclude_unset=True)
    cleared = [key for key in REQUIRED_FIELDS if key in patch and patch[key] is None]
    if cleared:
        raise InvalidInput(f"{', '.join(cleared)} cannot be null")
    transaction = store.load_transaction(transaction_id)
    for key, value in patch.items():
        setattr(transaction, key, value)
    return store.save_transaction(transaction)


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    store: PortalStore = Depends(deps.get_store),
    current_admin: Caller = Depends(deps.get_current_admin),
):
    """
    Delete a ledger row.

    Returns:
        dict: Success message
    """
    store.delete_transaction(transaction_id)
    logger.info("Transaction %s deleted by %s", transaction_id, current_admin.email)
    return {"status": "success", "detail": "Transaction deleted"}
