"""
Storage Module

PortalStore is the storage collaborator of the domain engine. It loads and saves
projects, sub-projects, clients, links and ledger rows through a SQLModel session.

Documents (sub-project content, budgets) are written whole: the store never merges
a document with what is already stored, so concurrent writers follow
last-write-wins. Database errors are surfaced as StorageFailure and never retried.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, or_

from studio_portal.core.errors import NotFound, StorageFailure
from studio_portal.models.budget import Budget, BudgetType
from studio_portal.models.client import Client
from studio_portal.models.content import Content
from studio_portal.models.project import Project, ProjectClientLink
from studio_portal.models.sub_project import SubProject
from studio_portal.models.transaction import Transaction
from studio_portal.services.budget import apply_budget_update
from studio_portal.services.ordering import next_position, reorder
from studio_portal.services.rollup import TransactionFilter

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.utcnow().isoformat()


class PortalStore:
    """
    Storage collaborator backed by one SQLModel session (one per request).

    Args:
        session: The request's database session
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Storage failure during %s: %s", action, exc)
            raise StorageFailure(f"Storage failure during {action}") from exc

    def _get(self, model, entity_id: str, kind: str):
        with self._guard(f"load {kind}"):
            row = self.session.get(model, entity_id)
        if row is None:
            raise NotFound(kind, entity_id)
        return row

    def _commit(self, *rows, action: str):
        with self._guard(action):
            for row in rows:
                self.session.add(row)
            self.session.commit()
            for row in rows:
                self.session.refresh(row)

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def load_client(self, email: str) -> Optional[Client]:
        """Find the Client whose email matches a caller's login email (case-insensitive)."""
        with self._guard("load client"):
            return self.session.exec(
                select(Client).where(func.lower(Client.email) == email.lower())
            ).first()

    def get_client(self, client_id: str) -> Client:
        return self._get(Client, client_id, "Client")

    def list_clients(self, skip: int = 0, limit: int = 100) -> List[Client]:
        with self._guard("list clients"):
            return list(self.session.exec(
                select(Client).order_by(Client.name).offset(skip).limit(limit)
            ).all())

    def create_client(self, data: Dict[str, Any]) -> Client:
        client = Client(**data)
        self._commit(client, action="create client")
        logger.info("Created client %s", client.id)
        return client

    def save_client(self, client_id: str, patch: Dict[str, Any]) -> Client:
        client = self.get_client(client_id)
        for key, value in patch.items():
            setattr(client, key, value)
        client.updated_at = _now()
        self._commit(client, action="save client")
        return client

    def delete_client(self, client_id: str) -> None:
        """
        Delete a client, revoking every grant it had.

        Links are removed, legacy ownership is cleared and ledger rows keep their
        history with the client reference set to null.
        """
        client = self.get_client(client_id)
        with self._guard("delete client"):
            self.session.exec(delete(ProjectClientLink).where(ProjectClientLink.client_id == client_id))
            for project in self.session.exec(select(Project).where(Project.owner_client_id == client_id)).all():
                project.owner_client_id = None
                self.session.add(project)
            for transaction in self.session.exec(select(Transaction).where(Transaction.client_id == client_id)).all():
                transaction.client_id = None
                self.session.add(transaction)
            self.session.delete(client)
            self.session.commit()
        logger.info("Deleted client %s", client_id)

    # ------------------------------------------------------------------
    # Projects and access grants
    # ------------------------------------------------------------------

    def load_project(self, project_id: str) -> Project:
        return self._get(Project, project_id, "Project")

    def list_projects(self, skip: int = 0, limit: int = 100) -> List[Project]:
        with self._guard("list projects"):
            return list(self.session.exec(
                select(Project).order_by(Project.created_at.desc()).offset(skip).limit(limit)
            ).all())

    def list_projects_for_client(self, client_id: str) -> List[Project]:
        """
        Projects a client may see: owned directly (legacy) or linked.
        """
        linked_project_ids = select(ProjectClientLink.project_id).where(ProjectClientLink.client_id == client_id)
        statement = select(Project).where(
            or_(Project.owner_client_id == client_id, Project.id.in_(linked_project_ids))
        ).order_by(Project.created_at.desc())
        with self._guard("list client projects"):
            return list(self.session.exec(statement).all())

    def create_project(self, data: Dict[str, Any], client_ids: Sequence[str] = ()) -> Project:
        """
        Create a project and link its clients.

        The first client also becomes the legacy owner for older readers.
        """
        client_ids = list(dict.fromkeys(client_ids))
        project = Project(**data, owner_client_id=client_ids[0] if client_ids else None)
        with self._guard("create project"):
            self.session.add(project)
            self.session.flush()
            for client_id in client_ids:
                self.session.add(ProjectClientLink(project_id=project.id, client_id=client_id))
            self.session.commit()
            self.session.refresh(project)
        logger.info("Created project %s with %d linked client(s)", project.id, len(client_ids))
        return project

    def save_project(self, project_id: str, patch: Dict[str, Any]) -> Project:
        project = self.load_project(project_id)
        for key, value in patch.items():
            if key == "budget":
                value = Budget.from_raw(value).to_raw()
            setattr(project, key, value)
        project.updated_at = _now()
        self._commit(project, action="save project")
        return project

    def refresh_dynamic_total(self, project_id: str) -> None:
        """
        Re-save a dynamic project's budget so its stored total follows its sub-projects.

        Called after any change to the set of sub-projects or to one of their budgets.
        Manual budgets are left alone.
        """
        project = self.load_project(project_id)
        budget = Budget.from_raw(project.budget)
        if budget.type != BudgetType.DYNAMIC:
            return
        children = [sp.budget for sp in self.list_sub_projects(project_id)]
        self.save_project(project_id, {"budget": apply_budget_update(budget, children).to_raw()})
        logger.info("Refreshed dynamic budget total of project %s", project_id)

    def list_project_client_links(self, project_id: str) -> List[ProjectClientLink]:
        with self._guard("list project links"):
            return list(self.session.exec(
                select(ProjectClientLink).where(ProjectClientLink.project_id == project_id)
            ).all())

    def set_project_clients(self, project_id: str, client_ids: Sequence[str]) -> Project:
        """Replace every link of a project; the first client becomes the legacy owner."""
        project = self.load_project(project_id)
        client_ids = list(dict.fromkeys(client_ids))
        with self._guard("set project clients"):
            self.session.exec(delete(ProjectClientLink).where(ProjectClientLink.project_id == project_id))
            for client_id in client_ids:
                self.session.add(ProjectClientLink(project_id=project_id, client_id=client_id))
            project.owner_client_id = client_ids[0] if client_ids else None
            project.updated_at = _now()
            self.session.add(project)
            self.session.commit()
            self.session.refresh(project)
        logger.info("Project %s now linked to %d client(s)", project_id, len(client_ids))
        return project

    def add_project_client(self, project_id: str, client_id: str) -> None:
        """Grant one client access to a project; linking twice changes nothing."""
        self.load_project(project_id)
        self.get_client(client_id)
        with self._guard("link client"):
            if self.session.get(ProjectClientLink, (project_id, client_id)) is None:
                self.session.add(ProjectClientLink(project_id=project_id, client_id=client_id))
                self.session.commit()
        logger.info("Linked client %s to project %s", client_id, project_id)

    def remove_project_client(self, project_id: str, client_id: str) -> None:
        """
        Revoke a client's link to a project.

        The legacy owner keeps access through Project.owner_client_id; clearing that
        is a separate decision made with set_project_clients.
        """
        self.load_project(project_id)
        with self._guard("unlink client"):
            self.session.exec(delete(ProjectClientLink).where(
                ProjectClientLink.project_id == project_id,
                ProjectClientLink.client_id == client_id,
            ))
            self.session.commit()
        logger.info("Unlinked client %s from project %s", client_id, project_id)

    def delete_project(self, project_id: str) -> None:
        """Delete a project with its sub-projects, links and ledger rows."""
        project = self.load_project(project_id)
        with self._guard("delete project"):
            self.session.exec(delete(SubProject).where(SubProject.project_id == project_id))
            self.session.exec(delete(ProjectClientLink).where(ProjectClientLink.project_id == project_id))
            self.session.exec(delete(Transaction).where(Transaction.project_id == project_id))
            self.session.delete(project)
            self.session.commit()
        logger.info("Deleted project %s", project_id)

    # ------------------------------------------------------------------
    # Sub-projects
    # ------------------------------------------------------------------

    def load_sub_project(self, sub_project_id: str) -> SubProject:
        return self._get(SubProject, sub_project_id, "SubProject")

    def list_sub_projects(self, project_id: str) -> List[SubProject]:
        with self._guard("list sub-projects"):
            return list(self.session.exec(
                select(SubProject)
                .where(SubProject.project_id == project_id)
                .order_by(SubProject.position, SubProject.created_at.desc())
            ).all())

    def list_sub_projects_for_projects(self, project_ids: Iterable[str]) -> List[SubProject]:
        project_ids = list(project_ids)
        if not project_ids:
            return []
        with self._guard("list sub-projects"):
            return list(self.session.exec(
                select(SubProject)
                .where(SubProject.project_id.in_(project_ids))
                .order_by(SubProject.project_id, SubProject.position)
            ).all())

    def create_sub_project(self, project_id: str, data: Dict[str, Any]) -> SubProject:
        """Create a sub-project with an empty task tree, appended after its siblings."""
        self.load_project(project_id)
        sub_project = SubProject(
            **data,
            project_id=project_id,
            position=next_position(self.list_sub_projects(project_id)),
            content=Content().to_raw(),
        )
        self._commit(sub_project, action="create sub-project")
        logger.info("Created sub-project %s in project %s", sub_project.id, project_id)
        self.refresh_dynamic_total(project_id)
        return sub_project

    def save_sub_project(self, sub_project_id: str, patch: Dict[str, Any]) -> SubProject:
        sub_project = self.load_sub_project(sub_project_id)
        for key, value in patch.items():
            if key == "budget":
                value = Budget.from_raw(value).to_raw()
            elif key == "content":
                value = Content.from_raw(value).to_raw()
            setattr(sub_project, key, value)
        sub_project.updated_at = _now()
        self._commit(sub_project, action="save sub-project")
        return sub_project

    def save_sub_project_content(self, sub_project_id: str, content: Union[Content, Dict[str, Any]]) -> SubProject:
        """Replace a sub-project's whole task tree."""
        sub_project = self.load_sub_project(sub_project_id)
        sub_project.content = Content.from_raw(content).to_raw()
        sub_project.updated_at = _now()
        self._commit(sub_project, action="save sub-project content")
        logger.info("Saved content of sub-project %s", sub_project_id)
        return sub_project

    def delete_sub_project(self, sub_project_id: str) -> None:
        """Delete a sub-project; ledger rows that referenced it stay on the project."""
        sub_project = self.load_sub_project(sub_project_id)
        project_id = sub_project.project_id
        with self._guard("delete sub-project"):
            for transaction in self.session.exec(
                select(Transaction).where(Transaction.sub_project_id == sub_project_id)
            ).all():
                transaction.sub_project_id = None
                transaction.sub_project_item_id = None
                self.session.add(transaction)
            self.session.delete(sub_project)
            self.session.commit()
        logger.info("Deleted sub-project %s", sub_project_id)
        self.refresh_dynamic_total(project_id)

    def save_positions(self, project_id: str, ordered_ids: Sequence[str]) -> List[SubProject]:
        """
        Persist a new sub-project order in one transaction.

        Either every position is written or none is, so a failure cannot leave
        duplicate or gapped positions behind.
        """
        sub_projects = reorder(self.list_sub_projects(project_id), ordered_ids)
        with self._guard("save positions"):
            for sub_project in sub_projects:
                self.session.add(sub_project)
            self.session.commit()
            for sub_project in sub_projects:
                self.session.refresh(sub_project)
        logger.info("Reordered %d sub-project(s) in project %s", len(sub_projects), project_id)
        return sub_projects

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def list_transactions(self, filter: Optional[TransactionFilter] = None, skip: int = 0, limit: Optional[int] = None) -> List[Transaction]:
        statement = select(Transaction)
        if filter is not None:
            for field, value in filter.model_dump(mode="json", exclude_none=True).items():
                statement = statement.where(getattr(Transaction, field) == value)
        statement = statement.order_by(Transaction.date.desc()).offset(skip)
        if limit is not None:
            statement = statement.limit(limit)
        with self._guard("list transactions"):
            return list(self.session.exec(statement).all())

    def load_transaction(self, transaction_id: str) -> Transaction:
        return self._get(Transaction, transaction_id, "Transaction")

    def save_transaction(self, transaction: Transaction) -> Transaction:
        transaction.updated_at = _now()
        self._commit(transaction, action="save transaction")
        logger.info("Saved transaction %s", transaction.id)
        return transaction

    def delete_transaction(self, transaction_id: str) -> Transaction:
        transaction = self.load_transaction(transaction_id)
        with self._guard("delete transaction"):
            self.session.delete(transaction)
            self.session.commit()
        logger.info("Deleted transaction %s", transaction_id)
        return transaction
