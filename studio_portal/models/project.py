"""
Project Model Module

This module defines the Project model and the ProjectClientLink junction table.

Projects have two independent sources of client access:
- owner_client_id: the legacy single owner, kept for backward compatibility
- project_clients: a many-to-many link table granting access to any number of clients

Admins see and modify every project regardless of either.
"""
from enum import Enum
from typing import Any, Dict, List, Optional
from sqlmodel import SQLModel, Field, JSON, Column, AutoString
import uuid

from datetime import datetime


class ProjectStatus(str, Enum):
    active = "active"
    paused = "paused"
    completed = "completed"
    archived = "archived"


def empty_budget() -> Dict[str, Any]:
    return {"total": 0, "items": [], "type": "manual"}


class ProjectClientLink(SQLModel, table=True):
    """
    Junction table for the many-to-many relationship between Projects and Clients.

    A link grants the client owner-level access to the project, independently of
    Project.owner_client_id. The table uses a composite primary key of both ids.

    Attributes:
        project_id: Foreign key to the project being shared
        client_id: Foreign key to the client granted access
    """
    __tablename__ = "project_clients"

    project_id: str = Field(foreign_key="projects.id", primary_key=True)
    client_id: str = Field(foreign_key="clients.id", primary_key=True)


class ProjectBase(SQLModel):
    """
    Base Project fields.

    Attributes:
        name: Project name/title (required)
        description: Detailed project description
        status: One of ProjectStatus
    """
    name: str = Field(nullable=False)
    description: Optional[str] = None
    status: ProjectStatus = Field(default=ProjectStatus.active, sa_type=AutoString)


class Project(ProjectBase, table=True):
    """
    Project table model.

    Attributes:
        id: UUID primary key
        owner_client_id: Legacy single owner (nullable); see ProjectClientLink
        budget: Budget JSON document, see models.budget.Budget
        links, credentials, files: Resource lists, see models.resources
        created_at: ISO timestamp when the project was created
        updated_at: ISO timestamp when the project was last modified
    """
    __tablename__ = "projects"

    # Primary key
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    # Legacy owner - deprecated in favour of project_clients, still honoured for access
    owner_client_id: Optional[str] = Field(default=None, foreign_key="clients.id")

    # Budget document - {total, type, items, notes}
    budget: Dict[str, Any] = Field(default_factory=empty_budget, sa_column=Column(JSON))

    # Resource lists - see models.resources; credential passwords are encrypted
    links: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    credentials: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    files: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    # Audit timestamps
    created_at: Optional[str] = Field(default_factory=lambda: datetime.utcnow().isoformat())
    updated_at: Optional[str] = Field(default_factory=lambda: datetime.utcnow().isoformat())


class ProjectCreate(ProjectBase):
    """Schema for creating a project with its linked clients."""
    client_ids: List[str] = []


class ProjectUpdate(SQLModel):
    """
    Schema for updating a project.

    client_ids of None leaves links untouched; [] removes every link.
    """
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    client_ids: Optional[List[str]] = None


class ProjectRead(ProjectBase):
    """
    Schema for reading a project with its access grants and resolved budget total.

    Credentials are left out; they are read decrypted from their own endpoint.
    """
    id: str
    owner_client_id: Optional[str] = None
    client_ids: List[str] = []
    budget: Dict[str, Any] = {}
    budget_total: int = 0
    links: List[Dict[str, Any]] = []
    files: List[Dict[str, Any]] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
