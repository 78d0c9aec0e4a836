"""
Sub-Project Model Module

This module defines the SubProject model. A sub-project belongs to exactly one
project, is ordered among its siblings by a dense ``position``, and carries two
JSON documents: the task tree (``content``) and its own budget.
"""
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import field_validator
from sqlmodel import SQLModel, Field, JSON, Column, AutoString
import uuid

from datetime import datetime


class SubProjectStatus(str, Enum):
    active = "active"
    queued = "queued"
    paused = "paused"
    completed = "completed"
    cancelled = "cancelled"


class SubProjectBase(SQLModel):
    """
    Base SubProject fields.

    Attributes:
        name: Sub-project name (required)
        description: Optional description
        status: One of SubProjectStatus
    """
    name: str = Field(nullable=False)
    description: Optional[str] = None
    status: SubProjectStatus = Field(default=SubProjectStatus.active, sa_type=AutoString)


class SubProject(SubProjectBase, table=True):
    """
    SubProject table model.

    Attributes:
        id: UUID primary key
        project_id: Owning project (exclusive)
        position: Dense zero-based order among the project's sub-projects
        content: Task tree document - {stages: [{id, name, items: [...]}]}
        budget: Budget document; "dynamic" is not recursive at this level
        links, credentials: Resource lists, see models.resources
    """
    __tablename__ = "sub_projects"

    # Primary key
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    project_id: str = Field(foreign_key="projects.id", index=True, nullable=False)
    position: int = 0

    # JSON documents - always rewritten as a whole
    content: Dict[str, Any] = Field(default_factory=lambda: {"stages": []}, sa_column=Column(JSON))
    budget: Dict[str, Any] = Field(default_factory=lambda: {"total": 0, "items": []}, sa_column=Column(JSON))
    links: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    credentials: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    # Audit timestamps
    created_at: Optional[str] = Field(default_factory=lambda: datetime.utcnow().isoformat())
    updated_at: Optional[str] = Field(default_factory=lambda: datetime.utcnow().isoformat())


class SubProjectCreate(SubProjectBase):
    """Schema for creating a sub-project; it starts with an empty task tree."""
    pass


class SubProjectUpdate(SQLModel):
    """Schema for updating sub-project metadata."""
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[SubProjectStatus] = None


class SubProjectRead(SubProjectBase):
    """Schema for reading a sub-project with its documents."""
    id: str
    project_id: str
    position: int
    content: Dict[str, Any] = {}
    budget: Dict[str, Any] = {}
    links: List[Dict[str, Any]] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("links", mode="before")
    @classmethod
    def links_or_empty(cls, value):
        # Rows stored before links existed hold NULL
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, dict)]
