"""
Client Model Module

This module defines the Client model representing the studio's customers.
A client's email doubles as the login identity of client-role users: a caller with
role "client" is matched to the Client record with the same email.
"""
from typing import Optional
from sqlmodel import SQLModel, Field
import uuid

from datetime import datetime


class ClientBase(SQLModel):
    """
    Base Client fields shared by the table model and the API schemas.

    Attributes:
        name: Client display name (required)
        email: Contact and login email for client-role users
        phone: Contact phone number
        avatar: URL or preset key of the client's avatar
    """
    name: str = Field(nullable=False)
    email: Optional[str] = Field(default=None, index=True)
    phone: Optional[str] = None
    avatar: Optional[str] = None


class Client(ClientBase, table=True):
    """
    Client table model.
    """
    __tablename__ = "clients"

    # Primary key - auto-generated UUID for global uniqueness
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    # Audit timestamps
    created_at: Optional[str] = Field(default_factory=lambda: datetime.utcnow().isoformat())
    updated_at: Optional[str] = Field(default_factory=lambda: datetime.utcnow().isoformat())


class ClientCreate(ClientBase):
    """Schema for creating a client."""
    pass


class ClientUpdate(SQLModel):
    """Schema for updating a client; unset fields are left unchanged."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
