"""
Transaction Model Module

This module defines the Transaction ledger. Transactions are created, edited and
deleted by admins only. Their links to projects, sub-projects and task items are
advisory: nothing is enforced referentially, and the ledger is only joined with
budgets and task trees when figures are read.
"""
from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field, AutoString
from pydantic import field_validator
import uuid

from datetime import datetime


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class TransactionStatus(str, Enum):
    completed = "completed"
    pending = "pending"


class TransactionBase(SQLModel):
    """
    Base Transaction fields.

    Attributes:
        description: What the money was for (required)
        amount: Integer amount in the smallest currency unit (e.g., cents)
        type: income or expense
        status: completed (realized) or pending (scheduled)
        category: Free-form category (e.g., "Service", "Material", "Tax")
        date: ISO date of the transaction
        project_id: Optional project the transaction belongs to
        sub_project_id: Optional sub-project
        sub_project_item_id: Optional stage or task id inside the sub-project content
        client_id: Optional client who paid or was paid
    """
    description: str = Field(nullable=False)
    amount: int = Field(default=0, nullable=False)
    type: TransactionType = Field(default=TransactionType.income, sa_type=AutoString)
    status: TransactionStatus = Field(default=TransactionStatus.completed, sa_type=AutoString)
    category: Optional[str] = None
    date: Optional[str] = Field(default_factory=lambda: datetime.utcnow().isoformat())

    # Advisory links - set to null rather than enforced
    project_id: Optional[str] = Field(default=None, index=True)
    sub_project_id: Optional[str] = Field(default=None, index=True)
    sub_project_item_id: Optional[str] = None
    client_id: Optional[str] = None

    @field_validator("project_id", "sub_project_id", "sub_project_item_id", "client_id", "category", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        # Forms submit "" for "no selection"
        if isinstance(v, str) and not v.strip():
            return None
        return v


class Transaction(TransactionBase, table=True):
    """
    Transaction table model.
    """
    __tablename__ = "transactions"

    # Primary key
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    # Audit timestamps
    created_at: Optional[str] = Field(default_factory=lambda: datetime.utcnow().isoformat())
    updated_at: Optional[str] = Field(default_factory=lambda: datetime.utcnow().isoformat())


class TransactionCreate(TransactionBase):
    """Schema for creating a transaction."""

    @field_validator("amount")
    @classmethod
    def non_negative(cls, v):
        if v < 0:
            raise ValueError("amount must not be negative; use type=expense instead")
        return v


class TransactionUpdate(SQLModel):
    """Schema for updating a transaction; unset fields are left unchanged."""
    description: Optional[str] = None
    amount: Optional[int] = None
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    category: Optional[str] = None
    date: Optional[str] = None
    project_id: Optional[str] = None
    sub_project_id: Optional[str] = None
    sub_project_item_id: Optional[str] = None
    client_id: Optional[str] = None

    @field_validator("project_id", "sub_project_id", "sub_project_item_id", "client_id", "category", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("amount")
    @classmethod
    def non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("amount must not be negative; use type=expense instead")
        return v


class TransactionRead(TransactionBase):
    """Schema for reading a transaction."""
    id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
