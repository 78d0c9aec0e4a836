"""
Budget Document Module

This module defines the budget JSON document shared by projects and sub-projects.
Amounts are integers in the smallest currency unit (e.g., cents); nothing in the
core ever converts them for display.
"""
import logging
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class BudgetType(str, Enum):
    """
    How a budget's total is obtained.

    - MANUAL: typed in by an admin, or the sum of its line items when there are any
    - DYNAMIC: projects only, the sum of the project's sub-project budgets
    """
    MANUAL = "manual"
    DYNAMIC = "dynamic"


class BudgetItem(BaseModel):
    """A single budget line (e.g., "Logo design", 150000)."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    description: str = ""
    amount: int = 0

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        if v is None or v == "":
            return 0
        if isinstance(v, float):
            return round(v)
        return v


class Budget(BaseModel):
    """
    Budget document stored in the ``budget`` JSON column.

    Attributes:
        total: Stored total; authoritative only for manual budgets without items
        type: BudgetType of this budget
        items: Optional line items whose amounts add up to the total
        notes: Free-form notes shown next to the budget
    """
    model_config = ConfigDict(extra="allow")

    total: int = 0
    type: BudgetType = BudgetType.MANUAL
    items: List[BudgetItem] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("total", mode="before")
    @classmethod
    def coerce_total(cls, v):
        if v is None or v == "":
            return 0
        if isinstance(v, float):
            return round(v)
        return v

    @field_validator("type", mode="before")
    @classmethod
    def map_legacy_type(cls, v):
        # Unknown or missing types fall back to manual
        if isinstance(v, str):
            try:
                return BudgetType(v.lower())
            except ValueError:
                return BudgetType.MANUAL
        return v or BudgetType.MANUAL

    @field_validator("items", mode="before")
    @classmethod
    def none_items(cls, v):
        return v or []

    @classmethod
    def from_raw(cls, raw: Any) -> "Budget":
        """Parse a stored budget, reading missing or malformed documents as empty."""
        if isinstance(raw, Budget):
            return raw
        if not isinstance(raw, dict):
            return cls()
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Malformed budget document read as empty: %s", exc.error_count())
            return cls()

    def to_raw(self) -> dict:
        return self.model_dump(mode="json")
