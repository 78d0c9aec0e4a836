"""
Sub-Project Content Document Module

This module defines the task tree stored inside each sub-project's ``content``
JSON column: stages hold tasks, tasks hold checklists, comments and attachments.

The whole tree is one value. It is parsed into these models when loaded, rewritten
as a unit by the task tree engine, and serialized back with camelCase keys so that
documents written by earlier clients keep their shape. Keys these models do not
know about are preserved (``extra="allow"``).

Legacy rows are repaired node by node rather than discarded: a null where a list,
text or flag is expected takes the field's default, a node stored without an id
is given one, and list entries that are not mappings are dropped.
"""
import logging
import uuid
from typing import Any, List, Optional, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_core import PydanticUndefined

from studio_portal.core.errors import InvalidInput

logger = logging.getLogger(__name__)


class ContentModel(BaseModel):
    """Shared configuration for every node of the content document."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @model_validator(mode="before")
    @classmethod
    def repair_id(cls, data):
        if not isinstance(data, dict) or "id" not in cls.model_fields:
            return data
        node_id = data.get("id")
        if node_id is None or node_id == "":
            logger.warning("%s stored without an id; assigning one", cls.__name__)
            return {**data, "id": str(uuid.uuid4())}
        if not isinstance(node_id, str):
            return {**data, "id": str(node_id)}
        return data

    @field_validator("*", mode="before")
    @classmethod
    def repair_field(cls, v, info):
        field = cls.model_fields.get(info.field_name)
        if field is None:
            return v
        if v is None:
            # Legacy documents store null where a list or a value is expected
            if field.default_factory is list:
                return []
            if field.default is not PydanticUndefined and field.default is not None:
                return field.default
            return v
        if isinstance(v, list) and get_origin(field.annotation) is list:
            args = get_args(field.annotation)
            if args and isinstance(args[0], type) and issubclass(args[0], ContentModel):
                kept = [entry for entry in v if isinstance(entry, (dict, ContentModel))]
                if len(kept) != len(v):
                    logger.warning("Dropped %d malformed %s node(s)", len(v) - len(kept), info.field_name)
                return kept
            if args and args[0] is str:
                return [str(entry) for entry in v if entry is not None]
        return v


class ChecklistItem(ContentModel):
    id: str
    text: str = ""
    completed: bool = False


class Checklist(ContentModel):
    id: str
    title: str = ""
    items: List[ChecklistItem] = Field(default_factory=list)


class Comment(ContentModel):
    """A comment left on a task by an admin or a client."""
    id: str
    text: str = ""
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_name: Optional[str] = Field(default=None, alias="userName")
    user_role: Optional[str] = Field(default=None, alias="userRole")
    created_at: Optional[str] = Field(default=None, alias="createdAt")  # ISO timestamp


class Attachment(ContentModel):
    id: str
    name: str = ""
    url: str = ""
    type: str = "link"  # "link" or "file"


class TaskItem(ContentModel):
    """
    The atomic unit of work inside a stage.

    Attributes:
        id: Unique within the whole content document, not just its stage
        text: Short task title shown on the board
        completed: Completion flag toggled by admins and assigned clients
        assigned_to: Client ids responsible for the task
        start_date: ISO date the work starts (optional)
        due_date: ISO date the work is due (optional)
    """
    id: str
    text: str = ""
    description: Optional[str] = None
    completed: bool = False
    assigned_to: List[str] = Field(default_factory=list, alias="assignedTo")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    attachments: List[Attachment] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)
    checklists: List[Checklist] = Field(default_factory=list)


class Stage(ContentModel):
    """A named column of the board; task order is list order."""
    id: str
    name: str = ""
    items: List[TaskItem] = Field(default_factory=list)


class Content(ContentModel):
    """Root of a sub-project's task tree."""
    stages: List[Stage] = Field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Any, strict: bool = False) -> "Content":
        """
        Parse a stored document.

        Dashboards must keep rendering for legacy or partially migrated rows, so by
        default a document that cannot be repaired (not a mapping, or ``stages``
        not a list) is read as empty. Callers about to write the document back pass
        ``strict=True``: saving that empty tree would erase the stored one.

        Raises:
            InvalidInput: If ``strict`` and the document cannot be parsed
        """
        if isinstance(raw, Content):
            return raw
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            if strict:
                raise InvalidInput("Stored content document is not a mapping; replace it before editing")
            logger.warning("Content document is not a mapping (%s); reading as empty", type(raw).__name__)
            return cls()
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            if strict:
                raise InvalidInput(
                    f"Stored content document is malformed ({exc.error_count()} error(s)); replace it before editing"
                ) from exc
            logger.warning("Malformed content document read as empty: %s", exc.error_count())
            return cls()

    def to_raw(self) -> dict:
        """Serialize for storage using the document's camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")
