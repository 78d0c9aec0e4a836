"""
Project Resource Documents Module

This module defines the small JSON lists kept next to a project's task trees:
- links: bookmarks to staging sites, design boards, shared folders
- credentials: logins the studio shares with the client (passwords encrypted at rest)
- files: uploaded deliverables, referenced by URL

Projects carry all three; sub-projects carry links and credentials. Each list is
replaced as a whole when saved, like the content and budget documents.
"""
import logging
import uuid
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class ResourceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Link(ResourceModel):
    title: str = ""
    url: str = ""


class Credential(ResourceModel):
    """
    A shared login.

    Attributes:
        name: What the login is for (e.g., "WordPress admin")
        url: Where to use it
        username: Login name
        password: Plain text on the way in and out; encrypted when stored
    """
    name: str = ""
    url: str = ""
    username: str = ""
    password: Optional[str] = ""


class ProjectFile(ResourceModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    url: str = ""
    created_at: Optional[str] = Field(default=None, alias="createdAt")  # ISO timestamp


def parse_list(model, raw: Any) -> List[Any]:
    """
    Read a stored resource list, skipping entries that do not parse.

    A stored value that is not a list reads as empty.
    """
    if not isinstance(raw, list):
        if raw is not None:
            logger.warning("%s list is not a list (%s); reading as empty", model.__name__, type(raw).__name__)
        return []
    entries = []
    for entry in raw:
        try:
            entries.append(model.model_validate(entry))
        except ValidationError:
            logger.warning("Skipped malformed %s entry", model.__name__)
    return entries


def dump_list(entries: List[ResourceModel]) -> List[dict]:
    return [entry.model_dump(by_alias=True, mode="json") for entry in entries]
