"""
Caller Identity Module

This module defines the UserRole enumeration and the Caller identity decoded from
each request's token. Users themselves live with the external auth provider; the
portal only sees who is calling and in which role.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr


class UserRole(str, Enum):
    """
    Enumeration of user roles issued by the auth provider.

    Every role except CLIENT is an administrator of the portal and has
    unconditional access to all projects. CLIENT users are matched by email to a
    Client record and only see projects they own or are linked to.
    """
    USER = "user"
    CLIENT = "client"
    STAFF = "staff"
    MANAGER = "manager"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Caller(BaseModel):
    """
    The identity making the current request.

    Attributes:
        email: Login email; for clients, the key used to find their Client record
        role: UserRole granted by the auth provider
        name: Display name used when the caller writes comments
        user_id: Provider-side user id, recorded on comments
        read_only: Whether project content is read-only for this caller. Defaults to
            True for clients and False for everyone else.
    """
    email: EmailStr
    role: UserRole = UserRole.USER
    name: Optional[str] = None
    user_id: Optional[str] = None
    read_only: Optional[bool] = None

    @property
    def is_client(self) -> bool:
        return self.role == UserRole.CLIENT

    @property
    def is_read_only(self) -> bool:
        if self.read_only is not None:
            return self.read_only
        return self.is_client
