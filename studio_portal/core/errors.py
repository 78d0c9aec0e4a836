"""
Domain Error Module

Typed exceptions raised by the domain engine and the storage layer. Each error
carries a machine-readable ``code`` and the HTTP status the API maps it to, so
callers catch by type instead of parsing messages.

    PortalError
    +-- Unauthorized     access resolution failed (403)
    +-- NotFound         project / sub-project / stage / task does not exist (404)
    +-- InvalidInput     malformed mutation request (400)
    +-- StorageFailure   opaque failure from the storage collaborator (503)
"""


class PortalError(Exception):
    """Base class for every error the portal core raises."""

    code: str = "PORTAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class Unauthorized(PortalError):
    code = "UNAUTHORIZED"
    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class NotFound(PortalError):
    """A referenced entity is missing."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")


class InvalidInput(PortalError):
    code = "INVALID_INPUT"
    status_code = 400


class StorageFailure(PortalError):
    """Wraps whatever the database driver raised; never retried."""

    code = "STORAGE_FAILURE"
    status_code = 503
