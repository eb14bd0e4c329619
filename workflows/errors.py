"""Exceptions raised by the archive workflows."""


class ArchiveError(Exception):
    """Base exception for archive operations."""
    pass


class NotAuthenticatedError(ArchiveError):
    """No current user in the session."""
    pass


class PermissionDeniedError(ArchiveError):
    """The current user may not modify the target document."""
    pass


class DocumentNotFoundError(ArchiveError):
    """The referenced document does not exist."""
    pass
