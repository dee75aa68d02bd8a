"""Exception taxonomy shared by the store, services, and sync engine."""


class TaskflowError(Exception):
    """Base class for all TaskFlow errors."""


class StorageError(TaskflowError):
    """Backing medium is unreadable/unwritable, or stored content is corrupt."""


class ValidationError(TaskflowError):
    """Malformed import payload or a required field missing on create/update."""


class NotFoundError(TaskflowError):
    """An operation referenced an entity id that does not exist."""


class RemoteConnectionError(TaskflowError):
    """WebDAV probe or transfer failed (network, auth, or HTTP status)."""
