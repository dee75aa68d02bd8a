"""Domain models."""

from .gtd import (
    SCHEMA_VERSION,
    Document,
    Priority,
    Project,
    SyncMetadata,
    Tag,
    Task,
    TaskStatus,
)

__all__ = [
    "SCHEMA_VERSION",
    "Document",
    "Priority",
    "Project",
    "SyncMetadata",
    "Tag",
    "Task",
    "TaskStatus",
]
