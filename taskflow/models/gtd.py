"""GTD schema: tasks, projects, tags and the document that owns them.

Field names are snake_case in Python and camelCase on the wire; every
timestamp is an integer count of epoch milliseconds.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = "1.0.0"

TaskStatus = Literal["inbox", "next", "waiting", "someday"]
Priority = Literal["low", "medium", "high"]


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Plain dict in storage format (camelCase keys, unset optionals omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Tag(_WireModel):
    """A label attached to tasks by id. Names are unique ignoring case."""

    id: str
    name: str
    color: Optional[str] = None
    created_at: int


class Project(_WireModel):
    """A multi-step outcome that groups tasks through ``Task.project_id``."""

    id: str
    name: str
    description: Optional[str] = None
    goal: Optional[str] = None
    color: Optional[str] = None
    archived: bool = False
    created_at: int
    updated_at: int


class Task(_WireModel):
    """Single actionable item.

    ``project_id`` and ``tag_ids`` are weak references: deleting the target
    never deletes the task.
    """

    id: str
    title: str
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    due_date: Optional[int] = None
    project_id: Optional[str] = None
    tag_ids: list[str] = Field(default_factory=list)
    completed: bool = False
    completed_at: Optional[int] = None
    created_at: int
    updated_at: int

    @field_validator("tag_ids")
    @classmethod
    def _dedupe_tag_ids(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class Document(_WireModel):
    """Root aggregate: the unit of storage and of synchronization."""

    tasks: list[Task]
    projects: list[Project]
    tags: list[Tag]
    version: str = SCHEMA_VERSION
    last_sync: Optional[int] = None
    sync_hash: Optional[str] = None

    @classmethod
    def empty(cls) -> "Document":
        """Fresh-install document: empty collections, no sync metadata."""
        return cls(tasks=[], projects=[], tags=[])


class SyncMetadata(_WireModel):
    """Snapshot of the local sync bookkeeping."""

    last_sync_timestamp: int = 0
    sync_hash: str
    conflict_detected: bool = False
