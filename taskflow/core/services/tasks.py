"""Task-oriented service operations."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from taskflow.core.date_parser import parse_task_title, start_of_day_ms
from taskflow.database.store import DocumentStore
from taskflow.errors import NotFoundError, ValidationError
from taskflow.models import Task, TaskStatus
from taskflow.utils.ids import generate_id, now_ms

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
DEFAULT_ACTIVE_STATUS: TaskStatus = "next"

# Fields callers may set through create/update. id and createdAt are immutable.
EDITABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "status",
        "priority",
        "due_date",
        "project_id",
        "tag_ids",
        "completed",
        "completed_at",
    }
)


def promote_from_inbox(
    current: Optional[TaskStatus], changes: Mapping[str, Any]
) -> Optional[TaskStatus]:
    """Return the status a task ends up with after ``changes`` are applied.

    Only inbox tasks are promoted: when the change introduces a due date or
    an explicit non-inbox status, the task leaves the inbox for the explicit
    status, or for ``next`` if none was given. Tasks outside the inbox keep
    whatever status the change sets (or their current one).
    """
    requested = changes.get("status")
    if current != "inbox":
        return requested if "status" in changes else current

    explicit = requested if requested and requested != "inbox" else None
    if changes.get("due_date") is not None or explicit:
        return explicit or DEFAULT_ACTIVE_STATUS
    return requested if "status" in changes else current


def _check_fields(changes: Mapping[str, Any]) -> None:
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")


def _normalize_completion(record: dict[str, Any], changes: Mapping[str, Any], now: int) -> None:
    """Keep ``completed`` and ``completed_at`` in lockstep."""
    if "completed_at" in changes and "completed" not in changes:
        record["completed"] = changes["completed_at"] is not None
    if record.get("completed"):
        if record.get("completed_at") is None:
            record["completed_at"] = now
    else:
        record["completed_at"] = None


def _build(record: dict[str, Any]) -> Task:
    title = record.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Task title cannot be empty")
    record["title"] = title.strip()
    try:
        return Task.model_validate(record)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid task: {e.errors()[0]['msg']}") from e


class TaskService:
    """Task CRUD, derived views, and lifecycle transitions over one store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    # ---- Queries ----
    async def all(self) -> list[Task]:
        return [t.model_copy(deep=True) for t in (await self._store.get_cached()).tasks]

    async def get(self, task_id: str) -> Optional[Task]:
        for task in (await self._store.get_cached()).tasks:
            if task.id == task_id:
                return task.model_copy(deep=True)
        return None

    async def by_status(self, status: TaskStatus) -> list[Task]:
        """Open tasks with the given status."""
        return [t for t in await self.all() if t.status == status and not t.completed]

    async def inbox(self) -> list[Task]:
        """Open, unscheduled tasks still in the inbox."""
        return [
            t
            for t in await self.all()
            if t.status == "inbox" and not t.completed and t.due_date is None
        ]

    async def _due_between(self, start: int, end: int) -> list[Task]:
        return [
            t
            for t in await self.all()
            if not t.completed and t.due_date is not None and start <= t.due_date < end
        ]

    async def today(self, now: Optional[datetime] = None) -> list[Task]:
        """Open tasks due between local midnight today and midnight tomorrow."""
        return await self._due_between(start_of_day_ms(now), start_of_day_ms(now, 1))

    async def tomorrow(self, now: Optional[datetime] = None) -> list[Task]:
        return await self._due_between(start_of_day_ms(now, 1), start_of_day_ms(now, 2))

    async def overdue(self, now: Optional[datetime] = None) -> list[Task]:
        """Open tasks due before local midnight today."""
        midnight = start_of_day_ms(now)
        return [
            t
            for t in await self.all()
            if not t.completed and t.due_date is not None and t.due_date < midnight
        ]

    async def by_project(self, project_id: str) -> list[Task]:
        return [t for t in await self.all() if t.project_id == project_id and not t.completed]

    async def by_tag(self, tag_id: str) -> list[Task]:
        return [t for t in await self.all() if tag_id in t.tag_ids and not t.completed]

    async def completed(self) -> list[Task]:
        """Completed tasks, most recently completed first."""
        done = [t for t in await self.all() if t.completed]
        return sorted(done, key=lambda t: t.completed_at or 0, reverse=True)

    # ---- Mutations ----
    async def create(self, title: str, **fields: Any) -> Task:
        """Create a task (status defaults to inbox) and persist it.

        Raises:
            ValidationError: If the title is blank or a field is invalid.
        """
        _check_fields(fields)
        now = now_ms()
        record: dict[str, Any] = {
            "status": "inbox",
            "tag_ids": [],
            **fields,
            "id": generate_id(),
            "title": title,
            "created_at": now,
            "updated_at": now,
        }
        if record["status"] is None:
            record["status"] = "inbox"
        if record["tag_ids"] is None:
            record["tag_ids"] = []
        _normalize_completion(record, fields, now)
        task = _build(record)

        doc = await self._store.get_copy()
        doc.tasks.append(task)
        await self._store.save(doc)
        logger.debug("Created task %s", task.id)
        return task.model_copy(deep=True)

    async def create_from_title(self, title: str, **fields: Any) -> Task:
        """Create a task, moving a date keyword in the title into ``due_date``."""
        parsed = parse_task_title(title)
        if parsed.detected_date is not None and fields.get("due_date") is None:
            fields["due_date"] = parsed.detected_date
        return await self.create(parsed.cleaned_title, **fields)

    async def update(self, task_id: str, **changes: Any) -> Task:
        """Merge ``changes`` into a task, applying inbox promotion.

        Raises:
            NotFoundError: If no task has ``task_id``.
            ValidationError: If a field is unknown or invalid, or the title is blank.
        """
        _check_fields(changes)
        doc = await self._store.get_copy()
        index = next((i for i, t in enumerate(doc.tasks) if t.id == task_id), None)
        if index is None:
            raise NotFoundError(f"Task not found: {task_id}")

        current = doc.tasks[index]
        now = now_ms()
        record = {**current.model_dump(), **changes, "updated_at": now}
        record["status"] = promote_from_inbox(current.status, changes)
        if record.get("tag_ids") is None:
            record["tag_ids"] = []
        _normalize_completion(record, changes, now)
        updated = _build(record)

        doc.tasks[index] = updated
        await self._store.save(doc)
        return updated.model_copy(deep=True)

    async def complete(self, task_id: str) -> Task:
        return await self.update(task_id, completed=True, completed_at=now_ms())

    async def uncomplete(self, task_id: str) -> Task:
        return await self.update(task_id, completed=False, completed_at=None)

    async def move(self, task_id: str, status: TaskStatus) -> Task:
        return await self.update(task_id, status=status)

    async def delete(self, task_id: str) -> None:
        """Remove a task. Deleting an unknown id is a no-op."""
        doc = await self._store.get_copy()
        remaining = [t for t in doc.tasks if t.id != task_id]
        if len(remaining) == len(doc.tasks):
            return
        doc.tasks = remaining
        await self._store.save(doc)
        logger.debug("Deleted task %s", task_id)

    async def archive_older_than(self, days: int = 30, now: Optional[int] = None) -> int:
        """Drop completed tasks finished more than ``days`` ago.

        Tasks without ``completed_at`` are never removed.

        Returns:
            Number of tasks removed.
        """
        cutoff = (now if now is not None else now_ms()) - days * DAY_MS
        doc = await self._store.get_copy()
        kept = [
            t
            for t in doc.tasks
            if not (t.completed and t.completed_at is not None and t.completed_at < cutoff)
        ]
        removed = len(doc.tasks) - len(kept)
        if removed:
            doc.tasks = kept
            await self._store.save(doc)
            logger.info("Archived %d completed tasks older than %d days", removed, days)
        return removed
