"""Project service operations."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from taskflow.database.store import DocumentStore
from taskflow.errors import NotFoundError, ValidationError
from taskflow.models import Project
from taskflow.utils.ids import generate_id, now_ms

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"name", "description", "goal", "color", "archived"})


def _build(record: dict[str, Any]) -> Project:
    name = record.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Project name cannot be empty")
    record["name"] = name.strip()
    try:
        return Project.model_validate(record)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid project: {e.errors()[0]['msg']}") from e


class ProjectService:
    """Project CRUD. Deleting a project detaches its tasks instead of deleting them."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def all(self) -> list[Project]:
        """Projects that are not archived."""
        projects = (await self._store.get_cached()).projects
        return [p.model_copy() for p in projects if not p.archived]

    async def archived(self) -> list[Project]:
        projects = (await self._store.get_cached()).projects
        return [p.model_copy() for p in projects if p.archived]

    async def get(self, project_id: str) -> Optional[Project]:
        for project in (await self._store.get_cached()).projects:
            if project.id == project_id:
                return project.model_copy()
        return None

    async def create(self, name: str, **fields: Any) -> Project:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown project fields: {', '.join(sorted(unknown))}")
        now = now_ms()
        project = _build(
            {
                **fields,
                "id": generate_id(),
                "name": name,
                "archived": False,
                "created_at": now,
                "updated_at": now,
            }
        )
        doc = await self._store.get_copy()
        doc.projects.append(project)
        await self._store.save(doc)
        logger.debug("Created project %s", project.id)
        return project.model_copy()

    async def update(self, project_id: str, **changes: Any) -> Project:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown project fields: {', '.join(sorted(unknown))}")
        doc = await self._store.get_copy()
        index = next((i for i, p in enumerate(doc.projects) if p.id == project_id), None)
        if index is None:
            raise NotFoundError(f"Project not found: {project_id}")

        updated = _build(
            {**doc.projects[index].model_dump(), **changes, "updated_at": now_ms()}
        )
        doc.projects[index] = updated
        await self._store.save(doc)
        return updated.model_copy()

    async def archive(self, project_id: str) -> Project:
        return await self.update(project_id, archived=True)

    async def unarchive(self, project_id: str) -> Project:
        return await self.update(project_id, archived=False)

    async def delete(self, project_id: str) -> None:
        """Remove a project and clear ``project_id`` on tasks that referenced it.

        Both changes are written in the same save. Unknown ids are a no-op.
        """
        doc = await self._store.get_copy()
        remaining = [p for p in doc.projects if p.id != project_id]
        if len(remaining) == len(doc.projects):
            return
        doc.projects = remaining

        now = now_ms()
        detached = 0
        for i, task in enumerate(doc.tasks):
            if task.project_id == project_id:
                doc.tasks[i] = task.model_copy(update={"project_id": None, "updated_at": now})
                detached += 1
        await self._store.save(doc)
        logger.debug("Deleted project %s (detached %d tasks)", project_id, detached)

    async def task_count(self, project_id: str) -> int:
        """Number of open tasks in the project."""
        doc = await self._store.get_cached()
        return sum(1 for t in doc.tasks if t.project_id == project_id and not t.completed)
