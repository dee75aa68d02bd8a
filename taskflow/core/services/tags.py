"""Tag service operations."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from taskflow.database.store import DocumentStore
from taskflow.errors import NotFoundError, ValidationError
from taskflow.models import Document, Tag
from taskflow.utils.ids import generate_id, now_ms

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"name", "color"})


def _find_by_name(doc: Document, name: str) -> Optional[Tag]:
    wanted = name.strip().casefold()
    return next((t for t in doc.tags if t.name.casefold() == wanted), None)


def _require_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Tag name cannot be empty")
    return name.strip()


class TagService:
    """Tag CRUD with case-insensitive unique names."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def all(self) -> list[Tag]:
        return [t.model_copy() for t in (await self._store.get_cached()).tags]

    async def get(self, tag_id: str) -> Optional[Tag]:
        for tag in (await self._store.get_cached()).tags:
            if tag.id == tag_id:
                return tag.model_copy()
        return None

    async def create(self, name: str, color: Optional[str] = None) -> Tag:
        """Create a tag, or return the existing one with the same name."""
        name = _require_name(name)
        doc = await self._store.get_copy()
        existing = _find_by_name(doc, name)
        if existing:
            return existing

        tag = Tag(id=generate_id(), name=name, color=color, created_at=now_ms())
        doc.tags.append(tag)
        await self._store.save(doc)
        logger.debug("Created tag %s (%s)", tag.id, tag.name)
        return tag.model_copy()

    async def get_or_create_by_name(self, name: str, color: Optional[str] = None) -> Tag:
        """Case-insensitive lookup by name, creating the tag if missing."""
        existing = _find_by_name(await self._store.get_cached(), _require_name(name))
        if existing:
            return existing.model_copy()
        return await self.create(name, color)

    async def update(self, tag_id: str, **changes: Any) -> Tag:
        """Rename or recolor a tag.

        Raises:
            NotFoundError: If no tag has ``tag_id``.
            ValidationError: If the new name is blank or taken by another tag.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown tag fields: {', '.join(sorted(unknown))}")
        doc = await self._store.get_copy()
        index = next((i for i, t in enumerate(doc.tags) if t.id == tag_id), None)
        if index is None:
            raise NotFoundError(f"Tag not found: {tag_id}")

        if "name" in changes:
            changes["name"] = _require_name(changes["name"])
            clash = _find_by_name(doc, changes["name"])
            if clash and clash.id != tag_id:
                raise ValidationError(f"Tag name already in use: {changes['name']}")

        try:
            updated = Tag.model_validate({**doc.tags[index].model_dump(), **changes})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid tag: {e.errors()[0]['msg']}") from e
        doc.tags[index] = updated
        await self._store.save(doc)
        return updated.model_copy()

    async def delete(self, tag_id: str) -> None:
        """Remove a tag and strip its id from every task, in one save."""
        doc = await self._store.get_copy()
        remaining = [t for t in doc.tags if t.id != tag_id]
        if len(remaining) == len(doc.tags):
            return
        doc.tags = remaining

        now = now_ms()
        for i, task in enumerate(doc.tasks):
            if tag_id in task.tag_ids:
                doc.tasks[i] = task.model_copy(
                    update={
                        "tag_ids": [t for t in task.tag_ids if t != tag_id],
                        "updated_at": now,
                    }
                )
        await self._store.save(doc)
        logger.debug("Deleted tag %s", tag_id)

    async def task_count(self, tag_id: str) -> int:
        doc = await self._store.get_cached()
        return sum(1 for t in doc.tasks if tag_id in t.tag_ids and not t.completed)
