"""Document store: the single JSON document with a read-through cache."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from taskflow.config import DEFAULT_DOCUMENT_KEY
from taskflow.database.kv import KeyValueStore
from taskflow.errors import StorageError, ValidationError
from taskflow.models import SCHEMA_VERSION, Document, SyncMetadata
from taskflow.utils.ids import now_ms, to_base36

logger = logging.getLogger(__name__)

REQUIRED_COLLECTIONS = ("tasks", "projects", "tags")


def serialize(doc: Document) -> str:
    """Pretty-printed JSON with stable key order."""
    return json.dumps(doc.to_wire(), indent=2, ensure_ascii=False)


def compute_hash(doc: Document) -> str:
    """Order-independent content digest of the three collections.

    Each collection is sorted by id before hashing, so permutations coming
    from unrelated mutations do not change the result. This is change
    detection, not integrity protection.
    """
    canonical = {
        "tasks": [t.to_wire() for t in sorted(doc.tasks, key=lambda t: t.id)],
        "projects": [p.to_wire() for p in sorted(doc.projects, key=lambda p: p.id)],
        "tags": [t.to_wire() for t in sorted(doc.tags, key=lambda t: t.id)],
    }
    text = json.dumps(canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return f"-{to_base36(-h)}" if h < 0 else to_base36(h)


class DocumentStore:
    """Owns the persisted Document. All services go through ``get_cached``.

    The cache is only replaced after a successful write, so a failed save
    never leaves the process believing data was persisted.
    """

    def __init__(self, kv: KeyValueStore, key: str = DEFAULT_DOCUMENT_KEY) -> None:
        self._kv = kv
        self._key = key
        self._cache: Optional[Document] = None

    async def load(self) -> Document:
        """Read the document from the medium, creating an empty one if absent.

        Raises:
            StorageError: If the medium cannot be read or the stored text is not
                a valid document. The stored text is left as-is in that case.
        """
        try:
            raw = await self._kv.get(self._key)
        except OSError as e:
            logger.error("Failed to read document %s: %s", self._key, e)
            raise StorageError("Failed to load data from storage") from e
        except UnicodeDecodeError as e:
            logger.error("Stored document %s is not valid UTF-8: %s", self._key, e)
            raise StorageError("Stored data is corrupt and could not be loaded") from e

        if raw is None:
            logger.info("No stored document under %s; initializing", self._key)
            doc = Document.empty()
            await self.save(doc)
            return doc

        try:
            doc = Document.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.error("Stored document %s is not parseable: %s", self._key, e)
            raise StorageError("Stored data is corrupt and could not be loaded") from e

        self._cache = doc
        return doc

    async def save(self, doc: Document) -> None:
        """Stamp the schema version and persist ``doc`` atomically.

        Raises:
            StorageError: If the write fails; the cache is left unchanged.
        """
        doc.version = SCHEMA_VERSION
        text = serialize(doc)
        try:
            await self._kv.set(self._key, text)
        except OSError as e:
            logger.error("Failed to save document %s: %s", self._key, e)
            raise StorageError("Failed to save data to storage") from e
        self._cache = doc

    async def get_cached(self) -> Document:
        """Return the cached document, loading it on first use.

        Callers must treat the result as read-only; use ``get_copy`` to mutate.
        """
        if self._cache is not None:
            return self._cache
        return await self.load()

    async def get_copy(self) -> Document:
        """Deep copy of the current document for read-modify-write."""
        return (await self.get_cached()).model_copy(deep=True)

    def invalidate(self) -> None:
        """Drop the cache so the next read goes to the medium."""
        self._cache = None

    async def export_snapshot(self) -> str:
        """Human-readable JSON of the current document."""
        return serialize(await self.get_cached())

    async def write_export_file(self, directory: Path) -> Path:
        """Write a timestamped snapshot file into ``directory`` and return its path."""
        text = await self.export_snapshot()
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        path = Path(directory) / f"taskflow-export-{stamp}.json"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to export data to {path}") from e
        return path

    async def import_snapshot(self, text: str) -> None:
        """Replace the whole document with the one encoded in ``text``.

        Raises:
            ValidationError: If ``text`` is not JSON, is missing any of the
                three collections, or contains malformed records. The existing
                document is unchanged.
        """
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Import is not valid JSON: {e.msg}") from e

        if not isinstance(payload, dict):
            raise ValidationError("Import must be a JSON object")
        missing = [k for k in REQUIRED_COLLECTIONS if not isinstance(payload.get(k), list)]
        if missing:
            raise ValidationError(
                f"Invalid data format: missing {', '.join(missing)}"
            )

        try:
            doc = Document.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid data format: {e.error_count()} errors") from e

        await self.save(doc)
        logger.info(
            "Imported %d tasks, %d projects, %d tags",
            len(doc.tasks),
            len(doc.projects),
            len(doc.tags),
        )

    async def import_from_text(self, text: str) -> None:
        """Alias used by import surfaces; see ``import_snapshot``."""
        await self.import_snapshot(text)

    async def clear(self) -> None:
        """Delete the stored document; the next load behaves as a fresh install."""
        try:
            await self._kv.delete(self._key)
        except OSError as e:
            raise StorageError("Failed to clear data") from e
        self._cache = None

    # ---- Sync bookkeeping ----
    def compute_hash(self, doc: Document) -> str:
        """Content hash of ``doc``; see the module-level ``compute_hash``."""
        return compute_hash(doc)

    async def get_sync_metadata(self) -> SyncMetadata:
        doc = await self.get_cached()
        return SyncMetadata(
            last_sync_timestamp=doc.last_sync or 0,
            sync_hash=compute_hash(doc),
        )

    async def update_sync_metadata(self) -> None:
        """Stamp ``lastSync`` and ``syncHash`` after a successful sync."""
        doc = await self.get_copy()
        stamp_sync(doc)
        await self.save(doc)

    async def detect_conflict(self, remote_hash: str) -> bool:
        """True when local content differs from the given remote hash."""
        metadata = await self.get_sync_metadata()
        return metadata.sync_hash != remote_hash


def stamp_sync(doc: Document, at: Optional[int] = None) -> Document:
    """Set sync metadata on ``doc`` in place and return it."""
    doc.last_sync = at if at is not None else now_ms()
    doc.sync_hash = compute_hash(doc)
    return doc
