"""Wires the store, services, and sync engine around one key/value medium."""

import logging
from pathlib import Path
from typing import Optional

from taskflow.config import Settings, get_settings
from taskflow.core.services import ProjectService, TagService, TaskService
from taskflow.database.kv import FileKeyValueStore, KeyValueStore
from taskflow.database.store import DocumentStore
from taskflow.sync.engine import SyncEngine

logger = logging.getLogger(__name__)


class TaskFlowCore:
    """One store per process; services and sync share it explicitly."""

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        kv: Optional[KeyValueStore] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.kv = kv or FileKeyValueStore(data_dir or self.settings.data_dir)
        self.store = DocumentStore(self.kv, key=self.settings.document_key)
        self.tasks = TaskService(self.store)
        self.projects = ProjectService(self.store)
        self.tags = TagService(self.store)
        self.sync = SyncEngine(
            self.store,
            self.kv,
            config_key=self.settings.webdav_config_key,
            file_path=self.settings.webdav_file_path,
            timeout=self.settings.webdav_timeout,
        )

    async def start(self) -> None:
        """Load the document and any saved WebDAV credentials."""
        await self.store.get_cached()
        if await self.sync.restore():
            logger.debug("Restored WebDAV configuration")

    async def close(self) -> None:
        await self.sync.aclose()
