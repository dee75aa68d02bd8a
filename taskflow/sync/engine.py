"""Whole-document WebDAV synchronization.

Strategy: last-writer-wins on the ``lastSync`` timestamp that this engine
stamps after each successful sync. The remote file always holds a document
that was once a valid local document; there is no field-level merge.

Known limitations:
- ``syncHash`` is kept up to date but not consulted when choosing a side, so
  edits made on both devices since the last sync are not reported as a
  conflict; the side with the larger ``lastSync`` silently wins.
- Only one ``sync()`` should run at a time; concurrent calls work off the
  same local snapshot and the later write wins.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from taskflow.config import WEBDAV_CONFIG_KEY, WEBDAV_FILE_PATH, WEBDAV_TIMEOUT
from taskflow.database.kv import KeyValueStore
from taskflow.database.store import DocumentStore, serialize, stamp_sync
from taskflow.errors import NotFoundError, RemoteConnectionError, StorageError, ValidationError
from taskflow.models import Document
from taskflow.sync.webdav import WebDAVClient

logger = logging.getLogger(__name__)

NEXTCLOUD_DAV_MARKER = "/remote.php/dav"

ClientFactory = Callable[[str, str, str], WebDAVClient]


class SyncState(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    SYNCING = "syncing"
    IDLE = "idle"
    ERROR = "error"


@dataclass(frozen=True)
class SyncResult:
    """Outcome of ``sync()``; failures are reported here, never raised."""

    success: bool
    message: str


class WebDAVConfig(BaseModel):
    """Persisted server credentials."""

    url: str
    username: str
    password: str


def normalize_webdav_url(url: str, username: str) -> str:
    """Trim the URL and append the Nextcloud files path if it is missing."""
    webdav_url = url.strip().rstrip("/")
    if NEXTCLOUD_DAV_MARKER not in webdav_url:
        webdav_url = f"{webdav_url}{NEXTCLOUD_DAV_MARKER}/files/{username}"
    return webdav_url


class SyncEngine:
    """Mirrors the local document to a single file on a WebDAV server."""

    def __init__(
        self,
        store: DocumentStore,
        kv: KeyValueStore,
        config_key: str = WEBDAV_CONFIG_KEY,
        file_path: str = WEBDAV_FILE_PATH,
        timeout: float = WEBDAV_TIMEOUT,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._store = store
        self._kv = kv
        self._config_key = config_key
        self._file_path = file_path
        self._client_factory = client_factory or (
            lambda url, user, password: WebDAVClient(url, user, password, timeout=timeout)
        )
        self._client: Optional[WebDAVClient] = None
        self._config: Optional[WebDAVConfig] = None
        self.state = SyncState.UNCONFIGURED
        self.last_result: Optional[SyncResult] = None

    # ---- Configuration ----
    async def restore(self) -> bool:
        """Load saved credentials without probing the server.

        Returns:
            True if a configuration was restored.
        """
        try:
            raw = await self._kv.get(self._config_key)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read WebDAV config: %s", e)
            return False
        if not raw:
            return False
        try:
            config = WebDAVConfig.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning("Ignoring unreadable WebDAV config: %s", e)
            return False
        await self._activate(config)
        return True

    async def configure(self, url: str, username: str, password: str) -> None:
        """Validate credentials against the server, then persist them.

        Raises:
            RemoteConnectionError: If the probe fails. Nothing is saved.
            StorageError: If the credentials cannot be written locally.
        """
        config = WebDAVConfig(
            url=normalize_webdav_url(url, username),
            username=username,
            password=password,
        )
        client = self._client_factory(config.url, config.username, config.password)
        try:
            if not await client.exists("/"):
                raise RemoteConnectionError(f"WebDAV path not found: {config.url}")
        except RemoteConnectionError as e:
            await client.aclose()
            logger.warning("WebDAV probe failed for %s: %s", config.url, e)
            raise RemoteConnectionError(
                "Failed to connect to WebDAV server. Please check your credentials."
            ) from e

        try:
            await self._kv.set(self._config_key, config.model_dump_json())
        except OSError as e:
            await client.aclose()
            raise StorageError("Failed to save WebDAV configuration") from e
        await self._activate(config, client)
        logger.info("WebDAV configured for %s at %s", config.username, config.url)

    async def _activate(
        self, config: WebDAVConfig, client: Optional[WebDAVClient] = None
    ) -> None:
        if self._client is not None and self._client is not client:
            await self._client.aclose()
        self._config = config
        self._client = client or self._client_factory(
            config.url, config.username, config.password
        )
        self.state = SyncState.CONFIGURED

    def is_configured(self) -> bool:
        return self._client is not None and self._config is not None

    def current_config(self) -> Optional[dict[str, str]]:
        """Server URL and username; the password is never exposed."""
        if self._config is None:
            return None
        return {"url": self._config.url, "username": self._config.username}

    async def disconnect(self) -> None:
        """Forget the server. Local task data is not touched."""
        if self._client is not None:
            await self._client.aclose()
        self._client = None
        self._config = None
        try:
            await self._kv.delete(self._config_key)
        except OSError as e:
            raise StorageError("Failed to remove WebDAV configuration") from e
        self.state = SyncState.UNCONFIGURED

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    # ---- Transfer ----
    def _require_client(self) -> WebDAVClient:
        if self._client is None:
            raise RemoteConnectionError("WebDAV client not initialized")
        return self._client

    async def _upload(self, doc: Document) -> None:
        await self._require_client().put_file_contents(
            self._file_path, serialize(doc), overwrite=True
        )

    async def _download(self) -> Optional[Document]:
        """Fetch and parse the remote document; None if there is no file yet."""
        client = self._require_client()
        if not await client.exists(self._file_path):
            return None
        text = await client.get_file_contents(self._file_path)
        try:
            return Document.model_validate_json(text)
        except PydanticValidationError as e:
            raise ValidationError("Remote data is not a valid TaskFlow document") from e

    async def remote_last_modified(self) -> Optional[int]:
        """Server-side modification time of the remote file, if available."""
        try:
            client = self._require_client()
            if not await client.exists(self._file_path):
                return None
            return (await client.stat(self._file_path)).lastmod
        except RemoteConnectionError as e:
            logger.debug("Failed to get remote file info: %s", e)
            return None

    async def sync(self) -> SyncResult:
        """Reconcile local and remote documents (last writer wins).

        Never raises: every failure becomes ``SyncResult(success=False)`` and
        local data is left exactly as it was.
        """
        if not self.is_configured():
            return self._finish(SyncResult(False, "WebDAV sync is not configured."))

        self.state = SyncState.SYNCING
        try:
            local = await self._store.get_cached()
            remote = await self._download()

            if remote is None:
                await self._upload(local)
                await self._store.update_sync_metadata()
                result = SyncResult(
                    True, "Initial sync completed. Local data uploaded to server."
                )
            elif (remote.last_sync or 0) > (local.last_sync or 0):
                await self._store.save(stamp_sync(remote))
                result = SyncResult(True, "Sync completed. Downloaded updates from server.")
            else:
                await self._upload(local)
                await self._store.update_sync_metadata()
                result = SyncResult(True, "Sync completed. Uploaded local changes to server.")
        except Exception as e:
            logger.error("Sync failed: %s: %s", type(e).__name__, e)
            return self._finish(
                SyncResult(False, "Sync failed. Please check your connection and try again.")
            )

        logger.info(result.message)
        return self._finish(result)

    def _finish(self, result: SyncResult) -> SyncResult:
        self.last_result = result
        if self.is_configured():
            self.state = SyncState.IDLE if result.success else SyncState.ERROR
        return result

    async def force_push(self) -> None:
        """Overwrite the remote file with the local document."""
        await self._upload(await self._store.get_cached())
        await self._store.update_sync_metadata()
        logger.info("Force-pushed local data to %s", self._file_path)

    async def force_pull(self) -> None:
        """Overwrite the local document with the remote file.

        Raises:
            NotFoundError: If the server has no TaskFlow file yet.
        """
        remote = await self._download()
        if remote is None:
            raise NotFoundError("No data found on server")
        await self._store.save(stamp_sync(remote))
        logger.info("Force-pulled remote data from %s", self._file_path)
