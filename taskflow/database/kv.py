"""Asynchronous key/value medium backing the document and sync credentials."""

import asyncio
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class KeyValueStore(Protocol):
    """get/set/delete of UTF-8 strings by key.

    ``get`` raises ``OSError`` when the medium fails and ``UnicodeDecodeError``
    when the stored bytes are not UTF-8.
    """

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class FileKeyValueStore:
    """One file per key under a directory. All I/O stays in this module.

    Writes land in a temp file beside the target and are moved into place
    with ``os.replace``, so readers never observe a half-written value.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def path_for(self, key: str) -> Path:
        """Return the file holding ``key`` (unsafe characters replaced)."""
        name = _UNSAFE_KEY_CHARS.sub("_", key.lstrip("@")) or "_"
        return self._root / f"{name}.json"

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._read, self.path_for(key))

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write_atomic, self.path_for(key), value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._path_unlink, self.path_for(key))

    @staticmethod
    def _read(path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    @staticmethod
    def _write_atomic(path: Path, value: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d chars to %s", len(value), path)

    @staticmethod
    def _path_unlink(path: Path) -> None:
        path.unlink(missing_ok=True)
