"""Remote mirroring of the local document over WebDAV."""

from .engine import SyncEngine, SyncResult, SyncState, normalize_webdav_url
from .webdav import RemoteStat, WebDAVClient

__all__ = [
    "RemoteStat",
    "SyncEngine",
    "SyncResult",
    "SyncState",
    "WebDAVClient",
    "normalize_webdav_url",
]
