"""Minimal async WebDAV client (exists/get/put/stat) on top of httpx."""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Any, Optional
from urllib.parse import quote

import httpx

from taskflow.config import WEBDAV_TIMEOUT
from taskflow.errors import RemoteConnectionError

logger = logging.getLogger(__name__)


_DAV_NS = "{DAV:}"
_PROPFIND_LASTMOD = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop><d:getlastmodified/></d:prop></d:propfind>'
)


@dataclass(frozen=True)
class RemoteStat:
    """Subset of PROPFIND properties we care about."""

    path: str
    lastmod: Optional[int]  # epoch ms, None when the server omits it


class WebDAVClient:
    """Talks to one WebDAV collection with HTTP basic auth.

    Every failure (transport error or unexpected status) surfaces as
    ``RemoteConnectionError``; a 404 on ``exists`` is simply ``False``.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = WEBDAV_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            auth=httpx.BasicAuth(username, password),
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{quote(path.lstrip('/'))}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as e:
            logger.debug("WebDAV %s %s failed: %s: %s", method, path, type(e).__name__, e)
            raise RemoteConnectionError(f"{method} {path} failed: {e}") from e
        logger.debug("WebDAV %s %s -> %d", method, path, response.status_code)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        if response.status_code in (401, 403):
            raise RemoteConnectionError(
                f"{action}: authentication rejected ({response.status_code})"
            )
        raise RemoteConnectionError(f"{action}: HTTP {response.status_code}")

    async def exists(self, path: str) -> bool:
        """True if ``path`` exists on the server."""
        response = await self._request("PROPFIND", path, headers={"Depth": "0"})
        if response.status_code == 404:
            return False
        self._raise_for_status(response, f"exists {path}")
        return True

    async def get_file_contents(self, path: str) -> str:
        response = await self._request("GET", path)
        self._raise_for_status(response, f"download {path}")
        return response.text

    async def put_file_contents(self, path: str, text: str, overwrite: bool = True) -> None:
        """Upload ``text``. With ``overwrite=False`` an existing file is left alone."""
        headers = {"Content-Type": "application/json; charset=utf-8"}
        if not overwrite:
            headers["If-None-Match"] = "*"
        response = await self._request(
            "PUT", path, content=text.encode("utf-8"), headers=headers
        )
        self._raise_for_status(response, f"upload {path}")

    async def stat(self, path: str) -> RemoteStat:
        response = await self._request(
            "PROPFIND",
            path,
            headers={"Depth": "0", "Content-Type": "application/xml; charset=utf-8"},
            content=_PROPFIND_LASTMOD.encode("utf-8"),
        )
        self._raise_for_status(response, f"stat {path}")
        return RemoteStat(path=path, lastmod=_parse_lastmod(response.text))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "WebDAVClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def _parse_lastmod(body: str) -> Optional[int]:
    """Pull ``getlastmodified`` (RFC 1123 date) out of a multistatus body."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return None
    node = root.find(f".//{_DAV_NS}getlastmodified")
    if node is None or not node.text:
        return None
    try:
        return int(parsedate_to_datetime(node.text.strip()).timestamp() * 1000)
    except (TypeError, ValueError):
        return None
