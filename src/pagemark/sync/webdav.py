"""Minimal async WebDAV client: list, read, write and delete under one root."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote, urlparse

import httpx
from bs4 import BeautifulSoup

from pagemark.errors import WebDAVAuth, WebDAVError, WebDAVNetwork, WebDAVNotFound

log = logging.getLogger(__name__)

PROPFIND_BODY = b"""<?xml version="1.0" encoding="utf-8"?>
<d:propfind xmlns:d="DAV:">
  <d:prop>
    <d:resourcetype/>
    <d:getcontentlength/>
    <d:getlastmodified/>
  </d:prop>
</d:propfind>
"""


@dataclass
class WebDAVConfig:
    url: str = ""
    username: str = ""
    password: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.url and self.username and self.password)

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "username": self.username, "password": self.password}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "WebDAVConfig":
        data = data or {}
        return cls(
            # "webdavPath" is the key older settings files used
            url=str(data.get("url") or data.get("webdavPath") or ""),
            username=str(data.get("username") or ""),
            password=str(data.get("password") or ""),
        )


@dataclass
class RemoteEntry:
    name: str
    path: str
    is_dir: bool = False
    size: int = 0


class WebDAVClient:
    def __init__(
        self,
        config: WebDAVConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._base_path = unquote(urlparse(config.url).path).rstrip("/")

    @property
    def config(self) -> WebDAVConfig:
        return self._config

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                auth=(self._config.username, self._config.password),
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _url(self, path: str) -> str:
        return f"{self._config.url.rstrip('/')}/{quote(path.lstrip('/'))}"

    async def _request(
        self, method: str, path: str, timeout: Optional[float] = None, **kwargs
    ) -> httpx.Response:
        url = self._url(path)
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            resp = await self._get_client().request(method, url, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            log.debug("WebDAV %s %s -> HTTP %s", method, url, status)
            if status in (401, 403):
                raise WebDAVAuth(
                    "Authentication failed, check username and password"
                ) from e
            if status in (404, 409):
                raise WebDAVNotFound(f"Remote path not found: {path}") from e
            raise WebDAVNetwork(f"WebDAV request failed: HTTP {status}") from e
        except httpx.RequestError as e:
            log.debug("WebDAV %s %s -> %s: %s", method, url, type(e).__name__, e)
            raise WebDAVNetwork(
                f"Cannot reach WebDAV server: {type(e).__name__} ({self._config.url})"
            ) from e

    async def list_dir(self, path: str = "/") -> list[RemoteEntry]:
        resp = await self._request(
            "PROPFIND",
            path,
            content=PROPFIND_BODY,
            headers={"Depth": "1", "Content-Type": "application/xml; charset=utf-8"},
        )
        return self._parse_multistatus(resp.content, path)

    async def read(self, path: str, timeout: Optional[float] = None) -> bytes:
        resp = await self._request("GET", path, timeout=timeout)
        return resp.content

    async def write(self, path: str, data: bytes) -> None:
        await self._request("PUT", path, content=data)

    async def delete(self, path: str) -> None:
        await self._request("DELETE", path)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _parse_multistatus(self, body: bytes, path: str) -> list[RemoteEntry]:
        try:
            soup = BeautifulSoup(body, "xml")
        except Exception as e:
            raise WebDAVError(f"Unreadable PROPFIND response: {e}") from e

        listed = f"{self._base_path}/{path.strip('/')}".rstrip("/")
        entries: list[RemoteEntry] = []
        for response in soup.find_all("response"):
            href = response.find("href")
            if href is None or not href.text:
                continue
            href_path = unquote(urlparse(href.text.strip()).path).rstrip("/")
            if href_path == listed:
                continue
            name = href_path.rsplit("/", 1)[-1]
            length = response.find("getcontentlength")
            entries.append(
                RemoteEntry(
                    name=name,
                    path=f"{path.rstrip('/')}/{name}",
                    is_dir=response.find("collection") is not None,
                    size=int(length.text) if length is not None and length.text.isdigit() else 0,
                )
            )
        return entries
