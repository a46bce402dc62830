"""Remote document store client.

Documents are addressed by user id under ``{base_url}/users/{user_id}``.
Writes use PATCH, which the server applies as an upsert with a shallow merge
of top-level fields.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import quote

import aiohttp

from .exceptions import RemoteUnavailable

_LOGGER = logging.getLogger(__name__)

_REQUEST_TIMEOUT_SECONDS = 30.0


class RemoteDocumentStore(Protocol):
    """What the sync orchestrator needs from a remote store."""

    async def async_get(self, user_id: str) -> dict[str, Any] | None:
        """Return the user's document, or None when it does not exist."""

    async def async_upsert_merge(self, user_id: str, document: dict[str, Any]) -> None:
        """Create the document or shallow-merge ``document`` into it."""


class RestDocumentStore:
    """JSON-over-HTTP document store."""

    def __init__(self, session: aiohttp.ClientSession, base_url: str, api_key: str = "") -> None:
        self._session = session
        self._base_url = str(base_url or "").rstrip("/")
        self._api_key = str(api_key or "").strip()

    def _url(self, user_id: str) -> str:
        return f"{self._base_url}/users/{quote(str(user_id), safe='')}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _request(self, method: str, user_id: str, *, payload: dict[str, Any] | None = None) -> Any:
        if not self._base_url:
            raise RemoteUnavailable("No remote URL configured")
        try:
            async with self._session.request(
                method,
                self._url(user_id),
                headers=self._headers(),
                json=payload,
                timeout=aiohttp.ClientTimeout(total=_REQUEST_TIMEOUT_SECONDS),
            ) as response:
                if method == "GET" and response.status == 404:
                    return None
                if response.status >= 400:
                    text = await response.text()
                    raise RemoteUnavailable(f"Remote store error ({response.status}): {text[:300]}")
                if response.content_length == 0:
                    return {}
                return await response.json(content_type=None)
        except aiohttp.ClientError as err:
            raise RemoteUnavailable(f"Remote store unreachable: {err}") from err

    async def async_get(self, user_id: str) -> dict[str, Any] | None:
        payload = await self._request("GET", user_id)
        if payload is None:
            return None
        if not isinstance(payload, dict):
            _LOGGER.warning("Ignoring non-object remote document for user %s", user_id)
            return None
        return payload

    async def async_upsert_merge(self, user_id: str, document: dict[str, Any]) -> None:
        await self._request("PATCH", user_id, payload=document)
