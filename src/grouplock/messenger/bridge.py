# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP bridge backend.

Talks to a local gateway process that hosts the unofficial messenger client
and exposes login, thread info and rename over a small JSON API.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from grouplock.errors import (
    CredentialRejected,
    FetchError,
    SetTitleError,
    TransportFailure,
)
from grouplock.logging import get_logger
from grouplock.messenger.config import BridgeConfig

logger = get_logger(__name__)

_AUTH_STATUSES = {401, 403}


def _thread_path(thread_id: str) -> str:
    return f"/threads/{quote(thread_id, safe='')}"


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"


class BridgeSession:
    """Session bound to one gateway session id."""

    def __init__(self, client: httpx.AsyncClient, session_id: str) -> None:
        self._client = client
        self.session_id = session_id
        self._closed = False

    @property
    def _headers(self) -> dict[str, str]:
        return {"X-Session-Id": self.session_id}

    async def get_thread_info(self, thread_id: str) -> dict[str, Any]:
        try:
            response = await self._client.get(_thread_path(thread_id), headers=self._headers)
        except httpx.TimeoutException as e:
            raise FetchError("Thread info request timed out") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Thread info request failed: {e}") from e

        if response.status_code in _AUTH_STATUSES:
            raise CredentialRejected(_error_detail(response))
        if response.is_error:
            raise FetchError(_error_detail(response))
        try:
            data = response.json()
        except ValueError as e:
            raise FetchError("Malformed thread info response") from e
        if not isinstance(data, dict):
            raise FetchError("Malformed thread info response")
        return data

    async def set_title(self, title: str, thread_id: str) -> None:
        try:
            response = await self._client.post(
                f"{_thread_path(thread_id)}/title",
                json={"title": title},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise SetTitleError(f"Rename request failed: {e}") from e
        if response.is_error:
            raise SetTitleError(_error_detail(response))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._client.post("/logout", headers=self._headers)
        except httpx.HTTPError as e:
            logger.debug("bridge_logout_failed", error=str(e))
        await self._client.aclose()


class BridgeBackend:
    """Messenger backend reached over HTTP."""

    name = "bridge"

    def __init__(
        self,
        config: BridgeConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(self.config.timeout_seconds),
            transport=self._transport,
        )

    async def login(self, credential: Any) -> BridgeSession:
        client = self._make_client()
        try:
            session_id = await self._open_session(client, credential)
        except BaseException:
            # Includes cancellation by the caller's login timeout.
            await client.aclose()
            raise
        logger.info("bridge_login_ok", session_id=session_id)
        return BridgeSession(client, session_id)

    async def _open_session(self, client: httpx.AsyncClient, credential: Any) -> str:
        try:
            response = await client.post("/login", json={"appState": credential})
        except httpx.ConnectError as e:
            raise TransportFailure(f"Failed to connect to bridge at {self.config.base_url}") from e
        except httpx.TimeoutException as e:
            raise TransportFailure(f"Login timed out after {self.config.timeout_seconds}s") from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"Login request failed: {e}") from e

        if response.status_code in _AUTH_STATUSES:
            raise CredentialRejected(_error_detail(response))
        if response.is_error:
            raise TransportFailure(_error_detail(response))
        try:
            return str(response.json()["session_id"])
        except (ValueError, KeyError, TypeError) as e:
            raise TransportFailure("Malformed login response") from e
