# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""In-process client backend.

Wraps a Python messenger client library loaded from a ``module:callable``
factory path. Client libraries disagree on method names and on the argument
order of the rename call, so both are resolved once per session.
"""

from __future__ import annotations

import asyncio
import enum
import importlib
import inspect
from collections.abc import Callable
from typing import Any

from grouplock.errors import (
    BackendUnavailable,
    CredentialRejected,
    FetchError,
    LoginError,
    SetTitleError,
    TransportFailure,
)
from grouplock.logging import get_logger
from grouplock.messenger.config import ClientConfig

logger = get_logger(__name__)

_FETCH_METHODS = ("get_thread_info", "getThreadInfo", "fetch_thread_info", "fetchThreadInfo")
_TITLE_METHODS = ("set_title", "setTitle", "change_thread_title", "changeThreadTitle")
_CLOSE_METHODS = ("close", "logout")
_NAME_ATTRS = ("thread_name", "name", "title")


class TitleOrder(enum.Enum):
    TITLE_FIRST = "title_first"
    THREAD_FIRST = "thread_first"


def load_factory(path: str) -> Callable[..., Any]:
    """Import a ``module:callable`` path.

    Raises:
        ImportError: If the module is not installed
        AttributeError: If the callable is missing
    """
    module_name, _, attr = path.partition(":")
    module = importlib.import_module(module_name)
    return getattr(module, attr or "login")


async def _call(func: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async client function without blocking the event loop."""
    if inspect.iscoroutinefunction(func):
        return await func(*args)
    result = await asyncio.to_thread(func, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


def detect_title_order(method: Callable[..., Any]) -> TitleOrder | None:
    """Guess rename argument order from parameter names; None if inconclusive."""
    try:
        params = [
            p
            for p in inspect.signature(method).parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
    except (TypeError, ValueError):
        return None
    if not params:
        return None
    first = params[0].name.lower()
    if "thread" in first:
        return TitleOrder.THREAD_FIRST
    if "title" in first or "name" in first:
        return TitleOrder.TITLE_FIRST
    return None


def normalize_thread_info(raw: Any, thread_id: str) -> dict[str, Any]:
    """Coerce a client's thread info result into a mapping."""
    if isinstance(raw, dict):
        nested = raw.get(thread_id)
        if nested is not None and not isinstance(nested, (str, int, float)):
            return normalize_thread_info(nested, thread_id)
        return raw
    if raw is None:
        return {}
    return {attr: getattr(raw, attr) for attr in _NAME_ATTRS if getattr(raw, attr, None) is not None}


def _pick(client: Any, names: tuple[str, ...]) -> Callable[..., Any] | None:
    for name in names:
        method = getattr(client, name, None)
        if callable(method):
            return method
    return None


async def _close_client(client: Any) -> None:
    close = _pick(client, _CLOSE_METHODS)
    if close is None:
        return
    try:
        await _call(close)
    except Exception as e:
        logger.debug("client_close_failed", error=str(e))


class ClientSession:
    """Session wrapping a logged-in client object."""

    def __init__(self, client: Any) -> None:
        fetch = _pick(client, _FETCH_METHODS)
        rename = _pick(client, _TITLE_METHODS)
        if fetch is None or rename is None:
            raise BackendUnavailable(
                f"Client {type(client).__name__} lacks thread info or rename support"
            )
        self._client = client
        self._fetch = fetch
        self._rename = rename
        self.title_order = detect_title_order(rename)
        self._closed = False

    async def get_thread_info(self, thread_id: str) -> dict[str, Any]:
        try:
            raw = await _call(self._fetch, thread_id)
        except CredentialRejected:
            raise
        except Exception as e:
            raise FetchError(str(e) or type(e).__name__) from e
        return normalize_thread_info(raw, thread_id)

    async def set_title(self, title: str, thread_id: str) -> None:
        if self.title_order is not None:
            await self._rename_with(self.title_order, title, thread_id)
            return

        # Unresolved: canonical order first, alternate on a signature mismatch.
        try:
            await self._rename_with(TitleOrder.TITLE_FIRST, title, thread_id, raw=True)
            self.title_order = TitleOrder.TITLE_FIRST
        except TypeError:
            logger.info("client_title_order_fallback", order=TitleOrder.THREAD_FIRST.value)
            await self._rename_with(TitleOrder.THREAD_FIRST, title, thread_id)
            self.title_order = TitleOrder.THREAD_FIRST
        except Exception as e:
            raise SetTitleError(str(e) or type(e).__name__) from e

    async def _rename_with(
        self, order: TitleOrder, title: str, thread_id: str, raw: bool = False
    ) -> None:
        args = (title, thread_id) if order is TitleOrder.TITLE_FIRST else (thread_id, title)
        if raw:
            await _call(self._rename, *args)
            return
        try:
            await _call(self._rename, *args)
        except Exception as e:
            raise SetTitleError(str(e) or type(e).__name__) from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await _close_client(self._client)


class ClientBackend:
    """Messenger backend backed by an importable client library."""

    name = "client"

    def __init__(self, factory: Callable[..., Any], source: str = "") -> None:
        self._factory = factory
        self.source = source
        self._late_closers: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config(cls, config: ClientConfig) -> ClientBackend:
        """Use the first factory path that imports.

        Raises:
            BackendUnavailable: If none of the configured factories can be loaded
        """
        for path in config.factories:
            try:
                factory = load_factory(path)
            except (ImportError, AttributeError) as e:
                logger.debug("client_factory_unavailable", factory=path, error=str(e))
                continue
            logger.info("client_factory_selected", factory=path)
            return cls(factory, source=path)
        raise BackendUnavailable(
            "No messenger client library installed (tried: "
            + (", ".join(config.factories) or "nothing configured")
            + ")"
        )

    async def login(self, credential: Any) -> ClientSession:
        try:
            client = await self._run_factory(credential)
        except LoginError:
            raise
        except (ConnectionError, TimeoutError, OSError) as e:
            raise TransportFailure(str(e) or type(e).__name__) from e
        except Exception as e:
            raise CredentialRejected(str(e) or type(e).__name__) from e
        if client is None:
            raise CredentialRejected("Client factory returned no session")
        return ClientSession(client)

    async def _run_factory(self, credential: Any) -> Any:
        """Call the factory; a client that arrives after cancellation is closed.

        A sync factory keeps running in its worker thread when the caller's
        login timeout cancels us, so its result is closed once it lands.
        """
        pending = asyncio.ensure_future(_call(self._factory, credential))
        try:
            return await asyncio.shield(pending)
        except asyncio.CancelledError:
            pending.add_done_callback(self._close_late_client)
            raise

    def _close_late_client(self, pending: asyncio.Future[Any]) -> None:
        if pending.cancelled() or pending.exception() is not None:
            return
        client = pending.result()
        if client is None:
            return
        logger.info("client_late_login_closed")
        task = asyncio.create_task(_close_client(client))
        self._late_closers.add(task)
        task.add_done_callback(self._late_closers.discard)
