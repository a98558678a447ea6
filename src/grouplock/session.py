# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Login wrapper turning a credential into a messenger session."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from grouplock.defaults import CALL_TIMEOUT_S
from grouplock.errors import (
    BackendUnavailable,
    LoginError,
    PreconditionFailed,
    TransportFailure,
)
from grouplock.logging import get_logger

if TYPE_CHECKING:
    from grouplock.messenger import MessengerBackend, MessengerSession

logger = get_logger(__name__)


class SessionManager:
    """Single-shot login against the configured messenger backend.

    Never retries; the caller decides what to do with a failure.
    """

    def __init__(
        self,
        backend: MessengerBackend | None,
        timeout_s: float = CALL_TIMEOUT_S,
        unavailable_reason: str | None = None,
    ) -> None:
        """Initialize session manager.

        Args:
            backend: Messenger backend, or None when no backend could be loaded
            timeout_s: Upper bound on a single login call
            unavailable_reason: Why the backend is missing (reported on login)
        """
        self._backend = backend
        self._timeout_s = timeout_s
        self._unavailable_reason = unavailable_reason
        self._in_flight = False

    @property
    def available(self) -> bool:
        return self._backend is not None

    @property
    def backend_name(self) -> str | None:
        return self._backend.name if self._backend is not None else None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def login(self, credential: Any) -> MessengerSession:
        """Authenticate once with the given credential.

        Raises:
            PreconditionFailed: If the credential is absent
            CredentialRejected: If the backend refuses the credential
            TransportFailure: On network errors or timeout
            BackendUnavailable: If no backend is installed
            RuntimeError: If another login is already in flight
        """
        if credential is None:
            raise PreconditionFailed("No appstate.json found. Upload or paste it first.")
        if self._backend is None:
            raise BackendUnavailable(
                self._unavailable_reason or "Login library not installed on server."
            )
        if self._in_flight:
            raise RuntimeError("Login already in progress")

        self._in_flight = True
        try:
            logger.info("login_attempt", backend=self._backend.name)
            try:
                session = await asyncio.wait_for(
                    self._backend.login(credential), timeout=self._timeout_s
                )
            except asyncio.TimeoutError as e:
                raise TransportFailure(f"Login timed out after {self._timeout_s}s") from e
            except LoginError:
                raise
            except (ConnectionError, OSError) as e:
                raise TransportFailure(str(e) or type(e).__name__) from e
            logger.info("login_ok", backend=self._backend.name)
            return session
        finally:
            self._in_flight = False
