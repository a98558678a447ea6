# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Capability protocols for messenger backends."""

from __future__ import annotations

from typing import Any, Protocol


class MessengerSession(Protocol):
    """Authenticated session handle returned by a successful login.

    Only the two operations the locker depends on are part of the contract.
    """

    async def get_thread_info(self, thread_id: str) -> dict[str, Any]:
        """Fetch metadata for a thread.

        Args:
            thread_id: Group thread identifier

        Returns:
            Thread info mapping; the name lives under one of several keys

        Raises:
            FetchError: On backend errors
            CredentialRejected: If the session is no longer valid
        """
        ...

    async def set_title(self, title: str, thread_id: str) -> None:
        """Rename a thread.

        Raises:
            SetTitleError: On backend errors
        """
        ...

    async def close(self) -> None:
        """Release resources held by the session. Idempotent."""
        ...


class MessengerBackend(Protocol):
    """Turns a credential blob into a session."""

    name: str

    async def login(self, credential: Any) -> MessengerSession:
        """Authenticate with the stored credential.

        Raises:
            CredentialRejected: If the backend refuses the credential
            TransportFailure: On network errors or timeouts
        """
        ...
