# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Exception hierarchy for grouplock."""

from __future__ import annotations

import json
from typing import Any


class GroupLockError(Exception):
    """Base exception for grouplock operations."""

    pass


class PreconditionFailed(GroupLockError):
    """Missing credential or lock configuration at start."""

    pass


class InvalidCredentialFormat(GroupLockError):
    """Credential blob is not a JSON object or array."""

    pass


class LoginError(GroupLockError):
    """Login to the messaging backend failed."""

    pass


class CredentialRejected(LoginError):
    """Backend reports the stored session as invalid or expired."""

    pass


class TransportFailure(LoginError):
    """Network failure or timeout while talking to the backend."""

    pass


class BackendUnavailable(LoginError):
    """No messaging backend is installed or configured."""

    pass


class FetchError(GroupLockError):
    """Fetching thread info failed."""

    pass


class NameUnreadable(GroupLockError):
    """Thread info carries no usable name field."""

    def __init__(self, info: Any) -> None:
        self.info = info
        try:
            raw = json.dumps(info, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            # Non-string keys or circular references.
            raw = repr(info)
        raw = raw[:500]
        super().__init__(f"Could not read group name from thread info. Raw info: {raw}")


class SetTitleError(GroupLockError):
    """Setting the thread title failed."""

    pass
