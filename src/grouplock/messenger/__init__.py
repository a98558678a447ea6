# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Messenger backend registry and factory."""

from grouplock.messenger.base import MessengerBackend, MessengerSession
from grouplock.messenger.config import MessengerConfig


def get_backend(config: MessengerConfig) -> MessengerBackend:
    """Get backend instance based on configuration.

    Raises:
        BackendUnavailable: If the backend type is unsupported or its client
            library is not installed
    """
    if config.backend == "bridge":
        from grouplock.messenger.bridge import BridgeBackend

        return BridgeBackend(config.bridge)

    elif config.backend == "client":
        from grouplock.messenger.client import ClientBackend

        return ClientBackend.from_config(config.client)

    else:
        from grouplock.errors import BackendUnavailable

        raise BackendUnavailable(f"Unsupported messenger backend: {config.backend}")


__all__ = ["MessengerBackend", "MessengerSession", "get_backend"]
