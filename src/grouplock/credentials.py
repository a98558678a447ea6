# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Single-slot credential storage.

The credential is the messaging platform's serialized session state
(``appstate.json``). It is kept as one JSON document under the data dir and
replaced atomically on every save.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from grouplock.errors import InvalidCredentialFormat
from grouplock.logging import get_logger

logger = get_logger(__name__)

Credential = dict[str, Any] | list[Any]


class CredentialStore:
    """JSON-backed store for the current credential blob."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._credential: Credential | None = None

    @staticmethod
    def parse(raw: str | bytes | dict | list) -> Credential:
        """Parse raw input into a credential value.

        Raises:
            InvalidCredentialFormat: If the input is not a JSON object or array
        """
        if isinstance(raw, (dict, list)):
            value: Any = raw
        else:
            if isinstance(raw, bytes):
                try:
                    raw = raw.decode("utf-8-sig")
                except UnicodeDecodeError as e:
                    raise InvalidCredentialFormat("Credential is not valid UTF-8") from e
            if not raw.strip():
                raise InvalidCredentialFormat("No appstate content provided")
            try:
                value = json.loads(raw)
            except json.JSONDecodeError as e:
                raise InvalidCredentialFormat(f"Credential is not valid JSON: {e}") from e

        if not isinstance(value, (dict, list)) or not value:
            raise InvalidCredentialFormat("Credential must be a non-empty JSON object or array")
        return value

    def save(self, raw: str | bytes | dict | list) -> Credential:
        """Validate and persist a credential, replacing any existing one."""
        credential = self.parse(raw)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(credential, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)
        self._credential = credential
        logger.info("credential_saved", path=str(self.path))
        return credential

    def load(self) -> Credential | None:
        return self._credential

    def has(self) -> bool:
        return self._credential is not None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
        self._credential = None
        logger.info("credential_cleared", path=str(self.path))

    def load_from_disk(self) -> Credential | None:
        """Read the persisted credential; failures are logged and treated as absent."""
        self._credential = None
        if not self.path.exists():
            return None
        try:
            self._credential = self.parse(self.path.read_bytes())
        except (OSError, InvalidCredentialFormat) as e:
            logger.warning("credential_load_failed", path=str(self.path), error=str(e))
            return None
        logger.info("credential_loaded", path=str(self.path))
        return self._credential
