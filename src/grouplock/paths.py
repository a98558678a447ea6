# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Filesystem paths and data-dir helpers."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_data_dir

from grouplock.defaults import CREDENTIAL_FILENAME

ENV_DATA_DIR = "GROUPLOCK_DATA_DIR"


def default_data_dir() -> Path:
    """Get the default data directory."""
    env_root = os.getenv(ENV_DATA_DIR)
    if env_root:
        return Path(env_root)
    return Path(user_data_dir("grouplock", "grouplock"))


def credential_path(data_dir: Path) -> Path:
    """Well-known location of the single credential document."""
    return data_dir / CREDENTIAL_FILENAME
