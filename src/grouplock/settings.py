# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Application settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from grouplock.defaults import (
    CALL_TIMEOUT_S,
    LOG_CAPACITY,
    POLL_INTERVAL_S,
    SERVER_HOST,
    SERVER_PORT,
)
from grouplock.messenger.config import MessengerConfig
from grouplock.paths import default_data_dir


class Settings(BaseSettings):
    data_dir: Path = Field(default_factory=default_data_dir)
    log_level: str = "INFO"
    host: str = SERVER_HOST
    port: int = SERVER_PORT
    poll_interval_s: float = Field(default=POLL_INTERVAL_S, gt=0)
    # None disables the settle delay before a corrective rename.
    correction_delay_s: float | None = Field(default=None, ge=0)
    call_timeout_s: float = Field(default=CALL_TIMEOUT_S, gt=0)
    log_capacity: int = Field(default=LOG_CAPACITY, ge=1)
    auto_login: bool = True
    messenger: MessengerConfig = Field(default_factory=MessengerConfig)

    model_config = SettingsConfigDict(
        env_prefix="GROUPLOCK_",
        env_nested_delimiter="__",
        extra="ignore",
    )
