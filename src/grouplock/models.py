# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Shared state and request/response models."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


class RunState(str, enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class LockConfig(BaseModel):
    """Target thread and the name it must keep for one run."""

    thread_id: str
    target_name: str

    model_config = ConfigDict(frozen=True)

    def problems(self) -> list[str]:
        """Return validation problems; empty when the config is usable."""
        issues = []
        if not self.thread_id:
            issues.append("groupID is required")
        elif any(ch.isspace() for ch in self.thread_id):
            issues.append("groupID must not contain whitespace")
        if not self.target_name or not self.target_name.strip():
            issues.append("lockedName is required")
        return issues


class ControlResult(BaseModel):
    """Outcome of a start/stop request as reported to the control surface."""

    ok: bool
    message: str


class LockerStats(BaseModel):
    ticks: int = 0
    fetch_failures: int = 0
    unreadable: int = 0
    corrections: int = 0
    corrections_failed: int = 0
    last_observed_name: str | None = None
    last_checked_at: float | None = None


class StatusSnapshot(BaseModel):
    state: RunState
    running: bool
    has_credential: bool
    backend: str | None = None
    thread_id: str | None = None
    target_name: str | None = None
    started_at: float | None = None
    stats: LockerStats = Field(default_factory=LockerStats)
    logs: list[str] = Field(default_factory=list)
