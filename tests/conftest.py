# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Pytest configuration and fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fake_messenger import FakeBackend, FakeSession

from grouplock.activity import ActivityLog
from grouplock.context import AppContext
from grouplock.settings import Settings

if TYPE_CHECKING:
    from pathlib import Path

SAMPLE_APPSTATE = [
    {"key": "c_user", "value": "100000000000001", "domain": ".messenger.com"},
    {"key": "xs", "value": "abc%3Adef", "domain": ".messenger.com"},
]


@pytest.fixture
def appstate() -> list[dict]:
    """Representative appstate credential blob."""
    return [dict(item) for item in SAMPLE_APPSTATE]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Fast-polling settings rooted in a temporary data dir."""
    return Settings(
        data_dir=tmp_path / "data",
        poll_interval_s=0.01,
        call_timeout_s=1.0,
        auto_login=False,
    )


@pytest.fixture
def activity() -> ActivityLog:
    return ActivityLog(capacity=100)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession(["Locked Name"])


@pytest.fixture
def fake_backend(fake_session: FakeSession) -> FakeBackend:
    return FakeBackend(fake_session)


@pytest.fixture
def context(settings: Settings, fake_backend: FakeBackend) -> AppContext:
    """Fresh application context wired to the fake backend."""
    return AppContext.build(settings, backend=fake_backend)
