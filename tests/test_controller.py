# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Tests for BotController run-state handling."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest
from fake_messenger import FakeBackend, FakeSession

from grouplock.context import AppContext
from grouplock.errors import CredentialRejected, TransportFailure
from grouplock.locker import GroupNameLocker
from grouplock.models import LockConfig, RunState

if TYPE_CHECKING:
    from grouplock.settings import Settings

LOCK = LockConfig(thread_id="24196335160017473", target_name="Locked Name")


async def _settle(context: AppContext) -> None:
    await context.shutdown()


@pytest.fixture
def ready(context: AppContext, appstate) -> AppContext:
    context.credentials.save(appstate)
    return context


@pytest.mark.asyncio
async def test_start_runs_locker(ready: AppContext, fake_backend: FakeBackend) -> None:
    result = await ready.controller.start(LOCK)

    assert result.ok
    assert ready.controller.state is RunState.RUNNING
    await asyncio.sleep(0.05)
    assert fake_backend.session.fetch_calls > 0
    assert fake_backend.credentials == [ready.credentials.load()]
    await _settle(ready)


@pytest.mark.asyncio
async def test_start_is_idempotent(ready: AppContext, fake_backend: FakeBackend) -> None:
    first = await ready.controller.start(LOCK)
    second = await ready.controller.start(LOCK)

    assert first.ok and second.ok
    assert second.message == "Bot already running."
    assert ready.controller.state is RunState.RUNNING
    assert fake_backend.login_calls == 1
    await _settle(ready)


@pytest.mark.asyncio
async def test_start_while_logging_in_is_noop(ready: AppContext, fake_backend: FakeBackend) -> None:
    fake_backend.gate = asyncio.Event()
    first = asyncio.create_task(ready.controller.start(LOCK))
    await asyncio.sleep(0)
    assert ready.controller.state is RunState.STARTING

    second = await ready.controller.start(LOCK)
    assert second.ok
    fake_backend.gate.set()
    assert (await first).ok
    assert fake_backend.login_calls == 1
    await _settle(ready)


@pytest.mark.parametrize(
    "lock",
    [
        LockConfig(thread_id="", target_name="Locked Name"),
        LockConfig(thread_id="24196335160017473", target_name=""),
        LockConfig(thread_id="24196335160017473", target_name="   "),
        LockConfig(thread_id="2419 6335", target_name="Locked Name"),
    ],
)
@pytest.mark.asyncio
async def test_start_rejects_bad_config(ready: AppContext, fake_backend: FakeBackend, lock) -> None:
    result = await ready.controller.start(lock)

    assert not result.ok
    assert ready.controller.state is RunState.IDLE
    assert fake_backend.login_calls == 0


@pytest.mark.asyncio
async def test_start_requires_credential(context: AppContext, fake_backend: FakeBackend) -> None:
    result = await context.controller.start(LOCK)

    assert not result.ok
    assert "appstate" in result.message
    assert context.controller.state is RunState.IDLE
    assert fake_backend.login_calls == 0


@pytest.mark.parametrize("error", [CredentialRejected("expired"), TransportFailure("offline")])
@pytest.mark.asyncio
async def test_login_failure_returns_to_idle(settings: Settings, appstate, error) -> None:
    session = FakeSession(["Locked Name"])
    context = AppContext.build(settings, backend=FakeBackend(session, error=error))
    context.credentials.save(appstate)

    result = await context.controller.start(LOCK)
    await asyncio.sleep(0.05)

    assert not result.ok
    assert result.message.startswith("Login failed")
    assert context.controller.state is RunState.IDLE
    assert session.fetch_calls == 0


@pytest.mark.asyncio
async def test_can_start_again_after_login_failure(ready: AppContext, fake_backend: FakeBackend) -> None:
    fake_backend.error = TransportFailure("offline")
    assert not (await ready.controller.start(LOCK)).ok

    fake_backend.error = None
    assert (await ready.controller.start(LOCK)).ok
    assert fake_backend.login_calls == 2
    await _settle(ready)


@pytest.mark.asyncio
async def test_stop_from_idle_is_noop(context: AppContext) -> None:
    result = context.controller.stop()

    assert result.ok
    assert context.controller.state is RunState.IDLE


@pytest.mark.asyncio
async def test_stop_freezes_external_calls(ready: AppContext, fake_session: FakeSession) -> None:
    fake_session.script("Drifted", "Locked Name")
    await ready.controller.start(LOCK)
    await asyncio.sleep(0.05)

    result = ready.controller.stop()
    assert result.ok
    assert ready.controller.state is RunState.IDLE

    await asyncio.sleep(0.02)
    fetches, titles = fake_session.fetch_calls, len(fake_session.title_calls)
    await asyncio.sleep(0.1)
    assert fake_session.fetch_calls == fetches
    assert len(fake_session.title_calls) == titles
    await _settle(ready)
    assert fake_session.closed


@pytest.mark.asyncio
async def test_stop_during_login_discards_session(ready: AppContext, fake_backend: FakeBackend) -> None:
    fake_backend.gate = asyncio.Event()
    start = asyncio.create_task(ready.controller.start(LOCK))
    await asyncio.sleep(0)

    ready.controller.stop()
    fake_backend.gate.set()
    result = await start

    assert not result.ok
    assert ready.controller.state is RunState.IDLE
    assert fake_backend.session.closed
    assert fake_backend.session.fetch_calls == 0


@pytest.mark.asyncio
async def test_rejection_mid_run_returns_to_idle(ready: AppContext, fake_session: FakeSession) -> None:
    fake_session.script("Locked Name", CredentialRejected("logged out"))
    await ready.controller.start(LOCK)
    await asyncio.sleep(0.1)

    assert ready.controller.state is RunState.IDLE
    assert fake_session.closed
    await _settle(ready)


@pytest.mark.asyncio
async def test_crashed_loop_returns_to_idle(ready: AppContext, fake_backend: FakeBackend, monkeypatch) -> None:
    async def broken_tick(self):
        raise RuntimeError("boom")

    monkeypatch.setattr(GroupNameLocker, "tick", broken_tick)
    assert (await ready.controller.start(LOCK)).ok
    await asyncio.sleep(0.05)

    assert ready.controller.state is RunState.IDLE
    assert fake_backend.session.closed
    messages = [entry.message for entry in ready.activity.entries()]
    assert any("Locker loop crashed" in message and "boom" in message for message in messages)

    monkeypatch.undo()
    again = await ready.controller.start(LOCK)
    assert again.message == "Bot started and logged in successfully."
    assert fake_backend.login_calls == 2
    await _settle(ready)


@pytest.mark.asyncio
async def test_odd_thread_info_keeps_running(ready: AppContext, fake_session: FakeSession) -> None:
    fake_session.script({(1, 2): "x"})
    await ready.controller.start(LOCK)
    await asyncio.sleep(0.05)

    assert ready.controller.state is RunState.RUNNING
    assert fake_session.fetch_calls > 1
    assert ready.controller.status().stats.unreadable >= 1
    await _settle(ready)


@pytest.mark.asyncio
async def test_auto_login_session_is_reused(ready: AppContext, fake_backend: FakeBackend) -> None:
    assert await ready.controller.auto_login()
    assert ready.controller.state is RunState.IDLE

    result = await ready.controller.start(LOCK)

    assert result.ok
    assert fake_backend.login_calls == 1
    await _settle(ready)


@pytest.mark.asyncio
async def test_auto_login_without_credential(context: AppContext, fake_backend: FakeBackend) -> None:
    assert not await context.controller.auto_login()
    assert fake_backend.login_calls == 0


@pytest.mark.asyncio
async def test_auto_login_failure_is_logged(ready: AppContext, fake_backend: FakeBackend) -> None:
    fake_backend.error = CredentialRejected("expired")

    assert not await ready.controller.auto_login()
    assert any("Auto login failed" in e.message for e in ready.activity.entries())
    assert ready.controller.state is RunState.IDLE


@pytest.mark.asyncio
async def test_status_snapshot(ready: AppContext, fake_session: FakeSession) -> None:
    fake_session.script("Someone's Name", "Locked Name")
    await ready.controller.start(LOCK)
    await asyncio.sleep(0.05)

    snapshot = ready.controller.status()
    assert snapshot.state is RunState.RUNNING
    assert snapshot.has_credential
    assert snapshot.backend == "fake"
    assert snapshot.thread_id == LOCK.thread_id
    assert snapshot.target_name == LOCK.target_name
    assert snapshot.stats.corrections == 1
    assert snapshot.stats.last_observed_name == "Locked Name"
    assert len(snapshot.logs) <= 20
    await _settle(ready)
