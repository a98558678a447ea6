# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Tests for application context startup."""

from __future__ import annotations

import asyncio

import pytest
from fake_messenger import FakeBackend, FakeSession

from grouplock.context import AppContext
from grouplock.errors import CredentialRejected
from grouplock.models import LockConfig, RunState
from grouplock.settings import Settings

LOCK = LockConfig(thread_id="24196335160017473", target_name="Locked Name")


def _messages(context: AppContext) -> list[str]:
    return [entry.message for entry in context.activity.entries()]


@pytest.mark.asyncio
async def test_startup_without_credential(context: AppContext) -> None:
    await context.startup()

    assert not context.credentials.has()
    assert "No appstate.json found on disk. Use UI to upload or paste it." in _messages(context)


@pytest.mark.asyncio
async def test_startup_malformed_file_is_absent(context: AppContext) -> None:
    context.credentials.path.parent.mkdir(parents=True, exist_ok=True)
    context.credentials.path.write_text("{broken", encoding="utf-8")

    await context.startup()

    assert not context.credentials.has()
    assert context.controller.state == RunState.IDLE
    assert any("treating it as absent" in message for message in _messages(context))


@pytest.mark.asyncio
async def test_startup_auto_login_keeps_standby(settings: Settings, appstate) -> None:
    backend = FakeBackend(FakeSession(["Locked Name"]))
    context = AppContext.build(settings.model_copy(update={"auto_login": True}), backend=backend)
    context.credentials.save(appstate)

    await context.startup()
    assert await context.controller.auto_login_task

    assert backend.login_calls == 1
    assert backend.credentials == [appstate]
    assert context.controller.state == RunState.IDLE
    await context.shutdown()
    assert backend.session.closed


@pytest.mark.asyncio
async def test_startup_auto_login_failure_is_logged(settings: Settings, appstate) -> None:
    backend = FakeBackend(error=CredentialRejected("session expired"))
    context = AppContext.build(settings.model_copy(update={"auto_login": True}), backend=backend)
    context.credentials.save(appstate)

    await context.startup()
    assert not await context.controller.auto_login_task

    assert context.controller.state == RunState.IDLE
    assert any("session expired" in message for message in _messages(context))


@pytest.mark.asyncio
async def test_startup_does_not_wait_for_slow_login(settings: Settings, appstate) -> None:
    backend = FakeBackend(FakeSession(["Locked Name"]))
    backend.gate = asyncio.Event()
    context = AppContext.build(settings.model_copy(update={"auto_login": True}), backend=backend)
    context.credentials.save(appstate)

    await asyncio.wait_for(context.startup(), timeout=1.0)
    await asyncio.sleep(0)

    assert backend.login_calls == 1
    assert not context.controller.auto_login_task.done()

    start = asyncio.create_task(context.controller.start(LOCK))
    await asyncio.sleep(0.01)
    backend.gate.set()
    result = await start

    assert result.ok
    assert backend.login_calls == 1
    assert "Using session from auto login." in _messages(context)
    await context.shutdown()


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_auto_login(settings: Settings, appstate) -> None:
    backend = FakeBackend(FakeSession(["Locked Name"]))
    backend.gate = asyncio.Event()
    context = AppContext.build(settings.model_copy(update={"auto_login": True}), backend=backend)
    context.credentials.save(appstate)

    await context.startup()
    await asyncio.sleep(0)
    await asyncio.wait_for(context.shutdown(), timeout=1.0)

    assert context.controller.auto_login_task.cancelled()
    assert not context.sessions.in_flight

def test_build_records_unavailable_backend(settings: Settings) -> None:
    config = settings.messenger.model_copy(
        update={
            "backend": "client",
            "client": settings.messenger.client.model_copy(update={"factories": ["no_such_module:login"]}),
        }
    )
    context = AppContext.build(settings.model_copy(update={"messenger": config}))

    assert not context.sessions.available
    assert any("Messenger backend unavailable" in message for message in _messages(context))
