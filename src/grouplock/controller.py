# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Bot controller owning the run state and the single active locker.

States: idle -> starting -> running -> stopping -> idle
         starting -> idle (login failed or stop requested mid-login)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from grouplock.defaults import STATUS_TAIL_LINES
from grouplock.errors import LoginError, PreconditionFailed
from grouplock.locker import GroupNameLocker, RunToken
from grouplock.logging import get_logger
from grouplock.models import ControlResult, LockConfig, LockerStats, RunState, StatusSnapshot

if TYPE_CHECKING:
    from grouplock.activity import ActivityLog
    from grouplock.credentials import CredentialStore
    from grouplock.messenger import MessengerSession
    from grouplock.session import SessionManager
    from grouplock.settings import Settings

logger = get_logger(__name__)


@dataclass
class _Run:
    """Everything that belongs to one start..stop cycle."""

    lock: LockConfig
    token: RunToken
    session: MessengerSession
    locker: GroupNameLocker
    started_at: float
    task: asyncio.Task[None] | None = None


class BotController:
    """Sole owner of RunState; starts and stops the locker."""

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialStore,
        sessions: SessionManager,
        activity: ActivityLog,
    ) -> None:
        self.settings = settings
        self.credentials = credentials
        self.sessions = sessions
        self.activity = activity
        self.state = RunState.IDLE
        self._run: _Run | None = None
        self._last_run: _Run | None = None
        self._standby: MessengerSession | None = None
        self._pending_token: RunToken | None = None
        self._finalizers: set[asyncio.Task[None]] = set()
        self.auto_login_task: asyncio.Task[bool] | None = None

    @property
    def running(self) -> bool:
        return self.state is RunState.RUNNING

    async def start(self, lock: LockConfig) -> ControlResult:
        """Log in and start the locker for the given thread.

        Idempotent while starting or running. Login failures return ok=False
        and leave the controller idle.
        """
        if self.state in (RunState.STARTING, RunState.RUNNING):
            return ControlResult(ok=True, message="Bot already running.")

        if self.auto_login_task is not None and not self.auto_login_task.done():
            # Let the background login finish so its session can be reused.
            self.activity.info("Waiting for auto login to finish...")
            await asyncio.wait([self.auto_login_task])
        if self.state in (RunState.STARTING, RunState.RUNNING):
            return ControlResult(ok=True, message="Bot already running.")

        try:
            credential = self._check_preconditions(lock)
        except PreconditionFailed as e:
            self.activity.warning(f"Start rejected: {e}")
            return ControlResult(ok=False, message=str(e))

        self.state = RunState.STARTING
        token = RunToken()
        self._pending_token = token
        session = self._standby
        self._standby = None
        if session is not None:
            self.activity.info("Using session from auto login.")
        else:
            self.activity.info("Attempting login using stored appstate...")
            try:
                session = await self.sessions.login(credential)
            except (LoginError, RuntimeError) as e:
                self._abort_start(token)
                self.activity.error(f"Login failed: {e}", error_type=type(e).__name__)
                return ControlResult(ok=False, message=f"Login failed: {e}")
            except Exception as e:
                self._abort_start(token)
                logger.exception("start_failed")
                self.activity.error(f"Start failed: {e}")
                return ControlResult(ok=False, message=f"Start failed: {e}")

        if self._pending_token is token:
            self._pending_token = None
        if not token.live or self.state is not RunState.STARTING:
            # stop() arrived while the login was in flight.
            await self._close_session(session)
            self.activity.warning("Start cancelled: stop requested during login.")
            return ControlResult(ok=False, message="Start cancelled by stop request.")

        locker = GroupNameLocker(
            session,
            lock,
            self.activity,
            token,
            poll_interval_s=self.settings.poll_interval_s,
            correction_delay_s=self.settings.correction_delay_s,
            call_timeout_s=self.settings.call_timeout_s,
        )
        run = _Run(lock=lock, token=token, session=session, locker=locker, started_at=time.time())
        self._run = run
        self.state = RunState.RUNNING
        self.activity.info(
            f"Login successful. Starting group name locker for thread: {lock.thread_id}"
        )
        run.task = asyncio.create_task(locker.run())
        run.task.add_done_callback(lambda task: self._on_run_finished(run, task))
        return ControlResult(ok=True, message="Bot started and logged in successfully.")

    def stop(self) -> ControlResult:
        """Stop the locker. Safe from any state."""
        if self.state is RunState.IDLE:
            return ControlResult(ok=True, message="Bot is not running.")

        self.state = RunState.STOPPING
        if self._pending_token is not None:
            self._pending_token.cancel()
            self._pending_token = None
        run = self._run
        if run is not None:
            run.token.cancel()
            self._last_run = run
            self._run = None
        self.state = RunState.IDLE
        self.activity.info("Bot locker loop requested to stop.")
        return ControlResult(ok=True, message="Bot stop requested.")

    def begin_auto_login(self) -> asyncio.Task[bool]:
        """Run auto_login in the background; start() and shutdown() collect it."""
        if self.auto_login_task is None or self.auto_login_task.done():
            self.auto_login_task = asyncio.create_task(self.auto_login())
        return self.auto_login_task

    async def auto_login(self) -> bool:
        """Prepare a standby session from the stored credential.

        Does not start the locker. Returns True when a session is ready.
        """
        credential = self.credentials.load()
        if credential is None:
            self.activity.info("No appstate.json found on disk. Use UI to upload or paste it.")
            return False
        if not self.sessions.available:
            self.activity.warning("No login library available for auto-login.")
            return False
        if self.state is not RunState.IDLE or self._standby is not None:
            return self._standby is not None

        self.activity.info("Attempting auto login using existing appstate...")
        try:
            session = await self.sessions.login(credential)
        except (LoginError, PreconditionFailed, RuntimeError) as e:
            self.activity.error(f"Auto login failed: {e}")
            return False
        if self.state is not RunState.IDLE:
            # A start began meanwhile and owns its own session.
            await self._close_session(session)
            return False
        self._standby = session
        self.activity.info(
            "Auto login success. You may now provide groupID & lockedName and click Start."
        )
        return True

    async def discard_standby(self) -> None:
        """Drop the standby session, e.g. after the credential changed."""
        if self.auto_login_task is not None and not self.auto_login_task.done():
            self.auto_login_task.cancel()
            await asyncio.gather(self.auto_login_task, return_exceptions=True)
        session, self._standby = self._standby, None
        if session is not None:
            await self._close_session(session)

    def status(self, tail: int = STATUS_TAIL_LINES) -> StatusSnapshot:
        run = self._run or self._last_run
        return StatusSnapshot(
            state=self.state,
            running=self.running,
            has_credential=self.credentials.has(),
            backend=self.sessions.backend_name,
            thread_id=run.lock.thread_id if run else None,
            target_name=run.lock.target_name if run else None,
            started_at=run.started_at if run else None,
            stats=run.locker.stats.model_copy() if run else LockerStats(),
            logs=[entry.format() for entry in self.activity.tail(tail)],
        )

    async def shutdown(self) -> None:
        """Stop and wait for the locker and its cleanup (process exit)."""
        run = self._run or self._last_run
        self.stop()
        if run is not None and run.task is not None:
            # Crashes were already reported by _on_run_finished.
            await asyncio.gather(run.task, return_exceptions=True)
        while self._finalizers:
            await asyncio.gather(*list(self._finalizers), return_exceptions=True)
        await self.discard_standby()

    def _abort_start(self, token: RunToken) -> None:
        if self._pending_token is token:
            self._pending_token = None
        if self.state is RunState.STARTING:
            self.state = RunState.IDLE

    def _check_preconditions(self, lock: LockConfig):
        credential = self.credentials.load()
        if credential is None:
            raise PreconditionFailed("No appstate.json found. Upload or paste it first.")
        problems = lock.problems()
        if problems:
            raise PreconditionFailed("; ".join(problems))
        return credential

    def _on_run_finished(self, run: _Run, task: asyncio.Task[None]) -> None:
        if not task.cancelled():
            error = task.exception()
            if error is not None:
                logger.error("locker_crashed", error=repr(error), thread_id=run.lock.thread_id)
                self.activity.error(f"Locker loop crashed: {error!r}")
        if self._run is run:
            # The loop ended on its own (rejected session or crash).
            self.state = RunState.STOPPING
            self._last_run = run
            self._run = None
            self.state = RunState.IDLE
        task = asyncio.create_task(self._finalize(run))
        self._finalizers.add(task)
        task.add_done_callback(self._finalizers.discard)

    async def _finalize(self, run: _Run) -> None:
        await run.locker.wait_for_corrections()
        await self._close_session(run.session)

    async def _close_session(self, session: MessengerSession) -> None:
        try:
            await session.close()
        except Exception as e:
            logger.warning("session_close_failed", error=str(e))
