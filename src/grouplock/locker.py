# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Group name locker: the drift detection and reconciliation loop.

Each tick fetches the thread info, compares the observed name with the
target, and fires a rename when they differ. The rename is not awaited by the
tick; the next tick re-detects drift if it failed. Polling interval is flat.
"""

from __future__ import annotations

import asyncio
import enum
import time
from typing import TYPE_CHECKING, Any

from grouplock.defaults import CALL_TIMEOUT_S, POLL_INTERVAL_S
from grouplock.errors import CredentialRejected, NameUnreadable
from grouplock.logging import get_logger
from grouplock.models import LockConfig, LockerStats

if TYPE_CHECKING:
    from grouplock.activity import ActivityLog
    from grouplock.messenger import MessengerSession

logger = get_logger(__name__)

NAME_KEYS = ("thread_name", "name", "title")


def extract_thread_name(info: Any) -> str | None:
    """Return the first non-empty string name among the known keys.

    Non-string values (numbers, nested objects) are skipped like missing ones.
    """
    if not isinstance(info, dict):
        return None
    for key in NAME_KEYS:
        value = info.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def read_thread_name(info: Any) -> str:
    """Like extract_thread_name, but raises NameUnreadable when nothing usable is present."""
    name = extract_thread_name(info)
    if name is None:
        raise NameUnreadable(info)
    return name


class TickOutcome(enum.Enum):
    CORRECT = "correct"
    DRIFT = "drift"
    FETCH_FAILED = "fetch_failed"
    UNREADABLE = "unreadable"
    STOPPED = "stopped"


class RunToken:
    """Cancellation token for one locker run."""

    def __init__(self) -> None:
        self._cancelled = asyncio.Event()

    @property
    def live(self) -> bool:
        return not self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep unless cancelled first. Returns True if the run is still live."""
        if not self.live:
            return False
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
        return self.live


def _describe(error: BaseException) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return "timed out"
    return str(error) or type(error).__name__


class GroupNameLocker:
    """Polls one thread and keeps its name at the configured value."""

    def __init__(
        self,
        session: MessengerSession,
        lock: LockConfig,
        activity: ActivityLog,
        token: RunToken | None = None,
        *,
        poll_interval_s: float = POLL_INTERVAL_S,
        correction_delay_s: float | None = None,
        call_timeout_s: float = CALL_TIMEOUT_S,
    ) -> None:
        self.session = session
        self.lock = lock
        self.activity = activity
        self.token = token or RunToken()
        self.poll_interval_s = poll_interval_s
        self.correction_delay_s = correction_delay_s
        self.call_timeout_s = call_timeout_s
        self.stats = LockerStats()
        self.fatal_error: CredentialRejected | None = None
        self._corrections: set[asyncio.Task[None]] = set()

    @property
    def pending_corrections(self) -> int:
        return len(self._corrections)

    async def run(self) -> None:
        """Tick until the token is cancelled or the session is rejected."""
        self.activity.info(f"Locker loop initialized. Monitoring thread: {self.lock.thread_id}")
        try:
            while self.token.live:
                try:
                    await self.tick()
                except CredentialRejected as e:
                    self.fatal_error = e
                    self.activity.error(f"Session rejected while polling: {e}. Locker stopped.")
                    return
                if not await self.token.sleep(self.poll_interval_s):
                    break
        finally:
            self.activity.info("Locker loop stopped.", thread_id=self.lock.thread_id)

    async def tick(self) -> TickOutcome:
        """Run one Query, Compare, Reconcile step.

        Raises:
            CredentialRejected: If the backend rejects the session while fetching
        """
        if not self.token.live:
            return TickOutcome.STOPPED

        self.stats.ticks += 1
        self.stats.last_checked_at = time.time()
        thread_id = self.lock.thread_id
        try:
            info = await asyncio.wait_for(
                self.session.get_thread_info(thread_id), timeout=self.call_timeout_s
            )
        except CredentialRejected:
            raise
        except Exception as e:
            self.stats.fetch_failures += 1
            self.activity.error(f"Error fetching thread info: {_describe(e)}", thread_id=thread_id)
            return TickOutcome.FETCH_FAILED

        try:
            actual = read_thread_name(info)
        except NameUnreadable as e:
            self.stats.unreadable += 1
            self.activity.warning(str(e))
            return TickOutcome.UNREADABLE
        except Exception as e:
            self.stats.unreadable += 1
            self.activity.warning(f"Could not read group name from thread info: {_describe(e)}")
            return TickOutcome.UNREADABLE

        self.stats.last_observed_name = actual
        target = self.lock.target_name
        if actual == target:
            self.activity.info(f"Group name is correct: {actual}")
            return TickOutcome.CORRECT

        self.activity.warning(f'Detected name change: "{actual}" -> resetting to "{target}"')
        if self.correction_delay_s:
            if not await self.token.sleep(self.correction_delay_s):
                return TickOutcome.STOPPED
        if not self.token.live:
            return TickOutcome.STOPPED
        self._dispatch_correction()
        return TickOutcome.DRIFT

    def _dispatch_correction(self) -> None:
        self.stats.corrections += 1
        task = asyncio.create_task(self._correct())
        self._corrections.add(task)
        task.add_done_callback(self._corrections.discard)

    async def _correct(self) -> None:
        try:
            await asyncio.wait_for(
                self.session.set_title(self.lock.target_name, self.lock.thread_id),
                timeout=self.call_timeout_s,
            )
        except Exception as e:
            self.stats.corrections_failed += 1
            self.activity.error(f"Failed to reset group name: {_describe(e)}")
        else:
            self.activity.info("Group name reset successfully.")

    async def wait_for_corrections(self) -> None:
        """Wait for every dispatched rename to complete."""
        while self._corrections:
            await asyncio.gather(*list(self._corrections), return_exceptions=True)
