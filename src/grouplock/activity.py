# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""In-memory activity log shown on the control panel.

Entries are mirrored to structlog and kept in a bounded FIFO buffer.
Subscribers (WebSocket clients) receive each entry as it is appended.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from grouplock.defaults import LOG_CAPACITY
from grouplock.logging import get_logger

logger = get_logger(__name__)

SUBSCRIBER_QUEUE_SIZE = 200


class LogEntry(BaseModel):
    """Single activity log line."""

    timestamp: float = Field(default_factory=time.time)
    level: str = "info"
    message: str

    def format(self) -> str:
        ts = datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat()
        return f"[{ts}] {self.message}"


class ActivityLog:
    """Bounded ring buffer of activity entries, oldest evicted first."""

    def __init__(self, capacity: int = LOG_CAPACITY) -> None:
        self.capacity = max(1, int(capacity))
        self._entries: deque[LogEntry] = deque(maxlen=self.capacity)
        self._subscribers: set[asyncio.Queue[LogEntry]] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, message: str, level: str = "info", **fields: Any) -> LogEntry:
        """Append an entry and mirror it to structlog."""
        entry = LogEntry(level=level, message=message)
        self._entries.append(entry)
        getattr(logger, level, logger.info)("activity", message=message, **fields)

        for queue in list(self._subscribers):
            try:
                queue.put_nowait(entry)
            except asyncio.QueueFull:
                # Slow consumer; drop its oldest pending line rather than block.
                queue.get_nowait()
                queue.put_nowait(entry)
        return entry

    def info(self, message: str, **fields: Any) -> LogEntry:
        return self.push(message, "info", **fields)

    def warning(self, message: str, **fields: Any) -> LogEntry:
        return self.push(message, "warning", **fields)

    def error(self, message: str, **fields: Any) -> LogEntry:
        return self.push(message, "error", **fields)

    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def tail(self, lines: int = 20) -> list[LogEntry]:
        if lines <= 0:
            return []
        return list(self._entries)[-lines:]

    def subscribe(self) -> asyncio.Queue[LogEntry]:
        queue: asyncio.Queue[LogEntry] = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[LogEntry]) -> None:
        self._subscribers.discard(queue)
