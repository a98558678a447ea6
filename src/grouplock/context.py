# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Process-wide application context.

Built once at startup and handed to the controller and the HTTP layer, so
tests can construct a fresh one per case.
"""

from __future__ import annotations

from dataclasses import dataclass

from grouplock.activity import ActivityLog
from grouplock.controller import BotController
from grouplock.credentials import CredentialStore
from grouplock.errors import BackendUnavailable
from grouplock.logging import get_logger
from grouplock.messenger import MessengerBackend, get_backend
from grouplock.paths import credential_path
from grouplock.session import SessionManager
from grouplock.settings import Settings

logger = get_logger(__name__)


@dataclass
class AppContext:
    settings: Settings
    activity: ActivityLog
    credentials: CredentialStore
    sessions: SessionManager
    controller: BotController

    @classmethod
    def build(
        cls,
        settings: Settings | None = None,
        backend: MessengerBackend | None = None,
    ) -> AppContext:
        """Wire up the context.

        Args:
            settings: Settings instance (will be created if None)
            backend: Messenger backend override; resolved from settings if None
        """
        settings = settings or Settings()
        activity = ActivityLog(capacity=settings.log_capacity)
        credentials = CredentialStore(credential_path(settings.data_dir))

        reason = None
        if backend is None:
            try:
                backend = get_backend(settings.messenger)
            except BackendUnavailable as e:
                reason = str(e)
                activity.error(f"Messenger backend unavailable: {e}")
        if backend is not None:
            activity.info(f"Using {backend.name} backend for messenger login.")

        sessions = SessionManager(backend, timeout_s=settings.call_timeout_s, unavailable_reason=reason)
        controller = BotController(settings, credentials, sessions, activity)
        return cls(
            settings=settings,
            activity=activity,
            credentials=credentials,
            sessions=sessions,
            controller=controller,
        )

    async def startup(self) -> None:
        """Load the persisted credential and optionally prepare a session."""
        if self.credentials.load_from_disk() is not None:
            self.activity.info("Found existing appstate.json on disk; loaded for auto login.")
            if self.settings.auto_login:
                self.controller.begin_auto_login()
        elif self.credentials.path.exists():
            self.activity.error("Error reading appstate.json at startup; treating it as absent.")
        else:
            self.activity.info("No appstate.json found on disk. Use UI to upload or paste it.")

    async def shutdown(self) -> None:
        await self.controller.shutdown()
        logger.info("context_shutdown")
