# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP control server.

Serves the control panel, the control API and a WebSocket that pushes
activity log entries as they are written.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from pathlib import Path

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse, RedirectResponse

from grouplock.api import control_routes
from grouplock.context import AppContext
from grouplock.logging import get_logger

logger = get_logger(__name__)

_NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


class LockerServer:
    """FastAPI application bound to one AppContext."""

    def __init__(self, context: AppContext) -> None:
        self.context = context
        self.app = FastAPI(title="Group Name Locker", lifespan=self._lifespan)
        self._setup_routes()
        self._setup_panel()

    @contextlib.asynccontextmanager
    async def _lifespan(self, _app: FastAPI) -> AsyncIterator[None]:
        await self.context.startup()
        self.context.activity.info(f"Server started on port {self.context.settings.port}")
        try:
            yield
        finally:
            await self.context.shutdown()

    def _setup_panel(self) -> None:
        """Mount the control panel page."""
        panel_html = Path(__file__).parent / "web" / "panel.html"

        @self.app.get("/", include_in_schema=False)
        async def panel_root():
            return RedirectResponse(url="/panel", status_code=307)

        @self.app.get("/panel", response_class=HTMLResponse)
        async def panel():
            if panel_html.exists():
                return HTMLResponse(panel_html.read_text(encoding="utf-8"), headers=_NO_STORE_HEADERS)
            return HTMLResponse("<h1>Panel not found</h1>", status_code=404)

    def _setup_routes(self) -> None:
        """Setup FastAPI routes via sub-routers and WebSocket."""
        self.app.include_router(control_routes.setup(self.context))

        @self.app.websocket("/ws/logs")
        async def websocket_logs(websocket: WebSocket):
            """Push activity log entries; starts with the current tail."""
            await websocket.accept()
            activity = self.context.activity
            queue = activity.subscribe()
            try:
                await websocket.send_json(
                    {
                        "type": "initial",
                        "state": self.context.controller.state.value,
                        "lines": [entry.format() for entry in activity.tail(50)],
                    }
                )
                while True:
                    entry = await queue.get()
                    await websocket.send_json(
                        {
                            "type": "append",
                            "state": self.context.controller.state.value,
                            "lines": [entry.format()],
                        }
                    )
            except WebSocketDisconnect:
                logger.debug("log_stream_disconnected")
            except Exception as e:
                logger.error("log_stream_error", error=str(e))
            finally:
                activity.unsubscribe(queue)

    async def run(self, host: str | None = None, port: int | None = None) -> None:
        """Run the control server."""
        settings = self.context.settings
        host = host or settings.host
        port = port or settings.port
        logger.info("server_starting", host=host, port=port)
        config = uvicorn.Config(self.app, host=host, port=port, log_level="info")
        server = uvicorn.Server(config)
        await server.serve()


def create_app(context: AppContext | None = None) -> FastAPI:
    """Create the FastAPI app (uvicorn factory entry point)."""
    return LockerServer(context or AppContext.build()).app


__all__ = ["LockerServer", "create_app"]
