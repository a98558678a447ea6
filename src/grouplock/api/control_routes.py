# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Control API routes.

Handles credential upload/paste/delete, start/stop, and status polling.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from grouplock.defaults import STATUS_TAIL_LINES
from grouplock.errors import InvalidCredentialFormat
from grouplock.logging import get_logger
from grouplock.models import LockConfig

if TYPE_CHECKING:
    from grouplock.context import AppContext

logger = get_logger(__name__)

router = APIRouter()

# Reference to the app context, set during setup
_context: AppContext | None = None


class SaveTextRequest(BaseModel):
    appstate: str = ""


class StartRequest(BaseModel):
    """Request body for starting the locker (field names match the panel)."""

    groupID: str = ""  # noqa: N815
    lockedName: str = ""  # noqa: N815

    def to_lock(self) -> LockConfig:
        return LockConfig(thread_id=self.groupID.strip(), target_name=self.lockedName.strip())


def setup(context: AppContext) -> APIRouter:
    """Configure router with the app context.

    Args:
        context: AppContext instance

    Returns:
        Configured APIRouter
    """
    global _context  # noqa: PLW0603
    _context = context
    return router


def _fail(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"ok": False, "message": message}, status_code=status_code)


async def _store_credential(raw: str | bytes, source: str):
    assert _context is not None
    try:
        _context.credentials.save(raw)
    except InvalidCredentialFormat as e:
        _context.activity.error(f"Saving appstate from {source} failed: {e}")
        return _fail(f"Save failed: {e}", 400)
    except OSError as e:
        logger.error("credential_write_failed", error=str(e))
        _context.activity.error(f"Saving appstate from {source} failed: {e}")
        return _fail(f"Save failed: {e}", 500)
    await _context.controller.discard_standby()
    _context.activity.info(f"appstate.json saved from {source}.")
    return {"ok": True, "message": f"appstate.json saved from {source}."}


@router.get("/health")
async def health_check():
    return {"status": "ok"}


@router.post("/upload")
async def upload(appstate: UploadFile | None = File(default=None)):
    if appstate is None:
        return {"ok": False, "message": "No file uploaded"}
    raw = await appstate.read()
    return await _store_credential(raw, "uploaded file")


@router.post("/save-text")
async def save_text(request: SaveTextRequest):
    if not request.appstate.strip():
        return {"ok": False, "message": "No appstate content provided"}
    return await _store_credential(request.appstate, "pasted text")


@router.post("/delete-appstate")
async def delete_appstate():
    assert _context is not None
    try:
        _context.credentials.clear()
    except OSError as e:
        _context.activity.error(f"Delete appstate error: {e}")
        return _fail(f"Delete failed: {e}", 500)
    await _context.controller.discard_standby()
    _context.activity.info("Deleted appstate.json from disk.")
    return {"ok": True, "message": "Deleted appstate.json."}


@router.post("/start")
async def start(request: StartRequest):
    assert _context is not None
    result = await _context.controller.start(request.to_lock())
    return result.model_dump()


@router.post("/stop")
async def stop():
    assert _context is not None
    return _context.controller.stop().model_dump()


@router.get("/status")
async def status(lines: int = STATUS_TAIL_LINES):
    assert _context is not None
    return _context.controller.status(tail=lines).model_dump(mode="json")


@router.get("/_status")
async def poll_status():
    """Last log lines for panels that poll instead of holding a socket."""
    assert _context is not None
    snapshot = _context.controller.status()
    return {"state": snapshot.state.value, "logs": snapshot.logs}
