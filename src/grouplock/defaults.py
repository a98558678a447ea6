# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Centralized default values for grouplock."""

from __future__ import annotations

SERVER_HOST = "127.0.0.1"
SERVER_PORT = 3000
SERVER_URL = f"http://{SERVER_HOST}:{SERVER_PORT}"

POLL_INTERVAL_S = 2.0
# Used when the settle-before-correcting variant is switched on.
CORRECTION_DELAY_S = 10.0
CALL_TIMEOUT_S = 30.0

LOG_CAPACITY = 500
STATUS_TAIL_LINES = 20

CREDENTIAL_FILENAME = "appstate.json"
