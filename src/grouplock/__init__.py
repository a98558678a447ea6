# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""grouplock: keeps a messenger group's display name locked to a configured value."""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
