# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration models for messenger backends."""

from typing import Literal

from pydantic import BaseModel, Field


class BridgeConfig(BaseModel):
    """Configuration for the HTTP bridge backend."""

    base_url: str = "http://127.0.0.1:3100"
    timeout_seconds: float = 30.0


class ClientConfig(BaseModel):
    """Configuration for the in-process client backend.

    Factories are ``module:callable`` paths tried in order; the first one that
    imports is used. The callable receives the credential and returns a client.
    """

    factories: list[str] = Field(
        default_factory=lambda: [
            "fca_unofficial:login",
            "ws3_fca:login",
        ]
    )


class MessengerConfig(BaseModel):
    """Main messenger configuration."""

    backend: Literal["bridge", "client"] = "bridge"
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
