# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""grouplock command line interface."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from grouplock.credentials import CredentialStore
from grouplock.defaults import CORRECTION_DELAY_S
from grouplock.errors import InvalidCredentialFormat
from grouplock.logging import configure_logging
from grouplock.paths import credential_path
from grouplock.settings import Settings


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
def cli() -> None:
    """grouplock command line interface."""


@cli.command("serve")
@click.option("--host", default=None, help="Bind address (default from settings).")
@click.option("--port", type=int, default=None, help="Bind port (default from settings).")
@click.option("--poll-interval", type=float, default=None, help="Seconds between name checks.")
@click.option(
    "--correction-delay",
    type=float,
    default=None,
    help=f"Wait this many seconds before reverting a change (e.g. {CORRECTION_DELAY_S:g}).",
)
@click.option("--auto-login/--no-auto-login", default=None, help="Prepare a session from a stored appstate at startup.")
def serve(
    host: str | None,
    port: int | None,
    poll_interval: float | None,
    correction_delay: float | None,
    auto_login: bool | None,
) -> None:
    """Run the control panel and locker server."""
    from grouplock.context import AppContext
    from grouplock.server import LockerServer

    overrides: dict[str, object] = {}
    if host:
        overrides["host"] = host
    if port:
        overrides["port"] = port
    if poll_interval is not None:
        if poll_interval <= 0:
            raise click.BadParameter("must be positive", param_hint="--poll-interval")
        overrides["poll_interval_s"] = poll_interval
    if correction_delay is not None:
        if correction_delay < 0:
            raise click.BadParameter("must not be negative", param_hint="--correction-delay")
        overrides["correction_delay_s"] = correction_delay
    if auto_login is not None:
        overrides["auto_login"] = auto_login

    settings = Settings(**overrides)
    configure_logging(settings)
    server = LockerServer(AppContext.build(settings))
    asyncio.run(server.run())


@cli.group("credentials")
def credentials_group() -> None:
    """Manage the stored appstate credential."""


def _store() -> CredentialStore:
    settings = Settings()
    configure_logging(settings)
    store = CredentialStore(credential_path(settings.data_dir))
    store.load_from_disk()
    return store


@credentials_group.command("save")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def credentials_save(path: Path) -> None:
    """Validate and store an appstate.json file."""
    store = _store()
    try:
        store.save(path.read_bytes())
    except InvalidCredentialFormat as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Saved credential to {store.path}")


@credentials_group.command("clear")
def credentials_clear() -> None:
    """Delete the stored credential."""
    store = _store()
    store.clear()
    click.echo("Credential deleted.")


@credentials_group.command("show")
def credentials_show() -> None:
    """Report whether a credential is stored (never prints its content)."""
    store = _store()
    credential = store.load()
    if credential is None:
        click.echo(f"No credential stored at {store.path}")
        return
    kind = "object" if isinstance(credential, dict) else "array"
    click.echo(f"Credential stored at {store.path} ({kind}, {len(credential)} entries)")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
