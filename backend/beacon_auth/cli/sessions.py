"""Flask CLI commands for session-node maintenance."""

from __future__ import annotations

from datetime import datetime

import click
from flask.cli import with_appcontext

from beacon_auth.infra.wiring import get_auth_service
from beacon_auth.models.base import as_utc


@click.group("sessions")
def sessions_cli() -> None:
    """Session registry maintenance commands."""


@sessions_cli.command("sweep")
@click.option(
    "--before",
    type=click.DateTime(formats=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d"]),
    default=None,
    help="Treat this UTC instant as 'now' (defaults to the current time).",
)
@with_appcontext
def sweep(before: datetime | None) -> None:
    """Delete session nodes whose expiry has passed."""
    service = get_auth_service()
    now = as_utc(before) if before is not None else None
    deleted = service.sweep_expired(now)
    click.echo(f"Deleted {deleted} expired session node(s).")


@sessions_cli.command("revoke-all")
@click.argument("principal_id", type=int)
@with_appcontext
def revoke_all(principal_id: int) -> None:
    """Sign a principal out everywhere."""
    revoked = get_auth_service().logout_all(principal_id)
    click.echo(f"Revoked {revoked} session node(s) for principal {principal_id}.")
