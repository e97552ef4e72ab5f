"""Flask CLI commands for refresh-token ledger maintenance."""

from __future__ import annotations

import logging
from datetime import timedelta

import click
from flask import current_app
from flask.cli import with_appcontext
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy.exc import SQLAlchemyError

from liten.core.wiring import get_components
from liten.models.base import utcnow

LOGGER = logging.getLogger(__name__)


@click.group("tokens")
def tokens_cli() -> None:
    """Refresh-token ledger maintenance commands."""


@tokens_cli.command("purge")
@click.option(
    "--grace-days",
    type=click.IntRange(min=0),
    default=None,
    help="Keep records expired less than N days ago (default: TOKEN_PURGE_GRACE_DAYS).",
)
@click.option("--dry-run", is_flag=True, help="Count what would be purged without deleting.")
@with_appcontext
def purge_command(grace_days: int | None, dry_run: bool) -> None:
    """Physically delete refresh tokens that expired before the cutoff.

    Only records already past their validity window are ever removed, so the
    command is safe to run alongside live traffic (e.g. from cron).
    """
    if grace_days is None:
        grace_days = int(current_app.config.get("TOKEN_PURGE_GRACE_DAYS", 0))
    cutoff = utcnow() - timedelta(days=grace_days)

    ledger = get_components().ledger
    try:
        if dry_run:
            pending = ledger.count_expired_before(cutoff)
        else:
            removed = ledger.purge_expired_before(cutoff)
    except (SQLAlchemyError, RedisError) as exc:
        LOGGER.exception("tokens.purge_failed")
        raise click.ClickException(f"Purge failed: {exc}") from exc

    if dry_run:
        click.echo(
            f"Dry run: {pending} refresh token(s) expired at or before "
            f"{cutoff.isoformat()} would be purged."
        )
        return
    click.echo(f"Purged {removed} expired refresh token(s).")
