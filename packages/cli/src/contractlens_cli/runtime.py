"""Shared plumbing for commands: build core objects from ctx.obj, run coroutines, map errors."""

from __future__ import annotations

import asyncio

import click

from contractlens_core.config import Credentials, Settings, settings_from_config
from contractlens_core.errors import MissingAPIKey, ReviewError
from contractlens_core.history import HistoryAggregate
from contractlens_core.models import HistoryRecord


def settings_and_credentials(ctx: click.Context) -> tuple[Settings, Credentials]:
    config = ctx.obj["config"]
    return settings_from_config(config), Credentials(api_key=config.get("api_key") or "")


def make_history(ctx: click.Context, settings: Settings) -> HistoryAggregate:
    return HistoryAggregate(ctx.obj["store"], language=settings.language)


def run(coro):
    return asyncio.run(coro)


def to_click_error(error: ReviewError, settings: Settings) -> click.ClickException:
    message = error.describe(settings.language)
    if isinstance(error, MissingAPIKey):
        message += "\nRun `contractlens init` or set CONTRACTLENS_API_KEY."
    return click.ClickException(message)


def find_record(history: HistoryAggregate, record_id: str) -> HistoryRecord:
    """Look a record up by full id or unique id prefix."""
    record = history.get(record_id)
    if record is not None:
        return record
    matches = [r for r in history.list() if r.id.startswith(record_id)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise click.UsageError(f"No history record matches {record_id!r}.")
    raise click.UsageError(f"{record_id!r} is ambiguous; it matches {len(matches)} records.")
