"""history commands: list, show, rename and delete past reviews."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from contractlens_core.models import RecordStatus

from contractlens_cli.commands.review import print_result
from contractlens_cli.runtime import find_record, make_history, run, settings_and_credentials

console = Console()


def _require_store(ctx) -> None:
    from contractlens_store.noop import NoOpStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError(
            "No store configured. Remove 'store: none' from .contractlens.yml "
            "or run `contractlens init` to set one up."
        )


async def _loaded(ctx, settings):
    history = make_history(ctx, settings)
    await history.load()
    return history


@click.group("history")
def history_cmd():
    """Browse past reviews saved in the configured store."""


@history_cmd.command("list")
@click.option("--limit", default=20, show_default=True, help="Maximum number of records to show.")
@click.pass_context
def list_cmd(ctx, limit: int):
    """Show reviews, most recently updated first."""
    _require_store(ctx)
    settings, _ = settings_and_credentials(ctx)
    records = run(_loaded(ctx, settings)).list()[:limit]
    if not records:
        console.print("[yellow]No review records found.[/yellow]")
        return

    table = Table(title="Review History", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold", width=8)
    table.add_column("Title", max_width=40)
    table.add_column("Status", width=10)
    table.add_column("Chats", justify="right", width=6)
    table.add_column("Updated At", width=20)

    for r in records:
        status_style = "green" if r.status == RecordStatus.COMPLETED else "yellow"
        chats = len(r.review_result.conversations.sessions) if r.review_result else 0
        table.add_row(
            r.id[:8],
            r.title[:40],
            f"[{status_style}]{r.status.value}[/{status_style}]",
            str(chats),
            r.updated_at.isoformat()[:19].replace("T", " "),
        )

    console.print(table)


@history_cmd.command("show")
@click.argument("record_id")
@click.option("--no-flowchart", is_flag=True, help="Hide the mermaid flowchart.")
@click.pass_context
def show_cmd(ctx, record_id: str, no_flowchart: bool):
    """Print the review outputs of a record."""
    _require_store(ctx)
    settings, _ = settings_and_credentials(ctx)
    record = find_record(run(_loaded(ctx, settings)), record_id)

    console.print(f"[bold]{record.title}[/bold] [dim]({record.id[:8]}, {record.status.value})[/dim]")
    if record.review_result is None:
        console.print("[yellow]This record is a draft; no review has completed yet.[/yellow]")
        return
    print_result(record.review_result, settings.language, show_flowchart=not no_flowchart)


@history_cmd.command("rename")
@click.argument("record_id")
@click.argument("title")
@click.pass_context
def rename_cmd(ctx, record_id: str, title: str):
    """Change the title of a record."""
    _require_store(ctx)
    settings, _ = settings_and_credentials(ctx)

    async def _rename():
        history = await _loaded(ctx, settings)
        record = find_record(history, record_id)
        await history.update_title(record.id, title)
        return record

    record = run(_rename())
    console.print(f"[green]Renamed {record.id[:8]}.[/green]")


@history_cmd.command("delete")
@click.argument("record_id")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def delete_cmd(ctx, record_id: str, yes: bool):
    """Delete a record and its conversations."""
    _require_store(ctx)
    settings, _ = settings_and_credentials(ctx)

    async def _delete():
        history = await _loaded(ctx, settings)
        record = find_record(history, record_id)
        if not yes and not click.confirm(f"Delete '{record.title}'?", default=False):
            return None
        await history.delete(record.id)
        return record

    record = run(_delete())
    if record is not None:
        console.print(f"[green]Deleted {record.id[:8]}.[/green]")
