"""stance command: suggest review stances for a contract."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from contractlens_core.documents import DocumentLoader
from contractlens_core.errors import ReviewError
from contractlens_core.models import StanceIdentification
from contractlens_core.reviewer import ReviewOrchestrator
from contractlens_core.stages import StageRunner
from contractlens_core.transport import ChatTransport

from contractlens_cli.runtime import run, settings_and_credentials, to_click_error

console = Console()


def print_stance(identification: StanceIdentification) -> None:
    console.print(f"\n[bold]Contract type:[/bold] {identification.contract_type}\n")

    parties = Table(title="Parties", show_header=True, header_style="bold cyan")
    parties.add_column("Name", style="bold")
    parties.add_column("Role")
    parties.add_column("Description")
    for party in identification.parties:
        parties.add_row(party.name, party.role, party.description)
    console.print(parties)

    for index, option in enumerate(identification.all_options, start=1):
        label = "recommended" if index == 1 else "alternative"
        console.print(f"\n[bold cyan]{index}. {option.stance}[/bold cyan] [dim]({label})[/dim]")
        console.print(f"   {option.description}")
        for heading, items in (
            ("Key points", option.key_points),
            ("Pros", option.pros),
            ("Cons", option.cons),
            ("Suggestions", option.suggestions),
        ):
            if items:
                console.print(f"   [bold]{heading}:[/bold] " + "; ".join(items))


@click.command("stance")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def stance_cmd(ctx, file: Path):
    """Identify the parties in FILE and suggest review stances.

    Suggestions are best-effort; pass the one you choose to
    `contractlens review --stance`.
    """
    settings, credentials = settings_and_credentials(ctx)
    if credentials.is_empty:
        raise click.UsageError("No API key found. Run `contractlens init` or set CONTRACTLENS_API_KEY.")

    try:
        document = DocumentLoader().load(file, max_estimated_tokens=settings.max_input_tokens)
        identification = run(_identify(document, settings, credentials))
    except ReviewError as e:
        raise to_click_error(e, settings) from e

    print_stance(identification)


async def _identify(document, settings, credentials) -> StanceIdentification:
    transport = ChatTransport()
    try:
        with console.status("Analysing parties…"):
            return await ReviewOrchestrator(StageRunner(transport)).identify_stance(document, settings, credentials)
    finally:
        await transport.aclose()
