"""init command: interactive setup wizard.

Writes .contractlens.yml (language, provider, store) and saves the API key
to the credentials file so later commands need no environment variables.
"""

from __future__ import annotations

from pathlib import Path

import click
import yaml
from rich.console import Console

from contractlens_core.config import BUILTIN_PROVIDER, Credentials, settings_from_config
from contractlens_core.errors import ReviewError
from contractlens_core.models import Language
from contractlens_core.reviewer import ReviewOrchestrator
from contractlens_core.stages import StageRunner
from contractlens_core.transport import ChatTransport
from contractlens_store.credentials import CredentialsFile

from contractlens_cli.runtime import run, to_click_error

console = Console()


@click.command("init")
@click.option("--skip-test", is_flag=True, help="Do not send a connection test request.")
@click.pass_context
def init_cmd(ctx, skip_test: bool):
    """Set up contractlens.

    Creates .contractlens.yml and stores your API key in the application
    directory (readable only by you).
    """
    console.print("\n[bold cyan]contractlens init[/bold cyan]: setup wizard\n")

    language = click.prompt(
        "Output language",
        type=click.Choice([lang.value for lang in Language]),
        default=Language.CHINESE.value,
    )

    console.print("\nModel provider:")
    console.print(f"  [bold]deepseek[/bold]  built-in ({BUILTIN_PROVIDER['base_url']})")
    console.print("  [bold]custom[/bold]    any OpenAI-compatible endpoint")
    provider = click.prompt("Provider", type=click.Choice(["deepseek", "custom"]), default="deepseek")

    config: dict = {"language": language, "provider": provider}
    if provider == "custom":
        config["base_url"] = click.prompt("API base URL", default=BUILTIN_PROVIDER["base_url"])
        config["chat_model"] = click.prompt("Chat model (review stages)", default=BUILTIN_PROVIDER["chat_model"])
        config["reasoner_model"] = click.prompt(
            "Reasoner model (chat and stance)", default=BUILTIN_PROVIDER["reasoner_model"]
        )

    console.print("\nReview history store:")
    console.print("  [bold]json[/bold]    one JSON file in ~/.contractlens (default)")
    console.print("  [bold]sqlite[/bold]  local SQLite database")
    console.print("  [bold]none[/bold]    keep nothing")
    config["store"] = click.prompt("Store backend", type=click.Choice(["json", "sqlite", "none"]), default="json")

    config_path = Path(ctx.obj.get("config_path", ".contractlens.yml") if ctx.obj else ".contractlens.yml")
    _write_config(config_path, config)
    console.print(f"[green]Wrote {config_path}[/green]")

    api_key = click.prompt(
        "API key (leave blank to keep the current one)", default="", hide_input=True, show_default=False
    )
    credentials_file = CredentialsFile()
    if api_key.strip():
        credentials_file.save_api_key(api_key)
        console.print(f"[green]Saved API key to {credentials_file.path}[/green]")
    else:
        api_key = (ctx.obj or {}).get("config", {}).get("api_key") or credentials_file.load_api_key() or ""

    if not skip_test and api_key.strip():
        settings = settings_from_config(config)
        try:
            reply = run(_test_connection(settings, Credentials(api_key=api_key)))
        except ReviewError as e:
            raise to_click_error(e, settings) from e
        console.print(f"[green]Connection OK[/green] [dim]({reply[:60]})[/dim]")

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print("Run a review with: [bold]contractlens review contract.pdf --stance \"...\"[/bold]")


async def _test_connection(settings, credentials) -> str:
    transport = ChatTransport()
    try:
        return await ReviewOrchestrator(StageRunner(transport)).test_connection(
            settings.chat_model, settings, credentials
        )
    finally:
        await transport.aclose()


def _write_config(path: Path, config: dict) -> None:
    """Write or update the config file, preserving any existing keys."""
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    existing.update(config)
    text = yaml.dump(existing, default_flow_style=False, sort_keys=False, allow_unicode=True)
    path.write_text(text, encoding="utf-8")
