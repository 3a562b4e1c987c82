"""CLI entry point for contractlens.

Commands:
  init: interactive setup: language, provider, store, API key
  review: run the full multi-stage review on a contract file
  stance: suggest review stances for a contract
  history: list, show, rename and delete past reviews
  chat: ask follow-up questions about a completed review
  templates: manage reusable extra-requirement templates
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from contractlens_cli.commands.chat import chat_cmd
from contractlens_cli.commands.history import history_cmd
from contractlens_cli.commands.init import init_cmd
from contractlens_cli.commands.review import review_cmd
from contractlens_cli.commands.stance import stance_cmd
from contractlens_cli.commands.templates import templates_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured history store from .contractlens.yml settings.

    Store selection hierarchy:
      store: json   → JsonFileStore (default; store_path or ~/.contractlens/history.json)
      store: sqlite → SQLiteStore   (store_path or ~/.contractlens/history.db)
      store: none   → NoOpStore     (nothing is persisted)

    This factory lives in cli.py so neither contractlens_core nor
    contractlens_store know about the CLI config format.
    """
    store_type = config.get("store") or "json"
    store_path = config.get("store_path")

    if store_type == "none":
        from contractlens_store.noop import NoOpStore

        return NoOpStore()

    if store_type == "sqlite":
        from contractlens_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=store_path)

    if store_type != "json":
        console.print(f"[yellow]Unknown store {store_type!r}; using the JSON file store.[/yellow]")

    from contractlens_store.json_file import JsonFileStore

    return JsonFileStore(path=store_path)


@click.group()
@click.version_option(
    version=importlib.metadata.version("contractlens"),
    prog_name="contractlens",
)
@click.option(
    "--config",
    "config_path",
    default=".contractlens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="CONTRACTLENS_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI contract reviewer: staged risk review and follow-up chat."""
    from contractlens_cli.auth import resolve_api_key
    from contractlens_core.config import load_config

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )
        # Per-request connection chatter is rarely useful.
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    ctx.ensure_object(dict)

    config = load_config(config_path)

    # Resolve the key early so all subcommands share the same resolution.
    api_key = resolve_api_key(config)
    if api_key:
        config["api_key"] = api_key

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path
    ctx.call_on_close(store.close)


main.add_command(init_cmd)
main.add_command(review_cmd)
main.add_command(stance_cmd)
main.add_command(history_cmd)
main.add_command(chat_cmd)
main.add_command(templates_cmd)
