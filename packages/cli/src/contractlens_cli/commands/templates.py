"""templates commands: manage reusable extra-requirement snippets."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from contractlens_core.models import RequirementTemplate
from contractlens_store.templates import TemplateStore

console = Console()


def _load(store: TemplateStore) -> list[RequirementTemplate]:
    return [RequirementTemplate.from_dict(t) for t in store.load()]


@click.group("templates")
def templates_cmd():
    """Manage requirement templates used by `contractlens review --template`."""


@templates_cmd.command("list")
def list_cmd():
    """Show saved templates."""
    templates = _load(TemplateStore())
    if not templates:
        console.print("[yellow]No templates saved.[/yellow]")
        return

    table = Table(title="Requirement Templates", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Description", max_width=30)
    table.add_column("Content", max_width=60)
    for t in templates:
        table.add_row(t.name, t.description or "", t.content)
    console.print(table)


@templates_cmd.command("add")
@click.argument("name")
@click.argument("content")
@click.option("--description", "-d", default=None, help="Short description shown in the list.")
def add_cmd(name: str, content: str, description: str | None):
    """Save CONTENT as template NAME, replacing a template with the same name."""
    name, content = name.strip(), content.strip()
    if not name or not content:
        raise click.UsageError("Template name and content must not be empty.")

    store = TemplateStore()
    templates = [t for t in _load(store) if t.name.lower() != name.lower()]
    templates.append(RequirementTemplate(name=name, content=content, description=description))
    store.save([t.to_dict() for t in templates])
    console.print(f"[green]Saved template '{name}'.[/green]")


@templates_cmd.command("remove")
@click.argument("name")
def remove_cmd(name: str):
    """Delete template NAME."""
    store = TemplateStore()
    templates = _load(store)
    remaining = [t for t in templates if t.name.lower() != name.lower()]
    if len(remaining) == len(templates):
        raise click.UsageError(f"No template named {name!r}.")
    store.save([t.to_dict() for t in remaining])
    console.print(f"[green]Removed template '{name}'.[/green]")
