"""review command: run the staged review on a contract file."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax

from contractlens_core import prompts
from contractlens_core.documents import DocumentLoader
from contractlens_core.errors import ReviewError
from contractlens_core.models import Language, RequirementTemplate, ReviewResult
from contractlens_core.reviewer import ReviewOrchestrator
from contractlens_core.stages import Stage, StageRunner
from contractlens_core.transport import ChatTransport
from contractlens_store.templates import TemplateStore

from contractlens_cli.runtime import make_history, run, settings_and_credentials, to_click_error

console = Console()

# Printed in this order; the flowchart is shown as mermaid source.
_SECTIONS = (
    (Stage.OVERVIEW, "contract_overview"),
    (Stage.FOUNDATION, "foundation_audit"),
    (Stage.BUSINESS, "business_audit"),
    (Stage.LEGAL, "legal_audit"),
    (Stage.SUMMARY, "audit_summary"),
)


def select_templates(names: tuple[str, ...]) -> list[RequirementTemplate]:
    """Resolve template names (case-insensitive) to saved templates, in the order given."""
    if not names:
        return []
    saved = [RequirementTemplate.from_dict(t) for t in TemplateStore().load()]
    by_name = {t.name.lower(): t for t in saved}
    selected = []
    for name in names:
        template = by_name.get(name.lower())
        if template is None:
            raise click.UsageError(f"Unknown template {name!r}. See `contractlens templates list`.")
        selected.append(template)
    return selected


def print_result(result: ReviewResult, language: Language, show_flowchart: bool = True) -> None:
    if show_flowchart and result.outputs.mermaid_flowchart:
        console.print(
            Panel(
                Syntax(result.outputs.mermaid_flowchart, "text", word_wrap=True),
                title=Stage.FLOWCHART.display_name(language),
                border_style="cyan",
            )
        )
    for stage, field_name in _SECTIONS:
        console.print(
            Panel(
                Markdown(getattr(result.outputs, field_name)),
                title=stage.display_name(language),
                border_style="green" if stage == Stage.SUMMARY else "cyan",
            )
        )


def write_report(result: ReviewResult, language: Language, output_dir: Path) -> Path:
    """Write every output as one Markdown file named after the document."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{Path(result.document_name).stem}.review.md"
    parts = [f"# {result.document_name}", f"## {Stage.FLOWCHART.display_name(language)}"]
    parts.append(f"```mermaid\n{result.outputs.mermaid_flowchart}\n```")
    for stage, field_name in _SECTIONS:
        parts.append(f"## {stage.display_name(language)}")
        parts.append(getattr(result.outputs, field_name))
    path.write_text("\n\n".join(parts) + "\n", encoding="utf-8")
    return path


@click.command("review")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--stance", "-s", default=None, help="Your review stance, e.g. 'As the buyer'. Prompted if omitted.")
@click.option("--requirements", "-r", default="", help="Extra review requirements.")
@click.option(
    "--template",
    "-t",
    "template_names",
    multiple=True,
    help="Name of a saved requirement template. Repeatable.",
)
@click.option("--title", default=None, help="History title. Defaults to the file name.")
@click.option(
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Also write the review as Markdown into this directory.",
)
@click.option("--quiet", "-q", is_flag=True, help="Do not print the review outputs.")
@click.pass_context
def review_cmd(
    ctx,
    file: Path,
    stance: str | None,
    requirements: str,
    template_names: tuple[str, ...],
    title: str | None,
    output_dir: Path | None,
    quiet: bool,
):
    """Review a TXT, PDF or DOCX contract.

    Runs flowchart, overview and three audits concurrently, then a summary
    stage, and saves the result to history for `contractlens chat`.
    """
    settings, credentials = settings_and_credentials(ctx)
    if credentials.is_empty:
        raise click.UsageError("No API key found. Run `contractlens init` or set CONTRACTLENS_API_KEY.")

    if stance is None:
        stance = click.prompt("Review stance")

    extra = prompts.combine_requirements(select_templates(template_names), requirements)

    try:
        document = DocumentLoader().load(file, max_estimated_tokens=settings.max_input_tokens)
    except ReviewError as e:
        raise to_click_error(e, settings) from e

    console.print(
        f"[dim]{file.name}: {document.kind.value}, {document.character_count} characters, "
        f"~{document.estimated_token_count} tokens[/dim]"
    )

    record_id, result = run(_review(ctx, document, file.name, stance, extra, title, settings, credentials))

    if not quiet:
        print_result(result, settings.language)
    if output_dir is not None:
        path = write_report(result, settings.language, output_dir)
        console.print(f"[green]Report written to {path}[/green]")
    console.print(f"\n[bold green]Review saved[/bold green] [dim](id {record_id[:8]})[/dim]")


async def _review(ctx, document, document_name, stance, extra, title, settings, credentials):
    history = make_history(ctx, settings)
    await history.load()
    draft = await history.create_draft(title)

    transport = ChatTransport()
    orchestrator = ReviewOrchestrator(StageRunner(transport))
    try:
        with console.status("Reviewing…"):
            result = await orchestrator.perform_review(document, document_name, stance, extra, settings, credentials)
    except ReviewError as e:
        raise to_click_error(e, settings) from e
    finally:
        await transport.aclose()

    await history.apply_review_result(draft.id, result, document.text, title=title)
    # The aggregate seeds the first chat session; return what was stored.
    stored = history.get(draft.id)
    return draft.id, (stored.review_result if stored and stored.review_result else result)
