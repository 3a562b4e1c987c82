"""chat command: follow-up questions on a completed review, streamed to the terminal."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.table import Table

from contractlens_core.conversation import ConversationEngine
from contractlens_core.streaming import Done, ResponseChunk, Thinking
from contractlens_core.transport import ChatTransport

from contractlens_cli.runtime import find_record, make_history, run, settings_and_credentials

console = Console()

_EXIT_COMMANDS = {"/exit", "/quit"}


def _print_event(session_id: str, event) -> None:
    if isinstance(event, Thinking):
        console.print(event.text, style="dim", end="", markup=False, highlight=False)
    elif isinstance(event, ResponseChunk):
        console.print(event.text, end="", markup=False, highlight=False)
    elif isinstance(event, Done):
        console.print()


def _print_sessions(engine: ConversationEngine) -> None:
    table = Table(title="Conversations", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold", width=8)
    table.add_column("Title", max_width=40)
    table.add_column("Messages", justify="right", width=8)
    table.add_column("Updated At", width=20)
    for session in engine.conversations.sessions:
        marker = " *" if session.id == engine.selected_session_id else ""
        table.add_row(
            session.id[:8],
            session.title + marker,
            str(len(session.messages)),
            session.updated_at.isoformat()[:19].replace("T", " "),
        )
    console.print(table)


def _select_session(engine: ConversationEngine, session_id: str) -> None:
    matches = [s for s in engine.conversations.sessions if s.id.startswith(session_id)]
    if len(matches) != 1:
        raise click.UsageError(f"No single conversation matches {session_id!r}.")
    engine.select(matches[0].id)


async def _ask(engine: ConversationEngine, question: str) -> None:
    session_id = engine.selected_session_id
    task = engine.send_message(session_id, question)
    if task is None:
        return
    await task
    error = engine.state(session_id).error
    if error:
        console.print(f"\n[red]{error}[/red]")


@click.command("chat")
@click.argument("record_id")
@click.option("--session", "session_id", default=None, help="Conversation id (or prefix) to continue.")
@click.option("--new", "new_session", is_flag=True, help="Start a new conversation.")
@click.option("--message", "-m", default=None, help="Ask one question and exit.")
@click.option("--list", "list_sessions", is_flag=True, help="List the record's conversations and exit.")
@click.pass_context
def chat_cmd(
    ctx,
    record_id: str,
    session_id: str | None,
    new_session: bool,
    message: str | None,
    list_sessions: bool,
):
    """Ask questions about a completed review.

    Answers stream as they arrive; reasoning is shown dimmed. In interactive
    mode type /new for a new conversation, /clear to empty the current one,
    /exit to leave.
    """
    settings, credentials = settings_and_credentials(ctx)
    if credentials.is_empty and not list_sessions:
        raise click.UsageError("No API key found. Run `contractlens init` or set CONTRACTLENS_API_KEY.")

    async def _chat():
        history = make_history(ctx, settings)
        await history.load()
        record = find_record(history, record_id)
        if record.review_result is None:
            raise click.UsageError(f"'{record.title}' has no completed review to chat about.")

        transport = ChatTransport()
        engine = ConversationEngine(history, transport, settings, credentials)
        engine.configure(record.review_result, record.contract_text or "")
        unsubscribe = engine.subscribe(_print_event)
        try:
            if session_id:
                _select_session(engine, session_id)
            if new_session:
                await engine.create_session()
            if list_sessions:
                _print_sessions(engine)
                return

            console.print(f"[bold]{record.title}[/bold] · [cyan]{engine.selected_session.title}[/cyan]")
            if message is not None:
                await _ask(engine, message)
                return

            while True:
                question = await asyncio.to_thread(click.prompt, "\nYou", default="", show_default=False)
                command = question.strip().lower()
                if command in _EXIT_COMMANDS:
                    break
                if command == "/new":
                    session = await engine.create_session()
                    console.print(f"[cyan]{session.title}[/cyan]")
                    continue
                if command == "/clear":
                    await engine.clear_session(engine.selected_session_id)
                    console.print("[dim]Conversation cleared.[/dim]")
                    continue
                await _ask(engine, question)
        finally:
            unsubscribe()
            await engine.wait_for_pending()
            await transport.aclose()

    run(_chat())
