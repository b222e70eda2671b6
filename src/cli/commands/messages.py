"""Show the conversation history of a session."""

import typer
from rich.console import Console

from src.cli.output import format_error, format_timestamp, json_output
from src.cli.utils import validate_session_id
from src.cli.utils.runtime import exit_on_failure, load_profile, run_async, session_action
from src.client.types import DeliveryState, SenderType
from src.inbox.controller import InboxController
from src.inbox.outcomes import ActionOutcome
from src.state.models.message import Message

console = Console()

_SENDER_STYLES = {
    SenderType.CUSTOMER: "cyan",
    SenderType.AGENT: "green",
    SenderType.BOT: "magenta",
    SenderType.SYSTEM: "dim",
}


def messages_command(session_id: str, page: int, limit: int, mark_read: bool, json_flag: bool) -> None:
    """Print messages oldest first; ``--mark-read`` clears the unread badge."""
    try:
        session_id = validate_session_id(session_id)
    except ValueError as e:
        format_error(console, str(e))
        raise typer.Exit(code=2)

    profile = load_profile(console)

    async def load(controller: InboxController) -> ActionOutcome:
        outcome = await controller.load_messages(session_id, page)
        if outcome.ok and mark_read:
            read = await controller.mark_read(session_id)
            if not read.ok:
                return read
        return outcome

    outcome = run_async(console, session_action(profile, session_id, load))
    exit_on_failure(console, outcome, json_flag)
    messages: tuple[Message, ...] = outcome.value[-limit:] if limit > 0 else outcome.value

    if json_flag:
        json_output(console, {"session_id": session_id, "count": len(messages), "messages": list(messages)})
        return
    if not messages:
        console.print("[yellow]No messages yet[/yellow]")
        return
    for m in messages:
        console.print(_render(m))


def _render(message: Message) -> str:
    style = _SENDER_STYLES.get(message.sender_type, "white")
    marker = ""
    if message.delivery_state == DeliveryState.FAILED:
        marker = " [red](failed)[/red]"
    elif message.sender_type == SenderType.AGENT and message.delivered_at is not None:
        marker = " [dim](delivered)[/dim]"
    return (
        f"[dim]{format_timestamp(message.created_at)}[/dim] "
        f"[{style}]{message.sender_type.value}[/{style}]: {message.body}{marker}"
    )
