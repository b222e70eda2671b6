"""Send a reply in a session."""

import typer
from rich.console import Console

from src.cli.output import format_error, format_success, json_output
from src.cli.utils import validate_message_body, validate_session_id
from src.cli.utils.runtime import exit_on_failure, load_profile, run_async, session_action

console = Console()


def send_command(session_id: str, message: str, json_flag: bool) -> None:
    """Send a message as the configured agent.

    A transient failure is retried once before the command gives up.
    """
    try:
        session_id = validate_session_id(session_id)
        body = validate_message_body(message)
    except ValueError as e:
        format_error(console, str(e))
        raise typer.Exit(code=2)

    profile = load_profile(console)
    outcome = run_async(
        console, session_action(profile, session_id, lambda c: c.send_message(session_id, body))
    )
    exit_on_failure(console, outcome, json_flag)
    sent = outcome.value

    if json_flag:
        json_output(console, {
            "status": "sent",
            "session_id": session_id,
            "message_id": sent.id,
            "correlation_id": sent.correlation_id,
            "delivery_state": sent.delivery_state,
            "delivered_at": sent.delivered_at,
        })
    else:
        format_success(console, f"Message sent to session {session_id}")
        console.print(f"[cyan]Message ID:[/cyan] {sent.id}")
