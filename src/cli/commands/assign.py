"""Claim a pending session."""

import typer
from rich.console import Console

from src.cli.output import format_error, format_success, json_output
from src.cli.utils import validate_session_id
from src.cli.utils.runtime import exit_on_failure, load_profile, run_async, session_action

console = Console()


def assign_command(session_id: str, json_flag: bool) -> None:
    """Assign a pending session to this agent.

    Fails with exit code 3 when another agent claimed it first.
    """
    try:
        session_id = validate_session_id(session_id)
    except ValueError as e:
        format_error(console, str(e))
        raise typer.Exit(code=2)

    profile = load_profile(console)
    outcome = run_async(console, session_action(profile, session_id, lambda c: c.assign(session_id)))
    exit_on_failure(console, outcome, json_flag)
    session = outcome.value

    if json_flag:
        json_output(console, {
            "status": "assigned",
            "session_id": session.id,
            "assigned_agent_id": session.assigned_agent_id,
            "session_status": session.status,
        })
    else:
        format_success(console, f"Session {session.id} is now yours")
        console.print(f"[cyan]Customer:[/cyan] {session.customer.display_name}")
        console.print(f"[cyan]Status:[/cyan]   {session.status.value}")
