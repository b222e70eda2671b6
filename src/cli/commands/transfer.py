"""Hand a session to another agent or back to the queue."""

import typer
from rich.console import Console

from src.cli.output import format_error, format_success, json_output
from src.cli.utils import validate_agent_id, validate_session_id
from src.cli.utils.runtime import exit_on_failure, load_profile, run_async, session_action

console = Console()


def transfer_command(
    session_id: str, to: str | None, reason: str, notes: str | None, json_flag: bool,
) -> None:
    """Transfer an active session. Without ``--to`` it goes back to the queue."""
    try:
        session_id = validate_session_id(session_id)
        target = validate_agent_id(to) if to else None
        if not reason or not reason.strip():
            raise ValueError("Transfer reason cannot be empty")
    except ValueError as e:
        format_error(console, str(e))
        raise typer.Exit(code=2)

    profile = load_profile(console)
    outcome = run_async(
        console,
        session_action(
            profile, session_id,
            lambda c: c.transfer_session(session_id, target, reason.strip(), notes or ""),
        ),
    )
    exit_on_failure(console, outcome, json_flag)

    destination = target or "the queue"
    if json_flag:
        json_output(console, {
            "status": "transferred",
            "session_id": session_id,
            "target_agent_id": target,
            "reason": reason.strip(),
        })
    else:
        format_success(console, f"Session {session_id} transferred to {destination}")
