"""Edit a session's internal notes."""

import typer
from rich.console import Console

from src.cli.output import format_error, format_success, json_output
from src.cli.utils import validate_session_id
from src.cli.utils.runtime import exit_on_failure, load_profile, run_async, session_action

console = Console()


def notes_command(session_id: str, text: str, json_flag: bool) -> None:
    """Replace the agent-only notes on a session."""
    try:
        session_id = validate_session_id(session_id)
    except ValueError as e:
        format_error(console, str(e))
        raise typer.Exit(code=2)

    profile = load_profile(console)
    outcome = run_async(
        console, session_action(profile, session_id, lambda c: c.update_internal_notes(session_id, text))
    )
    exit_on_failure(console, outcome, json_flag)

    if json_flag:
        json_output(console, {"status": "updated", "session_id": session_id,
                              "internal_notes": outcome.value.internal_notes})
    else:
        format_success(console, f"Notes updated for session {session_id}")
