"""End a session with a wrap-up record."""

import typer
from rich.console import Console

from src.cli.output import format_error, format_success, json_output
from src.cli.utils import validate_session_id
from src.cli.utils.runtime import exit_on_failure, load_profile, run_async, session_action
from src.client.types import ResolutionType
from src.state.models.session import WrapUp

console = Console()


def end_command(
    session_id: str, category: str, summary: str | None, resolution: str,
    tags: list[str] | None, yes: bool, json_flag: bool,
) -> None:
    """End a session. Ended sessions cannot be reopened."""
    try:
        session_id = validate_session_id(session_id)
        if not category or not category.strip():
            raise ValueError("Wrap-up category cannot be empty")
        wrap_up = WrapUp(
            category=category.strip(),
            summary=summary or "",
            resolution_type=ResolutionType(resolution).value,
            tags=frozenset(t.strip() for t in tags or [] if t.strip()),
        )
    except ValueError as e:
        format_error(console, str(e))
        raise typer.Exit(code=2)

    if not yes and not json_flag:
        typer.confirm(f"End session {session_id}? This cannot be undone", abort=True)

    profile = load_profile(console)
    outcome = run_async(
        console, session_action(profile, session_id, lambda c: c.end_session(session_id, wrap_up))
    )
    exit_on_failure(console, outcome, json_flag)
    session = outcome.value

    if json_flag:
        json_output(console, {
            "status": "ended",
            "session_id": session.id,
            "wrap_up": session.wrap_up,
        })
    else:
        format_success(console, f"Session {session.id} ended ({wrap_up.category})")
