"""List sessions in the agent's inbox."""

import typer
from rich.console import Console

from src.cli.output import format_error, format_sla, format_table, json_output
from src.cli.utils import validate_tab
from src.cli.utils.runtime import exit_on_failure, load_profile, open_controller, run_async
from src.client.types import Priority, SessionStatus
from src.inbox.controller import InboxController
from src.inbox.outcomes import ActionOutcome
from src.state.models.session import Session

console = Console()


async def _list_sessions(controller: InboxController, page: int) -> ActionOutcome:
    outcome = await controller.refresh_sessions(page)
    if outcome.ok:
        return ActionOutcome.success(outcome.action, None, controller.filtered_sessions())
    return outcome


def sessions_command(
    tab: str, search: str | None, status: str | None, priority: str | None,
    category: str | None, page: int, json_flag: bool,
) -> None:
    """Show one page of a tab, sorted the way the inbox sorts it."""
    try:
        filters = {
            "tab": validate_tab(tab),
            "search": search or "",
            "status": SessionStatus(status) if status else None,
            "priority": Priority(priority) if priority else None,
            "category": category,
        }
    except ValueError as e:
        format_error(console, str(e))
        raise typer.Exit(code=2)

    profile = load_profile(console)
    policy = profile.to_inbox_config().sla

    async def run() -> ActionOutcome:
        async with open_controller(profile) as controller:
            controller.set_filter(**filters)
            return await _list_sessions(controller, page)

    outcome = run_async(console, run())
    exit_on_failure(console, outcome, json_flag)
    sessions: tuple[Session, ...] = outcome.value

    if json_flag:
        json_output(console, {
            "tab": filters["tab"].value,
            "page": page,
            "count": len(sessions),
            "sessions": [_session_dict(s, policy.for_session(s)) for s in sessions],
        })
        return
    if not sessions:
        console.print("[yellow]No sessions found[/yellow]")
        return
    rows = [
        (
            s.id,
            s.customer.display_name,
            s.status.value,
            s.priority.value,
            f"{s.wait_time}m",
            format_sla(policy.for_session(s)),
            str(s.unread_count) if s.unread_count else "",
            _truncate(s.last_message.preview if s.last_message else "", 40),
        )
        for s in sessions
    ]
    format_table(
        console,
        f"Sessions: {filters['tab'].value} ({len(sessions)})",
        ["ID", "Customer", "Status", "Priority", "Waiting", "SLA", "Unread", "Last message"],
        rows,
    )


def _session_dict(session: Session, sla: object) -> dict:
    return {
        "id": session.id,
        "customer": session.customer.display_name,
        "status": session.status,
        "priority": session.priority,
        "category": session.category,
        "assigned_agent_id": session.assigned_agent_id,
        "wait_time": session.wait_time,
        "sla": sla,
        "unread_count": session.unread_count,
        "last_activity_at": session.last_activity_at,
    }


def _truncate(text: str, length: int) -> str:
    return text[:length] + "..." if len(text) > length else text
