"""Main CLI entry point for the support inbox."""

import logging
from typing import List, Optional

import typer
from rich.console import Console

from src.cli.commands.assign import assign_command
from src.cli.commands.end import end_command
from src.cli.commands.init import init_command
from src.cli.commands.messages import messages_command
from src.cli.commands.notes import notes_command
from src.cli.commands.send import send_command
from src.cli.commands.serve import serve_command
from src.cli.commands.sessions import sessions_command
from src.cli.commands.stats import stats_command
from src.cli.commands.transfer import transfer_command
from src.cli.commands.watch import watch_command

app = typer.Typer(
    name="inbox",
    help="Support inbox - triage, answer and close customer sessions",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Support inbox command line."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command("init")
def init(
    agent_id: str = typer.Option(..., "-a", "--agent-id", help="Agent identifier"),
    api_url: str = typer.Option(..., "-u", "--api-url", help="Inbox API base URL"),
    token: str = typer.Option(None, "-t", "--token", help="API bearer token"),
    organization_id: str = typer.Option(None, "-o", "--org", help="Organization ID"),
    realtime: str = typer.Option("sse", "--realtime", help="sse, polling or off"),
    sla_warning: int = typer.Option(15, "--sla-warning", help="Minutes before warning"),
    sla_danger: int = typer.Option(30, "--sla-danger", help="Minutes before danger"),
    force: bool = typer.Option(False, "-f", "--force", help="Overwrite config"),
    json_flag: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Initialize the agent profile."""
    init_command(agent_id, api_url, token, organization_id, realtime, sla_warning, sla_danger, force, json_flag)


@app.command("sessions")
def sessions(
    tab: str = typer.Option("my_queue", "--tab", help="my_queue, active or pending"),
    search: str = typer.Option(None, "-q", "--search", help="Customer name or email"),
    status: str = typer.Option(None, "--status", help="Filter by status"),
    priority: str = typer.Option(None, "--priority", help="Filter by priority"),
    category: str = typer.Option(None, "--category", help="Filter by category"),
    page: int = typer.Option(1, "-p", "--page", min=1),
    json_flag: bool = typer.Option(False, "--json"),
) -> None:
    """List sessions in a tab with their SLA level."""
    sessions_command(tab, search, status, priority, category, page, json_flag)


@app.command("messages")
def messages(
    session_id: str = typer.Option(..., "-s", "--session", help="Session ID"),
    page: int = typer.Option(1, "-p", "--page", min=1, help="1 is the newest page"),
    limit: int = typer.Option(0, "-l", "--limit", help="Show only the last N (0 = all)"),
    mark_read: bool = typer.Option(False, "--mark-read", help="Clear the unread count"),
    json_flag: bool = typer.Option(False, "--json"),
) -> None:
    """Show a session's conversation."""
    messages_command(session_id, page, limit, mark_read, json_flag)


@app.command("assign")
def assign(
    session_id: str = typer.Option(..., "-s", "--session", help="Session ID"),
    json_flag: bool = typer.Option(False, "--json"),
) -> None:
    """Claim a pending session."""
    assign_command(session_id, json_flag)


@app.command("send")
def send(
    session_id: str = typer.Option(..., "-s", "--session", help="Session ID"),
    message: str = typer.Option(..., "-m", "--message", help="Content"),
    json_flag: bool = typer.Option(False, "--json"),
) -> None:
    """Reply to the customer."""
    send_command(session_id, message, json_flag)


@app.command("transfer")
def transfer(
    session_id: str = typer.Option(..., "-s", "--session", help="Session ID"),
    to: str = typer.Option(None, "-t", "--to", help="Target agent (default: queue)"),
    reason: str = typer.Option(..., "-r", "--reason", help="Why it is transferred"),
    notes: str = typer.Option(None, "-n", "--notes", help="Notes for the next agent"),
    json_flag: bool = typer.Option(False, "--json"),
) -> None:
    """Transfer a session to another agent or back to the queue."""
    transfer_command(session_id, to, reason, notes, json_flag)


@app.command("end")
def end(
    session_id: str = typer.Option(..., "-s", "--session", help="Session ID"),
    category: str = typer.Option(..., "-c", "--category", help="Wrap-up category"),
    summary: str = typer.Option(None, "--summary", help="Resolution notes"),
    resolution: str = typer.Option("resolved", "--resolution", help="resolved, escalated or no_response"),
    tags: Optional[List[str]] = typer.Option(None, "--tag", help="Outcome tag (repeatable)"),
    yes: bool = typer.Option(False, "-y", "--yes", help="Skip confirmation"),
    json_flag: bool = typer.Option(False, "--json"),
) -> None:
    """End a session with a wrap-up."""
    end_command(session_id, category, summary, resolution, tags, yes, json_flag)


@app.command("notes")
def notes(
    session_id: str = typer.Option(..., "-s", "--session", help="Session ID"),
    text: str = typer.Option(..., "-n", "--notes", help="New internal notes"),
    json_flag: bool = typer.Option(False, "--json"),
) -> None:
    """Replace a session's internal notes."""
    notes_command(session_id, text, json_flag)


@app.command("stats")
def stats(
    json_flag: bool = typer.Option(False, "--json"),
) -> None:
    """Show queue and session statistics."""
    stats_command(json_flag)


@app.command("watch")
def watch(
    mode: str = typer.Option(None, "-m", "--mode", help="sse or polling (default: profile)"),
    limit: int = typer.Option(0, "-l", "--limit", help="Stop after N events (0 = never)"),
    duration: float = typer.Option(None, "-d", "--duration", help="Stop after N seconds"),
    json_flag: bool = typer.Option(False, "--json"),
) -> None:
    """Follow session, message and typing events."""
    watch_command(mode, limit, duration, json_flag)


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    seed: bool = typer.Option(False, "--seed", help="Load demo sessions"),
) -> None:
    """Run the in-memory reference inbox API."""
    serve_command(host, port, seed)


def main() -> None:
    """Entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled[/yellow]")
        raise typer.Exit(130)
