"""Follow inbox activity as it happens."""

import asyncio
from dataclasses import replace
from typing import Any, Optional

import typer
from rich.console import Console

from src.cli.output import format_error, format_sla, format_warning, json_output
from src.cli.utils import validate_realtime_mode
from src.cli.utils.runtime import exit_on_failure, load_profile, open_controller, run_async
from src.client.types import ConnectionStatus
from src.inbox.outcomes import ActionOutcome
from src.realtime.events import SessionUpdate, TypingEvent
from src.state.models.message import Message

console = Console()


class _EventPrinter:
    """Prints channel events and stops after ``limit`` of them (0 = never)."""

    def __init__(self, controller: Any, limit: int, json_flag: bool) -> None:
        self._controller = controller
        self._limit = limit
        self._json = json_flag
        self.count = 0
        self.done = asyncio.Event()

    async def on_session(self, update: SessionUpdate) -> None:
        if update.removed or update.session is None:
            self._emit({"event": "session.removed", "session_id": update.session_id},
                       f"[dim]session {update.session_id} left the inbox[/dim]")
            return
        s = update.session
        self._emit(
            {"event": "session.updated", "session_id": s.id, "status": s.status,
             "assigned_agent_id": s.assigned_agent_id, "wait_time": s.wait_time},
            f"[cyan]session[/cyan] {s.id} {s.customer.display_name}: {s.status.value} "
            f"{format_sla(self._controller.sla_level(s))}",
        )

    async def on_message(self, message: Message) -> None:
        self._emit(
            {"event": "message", "session_id": message.session_id, "id": message.id,
             "sender_type": message.sender_type, "body": message.body},
            f"[green]message[/green] {message.session_id} {message.sender_type.value}: {message.body}",
        )

    async def on_typing(self, event: TypingEvent) -> None:
        if event.participant_id == self._controller.agent_id:
            return
        verb = "is typing" if event.is_typing else "stopped typing"
        self._emit(
            {"event": "typing", "session_id": event.session_id, "participant_id": event.participant_id,
             "is_typing": event.is_typing},
            f"[dim]{event.participant_id} {verb} in {event.session_id}[/dim]",
        )

    async def on_status(self, status: ConnectionStatus) -> None:
        if status == ConnectionStatus.DISCONNECTED and not self._json:
            format_warning(console, "Realtime connection lost, reconnecting")

    def _emit(self, payload: dict, text: str) -> None:
        if self._json:
            json_output(console, payload)
        else:
            console.print(text)
        self.count += 1
        if self._limit and self.count >= self._limit:
            self.done.set()


async def _watch(profile: Any, limit: int, duration: Optional[float], json_flag: bool) -> ActionOutcome:
    async with open_controller(profile, realtime=True) as controller:
        printer = _EventPrinter(controller, limit, json_flag)
        channel = controller.channel
        channel.on_session_update(printer.on_session)
        channel.on_message(printer.on_message)
        channel.on_typing(printer.on_typing)
        channel.on_status(printer.on_status)
        outcome = await controller.start()
        if not outcome.ok:
            return outcome
        try:
            await asyncio.wait_for(printer.done.wait(), timeout=duration)
        except asyncio.TimeoutError:
            pass
        return ActionOutcome.success(outcome.action, None, printer.count)


def watch_command(mode: str | None, limit: int, duration: float | None, json_flag: bool) -> None:
    """Stream session, message and typing events until stopped."""
    profile = load_profile(console)
    try:
        if mode:
            profile = replace(profile, realtime=validate_realtime_mode(mode))
        if profile.realtime == "off":
            raise ValueError("Realtime is off; pass --mode sse or --mode polling")
        if limit < 0:
            raise ValueError("--limit cannot be negative")
    except ValueError as e:
        format_error(console, str(e))
        raise typer.Exit(code=2)

    if not json_flag:
        console.print(f"[dim]Watching via {profile.realtime} as {profile.agent_id}. Ctrl-C to stop.[/dim]")
    outcome = run_async(console, _watch(profile, limit, duration, json_flag))
    exit_on_failure(console, outcome, json_flag)
