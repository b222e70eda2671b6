"""Wiring shared by the CLI commands: profile, transport and controller."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Coroutine, NoReturn, Optional, TypeVar

import httpx
import typer
from rich.console import Console

from src.cli.output import format_error, json_output
from src.cli.utils.config import AgentProfile, ConfigError, ConfigManager
from src.client.api import InboxApi
from src.client.auth import AgentIdentity
from src.client.exceptions import AlreadyAssignedError, SessionClosedError, ValidationError
from src.client.transport import Transport
from src.inbox.controller import InboxController, create_channel
from src.inbox.outcomes import ActionOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")


def load_profile(console: Console) -> AgentProfile:
    """Load the saved profile or exit with code 1."""
    try:
        return ConfigManager().load()
    except ConfigError as e:
        format_error(console, str(e), hint="Run 'inbox init' to configure your agent")
        raise typer.Exit(code=1)


def make_transport(profile: AgentProfile) -> Optional[httpx.AsyncBaseTransport]:
    """HTTP transport override. None uses the network."""
    return None


@asynccontextmanager
async def open_controller(profile: AgentProfile, realtime: bool = False) -> AsyncIterator[InboxController]:
    """Controller for one command run; realtime only when asked for."""
    config = profile.to_inbox_config()
    identity = AgentIdentity(profile.agent_id, profile.token, profile.organization_id)
    async with Transport(profile.api_url, identity, timeout=config.api.timeout,
                         transport=make_transport(profile)) as transport:
        api = InboxApi(transport)
        channel = create_channel(config.realtime, transport, api) if realtime else None
        controller = InboxController(api, config, channel)
        try:
            yield controller
        finally:
            await controller.close()


async def session_action(profile: AgentProfile, session_id: str,
                         action: Callable[[InboxController], Awaitable[ActionOutcome]]) -> ActionOutcome:
    """Load one session into a fresh controller, then run ``action`` on it."""
    async with open_controller(profile) as controller:
        loaded = await controller.load_session(session_id)
        if not loaded.ok:
            return loaded
        return await action(controller)


def run_async(console: Console, coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine; unexpected failures exit with code 3."""
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        format_error(console, f"Command failed: {e}", hint="Is the inbox API reachable?")
        raise typer.Exit(code=3)


def exit_on_failure(console: Console, outcome: ActionOutcome, json_flag: bool) -> None:
    """Print a failed outcome and exit; no-op on success."""
    if outcome.ok:
        return
    _fail(console, outcome, json_flag)


def _fail(console: Console, outcome: ActionOutcome, json_flag: bool) -> NoReturn:
    error = outcome.error
    if json_flag:
        payload = {"status": "error", "action": outcome.action.value, "session_id": outcome.session_id,
                   "error_code": outcome.error_code, "message": str(error)}
        if isinstance(error, ValidationError) and error.fields:
            payload["fields"] = error.fields
        json_output(console, payload)
    else:
        format_error(console, str(error), hint=_hint(outcome))
    raise typer.Exit(code=2 if isinstance(error, ValidationError) else 3)


def _hint(outcome: ActionOutcome) -> Optional[str]:
    if isinstance(outcome.error, AlreadyAssignedError):
        return "Another agent picked this session up first; refresh with 'inbox sessions'"
    if isinstance(outcome.error, SessionClosedError):
        return "Ended sessions are read-only"
    if outcome.retryable:
        return "This looks temporary; try again"
    return None
