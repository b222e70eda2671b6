"""Initialize the agent profile."""

import typer
from rich.console import Console

from src.cli.output import format_error, format_success, json_output
from src.cli.utils import (
    AgentProfile,
    ConfigManager,
    validate_agent_id,
    validate_api_url,
    validate_realtime_mode,
)

console = Console()


def init_command(
    agent_id: str,
    api_url: str,
    token: str | None,
    organization_id: str | None,
    realtime: str,
    sla_warning: int,
    sla_danger: int,
    force: bool,
    json_flag: bool,
) -> None:
    """Write ~/.inbox/config.yaml for this agent.

    The file stores the API token and is chmod 600.
    """
    try:
        agent_id = validate_agent_id(agent_id)
        api_url = validate_api_url(api_url)
        realtime = validate_realtime_mode(realtime)
        profile = AgentProfile(
            agent_id=agent_id,
            api_url=api_url,
            token=token or "",
            organization_id=organization_id,
            realtime=realtime,
            sla_warning_minutes=sla_warning,
            sla_danger_minutes=sla_danger,
        )
        profile.to_inbox_config()
    except ValueError as e:
        format_error(console, str(e))
        raise typer.Exit(code=2)

    config = ConfigManager()

    if config.exists() and not force:
        format_error(
            console,
            f"Configuration already exists at {config.config_path}",
            hint="Use --force to overwrite existing configuration",
        )
        raise typer.Exit(code=1)

    config.save(profile)

    if json_flag:
        json_output(
            console,
            {
                "status": "initialized",
                "agent_id": agent_id,
                "api_url": api_url,
                "realtime": realtime,
                "config_path": str(config.config_path),
            },
        )
    else:
        format_success(console, "Agent initialized successfully")
        console.print(f"[cyan]Agent ID:[/cyan]  {agent_id}")
        console.print(f"[cyan]API URL:[/cyan]   {api_url}")
        console.print(f"[cyan]Realtime:[/cyan]  {realtime}")
        console.print(f"[cyan]SLA:[/cyan]       warning at {sla_warning}m, danger after {sla_danger}m")
        console.print(f"[cyan]Config:[/cyan]    {config.config_path}")
