"""Show inbox statistics."""

from rich.console import Console

from src.cli.output import format_key_value, json_output
from src.cli.utils.runtime import exit_on_failure, load_profile, open_controller, run_async
from src.inbox.outcomes import ActionOutcome

console = Console()


def stats_command(json_flag: bool) -> None:
    """Queue length, waits and ratings across the organization."""
    profile = load_profile(console)

    async def run() -> ActionOutcome:
        async with open_controller(profile) as controller:
            return await controller.statistics()

    outcome = run_async(console, run())
    exit_on_failure(console, outcome, json_flag)
    stats = outcome.value

    if json_flag:
        json_output(console, stats)
        return
    flat = {k: v for k, v in stats.items() if not isinstance(v, dict)}
    for status, count in (stats.get("by_status") or {}).items():
        flat[f"sessions {status}"] = count
    format_key_value(console, flat)
