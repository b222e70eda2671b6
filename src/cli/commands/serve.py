"""Run the reference inbox API server."""

import logging
from dataclasses import replace

import uvicorn
from rich.console import Console

from src.server.app import create_app
from src.server.config import load_config_from_env

console = Console()
logger = logging.getLogger(__name__)


def serve_command(host: str, port: int, seed: bool) -> None:
    """Serve the in-memory inbox API with uvicorn."""
    config = load_config_from_env()
    if seed and not config.seed:
        config = replace(config, seed=True)
    console.print(f"[cyan]Inbox API[/cyan] on http://{host}:{port} (organization {config.organization_id})")
    logger.info("Starting server on %s:%d seed=%s", host, port, config.seed)
    uvicorn.run(create_app(config), host=host, port=port, log_level="info")
