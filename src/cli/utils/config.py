"""Configuration file management for CLI."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from src.inbox.config import ApiConfig, InboxConfig, RealtimeConfig
from src.state.sla import SlaPolicy


@dataclass
class AgentProfile:
    """Agent profile loaded from config file."""

    agent_id: str
    api_url: str
    token: str = ""
    organization_id: Optional[str] = None
    realtime: str = "sse"
    sla_warning_minutes: int = 15
    sla_danger_minutes: int = 30

    def to_inbox_config(self) -> InboxConfig:
        return InboxConfig(
            api=ApiConfig(base_url=self.api_url, agent_id=self.agent_id, token=self.token,
                          organization_id=self.organization_id),
            realtime=RealtimeConfig(mode=self.realtime),
            sla=SlaPolicy(warning_after=self.sla_warning_minutes, danger_after=self.sla_danger_minutes),
        )


class ConfigError(Exception):
    """Configuration file error."""

    pass


class ConfigManager:
    """Manages the agent profile in ~/.inbox/config.yaml."""

    DEFAULT_DIR = Path.home() / ".inbox"
    CONFIG_FILE = "config.yaml"

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self._config_dir = config_dir or self.DEFAULT_DIR
        self._config_path = self._config_dir / self.CONFIG_FILE

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    @property
    def config_path(self) -> Path:
        return self._config_path

    def exists(self) -> bool:
        """Check if configuration exists."""
        return self._config_path.exists()

    def load(self) -> AgentProfile:
        """Load the profile from file. Raises ConfigError if missing or invalid."""
        if not self._config_path.exists():
            raise ConfigError(
                f"Config not found at {self._config_path}. Run 'inbox init' first."
            )

        with open(self._config_path) as f:
            data = yaml.safe_load(f)

        if not data or "agent_id" not in data or "api_url" not in data:
            raise ConfigError("Invalid config: missing agent_id or api_url")

        sla = data.get("sla") or {}
        try:
            profile = AgentProfile(
                agent_id=str(data["agent_id"]),
                api_url=str(data["api_url"]),
                token=str(data.get("token") or ""),
                organization_id=data.get("organization_id"),
                realtime=str(data.get("realtime", "sse")),
                sla_warning_minutes=int(sla.get("warning_minutes", 15)),
                sla_danger_minutes=int(sla.get("danger_minutes", 30)),
            )
            profile.to_inbox_config()
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid config: {e}") from e
        return profile

    def save(self, profile: AgentProfile) -> None:
        """Save the profile. The file holds the API token, so it is chmod 600."""
        self._config_dir.mkdir(parents=True, exist_ok=True)

        config_data = {
            "agent_id": profile.agent_id,
            "api_url": profile.api_url,
            "token": profile.token,
            "organization_id": profile.organization_id,
            "realtime": profile.realtime,
            "sla": {
                "warning_minutes": profile.sla_warning_minutes,
                "danger_minutes": profile.sla_danger_minutes,
            },
        }

        with open(self._config_path, "w") as f:
            yaml.safe_dump(config_data, f, default_flow_style=False)

        self._config_path.chmod(0o600)
