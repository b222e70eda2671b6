"""Agent identity and credential injected into the client."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AgentIdentity:
    """Who is acting, and the bearer credential used for every request."""

    agent_id: str
    token: str = ""
    organization_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.agent_id:
            raise ValueError("agent_id cannot be empty")

    def __repr__(self) -> str:
        return f"AgentIdentity(agent_id={self.agent_id!r}, organization_id={self.organization_id!r})"
