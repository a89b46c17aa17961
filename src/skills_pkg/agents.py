"""Default skills directories for known coding agents.

Used to seed install targets when initializing a manifest.
"""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "AGENT_DIRS",
    "HomeAgent",
    "get_agent",
    "list_agents",
]

# Path components below the user's home directory.
AGENT_DIRS: dict[str, tuple[str, ...]] = {
    "claude": (".claude", "skills"),
    "codex": (".codex", "skills"),
    "copilot": (".copilot", "skills"),
    "cursor": (".cursor", "skills"),
    "gemini": (".gemini", "skills"),
    "goose": (".config", "goose", "skills"),
    "opencode": (".config", "opencode", "skill"),
    "amp": (".config", "agents", "skills"),
}


class HomeAgent:
    """Agent whose skills live at a fixed location under the home directory.

    Satisfies the AgentProvider protocol structurally.
    """

    def __init__(self, name: str, parts: tuple[str, ...], home: Path | None = None) -> None:
        self.name = name
        self.parts = parts
        self.home = home

    @property
    def agent_name(self) -> str:
        return self.name

    def resolve_agent_dir(self) -> Path:
        """Return the agent's default skills directory."""
        home = self.home or Path.home()
        return home.joinpath(*self.parts)


def get_agent(name: str, home: Path | None = None) -> HomeAgent:
    """Get an agent by name.

    Args:
        name: Agent name, e.g. "claude".
        home: Home directory override. Defaults to the current user's home.

    Returns:
        HomeAgent instance.

    Raises:
        ValueError: If the agent is not supported.
    """
    if not name:
        raise ValueError("agent name cannot be empty")
    if name not in AGENT_DIRS:
        raise ValueError(f"Unknown agent: {name}. Supported: {list_agents()}")
    return HomeAgent(name, AGENT_DIRS[name], home=home)


def list_agents() -> list[str]:
    """Return supported agent names in sorted order."""
    return sorted(AGENT_DIRS)
