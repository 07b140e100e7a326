"""Known AI agent catalog.

Maps executable names to display names and default trust, and lists the
per-agent config directories an agent is expected to touch itself.
Unknown agents start at DEFAULT_UNKNOWN_TRUST.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

DEFAULT_UNKNOWN_TRUST = 20


@dataclass(frozen=True)
class AgentDefinition:
    display_name: str
    process_names: tuple[str, ...]
    """Exact executable names (case-insensitive) that identify this agent."""

    default_trust: int = DEFAULT_UNKNOWN_TRUST
    config_dirs: tuple[str, ...] = ()
    """Home-relative config directories owned by the agent."""

    known_domains: tuple[str, ...] = field(default_factory=tuple)


AGENTS: tuple[AgentDefinition, ...] = (
    AgentDefinition(
        "Claude Code",
        ("claude", "claude.exe", "claude-code"),
        default_trust=70,
        config_dirs=(".claude",),
        known_domains=("anthropic.com", "claude.ai"),
    ),
    AgentDefinition(
        "Cursor",
        ("cursor-agent", "cursor-agent.exe"),
        default_trust=60,
        config_dirs=(".cursor",),
        known_domains=("cursor.sh", "cursor.com"),
    ),
    AgentDefinition(
        "GitHub Copilot",
        ("copilot", "copilot.exe", "copilot-agent", "copilot-language-server"),
        default_trust=70,
        config_dirs=(".copilot", ".config/github-copilot"),
        known_domains=("githubcopilot.com", "github.com"),
    ),
    AgentDefinition(
        "Codex CLI",
        ("codex", "codex.exe"),
        default_trust=60,
        config_dirs=(".codex",),
        known_domains=("openai.com", "chatgpt.com"),
    ),
    AgentDefinition(
        "Aider",
        ("aider", "aider.exe"),
        default_trust=50,
        config_dirs=(".aider",),
    ),
    AgentDefinition(
        "Gemini CLI",
        ("gemini", "gemini.exe"),
        default_trust=60,
        config_dirs=(".gemini",),
        known_domains=("googleapis.com", "google.com"),
    ),
    AgentDefinition(
        "Windsurf",
        (
            "language_server_linux_x64",
            "language_server_macos_arm",
            "language_server_windows_x64.exe",
        ),
        default_trust=50,
        config_dirs=(".windsurf", ".codeium"),
        known_domains=("codeium.com", "windsurf.com"),
    ),
    AgentDefinition(
        "Continue",
        ("continue", "continue.exe"),
        default_trust=50,
        config_dirs=(".continue",),
        known_domains=("continue.dev",),
    ),
    AgentDefinition(
        "Tabnine",
        ("tabnine", "tabnine.exe", "tabnine-deep-local"),
        default_trust=50,
        config_dirs=(".tabnine",),
        known_domains=("tabnine.com",),
    ),
    AgentDefinition(
        "Amazon Q",
        ("q", "qchat", "amazon-q"),
        default_trust=60,
        config_dirs=(".aws/amazonq",),
        known_domains=("amazonaws.com",),
    ),
    AgentDefinition("Ollama", ("ollama", "ollama.exe"), default_trust=40, config_dirs=(".ollama",)),
)

# Editor host executable (lowercase) -> label shown as "Agent (via Label)"
EDITOR_LABELS: dict[str, str] = {
    "code": "VS Code",
    "code.exe": "VS Code",
    "code-insiders": "VS Code Insiders",
    "code - insiders.exe": "VS Code Insiders",
    "cursor": "Cursor",
    "cursor.exe": "Cursor",
    "windsurf": "Windsurf",
    "windsurf.exe": "Windsurf",
    "idea": "IntelliJ IDEA",
    "idea64.exe": "IntelliJ IDEA",
    "pycharm": "PyCharm",
    "pycharm64.exe": "PyCharm",
    "webstorm": "WebStorm",
    "webstorm64.exe": "WebStorm",
    "zed": "Zed",
    "nvim": "Neovim",
    "vim": "Vim",
    "emacs": "Emacs",
    "windowsterminal.exe": "Windows Terminal",
    "iterm2": "iTerm2",
}

# Hardware-vendor helper processes never treated as agents
IGNORE_PROCESS_FRAGMENTS: tuple[str, ...] = (
    "asus",
    "armoury",
    "logitech",
    "logioptionsplus",
    "razer",
    "corsair",
    "steelseries",
    "realtek",
    "nvidia",
    "amd",
    "intel",
    "nahimic",
    "msi",
    "gigabyte",
)

_BY_PROCESS: dict[str, AgentDefinition] = {
    name.lower(): agent for agent in AGENTS for name in agent.process_names
}


def find_agent(process_name: str) -> AgentDefinition | None:
    """Return the catalog entry whose executable name matches, or None."""
    return _BY_PROCESS.get(process_name.lower())


def get_agent(display_name: str) -> AgentDefinition | None:
    """Catalog entry by display name, case-insensitive."""
    wanted = display_name.lower()
    for agent in AGENTS:
        if agent.display_name.lower() == wanted:
            return agent
    return None


def default_trust_for(display_name: str, overrides: dict[str, int] | None = None) -> int:
    """Default trust for an agent, with per-name overrides taking precedence."""
    if overrides and display_name in overrides:
        return overrides[display_name]
    agent = get_agent(display_name)
    return agent.default_trust if agent else DEFAULT_UNKNOWN_TRUST


def config_dir_pattern(config_dir: str) -> re.Pattern[str]:
    """Regex matching any path inside a home-relative config directory."""
    parts = [re.escape(p) for p in config_dir.split("/")]
    return re.compile(r"[\\/]" + r"[\\/]".join(parts) + r"(?:[\\/]|$)", re.IGNORECASE)
