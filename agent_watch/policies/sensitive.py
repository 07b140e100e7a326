"""Sensitive-file classification.

Rules are ordered ``(compiled pattern, label)`` pairs evaluated first match
wins: AI agent config directories, then the built-in credential/secret
table, then user-supplied patterns. Patterns are searched anywhere in the
path and accept both ``/`` and ``\\`` separators.
"""

from __future__ import annotations

import logging
import posixpath
import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass

from agent_watch.policies.agents import AGENTS, config_dir_pattern, get_agent

logger = logging.getLogger(__name__)

AGENT_CONFIG_PREFIX = "AI agent config"
CUSTOM_PREFIX = "Custom"


@dataclass(frozen=True)
class SensitiveRule:
    pattern: re.Pattern[str]
    reason: str

    def matches(self, path: str) -> bool:
        return self.pattern.search(path) is not None


def _rule(pattern: str, reason: str) -> SensitiveRule:
    return SensitiveRule(re.compile(pattern, re.IGNORECASE), reason)


_SEP = r"[\\/]"

AGENT_CONFIG_RULES: tuple[SensitiveRule, ...] = tuple(
    SensitiveRule(config_dir_pattern(d), f"{AGENT_CONFIG_PREFIX}: {agent.display_name}")
    for agent in AGENTS
    for d in agent.config_dirs
)

BUILTIN_RULES: tuple[SensitiveRule, ...] = (
    # Environment files
    _rule(_SEP + r"\.env$", "Environment variables"),
    _rule(_SEP + r"\.env\.[^\\/]+$", "Environment variables"),
    # SSH
    _rule(_SEP + r"\.ssh" + _SEP, "SSH keys/config"),
    _rule(r"id_rsa", "SSH private key"),
    _rule(r"id_ed25519", "SSH private key"),
    _rule(r"id_ecdsa", "SSH private key"),
    _rule(r"known_hosts", "SSH known hosts"),
    _rule(r"authorized_keys", "SSH authorized keys"),
    # Generic secrets
    _rule(r"password", "Password file"),
    _rule(r"credential", "Credentials"),
    _rule(_SEP + r"secret", "Secret file"),
    _rule(_SEP + r"[^\\/]*token[^\\/]*$", "API token"),
    _rule(r"api_key", "API key file"),
    _rule(_SEP + r"\.git-credentials$", "Git credentials"),
    # Keys and certificates
    _rule(r"\.pem$", "Private key (PEM)"),
    _rule(r"\.key$", "Private key"),
    _rule(r"\.pfx$", "Certificate (PFX)"),
    _rule(r"\.p12$", "Certificate (P12)"),
    # Cloud and tooling credentials
    _rule(_SEP + r"\.aws" + _SEP, "AWS credentials"),
    _rule(_SEP + r"\.azure" + _SEP, "Azure credentials"),
    _rule(_SEP + r"\.gcloud" + _SEP, "GCloud credentials"),
    _rule(_SEP + r"\.config" + _SEP + r"gcloud" + _SEP, "GCloud credentials"),
    _rule(_SEP + r"\.gnupg" + _SEP, "GPG keys"),
    _rule(_SEP + r"\.npmrc$", "NPM config (may contain tokens)"),
    _rule(_SEP + r"\.pypirc$", "PyPI config (may contain tokens)"),
    _rule(_SEP + r"\.docker" + _SEP + r"config\.json", "Docker credentials"),
    _rule(_SEP + r"\.kube" + _SEP, "Kubernetes config"),
    # Browser stores
    _rule(r"Chrome[\\/]User Data[\\/].*Login Data", "Chrome passwords"),
    _rule(r"Chrome[\\/]User Data[\\/].*Cookies", "Chrome cookies"),
    _rule(r"Chrome[\\/]User Data[\\/].*Web Data", "Chrome autofill data"),
    _rule(r"Chrome[\\/]User Data[\\/].*History", "Chrome browsing history"),
    _rule(r"google-chrome[\\/].*Login Data", "Chrome passwords"),
    _rule(r"Firefox[\\/]Profiles[\\/].*logins\.json", "Firefox passwords"),
    _rule(r"Firefox[\\/]Profiles[\\/].*cookies\.sqlite", "Firefox cookies"),
    _rule(r"Firefox[\\/]Profiles[\\/].*key[34]\.db", "Firefox key database"),
    _rule(r"\.mozilla[\\/]firefox[\\/].*logins\.json", "Firefox passwords"),
    _rule(r"Edge[\\/]User Data[\\/].*Login Data", "Edge passwords"),
    _rule(r"Edge[\\/]User Data[\\/].*Cookies", "Edge cookies"),
)

IGNORE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^/proc/"),
    re.compile(r"^/sys/"),
    re.compile(r"^/dev/"),
    re.compile(r"^/run/"),
    re.compile(r"^/snap/"),
    re.compile(r"^/usr/lib/"),
    re.compile(r"^/usr/share/"),
    re.compile(r"\.so(\.\d+)*$"),
    re.compile(r"\.dylib$"),
    re.compile(r"^/System/"),
    re.compile(r"^/Library/Caches/"),
    re.compile(r"^/private/var/"),
    re.compile(r"/\.DS_Store$"),
    re.compile(r"^C:\\Windows\\", re.IGNORECASE),
    re.compile(r"^C:\\Program Files\\Windows", re.IGNORECASE),
    re.compile(r"\\pagefile\.sys$", re.IGNORECASE),
    re.compile(r"\\swapfile\.sys$", re.IGNORECASE),
    re.compile(r"\\\$Extend", re.IGNORECASE),
    re.compile(r"\\System Volume Information", re.IGNORECASE),
    re.compile(r"^\\Device\\", re.IGNORECASE),
    re.compile(r"\.tmp$", re.IGNORECASE),
)

_CONFIG_EXTENSIONS = frozenset(
    {".json", ".jsonc", ".yaml", ".yml", ".toml", ".ini", ".cfg", ".conf", ".config", ".plist"}
)
_RC_FILE = re.compile(r"^\.[A-Za-z0-9_-]+rc$")


def compile_custom_rules(patterns: Iterable[str]) -> list[SensitiveRule]:
    """Compile user patterns independently; invalid ones are logged and dropped."""
    rules: list[SensitiveRule] = []
    for raw in patterns:
        if not isinstance(raw, str) or not raw.strip():
            logger.warning("Ignoring empty custom sensitive pattern: %r", raw)
            continue
        try:
            compiled = re.compile(raw, re.IGNORECASE)
        except re.error as err:
            logger.warning("Ignoring invalid custom sensitive pattern %r: %s", raw, err)
            continue
        rules.append(SensitiveRule(compiled, f"{CUSTOM_PREFIX}: {raw}"))
    return rules


def should_ignore(path: str) -> bool:
    """True for OS noise (procfs, shared libraries, Windows system files)."""
    return any(p.search(path) for p in IGNORE_PATTERNS)


def is_config_file(path: str) -> bool:
    """True for structured config files and dotfile ``rc`` files."""
    name = posixpath.basename(path.replace("\\", "/"))
    _, ext = posixpath.splitext(name)
    return ext.lower() in _CONFIG_EXTENSIONS or bool(_RC_FILE.match(name))


def is_agent_config_reason(reason: str | None) -> bool:
    return bool(reason) and reason.startswith(AGENT_CONFIG_PREFIX)


def is_self_access(agent_name: str, path: str) -> bool:
    """True when ``agent_name`` touches one of its own config directories."""
    agent = get_agent(agent_name)
    if agent is None:
        return False
    return any(config_dir_pattern(d).search(path) for d in agent.config_dirs)


class SensitiveClassifier:
    """Ordered rule set with replaceable user patterns.

    ``classify`` returns the label of the first matching rule, or None.
    """

    def __init__(self, custom_patterns: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._custom: tuple[SensitiveRule, ...] = tuple(compile_custom_rules(custom_patterns))

    @property
    def rules(self) -> tuple[SensitiveRule, ...]:
        with self._lock:
            custom = self._custom
        return AGENT_CONFIG_RULES + BUILTIN_RULES + custom

    def set_custom_patterns(self, patterns: Iterable[str]) -> int:
        """Replace the user pattern set. Returns how many compiled."""
        compiled = tuple(compile_custom_rules(patterns))
        with self._lock:
            self._custom = compiled
        return len(compiled)

    def classify(self, path: str) -> str | None:
        for rule in self.rules:
            if rule.matches(path):
                return rule.reason
        return None
