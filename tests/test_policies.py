"""Tests for the sensitive-file, agent catalog and domain policies."""

from __future__ import annotations

import logging

import pytest

from agent_watch.policies.agents import (
    DEFAULT_UNKNOWN_TRUST,
    default_trust_for,
    find_agent,
    get_agent,
)
from agent_watch.policies.domains import KNOWN_DOMAINS, is_known_domain, is_private_ip
from agent_watch.policies.sensitive import (
    SensitiveClassifier,
    compile_custom_rules,
    is_agent_config_reason,
    is_config_file,
    is_self_access,
    should_ignore,
)


@pytest.fixture()
def classifier() -> SensitiveClassifier:
    return SensitiveClassifier()


class TestClassify:
    @pytest.mark.parametrize(
        "path, reason",
        [
            ("/home/user/.env", "Environment variables"),
            ("/home/user/app/.env.production", "Environment variables"),
            ("/home/user/.ssh/config", "SSH keys/config"),
            ("/home/user/.ssh/id_rsa", "SSH keys/config"),
            ("/tmp/backup/id_ed25519", "SSH private key"),
            ("/home/user/.aws/config", "AWS credentials"),
            ("/home/user/.gnupg/pubring.kbx", "GPG keys"),
            ("/home/user/.kube/config", "Kubernetes config"),
            ("/home/user/.npmrc", "NPM config (may contain tokens)"),
            ("/home/user/certs/server.pem", "Private key (PEM)"),
            ("C:\\Users\\dev\\.ssh\\known_hosts", "SSH keys/config"),
            ("C:\\Users\\dev\\proj\\.ENV", "Environment variables"),
        ],
    )
    def test_builtin_rules(self, classifier: SensitiveClassifier, path: str, reason: str) -> None:
        assert classifier.classify(path) == reason

    def test_agent_config_takes_precedence(self, classifier: SensitiveClassifier) -> None:
        assert classifier.classify("/home/user/.claude/.credentials.json") == (
            "AI agent config: Claude Code"
        )
        assert classifier.classify("/home/user/.cursor/settings.json") == "AI agent config: Cursor"
        assert classifier.classify("/home/user/.config/github-copilot/hosts.json") == (
            "AI agent config: GitHub Copilot"
        )

    def test_config_dir_must_be_a_path_segment(self, classifier: SensitiveClassifier) -> None:
        assert classifier.classify("/home/user/not.claude/notes.txt") is None
        assert classifier.classify("/home/user/.claude") == "AI agent config: Claude Code"

    def test_non_sensitive_returns_none(self, classifier: SensitiveClassifier) -> None:
        assert classifier.classify("/home/user/Documents/readme.txt") is None

    def test_custom_patterns_follow_builtins(self) -> None:
        classifier = SensitiveClassifier([r"my-internal-project", r"\.ssh"])
        assert classifier.classify("/home/my-internal-project/data") == (
            "Custom: my-internal-project"
        )
        assert classifier.classify("/home/user/.ssh/id_rsa") == "SSH keys/config"

    def test_custom_patterns_are_case_insensitive(self) -> None:
        classifier = SensitiveClassifier(["payroll"])
        assert classifier.classify("/srv/PAYROLL/2026.csv") == "Custom: payroll"

    def test_set_custom_patterns_replaces_set(self, classifier: SensitiveClassifier) -> None:
        assert classifier.set_custom_patterns(["alpha", "beta"]) == 2
        assert classifier.classify("/x/beta") == "Custom: beta"
        assert classifier.set_custom_patterns(["gamma"]) == 1
        assert classifier.classify("/x/beta") is None


class TestCustomRules:
    def test_invalid_pattern_dropped_and_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="agent_watch.policies.sensitive"):
            rules = compile_custom_rules(["ok", "(unclosed", "", "   "])
        assert [r.reason for r in rules] == ["Custom: ok"]
        assert "(unclosed" in caplog.text

    def test_valid_patterns_survive_an_invalid_neighbour(self) -> None:
        classifier = SensitiveClassifier(["[bad", "good"])
        assert classifier.classify("/a/good") == "Custom: good"


class TestPathHelpers:
    @pytest.mark.parametrize(
        "path",
        [
            "/proc/1/status",
            "/dev/null",
            "/usr/lib/libc.so.6",
            "/System/Library/something",
            "/private/var/folders/xx/tmp",
            "/Users/test/.DS_Store",
            "/home/user/file.tmp",
            "C:\\Windows\\System32\\kernel32.dll",
            "\\Device\\HarddiskVolume3",
        ],
    )
    def test_should_ignore(self, path: str) -> None:
        assert should_ignore(path)

    def test_normal_file_not_ignored(self) -> None:
        assert not should_ignore("/home/user/project/index.js")

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/a/settings.json", True),
            ("/a/config.YAML", True),
            ("/a/pyproject.toml", True),
            ("/home/u/.npmrc", True),
            ("C:\\Users\\u\\.bashrc", True),
            ("/a/main.py", False),
            ("/a/rc", False),
        ],
    )
    def test_is_config_file(self, path: str, expected: bool) -> None:
        assert is_config_file(path) is expected

    def test_is_agent_config_reason(self) -> None:
        assert is_agent_config_reason("AI agent config: Aider")
        assert not is_agent_config_reason("API token")
        assert not is_agent_config_reason(None)
        assert not is_agent_config_reason("")


class TestSelfAccess:
    def test_own_config_dir(self) -> None:
        assert is_self_access("Claude Code", "/home/user/.claude/config.json")
        assert is_self_access("Cursor", "/home/user/.cursor/settings.json")

    def test_other_agents_dir(self) -> None:
        assert not is_self_access("Claude Code", "/home/user/.cursor/settings.json")

    def test_agent_name_case_insensitive(self) -> None:
        assert is_self_access("CLAUDE CODE", "/home/user/.claude/config.json")

    def test_unknown_agent(self) -> None:
        assert not is_self_access("SomeAgent", "/home/user/.ssh/id_rsa")


class TestAgentCatalog:
    @pytest.mark.parametrize(
        "process_name, display",
        [
            ("claude", "Claude Code"),
            ("Claude.exe", "Claude Code"),
            ("codex", "Codex CLI"),
            ("aider", "Aider"),
            ("language_server_linux_x64", "Windsurf"),
        ],
    )
    def test_find_agent(self, process_name: str, display: str) -> None:
        agent = find_agent(process_name)
        assert agent is not None
        assert agent.display_name == display

    def test_unknown_process(self) -> None:
        assert find_agent("bash") is None
        assert find_agent("code") is None

    def test_get_agent(self) -> None:
        agent = get_agent("claude code")
        assert agent is not None
        assert agent.default_trust == 70
        assert get_agent("Nope") is None

    def test_default_trust(self) -> None:
        assert default_trust_for("Aider") == 50
        assert default_trust_for("Aider", {"Aider": 90}) == 90
        assert default_trust_for("Mystery") == DEFAULT_UNKNOWN_TRUST


class TestDomains:
    @pytest.mark.parametrize(
        "domain, expected",
        [
            ("api.anthropic.com", True),
            ("anthropic.com", True),
            ("LB-1.API.OPENAI.COM.", True),
            ("ec2-1-2-3-4.compute-1.amazonaws.com", True),
            ("evil.example.net", False),
            ("", False),
            (None, False),
        ],
    )
    def test_is_known_domain(self, domain: str | None, expected: bool) -> None:
        assert is_known_domain(domain) is expected

    def test_catalog_domains_are_known(self) -> None:
        assert "continue.dev" in KNOWN_DOMAINS
        assert len(KNOWN_DOMAINS) == len(set(KNOWN_DOMAINS))

    @pytest.mark.parametrize(
        "ip, expected",
        [
            ("127.0.0.1", True),
            ("10.1.2.3", True),
            ("192.168.0.10", True),
            ("172.16.5.4", True),
            ("169.254.1.1", True),
            ("0.0.0.0", True),
            ("::1", True),
            ("fe80::1%eth0", True),
            ("::ffff:192.168.1.1", True),
            ("8.8.8.8", False),
            ("2606:4700::6810:84e5", False),
            ("not-an-ip", False),
        ],
    )
    def test_is_private_ip(self, ip: str, expected: bool) -> None:
        assert is_private_ip(ip) is expected
