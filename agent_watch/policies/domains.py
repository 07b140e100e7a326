"""Known-domain classification for outbound connections.

A connection is flagged when its IP has no reverse DNS name or the name
falls outside KNOWN_DOMAINS. Private and loopback addresses are never
reported.
"""

from __future__ import annotations

import ipaddress

from agent_watch.policies.agents import AGENTS

_BASE_DOMAINS: tuple[str, ...] = (
    "anthropic.com",
    "openai.com",
    "github.com",
    "githubusercontent.com",
    "githubassets.com",
    "microsoft.com",
    "azure.com",
    "azure.net",
    "windows.net",
    "live.com",
    "google.com",
    "googleapis.com",
    "gstatic.com",
    "cursor.sh",
    "cursor.com",
    "tabnine.com",
    "sourcegraph.com",
    "cloudflare.com",
    "cloudflare-dns.com",
    "cloudflare.net",
    "cloudflareinsights.com",
    "amazonaws.com",
    "akamai.net",
    "akamaiedge.net",
    "fastly.net",
    "sentry.io",
    "vsassets.io",
    "vscode-cdn.net",
    "visualstudio.com",
    "vo.msecnd.net",
    "trafficmanager.net",
    "1e100.net",
    "googleusercontent.com",
    "googlevideo.com",
    "cloudfront.net",
    "github.io",
    "electronjs.org",
    "nodejs.org",
    "npmjs.org",
    "npmjs.com",
    "yarnpkg.com",
    "pypi.org",
    "pythonhosted.org",
)

KNOWN_DOMAINS: tuple[str, ...] = tuple(
    dict.fromkeys(
        (*_BASE_DOMAINS, *(d for agent in AGENTS for d in agent.known_domains))
    )
)


def is_known_domain(domain: str | None) -> bool:
    """True when ``domain`` ends with a known suffix (case-insensitive).

    Suffix match mirrors a ``<suffix>$`` regex, so ``api.anthropic.com``
    and ``anthropic.com`` both match ``anthropic.com``.
    """
    if not domain:
        return False
    name = domain.lower().rstrip(".")
    return any(name.endswith(suffix) for suffix in KNOWN_DOMAINS)


def is_private_ip(ip: str) -> bool:
    """True for loopback, RFC 1918, link-local and unspecified addresses."""
    try:
        addr = ipaddress.ip_address(ip.split("%", 1)[0])
    except ValueError:
        return False
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        addr = addr.ipv4_mapped
    return addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_unspecified
