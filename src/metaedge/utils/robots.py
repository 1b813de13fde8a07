"""robots.txt rendering.

Everything is crawlable; AI agents get explicit allow blocks so a stricter
default group elsewhere never shadows them.
"""

from __future__ import annotations

from typing import Iterable

from ..config.environment import SiteContext


def render_robots_txt(site: SiteContext, ai_user_agents: Iterable[str]) -> str:
    lines = [
        f"# {site.name} - {site.tagline}" if site.tagline else f"# {site.name}",
        "",
        "User-agent: *",
        "Allow: /",
        "",
        "# Structured data for agents",
        f"# Append ?format=json to {site.base_url}/work/<id>, /user/<namespace> or /treasury/<namespace>",
        f"# Curator discovery: {site.url('/api/discover')}?topic=YOUR_TOPIC",
        "",
        f"Sitemap: {site.url('/sitemap.xml')}",
    ]
    for agent in ai_user_agents:
        if agent:
            lines.extend(["", f"User-agent: {agent}", "Allow: /"])
    return "\n".join(lines) + "\n"
