"""robots.txt parsing and a per-origin policy cache.

Policies are evaluated by plain path-prefix matching: an Allow prefix wins
over any Disallow prefix, otherwise a Disallow prefix denies, otherwise the
path is permitted.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional
from urllib.parse import urlsplit

from loguru import logger
from pydantic import BaseModel, Field

from webcrawl.fetch import BaseFetcher
from webcrawl.urls import origin_of

_CRAWL_DELAY = re.compile(r"^\s*(\d+)")


class RobotsPolicy(BaseModel):
    allow: List[str] = Field(default_factory=list)
    disallow: List[str] = Field(default_factory=list)
    crawl_delay_ms: int = 0

    def allows(self, path: str) -> bool:
        path = path or "/"
        for prefix in self.allow:
            if path.startswith(prefix):
                return True
        for prefix in self.disallow:
            if path.startswith(prefix):
                return False
        return True


def parse_robots_txt(text: str, user_agent: str = "*") -> RobotsPolicy:
    """Collect the rules of every group addressed to '*' or exactly to user_agent.

    Consecutive User-agent lines share one group. Crawl-delay is given in
    seconds; the last one seen in a matching group wins.
    """
    policy = RobotsPolicy()
    group_agents: List[str] = []
    in_agent_block = False
    applies = False

    for raw_line in text.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip().lower()
        value = value.strip()

        if key == "user-agent":
            if not in_agent_block:
                group_agents = []
            group_agents.append(value)
            in_agent_block = True
            applies = any(agent == "*" or agent == user_agent for agent in group_agents)
            continue

        in_agent_block = False
        if not applies:
            continue
        if key == "disallow":
            if value:
                policy.disallow.append(value)
        elif key == "allow":
            if value:
                policy.allow.append(value)
        elif key == "crawl-delay":
            match = _CRAWL_DELAY.match(value)
            policy.crawl_delay_ms = int(match.group(1)) * 1000 if match else 0

    return policy


class RobotsPolicyResolver:
    def __init__(self, fetcher: BaseFetcher, *, user_agent: str, timeout_ms: int):
        self.fetcher = fetcher
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self._cache: Dict[str, RobotsPolicy] = {}

    async def policy_for(self, url: str) -> Optional[RobotsPolicy]:
        """Cached policy for url's origin, fetching robots.txt on first use. None for malformed URLs."""
        origin = origin_of(url)
        if origin is None:
            return None
        cached = self._cache.get(origin)
        if cached is not None:
            return cached

        robots_url = f"{origin}/robots.txt"
        policy = RobotsPolicy()
        try:
            resp = await self.fetcher.fetch(
                robots_url,
                timeout_ms=self.timeout_ms,
                user_agent=self.user_agent,
                follow_redirects=True,
            )
            if resp.ok:
                policy = parse_robots_txt(resp.body, self.user_agent)
            else:
                logger.info(f"No robots.txt at {robots_url} (status {resp.status_code}); allowing all")
        except Exception as e:
            logger.info(f"Could not fetch {robots_url}: {e}; allowing all")

        # Concurrent misses for one origin converge on the first stored policy
        return self._cache.setdefault(origin, policy)

    async def is_allowed(self, url: str) -> bool:
        policy = await self.policy_for(url)
        if policy is None:
            return False
        return policy.allows(urlsplit(url).path)

    def crawl_delay_ms(self, url: str) -> int:
        """Crawl-delay already known for url's origin; never triggers a fetch."""
        origin = origin_of(url)
        policy = self._cache.get(origin) if origin else None
        return policy.crawl_delay_ms if policy else 0

    def cache_size(self) -> int:
        return len(self._cache)
