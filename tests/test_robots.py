import asyncio

import pytest

from webcrawl.errors import FetchError
from webcrawl.robots import RobotsPolicy, RobotsPolicyResolver, parse_robots_txt

UA = "TestBot/1.0"


def test_parse_collects_wildcard_group():
    policy = parse_robots_txt("User-agent: *\nDisallow: /private\nAllow: /private/ok\nCrawl-delay: 2\n", UA)
    assert policy.disallow == ["/private"]
    assert policy.allow == ["/private/ok"]
    assert policy.crawl_delay_ms == 2000


def test_parse_ignores_groups_for_other_agents():
    text = """
User-agent: OtherBot
Disallow: /

User-agent: TestBot/1.0
Disallow: /mine
"""
    policy = parse_robots_txt(text, UA)
    assert policy.disallow == ["/mine"]


def test_agent_match_is_exact():
    policy = parse_robots_txt("User-agent: testbot/1.0\nDisallow: /x\n", UA)
    assert policy.disallow == []


def test_consecutive_user_agent_lines_share_a_group():
    text = "User-agent: *\nUser-agent: OtherBot\nDisallow: /shared\n"
    assert parse_robots_txt(text, UA).disallow == ["/shared"]


def test_parse_skips_comments_and_empty_values():
    text = "# robots\nUser-agent: * # everyone\nDisallow:\nDisallow: /tmp # scratch\nAllow:\n"
    policy = parse_robots_txt(text, UA)
    assert policy.disallow == ["/tmp"]
    assert policy.allow == []


def test_crawl_delay_last_value_wins_and_bad_values_are_zero():
    assert parse_robots_txt("User-agent: *\nCrawl-delay: 5\nCrawl-delay: 1\n", UA).crawl_delay_ms == 1000
    assert parse_robots_txt("User-agent: *\nCrawl-delay: soon\n", UA).crawl_delay_ms == 0
    assert parse_robots_txt("User-agent: *\nCrawl-delay: 3.5\n", UA).crawl_delay_ms == 3000
    assert parse_robots_txt("User-agent: *\n", UA).crawl_delay_ms == 0


def test_allow_takes_precedence_over_disallow():
    policy = RobotsPolicy(allow=["/private/public"], disallow=["/private"])
    assert policy.allows("/private/public/page")
    assert not policy.allows("/private/page")
    assert policy.allows("/elsewhere")
    assert policy.allows("")


@pytest.mark.asyncio
async def test_resolver_applies_disallow(fake_fetcher, robots_page):
    fetcher = fake_fetcher({
        "https://x.test/robots.txt": robots_page("https://x.test/robots.txt", "User-agent: *\nDisallow: /private\n"),
    })
    resolver = RobotsPolicyResolver(fetcher, user_agent=UA, timeout_ms=1000)
    assert not await resolver.is_allowed("https://x.test/private/page")
    assert await resolver.is_allowed("https://x.test/public")
    # One robots.txt fetch per origin, sent with the crawler's user agent
    assert fetcher.calls == ["https://x.test/robots.txt"]
    assert fetcher.user_agents == [UA]


@pytest.mark.asyncio
async def test_missing_robots_is_permissive_and_cached(fake_fetcher):
    fetcher = fake_fetcher()  # every URL is a 404
    resolver = RobotsPolicyResolver(fetcher, user_agent=UA, timeout_ms=1000)
    assert await resolver.is_allowed("https://x.test/anything")
    assert await resolver.is_allowed("https://x.test/else")
    assert len(fetcher.calls) == 1
    assert resolver.cache_size() == 1


@pytest.mark.asyncio
async def test_robots_fetch_failure_is_permissive(fake_fetcher):
    fetcher = fake_fetcher({"https://down.test/robots.txt": FetchError("connection refused")})
    resolver = RobotsPolicyResolver(fetcher, user_agent=UA, timeout_ms=1000)
    assert await resolver.is_allowed("https://down.test/page")
    policy = await resolver.policy_for("https://down.test/other")
    assert policy == RobotsPolicy()
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_malformed_url_is_denied(fake_fetcher):
    fetcher = fake_fetcher()
    resolver = RobotsPolicyResolver(fetcher, user_agent=UA, timeout_ms=1000)
    assert not await resolver.is_allowed("not a url")
    assert not await resolver.is_allowed("http://[::1/broken")
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_cache_is_per_origin(fake_fetcher, robots_page):
    fetcher = fake_fetcher({
        "https://a.test/robots.txt": robots_page("https://a.test/robots.txt", "User-agent: *\nDisallow: /\n"),
    })
    resolver = RobotsPolicyResolver(fetcher, user_agent=UA, timeout_ms=1000)
    assert not await resolver.is_allowed("https://a.test/page")
    assert await resolver.is_allowed("https://b.test/page")
    assert await resolver.is_allowed("https://a.test:8443/page")
    assert resolver.cache_size() == 3


@pytest.mark.asyncio
async def test_concurrent_misses_converge(fake_fetcher, robots_page):
    fetcher = fake_fetcher(
        {"https://x.test/robots.txt": robots_page("https://x.test/robots.txt", "User-agent: *\nDisallow: /no\n")},
        delay=0.01,
    )
    resolver = RobotsPolicyResolver(fetcher, user_agent=UA, timeout_ms=1000)
    allowed = await asyncio.gather(*(resolver.is_allowed(f"https://x.test/no/{i}") for i in range(5)))
    assert allowed == [False] * 5
    assert resolver.cache_size() == 1
    first = await resolver.policy_for("https://x.test/")
    assert first.disallow == ["/no"]


@pytest.mark.asyncio
async def test_crawl_delay_reads_cache_only(fake_fetcher, robots_page):
    fetcher = fake_fetcher({
        "https://x.test/robots.txt": robots_page("https://x.test/robots.txt", "User-agent: *\nCrawl-delay: 3\n"),
    })
    resolver = RobotsPolicyResolver(fetcher, user_agent=UA, timeout_ms=1000)
    assert resolver.crawl_delay_ms("https://x.test/a") == 0
    assert fetcher.calls == []
    await resolver.is_allowed("https://x.test/a")
    assert resolver.crawl_delay_ms("https://x.test/b") == 3000
