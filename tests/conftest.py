import asyncio
import time
from typing import Dict, List, Optional, Union

import pytest

from webcrawl.fetch import BaseFetcher
from webcrawl.models import CrawlConfig, FetchResponse

Page = Union[FetchResponse, Exception]


class FakeFetcher(BaseFetcher):
    """In-memory fetch capability: unknown URLs answer 404, exceptions are raised."""

    def __init__(self, pages: Optional[Dict[str, Page]] = None, *, delay: float = 0.0, gate: Optional[asyncio.Event] = None):
        self.pages: Dict[str, Page] = dict(pages or {})
        self.delay = delay
        self.gate = gate
        self.calls: List[str] = []
        self.user_agents: List[str] = []
        self.call_times: List[float] = []

    async def fetch(self, url, *, timeout_ms, user_agent, follow_redirects=True):
        self.calls.append(url)
        self.user_agents.append(user_agent)
        self.call_times.append(time.monotonic())
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        page = self.pages.get(url)
        if page is None:
            return FetchResponse(url=url, status_code=404, reason="Not Found")
        if isinstance(page, Exception):
            raise page
        return page

    @property
    def page_calls(self) -> List[str]:
        return [u for u in self.calls if not u.endswith("/robots.txt")]


def make_page(url: str, links=(), *, title: str = "", status: int = 200, content_type: str = "text/html; charset=utf-8") -> FetchResponse:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    body = f"<html><head><title>{title}</title></head><body><p>Page {url}</p>{anchors}</body></html>"
    return FetchResponse(
        url=url,
        status_code=status,
        reason="OK" if status == 200 else "",
        headers={"content-type": content_type},
        body=body,
    )


def make_robots(url: str, text: str) -> FetchResponse:
    return FetchResponse(url=url, status_code=200, reason="OK", headers={"content-type": "text/plain"}, body=text)


@pytest.fixture
def page():
    return make_page


@pytest.fixture
def robots_page():
    return make_robots


@pytest.fixture
def fake_fetcher():
    def _build(pages=None, **kwargs) -> FakeFetcher:
        return FakeFetcher(pages, **kwargs)
    return _build


@pytest.fixture
def crawl_config():
    def _build(**overrides) -> CrawlConfig:
        data = {
            "name": "test crawl",
            "seed_urls": ["https://example.test/"],
            "max_depth": 1,
            "max_pages": 10,
            "concurrency": 2,
            "politeness_delay_ms": 0,
            "timeout_ms": 1000,
        }
        data.update(overrides)
        return CrawlConfig(**data)
    return _build
