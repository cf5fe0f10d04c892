"""Breadth-first, politeness-constrained web crawl engine."""

from webcrawl.crawler import Crawler
from webcrawl.errors import (
    AlreadyRunningError,
    ConfigurationError,
    CrawlError,
    ExtractionError,
    FetchError,
    FetchTimeout,
)
from webcrawl.events import COMPLETE, ERROR, PAGE_CRAWLED, PROGRESS, EventBus
from webcrawl.fetch import BaseFetcher, HttpFetcher
from webcrawl.frontier import BaseFrontier, MemoryFrontier
from webcrawl.models import CrawlConfig, CrawlResult, CrawlStats, FetchResponse, PageRecord, load_config
from webcrawl.robots import RobotsPolicy, RobotsPolicyResolver, parse_robots_txt

__version__ = "1.0.0"

__all__ = [
    "Crawler",
    "CrawlConfig",
    "CrawlResult",
    "CrawlStats",
    "PageRecord",
    "FetchResponse",
    "load_config",
    "EventBus",
    "PROGRESS",
    "PAGE_CRAWLED",
    "ERROR",
    "COMPLETE",
    "BaseFetcher",
    "HttpFetcher",
    "BaseFrontier",
    "MemoryFrontier",
    "RobotsPolicy",
    "RobotsPolicyResolver",
    "parse_robots_txt",
    "CrawlError",
    "ConfigurationError",
    "AlreadyRunningError",
    "FetchError",
    "FetchTimeout",
    "ExtractionError",
]
