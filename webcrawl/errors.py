from __future__ import annotations

from typing import List, Optional


class CrawlError(Exception):
    """Base class for every error raised by the crawl engine."""


class ConfigurationError(CrawlError):
    def __init__(self, errors: List[str]):
        super().__init__("Invalid crawl configuration: " + "; ".join(errors))
        self.errors = list(errors)


class AlreadyRunningError(CrawlError):
    def __init__(self, message: str = "Crawler is already running"):
        super().__init__(message)


class FetchError(CrawlError):
    def __init__(self, message: str, *, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FetchTimeout(FetchError):
    pass


class ExtractionError(CrawlError):
    pass
