from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from webcrawl.config import settings
from webcrawl.errors import ConfigurationError
from webcrawl.urls import is_valid_url, parse_seed_urls


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""

    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


# Crawl configuration, immutable once a run starts
class CrawlConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str
    seed_urls: List[str]
    max_depth: int = Field(default_factory=lambda: settings.default_max_depth, ge=0)  # 0 = unbounded
    max_pages: int = Field(default_factory=lambda: settings.default_max_pages, ge=1)
    concurrency: int = Field(default_factory=lambda: settings.default_concurrency, ge=1, le=10)
    politeness_delay_ms: int = Field(default_factory=lambda: settings.default_politeness_delay_ms, ge=0)
    url_pattern: Optional[str] = None
    exclude_pattern: Optional[str] = Field(default_factory=lambda: settings.default_exclude_pattern)
    respect_robots: bool = True
    follow_redirects: bool = True
    include_binary: bool = False
    timeout_ms: int = Field(default_factory=lambda: settings.default_timeout_ms, ge=1)
    user_agent: str = Field(default_factory=lambda: settings.user_agent)

    @field_validator("name")
    @classmethod
    def _name_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Crawl name is required")
        return v.strip()

    @field_validator("seed_urls", mode="before")
    @classmethod
    def _split_seed_text(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_seed_urls(v)
        return v

    @field_validator("seed_urls")
    @classmethod
    def _check_seed_urls(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("At least one seed URL is required")
        bad = [f"{i + 1}: {u}" for i, u in enumerate(v) if not is_valid_url(u)]
        if bad:
            raise ValueError("Invalid URL at position " + ", ".join(bad))
        return [u.strip() for u in v]

    @field_validator("url_pattern", "exclude_pattern")
    @classmethod
    def _check_pattern(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid regular expression {v!r}: {e}")
        return v


def load_config(data: Union[CrawlConfig, Mapping[str, Any]]) -> CrawlConfig:
    """Build a validated CrawlConfig, raising ConfigurationError with every problem found."""
    if isinstance(data, CrawlConfig):
        return data
    try:
        return CrawlConfig.model_validate(dict(data))
    except ValidationError as e:
        errors = []
        for err in e.errors():
            loc = ".".join(str(part) for part in err.get("loc", ()))
            errors.append(f"{loc}: {err['msg']}" if loc else err["msg"])
        raise ConfigurationError(errors) from e


class FrontierEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    depth: int = Field(ge=0)


# Result of the fetch capability
class FetchResponse(BaseModel):
    url: str
    status_code: int
    reason: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class PageRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    crawl_id: Optional[str] = None
    url: str
    final_url: Optional[str] = None
    depth: int
    status_code: int
    status_text: str = ""
    content_type: str = ""
    size: int = 0
    title: Optional[str] = None
    html: str = ""
    text: str = ""
    links_found: int = 0
    timestamp: datetime = Field(default_factory=utc_now)


class LogEntry(BaseModel):
    timestamp: datetime = Field(default_factory=utc_now)
    level: Literal["debug", "info", "success", "warning", "error"] = "info"
    worker_id: int = 0
    message: str


class ProgressEvent(BaseModel):
    processed: int
    queued: int
    total: int
    percentage: float
    log: Optional[LogEntry] = None


class CrawlStats(BaseModel):
    pages_processed: int = 0
    pages_queued: int = 0
    errors: int = 0
    robots_denied: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_ms: Optional[int] = None


class CrawlStatsSnapshot(CrawlStats):
    queue_size: int = 0
    visited_count: int = 0
    in_flight_count: int = 0


class CrawlResult(BaseModel):
    config: CrawlConfig
    stats: CrawlStats
    results: List[PageRecord] = Field(default_factory=list)
    stopped: bool = False


# HTTP job surface
class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: datetime = Field(default_factory=utc_now)
    version: str = "1.0.0"


class CrawlResponse(BaseModel):
    success: bool = True
    id: Optional[str] = None
    name: Optional[str] = None
    error: Optional[str] = None


class CrawlStatusResponse(BaseModel):
    success: bool = True
    status: Literal["scraping", "completed", "failed", "cancelled"] = "scraping"
    completed: int = 0
    total: int = 0
    stats: Optional[CrawlStatsSnapshot] = None
    data: List[PageRecord] = Field(default_factory=list)
    error: Optional[str] = None
