from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from loguru import logger

from webcrawl import metrics
from webcrawl.config import settings
from webcrawl.errors import AlreadyRunningError
from webcrawl.events import COMPLETE, EventBus, Handler
from webcrawl.extract import extract_links
from webcrawl.fetch import BaseFetcher, HttpFetcher
from webcrawl.frontier import MemoryFrontier
from webcrawl.models import CrawlConfig, CrawlResult, CrawlStatsSnapshot, load_config, utc_now
from webcrawl.robots import RobotsPolicyResolver
from webcrawl.store import BasePageStore
from webcrawl.worker import CrawlRun, LinkExtractor, WorkerPool


class Crawler:
    """Crawl orchestrator: owns one run at a time and publishes its events.

    Collaborators (fetcher, link extractor, page store, event bus) are passed
    in, so several crawlers or test harnesses can run side by side.
    """

    def __init__(
        self,
        *,
        fetcher: Optional[BaseFetcher] = None,
        link_extractor: LinkExtractor = extract_links,
        page_store: Optional[BasePageStore] = None,
        events: Optional[EventBus] = None,
        idle_backoff_ms: Optional[int] = None,
        robots_timeout_ms: Optional[int] = None,
    ):
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or HttpFetcher()
        self.link_extractor = link_extractor
        self.page_store = page_store
        self.events = events or EventBus()
        self.idle_backoff_ms = idle_backoff_ms if idle_backoff_ms is not None else settings.idle_backoff_ms
        self.robots_timeout_ms = robots_timeout_ms if robots_timeout_ms is not None else settings.robots_timeout_ms
        self._run: Optional[CrawlRun] = None
        self._running = False

    def on(self, event: str, handler: Handler):
        return self.events.on(event, handler)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self, config: Union[CrawlConfig, Mapping[str, Any]]) -> CrawlResult:
        """Run a crawl to completion and return its statistics and pages.

        Raises AlreadyRunningError if this crawler has an active run and
        ConfigurationError if config is invalid; in both cases nothing starts.
        """
        if self._running:
            raise AlreadyRunningError()
        config = load_config(config)

        self._running = True
        frontier = MemoryFrontier(
            max_depth=config.max_depth,
            url_pattern=config.url_pattern,
            exclude_pattern=config.exclude_pattern,
        )
        robots = RobotsPolicyResolver(
            self.fetcher,
            user_agent=config.user_agent,
            timeout_ms=min(config.timeout_ms, self.robots_timeout_ms),
        )
        run = CrawlRun(config, frontier, robots)
        self._run = run
        run.stats.start_time = utc_now()
        metrics.crawl_runs_total.inc()
        logger.info(
            f"Crawl {config.id} ({config.name}): starting with {len(config.seed_urls)} seed(s), "
            f"concurrency={config.concurrency}, max_depth={config.max_depth}, max_pages={config.max_pages}"
        )

        try:
            for url in config.seed_urls:
                if await frontier.offer(url, 0):
                    run.increment("pages_queued")
                else:
                    logger.warning(f"Crawl {config.id}: seed {url} rejected by URL filters")

            pool = WorkerPool(
                run,
                self.fetcher,
                self.events,
                link_extractor=self.link_extractor,
                page_store=self.page_store,
                idle_backoff=self.idle_backoff_ms / 1000.0,
            )
            await pool.run_all()
        finally:
            frontier.close()
            run.stats.end_time = utc_now()
            run.stats.duration_ms = int((run.stats.end_time - run.stats.start_time).total_seconds() * 1000)
            self._running = False
            if self._owns_fetcher:
                await self.fetcher.close()
            if run.stopped_by_request:
                metrics.crawl_runs_stopped_total.inc()
            else:
                metrics.crawl_runs_completed_total.inc()

            result = CrawlResult(
                config=config,
                stats=run.stats.model_copy(),
                results=list(run.results),
                stopped=run.stopped_by_request,
            )
            logger.info(
                f"Crawl {config.id} completed in {run.stats.duration_ms / 1000:.2f} seconds. "
                f"Crawled {run.stats.pages_processed} pages, {run.stats.errors} errors."
            )
            await self.events.emit(COMPLETE, result.stats, result.results)

        return result

    def stop(self) -> None:
        """Ask the active run to wind down; in-flight fetches are allowed to finish."""
        run = self._run
        if run is None or not self._running or run.stopping:
            return
        logger.info(f"Crawl {run.config.id}: stop requested")
        run.request_stop(by_request=True)

    def get_stats(self) -> CrawlStatsSnapshot:
        run = self._run
        if run is None:
            return CrawlStatsSnapshot()
        return CrawlStatsSnapshot(
            **run.stats.model_dump(),
            queue_size=run.frontier.size(),
            visited_count=run.frontier.visited_size(),
            in_flight_count=run.frontier.inflight_size(),
        )
