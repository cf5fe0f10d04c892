"""Worker pool and the per-URL crawl pipeline.

Each worker loops: claim an entry from the frontier, process it, release it,
then pause for the politeness delay. A failure while processing one URL is
counted and published as an error event; it never leaves the worker.
"""
from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

from loguru import logger

from webcrawl import metrics
from webcrawl.errors import FetchError
from webcrawl.events import ERROR, PAGE_CRAWLED, PROGRESS, EventBus
from webcrawl.extract import extract_links, extract_text, extract_title, is_html
from webcrawl.fetch import BaseFetcher
from webcrawl.frontier import BaseFrontier
from webcrawl.models import CrawlConfig, CrawlStats, FetchResponse, FrontierEntry, LogEntry, PageRecord, ProgressEvent
from webcrawl.robots import RobotsPolicyResolver
from webcrawl.store import BasePageStore

LinkExtractor = Callable[[str, str], List[str]]


class CrawlRun:
    """State owned by a single crawl run: config, frontier, robots cache, stats and results."""

    def __init__(self, config: CrawlConfig, frontier: BaseFrontier, robots: RobotsPolicyResolver):
        self.config = config
        self.frontier = frontier
        self.robots = robots
        self.stats = CrawlStats()
        self.results: List[PageRecord] = []
        self.stopped_by_request = False
        self._stop = asyncio.Event()

    def increment(self, field: str, amount: int = 1) -> None:
        # No await between read and write, so this is atomic for the event loop
        setattr(self.stats, field, getattr(self.stats, field) + amount)

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def request_stop(self, *, by_request: bool = False) -> None:
        if by_request and not self._stop.is_set():
            self.stopped_by_request = True
        self._stop.set()
        self.frontier.close()

    def budget_remaining(self) -> int:
        return max(0, self.config.max_pages - self.stats.pages_processed)

    def record_page(self, record: PageRecord) -> bool:
        """Append a finished page unless the page budget is already spent."""
        if self.stats.pages_processed >= self.config.max_pages:
            return False
        self.results.append(record)
        self.increment("pages_processed")
        if self.stats.pages_processed >= self.config.max_pages:
            logger.info(f"Crawl {self.config.id}: page budget of {self.config.max_pages} reached")
            self.request_stop()
        return True

    def percentage(self) -> float:
        return round(self.stats.pages_processed / self.config.max_pages * 100, 2)

    async def pause(self, seconds: float) -> None:
        """Sleep for seconds, returning early if the run is stopped."""
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


class WorkerPool:
    def __init__(
        self,
        run: CrawlRun,
        fetcher: BaseFetcher,
        events: EventBus,
        *,
        link_extractor: LinkExtractor = extract_links,
        page_store: Optional[BasePageStore] = None,
        idle_backoff: float = 0.1,
    ):
        self.run = run
        self.fetcher = fetcher
        self.events = events
        self.link_extractor = link_extractor
        self.page_store = page_store
        self.idle_backoff = idle_backoff

    async def run_all(self) -> None:
        workers = [asyncio.create_task(self._worker(i)) for i in range(self.run.config.concurrency)]
        try:
            await asyncio.gather(*workers)
        finally:
            for w in workers:
                if not w.done():
                    w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(self, worker_id: int) -> None:
        run = self.run
        frontier = run.frontier
        while not run.stopping:
            # Only claim while a page-budget slot is free for it
            entry = await frontier.claim(max_inflight=run.budget_remaining())
            if entry is None:
                if run.stopping or await frontier.is_drained():
                    break
                await frontier.wait_for_work(self.idle_backoff)
                continue

            self._update_gauges()
            try:
                await self._process(entry, worker_id)
            except Exception as e:
                await self._handle_error(e, entry, worker_id)
            finally:
                await frontier.complete(entry.url)
                self._update_gauges()

            if not run.stopping:
                await run.pause(self._politeness_ms(entry.url) / 1000.0)
        logger.debug(f"Worker {worker_id}: exiting")

    def _politeness_ms(self, url: str) -> int:
        delay = self.run.config.politeness_delay_ms
        if self.run.config.respect_robots:
            delay = max(delay, self.run.robots.crawl_delay_ms(url))
        return delay

    async def _process(self, entry: FrontierEntry, worker_id: int) -> None:
        run = self.run
        config = run.config
        url, depth = entry.url, entry.depth

        # Scope may no longer hold for this entry
        if not run.frontier.in_scope(url, depth):
            logger.debug(f"Worker {worker_id}: Skipping {url}, no longer admissible at depth {depth}")
            return

        if config.respect_robots and not await run.robots.is_allowed(url):
            run.increment("robots_denied")
            metrics.crawl_robots_denied_total.inc()
            logger.info(f"Worker {worker_id}: Disallowed by robots.txt {url}")
            await self._progress(LogEntry(level="warning", worker_id=worker_id, message=f"Blocked by robots.txt: {url}"))
            return

        logger.info(f"Worker {worker_id}: Crawling {url} at depth {depth}")
        await self._progress(LogEntry(level="info", worker_id=worker_id, message=f"Crawling: {url}"))
        with metrics.fetch_duration_seconds.time():
            resp = await self.fetcher.fetch(
                url,
                timeout_ms=config.timeout_ms,
                user_agent=config.user_agent,
                follow_redirects=config.follow_redirects,
            )
        if not resp.ok:
            raise FetchError(f"HTTP {resp.status_code} {resp.reason}".strip() + f" for {url}", url=url, status_code=resp.status_code)

        record = self._build_record(entry, resp)
        links: List[str] = []
        if record.html and (config.max_depth == 0 or depth < config.max_depth):
            try:
                links = self.link_extractor(record.html, resp.url or url)
            except Exception as e:
                logger.warning(f"Worker {worker_id}: Could not extract links from {url}: {e}")
        record.links_found = len(links)

        if not run.record_page(record):
            logger.info(f"Worker {worker_id}: Page budget spent; discarding {url}")
            return
        metrics.crawl_pages_fetched_total.inc()
        await self.events.emit(PAGE_CRAWLED, record)
        await self._persist(record)

        for link in links:
            if await run.frontier.offer(link, depth + 1):
                run.increment("pages_queued")

        await self._progress(LogEntry(level="success", worker_id=worker_id, message=f"Success: {url}"))

    def _build_record(self, entry: FrontierEntry, resp: FetchResponse) -> PageRecord:
        content_type = resp.content_type
        html_like = is_html(content_type)
        html = ""
        text = ""
        title = None
        if html_like or self.run.config.include_binary:
            html = resp.body
            if html_like:
                try:
                    text = extract_text(html)
                    title = extract_title(html)
                except Exception as e:
                    logger.warning(f"Could not extract text from {entry.url}: {e}")
        return PageRecord(
            crawl_id=self.run.config.id,
            url=entry.url,
            final_url=resp.url if resp.url != entry.url else None,
            depth=entry.depth,
            status_code=resp.status_code,
            status_text=resp.reason,
            content_type=content_type,
            size=len(html.encode("utf-8")),
            title=title,
            html=html,
            text=text,
        )

    async def _persist(self, record: PageRecord) -> None:
        if self.page_store is None:
            return
        try:
            await self.page_store.save_page(record)
        except Exception as e:
            logger.warning(f"Could not persist page {record.url}: {e}")

    async def _handle_error(self, error: Exception, entry: FrontierEntry, worker_id: int) -> None:
        self.run.increment("errors")
        metrics.crawl_errors_total.inc()
        logger.error(f"Worker {worker_id}: Error crawling {entry.url}: {error}")
        await self.events.emit(ERROR, error, entry.url)
        await self._progress(LogEntry(level="error", worker_id=worker_id, message=f"Error: {entry.url} - {error}"))

    async def _progress(self, log: Optional[LogEntry] = None) -> None:
        run = self.run
        await self.events.emit(
            PROGRESS,
            ProgressEvent(
                processed=run.stats.pages_processed,
                queued=run.frontier.size(),
                total=run.config.max_pages,
                percentage=run.percentage(),
                log=log,
            ),
        )

    def _update_gauges(self) -> None:
        metrics.crawl_frontier_size.set(self.run.frontier.size())
        metrics.crawl_inflight_gauge.set(self.run.frontier.inflight_size())
