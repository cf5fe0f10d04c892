from fastapi import FastAPI, HTTPException, BackgroundTasks, Request, Response
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from typing import Optional
from loguru import logger

from webcrawl.config import settings
from webcrawl.crawler import Crawler
from webcrawl.events import ERROR
from webcrawl.metrics import metrics_response
from webcrawl.models import (
    CrawlConfig, CrawlResponse, CrawlStatusResponse, HealthResponse,
)
from webcrawl.store import MemoryPageStore


class CrawlJob:
    def __init__(self, config: CrawlConfig, crawler: Crawler):
        self.config = config
        self.crawler = crawler
        self.status = "scraping"
        self.error: Optional[str] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting WebCrawl API...")
    try:
        yield
    finally:
        for job in app.state.jobs.values():
            job.crawler.stop()
        logger.info("WebCrawl API shutdown complete")

# Initialize FastAPI app with lifespan
app = FastAPI(
    title="WebCrawl API",
    description="Breadth-first, polite web crawling service",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Per-app collaborators; tests swap these out
app.state.jobs = {}
app.state.page_store = MemoryPageStore()
app.state.fetcher = None  # None: each crawler builds its own HttpFetcher


def _get_job(request: Request, job_id: str) -> CrawlJob:
    job = request.app.state.jobs.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Crawl job not found")
    return job

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint"""
    return HealthResponse()

@app.get("/metrics")
async def metrics():
    content, content_type = metrics_response()
    return Response(content=content, media_type=content_type)

@app.post("/v1/crawl", response_model=CrawlResponse)
@limiter.limit(f"{settings.rate_limit_requests}/{settings.rate_limit_window}seconds")
async def crawl_url(request: Request, config: CrawlConfig, background_tasks: BackgroundTasks):
    """Start a crawl job"""
    state = request.app.state
    if config.id in state.jobs:
        raise HTTPException(status_code=409, detail=f"Crawl job {config.id} already exists")
    crawler = Crawler(fetcher=state.fetcher, page_store=state.page_store)
    crawler.on(ERROR, lambda error, url: logger.warning(f"Crawl job {config.id}: {url} failed: {error}"))
    job = CrawlJob(config, crawler)
    state.jobs[config.id] = job
    background_tasks.add_task(crawl_background_task, job)
    return CrawlResponse(success=True, id=config.id, name=config.name)

@app.get("/v1/crawl/{job_id}", response_model=CrawlStatusResponse)
async def get_crawl_status(request: Request, job_id: str):
    """Get crawl job status"""
    job = _get_job(request, job_id)
    stats = job.crawler.get_stats()
    pages = request.app.state.page_store.pages(job_id)
    return CrawlStatusResponse(
        success=job.status != "failed",
        status=job.status,
        completed=stats.pages_processed,
        total=stats.visited_count,
        stats=stats,
        data=pages,
        error=job.error,
    )

@app.post("/v1/crawl/{job_id}/cancel")
async def cancel_crawl(request: Request, job_id: str):
    """Cancel a running crawl job"""
    job = _get_job(request, job_id)
    job.crawler.stop()
    if job.status == "scraping":
        job.status = "cancelled"
    return {"success": True}


async def crawl_background_task(job: CrawlJob):
    """Background task running one crawl job to completion."""
    if job.status != "scraping":
        logger.info(f"Crawl job {job.config.id} was {job.status} before it started")
        return
    try:
        result = await job.crawler.start(job.config)
        if job.status == "scraping":
            job.status = "cancelled" if result.stopped else "completed"
    except Exception as e:
        logger.exception(f"Crawl job {job.config.id} failed: {e}")
        job.status = "failed"
        job.error = str(e)
