from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Crawl metrics
crawl_runs_total = Counter("crawl_runs_total", "Total crawl runs started")
crawl_runs_completed_total = Counter("crawl_runs_completed_total", "Total crawl runs that drained or hit their page budget")
crawl_runs_stopped_total = Counter("crawl_runs_stopped_total", "Total crawl runs ended by an explicit stop")
crawl_pages_fetched_total = Counter("crawl_pages_fetched_total", "Total pages fetched across runs")
crawl_errors_total = Counter("crawl_errors_total", "Total per-URL crawl errors")
crawl_robots_denied_total = Counter("crawl_robots_denied_total", "Total URLs dropped by robots.txt")
crawl_frontier_size = Gauge("crawl_frontier_size", "Current frontier queue size")
crawl_inflight_gauge = Gauge("crawl_inflight", "Current in-flight URL count")
fetch_duration_seconds = Histogram(
    "crawl_fetch_duration_seconds",
    "Page fetch duration",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30)
)

def metrics_response():
    content = generate_latest()
    return content, CONTENT_TYPE_LATEST
