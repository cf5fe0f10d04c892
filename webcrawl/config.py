from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)
    # Server configuration
    host: str = "0.0.0.0"
    port: int = 3002

    # Rate limiting for the job API
    rate_limit_requests: int = 100
    rate_limit_window: int = 60  # seconds

    # Crawl defaults (used when a crawl config leaves a field unset)
    user_agent: str = "WebCrawler/1.0 (+https://github.com/webcrawl)"
    default_timeout_ms: int = 30000
    default_max_depth: int = 2
    default_max_pages: int = 100
    default_concurrency: int = 4
    default_politeness_delay_ms: int = 200
    default_exclude_pattern: Optional[str] = r".*(\.(css|js|gif|jpg|png|mp3|mp4|zip|gz))$"

    # Retry/backoff
    retry_max_attempts: int = 3
    backoff_base_ms: int = 200
    backoff_max_ms: int = 3000

    # robots.txt fetches use their own, shorter timeout
    robots_timeout_ms: int = 10000

    # Idle wait when the frontier is momentarily empty
    idle_backoff_ms: int = 100

settings = Settings()
