from __future__ import annotations

from collections import defaultdict
from typing import Dict, List

from webcrawl.models import PageRecord


class BasePageStore:
    """Destination for finished page records (database, file, queue...)."""

    async def save_page(self, record: PageRecord) -> None:
        raise NotImplementedError


class MemoryPageStore(BasePageStore):
    def __init__(self) -> None:
        self._pages: Dict[str, List[PageRecord]] = defaultdict(list)

    async def save_page(self, record: PageRecord) -> None:
        self._pages[record.crawl_id or ""].append(record)

    def pages(self, crawl_id: str) -> List[PageRecord]:
        return list(self._pages.get(crawl_id, []))

    def count(self, crawl_id: str) -> int:
        return len(self._pages.get(crawl_id, []))
