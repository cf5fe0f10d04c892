import re
from typing import List, Optional
from urllib.parse import urldefrag, urljoin

from bs4 import BeautifulSoup
from loguru import logger

from webcrawl.errors import ExtractionError
from webcrawl.urls import is_valid_url

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


def is_html(content_type: str) -> bool:
    content_type = (content_type or "").lower()
    return any(t in content_type for t in HTML_CONTENT_TYPES)


def _parse(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, "html.parser")
    except Exception as e:
        raise ExtractionError(f"Could not parse document: {e}") from e


def extract_links(body: str, base_url: str) -> List[str]:
    """Absolute http(s) URLs of every <a href> in the document, in document order.

    Fragments are dropped, so in-page anchors collapse onto the page itself.
    Hrefs that can't be resolved against base_url are skipped.
    """
    if not body:
        return []
    soup = _parse(body)
    links: List[str] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href:
            continue
        try:
            absolute_url = urldefrag(urljoin(base_url, href))[0]
        except ValueError:
            logger.debug(f"Skipping malformed href {href!r} on {base_url}")
            continue
        if not is_valid_url(absolute_url):
            continue
        if absolute_url not in links:
            links.append(absolute_url)
    return links


def extract_text(html: str) -> str:
    if not html:
        return ""
    soup = _parse(html)
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    root = soup.body or soup
    text = root.get_text(separator=" ")
    return re.sub(r"\s+", " ", text).strip()


def extract_title(html: str) -> Optional[str]:
    if not html:
        return None
    title_tag = _parse(html).find("title")
    if title_tag:
        return title_tag.get_text().strip() or None
    return None
