"""Category crawling plus the validation and duplicate gates used before saving."""

import asyncio
import logging
from typing import Iterable, List, Optional, Set, Tuple

from .config import settings
from .fetcher import HttpFetcher, get_fetcher
from .models import ScrapedItemData
from .parser import is_valid_url
from .sources import get_source

logger = logging.getLogger(__name__)

TITLE_MIN, TITLE_MAX = 5, 200
SUMMARY_MIN, SUMMARY_MAX = 10, 1000


def validate_scraped_data(item: ScrapedItemData) -> bool:
    """
    Check an item against the storage invariants.

    Title must be 5-200 characters, summary 10-1000 characters (both measured
    after trimming for the lower bound), the URL must be a well-formed http(s)
    URL and the source domain must be non-empty.
    """
    if not item.title or len(item.title.strip()) < TITLE_MIN:
        return False

    if not is_valid_url(item.url):
        return False

    if not item.summary or len(item.summary.strip()) < SUMMARY_MIN:
        return False

    if not item.source_domain or not item.source_domain.strip():
        return False

    if len(item.title) > TITLE_MAX:
        return False

    if len(item.summary) > SUMMARY_MAX:
        return False

    return True


def url_key(pack_id: str, url: str) -> str:
    return f"{pack_id}:{url}"


def check_duplicate_url(url: str, pack_id: str, existing_urls: Set[str]) -> bool:
    """True if ``url`` is already recorded for ``pack_id`` in ``existing_urls``."""
    return url_key(pack_id, url) in existing_urls


def dedupe_by_url(items: Iterable[ScrapedItemData]) -> List[ScrapedItemData]:
    """Keep the first item seen for each URL, preserving order."""
    seen: Set[str] = set()
    unique: List[ScrapedItemData] = []
    for item in items:
        if item.url in seen:
            continue
        seen.add(item.url)
        unique.append(item)
    return unique


async def crawl_sources(
    category: str,
    keyword: str,
    limit: int = 10,
    fetcher: Optional[HttpFetcher] = None,
) -> Tuple[List[ScrapedItemData], int]:
    """
    Crawl every source configured for ``category`` with ``keyword``.

    Sources run in configured order with a fixed delay between them. A
    failing source is logged and skipped. Items are deduplicated by URL across
    sources and the result is truncated to ``limit``.

    Returns the items and the number of cross-source duplicates dropped.
    """
    if not settings.crawler_enabled:
        logger.info("Crawler disabled, skipping")
        return [], 0

    fetcher = fetcher or await get_fetcher()
    source_names = settings.sources_for(category)
    collected: List[ScrapedItemData] = []

    for index, name in enumerate(source_names):
        source = get_source(name)
        if source is None:
            logger.warning(f"[{category}] Unknown source '{name}', skipping")
            continue

        if index > 0 and settings.delay_between_requests > 0:
            await asyncio.sleep(settings.delay_between_requests)

        try:
            items = await source.fetch_items(fetcher, keyword, limit, category)
            collected.extend(items)
            logger.info(f"[{category}] [{keyword}] [{name}] {len(items)} items")
        except Exception as e:
            logger.error(f"[{category}] [{keyword}] [{name}] source failed: {e}")

    unique = dedupe_by_url(collected)
    return unique[:limit], len(collected) - len(unique)


async def crawl_by_category(
    category: str,
    keyword: str,
    limit: int = 10,
    fetcher: Optional[HttpFetcher] = None,
) -> List[ScrapedItemData]:
    """Items for ``keyword`` from every source of ``category``, deduplicated by URL."""
    items, _ = await crawl_sources(category, keyword, limit, fetcher)
    return items
