"""Saving scraped items under a trend pack."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Set

from .crawler import check_duplicate_url, url_key, validate_scraped_data
from .database import Database
from .models import SaveResult, ScrapedItemData

logger = logging.getLogger(__name__)


async def save_scraped_items(
    database: Database, pack_id: str, items: Sequence[ScrapedItemData]
) -> SaveResult:
    """
    Persist valid, previously unseen items for ``pack_id``.

    Items failing validation or whose URL is already stored for the pack
    (or repeated earlier in ``items``) count as skipped. The batch is
    inserted at once; if that fails, items are inserted one by one and each
    failure counts as skipped.
    """
    if not items:
        return SaveResult()

    existing_urls: Set[str] = {
        url_key(pack_id, url) for url in await database.list_scraped_urls(pack_id)
    }

    to_insert: List[ScrapedItemData] = []
    skipped = 0

    for item in items:
        if not validate_scraped_data(item):
            logger.debug(f"Invalid item skipped: {item.url}")
            skipped += 1
            continue

        if check_duplicate_url(item.url, pack_id, existing_urls):
            skipped += 1
            continue

        to_insert.append(item)
        existing_urls.add(url_key(pack_id, item.url))

    if not to_insert:
        return SaveResult(saved=0, skipped=skipped)

    try:
        saved = await database.insert_scraped_items(pack_id, to_insert)
        return SaveResult(saved=saved, skipped=skipped)
    except Exception as e:
        logger.warning(f"Bulk insert failed for pack {pack_id}, inserting one by one: {e}")

    saved = 0
    for item in to_insert:
        try:
            await database.insert_scraped_item(pack_id, item)
            saved += 1
        except Exception as e:
            logger.error(f"Failed to insert item {item.url}: {e}")
            skipped += 1

    return SaveResult(saved=saved, skipped=skipped)


async def get_scraped_items_count(database: Database, pack_id: str) -> int:
    return await database.count_scraped_items(pack_id)


async def delete_scraped_items(database: Database, pack_id: str) -> int:
    deleted = await database.delete_scraped_items(pack_id)
    logger.info(f"Deleted {deleted} scraped items from pack {pack_id}")
    return deleted


async def list_scraped_items(
    database: Database, pack_id: str, source_type: Optional[str] = None
) -> List[Dict[str, Any]]:
    return await database.list_scraped_items(pack_id, source_type)
