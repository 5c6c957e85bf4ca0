"""Weekly trend pack upsert and prompt linking."""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from .database import Database
from .keywords import generate_trend_pack_title
from .models import TrendKeyword

logger = logging.getLogger(__name__)


def generate_week_key(day: date) -> str:
    """ISO week key, e.g. ``2025-W03``."""
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def get_current_week_key(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return generate_week_key(now.date())


async def create_trend_pack(
    database: Database,
    week_key: str,
    category: str,
    keywords: List[TrendKeyword],
    summary: str,
) -> str:
    """
    Create or update the pack for ``(week_key, category)`` and return its id.

    The pack is always left ``published`` with a fresh ``generated_at``;
    an existing pack keeps its id and gets the new title, summary and
    keywords.
    """
    title = generate_trend_pack_title(keywords, category)
    keyword_texts = [kw.keyword for kw in keywords]

    existing = await database.get_pack_by_week_category(week_key, category)
    if existing:
        await database.update_trend_pack(existing["id"], title, summary, keyword_texts)
        logger.info(f"Updated trend pack {existing['id']} ({week_key}/{category})")
        return existing["id"]

    pack_id = await database.insert_trend_pack(week_key, category, title, summary, keyword_texts)
    logger.info(f"Created trend pack {pack_id} ({week_key}/{category})")
    return pack_id


async def create_current_week_trend_pack(
    database: Database, category: str, keywords: List[TrendKeyword], summary: str
) -> str:
    return await create_trend_pack(database, get_current_week_key(), category, keywords, summary)


async def link_prompts_to_pack(database: Database, pack_id: str, category: str) -> int:
    """
    Link every non-free prompt template of ``category`` to the pack.

    Already-linked prompts are left alone and new links continue the
    existing sort order. Returns the number of prompts linked to the pack.
    """
    prompt_ids = await database.list_prompt_ids(category, is_free=False)
    if not prompt_ids:
        logger.info(f"No prompt templates for category {category}")
        return 0

    linked = await database.list_linked_prompt_ids(pack_id)
    linked_set = set(linked)
    new_ids = [pid for pid in prompt_ids if pid not in linked_set]

    if new_ids:
        start = len(linked)
        await database.insert_pack_prompts(
            pack_id, [(pid, start + offset) for offset, pid in enumerate(new_ids)]
        )
        logger.info(f"Linked {len(new_ids)} new prompts to pack {pack_id}")

    return len(linked) + len(new_ids)
