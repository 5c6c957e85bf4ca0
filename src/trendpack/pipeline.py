"""Crawl orchestration: keywords → items → pack → prompts, per category."""

import asyncio
import logging
import time
from typing import Iterable, List, Optional, Tuple

from . import crawler, keywords as keyword_collector
from .config import settings
from .crawl_logger import crawl_logger
from .crawler import dedupe_by_url
from .database import Database
from .errors import classify_error
from .fetcher import HttpFetcher
from .items import save_scraped_items
from .keywords import generate_trend_pack_summary
from .models import CategoryResult, CrawlRunResult, ScrapedItemData
from .packs import create_current_week_trend_pack, link_prompts_to_pack
from .processor import apply_category_summary_template, calculate_quality_score
from .summarizer import summarize_hybrid

logger = logging.getLogger(__name__)

SHORT_SUMMARY_LENGTH = 100
IMPROVED_SUMMARY_LENGTH = 200

_run_lock = asyncio.Lock()


class CrawlAlreadyRunning(RuntimeError):
    """Raised when a crawl run is requested while another is in progress."""


def is_running() -> bool:
    return _run_lock.locked()


async def _improve_summaries(category: str, items: List[ScrapedItemData]) -> None:
    for item in items:
        if len(item.summary) < SHORT_SUMMARY_LENGTH:
            try:
                item.summary = await summarize_hybrid(item.summary, IMPROVED_SUMMARY_LENGTH)
            except Exception as e:
                crawl_logger.log_crawl_warn(
                    category, f"요약 개선 실패: {item.url}", {"error": str(e)}
                )

        item.summary = apply_category_summary_template(item, category)


async def _crawl_keywords(
    category: str, keywords: List[str], limit: int, fetcher: Optional[HttpFetcher]
) -> Tuple[List[ScrapedItemData], int]:
    collected: List[ScrapedItemData] = []
    dropped = 0

    for index, keyword in enumerate(keywords):
        if index > 0 and settings.delay_between_keywords > 0:
            await asyncio.sleep(settings.delay_between_keywords)

        try:
            items, source_duplicates = await crawler.crawl_sources(
                category, keyword, limit, fetcher=fetcher
            )
            collected.extend(items)
            dropped += source_duplicates
            crawl_logger.log_item_crawl(category, keyword, "multiple", len(items), True)
        except Exception as e:
            info = classify_error(e)
            crawl_logger.log_item_crawl(category, keyword, "multiple", 0, False)
            crawl_logger.log_crawl_error(
                category,
                f"키워드 크롤링 실패: {keyword}",
                e,
                {"errorType": info.type, "retryable": info.retryable},
            )

    return collected, dropped


async def run_category(
    category: str,
    limit: int,
    database: Database,
    fetcher: Optional[HttpFetcher] = None,
) -> CategoryResult:
    """
    Run the full pipeline for one category.

    Never raises: failures are classified and returned in ``error``. Pack
    upsert, item save and prompt linking happen in one transaction, so a
    failure in any of them leaves no partial pack behind.
    """
    crawl_logger.log_crawl_start(category, {"limit": limit})

    try:
        trend_keywords = await keyword_collector.collect_trend_keywords(category, fetcher=fetcher)
        if not trend_keywords:
            crawl_logger.log_crawl_warn(category, "키워드 수집 실패: 키워드가 없습니다")
            return CategoryResult(error="No keywords collected")

        crawl_logger.log_keyword_collection(
            category, trend_keywords[0].keyword, len(trend_keywords)
        )

        selected = [kw.keyword for kw in trend_keywords[: settings.max_keywords_per_category]]
        raw_items, source_duplicates = await _crawl_keywords(category, selected, limit, fetcher)

        items = dedupe_by_url(raw_items)
        duplicates = source_duplicates + len(raw_items) - len(items)
        if duplicates:
            logger.info(f"[{category}] Dropped {duplicates} duplicate URLs")

        await _improve_summaries(category, items)

        if items:
            average = sum(calculate_quality_score(item) for item in items) / len(items)
            crawl_logger.log_crawl_info(
                category, f"평균 품질 점수: {average:.1f}", {"averageQuality": round(average, 1)}
            )

        summary = generate_trend_pack_summary(trend_keywords, len(items))

        async with database.transaction():
            pack_id = await create_current_week_trend_pack(database, category, trend_keywords, summary)
            save_result = await save_scraped_items(database, pack_id, items)
            prompts_linked = await link_prompts_to_pack(database, pack_id, category)

        skipped = save_result.skipped + duplicates
        crawl_logger.log_crawl_success(category, f"트렌드 패키지 생성 완료: {pack_id}")
        crawl_logger.log_item_save(category, save_result.saved, skipped)
        crawl_logger.log_crawl_success(category, f"프롬프트 연결 완료: {prompts_linked}개")

        return CategoryResult(
            pack_id=pack_id,
            keywords=len(trend_keywords),
            items_crawled=len(items),
            items_saved=save_result.saved,
            items_skipped=skipped,
            prompts_linked=prompts_linked,
        )

    except Exception as e:
        info = classify_error(e)
        crawl_logger.log_crawl_error(
            category,
            f"카테고리 처리 실패: {info.message}",
            e,
            {"errorType": info.type, "retryable": info.retryable},
        )
        return CategoryResult(error=f"{info.type}: {info.message}")


async def run_crawl(
    categories: Iterable[str],
    limit: int,
    database: Database,
    fetcher: Optional[HttpFetcher] = None,
) -> CrawlRunResult:
    """
    Run the pipeline for each category in order.

    Raises CrawlAlreadyRunning if another run holds the lock.
    """
    if _run_lock.locked():
        raise CrawlAlreadyRunning("A crawl run is already in progress")

    async with _run_lock:
        started = time.monotonic()
        result = CrawlRunResult()

        for category in categories:
            result.results[category] = await run_category(category, limit, database, fetcher)

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Crawl run finished in {result.duration_ms}ms: {result.summary}")
        return result
