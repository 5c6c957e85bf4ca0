"""In-process crawl run logger.

Keeps per-category counters and the last 100 structured entries for the
status endpoint. Both live in memory only and reset on restart; every entry
is also emitted on the ``trendpack.crawl`` logger.
"""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from .models import CrawlLogEntry, CrawlLogLevel, CrawlStats

MAX_LOGS = 100

_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

stream_logger = logging.getLogger("trendpack.crawl")


class CrawlLogger:
    """Run statistics and recent log entries for the current process."""

    def __init__(self, max_logs: int = MAX_LOGS):
        self.stats: Dict[str, CrawlStats] = {}
        self.logs: Deque[CrawlLogEntry] = deque(maxlen=max_logs)

    def _save(
        self,
        level: CrawlLogLevel,
        message: str,
        category: Optional[str] = None,
        keyword: Optional[str] = None,
        source: Optional[str] = None,
        error: Optional[BaseException] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CrawlLogEntry:
        entry = CrawlLogEntry(
            timestamp=datetime.now(timezone.utc),
            level=level,
            message=message,
            category=category,
            keyword=keyword,
            source=source,
            error=str(error) if error is not None else None,
            metadata=metadata,
        )
        self.logs.append(entry)

        prefix = "".join(f"[{part}] " for part in (category, keyword, source) if part)
        suffix = f" - {entry.error}" if entry.error else ""
        stream_logger.log(
            _LEVELS[level],
            f"{prefix}{message}{suffix}",
            extra={"crawl": entry.model_dump(mode="json")},
        )
        return entry

    def log_crawl_start(self, category: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Start a fresh stats record for ``category``."""
        self.stats[category] = CrawlStats(category=category, start_time=datetime.now(timezone.utc))
        self._save("info", f"크롤링 시작: {category}", category=category, metadata=metadata)

    def log_crawl_success(
        self, category: str, message: str, metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        stats = self.stats.get(category)
        if stats:
            stats.end_time = datetime.now(timezone.utc)
        self._save("success", message, category=category, metadata=metadata)

    def log_crawl_error(
        self,
        category: str,
        message: str,
        error: Optional[BaseException] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        stats = self.stats.get(category)
        if stats:
            stats.errors += 1
        self._save("error", message, category=category, error=error, metadata=metadata)

    def log_crawl_warn(
        self, category: str, message: str, metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        stats = self.stats.get(category)
        if stats:
            stats.warnings += 1
        self._save("warn", message, category=category, metadata=metadata)

    def log_crawl_info(
        self, category: str, message: str, metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        self._save("info", message, category=category, metadata=metadata)

    def log_keyword_collection(
        self, category: str, keyword: str, count: int, source: Optional[str] = None
    ) -> None:
        stats = self.stats.get(category)
        if stats:
            stats.keywords_collected = count
        self._save(
            "info",
            f"키워드 수집: {count}개",
            category=category,
            keyword=keyword,
            source=source,
            metadata={"count": count},
        )

    def log_item_crawl(
        self, category: str, keyword: str, source: str, count: int, success: bool
    ) -> None:
        stats = self.stats.get(category)
        if stats:
            if success:
                stats.items_crawled += count
            else:
                stats.errors += 1
        self._save(
            "success" if success else "error",
            f"아이템 크롤링: {count}개",
            category=category,
            keyword=keyword,
            source=source,
            metadata={"count": count, "success": success},
        )

    def log_item_save(self, category: str, saved: int, skipped: int) -> None:
        stats = self.stats.get(category)
        if stats:
            stats.items_saved += saved
            stats.items_skipped += skipped
        self._save(
            "success",
            f"아이템 저장: {saved}개 저장, {skipped}개 스킵",
            category=category,
            metadata={"saved": saved, "skipped": skipped},
        )

    def get_stats(self, category: Optional[str] = None):
        """Stats for one category (zeroed if unseen), or a copy of all of them."""
        if category is not None:
            return self.stats.get(category) or CrawlStats(
                category=category, start_time=datetime.now(timezone.utc)
            )
        return dict(self.stats)

    def get_logs(self, limit: Optional[int] = None) -> List[CrawlLogEntry]:
        logs = list(self.logs)
        if limit:
            return logs[-limit:]
        return logs

    def reset_stats(self, category: Optional[str] = None) -> None:
        if category is not None:
            self.stats.pop(category, None)
        else:
            self.stats.clear()


# Global crawl logger instance
crawl_logger = CrawlLogger()
