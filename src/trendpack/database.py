"""SQLite database layer with WAL mode.

Mirrors the hosted schema used by the web application: ``trend_packs``,
``scraped_items``, ``pack_prompts`` and the read-mostly ``prompt_templates``.
Array and map columns are stored as JSON text; ids are uuid4 strings.
"""

import aiosqlite
import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from .config import settings
from .models import ScrapedItemData

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _decode_pack(row: aiosqlite.Row) -> Dict[str, Any]:
    pack = dict(row)
    pack["trend_keywords"] = json.loads(pack.get("trend_keywords") or "[]")
    return pack


def _decode_item(row: aiosqlite.Row) -> Dict[str, Any]:
    item = dict(row)
    item["tags"] = json.loads(item.get("tags") or "[]")
    item["extracted_data"] = json.loads(item.get("extracted_data") or "{}")
    return item


class Database:
    """Async SQLite database manager."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or settings.database_path
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self._tx_lock = asyncio.Lock()
        self._in_transaction = False

    async def connect(self) -> None:
        """Initialize database connection and create tables."""
        db_dir = Path(self.db_path).parent
        db_dir.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.execute("PRAGMA foreign_keys=ON")

        await self._create_tables()
        logger.info(f"Database connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        async with self._lock:
            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS prompt_templates (
                    id TEXT PRIMARY KEY,
                    category TEXT NOT NULL,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    description TEXT,
                    is_free INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS trend_packs (
                    id TEXT PRIMARY KEY,
                    week_key TEXT NOT NULL,
                    category TEXT NOT NULL,
                    title TEXT NOT NULL,
                    summary TEXT NOT NULL,
                    trend_keywords TEXT NOT NULL DEFAULT '[]',
                    status TEXT NOT NULL DEFAULT 'draft',
                    generated_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(week_key, category)
                )
            """)

            # (pack_id, url) uniqueness is enforced by the application
            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS scraped_items (
                    id TEXT PRIMARY KEY,
                    pack_id TEXT NOT NULL REFERENCES trend_packs(id) ON DELETE CASCADE,
                    source_domain TEXT NOT NULL,
                    source_type TEXT NOT NULL,
                    url TEXT NOT NULL,
                    title TEXT NOT NULL,
                    summary TEXT NOT NULL,
                    tags TEXT NOT NULL DEFAULT '[]',
                    extracted_data TEXT NOT NULL DEFAULT '{}',
                    scraped_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS pack_prompts (
                    id TEXT PRIMARY KEY,
                    pack_id TEXT NOT NULL REFERENCES trend_packs(id) ON DELETE CASCADE,
                    prompt_id TEXT NOT NULL REFERENCES prompt_templates(id),
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """)

            await self._connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_scraped_items_pack
                ON scraped_items(pack_id, url)
            """)
            await self._connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_pack_prompts_pack
                ON pack_prompts(pack_id)
            """)
            await self._connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_prompt_templates_category
                ON prompt_templates(category, is_free)
            """)

            await self._connection.commit()
            logger.info("Database tables created/verified")

    async def _commit(self) -> None:
        # Inside transaction() the outer block decides
        if not self._in_transaction:
            await self._connection.commit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["Database"]:
        """
        Group several writes into one transaction.

        Commits when the block exits normally and rolls back every write made
        inside it when the block raises.
        """
        async with self._tx_lock:
            async with self._lock:
                await self._connection.execute("BEGIN")
            self._in_transaction = True
            try:
                yield self
            except BaseException:
                self._in_transaction = False
                await self._connection.rollback()
                raise
            self._in_transaction = False
            await self._connection.commit()

    # ---------- trend_packs ----------

    async def get_pack_by_week_category(self, week_key: str, category: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            cursor = await self._connection.execute(
                "SELECT * FROM trend_packs WHERE week_key = ? AND category = ?",
                (week_key, category),
            )
            row = await cursor.fetchone()
        return _decode_pack(row) if row else None

    async def get_trend_pack(self, pack_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            cursor = await self._connection.execute(
                "SELECT * FROM trend_packs WHERE id = ?", (pack_id,)
            )
            row = await cursor.fetchone()
        return _decode_pack(row) if row else None

    async def insert_trend_pack(
        self,
        week_key: str,
        category: str,
        title: str,
        summary: str,
        trend_keywords: Sequence[str],
        status: str = "published",
    ) -> str:
        """Insert a trend pack and return its id."""
        pack_id = _new_id()
        now = _now()
        async with self._lock:
            await self._connection.execute(
                """
                INSERT INTO trend_packs
                (id, week_key, category, title, summary, trend_keywords,
                 status, generated_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    pack_id, week_key, category, title, summary,
                    json.dumps(list(trend_keywords), ensure_ascii=False),
                    status, now, now, now,
                ),
            )
            await self._commit()
        return pack_id

    async def update_trend_pack(
        self,
        pack_id: str,
        title: str,
        summary: str,
        trend_keywords: Sequence[str],
        status: str = "published",
    ) -> None:
        now = _now()
        async with self._lock:
            cursor = await self._connection.execute(
                """
                UPDATE trend_packs
                SET title = ?, summary = ?, trend_keywords = ?, status = ?,
                    generated_at = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    title, summary,
                    json.dumps(list(trend_keywords), ensure_ascii=False),
                    status, now, now, pack_id,
                ),
            )
            await self._commit()
        if cursor.rowcount == 0:
            raise LookupError(f"Trend pack not found: {pack_id}")

    async def list_trend_packs(
        self,
        status: Optional[str] = "published",
        category: Optional[str] = None,
        week_key: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Return a page of packs (newest first) and the total match count."""
        clauses, params = [], []
        for column, value in (("status", status), ("category", category), ("week_key", week_key)):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        async with self._lock:
            cursor = await self._connection.execute(
                f"SELECT COUNT(*) FROM trend_packs {where}", params
            )
            total = (await cursor.fetchone())[0]
            cursor = await self._connection.execute(
                f"SELECT * FROM trend_packs {where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            )
            rows = await cursor.fetchall()
        return [_decode_pack(r) for r in rows], total

    async def get_recent_packs(self, limit: int = 10) -> List[Dict[str, Any]]:
        async with self._lock:
            cursor = await self._connection.execute(
                """
                SELECT id, category, week_key, status, generated_at, created_at
                FROM trend_packs
                ORDER BY COALESCE(generated_at, created_at) DESC
                LIMIT ?
                """,
                (limit,),
            )
            rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def get_stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        async with self._lock:
            stats: Dict[str, Any] = {}

            cursor = await self._connection.execute(
                "SELECT COUNT(*) FROM trend_packs WHERE status = 'published'"
            )
            stats["total_packs"] = (await cursor.fetchone())[0]

            cursor = await self._connection.execute("SELECT COUNT(*) FROM scraped_items")
            stats["total_items"] = (await cursor.fetchone())[0]

            cursor = await self._connection.execute(
                "SELECT category, COUNT(*) FROM trend_packs WHERE status = 'published' GROUP BY category"
            )
            stats["category_counts"] = {row[0]: row[1] for row in await cursor.fetchall()}

            return stats

    # ---------- scraped_items ----------

    async def list_scraped_urls(self, pack_id: str) -> List[str]:
        async with self._lock:
            cursor = await self._connection.execute(
                "SELECT url FROM scraped_items WHERE pack_id = ?", (pack_id,)
            )
            rows = await cursor.fetchall()
        return [r[0] for r in rows]

    @staticmethod
    def _item_row(pack_id: str, item: ScrapedItemData, scraped_at: str) -> tuple:
        return (
            _new_id(), pack_id, item.source_domain, item.source_type, item.url,
            item.title, item.summary,
            json.dumps(item.tags or [], ensure_ascii=False),
            json.dumps(item.extracted_data or {}, ensure_ascii=False),
            scraped_at, scraped_at,
        )

    async def _insert_items(self, rows: List[tuple]) -> None:
        # Savepoint keeps a failed batch from leaving partial rows behind
        await self._connection.execute("SAVEPOINT insert_items")
        try:
            await self._connection.executemany(
                """
                INSERT INTO scraped_items
                (id, pack_id, source_domain, source_type, url, title, summary,
                 tags, extracted_data, scraped_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        except Exception:
            await self._connection.execute("ROLLBACK TO SAVEPOINT insert_items")
            await self._connection.execute("RELEASE SAVEPOINT insert_items")
            raise
        await self._connection.execute("RELEASE SAVEPOINT insert_items")

    async def insert_scraped_items(self, pack_id: str, items: Sequence[ScrapedItemData]) -> int:
        """Insert all items in one batch; raises without writing anything on failure."""
        scraped_at = _now()
        rows = [self._item_row(pack_id, item, scraped_at) for item in items]
        async with self._lock:
            await self._insert_items(rows)
            await self._commit()
        return len(rows)

    async def insert_scraped_item(self, pack_id: str, item: ScrapedItemData) -> str:
        row = self._item_row(pack_id, item, _now())
        async with self._lock:
            await self._insert_items([row])
            await self._commit()
        return row[0]

    async def count_scraped_items(self, pack_id: Optional[str] = None) -> int:
        async with self._lock:
            if pack_id is None:
                cursor = await self._connection.execute("SELECT COUNT(*) FROM scraped_items")
            else:
                cursor = await self._connection.execute(
                    "SELECT COUNT(*) FROM scraped_items WHERE pack_id = ?", (pack_id,)
                )
            return (await cursor.fetchone())[0]

    async def delete_scraped_items(self, pack_id: str) -> int:
        async with self._lock:
            cursor = await self._connection.execute(
                "DELETE FROM scraped_items WHERE pack_id = ?", (pack_id,)
            )
            await self._commit()
            return cursor.rowcount

    async def list_scraped_items(
        self, pack_id: str, source_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM scraped_items WHERE pack_id = ?"
        params: List[Any] = [pack_id]
        if source_type:
            sql += " AND source_type = ?"
            params.append(source_type)
        sql += " ORDER BY scraped_at DESC, rowid ASC"
        async with self._lock:
            cursor = await self._connection.execute(sql, params)
            rows = await cursor.fetchall()
        return [_decode_item(r) for r in rows]

    # ---------- prompt_templates / pack_prompts ----------

    async def insert_prompt_template(
        self,
        category: str,
        title: str,
        content: str,
        is_free: bool = False,
        description: Optional[str] = None,
        prompt_id: Optional[str] = None,
    ) -> str:
        prompt_id = prompt_id or _new_id()
        now = _now()
        async with self._lock:
            await self._connection.execute(
                """
                INSERT INTO prompt_templates
                (id, category, title, content, description, is_free, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (prompt_id, category, title, content, description, int(is_free), now, now),
            )
            await self._commit()
        return prompt_id

    async def get_prompt_template(self, prompt_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            cursor = await self._connection.execute(
                "SELECT * FROM prompt_templates WHERE id = ?", (prompt_id,)
            )
            row = await cursor.fetchone()
        return dict(row) if row else None

    async def list_prompt_templates(
        self,
        category: Optional[str] = None,
        is_free: bool = True,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Return a page of templates (newest first) and the total match count."""
        where = "WHERE is_free = ?"
        params: List[Any] = [int(is_free)]
        if category is not None:
            where += " AND category = ?"
            params.append(category)

        async with self._lock:
            cursor = await self._connection.execute(
                f"SELECT COUNT(*) FROM prompt_templates {where}", params
            )
            total = (await cursor.fetchone())[0]
            cursor = await self._connection.execute(
                f"""
                SELECT * FROM prompt_templates {where}
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (*params, limit, offset),
            )
            rows = await cursor.fetchall()
        return [dict(r) for r in rows], total

    async def list_prompt_ids(self, category: str, is_free: bool = False) -> List[str]:
        async with self._lock:
            cursor = await self._connection.execute(
                """
                SELECT id FROM prompt_templates
                WHERE category = ? AND is_free = ?
                ORDER BY created_at, rowid
                """,
                (category, int(is_free)),
            )
            rows = await cursor.fetchall()
        return [r[0] for r in rows]

    async def list_linked_prompt_ids(self, pack_id: str) -> List[str]:
        async with self._lock:
            cursor = await self._connection.execute(
                "SELECT prompt_id FROM pack_prompts WHERE pack_id = ? ORDER BY sort_order",
                (pack_id,),
            )
            rows = await cursor.fetchall()
        return [r[0] for r in rows]

    async def insert_pack_prompts(self, pack_id: str, links: Sequence[Tuple[str, int]]) -> None:
        """Insert (prompt_id, sort_order) links for a pack."""
        now = _now()
        async with self._lock:
            await self._connection.executemany(
                """
                INSERT INTO pack_prompts (id, pack_id, prompt_id, sort_order, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [(_new_id(), pack_id, prompt_id, order, now) for prompt_id, order in links],
            )
            await self._commit()


# Global database instance
db = Database()
