"""FastAPI application: crawl trigger, crawl status, trend pack and prompt reads."""

import logging
import math
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__, pipeline
from .config import VALID_CATEGORIES, settings
from .crawl_logger import crawl_logger
from .database import Database, db
from .fetcher import close_fetcher
from .models import PromptTemplate, ScrapedItem, TrendPack
from .prompts import extract_variables

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MIN_LIMIT, MAX_LIMIT = 1, 50

STATUS_CODES = {
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "BAD_REQUEST": 400,
    "CONFLICT": 409,
    "INTERNAL_ERROR": 500,
}

DEFAULT_MESSAGES = {
    "UNAUTHORIZED": "인증이 필요합니다",
    "FORBIDDEN": "접근 권한이 없습니다",
    "NOT_FOUND": "요청한 리소스를 찾을 수 없습니다",
    "BAD_REQUEST": "잘못된 요청입니다",
    "CONFLICT": "리소스 충돌이 발생했습니다",
    "INTERNAL_ERROR": "서버 오류가 발생했습니다",
}


class APIError(Exception):
    """Raised by handlers and dependencies to return an error envelope."""

    def __init__(self, code: str, message: Optional[str] = None, details: Any = None):
        super().__init__(message or DEFAULT_MESSAGES[code])
        self.code = code
        self.message = message or DEFAULT_MESSAGES[code]
        self.details = details


def error_response(code: str, message: Optional[str] = None, details: Any = None) -> JSONResponse:
    body: Dict[str, Any] = {
        "success": False,
        "error": message or DEFAULT_MESSAGES[code],
        "code": code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=STATUS_CODES.get(code, 500), content=body)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await db.connect()
    yield
    await close_fetcher()
    await db.close()


app = FastAPI(title="Trend Pack Crawler", version=__version__, lifespan=lifespan)

_start_time = datetime.now(timezone.utc)


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    return error_response(exc.code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response("BAD_REQUEST", details=[err.get("msg") for err in exc.errors()])


async def get_db() -> Database:
    return db


async def require_api_key(authorization: Optional[str] = Header(default=None)) -> None:
    """Bearer check against INTERNAL_API_KEY; open when no key is configured."""
    if settings.internal_api_key and authorization != f"Bearer {settings.internal_api_key}":
        raise APIError("UNAUTHORIZED")


def clamp_limit(value: Any) -> int:
    # bool is an int subclass but not a valid limit; NaN and infinities parse from JSON
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return DEFAULT_LIMIT
    if not math.isfinite(value):
        return DEFAULT_LIMIT
    return int(min(max(value, MIN_LIMIT), MAX_LIMIT))


async def parse_run_request(request: Request) -> Dict[str, Any]:
    """Read ``{categories?, limit?}``; anything malformed falls back to defaults."""
    categories: List[str] = list(VALID_CATEGORIES)
    limit = DEFAULT_LIMIT

    try:
        body = await request.json()
    except Exception:
        body = {}

    if isinstance(body, dict):
        requested = body.get("categories")
        if isinstance(requested, list):
            categories = [c for c in requested if c in VALID_CATEGORIES]
        limit = clamp_limit(body.get("limit"))

    return {"categories": categories, "limit": limit}


@app.post("/api/crawl/run", dependencies=[Depends(require_api_key)])
async def run_crawl(request: Request, database: Database = Depends(get_db)):
    """Run the crawl pipeline for the requested categories."""
    params = await parse_run_request(request)

    if pipeline.is_running():
        raise APIError("CONFLICT", "이미 크롤링이 실행 중입니다")

    try:
        result = await pipeline.run_crawl(params["categories"], params["limit"], database)
    except pipeline.CrawlAlreadyRunning:
        raise APIError("CONFLICT", "이미 크롤링이 실행 중입니다")
    except Exception as e:
        logger.error(f"Error in crawl run: {e}")
        raise APIError("INTERNAL_ERROR", str(e) or None)

    return {
        "success": True,
        "message": "크롤링이 완료되었습니다",
        "duration": f"{result.duration_ms}ms",
        "results": {
            category: r.model_dump(by_alias=True, exclude_none=True)
            | {"packId": r.pack_id}
            for category, r in result.results.items()
        },
        "summary": result.summary,
    }


def _success_rate(crawled: int, errors: int) -> float:
    total = crawled + errors
    return round(crawled / total * 100, 2) if total else 0.0


@app.get("/api/crawl/status")
async def crawl_status(database: Database = Depends(get_db)):
    """Last run times, totals and in-memory per-category statistics."""
    try:
        recent_packs = await database.get_recent_packs(10)
        db_stats = await database.get_stats()
    except Exception as e:
        logger.error(f"Error in crawl status: {e}")
        raise APIError("INTERNAL_ERROR")

    last_run_at = None
    last_success_at = None
    if recent_packs:
        last_run_at = recent_packs[0]["generated_at"] or recent_packs[0]["created_at"]
        published = next((p for p in recent_packs if p["status"] == "published"), None)
        if published:
            last_success_at = published["generated_at"] or published["created_at"]

    recent_logs = crawl_logger.get_logs(50)
    errors = [entry for entry in recent_logs if entry.level == "error"]
    last_error = errors[-1].message if errors else None

    category_stats = {}
    for category, stats in crawl_logger.get_stats().items():
        category_stats[category] = {
            "lastRunAt": (stats.end_time or stats.start_time).isoformat(),
            "keywordsCollected": stats.keywords_collected,
            "itemsCrawled": stats.items_crawled,
            "itemsSaved": stats.items_saved,
            "itemsSkipped": stats.items_skipped,
            "errors": stats.errors,
            "warnings": stats.warnings,
            "successRate": _success_rate(stats.items_crawled, stats.errors),
        }

    return {
        "success": True,
        "status": {
            "lastRunAt": last_run_at,
            "lastSuccessAt": last_success_at,
            "lastError": last_error,
            "totalItemsProcessed": db_stats["total_items"],
            "totalPacksCreated": db_stats["total_packs"],
            "isRunning": pipeline.is_running(),
        },
        "statistics": {
            "totalPacks": db_stats["total_packs"],
            "totalItems": db_stats["total_items"],
            "categoryCounts": db_stats["category_counts"],
            "categoryStats": category_stats,
            "recentPacks": [
                {
                    "id": p["id"],
                    "generatedAt": p["generated_at"] or p["created_at"],
                    "status": p["status"],
                }
                for p in recent_packs[:5]
            ],
            "recentLogs": [
                {
                    "timestamp": entry.timestamp.isoformat(),
                    "level": entry.level,
                    "category": entry.category,
                    "message": entry.message,
                }
                for entry in recent_logs[-10:]
            ],
        },
    }


def _pagination(limit: int, offset: int, total: int) -> Dict[str, Any]:
    return {
        "page": offset // limit + 1,
        "limit": limit,
        "offset": offset,
        "total": total,
        "totalPages": -(-total // limit),
        "hasNextPage": offset + limit < total,
        "hasPreviousPage": offset > 0,
    }


@app.get("/api/trends", dependencies=[Depends(require_api_key)])
async def list_trends(
    category: Optional[str] = None,
    week_key: Optional[str] = None,
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    database: Database = Depends(get_db),
):
    """Published trend packs, newest first."""
    if category and category not in VALID_CATEGORIES:
        raise APIError("BAD_REQUEST", "Invalid category", {"validCategories": list(VALID_CATEGORIES)})

    limit = min(limit, 100)
    packs, total = await database.list_trend_packs(
        status="published", category=category, week_key=week_key, limit=limit, offset=offset
    )

    return {
        "data": [TrendPack(**p).model_dump(mode="json") for p in packs],
        "pagination": _pagination(limit, offset, total),
    }


async def _get_published_pack(database: Database, pack_id: str) -> Dict[str, Any]:
    try:
        uuid.UUID(pack_id)
    except ValueError:
        raise APIError("BAD_REQUEST", "Invalid trend pack ID format")

    pack = await database.get_trend_pack(pack_id)
    if not pack or pack["status"] != "published":
        raise APIError("NOT_FOUND", "Trend pack not found")
    return pack


@app.get("/api/trends/{pack_id}", dependencies=[Depends(require_api_key)])
async def get_trend(pack_id: str, database: Database = Depends(get_db)):
    pack = await _get_published_pack(database, pack_id)
    data = TrendPack(**pack).model_dump(mode="json")
    data["prompt_ids"] = await database.list_linked_prompt_ids(pack_id)
    return {"data": data}


@app.get("/api/trends/{pack_id}/scraped-items", dependencies=[Depends(require_api_key)])
async def get_trend_items(
    pack_id: str,
    source_type: Optional[str] = None,
    database: Database = Depends(get_db),
):
    await _get_published_pack(database, pack_id)
    rows = await database.list_scraped_items(pack_id, source_type)
    items = [ScrapedItem(**row).model_dump(mode="json") for row in rows]
    return {"data": items, "total": len(items)}


def _serialize_prompt(row: Dict[str, Any]) -> Dict[str, Any]:
    prompt = PromptTemplate(**row, variables=extract_variables(row["content"]))
    return prompt.model_dump(mode="json")


@app.get("/api/prompts")
async def list_prompts(
    category: Optional[str] = None,
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    database: Database = Depends(get_db),
):
    """Free prompt templates, newest first."""
    if category and category not in VALID_CATEGORIES:
        raise APIError("BAD_REQUEST", "Invalid category", {"validCategories": list(VALID_CATEGORIES)})

    limit = min(limit, 100)
    rows, total = await database.list_prompt_templates(
        category=category, is_free=True, limit=limit, offset=offset
    )

    return JSONResponse(
        content={
            "data": [_serialize_prompt(row) for row in rows],
            "pagination": _pagination(limit, offset, total),
        },
        headers={"Cache-Control": "public, s-maxage=3600, stale-while-revalidate=86400"},
    )


@app.get("/api/prompts/{prompt_id}")
async def get_prompt(
    prompt_id: str,
    authorization: Optional[str] = Header(default=None),
    database: Database = Depends(get_db),
):
    """Free prompts are public; paid ones need the bearer key."""
    try:
        uuid.UUID(prompt_id)
    except ValueError:
        raise APIError("BAD_REQUEST", "Invalid prompt ID format")

    row = await database.get_prompt_template(prompt_id)
    if not row:
        raise APIError("NOT_FOUND", "Prompt not found")

    if not row["is_free"]:
        await require_api_key(authorization)

    return {"data": _serialize_prompt(row)}


@app.get("/healthz")
async def healthcheck(database: Database = Depends(get_db)):
    """Health check endpoint for container orchestration."""
    uptime_seconds = (datetime.now(timezone.utc) - _start_time).total_seconds()

    db_healthy = True
    try:
        await database.get_stats()
    except Exception as e:
        db_healthy = False
        logger.error(f"Database health check failed: {e}")

    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "uptime_seconds": int(uptime_seconds),
        "database": "connected" if db_healthy else "disconnected",
        "crawler_enabled": settings.crawler_enabled,
        "is_running": pipeline.is_running(),
    }
