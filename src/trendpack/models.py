"""Pydantic data models for the crawl pipeline."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime


SourceType = Literal["news", "blog", "market", "community", "listing"]
PackStatus = Literal["draft", "published", "archived"]
CrawlLogLevel = Literal["info", "warn", "error", "success"]


class TrendKeyword(BaseModel):
    """A trending search term collected for a category."""

    keyword: str = Field(..., description="Keyword text")
    score: float = Field(default=0.0, description="Merged popularity score")
    category: str = Field(..., description="Content category")


class ScrapedItemData(BaseModel):
    """A scraped item before persistence."""

    source_domain: str = Field(default="", description="Domain of the source page")
    source_type: SourceType = Field(default="news", description="Kind of source")
    url: str = Field(default="", description="Item URL")
    title: str = Field(default="", description="Item title")
    summary: str = Field(default="", description="Item summary")
    tags: List[str] = Field(default_factory=list, description="Extracted tags")
    extracted_data: Dict[str, Any] = Field(default_factory=dict, description="Structured fields")


class TrendPack(BaseModel):
    """A weekly, per-category content package."""

    id: str
    week_key: str
    category: str
    title: str
    summary: str
    trend_keywords: List[str] = Field(default_factory=list)
    status: PackStatus = "draft"
    generated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ScrapedItem(ScrapedItemData):
    """A persisted scraped item belonging to a trend pack."""

    id: str
    pack_id: str
    scraped_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PromptTemplate(BaseModel):
    """A reusable prompt with ``{variable}`` placeholders."""

    id: str
    category: str
    title: str
    content: str
    description: Optional[str] = None
    is_free: bool = False
    variables: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SaveResult(BaseModel):
    saved: int = 0
    skipped: int = 0


class CrawlStats(BaseModel):
    """Per-category counters for the current process."""

    category: str
    start_time: datetime
    end_time: Optional[datetime] = None
    keywords_collected: int = 0
    items_crawled: int = 0
    items_saved: int = 0
    items_skipped: int = 0
    errors: int = 0
    warnings: int = 0


class CrawlLogEntry(BaseModel):
    """A structured crawl log record."""

    timestamp: datetime
    level: CrawlLogLevel
    message: str
    category: Optional[str] = None
    keyword: Optional[str] = None
    source: Optional[str] = None
    error: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class CategoryResult(BaseModel):
    """Outcome of one category in a crawl run (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pack_id: Optional[str] = None
    keywords: int = 0
    items_crawled: int = 0
    items_saved: int = 0
    items_skipped: int = 0
    prompts_linked: int = 0
    error: Optional[str] = None


class CrawlRunResult(BaseModel):
    """Outcome of a whole crawl run."""

    results: Dict[str, CategoryResult] = Field(default_factory=dict)
    duration_ms: int = 0

    @property
    def summary(self) -> Dict[str, int]:
        values = list(self.results.values())
        return {
            "categoriesProcessed": len(values),
            "totalItemsSaved": sum(r.items_saved for r in values),
            "totalItemsSkipped": sum(r.items_skipped for r in values),
            "packsCreated": sum(1 for r in values if r.pack_id is not None),
        }
