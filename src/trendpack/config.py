"""Configuration settings using Pydantic."""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Dict, List, Optional


VALID_CATEGORIES = ("product", "real_estate", "stock", "blog", "shorts", "reels")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Rate limiting (seconds)
    delay_between_requests: float = Field(default=1.0, description="Delay between source fetches")
    delay_between_keywords: float = Field(default=2.0, description="Delay between keywords")
    max_retries: int = Field(default=3, description="Maximum retry attempts per fetch")
    retry_delay: float = Field(default=2.0, description="Initial backoff delay")
    request_timeout: float = Field(default=30.0, description="Hard timeout per request")

    # Crawl limits
    max_items_per_keyword: int = Field(default=10, description="Max items per keyword")
    max_keywords_per_category: int = Field(default=3, description="Max keywords crawled per category")
    max_items_per_category: int = Field(default=30, description="Max items per category")
    keyword_pool_size: int = Field(default=10, description="Top-N merged keywords kept")

    # Keyword scoring
    realtime_weight: float = Field(default=1.0, description="Weight of the realtime trending source")
    category_source_weight: float = Field(default=1.5, description="Weight of category-specific sources")
    news_source_weight: float = Field(default=0.5, description="Weight of the news ranking source")
    min_keyword_count: int = Field(default=5, description="Below this, fallback keywords are appended")
    realtime_rank_depth: int = Field(default=20, description="Realtime ranks considered")

    # Sources per category (comma-separated)
    product_sources: str = Field(default="naver_shopping,coupang,naver_news")
    real_estate_sources: str = Field(default="naver_real_estate,naver_news")
    stock_sources: str = Field(default="naver_stock,naver_news")
    blog_sources: str = Field(default="naver_blog,naver_news")
    shorts_sources: str = Field(default="naver_blog,naver_news")
    reels_sources: str = Field(default="naver_blog,naver_news")

    crawler_enabled: bool = Field(default=True, description="Master switch for crawling")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent for outbound requests")

    # Auth
    internal_api_key: Optional[str] = Field(default=None, description="Bearer key for the crawl trigger")

    # Summaries
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key for AI summaries")
    openai_model: str = Field(default="gpt-3.5-turbo", description="Chat model used for summaries")

    # Database
    database_path: str = Field(default="./data/trendpack.db", description="SQLite database path")

    # Server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, description="HTTP port")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")

    @property
    def category_sources(self) -> Dict[str, List[str]]:
        """Ordered source names per category."""
        return {
            "product": _split_csv(self.product_sources),
            "real_estate": _split_csv(self.real_estate_sources),
            "stock": _split_csv(self.stock_sources),
            "blog": _split_csv(self.blog_sources),
            "shorts": _split_csv(self.shorts_sources),
            "reels": _split_csv(self.reels_sources),
        }

    def sources_for(self, category: str) -> List[str]:
        return self.category_sources.get(category) or ["naver_news"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()
