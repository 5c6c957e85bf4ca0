import httpx
import pytest

from trendpack.config import settings
from trendpack.crawl_logger import crawl_logger
from trendpack.database import Database
from trendpack.fetcher import HttpFetcher


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    monkeypatch.setattr(settings, "delay_between_requests", 0.0)
    monkeypatch.setattr(settings, "delay_between_keywords", 0.0)
    monkeypatch.setattr(settings, "crawler_enabled", True)
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "internal_api_key", None)


@pytest.fixture(autouse=True)
def reset_crawl_logger():
    crawl_logger.reset_stats()
    crawl_logger.logs.clear()
    yield
    crawl_logger.reset_stats()
    crawl_logger.logs.clear()


@pytest.fixture
async def database(tmp_path):
    database = Database(str(tmp_path / "trendpack.db"))
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
async def make_fetcher():
    """Build HttpFetchers backed by an httpx.MockTransport handler."""
    fetchers = []

    def factory(handler, **kwargs):
        kwargs.setdefault("max_retries", 0)
        kwargs.setdefault("retry_delay", 0.0)
        kwargs.setdefault("sleep", no_sleep)
        fetcher = HttpFetcher(transport=httpx.MockTransport(handler), **kwargs)
        fetchers.append(fetcher)
        return fetcher

    yield factory

    for fetcher in fetchers:
        await fetcher.close()
