"""Per-source scraper adapters.

Each upstream page has its own selector set. Adapters share one parsing
routine and override only what differs, so a markup change on one site is
fixed in one place and can be tested against a saved HTML fixture.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .fetcher import HttpFetcher
from .models import ScrapedItemData, SourceType
from .parser import (
    extract_domain,
    extract_summary,
    extract_tags,
    normalize_text,
    strip_article_noise,
)
from .processor import extract_structured_data

logger = logging.getLogger(__name__)

# Selectors tried in order when reading a full news article
ARTICLE_BODY_SELECTORS = [
    "#articleBodyContents",
    ".article_body",
    ".article-body",
    "#articleBody",
    ".news_end_body",
    "#dic_area",
]

MAX_ENRICHED_ARTICLES = 5


@dataclass(frozen=True)
class Selectors:
    """CSS selectors describing one result list."""

    item: str
    title: str
    link: Optional[str] = None
    summary: Optional[str] = None
    meta: tuple = ()


class Source:
    """Base adapter: search page → list of ScrapedItemData."""

    name: str = ""
    source_type: SourceType = "news"
    search_url: str = ""
    base_url: str = ""
    default_domain: str = ""
    selectors: Selectors = Selectors(item="", title="")
    # Category whose structured extractor runs over each result element
    structured_category: Optional[str] = None

    def build_params(self, keyword: str, limit: int) -> Dict[str, str]:
        return {"query": keyword}

    async def fetch_items(
        self, fetcher: HttpFetcher, keyword: str, limit: int, category: str
    ) -> List[ScrapedItemData]:
        html = await fetcher.fetch_html(self.search_url, self.build_params(keyword, limit))
        items = self.parse(html, limit, category)
        logger.debug(f"[{self.name}] '{keyword}': {len(items)} items")
        return items

    def parse(self, html: str, limit: int, category: str = "") -> List[ScrapedItemData]:
        soup = BeautifulSoup(html, "html.parser")
        items: List[ScrapedItemData] = []

        for el in soup.select(self.selectors.item):
            if len(items) >= limit:
                break

            title_el = el.select_one(self.selectors.title)
            if title_el is None:
                continue
            title = normalize_text(title_el.get_text())
            url = self._resolve_link(el, title_el)
            summary = self._summary(el, title)

            if not (title and url and summary):
                continue

            items.append(
                ScrapedItemData(
                    source_domain=extract_domain(url) or self.default_domain,
                    source_type=self.source_type,
                    url=url,
                    title=title,
                    summary=summary[:500],
                    tags=extract_tags(title, summary),
                    extracted_data=self.extract_data(el, category),
                )
            )

        return items

    def _resolve_link(self, el: Tag, title_el: Tag) -> str:
        link_el = el.select_one(self.selectors.link) if self.selectors.link else title_el
        if link_el is not None and link_el.name != "a":
            link_el = link_el.find("a") or link_el.find_parent("a")
        href = link_el.get("href") if link_el is not None else None
        if not href:
            return ""
        return urljoin(self.base_url, href.strip())

    def _summary(self, el: Tag, title: str) -> str:
        if self.selectors.summary:
            summary_el = el.select_one(self.selectors.summary)
            if summary_el is not None:
                text = normalize_text(summary_el.get_text())
                if text:
                    return text

        # Listing pages often have no description; compose one from metadata
        parts = [title]
        for selector in self.selectors.meta:
            meta_el = el.select_one(selector)
            if meta_el is not None:
                text = normalize_text(meta_el.get_text())
                if text:
                    parts.append(text)
        return " · ".join(parts) if len(parts) > 1 else ""

    def extract_data(self, el: Tag, category: str) -> Dict[str, Any]:
        if self.structured_category:
            return extract_structured_data(str(el), self.structured_category)
        return {}


class NaverNewsSource(Source):
    """News search; additionally enriches the first articles from their pages."""

    name = "naver_news"
    source_type = "news"
    search_url = "https://search.naver.com/search.naver"
    base_url = "https://search.naver.com/"
    default_domain = "naver.com"
    selectors = Selectors(
        item=".news_wrap",
        title=".news_tit",
        summary=".news_dsc",
    )

    def build_params(self, keyword: str, limit: int) -> Dict[str, str]:
        return {
            "where": "news",
            "query": keyword,
            "sm": "tab_opt",
            "start": "1",
            "display": str(limit),
        }

    def extract_data(self, el: Tag, category: str) -> Dict[str, Any]:
        press = el.select_one(".press")
        info = el.select_one(".info")
        return {
            "source": normalize_text(press.get_text()) if press else "",
            "date": normalize_text(info.get_text()) if info else "",
        }

    async def fetch_items(
        self, fetcher: HttpFetcher, keyword: str, limit: int, category: str
    ) -> List[ScrapedItemData]:
        items = await super().fetch_items(fetcher, keyword, limit, category)

        for item in items[:MAX_ENRICHED_ARTICLES]:
            try:
                article = await parse_news_article(fetcher, item.url)
            except Exception as e:
                logger.warning(f"Failed to parse article {item.url}: {e}")
                continue
            if article:
                item.summary = article["summary"] or item.summary
                item.tags = list(dict.fromkeys(item.tags + article["tags"]))

        return items


class NaverShoppingSource(Source):
    name = "naver_shopping"
    source_type = "market"
    search_url = "https://search.shopping.naver.com/search/all"
    base_url = "https://search.shopping.naver.com/"
    default_domain = "shopping.naver.com"
    selectors = Selectors(
        item=".product_item, .basicList_item",
        title=".product_title a, .basicList_title a, .product_link",
        summary=".product_desc, .basicList_desc",
        meta=(".price_num, .price", ".product_mall, .basicList_mall"),
    )
    structured_category = "product"

    def build_params(self, keyword: str, limit: int) -> Dict[str, str]:
        return {"query": keyword, "pagingSize": str(limit), "sort": "rel"}


class CoupangSource(Source):
    name = "coupang"
    source_type = "market"
    search_url = "https://www.coupang.com/np/search"
    base_url = "https://www.coupang.com/"
    default_domain = "coupang.com"
    selectors = Selectors(
        item="li.search-product",
        title=".name",
        link="a.search-product-link",
        meta=(".price-value", ".rating", ".rating-total-count"),
    )
    structured_category = "product"

    def build_params(self, keyword: str, limit: int) -> Dict[str, str]:
        return {"q": keyword, "listSize": str(max(limit, 36))}


class NaverRealEstateSource(Source):
    name = "naver_real_estate"
    source_type = "listing"
    search_url = "https://land.naver.com/search/search.naver"
    base_url = "https://land.naver.com/"
    default_domain = "land.naver.com"
    selectors = Selectors(
        item=".item, .list_item, .article_item",
        title=".title, .item_title",
        summary=".desc, .summary",
        meta=(".location, .item-location", ".price, .item-price", ".area, .size"),
    )
    structured_category = "real_estate"


class NaverStockSource(Source):
    name = "naver_stock"
    source_type = "market"
    search_url = "https://finance.naver.com/news/news_search.naver"
    base_url = "https://finance.naver.com/"
    default_domain = "finance.naver.com"
    selectors = Selectors(
        item=".newsList li, .news_list li",
        title=".articleSubject a, .tit a",
        summary=".articleSummary, .summary",
    )
    structured_category = "stock"

    def build_params(self, keyword: str, limit: int) -> Dict[str, str]:
        return {"q": keyword}


class NaverBlogSource(Source):
    name = "naver_blog"
    source_type = "blog"
    search_url = "https://search.naver.com/search.naver"
    base_url = "https://search.naver.com/"
    default_domain = "blog.naver.com"
    selectors = Selectors(
        item=".view_wrap, .total_wrap, .bx",
        title=".title_link, .api_txt_lines.total_tit",
        summary=".dsc_link, .api_txt_lines.dsc_txt",
    )
    structured_category = "blog"

    def build_params(self, keyword: str, limit: int) -> Dict[str, str]:
        return {"where": "blog", "query": keyword, "sm": "tab_opt"}


SOURCES: Dict[str, Source] = {
    source.name: source
    for source in (
        NaverNewsSource(),
        NaverShoppingSource(),
        CoupangSource(),
        NaverRealEstateSource(),
        NaverStockSource(),
        NaverBlogSource(),
    )
}


def get_source(name: str) -> Optional[Source]:
    return SOURCES.get(name)


async def parse_news_article(fetcher: HttpFetcher, url: str) -> Optional[Dict[str, Any]]:
    """Fetch a news article and return its extractive summary and tags."""
    html = await fetcher.fetch_html(url)
    soup = BeautifulSoup(html, "html.parser")

    content = ""
    for selector in ARTICLE_BODY_SELECTORS:
        body = soup.select_one(selector)
        if body is not None:
            for tag in body(["script", "style", "noscript"]):
                tag.decompose()
            content = body.get_text(" ")
            break

    if not content:
        return None

    content = strip_article_noise(content)
    return {
        "summary": extract_summary(content, 300),
        "tags": extract_tags("", content),
    }
