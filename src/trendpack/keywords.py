"""Trend keyword collection per category.

Keywords come from three kinds of pages: a realtime trending list, zero to
two category-specific pages and a news ranking page. Results are merged by
lower-cased text with source-dependent weights, and static per-category
lists fill in whenever collection comes up short.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from .config import settings
from .fetcher import HttpFetcher, get_fetcher
from .models import TrendKeyword
from .parser import clean_keyword, normalize_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeywordSource:
    name: str
    url: str
    selector: str


REALTIME_SOURCE = KeywordSource(
    "realtime",
    "https://signal.bz/news",
    ".rank-layer .rank-text, .realtime-rank .rank-text",
)

NEWS_RANKING_SOURCE = KeywordSource(
    "news_ranking",
    "https://news.naver.com/main/ranking/popularDay.naver",
    ".rankingnews_list .list_title, .ranking_list li a, .rank_list li a",
)

CATEGORY_KEYWORD_SOURCES: Dict[str, List[KeywordSource]] = {
    "product": [
        KeywordSource(
            "shopping_best",
            "https://search.shopping.naver.com/best/today",
            ".keyword_rank .keyword, .best_keyword li a",
        ),
        KeywordSource(
            "coupang_trending",
            "https://www.coupang.com/np/campaigns/82",
            ".trending-keyword li a, .hot-keyword a",
        ),
    ],
    "real_estate": [
        KeywordSource(
            "land_news",
            "https://land.naver.com/news/",
            ".news_list .title a, .headline_list a",
        ),
    ],
    "stock": [
        KeywordSource(
            "finance_popular",
            "https://finance.naver.com/sise/lastsearch2.naver",
            "table.type_5 a.tltle",
        ),
    ],
    "blog": [
        KeywordSource(
            "blog_hot_topics",
            "https://section.blog.naver.com/HotTopicList.naver",
            ".hot_topic .keyword, .list_hottopic .title",
        ),
    ],
    "shorts": [],
    "reels": [],
}

FALLBACK_KEYWORDS: Dict[str, List[str]] = {
    "product": ["신제품", "트렌드", "인기 상품", "베스트", "할인"],
    "real_estate": ["부동산", "아파트", "전세", "매매", "부동산 시장"],
    "stock": ["주식", "증시", "코스피", "코스닥", "투자"],
    "blog": ["블로그", "콘텐츠", "SNS", "인플루언서", "트렌드"],
    "shorts": ["숏츠", "영상", "콘텐츠", "바이럴", "트렌드"],
    "reels": ["릴스", "인스타그램", "영상", "콘텐츠", "트렌드"],
}
DEFAULT_FALLBACK = ["트렌드", "인기", "최신", "화제", "이슈"]

DEFAULT_TITLES: Dict[str, str] = {
    "product": "상품 트렌드",
    "real_estate": "부동산 트렌드",
    "stock": "주식 시장 트렌드",
    "blog": "콘텐츠 트렌드",
    "shorts": "숏츠 콘텐츠 트렌드",
    "reels": "릴스 콘텐츠 트렌드",
}


def get_fallback_keywords(category: str) -> List[TrendKeyword]:
    """Static keywords for ``category``, scored 5..1."""
    words = FALLBACK_KEYWORDS.get(category, DEFAULT_FALLBACK)
    return [
        TrendKeyword(keyword=word, score=float(len(words) - index), category=category)
        for index, word in enumerate(words)
    ]


def parse_ranked_keywords(html: str, selector: str, category: str, depth: int) -> List[TrendKeyword]:
    """Read up to ``depth`` ranked keywords; rank 1 scores ``depth``."""
    soup = BeautifulSoup(html, "html.parser")
    keywords: List[TrendKeyword] = []
    for el in soup.select(selector):
        if len(keywords) >= depth:
            break
        text = normalize_text(el.get_text())
        if len(text) <= 1:
            continue
        keywords.append(
            TrendKeyword(keyword=text, score=float(depth - len(keywords)), category=category)
        )
    return keywords


async def _fetch_source(
    fetcher: HttpFetcher, source: KeywordSource, category: str
) -> List[TrendKeyword]:
    try:
        html = await fetcher.fetch_html(source.url)
        keywords = parse_ranked_keywords(html, source.selector, category, settings.realtime_rank_depth)
    except Exception as e:
        logger.warning(f"[{category}] Keyword source '{source.name}' failed: {e}")
        return []
    logger.info(f"[{category}] Keyword source '{source.name}': {len(keywords)} keywords")
    return keywords


def merge_keywords(
    merged: Dict[str, TrendKeyword], keywords: List[TrendKeyword], weight: float
) -> None:
    """Merge into ``merged`` by lower-cased text, adding ``score × weight``."""
    for kw in keywords:
        key = kw.keyword.lower()
        if key in merged:
            merged[key].score += kw.score * weight
        else:
            merged[key] = TrendKeyword(keyword=kw.keyword, score=kw.score * weight, category=kw.category)


def _fill_with_fallback(keywords: List[TrendKeyword], category: str) -> List[TrendKeyword]:
    present = {kw.keyword.lower() for kw in keywords}
    for fallback in get_fallback_keywords(category):
        if len(keywords) >= settings.min_keyword_count:
            break
        if fallback.keyword.lower() in present:
            continue
        keywords.append(fallback)
        present.add(fallback.keyword.lower())
    return keywords


async def collect_trend_keywords(
    category: str, fetcher: Optional[HttpFetcher] = None
) -> List[TrendKeyword]:
    """
    Collect trending keywords for ``category``.

    Never raises: individual source failures count as empty results, and any
    unexpected failure returns the category's fallback list.
    """
    try:
        fetcher = fetcher or await get_fetcher()
        merged: Dict[str, TrendKeyword] = {}

        realtime = await _fetch_source(fetcher, REALTIME_SOURCE, category)
        merge_keywords(merged, realtime, settings.realtime_weight)

        for source in CATEGORY_KEYWORD_SOURCES.get(category, [])[:2]:
            found = await _fetch_source(fetcher, source, category)
            merge_keywords(merged, found, settings.category_source_weight)

        news = await _fetch_source(fetcher, NEWS_RANKING_SOURCE, category)
        merge_keywords(merged, news, settings.news_source_weight)

        ranked = sorted(merged.values(), key=lambda kw: kw.score, reverse=True)
        keywords = ranked[: settings.keyword_pool_size]

        if len(keywords) < settings.min_keyword_count:
            logger.info(f"[{category}] Only {len(keywords)} keywords collected, adding fallback")
            keywords = _fill_with_fallback(keywords, category)

        cleaned = []
        for kw in keywords:
            text = clean_keyword(kw.keyword)
            if text:
                cleaned.append(TrendKeyword(keyword=text, score=kw.score, category=category))

        if len(cleaned) < settings.min_keyword_count:
            cleaned = _fill_with_fallback(cleaned, category)
        return cleaned

    except Exception as e:
        logger.error(f"[{category}] Error collecting trend keywords: {e}")
        return get_fallback_keywords(category)


def _top_keyword_texts(keywords: List[TrendKeyword]) -> List[str]:
    return [kw.keyword for kw in keywords[:3] if len(kw.keyword) > 1]


def generate_trend_pack_title(keywords: List[TrendKeyword], category: str) -> str:
    """Title from the top keywords, or the category's default title."""
    top = _top_keyword_texts(keywords)
    if not top:
        return DEFAULT_TITLES.get(category, "주간 트렌드")
    if len(top) == 1:
        return f"{top[0]} 트렌드"
    if len(top) == 2:
        return f"{top[0]}, {top[1]} 트렌드"
    return f"{top[0]}, {top[1]} 등 트렌드"


def generate_trend_pack_summary(keywords: List[TrendKeyword], items_count: int) -> str:
    if not keywords:
        return f"이번 주 주요 트렌드 정보를 {items_count}개의 자료로 정리했습니다."

    keyword_text = ", ".join(kw.keyword for kw in keywords[:3])
    return (
        f"{keyword_text} 등 이번 주 주요 트렌드를 {items_count}개의 자료로 정리했습니다. "
        f"최신 동향과 인사이트를 확인하세요."
    )
