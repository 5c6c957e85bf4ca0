import httpx
import pytest

from trendpack import keywords
from trendpack.keywords import (
    collect_trend_keywords,
    generate_trend_pack_summary,
    generate_trend_pack_title,
    get_fallback_keywords,
    merge_keywords,
    parse_ranked_keywords,
)
from trendpack.models import TrendKeyword

REALTIME_HTML = """
<div class="rank-layer">
  <span class="rank-text">아이폰</span>
  <span class="rank-text">갤럭시</span>
  <span class="rank-text">#장마 예보!</span>
</div>
"""

SHOPPING_BEST_HTML = """
<ul class="keyword_rank">
  <li class="keyword">갤럭시</li>
</ul>
"""


def kw(text, score=1.0, category="product"):
    return TrendKeyword(keyword=text, score=score, category=category)


async def test_all_sources_failing_yields_fallback(make_fetcher):
    fetcher = make_fetcher(lambda request: httpx.Response(500))

    result = await collect_trend_keywords("product", fetcher=fetcher)

    assert len(result) >= 5
    assert [k.keyword for k in result] == ["신제품", "트렌드", "인기 상품", "베스트", "할인"]
    assert all(k.category == "product" for k in result)


async def test_sources_are_merged_with_weights(make_fetcher):
    def handler(request):
        if request.url.host == "signal.bz":
            return httpx.Response(200, text=REALTIME_HTML)
        if request.url.path == "/best/today":
            return httpx.Response(200, text=SHOPPING_BEST_HTML)
        return httpx.Response(500)

    result = await collect_trend_keywords("product", fetcher=make_fetcher(handler))
    by_text = {k.keyword: k.score for k in result}

    # Realtime rank 2 (19) plus shopping rank 1 (20 x 1.5)
    assert result[0].keyword == "갤럭시"
    assert by_text["갤럭시"] == pytest.approx(49.0)
    assert by_text["아이폰"] == pytest.approx(20.0)
    # Punctuation is stripped from collected keywords
    assert "장마 예보" in by_text
    assert len(result) >= 5
    assert all(k.category == "product" for k in result)


async def test_unexpected_failure_returns_fallback(monkeypatch):
    async def broken_fetcher():
        raise RuntimeError("no fetcher")

    monkeypatch.setattr(keywords, "get_fetcher", broken_fetcher)

    result = await collect_trend_keywords("stock")

    assert [k.keyword for k in result] == ["주식", "증시", "코스피", "코스닥", "투자"]


def test_merge_is_case_insensitive():
    merged = {}
    merge_keywords(merged, [kw("iPhone", 10)], 1.0)
    merge_keywords(merged, [kw("iphone", 4)], 1.5)

    assert list(merged) == ["iphone"]
    assert merged["iphone"].keyword == "iPhone"
    assert merged["iphone"].score == pytest.approx(16.0)


def test_parse_ranked_keywords_scores_by_rank():
    result = parse_ranked_keywords(REALTIME_HTML, ".rank-layer .rank-text", "blog", depth=20)

    assert [k.score for k in result] == [20.0, 19.0, 18.0]
    assert all(k.category == "blog" for k in result)


def test_parse_ranked_keywords_respects_depth():
    result = parse_ranked_keywords(REALTIME_HTML, ".rank-layer .rank-text", "blog", depth=2)
    assert len(result) == 2


def test_fallback_for_unknown_category():
    result = get_fallback_keywords("podcast")
    assert [k.keyword for k in result] == ["트렌드", "인기", "최신", "화제", "이슈"]
    assert [k.score for k in result] == [5.0, 4.0, 3.0, 2.0, 1.0]


@pytest.mark.parametrize(
    "texts, expected",
    [
        ([], "상품 트렌드"),
        (["아이폰"], "아이폰 트렌드"),
        (["아이폰", "갤럭시"], "아이폰, 갤럭시 트렌드"),
        (["아이폰", "갤럭시", "픽셀"], "아이폰, 갤럭시 등 트렌드"),
    ],
)
def test_generate_trend_pack_title(texts, expected):
    assert generate_trend_pack_title([kw(t) for t in texts], "product") == expected


def test_generate_trend_pack_summary():
    summary = generate_trend_pack_summary([kw("아이폰"), kw("갤럭시")], 12)
    assert summary.startswith("아이폰, 갤럭시 등 이번 주 주요 트렌드를 12개의 자료로")

    assert "3개의 자료" in generate_trend_pack_summary([], 3)
