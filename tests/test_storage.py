"""Persistence: item saving, pack upsert, prompt linking and transactions."""

from datetime import date

import pytest

from trendpack.items import (
    delete_scraped_items,
    get_scraped_items_count,
    list_scraped_items,
    save_scraped_items,
)
from trendpack.models import ScrapedItemData, TrendKeyword
from trendpack.packs import (
    create_trend_pack,
    generate_week_key,
    get_current_week_key,
    link_prompts_to_pack,
)


def make_item(n, **overrides):
    data = dict(
        source_domain="shopping.naver.com",
        source_type="market",
        url=f"https://shopping.naver.com/item/{n}",
        title=f"트렌드 상품 리뷰 {n:02d}",
        summary=f"트렌드 상품 {n}번에 대한 상세한 설명입니다.",
        tags=["트렌드", "상품"],
        extracted_data={"price": 1000 * n},
    )
    data.update(overrides)
    return ScrapedItemData(**data)


def keywords(*texts):
    return [TrendKeyword(keyword=t, score=10.0 - i, category="product") for i, t in enumerate(texts)]


@pytest.fixture
async def pack_id(database):
    return await create_trend_pack(database, "2025-W03", "product", keywords("아이폰"), "요약")


@pytest.mark.parametrize(
    "day, expected",
    [
        (date(2025, 1, 15), "2025-W03"),
        (date(2024, 12, 30), "2025-W01"),
        (date(2021, 1, 3), "2020-W53"),
    ],
)
def test_generate_week_key(day, expected):
    assert generate_week_key(day) == expected


def test_current_week_key_format():
    key = get_current_week_key()
    assert len(key) == 8 and key[4:6] == "-W"


async def test_save_filters_invalid_and_duplicate_items(database, pack_id):
    items = [
        make_item(1),
        make_item(2),
        make_item(1, title="같은 주소의 다른 제목"),
        make_item(3, title="짧음"),
        make_item(4, url="not-a-url"),
    ]

    result = await save_scraped_items(database, pack_id, items)

    assert (result.saved, result.skipped) == (2, 3)
    assert await get_scraped_items_count(database, pack_id) == 2


async def test_save_skips_urls_already_stored(database, pack_id):
    await save_scraped_items(database, pack_id, [make_item(1), make_item(2)])

    result = await save_scraped_items(database, pack_id, [make_item(2), make_item(3)])

    assert (result.saved, result.skipped) == (1, 1)
    assert await get_scraped_items_count(database, pack_id) == 3


async def test_same_url_may_exist_in_different_packs(database, pack_id):
    other = await create_trend_pack(database, "2025-W03", "stock", keywords("코스피"), "요약")

    await save_scraped_items(database, pack_id, [make_item(1)])
    result = await save_scraped_items(database, other, [make_item(1)])

    assert result.saved == 1


async def test_save_empty_list(database, pack_id):
    result = await save_scraped_items(database, pack_id, [])
    assert (result.saved, result.skipped) == (0, 0)


async def test_bulk_failure_falls_back_to_single_inserts(database, pack_id, monkeypatch):
    async def failing_bulk(pack, items):
        raise RuntimeError("bulk insert failed")

    monkeypatch.setattr(database, "insert_scraped_items", failing_bulk)

    result = await save_scraped_items(database, pack_id, [make_item(1), make_item(2)])

    assert (result.saved, result.skipped) == (2, 0)
    assert await get_scraped_items_count(database, pack_id) == 2


async def test_saved_items_round_trip_json_columns(database, pack_id):
    await save_scraped_items(database, pack_id, [make_item(7)])

    [stored] = await list_scraped_items(database, pack_id)

    assert stored["tags"] == ["트렌드", "상품"]
    assert stored["extracted_data"] == {"price": 7000}
    assert stored["pack_id"] == pack_id
    assert await list_scraped_items(database, pack_id, source_type="news") == []


async def test_delete_scraped_items(database, pack_id):
    await save_scraped_items(database, pack_id, [make_item(1), make_item(2)])

    assert await delete_scraped_items(database, pack_id) == 2
    assert await get_scraped_items_count(database, pack_id) == 0


async def test_create_trend_pack_upserts(database):
    first = await create_trend_pack(database, "2025-W03", "product", keywords("아이폰"), "첫 요약")
    second = await create_trend_pack(
        database, "2025-W03", "product", keywords("갤럭시", "픽셀"), "두 번째 요약"
    )

    assert first == second
    packs, total = await database.list_trend_packs(category="product")
    assert total == 1

    pack = packs[0]
    assert pack["title"] == "갤럭시, 픽셀 트렌드"
    assert pack["summary"] == "두 번째 요약"
    assert pack["trend_keywords"] == ["갤럭시", "픽셀"]
    assert pack["status"] == "published"
    assert pack["generated_at"] is not None


async def test_packs_are_unique_per_week_and_category(database):
    a = await create_trend_pack(database, "2025-W03", "product", keywords("아이폰"), "요약")
    b = await create_trend_pack(database, "2025-W04", "product", keywords("아이폰"), "요약")
    c = await create_trend_pack(database, "2025-W03", "stock", keywords("코스피"), "요약")

    assert len({a, b, c}) == 3


async def test_link_prompts_is_idempotent(database, pack_id):
    p1 = await database.insert_prompt_template("product", "상세페이지", "내용 1")
    p2 = await database.insert_prompt_template("product", "리뷰 분석", "내용 2")
    await database.insert_prompt_template("product", "무료 프롬프트", "내용 3", is_free=True)
    await database.insert_prompt_template("stock", "종목 분석", "내용 4")

    assert await link_prompts_to_pack(database, pack_id, "product") == 2
    assert await link_prompts_to_pack(database, pack_id, "product") == 2
    assert await database.list_linked_prompt_ids(pack_id) == [p1, p2]


async def test_link_prompts_continues_sort_order(database, pack_id):
    p1 = await database.insert_prompt_template("product", "상세페이지", "내용 1")
    await link_prompts_to_pack(database, pack_id, "product")

    p2 = await database.insert_prompt_template("product", "리뷰 분석", "내용 2")
    assert await link_prompts_to_pack(database, pack_id, "product") == 2
    assert await database.list_linked_prompt_ids(pack_id) == [p1, p2]


async def test_link_prompts_without_templates(database, pack_id):
    assert await link_prompts_to_pack(database, pack_id, "reels") == 0


async def test_transaction_rolls_back_all_writes(database):
    with pytest.raises(RuntimeError):
        async with database.transaction():
            pack = await create_trend_pack(database, "2025-W03", "blog", keywords("캠핑"), "요약")
            await save_scraped_items(database, pack, [make_item(1)])
            raise RuntimeError("link failed")

    assert await database.get_pack_by_week_category("2025-W03", "blog") is None
    assert await database.count_scraped_items() == 0


async def test_transaction_commits_on_success(database):
    async with database.transaction():
        pack = await create_trend_pack(database, "2025-W03", "blog", keywords("캠핑"), "요약")
        await save_scraped_items(database, pack, [make_item(1)])

    assert (await database.get_pack_by_week_category("2025-W03", "blog"))["id"] == pack
    assert await database.count_scraped_items(pack) == 1


async def test_stats(database, pack_id):
    await save_scraped_items(database, pack_id, [make_item(1)])

    stats = await database.get_stats()

    assert stats == {"total_packs": 1, "total_items": 1, "category_counts": {"product": 1}}
