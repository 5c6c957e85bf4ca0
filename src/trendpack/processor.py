"""Category-specific structured data extraction and summary templates."""

import re
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup

from .models import ScrapedItemData

_INT_PATTERN = re.compile(r"[\d,]+")
_FLOAT_PATTERN = re.compile(r"[\d.]+")
_SIGNED_FLOAT_PATTERN = re.compile(r"[+-]?[\d.]+")


def _first_text(soup: BeautifulSoup, selector: str) -> str:
    el = soup.select_one(selector)
    return el.get_text(strip=True) if el else ""


def _parse_int(text: str) -> Optional[int]:
    match = _INT_PATTERN.search(text)
    if not match:
        return None
    digits = match.group(0).replace(",", "")
    return int(digits) if digits else None


def _parse_float(text: str, pattern: re.Pattern = _FLOAT_PATTERN) -> Optional[float]:
    match = pattern.search(text)
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def extract_product_data(html: str) -> Dict[str, Any]:
    soup = BeautifulSoup(html, "html.parser")
    data: Dict[str, Any] = {}

    name = _first_text(soup, ".product-name, .name, [data-product-name]")
    if name:
        data["product_name"] = name

    price_text = _first_text(soup, ".price, .price-value, [data-price]")
    price = _parse_int(price_text)
    if price is not None:
        data["price"] = price
        data["price_text"] = price_text

    review_count = _parse_int(_first_text(soup, ".review-count, .review, [data-review-count]"))
    if review_count is not None:
        data["review_count"] = review_count

    rating = _parse_float(_first_text(soup, ".rating, .star-rating, [data-rating]"))
    if rating is not None:
        data["rating"] = rating

    img = soup.select_one(".product-image img, .thumbnail img")
    if img and img.get("src"):
        data["image_url"] = img["src"]

    return data


def extract_real_estate_data(html: str) -> Dict[str, Any]:
    soup = BeautifulSoup(html, "html.parser")
    data: Dict[str, Any] = {}

    property_type = _first_text(soup, ".property-type, .item-type, [data-property-type]")
    if property_type:
        data["type"] = property_type

    price_text = _first_text(soup, ".price, .item-price, [data-price]")
    if price_text:
        data["price_text"] = price_text
        price = _parse_int(price_text)
        if price is not None:
            data["price"] = price

    location = _first_text(soup, ".location, .item-location, [data-location]")
    if location:
        data["location"] = location

    area_text = _first_text(soup, ".area, .size, [data-area]")
    area = _parse_float(area_text)
    if area is not None:
        data["area"] = area
        data["area_text"] = area_text

    floor = _parse_int(_first_text(soup, ".floor, [data-floor]"))
    if floor is not None:
        data["floor"] = floor

    return data


def extract_stock_data(html: str) -> Dict[str, Any]:
    soup = BeautifulSoup(html, "html.parser")
    data: Dict[str, Any] = {}

    price_text = _first_text(soup, ".stock-price, .price, [data-price]")
    price = _parse_int(price_text)
    if price is not None:
        data["price"] = price
        data["price_text"] = price_text

    change_text = _first_text(soup, ".change-rate, .change, [data-change-rate]")
    change_rate = _parse_float(change_text, _SIGNED_FLOAT_PATTERN)
    if change_rate is not None:
        data["change_rate"] = change_rate
        data["change_text"] = change_text

    volume = _parse_int(_first_text(soup, ".volume, [data-volume]"))
    if volume is not None:
        data["volume"] = volume

    market_cap = _first_text(soup, ".market-cap, [data-market-cap]")
    if market_cap:
        data["market_cap_text"] = market_cap

    return data


def extract_content_data(html: str) -> Dict[str, Any]:
    """View/like/comment counters and date for blog-style content."""
    soup = BeautifulSoup(html, "html.parser")
    data: Dict[str, Any] = {}

    for key, selector in (
        ("view_count", ".view-count, .views, [data-views]"),
        ("like_count", ".like-count, .likes, [data-likes]"),
        ("comment_count", ".comment-count, .comments, [data-comments]"),
    ):
        value = _parse_int(_first_text(soup, selector))
        if value is not None:
            data[key] = value

    date = _first_text(soup, ".date, .published-date, [data-date]")
    if date:
        data["date"] = date

    return data


def extract_structured_data(html: str, category: str) -> Dict[str, Any]:
    """Dispatch to the extractor for ``category``; unknown categories yield {}."""
    if category == "product":
        return extract_product_data(html)
    if category == "real_estate":
        return extract_real_estate_data(html)
    if category == "stock":
        return extract_stock_data(html)
    if category in ("blog", "shorts", "reels"):
        return extract_content_data(html)
    return {}


def calculate_quality_score(item: ScrapedItemData) -> int:
    """Score an item 0-100 on title, summary, URL, domain, tags and extracted data."""
    score = 0

    if 5 <= len(item.title) <= 200:
        score += 20
    elif item.title:
        score += 10

    if 10 <= len(item.summary) <= 1000:
        score += 30
    elif item.summary:
        score += 15

    if item.url.startswith("http"):
        score += 20

    if item.source_domain:
        score += 10

    if item.tags:
        score += 10

    if item.extracted_data:
        score += 10

    return min(score, 100)


def apply_category_summary_template(item: ScrapedItemData, category: str) -> str:
    """Compose "title | label: value | ..." from the item's structured fields."""
    extracted = item.extracted_data or {}
    parts = [item.title]

    if category == "product":
        price = extracted.get("price_text") or extracted.get("price")
        if price:
            parts.append(f"가격: {price}")
        if extracted.get("rating"):
            parts.append(f"평점: {extracted['rating']}")
        if extracted.get("review_count"):
            parts.append(f"리뷰: {extracted['review_count']}개")
    elif category == "real_estate":
        price = extracted.get("price_text") or extracted.get("price")
        area = extracted.get("area_text") or extracted.get("area")
        if extracted.get("location"):
            parts.append(f"위치: {extracted['location']}")
        if price:
            parts.append(f"가격: {price}")
        if area:
            parts.append(f"면적: {area}")
    elif category == "stock":
        price = extracted.get("price_text") or extracted.get("price")
        change_rate = extracted.get("change_rate")
        if price:
            parts.append(f"주가: {price}")
        if change_rate is not None:
            sign = "+" if change_rate >= 0 else ""
            parts.append(f"등락률: {sign}{change_rate}%")
    elif category in ("blog", "shorts", "reels"):
        if extracted.get("view_count"):
            parts.append(f"조회수: {extracted['view_count']:,}")
        if extracted.get("like_count"):
            parts.append(f"좋아요: {extracted['like_count']:,}")
    else:
        return item.summary or item.title

    return " | ".join(parts)
