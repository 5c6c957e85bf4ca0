"""Text helpers for scraped content: cleaning, summaries, tags, URLs."""

import re
import unicodedata
from collections import Counter
from typing import List
from urllib.parse import urlparse

# Hangul words of 2-4 syllables are treated as tag candidates
_TAG_PATTERN = re.compile(r"[가-힣]{2,4}")

STOP_WORDS = {
    "것이", "것을", "것으로", "것이다", "것입니다",
    "그리고", "그런데", "그러나",
    "이것", "저것", "그것", "이런", "저런", "그런",
    "이번", "저번", "그때", "오늘", "어제", "내일", "지금",
    "여기", "저기", "거기",
}


def normalize_text(text: str) -> str:
    """
    Normalize scraped text.

    Rules:
    - Remove zero-width and invisible Unicode characters
    - Normalize unicode (NFKC form)
    - Collapse runs of whitespace to single spaces
    """
    if not text:
        return ""

    text = re.sub(r'[\u200b-\u200f\u2028-\u202f\ufeff\u00ad]', '', text)
    text = unicodedata.normalize('NFKC', text)
    return ' '.join(text.split())


def clean_keyword(keyword: str) -> str:
    """Strip everything except word characters, whitespace and Hangul."""
    return re.sub(r"[^\w\s가-힣]", "", normalize_text(keyword)).strip()


def extract_summary(content: str, max_length: int = 200) -> str:
    """
    Build a short extractive summary.

    Takes the first paragraph/sentence; if it is longer than ``max_length`` it
    is cut at a sentence end or word boundary in the last 30% of the window,
    otherwise hard-cut, with an ellipsis when text was dropped mid-sentence.
    """
    if not content:
        return ""

    first = re.split(r"\n\n|\.\s+", content)[0].strip() or content

    if len(first) <= max_length:
        return first

    summary = first[:max_length]
    last_period = summary.rfind(".")
    last_space = summary.rfind(" ")

    if last_period > max_length * 0.7:
        return summary[:last_period + 1]
    if last_space > max_length * 0.7:
        return summary[:last_space] + "..."
    return summary + "..."


def extract_tags(title: str, content: str, limit: int = 5) -> List[str]:
    """Return the most frequent Hangul words in title and content."""
    text = f"{title} {content}".lower()
    counts = Counter(w for w in _TAG_PATTERN.findall(text) if w not in STOP_WORDS)
    # Counter.most_common keeps first-seen order among ties
    return [word for word, _ in counts.most_common(limit)]


def extract_domain(url: str) -> str:
    """Hostname without a leading ``www.``; empty for unparseable URLs."""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return re.sub(r"^www\.", "", host)


def is_valid_url(url: str) -> bool:
    """True for well-formed http(s) URLs with a host."""
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def strip_article_noise(content: str) -> str:
    """Drop inline script/style remnants and collapse whitespace."""
    content = re.sub(r"<script[^>]*>[\s\S]*?</script>", "", content, flags=re.IGNORECASE)
    content = re.sub(r"<style[^>]*>[\s\S]*?</style>", "", content, flags=re.IGNORECASE)
    content = re.sub(r"^\s*//.*$", "", content, flags=re.MULTILINE)
    return normalize_text(content)
