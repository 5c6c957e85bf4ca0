"""Summary improvement: extractive by default, OpenAI chat completions when useful."""

import logging
import re
from typing import Optional

import httpx

from .config import settings
from .parser import extract_summary

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"


def should_use_ai_summary(content: str) -> bool:
    """Long or structurally complex text benefits from an AI summary."""
    if not content or len(content) < 200:
        return False

    if len(content) > 2000:
        return True

    paragraphs = [p for p in content.split("\n\n") if p.strip()]
    if len(paragraphs) > 5:
        return True

    if "•" in content or "\n- " in content:
        return True

    return len(re.findall(r"\d+\.\s+", content)) > 3


def _truncate(content: str, max_length: int) -> str:
    return content if len(content) <= max_length else content[:max_length] + "..."


async def summarize_with_ai(
    content: str,
    max_length: int = 300,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """Summarize with the OpenAI API; without a key, truncate instead."""
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set, skipping AI summary")
        return _truncate(content, max_length)

    payload = {
        "model": settings.openai_model,
        "messages": [
            {
                "role": "system",
                "content": f"당신은 전문 요약 전문가입니다. 주어진 텍스트를 {max_length}자 이내로 핵심 내용만 간결하게 요약해주세요.",
            },
            {"role": "user", "content": f"다음 텍스트를 요약해주세요:\n\n{content[:4000]}"},
        ],
        "max_tokens": max_length // 2,
        "temperature": 0.3,
    }

    try:
        async with httpx.AsyncClient(timeout=settings.request_timeout, transport=transport) as client:
            response = await client.post(
                OPENAI_CHAT_URL,
                json=payload,
                headers={"Authorization": f"Bearer {settings.openai_api_key}"},
            )
            response.raise_for_status()
            data = response.json()
        summary = (data.get("choices") or [{}])[0].get("message", {}).get("content", "").strip()
        if not summary:
            raise ValueError("No summary returned from OpenAI API")
        return summary
    except Exception as e:
        logger.error(f"Error summarizing with AI: {e}")
        return _truncate(content, max_length)


async def summarize_hybrid(content: str, max_length: int = 300, force_ai: bool = False) -> str:
    """AI summary when warranted and configured, extractive summary otherwise."""
    if (force_ai or should_use_ai_summary(content)) and settings.openai_api_key:
        return await summarize_with_ai(content, max_length)

    return extract_summary(content, max_length)
