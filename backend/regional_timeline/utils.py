"""
Shared utility functions for the regional timeline service.
"""
from __future__ import annotations

import html
import re
from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as dateparser

_BREAK_TAGS = re.compile(r"<\s*(?:/?p|br)\b[^>]*>", flags=re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]*>")


def now_utc() -> datetime:
    """
    Get current UTC datetime with timezone information.

    Returns:
        Current UTC datetime
    """
    return datetime.now(timezone.utc)


def normalize_text(text: str | None) -> str:
    """
    Normalize whitespace in text content.

    Args:
        text: Input text string (can be None)

    Returns:
        Normalized text with single spaces and trimmed edges
    """
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def strip_html(content: str | None) -> str:
    """
    Reduce status HTML to plain text.

    Paragraph and line-break tags become spaces, every other tag is dropped,
    entities are decoded and whitespace is collapsed.

    Args:
        content: Raw HTML from a status (can be None)

    Returns:
        Plain text
    """
    if not content:
        return ""
    text = _BREAK_TAGS.sub(" ", content)
    text = _ANY_TAG.sub("", text)
    return normalize_text(html.unescape(text))


def parse_utc_datetime(date_string: Optional[str]) -> Optional[datetime]:
    """
    Parse a timestamp string and convert to UTC.

    Args:
        date_string: ISO 8601 (or similar) timestamp

    Returns:
        UTC-aware datetime, or None if the value is missing or unparseable
    """
    if not date_string or not isinstance(date_string, str):
        return None

    try:
        parsed_date = dateparser.parse(date_string)
    except (ValueError, OverflowError):
        return None

    if parsed_date.tzinfo:
        return parsed_date.astimezone(timezone.utc)
    return parsed_date.replace(tzinfo=timezone.utc)
