"""
Content identity for stored progress.

A content key is derived from the normalized platform and either the series
title (episodes) or the title (movies), hashed with the same 32-bit
multiply-by-31-and-add rolling hash browsers compute over UTF-16 code units,
so keys match records written by other clients of the same store.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from ..models import CONTENT_EPISODE, CONTENT_MOVIE
from ..utils import strip_query

logger = logging.getLogger(__name__)

KEY_PREFIX = "content_"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def normalize_key_part(value: Optional[str]) -> str:
    """Lowercase and drop everything but ASCII letters and digits."""
    return _NON_ALNUM_RE.sub("", (value or "").lower())


def rolling_hash(text: str) -> int:
    """
    Signed 32-bit ``hash = hash * 31 + code_unit`` over UTF-16 code units.

    Example:
        >>> rolling_hash("abc")
        96354
    """
    value = 0
    encoded = text.encode("utf-16-le")
    for index in range(0, len(encoded), 2):
        code_unit = encoded[index] | (encoded[index + 1] << 8)
        value = ((value << 5) - value + code_unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


def derive_content_key(url: Optional[str] = None, title: Optional[str] = None,
                       platform: Optional[str] = None, content_type: Optional[str] = None,
                       series_title: Optional[str] = None) -> str:
    """
    Derive the storage key for a piece of content.

    Episodes with a series title are keyed on the series, so every episode of
    a show shares one key. Everything else is keyed on the title, or on the
    URL without its query string when there is no usable title.

    Args:
        url: Page URL
        title: Content title
        platform: Platform name
        content_type: "movie" or "episode"
        series_title: Series title, for episodes

    Returns:
        Key of the form ``content_<number>``

    Example:
        >>> derive_content_key(title="Show", platform="Netflix", content_type="episode",
        ...                    series_title="Show") == derive_content_key(
        ...     title="Other", platform="netflix", content_type="episode", series_title="SHOW!")
        True
    """
    safe_url = strip_query(url)
    normalized_platform = (platform or "").lower()

    if content_type == CONTENT_EPISODE and series_title:
        basis = f"{normalized_platform}|series|{normalize_key_part(series_title)}"
    else:
        basis = f"{normalized_platform}|title|{normalize_key_part(title) or normalize_key_part(safe_url)}"

    if not basis or basis == "||":
        basis = f"{normalized_platform}|fallback|{normalize_key_part(safe_url)}"

    return f"{KEY_PREFIX}{abs(rolling_hash(basis))}"


def legacy_keys(payload: Dict[str, Any], content_key: str) -> List[str]:
    """
    Keys older derivation rules would have produced for the same episode.

    Only episodes have legacy keys: the original title keyed as an episode
    and as a movie, and the bare URL keyed as a movie. The current key is
    never included.

    Args:
        payload: saveProgress payload (camelCase keys)
        content_key: Key the record is being written under

    Returns:
        Distinct legacy keys in derivation order
    """
    if payload.get("type") != CONTENT_EPISODE:
        return []

    url = payload.get("url")
    platform = payload.get("platform")
    candidates: List[str] = []

    original_title = (payload.get("originalTitle") or "").strip()
    if original_title:
        candidates.append(derive_content_key(url=url, title=original_title, platform=platform,
                                             content_type=CONTENT_EPISODE))
        candidates.append(derive_content_key(url=url, title=original_title, platform=platform,
                                             content_type=CONTENT_MOVIE))
    if url:
        candidates.append(derive_content_key(url=url, title="", platform=platform,
                                             content_type=CONTENT_MOVIE))

    keys: List[str] = []
    for key in candidates:
        if key != content_key and key not in keys:
            keys.append(key)
    return keys
