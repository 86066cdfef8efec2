"""
Utility functions for ReWatchKit.

URL comparison helpers shared by the store and the tracker, numeric coercion
for values read from pages and storage, and tolerant parsing of JSON-like
objects embedded in page scripts.
"""

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

_BIDI_CONTROL_RE = re.compile(r"[\u2068\u2069\u202A-\u202E]")


def strip_query(url: Optional[str]) -> str:
    """Return ``url`` without its query string (fragment is kept)."""
    if not isinstance(url, str):
        return ""
    return url.split("?", 1)[0]


def normalize_url_for_comparison(url: Optional[str]) -> Optional[str]:
    """
    Reduce a URL to ``origin + path`` for loose equality checks.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL, the URL without query/fragment if it cannot be
        parsed, or None for empty input

    Example:
        >>> normalize_url_for_comparison("https://example.com/watch/1?t=30#x")
        'https://example.com/watch/1'
    """
    if not url or not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"Not an absolute URL: {url}")
        return f"{parts.scheme}://{parts.netloc}{parts.path}"
    except ValueError as e:
        logger.debug(f"Failed to normalize URL: {e}")
        without_hash = url.split("#", 1)[0]
        return without_hash.split("?", 1)[0]


def urls_roughly_match(candidate: Optional[str], target: Optional[str]) -> bool:
    """
    Compare two URLs by origin and path, then by substring containment.

    Args:
        candidate: URL stored with a progress record
        target: URL being looked up

    Returns:
        True if the URLs refer to the same page for resume purposes
    """
    normalized_candidate = normalize_url_for_comparison(candidate)
    normalized_target = normalize_url_for_comparison(target)
    if normalized_candidate and normalized_target and normalized_candidate == normalized_target:
        return True
    if not candidate or not target:
        return False
    return target in candidate or candidate in target


def url_host(url: Optional[str]) -> str:
    """Lowercase host name of ``url`` or an empty string."""
    if not url:
        return ""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def url_origin(url: Optional[str]) -> str:
    if not url:
        return ""
    try:
        parts = urlsplit(url)
    except ValueError:
        return ""
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}"


def url_path(url: Optional[str]) -> str:
    if not url:
        return ""
    try:
        return urlsplit(url).path or ""
    except ValueError:
        return ""


def url_query(url: Optional[str]) -> str:
    if not url:
        return ""
    try:
        return urlsplit(url).query or ""
    except ValueError:
        return ""


def is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def to_number(value: Any) -> float:
    """Coerce to a finite float, mapping anything else to 0."""
    if not is_finite_number(value):
        return 0.0
    return float(value)


def clamp_percentage(value: Any) -> float:
    """
    Clamp a percentage into 0..100.

    Example:
        >>> clamp_percentage(104.2)
        100.0
    """
    if not is_finite_number(value):
        return 0.0
    return float(min(max(value, 0), 100))


def ensure_positive_int(value: Any) -> Optional[int]:
    """
    Interpret ``value`` as a positive integer.

    Numbers are floored; strings are parsed from their leading digits.

    Returns:
        The positive integer, or None if ``value`` does not hold one
    """
    if is_finite_number(value):
        return int(math.floor(value)) if value > 0 else None
    if isinstance(value, str):
        match = re.match(r"\s*([+-]?\d+)", value)
        if match:
            parsed = int(match.group(1))
            return parsed if parsed > 0 else None
    return None


def parse_int_loose(value: Any) -> Optional[int]:
    """Parse the first integer out of a number, string or episode-like dict."""
    if is_finite_number(value):
        return int(value)
    if isinstance(value, str):
        match = re.match(r"\s*([+-]?\d+)", value)
        if match:
            return int(match.group(1))
        digits = re.search(r"\d+", value)
        if digits:
            return int(digits.group(0))
        return None
    if isinstance(value, dict):
        for key in ("episode", "seq", "number"):
            parsed = parse_int_loose(value.get(key))
            if parsed is not None:
                return parsed
    return None


def strip_bidi_controls(text: str) -> str:
    return _BIDI_CONTROL_RE.sub("", text)


def get_nested_value(source: Any, path: str) -> Any:
    """
    Walk a dotted path through nested dictionaries.

    Example:
        >>> get_nested_value({"a": {"b": 3}}, "a.b")
        3
    """
    cursor = source
    for key in path.split("."):
        if not isinstance(cursor, dict) or key not in cursor:
            return None
        cursor = cursor[key]
    return cursor


def sanitize_object_literal(literal: str) -> str:
    """
    Rewrite a JavaScript object literal into something ``json`` accepts.

    Strips trailing semicolons, turns ``\\xHH`` escapes into ``\\u00HH``,
    escapes raw line/paragraph separators and doubles backslashes that do
    not start a valid JSON escape.
    """
    sanitized = re.sub(r";+\s*$", "", literal.strip())
    sanitized = re.sub(
        r"\\x([0-9A-Fa-f]{2})",
        lambda match: "\\u00" + match.group(1).upper(),
        sanitized,
    )
    sanitized = sanitized.replace("\u2028", "\\u2028").replace("\u2029", "\\u2029")
    sanitized = re.sub(r'\\([^"\\/bfnrtu])', lambda match: "\\\\" + match.group(1), sanitized)
    return sanitized


def parse_embedded_object(source: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse an object blob embedded in a page script.

    Tries the raw text first, then a sanitized copy, and gives up quietly.

    Args:
        source: Object literal text captured from a ``<script>`` block

    Returns:
        Parsed dictionary, or None if neither attempt yields an object
    """
    if not source or not isinstance(source, str):
        return None

    candidates: List[str] = []
    for candidate in (source.strip(), sanitize_object_literal(source).strip()):
        if candidate and candidate not in candidates:
            candidates.append(candidate)

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError as e:
            logger.debug(f"Embedded object parse attempt failed: {e}")
            continue
        if isinstance(parsed, dict):
            return parsed

    logger.warning(f"Unable to parse embedded object after sanitization: {candidates[0][:200]!r}")
    return None
