"""
Progress store and merger.

Writes one record per content key and keeps the store tidy on every save:
keys produced by older derivation rules are migrated away, older episodes of
the same series are pruned so only the newest one remains, and finished
content past the retention window is swept out.

Applying the same save twice leaves the store in the same state as applying
it once.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from ..models import CONTENT_EPISODE, CONTENT_MOVIE, StoreConfig, is_stored_record
from ..utils import (
    clamp_percentage,
    is_finite_number,
    normalize_url_for_comparison,
    to_number,
    urls_roughly_match,
)
from .keys import derive_content_key, legacy_keys
from .storage import MemoryStorage, StorageArea

logger = logging.getLogger(__name__)

_EPISODIC_TITLE_RE = re.compile(r"\b(e|episode)\s*\d+", re.IGNORECASE)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable lastWatched timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def looks_episodic(entry: Dict[str, Any]) -> bool:
    """True if a stored record describes an episode rather than a movie."""
    episode_name = entry.get("episodeName")
    return (
        entry.get("type") == CONTENT_EPISODE
        or is_finite_number(entry.get("episodeNumber"))
        or is_finite_number(entry.get("seasonNumber"))
        or (isinstance(episode_name, str) and bool(episode_name.strip()))
        or bool(_EPISODIC_TITLE_RE.search(entry.get("title") or ""))
        or bool(_EPISODIC_TITLE_RE.search(entry.get("originalTitle") or ""))
    )


def _best_url_match(entries: List[Any], url: str) -> Optional[Dict[str, Any]]:
    """Equal origin and path wins over containment, in entry order."""
    records = [entry for entry in entries if is_stored_record(entry)]
    target = normalize_url_for_comparison(url)
    if target:
        for entry in records:
            if normalize_url_for_comparison(entry["url"]) == target:
                return entry
    for entry in records:
        if urls_roughly_match(entry["url"], url):
            return entry
    return None


class ProgressStore:
    """
    Reads and writes progress records in a storage area.

    Args:
        storage: Storage area (in-memory by default)
        config: Retention settings
        clock: Callable returning the current UTC datetime

    Example:
        >>> store = ProgressStore()
        >>> key = store.save_progress({"url": "https://www.netflix.com/watch/1", "title": "Dark",
        ...                            "platform": "Netflix", "type": "movie",
        ...                            "currentTime": 600, "duration": 3600})
        >>> store.get_progress("https://www.netflix.com/watch/1")["percentComplete"]
        16.666666666666664
    """

    def __init__(self, storage: Optional[StorageArea] = None, config: Optional[StoreConfig] = None,
                 clock: Callable[[], datetime] = _utc_now):
        self.storage = storage if storage is not None else MemoryStorage()
        self.config = config or StoreConfig()
        self.clock = clock

    @property
    def index_key(self) -> str:
        return self.config.tracked_index_key

    def tracked_keys(self) -> List[str]:
        raw = self.storage.get(self.index_key).get(self.index_key)
        if not isinstance(raw, list):
            return []
        return [value for value in raw if isinstance(value, str)]

    def _set_tracked(self, keys: List[str]) -> None:
        self.storage.set({self.index_key: keys})

    def build_record(self, payload: Dict[str, Any], content_key: str) -> Dict[str, Any]:
        """Persisted record for a saveProgress payload."""
        url = payload.get("url")
        current_time = to_number(payload.get("currentTime"))
        duration = to_number(payload.get("duration"))
        percent = clamp_percentage(current_time / duration * 100) if duration > 0 else 0.0

        record: Dict[str, Any] = {
            "contentKey": content_key,
            "url": url,
            "title": (payload.get("title") or payload.get("seriesTitle")
                      or payload.get("originalTitle") or url),
            "currentTime": current_time,
            "duration": duration,
            "platform": payload.get("platform"),
            "type": CONTENT_EPISODE if payload.get("type") == CONTENT_EPISODE else CONTENT_MOVIE,
            "lastWatched": format_timestamp(self.clock()),
            "percentComplete": percent,
        }
        for key in ("episodeNumber", "seasonNumber"):
            if payload.get(key) is not None:
                record[key] = payload[key]
        for key in ("seriesTitle", "episodeName", "originalTitle"):
            if payload.get(key):
                record[key] = payload[key]

        if record["type"] != CONTENT_EPISODE and ("episodeNumber" in record or "seasonNumber" in record):
            logger.debug("Episode markers detected, storing as episode")
            record["type"] = CONTENT_EPISODE
        return record

    def save_progress(self, payload: Dict[str, Any]) -> str:
        """
        Write a progress record and reconcile the store.

        Args:
            payload: saveProgress data (camelCase keys: url, title, platform,
                type, currentTime, duration and optional episode fields)

        Returns:
            Content key the record was written under

        Raises:
            ValueError: If the payload has no URL
        """
        url = payload.get("url")
        if not isinstance(url, str) or not url:
            raise ValueError("saveProgress payload requires a url")

        content_key = derive_content_key(
            url=url,
            title=payload.get("title"),
            platform=payload.get("platform"),
            content_type=payload.get("type"),
            series_title=payload.get("seriesTitle"),
        )
        logger.debug(f"Generated content key {content_key} for {url}")

        record = self.build_record(payload, content_key)
        self.storage.set({content_key: record})

        legacy = legacy_keys(payload, content_key)
        tracked = self.tracked_keys()
        existing_legacy = list(self.storage.get(legacy).keys()) if legacy else []
        if existing_legacy:
            self.storage.remove(existing_legacy)
            tracked = [key for key in tracked if key not in existing_legacy]
            self._set_tracked(tracked)
            logger.info(f"Removed legacy content keys: {existing_legacy}")

        if content_key not in tracked:
            tracked.append(content_key)
            self._set_tracked(tracked)

        series_title = payload.get("seriesTitle")
        if payload.get("type") == CONTENT_EPISODE and series_title:
            self._prune_series_duplicates(content_key, series_title, payload.get("platform"))

        try:
            self.cleanup_old_entries()
        except Exception as e:
            logger.warning(f"Cleanup skipped: {e}")
        return content_key

    def _prune_series_duplicates(self, content_key: str, series_title: str,
                                 platform: Optional[str]) -> List[str]:
        normalized_series = series_title.strip().lower()
        if not normalized_series:
            return []
        normalized_platform = (platform or "").lower()

        tracked = self.tracked_keys()
        entries = self.storage.get(tracked) if tracked else {}
        stale: List[str] = []
        for key in tracked:
            if key == content_key:
                continue
            entry = entries.get(key)
            if not is_stored_record(entry):
                continue
            entry_series = (entry.get("seriesTitle") or entry.get("title") or "").strip().lower()
            same_series = bool(entry_series) and entry_series == normalized_series
            same_platform = not normalized_platform or (entry.get("platform") or "").lower() == normalized_platform
            if same_series and same_platform and looks_episodic(entry):
                stale.append(key)

        if stale:
            self.storage.remove(stale)
            self._set_tracked([key for key in self.tracked_keys() if key not in stale])
            logger.info(f"Removed duplicate episode entries for series {series_title!r}: {stale}")
        return stale

    def get_progress(self, url: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Find the saved record for a page URL.

        Tracked records are compared by normalized origin and path first; only
        when none is equal does substring containment decide. When nothing
        tracked matches, the whole store is searched in the same order.

        Returns:
            Stored record dictionary, or None
        """
        if not url or not isinstance(url, str):
            return None

        tracked = self.tracked_keys()
        if tracked:
            entries = self.storage.get(tracked)
            candidates = [entries.get(key) for key in tracked]
            match = _best_url_match(candidates, url)
            if match is not None:
                return match

        return _best_url_match(list(self.storage.get(None).values()), url)

    def cleanup_old_entries(self, now: Optional[datetime] = None) -> List[str]:
        """
        Remove finished records that have not been watched recently.

        A record goes once its last-watched time is older than the retention
        window and it is at least ``completed_percent`` complete.

        Args:
            now: Reference time (defaults to the store clock)

        Returns:
            Keys that were removed
        """
        now = now or self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        cutoff = now - timedelta(days=self.config.retention_days)

        entries = self.storage.get(None)
        tracked_raw = entries.pop(self.index_key, None)
        stale: List[str] = []
        for key, value in entries.items():
            if not is_stored_record(value):
                continue
            last_watched = parse_timestamp(value.get("lastWatched"))
            if last_watched is None:
                continue
            if last_watched < cutoff and value["percentComplete"] >= self.config.completed_percent:
                stale.append(key)

        if not stale:
            return []
        self.storage.remove(stale)
        if isinstance(tracked_raw, list) and tracked_raw:
            self._set_tracked([key for key in tracked_raw if isinstance(key, str) and key not in stale])
        logger.info(f"Cleaned up old entries: {stale}")
        return stale
