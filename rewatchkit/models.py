"""
Data models for ReWatchKit.

Defines the core data structures used throughout the package: playback
metadata composed for each save, the persisted progress record, cross-frame
parent context, and the tracker/store configuration objects.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

CONTENT_MOVIE = "movie"
CONTENT_EPISODE = "episode"
CONTENT_TYPES = (CONTENT_MOVIE, CONTENT_EPISODE)

# Platforms progress is recorded for unless TrackerConfig overrides the list
SUPPORTED_PLATFORM_NAMES: Tuple[str, ...] = (
    "Disney+",
    "HBO Max",
    "HiAnime",
    "Netflix",
    "Tubi",
    "Crunchyroll",
    "Plex",
    "Filmzie",
    "YouTube",
)

MINIMUM_CLIP_DURATION_SECONDS = 5 * 60


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == value


@dataclass
class EpisodeInference:
    """Episode details recovered from a free-form title string."""
    season: Optional[int] = None
    episode: Optional[int] = None
    series_title: Optional[str] = None
    episode_name: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.season is None
            and self.episode is None
            and not self.series_title
            and not self.episode_name
        )


@dataclass
class PlaybackMetadata:
    """
    Normalized description of what is playing, composed once per save attempt.

    ``content_type`` is forced to episode whenever an episode number, season
    number or non-empty episode name is present.
    """
    title: Optional[str]
    url: str
    platform: Optional[str] = None
    content_type: str = CONTENT_MOVIE
    original_title: Optional[str] = None
    series_title: Optional[str] = None
    episode_name: Optional[str] = None
    episode_number: Optional[int] = None
    season_number: Optional[int] = None
    is_from_embedded_frame: bool = False

    def has_episode_markers(self) -> bool:
        return (
            _is_number(self.episode_number)
            or _is_number(self.season_number)
            or bool(self.episode_name and self.episode_name.strip())
        )

    def normalize_content_type(self) -> None:
        if self.content_type != CONTENT_EPISODE and self.has_episode_markers():
            self.content_type = CONTENT_EPISODE

    def to_payload(self, current_time: float, duration: float) -> Dict[str, Any]:
        """
        Build the ``saveProgress`` message body for this metadata.

        Args:
            current_time: Playback position in seconds
            duration: Media duration in seconds

        Returns:
            Dictionary with camelCase keys, optional fields omitted when unset
        """
        payload: Dict[str, Any] = {
            "url": self.url,
            "title": self.title,
            "platform": self.platform,
            "type": self.content_type,
            "currentTime": current_time,
            "duration": duration,
            "isIframe": self.is_from_embedded_frame,
        }
        optional = {
            "originalTitle": self.original_title,
            "seriesTitle": self.series_title,
            "episodeName": self.episode_name,
            "episodeNumber": self.episode_number,
            "seasonNumber": self.season_number,
        }
        for key, value in optional.items():
            if value is not None:
                payload[key] = value
        return payload


@dataclass
class StoredProgressRecord:
    """One persisted progress entry, keyed by its content key."""
    content_key: str
    url: str
    title: str
    current_time: float
    duration: float
    percent_complete: float
    last_watched: str  # ISO-8601 UTC
    platform: Optional[str] = None
    content_type: str = CONTENT_MOVIE
    episode_number: Optional[int] = None
    season_number: Optional[int] = None
    series_title: Optional[str] = None
    episode_name: Optional[str] = None
    original_title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "contentKey": self.content_key,
            "url": self.url,
            "title": self.title,
            "currentTime": self.current_time,
            "duration": self.duration,
            "percentComplete": self.percent_complete,
            "lastWatched": self.last_watched,
            "type": self.content_type,
        }
        if self.platform is not None:
            data["platform"] = self.platform
        optional = {
            "episodeNumber": self.episode_number,
            "seasonNumber": self.season_number,
            "seriesTitle": self.series_title,
            "episodeName": self.episode_name,
            "originalTitle": self.original_title,
        }
        for key, value in optional.items():
            if value is not None and value != "":
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], content_key: Optional[str] = None) -> "StoredProgressRecord":
        return cls(
            content_key=data.get("contentKey") or content_key or "",
            url=data["url"],
            title=data["title"],
            current_time=float(data["currentTime"]),
            duration=float(data["duration"]),
            percent_complete=float(data["percentComplete"]),
            last_watched=data["lastWatched"],
            platform=data.get("platform"),
            content_type=data.get("type", CONTENT_MOVIE),
            episode_number=data.get("episodeNumber"),
            season_number=data.get("seasonNumber"),
            series_title=data.get("seriesTitle"),
            episode_name=data.get("episodeName"),
            original_title=data.get("originalTitle"),
        )


def is_stored_record(value: Any) -> bool:
    """
    Check whether a raw stored value has the shape of a progress record.

    Args:
        value: Anything read back from a storage area

    Returns:
        True if all required record fields are present with the right types
    """
    if not isinstance(value, dict):
        return False
    return (
        isinstance(value.get("url"), str)
        and isinstance(value.get("title"), str)
        and _is_number(value.get("currentTime"))
        and _is_number(value.get("duration"))
        and isinstance(value.get("lastWatched"), str)
        and _is_number(value.get("percentComplete"))
        and value.get("type") in CONTENT_TYPES
    )


@dataclass
class ParentInfo:
    """Context relayed from the top-level page to an embedded player frame."""
    url: Optional[str] = None
    title: Optional[str] = None
    episode_number: Optional[int] = None
    season_number: Optional[int] = None
    series_title: Optional[str] = None
    episode_title: Optional[str] = None
    canonical_url: Optional[str] = None
    content_type: Optional[str] = None

    def to_message(self, message_type: str) -> Dict[str, Any]:
        message: Dict[str, Any] = {"type": message_type}
        fields = {
            "url": self.url,
            "title": self.title,
            "episodeNumber": self.episode_number,
            "seasonNumber": self.season_number,
            "seriesTitle": self.series_title,
            "episodeTitle": self.episode_title,
            "canonicalUrl": self.canonical_url,
            "contentType": self.content_type,
        }
        for key, value in fields.items():
            if value is not None:
                message[key] = value
        return message

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "ParentInfo":
        def text(key: str) -> Optional[str]:
            value = message.get(key)
            return value if isinstance(value, str) else None

        def number(key: str) -> Optional[int]:
            value = message.get(key)
            return int(value) if _is_number(value) else None

        content_type = message.get("contentType")
        return cls(
            url=text("url"),
            title=text("title"),
            episode_number=number("episodeNumber"),
            season_number=number("seasonNumber"),
            series_title=text("seriesTitle"),
            episode_title=text("episodeTitle"),
            canonical_url=text("canonicalUrl"),
            content_type=content_type if content_type in CONTENT_TYPES else None,
        )


@dataclass
class TrackerConfig:
    """Timing and threshold settings for the session tracker (seconds)."""
    save_interval: float = 5.0
    save_threshold: float = 10.0
    retry_delay: float = 2.0
    max_detection_attempts: int = 10
    navigation_debounce: float = 0.8
    navigation_resume_delay: float = 1.2
    metadata_resume_delay: float = 0.7
    signature_resume_delay: float = 0.8
    embedded_attach_delay: float = 0.5
    minimum_clip_duration: float = float(MINIMUM_CLIP_DURATION_SECONDS)
    # Platforms exempt from the clip-length and playback-page checks
    duration_exempt_platforms: Tuple[str, ...] = ("Disney+",)
    # None accepts any detected platform
    supported_platforms: Optional[Tuple[str, ...]] = SUPPORTED_PLATFORM_NAMES
    resume_min_seconds: float = 30.0
    resume_max_percent: float = 95.0
    scored_selection: bool = True
    long_form_duration: float = float(MINIMUM_CLIP_DURATION_SECONDS)

    def __post_init__(self):
        delays = {
            "save_interval": self.save_interval,
            "retry_delay": self.retry_delay,
            "navigation_debounce": self.navigation_debounce,
            "navigation_resume_delay": self.navigation_resume_delay,
            "metadata_resume_delay": self.metadata_resume_delay,
            "signature_resume_delay": self.signature_resume_delay,
            "embedded_attach_delay": self.embedded_attach_delay,
        }
        for name, value in delays.items():
            if value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")
        if self.save_interval == 0:
            raise ValueError("save_interval must be greater than zero")
        if self.max_detection_attempts < 0:
            raise ValueError("max_detection_attempts must not be negative")


@dataclass
class StoreConfig:
    """Retention settings for the progress store."""
    retention_days: int = 183  # roughly six months
    completed_percent: float = 95.0
    tracked_index_key: str = "trackedContent"
