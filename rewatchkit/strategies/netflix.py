"""
Netflix source strategy.

Netflix ships its player state as JavaScript object literals assigned to
``netflix.reactContext`` and ``netflix.falcorCache`` in inline scripts. These
are parsed once per strategy instance (raw JSON first, then a sanitized
copy) and mined for title, episode and season information.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from ..dom.base import Document
from ..models import CONTENT_EPISODE, CONTENT_MOVIE, EpisodeInference, PlaybackMetadata
from ..utils import get_nested_value, is_finite_number, parse_embedded_object, parse_int_loose
from .base import SourceStrategy, infer_episode_from_title

logger = logging.getLogger(__name__)

_FALCOR_RE = re.compile(r"netflix\.falcorCache\s*=\s*(\{[\s\S]*?\});")
_REACT_RE = re.compile(r"netflix\.reactContext\s*=\s*(\{[\s\S]*?\});")
_WATCH_PATH_RE = re.compile(r"/watch/(\d+)", re.IGNORECASE)

EPISODE_PATHS = (
    "episodeNumber",
    "episode",
    "currentEpisode",
    "playerState.currentEpisode",
    "playerState.episode",
    "video.episode",
    "video.summary.episode",
    "video.currentEpisode",
    "currentVideo.episode",
    "currentVideo.summary.episode",
    "currentVideo.currentEpisode",
    "currentVideoMetadata.episode",
    "currentVideoMetadata.summary.episode",
    "episodeContext.episode",
)

SEASON_PATHS = (
    "seasonNumber",
    "season",
    "currentSeason",
    "playerState.currentSeason",
    "playerState.season",
    "video.season",
    "video.summary.season",
    "currentVideo.season",
    "currentVideo.summary.season",
    "currentVideo.currentSeason",
    "currentVideoMetadata.season",
    "currentVideoMetadata.summary.season",
    "episodeContext.season",
)


def _as_dict(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


@dataclass
class NetflixStrategy(SourceStrategy):
    """Strategy for netflix.com watch pages."""
    _falcor_cache: Optional[Dict[str, Any]] = field(default=None, repr=False)
    _react_context: Optional[Dict[str, Any]] = field(default=None, repr=False)
    _scripts_parsed: bool = field(default=False, repr=False)

    def can_handle(self) -> bool:
        return "netflix" in (self.host or "").lower()

    def get_platform_name(self) -> Optional[str]:
        return "Netflix"

    def playback_root_selectors(self):
        return ('[data-uia="watch-video"]', ".watch-video", '[data-uia="player"]')

    def first_party_media_pattern(self) -> Optional[str]:
        return r"nflxvideo|netflix"

    # Embedded data

    def _parse_embedded_data(self, document: Document) -> None:
        if self._scripts_parsed:
            return
        self._scripts_parsed = True

        for script in document.query_selector_all("script"):
            text = script.text_content or ""
            if self._falcor_cache is None:
                match = _FALCOR_RE.search(text)
                if match:
                    self._falcor_cache = parse_embedded_object(match.group(1))
            if self._react_context is None:
                match = _REACT_RE.search(text)
                if match:
                    self._react_context = parse_embedded_object(match.group(1))
            if self._falcor_cache is not None and self._react_context is not None:
                break

        # Scripts may still be streaming in; try again on the next call
        if self._falcor_cache is None or self._react_context is None:
            self._scripts_parsed = False

    def _metadata(self, document: Document) -> Optional[Dict[str, Any]]:
        self._parse_embedded_data(document)
        models = _as_dict(get_nested_value(self._react_context, "models"))
        for path in ("videoPlayer.data", "playerModel.data"):
            data = _as_dict(get_nested_value(models, path))
            if data:
                return data
        return None

    def _current_video_id(self, document: Document) -> Optional[str]:
        match = _WATCH_PATH_RE.search(document.path or "")
        if match:
            return match.group(1)
        self._parse_embedded_data(document)
        for path in ("lolomo.summary.value.currentVideoId", "sessionContext.current.value.videoId"):
            value = get_nested_value(self._falcor_cache, path)
            if isinstance(value, (str, int)) and not isinstance(value, bool):
                return str(value)
        return None

    def _current_video_entry(self, document: Document) -> Optional[Dict[str, Any]]:
        video_id = self._current_video_id(document)
        self._parse_embedded_data(document)
        videos = _as_dict(get_nested_value(self._falcor_cache, "videos"))
        if not videos or not video_id:
            return None
        return _as_dict(videos.get(video_id))

    def _summary(self, document: Document) -> Optional[Dict[str, Any]]:
        return _as_dict(get_nested_value(self._current_video_entry(document), "summary.value"))

    def _summary_type(self, document: Document) -> Optional[str]:
        summary_type = get_nested_value(self._current_video_entry(document), "summary.value.type")
        return summary_type.lower() if isinstance(summary_type, str) else None

    @staticmethod
    def _first_number(metadata: Dict[str, Any], paths: Iterable[str]) -> Optional[int]:
        for path in paths:
            number = parse_int_loose(get_nested_value(metadata, path))
            if number is not None:
                return number
        return None

    # Capabilities

    def get_content_type(self, document: Document) -> Optional[str]:
        summary = self._summary(document)
        if summary:
            summary_type = summary.get("type")
            if isinstance(summary_type, str) and summary_type.lower() in (CONTENT_EPISODE, CONTENT_MOVIE):
                return summary_type.lower()
            if is_finite_number(summary.get("episode")) or is_finite_number(summary.get("season")):
                return CONTENT_EPISODE

        metadata = self._metadata(document)
        if metadata:
            candidates = [
                metadata.get("type"),
                metadata.get("videoType"),
                get_nested_value(metadata, "video.type"),
                get_nested_value(metadata, "video.summary.type"),
                get_nested_value(metadata, "currentVideo.type"),
                get_nested_value(metadata, "currentVideo.summary.type"),
            ]
            types = [value.lower() for value in candidates if isinstance(value, str)]
            if CONTENT_EPISODE in types:
                return CONTENT_EPISODE
            if CONTENT_MOVIE in types:
                return CONTENT_MOVIE
            indicators = ("episodeNumber", "episode", "currentEpisode", "episodeTitle",
                          "currentEpisodeTitle", "episodeName")
            if any(isinstance(metadata.get(key), str) or is_finite_number(metadata.get(key))
                   for key in indicators):
                return CONTENT_EPISODE

        if self.infer_episode_info_from_title(self.extract_title(document)):
            return CONTENT_EPISODE
        return None

    def infer_episode_info_from_title(self, title: Optional[str]) -> Optional[EpisodeInference]:
        return infer_episode_from_title(title)

    def extract_episode_number(self, document: Document) -> Optional[int]:
        summary = self._summary(document)
        if summary and is_finite_number(summary.get("episode")):
            return int(summary["episode"])

        metadata = self._metadata(document)
        if metadata:
            number = self._first_number(metadata, EPISODE_PATHS)
            if number is not None:
                return number

        inferred = self.infer_episode_info_from_title(self.extract_title(document))
        if inferred and inferred.episode is not None:
            return inferred.episode
        return None

    def extract_season_number(self, document: Document) -> Optional[int]:
        summary = self._summary(document)
        if summary and is_finite_number(summary.get("season")):
            return int(summary["season"])

        metadata = self._metadata(document)
        if metadata:
            number = self._first_number(metadata, SEASON_PATHS)
            if number is not None:
                return number

        inferred = self.infer_episode_info_from_title(self.extract_title(document))
        if inferred and inferred.season is not None:
            return inferred.season
        return None

    def extract_title(self, document: Document) -> Optional[str]:
        metadata = self._metadata(document)
        if metadata:
            title = _text(metadata.get("title"))
            if title:
                return title
            preferred = _text(metadata.get("seriesTitle")) or _text(metadata.get("showTitle"))
            if preferred:
                return preferred

        if self._summary_type(document) == CONTENT_MOVIE:
            falcor_title = _text(get_nested_value(self._current_video_entry(document), "title.value"))
            if falcor_title:
                return falcor_title

        doc_title = document.title or ""
        if doc_title and doc_title != "Netflix":
            cleaned = re.sub(r"\s*-\s*Netflix\s*$", "", doc_title, flags=re.IGNORECASE).strip()
            if cleaned:
                return cleaned
        return None

    def extract_episode_name(self, document: Document) -> Optional[str]:
        metadata = self._metadata(document)
        if metadata:
            return _text(metadata.get("episodeTitle")) or _text(metadata.get("currentEpisodeTitle"))
        return None

    def is_valid_playback_page(self, document: Document,
                               metadata: Optional[PlaybackMetadata] = None) -> bool:
        html = document.query_selector("html")
        if html is None or "watch-video-root" not in html.class_list:
            logger.debug("Not on a Netflix watch page, likely a preview or browse page")
            return False
        if not _WATCH_PATH_RE.search(document.path or ""):
            logger.debug("URL does not contain /watch/, not a playback page")
            return False
        container = document.query_selector('[data-uia="watch-video"], .watch-video')
        if container is None:
            logger.debug("Missing watch-video container, likely an info page")
            return False
        if container.query_selector('[data-uia="player"], video') is None:
            logger.debug("Player element missing inside watch-video container")
            return False
        return True
