"""
Source strategy interface.

A strategy knows how to read one content source: its platform name, titles,
episode numbering and which of several videos on the page is the real one.
Every capability has a default, so a strategy only overrides what its source
actually exposes.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..dom.base import Document, VideoElement
from ..models import EpisodeInference, PlaybackMetadata
from ..utils import strip_bidi_controls

logger = logging.getLogger(__name__)

GENERIC_PLAYBACK_ROOT_SELECTORS = (
    '[data-testid="playback-view"]',
    '[data-testid="playback-root"]',
    '[data-testid="player"]',
    '[data-uia="watch-video"]',
    '[data-uia="player"]',
    '.video-player',
    '.player-container',
    '#movie_player',
    '#player',
)

_SEASON_EPISODE_RE = re.compile(r"(.*?)(?:\bS\s*(\d{1,2})\s*[.:]?\s*E\s*(\d{1,3}))(.*)", re.IGNORECASE)
_EPISODE_WORD_RE = re.compile(r"(.*?)(?:\bEpisode\s+(\d{1,3}))(.*)", re.IGNORECASE)
_SIMPLE_EPISODE_RE = re.compile(r"(.*?)(\bE\s*[-.:]?\s*(\d{1,3}))(.*)", re.IGNORECASE)


def _build_inference(prefix: Optional[str], episode: Optional[str], season: Optional[str],
                     suffix: Optional[str]) -> Optional[EpisodeInference]:
    result = EpisodeInference()
    if season is not None:
        result.season = int(season)
    if episode is not None:
        result.episode = int(episode)
    clean_prefix = re.sub(r"[\-,–—:|]+$", "", (prefix or "").strip()).strip()
    if clean_prefix:
        result.series_title = clean_prefix
    clean_suffix = re.sub(r"^[\-,–—:|]+", "", (suffix or "").strip()).strip()
    if clean_suffix:
        result.episode_name = clean_suffix
    return None if result.is_empty() else result


def infer_episode_from_title(title: Optional[str]) -> Optional[EpisodeInference]:
    """
    Parse "Show S1E2 Name", "Show Episode 4" and "Show E7" style titles.

    Args:
        title: Title text as shown by the player

    Returns:
        EpisodeInference with whatever could be recovered, or None

    Example:
        >>> infer_episode_from_title("Dark S1:E3 Past and Present")
        EpisodeInference(season=1, episode=3, series_title='Dark', episode_name='Past and Present')
    """
    if not title or not isinstance(title, str):
        return None
    normalized = strip_bidi_controls(title).strip()
    if not normalized:
        return None

    match = _SEASON_EPISODE_RE.match(normalized)
    if match:
        prefix, season, episode, suffix = match.groups()
        result = _build_inference(prefix, episode, season, suffix)
        if result:
            return result

    match = _EPISODE_WORD_RE.match(normalized)
    if match:
        prefix, episode, suffix = match.groups()
        result = _build_inference(prefix, episode, None, suffix)
        if result:
            return result

    match = _SIMPLE_EPISODE_RE.match(normalized)
    if match:
        prefix, _, episode, suffix = match.groups()
        result = _build_inference(prefix, episode, None, suffix)
        if result:
            return result

    return None


@dataclass
class SourceStrategy:
    """Base strategy interface for content sources."""
    host: str

    def can_handle(self) -> bool:
        return False

    def get_platform_name(self) -> Optional[str]:
        return None

    def extract_episode_number(self, document: Document) -> Optional[int]:
        return None

    def extract_season_number(self, document: Document) -> Optional[int]:
        return None

    def extract_title(self, document: Document) -> Optional[str]:
        return None

    def extract_episode_name(self, document: Document) -> Optional[str]:
        return None

    def infer_episode_info_from_title(self, title: Optional[str]) -> Optional[EpisodeInference]:
        return None

    def get_content_type(self, document: Document) -> Optional[str]:
        return None

    def is_valid_playback_page(self, document: Document,
                               metadata: Optional[PlaybackMetadata] = None) -> bool:
        return True

    def filter_video_elements(self, videos: Sequence[VideoElement]) -> List[VideoElement]:
        return list(videos)

    def select_video_element(self, videos: Sequence[VideoElement],
                             document: Document) -> Optional[VideoElement]:
        return None

    def playback_root_selectors(self) -> Sequence[str]:
        """Selectors for containers that hold the main player."""
        return GENERIC_PLAYBACK_ROOT_SELECTORS

    def first_party_media_pattern(self) -> Optional[str]:
        """Regex matched against a video's source URL for the source's own CDN."""
        return None
