"""
YouTube source strategy.

Reads titles from the watch page markup and falls back to the YouTube
client (oEmbed, then yt-dlp) for titles and episode numbering. Lookups are
memoized per strategy instance, keyed by video id, so a navigation (which
drops the cached strategy) naturally starts fresh.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..dom.base import Document, VideoElement
from ..dom.scanner import find_first_match, is_node_visible
from ..models import CONTENT_EPISODE, EpisodeInference, PlaybackMetadata
from ..utils import ensure_positive_int
from ..youtube.client import YouTubeClient, extract_youtube_id
from .base import SourceStrategy, infer_episode_from_title

logger = logging.getLogger(__name__)

YOUTUBE_HOSTS = ("youtube.com", "youtube-nocookie.com", "youtu.be")

TITLE_SELECTORS = (
    "h1.ytd-watch-metadata yt-formatted-string",
    "ytd-watch-metadata h1",
    "h1.title",
    "#title h1",
    ".ytp-title-link",
    'meta[name="title"]',
    'meta[property="og:title"]',
)

PREVIEW_CONTAINER_SELECTORS = (
    "#inline-preview-player",
    "ytd-video-preview",
    "ytd-thumbnail",
    "ytd-rich-grid-media",
)

_PLAYBACK_PATH_RE = re.compile(r"^/(watch|embed/|live/|shorts/)", re.IGNORECASE)


@dataclass
class YouTubeStrategy(SourceStrategy):
    """
    Strategy for youtube.com watch pages and embedded players.

    Args:
        host: Host name of the page
        client: YouTube client used for network lookups
        use_network: Disable to rely on page markup only
    """
    client: Optional[YouTubeClient] = None
    use_network: bool = True
    _titles: Dict[str, Optional[str]] = field(default_factory=dict, repr=False)
    _infos: Dict[str, Optional[Dict[str, Any]]] = field(default_factory=dict, repr=False)

    def can_handle(self) -> bool:
        host = (self.host or "").lower()
        return any(host == name or host.endswith("." + name) for name in YOUTUBE_HOSTS)

    def get_platform_name(self) -> Optional[str]:
        return "YouTube"

    def playback_root_selectors(self) -> Sequence[str]:
        return ("#movie_player", ".html5-video-player", "ytd-player")

    def first_party_media_pattern(self) -> Optional[str]:
        return r"googlevideo\.com|youtube\.com"

    def filter_video_elements(self, videos: Sequence[VideoElement]) -> List[VideoElement]:
        preview_selector = ", ".join(PREVIEW_CONTAINER_SELECTORS)
        kept = []
        for video in videos:
            try:
                if video.closest(preview_selector) is not None:
                    continue
                if video.loop:
                    continue
            except Exception as e:
                logger.debug(f"Error while filtering YouTube video candidates: {e}")
                continue
            kept.append(video)
        return kept

    def select_video_element(self, videos: Sequence[VideoElement],
                             document: Document) -> Optional[VideoElement]:
        for video in videos:
            try:
                if video.closest("#movie_player") is not None and is_node_visible(video):
                    return video
            except Exception as e:
                logger.debug(f"Error checking YouTube player container: {e}")
        return None

    def _client(self) -> YouTubeClient:
        if self.client is None:
            self.client = YouTubeClient()
        return self.client

    def _video_id(self, document: Document) -> Optional[str]:
        return extract_youtube_id(document.url)

    def _title_from_markup(self, document: Document) -> Optional[str]:
        def read(node, _root):
            if node.tag_name == "META":
                text = node.get_attribute("content") or ""
            else:
                text = node.text_content or ""
            text = text.strip()
            return text if text and len(text) < 200 else None

        title = find_first_match(document, TITLE_SELECTORS, read)
        if title:
            return title

        doc_title = re.sub(r"^\(\d+\)\s*", "", document.title or "")
        doc_title = re.sub(r"\s*-\s*YouTube\s*$", "", doc_title).strip()
        if doc_title and doc_title.lower() != "youtube":
            return doc_title
        return None

    def _video_info(self, document: Document) -> Optional[Dict[str, Any]]:
        video_id = self._video_id(document)
        if not video_id or not self.use_network:
            return None
        if video_id not in self._infos:
            try:
                self._infos[video_id] = self._client().fetch_video_info(
                    f"https://www.youtube.com/watch?v={video_id}"
                )
            except Exception as e:
                logger.warning(f"YouTube metadata lookup failed for {video_id}: {e}")
                self._infos[video_id] = None
        return self._infos[video_id]

    def extract_title(self, document: Document) -> Optional[str]:
        title = self._title_from_markup(document)
        if title:
            return title

        video_id = self._video_id(document)
        if not video_id or not self.use_network:
            return None
        if video_id not in self._titles:
            oembed = self._client().fetch_oembed(f"https://www.youtube.com/watch?v={video_id}")
            self._titles[video_id] = (oembed or {}).get("title")
        if self._titles[video_id]:
            return self._titles[video_id]

        info = self._video_info(document)
        return info.get("title") if info else None

    def extract_episode_number(self, document: Document) -> Optional[int]:
        info = self._video_info(document)
        return ensure_positive_int(info.get("episode_number")) if info else None

    def extract_season_number(self, document: Document) -> Optional[int]:
        info = self._video_info(document)
        return ensure_positive_int(info.get("season_number")) if info else None

    def extract_episode_name(self, document: Document) -> Optional[str]:
        info = self._video_info(document)
        if info and info.get("series"):
            episode = info.get("episode")
            if isinstance(episode, str) and episode.strip():
                return episode.strip()
        return None

    def get_content_type(self, document: Document) -> Optional[str]:
        info = self._video_info(document)
        if info and (info.get("series") or info.get("episode_number") is not None):
            return CONTENT_EPISODE
        return None

    def infer_episode_info_from_title(self, title: Optional[str]) -> Optional[EpisodeInference]:
        return infer_episode_from_title(title)

    def is_valid_playback_page(self, document: Document,
                               metadata: Optional[PlaybackMetadata] = None) -> bool:
        if not _PLAYBACK_PATH_RE.match(document.path or ""):
            logger.debug(f"Not a YouTube playback path: {document.path}")
            return False
        return self._video_id(document) is not None
