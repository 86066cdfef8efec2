"""
Metadata composition for ReWatchKit.

Merges strategy output, generic URL and title heuristics, and context relayed
from a parent page into one PlaybackMetadata per save attempt, and computes
the signature used to notice new content playing in a reused element.
"""

import logging
import re
from typing import Callable, List, Optional

from .dom.base import Document
from .frames import FrameContext
from .models import CONTENT_EPISODE, CONTENT_MOVIE, ParentInfo, PlaybackMetadata
from .strategies.base import SourceStrategy
from .title import TitleExtractor, generic_extract_title
from .utils import is_finite_number, strip_query, url_host, url_path

logger = logging.getLogger(__name__)

ACTIVE_EPISODE_SELECTOR = '.ep-item.active, .episode-item.active, [class*="episode"].active'

_EPISODE_PATH_PATTERNS = (re.compile(r"episode[_-]?(\d+)", re.IGNORECASE), re.compile(r"ep[_-]?(\d+)", re.IGNORECASE))
_SEASON_PATH_PATTERNS = (re.compile(r"season[_-]?(\d+)", re.IGNORECASE), re.compile(r"s(\d+)e\d+", re.IGNORECASE))
_SEASON_TITLE_PATTERNS = (re.compile(r"Season\s+(\d+)", re.IGNORECASE), re.compile(r"Series\s+(\d+)", re.IGNORECASE))


def detect_platform(url: Optional[str]) -> Optional[str]:
    """
    Guess the platform from the host name of ``url``.

    Example:
        >>> detect_platform("https://www.netflix.com/watch/80100172")
        'Netflix'
    """
    hostname = url_host(url)
    if not hostname:
        return None
    if "netflix" in hostname:
        return "Netflix"
    if "disneyplus" in hostname:
        return "Disney+"
    if "brocoflix" in hostname or "vidlink" in hostname:
        return "Brocoflix"
    if (
        "hianime" in hostname
        or "aniwatch" in hostname
        or ("mega" in hostname and "cloud" in hostname)
        or "vizcloud" in hostname
        or "rapidcloud" in hostname
        or "streamwish" in hostname
        or "aniworld" in hostname
    ):
        return "HiAnime"
    if "hbomax" in hostname or hostname.endswith("max.com") or ".max.com" in hostname or "hbo." in hostname:
        return "HBO Max"
    if "youtube" in hostname or hostname == "youtu.be":
        return "YouTube"
    if re.search(r"(^|\.)tubitv\.com$", hostname):
        return "Tubi"
    if re.search(r"(^|\.)crunchyroll\.com$", hostname):
        return "Crunchyroll"
    if re.search(r"(^|\.)plex\.tv$", hostname):
        return "Plex"
    if re.search(r"(^|\.)filmzie\.(com|tv)$", hostname):
        return "Filmzie"
    return None


def metadata_signature(metadata: Optional[PlaybackMetadata]) -> Optional[str]:
    """
    Fingerprint of what is playing.

    Lowercased platform, type, series title, title, episode name, season,
    episode and the URL without its query string, joined with ``|``.

    Example:
        >>> metadata_signature(PlaybackMetadata(title="Dark", url="https://x.tv/w/1?t=5", platform="Netflix"))
        'netflix|movie||dark||s|e|https://x.tv/w/1'
    """
    if metadata is None:
        return None
    parts = [
        metadata.platform or "",
        metadata.content_type or "",
        metadata.series_title or "",
        metadata.title or "",
        metadata.episode_name or "",
        f"s{metadata.season_number if metadata.season_number is not None else ''}",
        f"e{metadata.episode_number if metadata.episode_number is not None else ''}",
        strip_query(metadata.url or ""),
    ]
    return "|".join(str(part).strip().lower() for part in parts)


def _first_match(patterns, text: str, positive: bool = False) -> Optional[int]:
    for pattern in patterns:
        match = pattern.search(text or "")
        if match:
            value = int(match.group(1))
            if positive and value <= 0:
                continue
            return value
    return None


def _safe(call: Callable, default=None, label: str = "strategy call"):
    try:
        return call()
    except Exception as e:
        logger.debug(f"Error during {label}: {e}")
        return default


class MetadataComposer:
    """
    Builds PlaybackMetadata for the current page.

    The composer itself is stateless; per-session state (the cached page
    title and the episode latch) lives on the session passed to ``compose``.
    """

    def compose(self, document: Document, strategy: Optional[SourceStrategy], session,
                frame: Optional[FrameContext] = None) -> PlaybackMetadata:
        """
        Compose metadata for one save attempt.

        Args:
            document: Page being tracked
            strategy: Active source strategy, if any
            session: Object with ``title_cache`` (TitleExtractor) and
                ``episode_latched`` (bool) attributes; the latch is updated
            frame: Parent-context requester when running inside a frame

        Returns:
            Normalized PlaybackMetadata
        """
        embedded = document.is_embedded
        info: Optional[ParentInfo] = frame.info if (frame is not None and embedded) else None

        page_url = document.url
        if embedded:
            referrer = document.referrer or ""
            if info is not None and info.url:
                page_url = info.url
            elif referrer and referrer != f"{document.origin}/":
                page_url = referrer

        strategy_type = None
        platform_name = None
        if strategy is not None:
            strategy_type = _safe(lambda: strategy.get_content_type(document), label="content type lookup")
            platform_name = _safe(strategy.get_platform_name, label="platform name lookup")

        metadata = PlaybackMetadata(
            title=self._extract_title(document, strategy, session.title_cache, info),
            url=page_url,
            platform=platform_name or detect_platform(page_url),
            content_type=strategy_type if strategy_type in (CONTENT_EPISODE, CONTENT_MOVIE) else CONTENT_MOVIE,
            is_from_embedded_frame=embedded,
        )

        parent_url = info.url if info is not None else None
        if not metadata.platform and parent_url and parent_url != metadata.url:
            parent_platform = detect_platform(parent_url)
            if parent_platform:
                metadata.platform = parent_platform
                metadata.url = parent_url

        if metadata.title:
            metadata.original_title = metadata.title

        authoritative_episode_title = False
        if info is not None:
            authoritative_episode_title = self._apply_parent_context(metadata, info)

        episode_number = self._extract_episode_number(document, strategy, strategy_type, info)
        season_number = self._extract_season_number(document, strategy, strategy_type, info, metadata.title)
        if episode_number is not None or season_number is not None:
            metadata.content_type = CONTENT_EPISODE
            metadata.episode_number = episode_number
            metadata.season_number = season_number
        elif strategy_type and metadata.content_type != CONTENT_EPISODE:
            metadata.content_type = strategy_type

        if strategy is not None and metadata.title:
            inferred = _safe(lambda: strategy.infer_episode_info_from_title(metadata.title),
                             label="title inference")
            if inferred:
                metadata.content_type = CONTENT_EPISODE
                if metadata.episode_number is None and inferred.episode is not None:
                    metadata.episode_number = inferred.episode
                if metadata.season_number is None and inferred.season is not None:
                    metadata.season_number = inferred.season
                if inferred.series_title and not metadata.series_title:
                    metadata.series_title = inferred.series_title
                if inferred.episode_name and not metadata.episode_name:
                    metadata.episode_name = inferred.episode_name

        if strategy is not None:
            episode_name = _safe(lambda: strategy.extract_episode_name(document), label="episode name lookup")
            existing = (metadata.episode_name or "").strip()
            if episode_name and (not authoritative_episode_title or not existing):
                metadata.episode_name = episode_name
                metadata.content_type = CONTENT_EPISODE

            if metadata.content_type != CONTENT_EPISODE and strategy_type == CONTENT_EPISODE:
                metadata.content_type = CONTENT_EPISODE

        metadata.normalize_content_type()

        if session.episode_latched and metadata.content_type != CONTENT_EPISODE:
            logger.debug("Keeping episode classification for this session")
            metadata.content_type = CONTENT_EPISODE
        if metadata.content_type == CONTENT_EPISODE:
            session.episode_latched = True
            if not metadata.series_title and metadata.title:
                metadata.series_title = metadata.title
            if metadata.series_title and metadata.title != metadata.series_title:
                metadata.title = metadata.series_title
            if not metadata.original_title and metadata.title:
                metadata.original_title = metadata.title

        logger.debug(f"Composed metadata: {metadata}")
        return metadata

    def _extract_title(self, document: Document, strategy: Optional[SourceStrategy],
                       title_cache: TitleExtractor, info: Optional[ParentInfo]) -> Optional[str]:
        if not document.is_embedded:
            if strategy is not None:
                title = _safe(lambda: strategy.extract_title(document), label="title extraction")
                if title:
                    return title
            return title_cache.get_page_title(document)

        if info is not None and info.title:
            return info.title
        if strategy is not None:
            title = _safe(lambda: strategy.extract_title(document), label="title extraction")
            if title:
                return title
        return generic_extract_title(document)

    @staticmethod
    def _apply_parent_context(metadata: PlaybackMetadata, info: ParentInfo) -> bool:
        canonical = info.canonical_url if info.canonical_url and info.canonical_url.startswith("http") else None
        if canonical and canonical != metadata.url:
            metadata.url = canonical

        series_title = (info.series_title or "").strip()
        if series_title and not metadata.series_title:
            metadata.series_title = series_title

        authoritative = False
        episode_title = (info.episode_title or "").strip()
        if episode_title:
            metadata.episode_name = episode_title
            metadata.original_title = episode_title
            metadata.content_type = CONTENT_EPISODE
            authoritative = True

        if info.content_type == CONTENT_EPISODE:
            metadata.content_type = CONTENT_EPISODE
        return authoritative

    def _extract_episode_number(self, document: Document, strategy: Optional[SourceStrategy],
                                strategy_type: Optional[str], info: Optional[ParentInfo]) -> Optional[int]:
        if strategy_type == CONTENT_MOVIE:
            return None
        if info is not None and info.episode_number is not None:
            return info.episode_number
        if strategy is not None:
            number = _safe(lambda: strategy.extract_episode_number(document), label="episode number lookup")
            if is_finite_number(number):
                return int(number)
        return self.generic_episode_number(document, info.url if info is not None else None)

    def _extract_season_number(self, document: Document, strategy: Optional[SourceStrategy],
                               strategy_type: Optional[str], info: Optional[ParentInfo],
                               title: Optional[str]) -> Optional[int]:
        if strategy_type == CONTENT_MOVIE:
            return None
        if info is not None and info.season_number is not None:
            return info.season_number
        if strategy is not None:
            number = _safe(lambda: strategy.extract_season_number(document), label="season number lookup")
            if is_finite_number(number):
                return int(number)
        return self.generic_season_number(document, title)

    @staticmethod
    def generic_episode_number(document: Document, parent_url: Optional[str] = None) -> Optional[int]:
        """Episode number from an active episode list item, then the URL path."""
        def from_active_item() -> Optional[int]:
            active = document.query_selector(ACTIVE_EPISODE_SELECTOR)
            match = re.search(r"(\d+)", active.text_content if active is not None else "")
            return int(match.group(1)) if match else None

        def from_path() -> Optional[int]:
            path = url_path(parent_url) if (document.is_embedded and parent_url) else document.path
            return _first_match(_EPISODE_PATH_PATTERNS, path)

        sources: List[Callable[[], Optional[int]]] = [from_active_item, from_path]
        for source in sources:
            number = _safe(source, label="generic episode extraction")
            if number is not None:
                return number
        logger.debug("Could not detect episode number")
        return None

    @staticmethod
    def generic_season_number(document: Document, title: Optional[str]) -> Optional[int]:
        """Season number from the URL path, then the title text."""
        number = _first_match(_SEASON_PATH_PATTERNS, document.path, positive=True)
        if number is None:
            number = _first_match(_SEASON_TITLE_PATTERNS, title or "", positive=True)
        if number is None:
            logger.debug("Could not detect season number")
        return number
