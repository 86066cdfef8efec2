"""
Cross-document context handshake for ReWatchKit.

Many players live in an iframe whose own URL and title say nothing about the
show. The frame asks the top-level page for context with a typed request
message; the page answers with a typed parent-info message carrying its URL,
title, episode and season numbers and any structured episode data.

Delivery is not guaranteed. A frame that never hears back keeps composing
metadata from its own local fallbacks.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from .dom.base import Document
from .models import CONTENT_EPISODE, ParentInfo
from .scheduler import Scheduler
from .title import TitleExtractor
from .utils import ensure_positive_int, url_query

logger = logging.getLogger(__name__)

REQUEST_INFO = "ReWatch_REQUEST_INFO"
PARENT_INFO = "ReWatch_PARENT_INFO"

Message = Dict[str, Any]

ACTIVE_EPISODE_SELECTORS = (
    ".ep-item.active",
    ".episode-item.active",
    '[class*="episode"].active',
    '.selected[class*="episode"]',
    '.current[class*="episode"]',
    '[aria-selected="true"][class*="episode"]',
    '[data-selected="true"]',
)

EPISODE_TEXT_PATTERNS = (
    re.compile(r"\bS\s*\d+\s*E\s*(\d+)\b", re.IGNORECASE),
    re.compile(r"Season\s+\d+\s+Episode\s+(\d+)", re.IGNORECASE),
    re.compile(r"(?:You are watching|Now Playing|Current)[^\d]*Episode\s+(\d+)", re.IGNORECASE),
    re.compile(r"Episode\s+(\d+)", re.IGNORECASE),
    re.compile(r"Ep\.?\s+(\d+)", re.IGNORECASE),
)

EPISODE_PATH_PATTERNS = (
    re.compile(r"episode[_-]?(\d+)", re.IGNORECASE),
    re.compile(r"ep[_-]?(\d+)", re.IGNORECASE),
    re.compile(r"/e(\d+)\b", re.IGNORECASE),
    re.compile(r"/(\d+)$"),
)

SEASON_TEXT_PATTERNS = (
    re.compile(r"Season\s+(\d+)", re.IGNORECASE),
    re.compile(r"Series\s+(\d+)", re.IGNORECASE),
    re.compile(r"\bS\s*(\d+)\s*E\s*\d+\b", re.IGNORECASE),
)

SEASON_URL_PATTERNS = (
    re.compile(r"season[_-]?(\d+)", re.IGNORECASE),
    re.compile(r"series[_-]?(\d+)", re.IGNORECASE),
    re.compile(r"/s(\d+)e\d+", re.IGNORECASE),
    re.compile(r"/s(\d+)/", re.IGNORECASE),
)

EPISODE_QUERY_PARAMS = ("ep", "episode", "episodeId", "e")


def _text_value(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _name_of(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return _text_value(value)
    if isinstance(value, list):
        for entry in value:
            name = _name_of(entry)
            if name:
                return name
        return None
    if isinstance(value, dict):
        return _text_value(value.get("name"))
    return None


def _season_of(value: Any) -> Optional[int]:
    if isinstance(value, list):
        for entry in value:
            season = _season_of(entry)
            if season is not None:
                return season
        return None
    if isinstance(value, dict):
        return ensure_positive_int(value.get("seasonNumber"))
    return None


def _gather_nodes(data: Any, nodes: List[Dict[str, Any]]) -> None:
    if isinstance(data, list):
        for entry in data:
            _gather_nodes(entry, nodes)
    elif isinstance(data, dict):
        nodes.append(data)
        if "@graph" in data:
            _gather_nodes(data["@graph"], nodes)


def _types_of(node: Dict[str, Any]) -> List[str]:
    value = node.get("@type")
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [entry for entry in value if isinstance(entry, str)]
    return []


def _search(patterns, text: str) -> Optional[int]:
    for pattern in patterns:
        match = pattern.search(text or "")
        if match and int(match.group(1)) > 0:
            return int(match.group(1))
    return None


class FrameContext:
    """
    Requester side, used by a tracker running inside an embedded frame.

    Args:
        post: Callable that delivers a message to the parent page
    """

    def __init__(self, post: Optional[Callable[[Message], None]] = None):
        self._post = post
        self.info: Optional[ParentInfo] = None

    def connect(self, post: Callable[[Message], None]) -> None:
        self._post = post

    def request(self) -> None:
        if self._post is None:
            logger.debug("No parent link configured, skipping context request")
            return
        try:
            self._post({"type": REQUEST_INFO})
        except Exception as e:
            logger.warning(f"Could not request parent info: {e}")

    def receive(self, message: Any) -> bool:
        """
        Store relayed parent context.

        Returns:
            True if the message was a parent-info message, False if ignored
        """
        if not isinstance(message, dict) or message.get("type") != PARENT_INFO:
            return False
        self.info = ParentInfo.from_message(message)
        logger.info(f"Received parent info: {self.info}")
        return True


class ParentResponder:
    """
    Top-level side: answers context requests from embedded frames.

    Args:
        document: The top-level page
        title_extractor: Page title heuristics (a fresh one by default)

    Example:
        >>> responder = ParentResponder(page)
        >>> responder.handle({"type": REQUEST_INFO}, replies.append)
        True
    """

    def __init__(self, document: Document, title_extractor: Optional[TitleExtractor] = None):
        self.document = document
        self.title_extractor = title_extractor or TitleExtractor()

    def handle(self, message: Any, reply: Callable[[Message], None]) -> bool:
        if not isinstance(message, dict) or message.get("type") != REQUEST_INFO:
            return False
        info = self.page_info()
        try:
            reply(info.to_message(PARENT_INFO))
        except Exception as e:
            logger.warning(f"Could not send parent info to frame: {e}")
            return False
        logger.debug(f"Sent parent info to frame: {info}")
        return True

    def page_info(self) -> ParentInfo:
        structured = self.structured_data() or {}

        episode_number = structured.get("episode_number")
        if episode_number is None:
            episode_number = self.detect_episode_number()
        season_number = structured.get("season_number")
        if season_number is None:
            season_number = self.detect_season_number()

        # The page may have changed since the last request
        self.title_extractor.reset()
        canonical_url = structured.get("canonical_url") or self.document.url
        return ParentInfo(
            url=canonical_url,
            title=self.title_extractor.get_page_title(self.document),
            episode_number=episode_number,
            season_number=season_number,
            series_title=structured.get("series_title"),
            episode_title=structured.get("episode_title"),
            canonical_url=canonical_url,
            content_type=structured.get("content_type"),
        )

    def _canonical_href(self) -> Optional[str]:
        link = self.document.query_selector('link[rel="canonical"]')
        href = (link.get_attribute("href") or "").strip() if link is not None else ""
        return href if href.startswith("http") else None

    def structured_data(self) -> Optional[Dict[str, Any]]:
        """
        Read episode details from JSON-LD ``TVEpisode`` nodes.

        Returns:
            Dictionary with series_title, episode_title, canonical_url,
            episode_number, season_number and content_type; only
            canonical_url when the page has no episode node; None when
            neither is available
        """
        nodes: List[Dict[str, Any]] = []
        for script in self.document.query_selector_all('script[type="application/ld+json"]'):
            content = script.text_content
            if not content or not content.strip():
                continue
            try:
                _gather_nodes(json.loads(content), nodes)
            except ValueError as e:
                logger.debug(f"Structured data parsing failed: {e}")

        canonical_href = self._canonical_href()
        for node in nodes:
            if not any(entry.lower() == "tvepisode" for entry in _types_of(node)):
                continue
            url_value = _text_value(node.get("url")) or _text_value(node.get("@id"))
            return {
                "series_title": _name_of(node.get("partOfSeries")) or _name_of(node.get("partOfSeason")),
                "episode_title": _name_of(node.get("name")),
                "canonical_url": url_value or canonical_href,
                "episode_number": ensure_positive_int(node.get("episodeNumber")),
                "season_number": _season_of(node.get("partOfSeason")),
                "content_type": CONTENT_EPISODE,
            }

        if canonical_href:
            return {"canonical_url": canonical_href}
        return None

    def _is_hbo_domain(self) -> bool:
        host = self.document.host_name
        return "hbo" in host or "max" in host

    def _hbo_season_episode(self, pattern: str) -> Optional[int]:
        element = self.document.query_selector('[data-testid="player-ux-season-episode"]')
        text = (element.text_content or "").strip() if element is not None else ""
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            return int(match.group(1))
        logger.debug("HBO Max: no season-episode element found, not a series")
        return None

    def _meta_number(self, selectors) -> Optional[int]:
        for selector in selectors:
            meta = self.document.query_selector(selector)
            content = meta.get_attribute("content") if meta is not None else None
            match = re.search(r"(\d+)", content or "")
            if match and int(match.group(1)) > 0:
                return int(match.group(1))
        return None

    def detect_episode_number(self) -> Optional[int]:
        """Episode number from the page, trying each source in turn."""
        document = self.document
        is_hbo = self._is_hbo_domain()

        def from_hbo():
            return self._hbo_season_episode(r"S\s*\d+\s*E\s*(\d+)") if is_hbo else None

        def from_body_text():
            return None if is_hbo else _search(EPISODE_TEXT_PATTERNS, document.body_text)

        def from_active_element():
            for selector in ACTIVE_EPISODE_SELECTORS:
                element = document.query_selector(selector)
                match = re.search(r"(\d+)", element.text_content or "") if element is not None else None
                if match:
                    return int(match.group(1))
            return None

        def from_query():
            params: Dict[str, str] = {}
            for part in url_query(document.url).split("&"):
                name, _, value = part.partition("=")
                params.setdefault(name, value)
            for name in EPISODE_QUERY_PARAMS:
                match = re.search(r"(\d+)", params.get(name) or "")
                if match:
                    return int(match.group(1))
            return None

        def from_path():
            return _search(EPISODE_PATH_PATTERNS, document.path)

        def from_meta():
            return self._meta_number(
                ('meta[property="episode"]', 'meta[name="episode"]', 'meta[itemprop="episodeNumber"]')
            )

        for method in (from_hbo, from_body_text, from_active_element, from_query, from_path, from_meta):
            try:
                number = method()
            except Exception as e:
                logger.debug(f"Episode detection step {method.__name__} failed: {e}")
                continue
            if number is not None and number > 0:
                return number
        logger.debug("Could not find episode number")
        return None

    def detect_season_number(self) -> Optional[int]:
        """Season number from the page, trying each source in turn."""
        document = self.document
        is_hbo = self._is_hbo_domain()

        def from_hbo():
            return self._hbo_season_episode(r"S\s*(\d+)\s*E\s*\d+") if is_hbo else None

        def from_body_text():
            return None if is_hbo else _search(SEASON_TEXT_PATTERNS, document.body_text)

        def from_url():
            return _search(SEASON_URL_PATTERNS, document.url)

        def from_meta():
            return self._meta_number(
                ('meta[property="season"]', 'meta[name="season"]', 'meta[itemprop="seasonNumber"]')
            )

        for method in (from_hbo, from_body_text, from_url, from_meta):
            try:
                number = method()
            except Exception as e:
                logger.debug(f"Season detection step {method.__name__} failed: {e}")
                continue
            if number is not None and number > 0:
                return number
        logger.debug("Could not find season number")
        return None


class LocalFrameLink:
    """
    In-process message channel between a frame and its parent page.

    Messages are delivered through the scheduler, never synchronously, so the
    frame always composes its first metadata before any reply lands.

    Args:
        scheduler: Scheduler that delivers messages
        responder: Parent-side responder
        context: Frame-side requester (connected by this constructor)
        delay: Delivery latency in seconds for each direction
    """

    def __init__(self, scheduler: Scheduler, responder: ParentResponder, context: FrameContext,
                 delay: float = 0.0):
        self.scheduler = scheduler
        self.responder = responder
        self.context = context
        self.delay = delay
        self.connected = True
        context.connect(self.post_to_parent)

    def disconnect(self) -> None:
        """Drop every message from now on, like a parent that never answers."""
        self.connected = False

    def post_to_parent(self, message: Message) -> None:
        if not self.connected:
            return
        self.scheduler.call_later(
            self.delay,
            lambda: self.responder.handle(message, self.post_to_frame),
            name="frame-request",
        )

    def post_to_frame(self, message: Message) -> None:
        if not self.connected:
            return
        self.scheduler.call_later(self.delay, lambda: self.context.receive(message), name="frame-reply")
