"""
Page title heuristics for ReWatchKit.

Used when no strategy supplies a title for a top-level page. Tries an ordered
list of selectors, rejects generic labels (sign-in pages, cookie banners,
player controls), cleans the winner, and falls back to the document title.
The result is cached until the tracker resets it on navigation or attach.
"""

import logging
import re
from typing import Optional

from .dom.base import Document
from .dom.scanner import find_first_match, should_skip_title_node
from .utils import strip_bidi_controls

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown Title"

UNWANTED_TITLES = (
    "privacy preference center",
    "cookie preferences",
    "sign in",
    "login",
    "register",
    "home",
    "watch",
    "loading",
    "error",
    "netflix",
    "hbo max",
    "hbo",
    "max",
    "prime video",
    "disney+",
    "hulu",
)

CONTROL_LABELS = ("audio", "audio and subtitles", "audio & subtitles", "subtitles", "settings")

TITLE_SELECTORS = (
    'meta[property="og:title"]',
    'meta[name="title"]',
    'meta[property="twitter:title"]',
    '[class*="Metadata"] [class*="Title"]',
    '[class*="metadata"] h1',
    '[class*="VideoMetadata"] h1',
    '[class*="PlayerMetadata"]',
    'button[class*="Title"]',
    '[class*="show-title"]',
    '[class*="series-title"]',
    '[class*="SeriesTitle"]',
    '[class*="ShowTitle"]',
    '[data-testid*="series"]',
    '[data-testid*="show"]',
    '[class*="breadcrumb"] a',
    '[class*="Breadcrumb"] a',
    'a[href*="/series/"]',
    'a[href*="/view/"]',
    '[class*="series"] h1',
    '[class*="series"] h2',
    '[data-uia*="title"]',
    '[data-testid*="title"]',
    '[aria-label*="title"]',
    '[class*="video-title"]',
    '[class*="player-title"]',
    '[class*="VideoTitle"]',
    '[class*="PlayerTitle"]',
    '[class*="film-name"]',
    '[class*="movie-title"]',
    '[class*="anime-title"]',
    '[class*="content-title"]',
    '[class*="media-title"]',
    'h1[class*="title"]:not([class*="episode"])',
    'h2[class*="title"]:not([class*="episode"])',
    'h1[class*="Title"]:not([class*="Episode"])',
    'h2[class*="Title"]:not([class*="Episode"])',
    '.title:not(.episode-title)',
    '.Title:not(.EpisodeTitle)',
    'h1:not([class*="episode"])',
    'h2:not([class*="episode"])',
    '[class*="title"]',
    '[class*="Title"]',
    '[id*="title"]',
    '[id*="Title"]',
    'title',
)

HBO_TITLE_SELECTORS = (
    '[class*="Title-Fuse"]',
    '[class*="player"] h1:not(:has(*))',
    '[class*="ContentMetadata"] span:first-child',
    '[class*="PlayerMetadata"] > div:first-child',
)

GENERIC_TITLE_SELECTORS = (
    "h1",
    '[class*="title"]',
    '[class*="Title"]',
    '[data-testid*="title"]',
    'meta[property="og:title"]',
    "title",
)

GENERIC_TITLE_REJECTS = (
    "privacy preference center",
    "cookie preferences",
    "sign in",
    "login",
    "register",
    "home",
    "watch",
    "loading",
    "error",
)

_PLATFORM_SUFFIX_RE = re.compile(r"\s*[•\-|:]\s*(HBO\s*Max?|Max|Netflix|Prime\s*Video|Disney\+?|Hulu).*$", re.IGNORECASE)
_GENERIC_DISNEY_RE = re.compile(
    r"disney\+\s*[|•-]\s*(movies?\s+and\s+shows|home|watch|official|originals?|series|tv\s+shows)",
    re.IGNORECASE,
)
_SEASON_EPISODE_MARK_RE = re.compile(r"S\s*\d+\s*E\s*\d+", re.IGNORECASE)


def clean_title(title: str) -> str:
    """
    Normalise a raw title string.

    Strips bidi controls, splits glued words ("TheOffice2" becomes
    "The Office 2"), and removes platform suffixes, "Watch" prefixes and
    streaming boilerplate.

    Example:
        >>> clean_title("Watch TheBear - Disney+")
        'The Bear'
    """
    value = title.strip()
    value = strip_bidi_controls(value)
    value = re.sub(r"\s+", " ", value)
    value = re.sub(r"([a-z])([A-Z])", r"\1 \2", value)
    value = re.sub(r"([a-zA-Z])([0-9])", r"\1 \2", value)
    value = re.sub(r"([0-9])([A-Z])", r"\1 \2", value)
    value = re.sub(r"\s+", " ", value)
    value = _PLATFORM_SUFFIX_RE.sub("", value)
    value = re.sub(r"^Watch\s+", "", value, flags=re.IGNORECASE)
    value = re.sub(r"^Now\s+Playing:?\s*", "", value, flags=re.IGNORECASE)
    value = re.sub(r"\s*[-|]\s*Official\s+(Site|Website)", "", value, flags=re.IGNORECASE)
    value = re.sub(r"\s+English\s+(Sub|Dub|Subtitles?|Audio).*$", "", value, flags=re.IGNORECASE)
    value = re.sub(r"\s+\((Sub|Dub|Subtitles?)\)$", "", value, flags=re.IGNORECASE)
    value = re.sub(r"\s*[-|]\s*Stream(ing)?\s+(Now|Online|Free)?$", "", value, flags=re.IGNORECASE)
    value = re.sub(r"\s*[-|]\s*Full\s+(Episode|Movie|HD).*$", "", value, flags=re.IGNORECASE)
    return value.strip()


def is_generic_disney_title(title: str) -> bool:
    normalized = title.lower()
    return normalized.startswith("disney+") and (
        normalized == "disney+" or bool(_GENERIC_DISNEY_RE.search(title))
    )


def is_control_label(title: str) -> bool:
    return title.lower() in CONTROL_LABELS


def _is_unwanted(text: str) -> bool:
    lower = text.lower()
    return any(lower == unwanted or (unwanted in lower and len(text) < 15) for unwanted in UNWANTED_TITLES)


def _node_text(node) -> str:
    if node.tag_name == "META":
        return node.get_attribute("content") or ""
    return node.text_content or ""


def refine_fallback(fallback: str) -> str:
    """
    Pull a show name out of a document title.

    Tries the text after a bullet or pipe, then the text before ": S1E2",
    then the text before a single dash.
    """
    bullet = re.search(r"[•|]\s*([^•|\-]+)", fallback)
    if bullet and len(bullet.group(1).strip()) > 2:
        value = bullet.group(1).strip()
        return re.sub(r"\s*[-|•]\s*(HBO\s*Max?|Max|Netflix|Prime|Hulu|Disney\+?)$", "", value,
                      flags=re.IGNORECASE).strip()

    if re.search(r":\s*S\d+\s*E\d+", fallback, re.IGNORECASE):
        show = re.match(r"^([^:]+):", fallback)
        if show:
            return show.group(1).strip()

    dash = re.match(r"^([^-]+)\s*-\s*[^-]+$", fallback)
    if dash and not re.search(r"HBO|Max|Netflix|Prime|Hulu", dash.group(1), re.IGNORECASE):
        return dash.group(1).strip()

    return fallback


def generic_extract_title(document: Document) -> str:
    """
    Title for an embedded frame with no relayed title and no strategy title.

    Returns:
        The first acceptable title across the document and its shadow roots,
        else the document title, else "Unknown Title"
    """
    def accept(node, _root) -> Optional[str]:
        if should_skip_title_node(node):
            return None
        text = _node_text(node).strip()
        if not text or len(text) >= 200:
            return None
        lower = text.lower()
        if any(reject in lower for reject in GENERIC_TITLE_REJECTS):
            return None
        return text

    title = find_first_match(document, GENERIC_TITLE_SELECTORS, accept)
    return title or document.title or UNKNOWN_TITLE


class TitleExtractor:
    """
    Cached page-title lookup for top-level pages.

    Example:
        >>> extractor = TitleExtractor()
        >>> extractor.get_page_title(document)
        'The Bear'
    """

    def __init__(self):
        self.cached_title: Optional[str] = None

    def reset(self) -> None:
        self.cached_title = None

    def get_page_title(self, document: Document) -> str:
        if self.cached_title:
            return self.cached_title

        host = document.host_name
        if "hbo" in host or "max" in host:
            hbo_title = self._find_hbo_title(document)
            if hbo_title:
                self.cached_title = hbo_title
                return hbo_title

        selector_title = self._try_selectors(document)
        if selector_title:
            self.cached_title = selector_title
            return selector_title

        return self._fallback_title(document)

    def _query(self, document: Document, selector: str):
        try:
            return document.query_selector(selector)
        except Exception as e:
            logger.debug(f"Title selector '{selector}' failed: {e}")
            return None

    def _find_hbo_title(self, document: Document) -> Optional[str]:
        player_title = self._query(document, '[data-testid="player-ux-asset-title"]')
        if player_title is not None and player_title.text_content.strip():
            show_name = player_title.text_content.strip()
            logger.debug(f"Found HBO Max show name from player UI: {show_name}")
            return show_name

        for selector in HBO_TITLE_SELECTORS:
            element = self._query(document, selector)
            if element is None:
                continue
            text = (element.text_content or "").strip()
            if text and not _SEASON_EPISODE_MARK_RE.search(text) and 2 < len(text) < 100:
                logger.debug(f"Found HBO Max show name: {text}")
                return text
        return None

    def _try_selectors(self, document: Document) -> Optional[str]:
        for selector in TITLE_SELECTORS:
            element = self._query(document, selector)
            if element is None:
                continue
            try:
                if should_skip_title_node(element):
                    continue
                trimmed = _node_text(element).strip()
            except Exception as e:
                logger.debug(f"Unable to read title candidate for '{selector}': {e}")
                continue
            if not trimmed or len(trimmed) >= 200:
                continue
            if _is_unwanted(trimmed):
                logger.debug(f"Skipping generic title: {trimmed}")
                continue

            cleaned = clean_title(trimmed)
            lowered = cleaned.lower()
            if ("cookie preference center" in lowered or "cookie preferences" in lowered
                    or "privacy preference center" in lowered):
                logger.debug(f"Skipping cookie banner title: {cleaned}")
                continue
            if is_generic_disney_title(cleaned):
                logger.debug(f"Skipping generic Disney+ title: {cleaned}")
                continue
            if is_control_label(cleaned):
                logger.debug(f"Skipping control label title: {cleaned}")
                continue
            if not cleaned:
                continue

            logger.debug(f"Found title {cleaned!r} from selector {selector}")
            return cleaned
        return None

    def _fallback_title(self, document: Document) -> str:
        fallback = refine_fallback(document.title or "")
        lower = fallback.lower()

        if not fallback or lower in ("netflix", "hbo max", "max") or len(fallback.strip()) < 2:
            logger.debug("Document title is generic, trying headings")
            try:
                headings = document.query_selector_all('h1, h2, h3, strong, b, a[href*="/series/"]')
            except Exception as e:
                logger.debug(f"Heading scan failed: {e}")
                headings = []
            for heading in headings:
                text = (heading.text_content or "").strip()
                if 3 < len(text) < 100 and text.lower() not in UNWANTED_TITLES:
                    self.cached_title = text
                    return text
            if fallback and ("max" in fallback or "hbo" in fallback):
                return "HBO Max Content"
            return "Netflix Content"

        fallback = re.sub(r"\s*[-|]\s*(HBO\s*Max?|Max|HiAnime|Netflix|Watch\s+on\s+Netflix|Prime\s+Video|Disney\+)$",
                          "", fallback, flags=re.IGNORECASE)
        fallback = re.sub(r"^Watch\s+", "", fallback, flags=re.IGNORECASE)

        if fallback.lower() in UNWANTED_TITLES:
            logger.debug(f"Fallback title is generic: {fallback}")
            return "Netflix Content"

        self.cached_title = fallback or None
        return fallback or UNKNOWN_TITLE
