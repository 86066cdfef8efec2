"""
Candidate selection for ReWatchKit.

Chooses the video the user is actually watching when a page holds several:
trailers, muted background loops, preview tiles and ad players often sit next
to the real asset. Each candidate gets a weighted score built from its size,
readiness, duration, source and position in the page.
"""

import logging
import math
import re
from typing import List, Optional, Sequence, Tuple

from .dom.base import HAVE_METADATA, Document, Element, VideoElement, walk_ancestors
from .dom.scanner import find_first_match, is_node_in_up_next_section, is_node_visible
from .models import CONTENT_EPISODE, CONTENT_MOVIE, TrackerConfig
from .strategies.base import GENERIC_PLAYBACK_ROOT_SELECTORS, SourceStrategy

logger = logging.getLogger(__name__)

AREA_WEIGHT_DIVISOR = 4000
MAX_AREA_SCORE = 40
SHORT_CLIP_SECONDS = 120

_SERIES_PATH_RE = re.compile(r"/series/|/season/|/seasons/|/episode/|/episodes/", re.IGNORECASE)


def _duration_of(video: VideoElement) -> float:
    try:
        duration = video.duration
    except Exception as e:
        logger.debug(f"Unable to read candidate duration: {e}")
        return math.nan
    if isinstance(duration, (int, float)) and not isinstance(duration, bool):
        return float(duration)
    return math.nan


def _ready_state_of(video: VideoElement) -> int:
    try:
        return int(video.ready_state or 0)
    except Exception as e:
        logger.debug(f"Unable to read candidate ready state: {e}")
        return 0


def _area_of(element: Element) -> float:
    try:
        return element.bounding_rect().area
    except Exception as e:
        logger.debug(f"Unable to measure candidate: {e}")
        return 0.0


def is_within_playback_view(element: Element, document: Document,
                            selectors: Sequence[str] = GENERIC_PLAYBACK_ROOT_SELECTORS) -> bool:
    """
    Check that an element sits inside a recognised player container.

    The ancestor walk crosses shadow boundaries. When the page has no known
    playback root at all, every element is accepted.

    Args:
        element: Candidate element
        document: Page the candidate belongs to
        selectors: Player container selectors

    Returns:
        True if the element is inside (or is) a playback root
    """
    joined = ", ".join(selectors)
    if not joined:
        return True

    for ancestor in walk_ancestors(element):
        try:
            if ancestor.matches(joined):
                return True
        except Exception as e:
            logger.debug(f"Playback view match failed: {e}")
            break

    playback_root = find_first_match(document, selectors, lambda node, _root: node)
    if playback_root is None:
        return True
    if playback_root == element:
        return True
    try:
        if playback_root.contains(element):
            return True
        host = element.root_node().host
        if host is not None and host.matches(joined):
            return True
    except Exception as e:
        logger.debug(f"Playback view containment check failed: {e}")
    return False


def _passes_shape_gates(video: VideoElement, document: Document, selectors: Sequence[str]) -> bool:
    if not is_within_playback_view(video, document, selectors):
        return False
    if is_node_in_up_next_section(video):
        return False
    if not is_node_visible(video):
        return False
    duration = _duration_of(video)
    if math.isfinite(duration) and 0 < duration < SHORT_CLIP_SECONDS:
        return False
    return True


def is_series_candidate(video: VideoElement, document: Document,
                        selectors: Sequence[str] = GENERIC_PLAYBACK_ROOT_SELECTORS) -> bool:
    """Series-like shape: a visible player video with metadata or a known duration."""
    if not _passes_shape_gates(video, document, selectors):
        return False
    return _ready_state_of(video) >= HAVE_METADATA or not math.isnan(_duration_of(video))


def is_movie_candidate(video: VideoElement, document: Document,
                       selectors: Sequence[str] = GENERIC_PLAYBACK_ROOT_SELECTORS) -> bool:
    """Movie-like shape: a visible player video with metadata or a rendered box."""
    if not _passes_shape_gates(video, document, selectors):
        return False
    if _ready_state_of(video) >= HAVE_METADATA:
        return True
    try:
        rect = video.bounding_rect()
    except Exception as e:
        logger.debug(f"Unable to measure movie candidate: {e}")
        return False
    return rect.width > 0 and rect.height > 0


def detect_content_type(document: Document, strategy: Optional[SourceStrategy] = None) -> str:
    """Content type used to pick the shape predicate while scoring."""
    if strategy is not None:
        try:
            content_type = strategy.get_content_type(document)
        except Exception as e:
            logger.debug(f"Strategy content type lookup failed: {e}")
            content_type = None
        if content_type in (CONTENT_EPISODE, CONTENT_MOVIE):
            return content_type
    if _SERIES_PATH_RE.search(document.path or ""):
        return CONTENT_EPISODE
    return CONTENT_MOVIE


class CandidateSelector:
    """
    Picks the best video among the candidates found on a page.

    Args:
        config: Tracker configuration (selection mode, long-form threshold)

    Example:
        >>> selector = CandidateSelector()
        >>> video = selector.select(find_all_videos(document), document)
    """

    def __init__(self, config: Optional[TrackerConfig] = None):
        self.config = config or TrackerConfig()

    def filter(self, candidates: Sequence[VideoElement],
               strategy: Optional[SourceStrategy] = None) -> List[VideoElement]:
        """Apply the strategy filter, keeping the input when it yields nothing."""
        candidates = list(candidates)
        if strategy is None or not candidates:
            return candidates
        try:
            filtered = strategy.filter_video_elements(candidates)
        except Exception as e:
            logger.warning(f"Strategy video filter failed: {e}")
            return candidates
        if filtered:
            return list(filtered)
        logger.debug("Strategy filter removed every candidate, using unfiltered set")
        return candidates

    def select(self, candidates: Sequence[VideoElement], document: Document,
               strategy: Optional[SourceStrategy] = None) -> Optional[VideoElement]:
        """
        Select the video to track.

        Args:
            candidates: Videos found by the scanner
            document: Page being tracked
            strategy: Active source strategy, if any

        Returns:
            The chosen video, or None only when there are no candidates
        """
        videos = self.filter(candidates, strategy)
        if not videos:
            return None

        if strategy is not None:
            try:
                chosen = strategy.select_video_element(videos, document)
            except Exception as e:
                logger.warning(f"Strategy video selection failed: {e}")
                chosen = None
            if chosen is not None:
                return chosen

        if len(videos) == 1:
            return videos[0]

        if not self.config.scored_selection:
            return self.select_largest(videos)

        content_type = detect_content_type(document, strategy)
        ranked = self.rank(videos, document, strategy, content_type)
        best_video, best_score = ranked[0]
        if best_score <= 0:
            return videos[0]
        logger.debug(f"Selected candidate with score {best_score:.1f} out of {len(videos)}")
        return best_video

    def rank(self, videos: Sequence[VideoElement], document: Document,
             strategy: Optional[SourceStrategy] = None,
             content_type: Optional[str] = None) -> List[Tuple[VideoElement, float]]:
        """Candidates with their scores, best first; ties keep discovery order."""
        if content_type is None:
            content_type = detect_content_type(document, strategy)
        scored = [(video, self.score(video, document, strategy, content_type)) for video in videos]
        # sorted() is stable, so the first-encountered candidate wins a tie
        return sorted(scored, key=lambda item: item[1], reverse=True)

    def score(self, video: VideoElement, document: Document,
              strategy: Optional[SourceStrategy] = None,
              content_type: str = CONTENT_MOVIE) -> float:
        """
        Weighted score for one candidate.

        Args:
            video: Candidate video
            document: Page being tracked
            strategy: Active source strategy, if any
            content_type: Expected content type for the shape bonus

        Returns:
            Score, higher is better
        """
        selectors = GENERIC_PLAYBACK_ROOT_SELECTORS
        media_pattern = None
        if strategy is not None:
            try:
                selectors = strategy.playback_root_selectors() or selectors
                media_pattern = strategy.first_party_media_pattern()
            except Exception as e:
                logger.debug(f"Strategy selection hints unavailable: {e}")

        score = 0.0

        area = _area_of(video)
        if area > 0:
            score += min(area / AREA_WEIGHT_DIVISOR, MAX_AREA_SCORE)

        ready_state = _ready_state_of(video)
        if ready_state >= HAVE_METADATA:
            score += 40
        if ready_state > HAVE_METADATA:
            score += 15

        duration = _duration_of(video)
        if math.isfinite(duration):
            if duration >= self.config.long_form_duration:
                score += 80
            elif duration >= SHORT_CLIP_SECONDS:
                score += 20
            elif duration > 0:
                score += 5

        try:
            if video.buffered_length > 0:
                score += 10
        except Exception as e:
            logger.debug(f"Unable to read buffered ranges: {e}")

        try:
            source = video.current_src or ""
        except Exception as e:
            logger.debug(f"Unable to read candidate source: {e}")
            source = ""
        if source.startswith("blob:"):
            score += 25
        elif media_pattern and re.search(media_pattern, source, re.IGNORECASE):
            score += 15

        if content_type == CONTENT_EPISODE and is_series_candidate(video, document, selectors):
            score += 30
        if content_type == CONTENT_MOVIE and is_movie_candidate(video, document, selectors):
            score += 30

        if is_within_playback_view(video, document, selectors):
            score += 35

        try:
            if video.autoplay and not video.loop:
                score += 5
        except Exception as e:
            logger.debug(f"Unable to read autoplay flags: {e}")

        return score

    def select_largest(self, videos: Sequence[VideoElement]) -> Optional[VideoElement]:
        """Largest candidate by rendered area; the first one when none has a box."""
        if not videos:
            return None
        largest = videos[0]
        largest_area = _area_of(largest)
        for video in videos[1:]:
            area = _area_of(video)
            if area > largest_area:
                largest, largest_area = video, area
        return largest
