"""
ReWatchKit - Video Progress Tracking Toolkit

A library for finding the video a user is watching on a streaming page,
describing what it is, and remembering where playback stopped.

Features:
- Find every <video> on a page, including inside open shadow roots
- Pick the main video among trailers, previews and ad players
- Per-source strategies (Netflix, YouTube) behind a pluggable registry
- Compose title, series, season and episode metadata, with context relayed
  from a parent page into embedded player frames
- Persist progress under stable content keys, one record per series
- Offline pages via BeautifulSoup, live browsers via Selenium

Example usage:
    >>> from rewatchkit import (
    ...     ManualScheduler, ProgressService, ProgressStore,
    ...     LocalProgressChannel, SessionTracker, SoupDocument,
    ... )
    >>>
    >>> # Track a page snapshot
    >>> page = SoupDocument(html, url="https://www.netflix.com/watch/80100172")
    >>> scheduler = ManualScheduler()
    >>> channel = LocalProgressChannel(ProgressService(ProgressStore()))
    >>> tracker = SessionTracker(page, scheduler, channel)
    >>> tracker.start()
    >>>
    >>> # Drive playback and let the timers run
    >>> tracker.video.update_media(current_time=600, paused=False)
    >>> tracker.video.dispatch_event("play")
    >>> scheduler.advance(5)
"""

import logging

__version__ = "0.2.0"
__author__ = "ReWatchKit Contributors"
__license__ = "MIT"

# Add NullHandler to prevent "No handler found" warnings
# Users should configure logging in their application if they want to see logs
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Core utility functions
from .utils import (
    normalize_url_for_comparison,
    urls_roughly_match,
    strip_query,
    parse_embedded_object,
    sanitize_object_literal,
)

# Document access and scanning
from .dom import (
    Document,
    Element,
    VideoElement,
    SoupDocument,
    find_all_videos,
    find_first_match,
)

# Data models
from .models import (
    CONTENT_EPISODE,
    CONTENT_MOVIE,
    SUPPORTED_PLATFORM_NAMES,
    EpisodeInference,
    PlaybackMetadata,
    StoredProgressRecord,
    ParentInfo,
    TrackerConfig,
    StoreConfig,
)

# Source strategies
from .strategies import (
    SourceStrategy,
    StrategyRegistry,
    NetflixStrategy,
    YouTubeStrategy,
    default_registry,
    infer_episode_from_title,
)

# Main classes
from .scheduler import Scheduler, ManualScheduler
from .selector import CandidateSelector
from .title import TitleExtractor, clean_title
from .composer import MetadataComposer, metadata_signature, detect_platform
from .frames import FrameContext, ParentResponder, LocalFrameLink, REQUEST_INFO, PARENT_INFO
from .channel import ProgressChannel, LocalProgressChannel, ContextInvalidatedError
from .tracker import SessionTracker, SessionState, Session, ResumeOffer

# Store
from .store import (
    derive_content_key,
    rolling_hash,
    MemoryStorage,
    JsonFileStorage,
    ProgressStore,
    ProgressService,
)

# YouTube utilities
from .youtube import is_youtube_url, extract_youtube_id, YouTubeClient

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",

    # Utility functions
    "normalize_url_for_comparison",
    "urls_roughly_match",
    "strip_query",
    "parse_embedded_object",
    "sanitize_object_literal",

    # Document access
    "Document",
    "Element",
    "VideoElement",
    "SoupDocument",
    "find_all_videos",
    "find_first_match",

    # Models
    "CONTENT_EPISODE",
    "CONTENT_MOVIE",
    "SUPPORTED_PLATFORM_NAMES",
    "EpisodeInference",
    "PlaybackMetadata",
    "StoredProgressRecord",
    "ParentInfo",
    "TrackerConfig",
    "StoreConfig",

    # Strategies
    "SourceStrategy",
    "StrategyRegistry",
    "NetflixStrategy",
    "YouTubeStrategy",
    "default_registry",
    "infer_episode_from_title",

    # Main classes
    "Scheduler",
    "ManualScheduler",
    "CandidateSelector",
    "TitleExtractor",
    "clean_title",
    "MetadataComposer",
    "metadata_signature",
    "detect_platform",
    "FrameContext",
    "ParentResponder",
    "LocalFrameLink",
    "REQUEST_INFO",
    "PARENT_INFO",
    "ProgressChannel",
    "LocalProgressChannel",
    "ContextInvalidatedError",
    "SessionTracker",
    "SessionState",
    "Session",
    "ResumeOffer",

    # Store
    "derive_content_key",
    "rolling_hash",
    "MemoryStorage",
    "JsonFileStorage",
    "ProgressStore",
    "ProgressService",

    # YouTube utilities
    "is_youtube_url",
    "extract_youtube_id",
    "YouTubeClient",
]
