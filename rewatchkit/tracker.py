"""
Session tracker for ReWatchKit.

Finds the video being watched on a page, follows its media events and saves
playback progress through a store channel. All timing (detection retries,
navigation debounce, periodic saves, resume checks) runs on a cooperative
Scheduler, so the tracker is single-threaded and fully driven by whoever
pumps the scheduler.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .channel import ProgressChannel, is_invalidation
from .composer import MetadataComposer, metadata_signature
from .dom.base import Document, VideoElement
from .dom.scanner import find_all_videos
from .frames import FrameContext
from .models import PlaybackMetadata, TrackerConfig
from .scheduler import Scheduler, Timer
from .selector import CandidateSelector
from .store.service import GET_PROGRESS, SAVE_PROGRESS
from .strategies.base import SourceStrategy
from .strategies.registry import StrategyRegistry, default_registry
from .title import TitleExtractor
from .utils import is_finite_number

logger = logging.getLogger(__name__)

CONTEXT_NAVIGATION = "navigation"
CONTEXT_LOADED_METADATA = "loadedmetadata"
CONTEXT_DURATION_CHANGE = "durationchange"
CONTEXT_EMPTIED = "emptied"


class SessionState(Enum):
    UNATTACHED = "unattached"
    ATTACHED = "attached"
    PENDING_REATTACH = "pending_reattach"


@dataclass
class ResumeOffer:
    """Saved position offered back to the user for the attached video."""
    url: str
    current_time: float
    percent_complete: float
    record: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Session:
    """Mutable state for the video currently being tracked."""
    video: Optional[VideoElement] = None
    last_saved_time: float = 0.0
    last_video_source: Optional[str] = None
    last_metadata_signature: Optional[str] = None
    detection_attempts: int = 0
    title_cache: TitleExtractor = field(default_factory=TitleExtractor)
    episode_latched: bool = False
    resume_offer: Optional[ResumeOffer] = None
    initial_resume_checked: bool = False


def _read(video: VideoElement, name: str, default: Any = None) -> Any:
    try:
        return getattr(video, name)
    except Exception as e:
        logger.debug(f"Unable to read video {name}: {e}")
        return default


class SessionTracker:
    """
    Tracks playback progress for one document.

    Args:
        document: Page (or frame) being tracked
        scheduler: Timer queue driving the tracker
        channel: Store channel used for saves and resume lookups
        registry: Strategy registry (bundled strategies by default)
        frame: Parent-context requester when the document is embedded
        config: Timing and threshold settings
        resume_handler: Called with a ResumeOffer when saved progress is found

    Example:
        >>> scheduler = ManualScheduler()
        >>> tracker = SessionTracker(page, scheduler, LocalProgressChannel(service))
        >>> tracker.start()
        >>> tracker.state
        <SessionState.ATTACHED: 'attached'>
    """

    def __init__(self, document: Document, scheduler: Scheduler, channel: ProgressChannel,
                 registry: Optional[StrategyRegistry] = None, frame: Optional[FrameContext] = None,
                 config: Optional[TrackerConfig] = None,
                 resume_handler: Optional[Callable[[ResumeOffer], None]] = None):
        self.document = document
        self.scheduler = scheduler
        self.channel = channel
        self.registry = registry if registry is not None else default_registry()
        self.frame = frame
        self.config = config or TrackerConfig()
        self.resume_handler = resume_handler

        self.session = Session()
        self.selector = CandidateSelector(self.config)
        self.composer = MetadataComposer()

        self._strategy: Optional[SourceStrategy] = None
        self._last_known_url: Optional[str] = None
        self._progress_timer: Optional[Timer] = None
        self._resume_timer: Optional[Timer] = None
        self._retry_timer: Optional[Timer] = None
        self._navigation_timer: Optional[Timer] = None

        # Bound once so the same callables can be removed again on detach
        self._handlers: Dict[str, Callable[[], None]] = {
            "play": self._on_play,
            "pause": self._on_pause,
            "timeupdate": self._on_time_update,
            "ended": self._on_ended,
            CONTEXT_LOADED_METADATA: lambda: self._handle_context_update(CONTEXT_LOADED_METADATA),
            CONTEXT_DURATION_CHANGE: lambda: self._handle_context_update(CONTEXT_DURATION_CHANGE),
            CONTEXT_EMPTIED: lambda: self._handle_context_update(CONTEXT_EMPTIED),
        }

    @property
    def video(self) -> Optional[VideoElement]:
        return self.session.video

    @property
    def state(self) -> SessionState:
        if self.session.video is not None:
            return SessionState.ATTACHED
        if self._is_pending(self._retry_timer) or self._is_pending(self._navigation_timer):
            return SessionState.PENDING_REATTACH
        return SessionState.UNATTACHED

    @staticmethod
    def _is_pending(timer: Optional[Timer]) -> bool:
        return timer is not None and not timer.cancelled

    def start(self) -> None:
        logger.info("Initializing video tracker...")
        self._last_known_url = self.document.url
        self.request_parent_context()
        self.detect()

    def stop(self) -> None:
        """Detach and cancel every pending tracker timer."""
        self.detach()
        for timer in (self._retry_timer, self._navigation_timer, self._resume_timer, self._progress_timer):
            self.scheduler.cancel(timer)
        self._retry_timer = None
        self._navigation_timer = None
        logger.info("Video tracker stopped")

    def request_parent_context(self) -> None:
        if self.frame is not None and self.document.is_embedded:
            self.frame.request()

    def strategy(self) -> Optional[SourceStrategy]:
        """Active strategy for the current host, cached until the context changes."""
        if self._strategy is not None:
            return self._strategy
        host = self.document.host_name
        try:
            self._strategy = self.registry.detect(host)
        except Exception as e:
            logger.warning(f"Failed to create source strategies for {host}: {e}")
            self._strategy = None
        return self._strategy

    def detect(self) -> Optional[VideoElement]:
        """
        Scan the page and attach to the best video candidate.

        Returns:
            The attached video, or None when a retry was scheduled or
            detection gave up
        """
        try:
            videos = find_all_videos(self.document)
        except Exception as e:
            logger.warning(f"Video scan failed: {e}")
            videos = []
        logger.debug(f"Found {len(videos)} video element(s) (including shadow DOM)")

        if not videos:
            self._schedule_retry("No playable video found yet")
            return None

        strategy = self.strategy()
        video = self.selector.select(videos, self.document, strategy)
        if video is None:
            self._schedule_retry("Candidate selection returned no video")
            return None

        try:
            rect = video.bounding_rect()
            logger.info(f"Selected video {video!r} size {round(rect.width)}x{round(rect.height)}")
        except Exception as e:
            logger.debug(f"Selected video but failed to measure size: {e}")
        self.attach(video)
        return video

    def _schedule_retry(self, reason: str) -> None:
        session = self.session
        if session.detection_attempts >= self.config.max_detection_attempts:
            logger.info("Max detection attempts reached, giving up")
            return
        session.detection_attempts += 1
        logger.debug(f"{reason}, retry attempt {session.detection_attempts} in {self.config.retry_delay}s")
        self.scheduler.cancel(self._retry_timer)
        self._retry_timer = self.scheduler.call_later(self.config.retry_delay, self.detect, name="detect-retry")

    def attach(self, video: VideoElement) -> None:
        session = self.session
        if session.video is not None and session.video == video:
            logger.debug("Already attached to this video")
            return

        self.detach()
        self.scheduler.cancel(self._retry_timer)
        self._retry_timer = None

        session.detection_attempts = 0
        session.title_cache.reset()
        session.episode_latched = False
        session.resume_offer = None
        session.video = video
        session.last_video_source = _read(video, "current_src") or None

        logger.info("Attaching to video element")
        for event, handler in self._handlers.items():
            video.add_event_listener(event, handler)

        delay = self.config.embedded_attach_delay if self.document.is_embedded else 0.0
        self.schedule_resume_check(delay)

    def detach(self) -> None:
        session = self.session
        video = session.video
        if video is None:
            return
        for event, handler in self._handlers.items():
            try:
                video.remove_event_listener(event, handler)
            except Exception as e:
                logger.debug(f"Error removing listener for {event}: {e}")
        self._stop_progress_interval()
        self.scheduler.cancel(self._resume_timer)
        self._resume_timer = None
        session.initial_resume_checked = False
        session.video = None
        logger.debug("Detached from video element")

    def on_dom_mutation(self) -> None:
        """React to a document change: re-detect when the video went away."""
        video = self.session.video
        if video is None:
            self.detect()
            return
        try:
            still_present = self.document.contains(video)
        except Exception as e:
            logger.debug(f"Unable to check attached video: {e}")
            still_present = False
        if not still_present:
            logger.info("Attached video left the document, detecting again")
            self.detach()
            self.detect()

    def on_url_change(self, reason: str = CONTEXT_NAVIGATION) -> bool:
        """
        React to a possible URL change.

        Returns:
            True if the URL really changed and the context was reset
        """
        current_url = self.document.url
        if not current_url or current_url == self._last_known_url:
            return False
        previous_url = self._last_known_url
        self._last_known_url = current_url
        logger.info(f"Navigation change detected ({reason}): {previous_url} -> {current_url}")
        self._handle_context_update(CONTEXT_NAVIGATION)
        return True

    on_navigation = on_url_change

    def _handle_context_update(self, reason: str) -> None:
        session = self.session
        session.title_cache.reset()
        self._strategy = None
        session.last_metadata_signature = None
        session.last_video_source = _read(session.video, "current_src") if session.video is not None else None
        session.last_saved_time = 0.0
        self.request_parent_context()

        if reason == CONTEXT_NAVIGATION:
            # A reused element starts a new session on the new page
            session.episode_latched = False
            session.resume_offer = None
            self.scheduler.cancel(self._navigation_timer)
            self._navigation_timer = self.scheduler.call_later(
                self.config.navigation_debounce, self._detect_after_navigation, name="navigation-detect"
            )
            self.schedule_resume_check(self.config.navigation_resume_delay)
            return

        if reason in (CONTEXT_LOADED_METADATA, CONTEXT_DURATION_CHANGE):
            self.schedule_resume_check(self.config.metadata_resume_delay)

    def _detect_after_navigation(self) -> None:
        self._navigation_timer = None
        self.session.detection_attempts = 0
        self.detect()

    def _on_play(self) -> None:
        logger.debug("Video playing")
        self._stop_progress_interval()
        self._progress_timer = self.scheduler.call_every(
            self.config.save_interval, self.save_progress, name="progress-interval"
        )

    def _on_pause(self) -> None:
        logger.debug("Video paused")
        self._stop_progress_interval()
        self.save_progress()

    def _on_time_update(self) -> None:
        video = self.session.video
        if video is None:
            return
        current_time = _read(video, "current_time", 0.0)
        if not is_finite_number(current_time):
            return
        if abs(current_time - self.session.last_saved_time) >= self.config.save_threshold:
            self.save_progress()

    def _on_ended(self) -> None:
        logger.debug("Video ended")
        self.save_progress(completed=True)

    def _stop_progress_interval(self) -> None:
        self.scheduler.cancel(self._progress_timer)
        self._progress_timer = None

    @property
    def saving_periodically(self) -> bool:
        return self._is_pending(self._progress_timer)

    def save_progress(self, completed: bool = False) -> bool:
        """
        Compose metadata for the attached video and send it to the store.

        Args:
            completed: Save the position as the full duration

        Returns:
            True if the store accepted the save
        """
        session = self.session
        video = session.video
        if video is None:
            logger.debug("Cannot save progress - no video element")
            return False

        current_time = _read(video, "current_time", 0.0)
        duration = _read(video, "duration", math.nan)
        current_src = _read(video, "current_src")
        if current_src and current_src != session.last_video_source:
            logger.debug(f"Video source updated: {session.last_video_source} -> {current_src}")
            session.last_video_source = current_src
            session.last_metadata_signature = None

        if not isinstance(current_time, (int, float)) or not isinstance(duration, (int, float)):
            logger.debug("Skipping save - media position unreadable")
            return False
        if current_time < 1 or math.isnan(duration) or duration < 1:
            logger.debug(f"Skipping save - insufficient progress or duration ({current_time}/{duration})")
            return False

        strategy = self.strategy()
        try:
            metadata = self.composer.compose(self.document, strategy, session, self.frame)
        except Exception as e:
            logger.warning(f"Skipping save - metadata unavailable: {e}")
            return False

        if not metadata.platform and strategy is not None:
            try:
                metadata.platform = strategy.get_platform_name()
            except Exception as e:
                logger.debug(f"Platform name lookup failed: {e}")
        platform = metadata.platform

        if not self._passes_platform_gates(metadata, strategy, duration):
            return False

        if platform == "Netflix" and (metadata.title or "").strip().lower() == "general description":
            logger.debug("Skipping Netflix general description preview")
            return False

        signature = metadata_signature(metadata)
        if signature and signature != session.last_metadata_signature:
            previous = session.last_metadata_signature
            session.last_metadata_signature = signature
            if previous is not None:
                logger.info(f"Playback metadata changed: {previous} -> {signature}")
                self.schedule_resume_check(self.config.signature_resume_delay)

        payload = metadata.to_payload(duration if completed else current_time, duration)
        logger.debug(f"Saving progress data: {payload}")

        if not self.channel.available():
            logger.info("Store context invalidated - skipping save")
            self._stop_progress_interval()
            return False

        try:
            response = self.channel.send({"action": SAVE_PROGRESS, "data": payload})
        except Exception as e:
            if is_invalidation(e):
                logger.info("Store context was reloaded - stopping periodic saves")
                self._stop_progress_interval()
            else:
                logger.warning(f"Error saving progress: {e}")
            return False

        if isinstance(response, dict) and response.get("success"):
            session.last_saved_time = current_time
            logger.debug("Progress saved successfully")
            return True

        error = response.get("error") if isinstance(response, dict) else None
        if error and is_invalidation(Exception(error)):
            logger.info("Store context was reloaded - stopping periodic saves")
            self._stop_progress_interval()
        else:
            logger.warning(f"Failed to save progress: {response}")
        return False

    def _passes_platform_gates(self, metadata: PlaybackMetadata, strategy: Optional[SourceStrategy],
                               duration: float) -> bool:
        platform = metadata.platform
        config = self.config

        if platform not in config.duration_exempt_platforms:
            if math.isfinite(duration) and duration < config.minimum_clip_duration:
                logger.debug(f"Skipping save - duration {duration} below minimum {config.minimum_clip_duration}")
                return False
            if strategy is not None:
                try:
                    valid = strategy.is_valid_playback_page(self.document, metadata)
                except Exception as e:
                    logger.warning(f"Playback page check failed, assuming valid: {e}")
                    valid = True
                if not valid:
                    logger.debug(f"Not a valid playback page for {platform} - skipping save")
                    return False

        if config.supported_platforms is not None and platform not in config.supported_platforms:
            logger.debug(f"Skipping unsupported platform: {platform or 'Unknown'}")
            return False
        return True

    def schedule_resume_check(self, delay: float = 0.0) -> None:
        self.scheduler.cancel(self._resume_timer)
        self.session.initial_resume_checked = False
        self._resume_timer = self.scheduler.call_later(max(0.0, delay), self._run_resume_check, name="resume-check")

    def _run_resume_check(self) -> None:
        self._resume_timer = None
        if self.session.video is None:
            return
        self.check_saved_progress()
        self.session.initial_resume_checked = True

    def resume_lookup_url(self) -> str:
        """URL used to look up saved progress for the attached video."""
        info = self.frame.info if self.frame is not None else None
        if info is not None and info.url and info.url.startswith("http"):
            return info.url
        referrer = self.document.referrer or ""
        if referrer.startswith("http") and referrer != f"{self.document.origin}/":
            return referrer
        return self.document.url

    def check_saved_progress(self) -> Optional[ResumeOffer]:
        """
        Ask the store for saved progress and emit a resume offer if worthwhile.

        Returns:
            The offer, or None when nothing is worth resuming
        """
        if self.session.video is None:
            return None
        if not self.channel.available():
            logger.info("Store context invalidated - skipping resume check")
            return None

        url = self.resume_lookup_url()
        try:
            response = self.channel.send({"action": GET_PROGRESS, "url": url})
        except Exception as e:
            logger.warning(f"Could not check saved progress: {e}")
            return None

        if not isinstance(response, dict) or not response.get("success"):
            return None
        data = response.get("data")
        if not isinstance(data, dict):
            return None

        current_time = data.get("currentTime")
        percent = data.get("percentComplete")
        if not is_finite_number(current_time) or not is_finite_number(percent):
            return None
        if current_time <= self.config.resume_min_seconds or percent >= self.config.resume_max_percent:
            logger.debug(f"Saved progress at {current_time}s ({percent}%) not worth resuming")
            return None

        offer = ResumeOffer(url=url, current_time=float(current_time), percent_complete=float(percent), record=data)
        self.session.resume_offer = offer
        logger.info(f"Saved progress found at {current_time}s ({percent}%)")
        if self.resume_handler is not None:
            try:
                self.resume_handler(offer)
            except Exception as e:
                logger.warning(f"Resume handler failed: {e}")
        return offer

    def resume(self, seconds: Optional[float] = None) -> bool:
        """
        Seek the attached video to ``seconds`` or to the pending offer.

        Returns:
            True if a seek was issued
        """
        video = self.session.video
        if seconds is None and self.session.resume_offer is not None:
            seconds = self.session.resume_offer.current_time
        if video is None or seconds is None:
            return False
        try:
            video.seek(seconds)
        except Exception as e:
            logger.warning(f"Failed to seek to {seconds}s: {e}")
            return False
        logger.info(f"Resumed playback at {seconds}s")
        self.session.resume_offer = None
        return True
