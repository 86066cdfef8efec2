"""
Live browser runner for ReWatchKit.

A WebDriver session does not push media events to Python, so the runner polls:
each tick it fires due timers, notices URL changes and DOM mutations, and turns
the difference between two media snapshots of the attached video into the
events a browser would have dispatched.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from selenium.common.exceptions import WebDriverException
from selenium.webdriver.remote.webdriver import WebDriver

from .channel import LocalProgressChannel
from .dom.base import HAVE_METADATA, VideoElement
from .dom.selenium_backend import SeleniumDocument
from .frames import FrameContext, LocalFrameLink, ParentResponder
from .models import TrackerConfig
from .scheduler import Scheduler
from .store.service import ProgressService
from .strategies.registry import StrategyRegistry
from .tracker import ResumeOffer, SessionTracker

logger = logging.getLogger(__name__)


def _same_number(a: float, b: float) -> bool:
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True
    return a == b


@dataclass
class MediaSnapshot:
    """Media state of a video at one poll."""
    paused: bool = True
    current_time: float = 0.0
    duration: float = math.nan
    current_src: str = ""
    ready_state: int = 0
    ended: bool = False

    @classmethod
    def from_state(cls, state: dict) -> "MediaSnapshot":
        duration = state.get("duration")
        return cls(
            paused=bool(state.get("paused", True)),
            current_time=float(state.get("current_time") or 0.0),
            duration=float(duration) if duration is not None else math.nan,
            current_src=state.get("current_src") or "",
            ready_state=int(state.get("ready_state") or 0),
            ended=bool(state.get("ended", False)),
        )

    @classmethod
    def from_video(cls, video: VideoElement) -> "MediaSnapshot":
        """Read a snapshot, in one round trip when the backend supports it."""
        snapshot = getattr(video, "snapshot", None)
        if callable(snapshot):
            return cls.from_state(snapshot())
        return cls(
            paused=video.paused,
            current_time=video.current_time,
            duration=video.duration,
            current_src=video.current_src,
            ready_state=video.ready_state,
            ended=video.ended,
        )


def media_events_between(previous: MediaSnapshot, current: MediaSnapshot) -> List[str]:
    """
    Events a browser would have fired going from ``previous`` to ``current``.

    Example:
        >>> media_events_between(MediaSnapshot(), MediaSnapshot(paused=False, current_time=3.0))
        ['play', 'timeupdate']
    """
    events: List[str] = []
    if previous.current_src and not current.current_src:
        events.append("emptied")
    if not _same_number(previous.duration, current.duration):
        events.append("durationchange")
    if previous.ready_state < HAVE_METADATA <= current.ready_state:
        events.append("loadedmetadata")
    if previous.paused and not current.paused:
        events.append("play")
    if not _same_number(previous.current_time, current.current_time):
        events.append("timeupdate")
    if not previous.paused and current.paused:
        events.append("pause")
    if not previous.ended and current.ended:
        events.append("ended")
    return events


class MediaEventPump:
    """
    Dispatches synthesized media events on the tracked video.

    The first snapshot of a new video is only a baseline; events start from
    the second poll.
    """

    def __init__(self):
        self._video: Optional[VideoElement] = None
        self._last: Optional[MediaSnapshot] = None

    def reset(self) -> None:
        self._video = None
        self._last = None

    def pump(self, video: Optional[VideoElement]) -> List[str]:
        """
        Poll ``video`` once and dispatch whatever changed.

        Returns:
            Names of the dispatched events
        """
        if video is None:
            self.reset()
            return []
        snapshot = MediaSnapshot.from_video(video)
        if self._video is not video or self._last is None:
            self._video = video
            self._last = snapshot
            return []

        events = media_events_between(self._last, snapshot)
        self._last = snapshot
        for event in events:
            video.dispatch_event(event)
        if events:
            logger.debug(f"Dispatched media events: {', '.join(events)}")
        return events


class BrowserWatcher:
    """
    Tracks progress in a live browser controlled by Selenium.

    Args:
        driver: Selenium WebDriver with the page already loaded
        service: Progress service receiving saves and resume lookups
        frame_selector: CSS selector of the iframe holding the player; the
            tracker then runs inside that frame and asks the top page for context
        poll_interval: Seconds between polls
        config: Tracker configuration
        registry: Strategy registry (bundled strategies by default)
        resume_handler: Called with a ResumeOffer when saved progress is found

    Example:
        >>> driver = webdriver.Chrome()
        >>> driver.get("https://www.youtube.com/watch?v=dQw4w9WgXcQ")
        >>> watcher = BrowserWatcher(driver, ProgressService(ProgressStore()))
        >>> watcher.run(max_seconds=600)
    """

    def __init__(self, driver: WebDriver, service: ProgressService, frame_selector: Optional[str] = None,
                 poll_interval: float = 1.0, config: Optional[TrackerConfig] = None,
                 registry: Optional[StrategyRegistry] = None,
                 resume_handler: Optional[Callable[[ResumeOffer], None]] = None,
                 scheduler: Optional[Scheduler] = None):
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")

        self.driver = driver
        self.poll_interval = poll_interval
        self.scheduler = scheduler or Scheduler()
        self.channel = LocalProgressChannel(service)
        self.top_document = SeleniumDocument(driver)

        self.frame_link: Optional[LocalFrameLink] = None
        frame: Optional[FrameContext] = None
        if frame_selector:
            self.document = SeleniumDocument(driver, (frame_selector,))
            frame = FrameContext()
            self.frame_link = LocalFrameLink(self.scheduler, ParentResponder(self.top_document), frame)
        else:
            self.document = self.top_document

        self.tracker = SessionTracker(
            self.document,
            self.scheduler,
            self.channel,
            registry=registry,
            frame=frame,
            config=config,
            resume_handler=resume_handler,
        )
        self.pump = MediaEventPump()
        self._fingerprint: Optional[str] = None
        self._running = False

    def poll_once(self) -> List[str]:
        """
        Run one polling tick.

        Returns:
            Media events dispatched during the tick
        """
        self.scheduler.run_due()
        self.tracker.on_url_change("poll")

        fingerprint = self.document.dom_fingerprint()
        if fingerprint != self._fingerprint:
            if self._fingerprint is not None:
                self.tracker.on_dom_mutation()
            self._fingerprint = fingerprint

        return self.pump.pump(self.tracker.video)

    def run(self, max_seconds: Optional[float] = None) -> None:
        """
        Poll until ``stop`` is called, ``max_seconds`` elapse or the browser goes away.

        Raises:
            Exception: If the tracker cannot be started
        """
        try:
            self.tracker.start()
            self._fingerprint = self.document.dom_fingerprint()
        except WebDriverException as e:
            raise Exception(f"Failed to start tracking: {str(e)}")

        self._running = True
        started = time.monotonic()
        logger.info(f"Watching {self.top_document.url} every {self.poll_interval}s")
        try:
            while self._running:
                if max_seconds is not None and time.monotonic() - started >= max_seconds:
                    logger.info("Watch time limit reached")
                    break
                try:
                    self.poll_once()
                except WebDriverException as e:
                    if _browser_gone(e):
                        logger.warning(f"Browser session ended: {e}")
                        break
                    logger.warning(f"Poll failed, retrying: {e}")
                time.sleep(self.poll_interval)
        finally:
            self._running = False
            self.tracker.stop()
            if self.frame_link is not None:
                self.frame_link.disconnect()

    def stop(self) -> None:
        self._running = False


def _browser_gone(error: Any) -> bool:
    message = str(error).lower()
    return any(phrase in message for phrase in (
        "invalid session id",
        "no such window",
        "target window already closed",
        "chrome not reachable",
        "session deleted",
    ))
