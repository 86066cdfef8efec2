from datetime import datetime, timezone

import pytest

from rewatchkit.channel import LocalProgressChannel
from rewatchkit.dom.soup import SoupDocument
from rewatchkit.models import TrackerConfig
from rewatchkit.scheduler import ManualScheduler
from rewatchkit.store.progress import ProgressStore
from rewatchkit.store.service import ProgressService
from rewatchkit.store.storage import MemoryStorage
from rewatchkit.strategies.registry import StrategyRegistry
from rewatchkit.tracker import SessionTracker

FIXED_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

MOVIE_URL = "https://example.com/watch/1"

MOVIE_PAGE = """
<html>
<head>
  <title>The Grand Budapest Hotel - Example</title>
  <meta property="og:title" content="The Grand Budapest Hotel">
</head>
<body>
  <div class="video-player">
    <video src="https://cdn.example.com/film.mp4" width="1280" height="720"
           data-ready-state="4" data-duration="5400"></video>
  </div>
</body>
</html>
"""

NETFLIX_EPISODE_SCRIPT = (
    'netflix.reactContext = {"models":{"videoPlayer":{"data":{'
    '"title":"Stranger Things","episodeTitle":"%s",'
    '"episodeNumber":%d,"seasonNumber":1,"type":"episode"}}}};'
)

NETFLIX_PAGE = """
<html class="watch-video-root">
<head>
  <title>Netflix</title>
  <script id="react-context">%s</script>
  <script>netflix.falcorCache = {"videos":{}};</script>
</head>
<body>
  <div data-uia="watch-video" class="watch-video">
    <div data-uia="player">
      <video src="blob:https://www.netflix.com/6f1c" width="1280" height="720"
             data-ready-state="4" data-duration="3000" data-buffered="1"></video>
    </div>
  </div>
</body>
</html>
"""


class RecordingChannel(LocalProgressChannel):
    """Local channel that keeps every request it was asked to deliver."""

    def __init__(self, service):
        super().__init__(service)
        self.messages = []

    def send(self, message):
        self.messages.append(message)
        return super().send(message)

    def actions(self):
        return [message["action"] for message in self.messages]


class FakeYouTubeClient:
    def __init__(self, title=None, info=None):
        self.title = title
        self.info = info
        self.oembed_calls = 0
        self.info_calls = 0

    def fetch_oembed(self, url):
        self.oembed_calls += 1
        return {"title": self.title} if self.title else None

    def fetch_video_info(self, url):
        self.info_calls += 1
        if self.info is None:
            raise Exception("YouTube info extraction failed: offline")
        return dict(self.info)


def netflix_page(episode=1, episode_title="The Vanishing of Will Byers", video_id="80057281"):
    markup = NETFLIX_PAGE % (NETFLIX_EPISODE_SCRIPT % (episode_title, episode))
    return SoupDocument(markup, url=f"https://www.netflix.com/watch/{video_id}?trackId=255824129")


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def store():
    return ProgressStore(MemoryStorage(), clock=lambda: FIXED_NOW)


@pytest.fixture
def service(store):
    return ProgressService(store)


@pytest.fixture
def channel(service):
    return RecordingChannel(service)


@pytest.fixture
def movie_page():
    return SoupDocument(MOVIE_PAGE, url=MOVIE_URL)


@pytest.fixture
def open_config():
    """Tracker settings that accept pages without a recognised platform."""
    return TrackerConfig(supported_platforms=None)


@pytest.fixture
def make_tracker(scheduler, channel):
    def build(document, config=None, registry=None, **kwargs):
        return SessionTracker(
            document,
            scheduler,
            channel,
            registry=registry if registry is not None else StrategyRegistry(),
            config=config,
            **kwargs,
        )
    return build


@pytest.fixture
def make_netflix_page():
    return netflix_page


@pytest.fixture
def fake_youtube_client():
    return FakeYouTubeClient
