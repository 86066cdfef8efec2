import pytest

from rewatchkit.dom.scanner import find_all_videos
from rewatchkit.dom.soup import SoupDocument
from rewatchkit.models import TrackerConfig
from rewatchkit.selector import CandidateSelector, detect_content_type, is_within_playback_view
from rewatchkit.strategies.base import SourceStrategy

TWO_VIDEO_PAGE = """
<html><body>
  <div class="promo">
    <video id="trailer" src="https://cdn.example.com/trailer.mp4" width="320" height="180"
           autoplay loop data-ready-state="4" data-duration="90"></video>
  </div>
  <div class="video-player">
    <video id="main" src="blob:https://example.com/1f2e" width="1280" height="720"
           data-ready-state="4" data-duration="5400" data-buffered="1"></video>
  </div>
</body></html>
"""


@pytest.fixture
def two_video_page():
    return SoupDocument(TWO_VIDEO_PAGE, url="https://example.com/watch/1")


def test_scores_prefer_long_form_player_video(two_video_page):
    selector = CandidateSelector()
    trailer, main = find_all_videos(two_video_page)

    assert selector.score(main, two_video_page) == pytest.approx(275)
    assert selector.score(trailer, two_video_page) == pytest.approx(74.4)
    assert selector.select([trailer, main], two_video_page) is main


def test_rank_orders_best_first(two_video_page):
    selector = CandidateSelector()
    ranked = selector.rank(find_all_videos(two_video_page), two_video_page)
    assert [video.id for video, _ in ranked] == ["main", "trailer"]


def test_ties_keep_discovery_order():
    doc = SoupDocument(
        "<html><body>" + "".join(f'<video id="v{i}"></video>' for i in range(4)) + "</body></html>",
        url="https://example.com/",
    )
    scores = iter([10, 45, 45, 0])

    class FixedScores(CandidateSelector):
        def score(self, video, document, strategy=None, content_type="movie"):
            return next(scores)

    chosen = FixedScores().select(find_all_videos(doc), doc)
    assert chosen.id == "v1"


def test_zero_scores_fall_back_to_first():
    doc = SoupDocument("<html><body><video id=\"a\"></video><video id=\"b\"></video></body></html>",
                       url="https://example.com/")

    class ZeroScores(CandidateSelector):
        def score(self, video, document, strategy=None, content_type="movie"):
            return 0

    assert ZeroScores().select(find_all_videos(doc), doc).id == "a"


def test_select_edge_cases(two_video_page):
    selector = CandidateSelector()
    assert selector.select([], two_video_page) is None

    only = find_all_videos(two_video_page)[:1]
    assert selector.select(only, two_video_page) is only[0]


def test_largest_mode(two_video_page):
    selector = CandidateSelector(TrackerConfig(scored_selection=False))
    chosen = selector.select(find_all_videos(two_video_page), two_video_page)
    assert chosen.id == "main"


def test_strategy_choice_wins(two_video_page):
    class PickTrailer(SourceStrategy):
        def select_video_element(self, videos, document):
            return videos[0]

    chosen = CandidateSelector().select(find_all_videos(two_video_page), two_video_page,
                                        PickTrailer("example.com"))
    assert chosen.id == "trailer"


def test_strategy_filter_removing_everything_is_ignored(two_video_page):
    class RejectAll(SourceStrategy):
        def filter_video_elements(self, videos):
            return []

    selector = CandidateSelector()
    videos = find_all_videos(two_video_page)
    assert selector.filter(videos, RejectAll("example.com")) == videos


def test_playback_view_without_known_root():
    doc = SoupDocument("<html><body><div><video id=\"a\"></video></div></body></html>",
                       url="https://example.com/")
    video = find_all_videos(doc)[0]
    assert is_within_playback_view(video, doc)


def test_detect_content_type_from_path():
    series = SoupDocument("<html></html>", url="https://example.com/series/dark/episode/3")
    movie = SoupDocument("<html></html>", url="https://example.com/watch/1")
    assert detect_content_type(series) == "episode"
    assert detect_content_type(movie) == "movie"
