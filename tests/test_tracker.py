import pytest

from rewatchkit.channel import ContextInvalidatedError, LocalProgressChannel
from rewatchkit.dom.soup import SoupDocument
from rewatchkit.models import TrackerConfig
from rewatchkit.strategies.registry import default_registry
from rewatchkit.tracker import SessionState, SessionTracker

MOVIE_URL = "https://example.com/watch/1"


def short_clip_page(url, duration):
    return SoupDocument(
        f"""
        <html><head><meta property="og:title" content="Andor Official Teaser"></head>
        <body><div class="video-player">
          <video src="https://cdn.example.com/clip.mp4" width="1280" height="720"
                 data-ready-state="4" data-duration="{duration}"></video>
        </div></body></html>
        """,
        url=url,
    )


def test_tracker_attaches_to_single_video(movie_page, make_tracker, open_config):
    tracker = make_tracker(movie_page, config=open_config)
    assert tracker.state == SessionState.UNATTACHED

    tracker.start()
    assert tracker.state == SessionState.ATTACHED
    assert tracker.video.listener_count() == 7
    assert tracker.session.detection_attempts == 0


def test_attaching_same_video_is_noop(movie_page, make_tracker, open_config):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    video = tracker.video
    tracker.attach(video)
    assert tracker.video is video
    assert video.listener_count() == 7


def test_attaching_new_video_resets_session(movie_page, make_tracker, open_config):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    first = tracker.video
    tracker.session.episode_latched = True
    tracker.session.title_cache.cached_title = "Stale"

    second = movie_page.create_element('<video src="https://cdn.example.com/other.mp4"></video>')
    tracker.attach(second)
    assert first.listener_count() == 0
    assert second.listener_count() == 7
    assert tracker.session.episode_latched is False
    assert tracker.session.title_cache.cached_title is None


def test_play_starts_periodic_saves(movie_page, make_tracker, open_config, scheduler, store, channel):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    video = tracker.video

    video.update_media(current_time=120.0, paused=False)
    video.dispatch_event("play")
    assert tracker.saving_periodically

    scheduler.advance(5)
    record = store.get_progress(MOVIE_URL)
    assert record["currentTime"] == 120.0
    assert record["duration"] == 5400.0
    assert record["title"] == "The Grand Budapest Hotel"
    assert record["type"] == "movie"

    video.update_media(current_time=125.0)
    scheduler.advance(5)
    assert store.get_progress(MOVIE_URL)["currentTime"] == 125.0
    assert channel.actions().count("saveProgress") == 2


def test_pause_saves_and_stops_interval(movie_page, make_tracker, open_config, store):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    video = tracker.video

    video.update_media(current_time=300.0, paused=False)
    video.dispatch_event("play")
    video.update_media(paused=True)
    video.dispatch_event("pause")

    assert not tracker.saving_periodically
    assert store.get_progress(MOVIE_URL)["currentTime"] == 300.0


def test_timeupdate_saves_every_ten_seconds_of_movement(movie_page, make_tracker, open_config, channel):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    video = tracker.video

    for position in (5.0, 12.0, 20.0, 22.5):
        video.update_media(current_time=position)
        video.dispatch_event("timeupdate")

    assert channel.actions().count("saveProgress") == 2
    assert tracker.session.last_saved_time == 22.5


def test_ended_saves_full_duration(movie_page, make_tracker, open_config, store):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    tracker.video.update_media(current_time=5390.0, ended=True)
    tracker.video.dispatch_event("ended")

    record = store.get_progress(MOVIE_URL)
    assert record["currentTime"] == 5400.0
    assert record["percentComplete"] == 100.0


def test_save_skips_without_meaningful_position(movie_page, make_tracker, open_config, store):
    tracker = make_tracker(movie_page, config=open_config)
    assert tracker.save_progress() is False

    tracker.start()
    tracker.video.update_media(current_time=0.5)
    assert tracker.save_progress() is False

    tracker.video.update_media(current_time=100.0, duration=float("nan"))
    assert tracker.save_progress() is False
    assert store.tracked_keys() == []


def test_save_skips_short_clips(make_tracker, open_config, store):
    page = short_clip_page("https://example.com/clips/7", 100)
    tracker = make_tracker(page, config=open_config)
    tracker.start()
    tracker.video.update_media(current_time=50.0)

    assert tracker.save_progress() is False
    assert store.tracked_keys() == []


def test_exempt_platform_keeps_short_content(make_tracker, store):
    page = short_clip_page("https://www.disneyplus.com/video/abc123", 200)
    tracker = make_tracker(page)
    tracker.start()
    tracker.video.update_media(current_time=50.0)

    assert tracker.save_progress() is True
    record = store.get_progress("https://www.disneyplus.com/video/abc123")
    assert record["platform"] == "Disney+"


def test_unknown_platform_is_not_saved_by_default(movie_page, make_tracker, store):
    tracker = make_tracker(movie_page)
    tracker.start()
    tracker.video.update_media(current_time=600.0)

    assert tracker.save_progress() is False
    assert store.tracked_keys() == []


def test_platform_from_host_hint_is_saved_by_default(make_tracker, store):
    page = SoupDocument(
        """
        <html><head><meta property="og:title" content="The General"></head>
        <body><div class="video-player">
          <video src="https://cdn.example.com/general.mp4" width="1280" height="720"
                 data-ready-state="4" data-duration="4500"></video>
        </div></body></html>
        """,
        url="https://filmzie.com/content/the-general",
    )
    tracker = make_tracker(page)
    tracker.start()
    tracker.video.update_media(current_time=900.0)

    assert tracker.save_progress()
    assert store.get_progress("https://filmzie.com/content/the-general")["platform"] == "Filmzie"


def test_closed_channel_stops_periodic_saves(movie_page, make_tracker, open_config, scheduler, channel, store):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    channel.close()

    tracker.video.update_media(current_time=120.0, paused=False)
    tracker.video.dispatch_event("play")
    scheduler.advance(5)

    assert not tracker.saving_periodically
    assert store.tracked_keys() == []


def test_invalidated_send_stops_periodic_saves(movie_page, service, scheduler, open_config):
    class ReloadedChannel(LocalProgressChannel):
        def send(self, message):
            raise ContextInvalidatedError()

    tracker = SessionTracker(movie_page, scheduler, ReloadedChannel(service), config=open_config,
                             registry=default_registry())
    tracker.start()
    tracker.video.update_media(current_time=120.0, paused=False)
    tracker.video.dispatch_event("play")
    scheduler.advance(5)

    assert not tracker.saving_periodically


def test_resume_offer_for_saved_progress(movie_page, make_tracker, open_config, scheduler, store):
    store.save_progress({
        "url": MOVIE_URL,
        "title": "The Grand Budapest Hotel",
        "type": "movie",
        "currentTime": 600,
        "duration": 5400,
    })
    offers = []
    tracker = make_tracker(movie_page, config=open_config, resume_handler=offers.append)
    tracker.start()
    scheduler.advance(0)

    assert len(offers) == 1
    assert offers[0].current_time == 600
    assert offers[0].url == MOVIE_URL

    assert tracker.resume() is True
    assert tracker.video.current_time == 600
    assert tracker.session.resume_offer is None


@pytest.mark.parametrize("current_time, offered", [(30, False), (31, True), (5200, False)])
def test_resume_offer_thresholds(movie_page, make_tracker, open_config, scheduler, store, current_time, offered):
    store.save_progress({
        "url": MOVIE_URL,
        "title": "The Grand Budapest Hotel",
        "type": "movie",
        "currentTime": current_time,
        "duration": 5400,
    })
    offers = []
    tracker = make_tracker(movie_page, config=open_config, resume_handler=offers.append)
    tracker.start()
    scheduler.advance(0)

    assert bool(offers) is offered


def test_resume_lookup_prefers_referrer(make_tracker, open_config):
    page = SoupDocument("<html><body></body></html>", url="https://player.example.net/e/1",
                        referrer="https://shows.example.org/watch/frieren-5")
    tracker = make_tracker(page, config=open_config)
    assert tracker.resume_lookup_url() == "https://shows.example.org/watch/frieren-5"

    same_origin = SoupDocument("<html><body></body></html>", url="https://player.example.net/e/1",
                               referrer="https://player.example.net/")
    tracker = make_tracker(same_origin, config=open_config)
    assert tracker.resume_lookup_url() == "https://player.example.net/e/1"


def test_detection_gives_up_after_max_attempts(make_tracker, scheduler):
    page = SoupDocument("<html><body><p>Please wait</p></body></html>", url=MOVIE_URL)
    tracker = make_tracker(page, config=TrackerConfig(max_detection_attempts=3))
    tracker.start()
    assert tracker.state == SessionState.PENDING_REATTACH

    scheduler.advance(60)
    assert tracker.session.detection_attempts == 3
    assert tracker.state == SessionState.UNATTACHED
    assert scheduler.pending == 0


def test_detection_retry_finds_late_video(make_tracker, open_config, scheduler):
    page = SoupDocument("<html><body><p>Please wait</p></body></html>", url=MOVIE_URL)
    tracker = make_tracker(page, config=open_config)
    tracker.start()
    assert tracker.video is None

    page.create_element(
        '<div class="video-player"><video src="https://cdn.example.com/film.mp4" '
        'data-ready-state="4" data-duration="5400"></video></div>'
    )
    scheduler.advance(2)

    assert tracker.state == SessionState.ATTACHED
    assert tracker.session.detection_attempts == 0


def test_removed_video_triggers_redetection(movie_page, make_tracker, open_config):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    video = tracker.video

    tracker.on_dom_mutation()
    assert tracker.video is video

    video.remove()
    tracker.on_dom_mutation()
    assert tracker.video is None
    assert video.listener_count() == 0
    assert tracker.state == SessionState.PENDING_REATTACH


def test_navigation_resets_context(movie_page, make_tracker, open_config):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    tracker.video.update_media(current_time=120.0)
    assert tracker.save_progress()
    assert tracker.session.last_metadata_signature is not None

    assert tracker.on_url_change() is False

    movie_page.navigate("https://example.com/watch/2")
    assert tracker.on_url_change("pushState") is True
    assert tracker.session.last_saved_time == 0
    assert tracker.session.last_metadata_signature is None
    assert tracker.session.title_cache.cached_title is None


def test_navigation_clears_episode_classification(make_tracker, open_config, scheduler, store):
    page = SoupDocument(
        """
        <html><head><meta property="og:title" content="Frieren Beyond Journeys End"></head>
        <body><div class="video-player">
          <video src="https://cdn.example.com/stream.mp4" width="1280" height="720"
                 data-ready-state="4" data-duration="5400"></video>
        </div></body></html>
        """,
        url="https://anime.example.org/frieren/episode-4",
    )
    tracker = make_tracker(page, config=open_config)
    tracker.start()
    video = tracker.video
    video.update_media(current_time=300.0)
    assert tracker.save_progress()
    assert store.get_progress("https://anime.example.org/frieren/episode-4")["type"] == "episode"
    assert tracker.session.episode_latched

    page.soup.find("meta")["content"] = "Perfect Days"
    page.navigate("https://anime.example.org/perfect-days")
    assert tracker.on_url_change()
    scheduler.advance(2)

    assert tracker.video is video
    assert not tracker.session.episode_latched
    video.update_media(current_time=600.0)
    assert tracker.save_progress()

    record = store.get_progress("https://anime.example.org/perfect-days")
    assert record["title"] == "Perfect Days"
    assert record["type"] == "movie"
    assert "seriesTitle" not in record


def test_navigation_detection_is_debounced(movie_page, make_tracker, open_config, scheduler):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    calls = []
    tracker.detect = lambda: calls.append(scheduler.now())

    movie_page.navigate("https://example.com/watch/3")
    tracker.on_url_change()
    scheduler.advance(0.5)
    movie_page.navigate("https://example.com/watch/4")
    tracker.on_url_change()
    scheduler.advance(2)

    assert calls == [pytest.approx(1.3)]


def test_metadata_change_schedules_resume_check(movie_page, make_tracker, open_config, scheduler, channel):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    scheduler.advance(0)
    tracker.video.update_media(current_time=200.0)
    assert tracker.save_progress()

    meta = movie_page.soup.find("meta", attrs={"property": "og:title"})
    meta["content"] = "Moonrise Kingdom Special Cut"
    tracker.session.title_cache.reset()
    channel.messages.clear()

    assert tracker.save_progress()
    scheduler.advance(0.8)
    assert channel.actions() == ["saveProgress", "getProgress"]


def test_source_change_does_not_count_as_metadata_change(movie_page, make_tracker, open_config, scheduler,
                                                         channel):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    scheduler.advance(0)
    tracker.video.update_media(current_time=200.0)
    assert tracker.save_progress()

    meta = movie_page.soup.find("meta", attrs={"property": "og:title"})
    meta["content"] = "Moonrise Kingdom Special Cut"
    tracker.session.title_cache.reset()
    tracker.video.update_media(current_src="https://cdn.example.com/other.mp4")
    channel.messages.clear()

    assert tracker.save_progress()
    scheduler.advance(1)
    assert channel.actions() == ["saveProgress"]


def test_loadedmetadata_schedules_resume_check(movie_page, make_tracker, open_config, scheduler, channel):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    scheduler.advance(0)
    channel.messages.clear()

    tracker.video.dispatch_event("loadedmetadata")
    scheduler.advance(0.6)
    assert channel.actions() == []
    scheduler.advance(0.2)
    assert channel.actions() == ["getProgress"]


def test_stop_cancels_everything(movie_page, make_tracker, open_config, scheduler):
    tracker = make_tracker(movie_page, config=open_config)
    tracker.start()
    video = tracker.video
    video.update_media(paused=False)
    video.dispatch_event("play")

    tracker.stop()
    assert tracker.state == SessionState.UNATTACHED
    assert video.listener_count() == 0
    assert scheduler.pending == 0


def test_netflix_episodes_share_one_record(make_netflix_page, make_tracker, scheduler, store):
    page = make_netflix_page(episode=2, episode_title="The Weirdo on Maple Street")
    tracker = make_tracker(page, registry=default_registry())
    tracker.start()
    tracker.video.update_media(current_time=900.0)
    assert tracker.save_progress()

    first = store.get_progress(page.url)
    assert first["type"] == "episode"
    assert first["episodeNumber"] == 2
    assert first["seasonNumber"] == 1
    assert first["seriesTitle"] == "Stranger Things"

    script = page.soup.find("script", id="react-context")
    script.string = (
        script.string
        .replace('"episodeNumber":2', '"episodeNumber":3')
        .replace("The Weirdo on Maple Street", "Holly, Jolly")
    )
    page.navigate("https://www.netflix.com/watch/80057283")
    assert tracker.on_url_change()
    scheduler.advance(1)

    tracker.video.update_media(current_time=60.0)
    assert tracker.save_progress()

    assert len(store.tracked_keys()) == 1
    record = store.get_progress(page.url)
    assert record["episodeNumber"] == 3
    assert record["episodeName"] == "Holly, Jolly"
    assert record["title"] == "Stranger Things"


def test_netflix_preview_page_is_not_saved(make_tracker, store):
    page = SoupDocument(
        """
        <html><head><title>Dark - Netflix</title></head>
        <body><div class="billboard"><video src="blob:https://www.netflix.com/1" width="800" height="450"
               data-ready-state="4" data-duration="3000"></video></div></body></html>
        """,
        url="https://www.netflix.com/browse",
    )
    tracker = make_tracker(page, registry=default_registry())
    tracker.start()
    tracker.video.update_media(current_time=400.0)

    assert tracker.save_progress() is False
    assert store.tracked_keys() == []
