import math

import pytest

from rewatchkit.dom.scanner import find_all_videos
from rewatchkit.dom.soup import SoupDocument
from rewatchkit.runner import BrowserWatcher, MediaEventPump, MediaSnapshot, media_events_between

PLAYER = """
<html><body><div class="video-player">
  <video src="https://cdn.example.com/movie.mp4" width="1280" height="720" data-ready-state="1"></video>
</div></body></html>
"""


def player_video():
    doc = SoupDocument(PLAYER, url="https://example.com/watch/1")
    video = find_all_videos(doc)[0]
    return video


def test_events_between_snapshots():
    before = MediaSnapshot(ready_state=0, current_src="blob:a")
    after = MediaSnapshot(ready_state=4, duration=5400.0, paused=False, current_time=1.5, current_src="blob:a")
    assert media_events_between(before, after) == ["durationchange", "loadedmetadata", "play", "timeupdate"]


def test_pause_end_and_emptied():
    playing = MediaSnapshot(paused=False, current_time=100.0, duration=120.0, current_src="blob:a", ready_state=4)
    finished = MediaSnapshot(paused=True, current_time=120.0, duration=120.0, current_src="", ready_state=4,
                             ended=True)
    assert media_events_between(playing, finished) == ["emptied", "timeupdate", "pause", "ended"]


def test_unchanged_snapshot_has_no_events():
    snapshot = MediaSnapshot(duration=math.nan)
    assert media_events_between(snapshot, MediaSnapshot(duration=math.nan)) == []


def test_snapshot_from_state():
    snapshot = MediaSnapshot.from_state({
        "paused": False,
        "current_time": 12,
        "duration": None,
        "current_src": None,
        "ready_state": 3,
    })
    assert snapshot.paused is False
    assert snapshot.current_time == 12.0
    assert math.isnan(snapshot.duration)
    assert snapshot.current_src == ""
    assert snapshot.ready_state == 3
    assert snapshot.ended is False


def test_pump_starts_with_a_baseline():
    video = player_video()
    seen = []
    video.add_event_listener("play", lambda: seen.append("play"))
    video.add_event_listener("timeupdate", lambda: seen.append("timeupdate"))

    pump = MediaEventPump()
    assert pump.pump(video) == []

    video.update_media(paused=False, current_time=2.0)
    assert pump.pump(video) == ["play", "timeupdate"]
    assert seen == ["play", "timeupdate"]

    assert pump.pump(video) == []


def test_pump_resets_when_the_video_goes_away():
    video = player_video()
    pump = MediaEventPump()
    pump.pump(video)
    assert pump.pump(None) == []

    video.update_media(paused=False)
    assert pump.pump(video) == []


def test_pump_dispatches_ended():
    video = player_video()
    pump = MediaEventPump()
    video.update_media(paused=False, duration=60.0, current_time=59.0)
    pump.pump(video)

    video.update_media(paused=True, current_time=60.0, ended=True)
    assert pump.pump(video) == ["timeupdate", "pause", "ended"]


def test_watcher_rejects_bad_poll_interval(service):
    with pytest.raises(ValueError):
        BrowserWatcher(driver=None, service=service, poll_interval=0)
