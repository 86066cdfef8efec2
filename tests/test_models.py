import pytest

from rewatchkit.models import (
    ParentInfo,
    PlaybackMetadata,
    StoredProgressRecord,
    TrackerConfig,
    is_stored_record,
)


def test_episode_markers_force_episode_type():
    metadata = PlaybackMetadata(title="Dark", url="https://x.tv/w/1", season_number=2)
    metadata.normalize_content_type()
    assert metadata.content_type == "episode"

    blank_name = PlaybackMetadata(title="Roma", url="https://x.tv/w/2", episode_name="  ")
    blank_name.normalize_content_type()
    assert blank_name.content_type == "movie"


def test_payload_omits_unset_fields():
    metadata = PlaybackMetadata(title="Dark", url="https://x.tv/w/1", platform="Netflix",
                                content_type="episode", series_title="Dark", episode_number=3)
    payload = metadata.to_payload(600.0, 3000.0)
    assert payload == {
        "url": "https://x.tv/w/1",
        "title": "Dark",
        "platform": "Netflix",
        "type": "episode",
        "currentTime": 600.0,
        "duration": 3000.0,
        "isIframe": False,
        "seriesTitle": "Dark",
        "episodeNumber": 3,
    }


def test_stored_record_shape(store):
    store.save_progress({"url": "https://www.netflix.com/watch/1", "title": "Roma", "platform": "Netflix",
                         "type": "movie", "currentTime": 600, "duration": 8100})
    raw = store.get_progress("https://www.netflix.com/watch/1")
    assert is_stored_record(raw)

    record = StoredProgressRecord.from_dict(raw)
    assert record.content_key.startswith("content_")
    assert record.current_time == 600.0
    assert record.to_dict()["lastWatched"] == "2024-03-01T12:00:00.000Z"

    assert not is_stored_record({"url": "https://x", "title": "Roma"})
    assert not is_stored_record(["not", "a", "record"])


def test_parent_info_from_message_drops_bad_types():
    info = ParentInfo.from_message({
        "type": "ReWatch_PARENT_INFO",
        "url": "https://anime.example.org/watch/frieren",
        "title": 42,
        "episodeNumber": 5.0,
        "seasonNumber": "1",
        "contentType": "trailer",
    })
    assert info.url == "https://anime.example.org/watch/frieren"
    assert info.title is None
    assert info.episode_number == 5
    assert info.season_number is None
    assert info.content_type is None

    message = ParentInfo(url="https://a.example/", episode_number=2).to_message("ReWatch_PARENT_INFO")
    assert message == {"type": "ReWatch_PARENT_INFO", "url": "https://a.example/", "episodeNumber": 2}


@pytest.mark.parametrize("overrides", [
    {"save_interval": 0},
    {"retry_delay": -1},
    {"navigation_debounce": -0.1},
    {"max_detection_attempts": -1},
])
def test_invalid_tracker_config(overrides):
    with pytest.raises(ValueError):
        TrackerConfig(**overrides)


def test_tracker_config_defaults():
    config = TrackerConfig()
    assert config.save_interval == 5.0
    assert config.minimum_clip_duration == 300.0
    assert config.duration_exempt_platforms == ("Disney+",)
    assert "Netflix" in config.supported_platforms
