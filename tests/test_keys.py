from rewatchkit.store.keys import derive_content_key, legacy_keys, normalize_key_part, rolling_hash


def test_rolling_hash_matches_browser_string_hash():
    assert rolling_hash("") == 0
    assert rolling_hash("abc") == 96354
    assert rolling_hash("hello") == 99162322
    assert rolling_hash("polygenelubricants") == -2147483648


def test_rolling_hash_uses_utf16_code_units():
    assert rolling_hash("é") == 233
    # Astral characters hash as their surrogate pair
    assert rolling_hash("😀") == 1772899


def test_normalize_key_part():
    assert normalize_key_part("Stranger Things!") == "strangerthings"
    assert normalize_key_part("Café 2") == "caf2"
    assert normalize_key_part(None) == ""


def test_episodes_share_series_key():
    first = derive_content_key(url="https://www.netflix.com/watch/1", title="Dark",
                               platform="Netflix", content_type="episode", series_title="Dark")
    second = derive_content_key(url="https://www.netflix.com/watch/2", title="Something Else",
                                platform="netflix", content_type="episode", series_title="DARK")
    assert first == second
    assert first.startswith("content_")


def test_platform_is_part_of_key():
    netflix = derive_content_key(title="Dark", platform="Netflix", content_type="movie")
    youtube = derive_content_key(title="Dark", platform="YouTube", content_type="movie")
    assert netflix != youtube


def test_movie_without_title_keys_on_url_without_query():
    first = derive_content_key(url="https://x.tv/w/1?t=5", title="", content_type="movie")
    second = derive_content_key(url="https://x.tv/w/1?t=90", title=None, content_type="movie")
    other = derive_content_key(url="https://x.tv/w/2", title=None, content_type="movie")
    assert first == second
    assert first != other


def test_content_key_is_never_negative():
    key = derive_content_key(title="polygenelubricants", platform="", content_type="movie")
    assert key.startswith("content_")
    assert int(key[len("content_"):]) >= 0


def test_legacy_keys_only_for_episodes():
    payload = {"url": "https://www.netflix.com/watch/1", "title": "Dark", "platform": "Netflix",
               "type": "movie", "originalTitle": "Dark"}
    assert legacy_keys(payload, "content_1") == []


def test_legacy_keys_exclude_current_key():
    payload = {
        "url": "https://www.netflix.com/watch/1",
        "title": "Dark",
        "platform": "Netflix",
        "type": "episode",
        "seriesTitle": "Dark",
        "originalTitle": "Dark S1E1 Secrets",
    }
    current = derive_content_key(url=payload["url"], title="Dark", platform="Netflix",
                                 content_type="episode", series_title="Dark")
    keys = legacy_keys(payload, current)

    movie_key = derive_content_key(url=payload["url"], title="Dark S1E1 Secrets", platform="Netflix",
                                   content_type="movie")
    url_key = derive_content_key(url=payload["url"], title="", platform="Netflix", content_type="movie")
    assert current not in keys
    assert keys == [movie_key, url_key]
