from rewatchkit.dom.soup import SoupDocument
from rewatchkit.title import TitleExtractor, clean_title, generic_extract_title, refine_fallback


def page(body, head="", url="https://example.com/watch/1"):
    return SoupDocument(f"<html><head>{head}</head><body>{body}</body></html>", url=url)


def test_clean_title():
    assert clean_title("Watch TheBear - Disney+") == "The Bear"
    assert clean_title("TheOffice2") == "The Office 2"
    assert clean_title("Frieren English Sub") == "Frieren"
    assert clean_title("Now Playing: Severance | Official Site") == "Severance"
    assert clean_title("\u2068Shogun\u2069") == "Shogun"


def test_refine_fallback():
    assert refine_fallback("Breaking Bad - Netflix") == "Breaking Bad"
    assert refine_fallback("Home • Severance | Apple TV") == "Severance"
    assert refine_fallback("The Bear: S2E3") == "The Bear"
    assert refine_fallback("Plain Title") == "Plain Title"


def test_og_title_wins():
    doc = page("<h1>Something Else Entirely</h1>", head='<meta property="og:title" content="Past Lives">')
    assert TitleExtractor().get_page_title(doc) == "Past Lives"


def test_generic_titles_are_skipped():
    doc = page("<h1>Shogun Season Finale</h1>", head='<meta property="og:title" content="Home">')
    assert TitleExtractor().get_page_title(doc) == "Shogun Season Finale"


def test_cookie_banners_are_skipped():
    doc = page('<h2 class="banner-title">Cookie Preferences and Settings</h2><h1>The Zone of Interest</h1>')
    assert TitleExtractor().get_page_title(doc) == "The Zone of Interest"


def test_title_is_cached_until_reset():
    doc = page("", head='<meta property="og:title" content="Past Lives">')
    extractor = TitleExtractor()
    assert extractor.get_page_title(doc) == "Past Lives"

    doc.soup.find("meta")["content"] = "Aftersun"
    assert extractor.get_page_title(doc) == "Past Lives"

    extractor.reset()
    assert extractor.get_page_title(doc) == "Aftersun"


def test_fallback_to_headings_for_generic_document_title():
    doc = page("<strong>Squid Game</strong>", head="<title>Netflix</title>",
               url="https://www.netflix.com/watch/81040344")
    assert TitleExtractor().get_page_title(doc) == "Squid Game"

    empty = page("", head="<title>Netflix</title>", url="https://www.netflix.com/watch/81040344")
    assert TitleExtractor().get_page_title(empty) == "Netflix Content"


def test_hbo_player_title():
    doc = page('<span data-testid="player-ux-asset-title">The Last of Us</span>',
               head="<title>Max</title>", url="https://play.max.com/video/watch/abc")
    assert TitleExtractor().get_page_title(doc) == "The Last of Us"


def test_generic_extract_title_for_frames():
    doc = page('<div class="player-title">Perfect Days</div>')
    assert generic_extract_title(doc) == "Perfect Days"

    rejected = page("<h1>Sign in to continue</h1>")
    assert generic_extract_title(rejected) == "Unknown Title"
