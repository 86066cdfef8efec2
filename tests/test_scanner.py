from rewatchkit.dom.base import walk_ancestors
from rewatchkit.dom.scanner import (
    find_all_videos,
    find_first_match,
    is_node_in_up_next_section,
    is_node_visible,
    should_skip_title_node,
)
from rewatchkit.dom.soup import SoupDocument

SHADOW_PAGE = """
<html><body>
  <video id="main" src="https://cdn.example.com/a.mp4"></video>
  <custom-player id="host">
    <template shadowrootmode="open">
      <h1 class="player-heading">Shadow Heading Title</h1>
      <video id="shadow" src="https://cdn.example.com/b.mp4"></video>
      <div id="inner">
        <template shadowrootmode="open">
          <video id="nested" src="https://cdn.example.com/c.mp4"></video>
        </template>
      </div>
    </template>
  </custom-player>
</body></html>
"""


def test_find_all_videos_crosses_shadow_roots():
    doc = SoupDocument(SHADOW_PAGE, url="https://example.com/")
    videos = find_all_videos(doc)
    assert [video.id for video in videos] == ["main", "shadow", "nested"]


def test_find_all_videos_empty_document():
    doc = SoupDocument("<html><body><p>nothing</p></body></html>", url="https://example.com/")
    assert find_all_videos(doc) == []


def test_document_query_does_not_leak_into_shadow_roots():
    doc = SoupDocument(SHADOW_PAGE, url="https://example.com/")
    assert [video.id for video in doc.query_selector_all("video")] == ["main"]


def test_find_first_match_searches_shadow_roots():
    doc = SoupDocument(SHADOW_PAGE, url="https://example.com/")
    text = find_first_match(doc, ["h1"], lambda node, _root: node.text_content.strip())
    assert text == "Shadow Heading Title"


def test_find_first_match_skips_failing_predicate():
    doc = SoupDocument("<html><body><h2>first</h2><h2>second</h2></body></html>", url="https://example.com/")

    def predicate(node, _root):
        text = node.text_content
        if text == "first":
            raise RuntimeError("detached node")
        return text

    assert find_first_match(doc, "h2", predicate) == "second"
    assert find_first_match(doc, [], predicate) is None


def test_walk_ancestors_hops_to_shadow_host():
    doc = SoupDocument(SHADOW_PAGE, url="https://example.com/")
    nested = find_all_videos(doc)[2]
    ids = [element.id for element in walk_ancestors(nested) if element.id]
    assert ids == ["nested", "inner", "host"]


def test_visibility_checks():
    doc = SoupDocument(
        """
        <html><body>
          <div hidden><video id="a"></video></div>
          <div style="display: none"><video id="b"></video></div>
          <div style="opacity: 0"><video id="c"></video></div>
          <div aria-hidden="true"><video id="d"></video></div>
          <div style="visibility: hidden"><video id="e"></video></div>
          <div><video id="f"></video></div>
        </body></html>
        """,
        url="https://example.com/",
    )
    visible = {video.id: is_node_visible(video) for video in find_all_videos(doc)}
    assert visible == {"a": False, "b": False, "c": False, "d": False, "e": False, "f": True}


def test_up_next_detection():
    doc = SoupDocument(
        """
        <html><body>
          <div class="player-upnext-rail"><video id="rail"></video></div>
          <section aria-label="Coming Up"><video id="labelled"></video></section>
          <div class="player"><video id="main"></video></div>
        </body></html>
        """,
        url="https://example.com/",
    )
    flags = {video.id: is_node_in_up_next_section(video) for video in find_all_videos(doc)}
    assert flags == {"rail": True, "labelled": True, "main": False}


def test_up_next_detection_reads_ancestor_text():
    doc = SoupDocument(
        "<html><body><div><span>Next Episode in 5</span><video id=\"countdown\"></video></div></body></html>",
        url="https://example.com/",
    )
    assert is_node_in_up_next_section(doc.query_selector("#countdown"))


def test_title_nodes_in_descriptions_are_skipped():
    doc = SoupDocument(
        """
        <html><body>
          <div class="synopsis"><h1 id="skipped">A long plot summary</h1></div>
          <div data-testid="playback-title"><div class="description"><h1 id="kept">Severance</h1></div></div>
        </body></html>
        """,
        url="https://example.com/",
    )
    assert should_skip_title_node(doc.query_selector("#skipped"))
    assert not should_skip_title_node(doc.query_selector("#kept"))
    assert not should_skip_title_node(None)
