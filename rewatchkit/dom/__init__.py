"""
DOM module for ReWatchKit.

Provides the document interfaces, the deep shadow-root scanner and the
BeautifulSoup backend. The Selenium backend lives in
``rewatchkit.dom.selenium_backend`` and is imported on demand.
"""

from .base import (
    HAVE_METADATA,
    HAVE_NOTHING,
    MEDIA_EVENTS,
    ComputedStyle,
    Document,
    DocumentRoot,
    Element,
    Rect,
    VideoElement,
    walk_ancestors,
)

from .scanner import (
    find_all_videos,
    find_first_match,
    is_node_visible,
    is_node_in_up_next_section,
    is_within_allowed_title_container,
    should_skip_title_node,
)

from .soup import SoupDocument, SoupElement, SoupVideoElement

__all__ = [
    'HAVE_METADATA',
    'HAVE_NOTHING',
    'MEDIA_EVENTS',
    'ComputedStyle',
    'Document',
    'DocumentRoot',
    'Element',
    'Rect',
    'VideoElement',
    'walk_ancestors',
    'find_all_videos',
    'find_first_match',
    'is_node_visible',
    'is_node_in_up_next_section',
    'is_within_allowed_title_container',
    'should_skip_title_node',
    'SoupDocument',
    'SoupElement',
    'SoupVideoElement',
]
