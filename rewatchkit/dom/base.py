"""
Document object interfaces used by the scanner, strategies and tracker.

The tracker never talks to a browser directly. It works against these small
interfaces, implemented by the BeautifulSoup backend for static snapshots and
by the Selenium backend for a live browser.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional

from ..utils import url_host, url_origin, url_path

logger = logging.getLogger(__name__)

# HTMLMediaElement.readyState values
HAVE_NOTHING = 0
HAVE_METADATA = 1
HAVE_CURRENT_DATA = 2
HAVE_FUTURE_DATA = 3
HAVE_ENOUGH_DATA = 4

MEDIA_EVENTS = (
    "play",
    "pause",
    "timeupdate",
    "ended",
    "loadedmetadata",
    "durationchange",
    "emptied",
)


@dataclass
class Rect:
    """Bounding box of an element in CSS pixels."""
    width: float = 0.0
    height: float = 0.0

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)


@dataclass
class ComputedStyle:
    """The subset of computed style used for visibility checks."""
    display: str = "block"
    visibility: str = "visible"
    opacity: str = "1"


class DocumentRoot:
    """A document or shadow root that can be queried with CSS selectors."""

    @property
    def host(self) -> Optional["Element"]:
        """Shadow host element, None for a top-level document."""
        return None

    def query_selector_all(self, selector: str) -> List["Element"]:
        raise NotImplementedError

    def query_selector(self, selector: str) -> Optional["Element"]:
        results = self.query_selector_all(selector)
        return results[0] if results else None

    def shadow_hosts(self) -> List["Element"]:
        """Elements in this tree that expose an open shadow root."""
        return [element for element in self.query_selector_all("*") if element.shadow_root is not None]


class Element:
    """A DOM element. Subclasses supply the backend-specific primitives."""

    @property
    def tag_name(self) -> str:
        raise NotImplementedError

    @property
    def id(self) -> str:
        return self.get_attribute("id") or ""

    @property
    def class_list(self) -> List[str]:
        return (self.get_attribute("class") or "").split()

    def get_attribute(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def has_attribute(self, name: str) -> bool:
        return self.get_attribute(name) is not None

    @property
    def text_content(self) -> str:
        raise NotImplementedError

    @property
    def parent_element(self) -> Optional["Element"]:
        raise NotImplementedError

    @property
    def shadow_root(self) -> Optional[DocumentRoot]:
        return None

    def root_node(self) -> DocumentRoot:
        raise NotImplementedError

    @property
    def is_connected(self) -> bool:
        raise NotImplementedError

    def query_selector_all(self, selector: str) -> List["Element"]:
        raise NotImplementedError

    def query_selector(self, selector: str) -> Optional["Element"]:
        results = self.query_selector_all(selector)
        return results[0] if results else None

    def matches(self, selector: str) -> bool:
        raise NotImplementedError

    def closest(self, selector: str) -> Optional["Element"]:
        """Nearest inclusive ancestor matching ``selector`` in the same tree."""
        current: Optional[Element] = self
        while current is not None:
            if current.matches(selector):
                return current
            current = current.parent_element
        return None

    def contains(self, other: Optional["Element"]) -> bool:
        current = other
        while current is not None:
            if current == self:
                return True
            current = current.parent_element
        return False

    def computed_style(self) -> ComputedStyle:
        return ComputedStyle()

    def bounding_rect(self) -> Rect:
        return Rect()


class EventTarget:
    """Listener bookkeeping shared by the video element backends."""

    def _event_listeners(self) -> Dict[str, List[Callable[[], None]]]:
        listeners = self.__dict__.get("_listeners")
        if listeners is None:
            listeners = {}
            self.__dict__["_listeners"] = listeners
        return listeners

    def add_event_listener(self, event: str, handler: Callable[[], None]) -> None:
        handlers = self._event_listeners().setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)

    def remove_event_listener(self, event: str, handler: Callable[[], None]) -> None:
        handlers = self._event_listeners().get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: Optional[str] = None) -> int:
        listeners = self._event_listeners()
        if event is not None:
            return len(listeners.get(event, []))
        return sum(len(handlers) for handlers in listeners.values())

    def dispatch_event(self, event: str) -> None:
        for handler in list(self._event_listeners().get(event, [])):
            try:
                handler()
            except Exception as e:
                logger.exception(f"Listener for '{event}' failed: {e}")


class VideoElement(EventTarget, Element):
    """A ``<video>`` element with the media state the tracker reads."""

    @property
    def ready_state(self) -> int:
        raise NotImplementedError

    @property
    def duration(self) -> float:
        """Duration in seconds, NaN while unknown."""
        raise NotImplementedError

    @property
    def current_time(self) -> float:
        raise NotImplementedError

    @property
    def current_src(self) -> str:
        raise NotImplementedError

    @property
    def buffered_length(self) -> int:
        return 0

    @property
    def paused(self) -> bool:
        return True

    @property
    def ended(self) -> bool:
        return False

    @property
    def autoplay(self) -> bool:
        return self.has_attribute("autoplay")

    @property
    def loop(self) -> bool:
        return self.has_attribute("loop")

    def seek(self, seconds: float) -> None:
        raise NotImplementedError


class Document(DocumentRoot):
    """A top-level document or the document of an embedded frame."""

    @property
    def url(self) -> str:
        raise NotImplementedError

    @property
    def title(self) -> str:
        return ""

    @property
    def referrer(self) -> str:
        return ""

    @property
    def is_embedded(self) -> bool:
        """True when the document is loaded inside another page's frame."""
        return False

    @property
    def host_name(self) -> str:
        return url_host(self.url)

    @property
    def origin(self) -> str:
        return url_origin(self.url)

    @property
    def path(self) -> str:
        return url_path(self.url)

    @property
    def body_text(self) -> str:
        body = self.query_selector("body")
        return body.text_content if body is not None else ""

    def contains(self, element: Optional[Element]) -> bool:
        """True if ``element`` is attached anywhere under this document."""
        raise NotImplementedError


def walk_ancestors(element: Optional[Element]) -> Iterator[Element]:
    """
    Yield ``element`` and its ancestors, hopping from shadow roots to hosts.

    Args:
        element: Starting element (yielded first)
    """
    current = element
    seen = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        parent = current.parent_element
        if parent is not None:
            current = parent
            continue
        try:
            host = current.root_node().host
        except Exception as e:
            logger.debug(f"Unable to resolve root node: {e}")
            host = None
        if host is None or host == current:
            break
        current = host
