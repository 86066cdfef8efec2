"""
Offline document backend built on BeautifulSoup.

Parses a saved HTML page into the ``dom.base`` interfaces. Declarative shadow
roots (``<template shadowrootmode="open">``) become shadow roots hosted by
the template's parent element, so shadow-encapsulated players can be
inspected without a browser. Media state cannot be read from HTML, so videos
take it from ``data-*`` attributes and from ``SoupVideoElement.update_media``.
"""

import logging
import math
import re
from typing import Any, Dict, List, Optional, Union

from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from .base import HAVE_NOTHING, ComputedStyle, Document, DocumentRoot, Element, Rect, VideoElement

logger = logging.getLogger(__name__)

SHADOW_ROOT_ATTRIBUTES = ("shadowrootmode", "shadowroot")

_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)
_PIXELS_RE = re.compile(r"^\s*([\d.]+)\s*(px)?\s*$")


def _is_shadow_template(tag: Any) -> bool:
    if not isinstance(tag, Tag) or tag.name != "template":
        return False
    return any(
        (tag.get(attribute) or "").lower() in ("open", "closed") for attribute in SHADOW_ROOT_ATTRIBUTES
    )


def _parse_style(value: Optional[str]) -> Dict[str, str]:
    declarations: Dict[str, str] = {}
    for part in (value or "").split(";"):
        if ":" not in part:
            continue
        name, _, raw = part.partition(":")
        declarations[name.strip().lower()] = raw.strip().lower()
    return declarations


def _pixels(value: Optional[str]) -> float:
    if not value:
        return 0.0
    match = _PIXELS_RE.match(value)
    return float(match.group(1)) if match else 0.0


def _float_attr(tag: Tag, name: str, default: float) -> float:
    value = tag.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.debug(f"Ignoring non-numeric {name}={value!r}")
        return default


class SoupShadowRoot(DocumentRoot):
    """Shadow root backed by a declarative ``<template>``."""

    def __init__(self, document: "SoupDocument", template: Tag):
        self._document = document
        self.template = template

    @property
    def host(self) -> Optional[Element]:
        parent = self.template.parent
        if isinstance(parent, Tag) and not isinstance(parent, BeautifulSoup):
            return self._document.wrap(parent)
        return None

    def query_selector_all(self, selector: str) -> List[Element]:
        return self._document.select_in_root(self.template, self, selector)

    def shadow_hosts(self) -> List[Element]:
        return self._document.shadow_hosts_in(self.template, self)

    def __repr__(self) -> str:
        return f"<SoupShadowRoot host={self.host!r}>"


class SoupElement(Element):
    """Element wrapper around a BeautifulSoup ``Tag``."""

    def __init__(self, document: "SoupDocument", tag: Tag):
        self._document = document
        self.tag = tag

    @property
    def tag_name(self) -> str:
        return (self.tag.name or "").upper()

    @property
    def class_list(self) -> List[str]:
        value = self.tag.get("class")
        if isinstance(value, list):
            return list(value)
        return (value or "").split()

    def get_attribute(self, name: str) -> Optional[str]:
        value = self.tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    @property
    def text_content(self) -> str:
        return _text_of(self.tag)

    @property
    def parent_element(self) -> Optional[Element]:
        parent = self.tag.parent
        if parent is None or isinstance(parent, BeautifulSoup) or _is_shadow_template(parent):
            return None
        return self._document.wrap(parent)

    @property
    def shadow_root(self) -> Optional[DocumentRoot]:
        for child in self.tag.find_all("template", recursive=False):
            if _is_shadow_template(child):
                return self._document.shadow_root_for(child)
        return None

    def root_node(self) -> DocumentRoot:
        return self._document.root_of(self.tag)

    @property
    def is_connected(self) -> bool:
        return self._document.owns(self.tag)

    def query_selector_all(self, selector: str) -> List[Element]:
        return self._document.select_in_root(self.tag, self.root_node(), selector)

    def matches(self, selector: str) -> bool:
        return bool(self.tag.css.match(selector))

    def computed_style(self) -> ComputedStyle:
        declarations = _parse_style(self.tag.get("style"))
        return ComputedStyle(
            display=declarations.get("display", "block"),
            visibility=declarations.get("visibility", "visible"),
            opacity=declarations.get("opacity", "1"),
        )

    def bounding_rect(self) -> Rect:
        if not self.is_connected:
            return Rect()
        declarations = _parse_style(self.tag.get("style"))
        if declarations.get("display") == "none":
            return Rect()
        width = _pixels(declarations.get("width")) or _pixels(self.get_attribute("width"))
        height = _pixels(declarations.get("height")) or _pixels(self.get_attribute("height"))
        return Rect(width=width, height=height)

    def remove(self) -> None:
        """Detach the element from the document."""
        self.tag.extract()

    def __repr__(self) -> str:
        label = self.tag.name
        if self.id:
            label += f"#{self.id}"
        return f"<SoupElement {label}>"


class SoupVideoElement(VideoElement, SoupElement):
    """
    Video element whose media state is held on the wrapper.

    Initial values come from ``data-ready-state``, ``data-duration``,
    ``data-current-time``, ``data-buffered`` and ``data-paused`` attributes
    and the ``src`` of the element or its first ``<source>`` child.
    """

    def __init__(self, document: "SoupDocument", tag: Tag):
        SoupElement.__init__(self, document, tag)
        source = tag.get("src")
        if not source:
            source_tag = tag.find("source")
            source = source_tag.get("src") if source_tag is not None else ""
        self._media: Dict[str, Any] = {
            "ready_state": int(_float_attr(tag, "data-ready-state", HAVE_NOTHING)),
            "duration": _float_attr(tag, "data-duration", math.nan),
            "current_time": _float_attr(tag, "data-current-time", 0.0),
            "buffered_length": int(_float_attr(tag, "data-buffered", 0)),
            "current_src": source or "",
            "paused": (tag.get("data-paused") or "true").lower() != "false",
            "ended": False,
        }

    @property
    def ready_state(self) -> int:
        return self._media["ready_state"]

    @property
    def duration(self) -> float:
        return self._media["duration"]

    @property
    def current_time(self) -> float:
        return self._media["current_time"]

    @property
    def current_src(self) -> str:
        return self._media["current_src"]

    @property
    def buffered_length(self) -> int:
        return self._media["buffered_length"]

    @property
    def paused(self) -> bool:
        return self._media["paused"]

    @property
    def ended(self) -> bool:
        return self._media["ended"]

    def update_media(self, **state: Any) -> None:
        """
        Change media state, e.g. ``update_media(current_time=120, paused=False)``.

        Raises:
            ValueError: If an unknown media field is given
        """
        unknown = set(state) - set(self._media)
        if unknown:
            raise ValueError(f"Unknown media fields: {sorted(unknown)}")
        self._media.update(state)

    def seek(self, seconds: float) -> None:
        self._media["current_time"] = float(seconds)
        self._media["ended"] = False


class SoupDocument(Document):
    """
    Document over a parsed HTML snapshot.

    Args:
        markup: HTML text or an existing BeautifulSoup object
        url: Address the snapshot was taken from
        referrer: Referrer of the page, if known
        is_embedded: Whether the page was loaded inside another page's frame
        parser: BeautifulSoup parser name

    Example:
        >>> doc = SoupDocument('<video src="blob:x" data-duration="1800"></video>',
        ...                    url="https://example.com/watch/1")
        >>> len(doc.query_selector_all("video"))
        1
    """

    def __init__(self, markup: Union[str, BeautifulSoup], url: str = "about:blank",
                 referrer: str = "", is_embedded: bool = False, parser: str = "html.parser"):
        self.soup = markup if isinstance(markup, BeautifulSoup) else BeautifulSoup(markup, parser)
        self._url = url
        self._referrer = referrer
        self._is_embedded = is_embedded
        self._title_override: Optional[str] = None
        self._wrappers: Dict[int, SoupElement] = {}
        self._shadow_roots: Dict[int, SoupShadowRoot] = {}

    @property
    def url(self) -> str:
        return self._url

    @property
    def title(self) -> str:
        if self._title_override is not None:
            return self._title_override
        title_tag = self.soup.find("title")
        return title_tag.get_text().strip() if title_tag is not None else ""

    @title.setter
    def title(self, value: str) -> None:
        self._title_override = value

    @property
    def referrer(self) -> str:
        return self._referrer

    @property
    def is_embedded(self) -> bool:
        return self._is_embedded

    def navigate(self, url: str) -> None:
        """Change the URL in place, like a single-page-app history push."""
        self._url = url

    def query_selector_all(self, selector: str) -> List[Element]:
        return self.select_in_root(self.soup, self, selector)

    def shadow_hosts(self) -> List[Element]:
        return self.shadow_hosts_in(self.soup, self)

    def contains(self, element: Optional[Element]) -> bool:
        if not isinstance(element, SoupElement) or element._document is not self:
            return False
        return self.owns(element.tag)

    def create_element(self, markup: str, parent: Optional[Element] = None) -> Element:
        """
        Parse ``markup`` and append it under ``parent`` (default ``<body>``).

        Returns:
            Wrapper for the first element created
        """
        fragment = BeautifulSoup(markup, "html.parser")
        new_tag = fragment.find(True)
        if new_tag is None:
            raise ValueError(f"No element in markup: {markup!r}")
        if parent is not None:
            container = parent.tag  # type: ignore[attr-defined]
        else:
            container = self.soup.body or self.soup
        container.append(new_tag.extract())
        return self.wrap(new_tag)

    # Internal helpers used by the element and shadow root wrappers

    def wrap(self, tag: Tag) -> SoupElement:
        wrapper = self._wrappers.get(id(tag))
        if wrapper is None or wrapper.tag is not tag:
            if tag.name == "video":
                wrapper = SoupVideoElement(self, tag)
            else:
                wrapper = SoupElement(self, tag)
            self._wrappers[id(tag)] = wrapper
        return wrapper

    def shadow_root_for(self, template: Tag) -> SoupShadowRoot:
        root = self._shadow_roots.get(id(template))
        if root is None or root.template is not template:
            root = SoupShadowRoot(self, template)
            self._shadow_roots[id(template)] = root
        return root

    def root_of(self, tag: Tag) -> DocumentRoot:
        parent = tag.parent
        while parent is not None:
            if _is_shadow_template(parent):
                return self.shadow_root_for(parent)
            parent = parent.parent
        return self

    def owns(self, tag: Tag) -> bool:
        current: Any = tag
        while current is not None:
            if current is self.soup:
                return True
            current = current.parent
        return False

    def select_in_root(self, scope: Tag, root: DocumentRoot, selector: str) -> List[Element]:
        results: List[Element] = []
        for tag in scope.select(selector):
            if _is_shadow_template(tag) or self.root_of(tag) is not root:
                continue
            results.append(self.wrap(tag))
        return results

    def shadow_hosts_in(self, scope: Tag, root: DocumentRoot) -> List[Element]:
        hosts: List[Element] = []
        for template in scope.find_all("template"):
            if not _is_shadow_template(template):
                continue
            host = template.parent
            if not isinstance(host, Tag) or isinstance(host, BeautifulSoup):
                continue
            if self.root_of(host) is root:
                hosts.append(self.wrap(host))
        return hosts


def _text_of(tag: Tag) -> str:
    parts: List[str] = []
    for child in tag.children:
        if isinstance(child, _SKIPPED_STRINGS):
            continue
        if isinstance(child, NavigableString):
            parts.append(str(child))
        elif isinstance(child, Tag) and not _is_shadow_template(child):
            parts.append(_text_of(child))
    return "".join(parts)
