"""
Live document backend built on Selenium WebDriver.

Wraps a running browser so the scanner, strategies and tracker can inspect a
real page, including open shadow roots and one level of embedded frames.
Every operation re-enters the configured frame first, so one driver can be
shared by a top-level document and a frame document.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence

from selenium.common.exceptions import (
    NoSuchFrameException,
    NoSuchShadowRootException,
    StaleElementReferenceException,
    WebDriverException,
)
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.remote.webelement import WebElement

from .base import ComputedStyle, Document, DocumentRoot, Element, Rect, VideoElement

logger = logging.getLogger(__name__)

_SHADOW_HOSTS_SCRIPT = (
    "const scope = arguments[0] ? arguments[0].shadowRoot : document;"
    "if (!scope) { return []; }"
    "return Array.from(scope.querySelectorAll('*')).filter((el) => el.shadowRoot);"
)

_ROOT_HOST_SCRIPT = (
    "const root = arguments[0].getRootNode();"
    "return (root && root.host) ? root.host : null;"
)

_STYLE_SCRIPT = (
    "const style = window.getComputedStyle(arguments[0]);"
    "return {display: style.display, visibility: style.visibility, opacity: style.opacity};"
)

_MEDIA_SNAPSHOT_SCRIPT = (
    "const v = arguments[0];"
    "return {ready_state: v.readyState, duration: isFinite(v.duration) ? v.duration : null,"
    " current_time: v.currentTime, current_src: v.currentSrc || '', paused: v.paused,"
    " ended: v.ended, buffered_length: v.buffered ? v.buffered.length : 0};"
)


class SeleniumShadowRoot(DocumentRoot):
    """Open shadow root of a live element."""

    def __init__(self, document: "SeleniumDocument", host: "SeleniumElement"):
        self._document = document
        self._host = host

    @property
    def host(self) -> Optional[Element]:
        return self._host

    def query_selector_all(self, selector: str) -> List[Element]:
        self._document.enter()
        shadow = self._host.web_element.shadow_root
        return self._document.wrap_all(shadow.find_elements(By.CSS_SELECTOR, selector))

    def shadow_hosts(self) -> List[Element]:
        self._document.enter()
        found = self._document.driver.execute_script(_SHADOW_HOSTS_SCRIPT, self._host.web_element)
        return self._document.wrap_all(found or [])

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SeleniumShadowRoot) and other._host == self._host

    def __hash__(self) -> int:
        return hash(("shadow", self._host.key))


class SeleniumElement(Element):
    """Element wrapper around a ``WebElement``."""

    def __init__(self, document: "SeleniumDocument", web_element: WebElement):
        self._document = document
        self.web_element = web_element

    @property
    def key(self) -> str:
        return self.web_element.id

    def _script(self, script: str, *args: Any) -> Any:
        self._document.enter()
        return self._document.driver.execute_script(script, self.web_element, *args)

    @property
    def tag_name(self) -> str:
        self._document.enter()
        return (self.web_element.tag_name or "").upper()

    def get_attribute(self, name: str) -> Optional[str]:
        self._document.enter()
        return self.web_element.get_dom_attribute(name)

    @property
    def text_content(self) -> str:
        self._document.enter()
        return self.web_element.get_property("textContent") or ""

    @property
    def parent_element(self) -> Optional[Element]:
        parent = self._script("return arguments[0].parentElement;")
        return self._document.wrap(parent) if parent is not None else None

    @property
    def shadow_root(self) -> Optional[DocumentRoot]:
        self._document.enter()
        try:
            self.web_element.shadow_root
        except NoSuchShadowRootException:
            return None
        return self._document.shadow_root_for(self)

    def root_node(self) -> DocumentRoot:
        host = self._script(_ROOT_HOST_SCRIPT)
        if host is None:
            return self._document
        wrapped_host = self._document.wrap(host)
        return self._document.shadow_root_for(wrapped_host)

    @property
    def is_connected(self) -> bool:
        try:
            self._document.enter()
            return bool(self.web_element.get_property("isConnected"))
        except StaleElementReferenceException:
            return False

    def query_selector_all(self, selector: str) -> List[Element]:
        self._document.enter()
        return self._document.wrap_all(self.web_element.find_elements(By.CSS_SELECTOR, selector))

    def matches(self, selector: str) -> bool:
        return bool(self._script("return arguments[0].matches(arguments[1]);", selector))

    def closest(self, selector: str) -> Optional[Element]:
        found = self._script("return arguments[0].closest(arguments[1]);", selector)
        return self._document.wrap(found) if found is not None else None

    def contains(self, other: Optional[Element]) -> bool:
        if not isinstance(other, SeleniumElement):
            return False
        return bool(self._script("return arguments[0].contains(arguments[1]);", other.web_element))

    def computed_style(self) -> ComputedStyle:
        style = self._script(_STYLE_SCRIPT) or {}
        return ComputedStyle(
            display=style.get("display") or "block",
            visibility=style.get("visibility") or "visible",
            opacity=str(style.get("opacity") or "1"),
        )

    def bounding_rect(self) -> Rect:
        self._document.enter()
        size = self.web_element.size or {}
        return Rect(width=float(size.get("width", 0)), height=float(size.get("height", 0)))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SeleniumElement) and other.key == self.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"<SeleniumElement {self.key}>"


class SeleniumVideoElement(VideoElement, SeleniumElement):
    """Live ``<video>``; events are dispatched by ``runner.MediaEventPump``."""

    def snapshot(self) -> Dict[str, Any]:
        """Read all media state in one round trip."""
        state = self._script(_MEDIA_SNAPSHOT_SCRIPT) or {}
        duration = state.get("duration")
        state["duration"] = float(duration) if duration is not None else math.nan
        return state

    def _media_property(self, name: str) -> Any:
        self._document.enter()
        return self.web_element.get_property(name)

    @property
    def ready_state(self) -> int:
        return int(self._media_property("readyState") or 0)

    @property
    def duration(self) -> float:
        value = self._script("const d = arguments[0].duration; return isFinite(d) ? d : null;")
        return float(value) if value is not None else math.nan

    @property
    def current_time(self) -> float:
        return float(self._media_property("currentTime") or 0.0)

    @property
    def current_src(self) -> str:
        return self._media_property("currentSrc") or ""

    @property
    def buffered_length(self) -> int:
        return int(self._script("return arguments[0].buffered ? arguments[0].buffered.length : 0;") or 0)

    @property
    def paused(self) -> bool:
        return bool(self._media_property("paused"))

    @property
    def ended(self) -> bool:
        return bool(self._media_property("ended"))

    @property
    def autoplay(self) -> bool:
        return bool(self._media_property("autoplay"))

    @property
    def loop(self) -> bool:
        return bool(self._media_property("loop"))

    def seek(self, seconds: float) -> None:
        self._script("arguments[0].currentTime = arguments[1];", float(seconds))


class SeleniumDocument(Document):
    """
    Document of the browser's current page or of a frame inside it.

    Args:
        driver: Selenium WebDriver instance
        frame_chain: Locators (CSS selectors) of the frames to enter, outermost
            first. Empty for the top-level document.
    """

    def __init__(self, driver: WebDriver, frame_chain: Sequence[str] = ()):
        self.driver = driver
        self.frame_chain = tuple(frame_chain)
        self._wrappers: Dict[str, SeleniumElement] = {}
        self._shadow_roots: Dict[str, SeleniumShadowRoot] = {}

    def enter(self) -> None:
        """Switch the driver into this document's frame."""
        self.driver.switch_to.default_content()
        for locator in self.frame_chain:
            try:
                frame = self.driver.find_element(By.CSS_SELECTOR, locator)
                self.driver.switch_to.frame(frame)
            except (NoSuchFrameException, WebDriverException) as e:
                raise WebDriverException(f"Unable to enter frame '{locator}': {e}")

    def _evaluate(self, script: str, *args: Any) -> Any:
        self.enter()
        return self.driver.execute_script(script, *args)

    @property
    def url(self) -> str:
        return self._evaluate("return window.location.href;") or ""

    @property
    def title(self) -> str:
        return self._evaluate("return document.title;") or ""

    @property
    def referrer(self) -> str:
        return self._evaluate("return document.referrer;") or ""

    @property
    def is_embedded(self) -> bool:
        return bool(self.frame_chain)

    def query_selector_all(self, selector: str) -> List[Element]:
        self.enter()
        return self.wrap_all(self.driver.find_elements(By.CSS_SELECTOR, selector))

    def shadow_hosts(self) -> List[Element]:
        return self.wrap_all(self._evaluate(_SHADOW_HOSTS_SCRIPT, None) or [])

    def contains(self, element: Optional[Element]) -> bool:
        if not isinstance(element, SeleniumElement):
            return False
        try:
            connected = element._script(
                "return arguments[0].isConnected && arguments[0].ownerDocument === document;"
            )
        except StaleElementReferenceException:
            return False
        return bool(connected)

    def dom_fingerprint(self) -> str:
        """Cheap summary of the page structure, used to notice mutations."""
        return str(self._evaluate(
            "return [location.href, document.getElementsByTagName('*').length,"
            " document.getElementsByTagName('video').length].join('|');"
        ))

    def wrap(self, web_element: WebElement) -> SeleniumElement:
        wrapper = self._wrappers.get(web_element.id)
        if wrapper is None:
            tag = (web_element.tag_name or "").lower()
            if tag == "video":
                wrapper = SeleniumVideoElement(self, web_element)
            else:
                wrapper = SeleniumElement(self, web_element)
            self._wrappers[web_element.id] = wrapper
        return wrapper

    def wrap_all(self, web_elements: Sequence[WebElement]) -> List[Element]:
        return [self.wrap(web_element) for web_element in web_elements]

    def shadow_root_for(self, host: SeleniumElement) -> SeleniumShadowRoot:
        root = self._shadow_roots.get(host.key)
        if root is None:
            root = SeleniumShadowRoot(self, host)
            self._shadow_roots[host.key] = root
        return root
