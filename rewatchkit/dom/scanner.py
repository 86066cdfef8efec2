"""
Deep document scanning across shadow roots.

Finds video elements and selector matches in the main document and in every
open shadow root reachable from it. Each root is visited once; a failing
query or predicate only skips that root, selector or node.
"""

import logging
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Sequence, Set, TypeVar, Union

from .base import Document, DocumentRoot, Element, VideoElement, walk_ancestors

logger = logging.getLogger(__name__)

T = TypeVar("T")

IGNORED_TITLE_KEYWORDS = (
    "subtitle",
    "sub-title",
    "synopsis",
    "description",
    "dialog",
    "dialogue",
    "caption",
    "transcript",
    "tooltip",
    "preview",
    "upnext",
    "up-next",
    "context-text",
    "trailer",
)

ALLOWED_TITLE_CONTAINER_KEYWORDS = (
    "title-bug",
    "playback-title",
    "player-title",
    "details-hero",
    "details-title",
    "playback-details",
)

UP_NEXT_KEYWORDS = (
    "up-next",
    "upnext",
    "up_next",
    "up next",
    "next episode",
    "next up",
    "coming up",
    "watch next",
    "autoplay",
)


def find_all_videos(document: Document) -> List[VideoElement]:
    """
    Collect every ``<video>`` in the document and its shadow roots.

    Args:
        document: Document to scan

    Returns:
        Video elements in discovery order, without duplicates
    """
    videos: List[VideoElement] = []
    seen_videos: Set[VideoElement] = set()
    visited: Set[DocumentRoot] = set()

    def process_root(root: DocumentRoot) -> None:
        if root in visited:
            return
        visited.add(root)

        try:
            found = root.query_selector_all("video")
        except Exception as e:
            logger.debug(f"Unable to query videos from root: {e}")
            return
        for video in found:
            if video not in seen_videos:
                seen_videos.add(video)
                videos.append(video)

        try:
            hosts = root.shadow_hosts()
        except Exception as e:
            logger.debug(f"Unable to traverse root descendants: {e}")
            return
        for host in hosts:
            shadow = host.shadow_root
            if shadow is not None and shadow not in visited:
                process_root(shadow)

    process_root(document)
    return videos


def find_first_match(
    document: Document,
    selectors: Union[str, Sequence[str]],
    predicate: Callable[[Element, DocumentRoot], Optional[T]],
) -> Optional[T]:
    """
    Return the first truthy predicate result over selector matches in all roots.

    Roots are searched breadth first starting with the document; within a
    root the selectors are tried in order.

    Args:
        document: Document to search
        selectors: One selector or an ordered list of selectors
        predicate: Called with each matching element and its root

    Returns:
        First truthy value returned by ``predicate``, or None

    Example:
        >>> find_first_match(doc, ["h1", ".title"], lambda node, root: node.text_content.strip())
    """
    if isinstance(selectors, str):
        selectors = [selectors]
    normalized = [selector for selector in selectors if isinstance(selector, str) and selector.strip()]
    if not normalized:
        return None

    visited: Set[DocumentRoot] = set()
    queue: Deque[DocumentRoot] = deque([document])

    while queue:
        root = queue.popleft()
        if root in visited:
            continue
        visited.add(root)

        for selector in normalized:
            try:
                nodes = root.query_selector_all(selector)
            except Exception as e:
                logger.debug(f"Unable to query selector '{selector}' during deep search: {e}")
                continue
            for node in nodes:
                try:
                    result = predicate(node, root)
                except Exception as e:
                    logger.debug(f"Error evaluating deep search node: {e}")
                    continue
                if result:
                    return result

        try:
            hosts = root.shadow_hosts()
        except Exception as e:
            logger.debug(f"Unable to traverse descendants during deep search: {e}")
            continue
        for host in hosts:
            shadow = host.shadow_root
            if shadow is not None and shadow not in visited:
                queue.append(shadow)

    return None


def _tokens_of(element: Element, attributes: Iterable[str]) -> List[str]:
    tokens: List[str] = []
    if element.id:
        tokens.append(element.id.lower())
    tokens.extend(cls.lower() for cls in element.class_list if cls)
    for attribute in attributes:
        value = element.get_attribute(attribute)
        if value:
            tokens.append(value.lower())
    return tokens


def _has_keyword(tokens: Iterable[str], keywords: Sequence[str]) -> bool:
    return any(keyword in token for token in tokens for keyword in keywords)


def is_within_allowed_title_container(element: Optional[Element]) -> bool:
    """True if an ancestor is a known player title container."""
    if element is None:
        return False
    for current in walk_ancestors(element):
        if _has_keyword(_tokens_of(current, ("data-testid",)), ALLOWED_TITLE_CONTAINER_KEYWORDS):
            return True
    text = (element.text_content or "").lower()
    return "up next" in text or "next episode" in text


def should_skip_title_node(element: Optional[Element]) -> bool:
    """True if the element sits in a subtitle, description or similar block."""
    if element is None:
        return False
    if is_within_allowed_title_container(element):
        return False
    for current in walk_ancestors(element):
        if _has_keyword(_tokens_of(current, ("data-testid", "aria-label")), IGNORED_TITLE_KEYWORDS):
            return True
    return False


def is_node_visible(element: Optional[Element]) -> bool:
    """
    Check that no ancestor hides the element.

    Honors the ``hidden`` attribute, ``aria-hidden="true"`` and computed
    ``display``, ``visibility`` and ``opacity``.
    """
    for current in walk_ancestors(element):
        if current.has_attribute("hidden"):
            return False
        aria_hidden = current.get_attribute("aria-hidden")
        if aria_hidden and aria_hidden.lower() == "true":
            return False
        try:
            style = current.computed_style()
        except Exception as e:
            logger.debug(f"Failed to compute style for visibility check: {e}")
            continue
        if style.display == "none" or style.visibility in ("hidden", "collapse"):
            return False
        try:
            if float(style.opacity or "1") == 0:
                return False
        except ValueError:
            pass
    return True


def is_node_in_up_next_section(element: Optional[Element]) -> bool:
    """True if the element belongs to an "up next" or autoplay teaser."""
    for current in walk_ancestors(element):
        if _has_keyword(_tokens_of(current, ("data-testid", "aria-label")), UP_NEXT_KEYWORDS):
            return True
        if current is not element:
            text = (current.text_content or "").lower()
            if text and _has_keyword([text], UP_NEXT_KEYWORDS):
                return True
    return False
