"""
Store message channel for ReWatchKit.

The tracker never touches the progress store directly. It sends
``saveProgress`` and ``getProgress`` requests over a channel, the way a
content script talks to its extension background worker. A channel can be
invalidated (the worker was reloaded); the tracker checks availability before
every request and stops its save interval once the context is gone.
"""

import logging
from typing import Any, Dict, Optional

from .store.service import ProgressService

logger = logging.getLogger(__name__)

INVALIDATED_MESSAGE = "Extension context invalidated"


class ContextInvalidatedError(Exception):
    """Raised when the store behind a channel is no longer reachable."""

    def __init__(self, message: str = INVALIDATED_MESSAGE):
        super().__init__(message)


class ProgressChannel:
    """Base channel interface."""

    def available(self) -> bool:
        return False

    def send(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deliver a request and return the response.

        Raises:
            ContextInvalidatedError: If the store context is gone
        """
        raise ContextInvalidatedError()


class LocalProgressChannel(ProgressChannel):
    """
    In-process channel in front of a ProgressService.

    Args:
        service: Service answering the requests

    Example:
        >>> channel = LocalProgressChannel(ProgressService(ProgressStore()))
        >>> channel.send({"action": "getProgress", "url": "https://example.com"})
        {'success': True, 'data': None}
    """

    def __init__(self, service: ProgressService):
        self.service = service
        self._closed = False
        self.sent = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Invalidate the channel, as when the background worker reloads."""
        if not self._closed:
            logger.info("Progress channel closed")
        self._closed = True

    def available(self) -> bool:
        return not self._closed

    def send(self, message: Dict[str, Any]) -> Dict[str, Any]:
        if self._closed:
            raise ContextInvalidatedError()
        self.sent += 1
        return self.service.handle_message(message)


def is_invalidation(error: Optional[BaseException]) -> bool:
    """Check whether an error means the store context was invalidated."""
    if error is None:
        return False
    if isinstance(error, ContextInvalidatedError):
        return True
    return INVALIDATED_MESSAGE in str(error)
