"""
Message service in front of the progress store.

Accepts the same request shapes a content script sends to an extension
background worker and answers with ``{"success": ...}`` responses.
"""

import logging
from typing import Any, Dict

from .progress import ProgressStore

logger = logging.getLogger(__name__)

SAVE_PROGRESS = "saveProgress"
GET_PROGRESS = "getProgress"
DEBUG_LOG = "debugLog"


class ProgressService:
    """
    Dispatches store requests.

    Args:
        store: Progress store to serve

    Example:
        >>> service = ProgressService(ProgressStore())
        >>> service.handle_message({"action": "getProgress", "url": "https://example.com/watch/1"})
        {'success': True, 'data': None}
    """

    def __init__(self, store: ProgressStore):
        self.store = store

    def handle_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        action = message.get("action") if isinstance(message, dict) else None
        logger.debug(f"Received message: {action}")

        if action == SAVE_PROGRESS:
            try:
                key = self.store.save_progress(message.get("data") or {})
            except Exception as e:
                logger.error(f"Error saving progress: {str(e)}")
                return {"success": False, "error": str(e)}
            logger.info(f"Progress saved under {key}")
            return {"success": True}

        if action == GET_PROGRESS:
            try:
                data = self.store.get_progress(message.get("url"))
            except Exception as e:
                logger.error(f"Error getting progress: {str(e)}")
                return {"success": False, "error": str(e)}
            return {"success": True, "data": data}

        if action == DEBUG_LOG:
            logger.debug(f"Client debug: {message.get('message')} {message.get('data') or ''}")
            return {"success": True}

        logger.warning(f"Unknown store action: {action!r}")
        return {"success": False, "error": f"Unknown action: {action}"}
