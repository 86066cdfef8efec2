"""
Strategy registry.

Holds the ordered list of strategy factories. Adding a content source means
registering one more factory; nothing else in the package changes.
"""

import logging
from typing import Callable, List, Optional

from .base import SourceStrategy
from .netflix import NetflixStrategy
from .youtube import YouTubeStrategy

logger = logging.getLogger(__name__)

StrategyFactory = Callable[[str], Optional[SourceStrategy]]


class StrategyRegistry:
    """
    Ordered, idempotent collection of strategy factories.

    Example:
        >>> registry = StrategyRegistry()
        >>> registry.register(YouTubeStrategy)
        >>> strategy = registry.detect("www.youtube.com")
    """

    def __init__(self):
        self._factories: List[StrategyFactory] = []

    def register(self, factory: StrategyFactory) -> None:
        if not callable(factory):
            logger.warning(f"Ignoring non-callable strategy factory: {factory!r}")
            return
        if factory in self._factories:
            return
        self._factories.append(factory)

    def factories(self) -> List[StrategyFactory]:
        return list(self._factories)

    def create_all(self, host: str) -> List[SourceStrategy]:
        """
        Instantiate every registered strategy for ``host``.

        Factories that raise or return None are left out.
        """
        strategies: List[SourceStrategy] = []
        for factory in self._factories:
            try:
                strategy = factory(host)
            except Exception as e:
                logger.warning(f"Strategy factory {factory!r} failed for host {host}: {e}")
                continue
            if strategy is not None:
                strategies.append(strategy)
        return strategies

    def detect(self, host: str) -> Optional[SourceStrategy]:
        """
        Return the first strategy, in registration order, that handles ``host``.

        Returns:
            Matching strategy, or None to fall back to generic behaviour
        """
        for strategy in self.create_all(host):
            try:
                if strategy.can_handle():
                    logger.debug(f"Using {type(strategy).__name__} for {host}")
                    return strategy
            except Exception as e:
                logger.warning(f"Strategy {type(strategy).__name__} failed can_handle: {e}")
        return None


def default_registry() -> StrategyRegistry:
    """Registry pre-loaded with the bundled strategies."""
    registry = StrategyRegistry()
    registry.register(NetflixStrategy)
    registry.register(YouTubeStrategy)
    return registry
