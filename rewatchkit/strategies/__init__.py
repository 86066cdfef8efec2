"""
Source strategies for ReWatchKit.

A strategy implements the capability set for one content source. New sources
are added by registering a factory with a StrategyRegistry.
"""

from .base import (
    GENERIC_PLAYBACK_ROOT_SELECTORS,
    SourceStrategy,
    infer_episode_from_title,
)

from .netflix import NetflixStrategy
from .youtube import YouTubeStrategy

from .registry import (
    StrategyFactory,
    StrategyRegistry,
    default_registry,
)

__all__ = [
    'GENERIC_PLAYBACK_ROOT_SELECTORS',
    'SourceStrategy',
    'infer_episode_from_title',
    'NetflixStrategy',
    'YouTubeStrategy',
    'StrategyFactory',
    'StrategyRegistry',
    'default_registry',
]
