"""
Store module for ReWatchKit.

Content identity, storage areas, the progress merger and the message service
that fronts it.
"""

from .keys import derive_content_key, legacy_keys, normalize_key_part, rolling_hash
from .storage import JsonFileStorage, MemoryStorage, StorageArea
from .progress import ProgressStore, looks_episodic
from .service import DEBUG_LOG, GET_PROGRESS, SAVE_PROGRESS, ProgressService

__all__ = [
    'derive_content_key',
    'legacy_keys',
    'normalize_key_part',
    'rolling_hash',
    'JsonFileStorage',
    'MemoryStorage',
    'StorageArea',
    'ProgressStore',
    'looks_episodic',
    'DEBUG_LOG',
    'GET_PROGRESS',
    'SAVE_PROGRESS',
    'ProgressService',
]
