"""
YouTube module for ReWatchKit.

Provides YouTube URL helpers and the metadata client used by the YouTube
source strategy.
"""

from .client import (
    YouTubeClient,
    is_youtube_url,
    extract_youtube_id,
    fetch_youtube_video_info,
)

__all__ = [
    'YouTubeClient',
    'is_youtube_url',
    'extract_youtube_id',
    'fetch_youtube_video_info',
]
