"""
YouTube client for ReWatchKit.

Looks up video metadata that the watch page does not reliably expose in its
markup: the canonical title through the public oEmbed endpoint, and series,
season and episode numbering through yt-dlp.
"""

import logging
import re
from typing import Any, Dict, Optional

import requests
import yt_dlp

logger = logging.getLogger(__name__)

OEMBED_ENDPOINT = "https://www.youtube.com/oembed"

_YOUTUBE_REGEX = (
    r'^(https?://)?(www\.|m\.)?'
    r'(youtube\.com/watch\?(?:[^\s#]*&)?v=|youtube\.com/(?:embed|shorts|live)/|'
    r'youtube-nocookie\.com/embed/|youtu\.be/)'
    r'([A-Za-z0-9_-]{6,})'
)


def is_youtube_url(url: str) -> bool:
    """
    Check if the provided URL is a YouTube video URL.

    Args:
        url: URL to check

    Returns:
        True if URL points at a single YouTube video, False otherwise

    Example:
        >>> is_youtube_url("https://www.youtube.com/watch?v=dQw4w9WgXcQ")
        True
        >>> is_youtube_url("https://example.com/video")
        False
    """
    return bool(url) and bool(re.match(_YOUTUBE_REGEX, url))


def extract_youtube_id(url: str) -> Optional[str]:
    """
    Extract YouTube video ID from a URL.

    Args:
        url: YouTube URL

    Returns:
        YouTube video ID or None if not found

    Example:
        >>> extract_youtube_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ")
        'dQw4w9WgXcQ'
        >>> extract_youtube_id("https://www.youtube-nocookie.com/embed/dQw4w9WgXcQ?start=4")
        'dQw4w9WgXcQ'
    """
    if not url:
        return None
    match = re.match(_YOUTUBE_REGEX, url)
    return match.group(4) if match else None


class YouTubeClient:
    """
    Client for YouTube video metadata.

    Uses the oEmbed endpoint (via requests) for cheap title lookups and
    yt-dlp for full extraction without downloading anything.
    """

    def __init__(self, cookies_path: Optional[str] = None, timeout: int = 10,
                 session: Optional[requests.Session] = None):
        """
        Initialize YouTube client.

        Args:
            cookies_path: Optional path to cookies file for authentication
            timeout: HTTP timeout in seconds for oEmbed requests
            session: Optional requests session to reuse
        """
        self.cookies_path = cookies_path
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get_ydl_opts(self, **overrides) -> Dict:
        """
        Get default yt-dlp options with optional overrides.

        Args:
            **overrides: Options to override defaults

        Returns:
            Dictionary of yt-dlp options
        """
        opts = {
            'quiet': True,
            'no_warnings': True,
            'skip_download': True,
            'noplaylist': True,
        }

        if self.cookies_path:
            opts['cookiefile'] = self.cookies_path

        opts.update(overrides)
        return opts

    def fetch_oembed(self, url: str) -> Optional[Dict[str, Any]]:
        """
        Fetch oEmbed data (title, author) for a video.

        Args:
            url: YouTube video URL

        Returns:
            oEmbed dictionary, or None if the lookup failed
        """
        try:
            response = self.session.get(
                OEMBED_ENDPOINT,
                params={'url': url, 'format': 'json'},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"oEmbed lookup failed for {url}: {e}")
            return None

    def fetch_video_info(self, url: str) -> Dict[str, Any]:
        """
        Extract video metadata with yt-dlp without downloading the video.

        Args:
            url: YouTube video URL

        Returns:
            Dictionary with video information:
            - video_id: YouTube video ID
            - title: Video title
            - series: Series/show name (if YouTube lists the video as an episode)
            - season_number: Season number (if available)
            - episode_number: Episode number (if available)
            - episode: Episode title (if available)
            - duration: Duration in seconds (if available)
            - uploader: Channel name
            - is_live: Whether the video is a live stream

        Raises:
            ValueError: If URL is not a YouTube video URL
            Exception: If extraction fails
        """
        if not is_youtube_url(url):
            raise ValueError(f"Invalid YouTube URL: {url}")

        video_id = extract_youtube_id(url)

        try:
            logger.info(f"Extracting video info for: {video_id}")
            with yt_dlp.YoutubeDL(self._get_ydl_opts()) as ydl:
                info = ydl.extract_info(url, download=False)
        except Exception as e:
            logger.error(f"Failed to extract YouTube info for {url}: {str(e)}")
            raise Exception(f"YouTube info extraction failed: {str(e)}")

        info = info or {}
        result = {
            'video_id': info.get('id', video_id),
            'title': info.get('title'),
            'series': info.get('series'),
            'season_number': info.get('season_number'),
            'episode_number': info.get('episode_number'),
            'episode': info.get('episode'),
            'duration': info.get('duration'),
            'uploader': info.get('uploader', 'Unknown'),
            'is_live': info.get('is_live', False),
        }

        logger.info(
            f"Extracted info for {video_id}: "
            f"series={result['series']!r}, episode={result['episode_number']}"
        )
        return result


# Convenience function wrapping YouTubeClient
def fetch_youtube_video_info(url: str, cookies_path: Optional[str] = None) -> Dict[str, Any]:
    """Extract YouTube video info. Convenience function wrapping YouTubeClient."""
    client = YouTubeClient(cookies_path=cookies_path)
    return client.fetch_video_info(url)
