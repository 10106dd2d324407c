"""Known video platforms and channel handle extraction."""

import re
from typing import Optional
from urllib.parse import urlparse

PLATFORM_DOMAINS: dict[str, tuple[str, ...]] = {
    "youtube": ("youtube.com", "youtu.be"),
    "twitch": ("twitch.tv",),
    "dailymotion": ("dailymotion.com", "dai.ly"),
    "vimeo": ("vimeo.com",),
    "facebook": ("facebook.com", "fb.watch"),
}

_YOUTUBE_HANDLE_PATTERNS = (
    re.compile(r"/@([a-zA-Z0-9_.-]+)"),
    re.compile(r"/c/([a-zA-Z0-9_.-]+)"),
    re.compile(r"/user/([a-zA-Z0-9_.-]+)"),
)


def detect_platform(url: str) -> Optional[str]:
    """Return the platform name for a URL hosted on a known video platform."""
    if not url:
        return None
    try:
        host = (urlparse(url.strip()).hostname or "").lower()
    except ValueError:
        return None
    if not host:
        return None
    for platform, domains in PLATFORM_DOMAINS.items():
        for domain in domains:
            if host == domain or host.endswith("." + domain):
                return platform
    return None


def extract_youtube_handle(url: str) -> Optional[str]:
    """Pull the channel handle from ``/@handle``, ``/c/name`` or ``/user/name`` URLs."""
    if detect_platform(url) != "youtube":
        return None
    for pattern in _YOUTUBE_HANDLE_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def platform_page_url(platform: str, handle: str) -> Optional[str]:
    """Public page whose metadata carries the channel artwork."""
    if platform == "youtube":
        return f"https://www.youtube.com/@{handle}/featured"
    if platform == "twitch":
        return f"https://www.twitch.tv/{handle}"
    return None
