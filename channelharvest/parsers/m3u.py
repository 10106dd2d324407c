"""Extended M3U playlist parser following iptv-org conventions"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urljoin, urlparse

from channelharvest.models import ChannelKind, ChannelRecord, SourceName
from channelharvest.utils.platforms import detect_platform, extract_youtube_handle
from channelharvest.utils.text import LABEL_MAX, PLACE_MAX, SHORT_MAX, URL_MAX, sanitize, split_values

logger = logging.getLogger(__name__)

# Keywords searched in name + group + raw line; ascii keywords match on word boundaries
LANGUAGE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "en": ("english", "bbc", "cnn", "abc", "cbs", "nbc", "sky", "itv"),
    "fr": ("france", "fr", "français", "francais"),
    "de": ("deutsch", "german", "dw", "ard", "zdf"),
    "es": ("español", "espanol", "spanish", "spain", "rtve"),
    "it": ("italiano", "italy", "rai"),
    "pt": ("português", "portugues", "portuguese", "rtp"),
    "nl": ("nederlands", "dutch", "npo", "rtl"),
    "ja": ("日本", "japanese", "japan", "nhk"),
    "zh": ("中文", "chinese", "cctv", "china"),
    "ru": ("русский", "russian", "russia", "rtv"),
    "ar": ("عربي", "arabic", "aljazeera"),
}

RESOLUTION_PATTERNS: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"\b(4k|2160p?|uhd)\b", re.IGNORECASE), "4K"),
    (re.compile(r"\b(1080[pi]?|fhd|full\s?hd)\b", re.IGNORECASE), "Full HD"),
    (re.compile(r"\b(720p?|hd)\b", re.IGNORECASE), "HD"),
    (re.compile(r"\b(480p?|576p?|sd)\b", re.IGNORECASE), "SD"),
)


def _keyword_pattern(keyword: str) -> re.Pattern:
    if keyword.isascii():
        return re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)
    return re.compile(re.escape(keyword))


_LANGUAGE_PATTERNS: dict[str, tuple[re.Pattern, ...]] = {
    lang: tuple(_keyword_pattern(k) for k in keywords)
    for lang, keywords in LANGUAGE_KEYWORDS.items()
}


def detect_language(text: str) -> Optional[str]:
    """Best-effort ISO 639-1 code from keyword tables, first table hit wins."""
    for lang, patterns in _LANGUAGE_PATTERNS.items():
        if any(p.search(text) for p in patterns):
            return lang
    return None


def detect_resolution(text: str) -> Optional[str]:
    for pattern, label in RESOLUTION_PATTERNS:
        if pattern.search(text):
            return label
    return None


@dataclass
class M3UEntry:
    """A single #EXTINF entry with its attributes"""

    duration: Optional[int] = None  # None for live streams (-1)
    tvg_id: str = ""
    tvg_name: str = ""
    tvg_logo: str = ""
    group_title: str = ""
    tvg_country: str = ""
    tvg_language: str = ""
    epg_url: str = ""
    radio: bool = False
    title: str = ""
    url: str = ""
    raw_line: str = ""
    extra_attrs: dict[str, str] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.title or self.tvg_name or self.tvg_id



class M3UParser:
    """Line-oriented M3U parser. Pure: text in, entries out."""

    EXTINF_PATTERN = re.compile(r"#EXTINF:\s*(-?\d+(?:\.\d+)?)", re.IGNORECASE)
    ATTR_PATTERN = re.compile(r'([\w-]+)\s*=\s*"([^"]*)"')

    @staticmethod
    def parse_extinf_line(line: str) -> M3UEntry:
        """
        Parse an #EXTINF line.

        Format: #EXTINF:-1 tvg-id="..." tvg-logo="..." group-title="...",Channel Name

        The display name is everything after the first comma that is not
        inside a quoted attribute value.
        """
        entry = M3UEntry(raw_line=line)

        duration_match = M3UParser.EXTINF_PATTERN.match(line)
        if duration_match:
            duration = int(float(duration_match.group(1)))
            entry.duration = duration if duration > 0 else None

        for key, value in M3UParser.ATTR_PATTERN.findall(line):
            key_lower = key.lower()
            value = value.strip()
            if key_lower == "tvg-id":
                entry.tvg_id = value
            elif key_lower == "tvg-name":
                entry.tvg_name = value
            elif key_lower == "tvg-logo":
                entry.tvg_logo = value
            elif key_lower == "tvg-country":
                entry.tvg_country = value
            elif key_lower == "tvg-language":
                entry.tvg_language = value
            elif key_lower == "group-title":
                entry.group_title = value
            elif key_lower in ("x-tvg-url", "url-tvg", "tvg-url"):
                entry.epg_url = value
            elif key_lower == "radio":
                entry.radio = value.lower() == "true"
            else:
                entry.extra_attrs[key_lower] = value

        unquoted = M3UParser.ATTR_PATTERN.sub("", line)
        if "," in unquoted:
            entry.title = unquoted.split(",", 1)[1].strip()

        return entry

    @staticmethod
    def parse_entries(text: str, base_url: str = "") -> list[M3UEntry]:
        """
        Split playlist text into entries.

        A metadata line opens an entry; the next non-blank, non-comment
        line is its URL. A metadata line followed by another metadata
        line (or end of input) is discarded.
        """
        entries: list[M3UEntry] = []
        current: Optional[M3UEntry] = None

        for raw in text.splitlines():
            line = raw.lstrip("\ufeff").strip()
            if not line:
                continue
            if line.upper().startswith("#EXTINF"):
                current = M3UParser.parse_extinf_line(line)
                continue
            if line.startswith("#"):
                continue
            if current is None:
                continue
            url = line
            if base_url and not urlparse(url).scheme:
                url = urljoin(base_url, url)
            current.url = url
            entries.append(current)
            current = None

        return entries


def entry_to_record(
    entry: M3UEntry,
    source: SourceName = SourceName.PLAYLIST,
    playlist_source: str = "",
    default_category: str = "Mixed",
    default_country: str = "Unknown",
) -> Optional[ChannelRecord]:
    """Build a ChannelRecord from a parsed entry, or None without a stream URL."""
    stream_url = sanitize(entry.url, URL_MAX)
    if not stream_url:
        return None

    heuristic_text = " ".join((entry.display_name, entry.group_title, entry.raw_line))
    group = sanitize(entry.group_title, LABEL_MAX)

    metadata: dict[str, Any] = {
        "tvg_id": entry.tvg_id,
        "tvg_name": entry.tvg_name,
        "original_line": entry.raw_line,
    }
    if entry.duration is not None:
        metadata["duration"] = entry.duration
    if entry.extra_attrs:
        metadata["attributes"] = dict(entry.extra_attrs)

    countries = split_values(entry.tvg_country)
    languages = split_values(entry.tvg_language)
    if countries:
        metadata["country_code"] = countries
    if languages:
        metadata["languages"] = languages

    platform = detect_platform(stream_url)
    if platform:
        metadata["platform"] = platform
        handle = extract_youtube_handle(stream_url)
        if handle:
            metadata["handle"] = handle

    return ChannelRecord(
        name=entry.display_name or playlist_source or "Unknown",
        stream_url=stream_url,
        source=source,
        kind=ChannelKind.RADIO if entry.radio else ChannelKind.TV,
        description=group or playlist_source,
        category=group or default_category,
        country=sanitize(countries[0], PLACE_MAX) if countries else default_country,
        language=sanitize(languages[0], PLACE_MAX) if languages else detect_language(heuristic_text) or "Unknown",
        logo_url=sanitize(entry.tvg_logo, URL_MAX),
        quality=sanitize(detect_resolution(heuristic_text), SHORT_MAX, default="Unknown"),
        playlist_source=playlist_source,
        epg_url=sanitize(entry.epg_url, URL_MAX),
        metadata=metadata,
    )


def parse_m3u(
    text: str,
    base_url: str = "",
    source: SourceName = SourceName.PLAYLIST,
    playlist_source: str = "",
    default_category: str = "Mixed",
    default_country: str = "Unknown",
) -> list[ChannelRecord]:
    """
    Parse extended M3U text into channel records.

    Args:
        text: Playlist body.
        base_url: URL the playlist was fetched from, used to resolve
            relative entry URLs.
        source: Directory client that owns the playlist.
        playlist_source: Human label of the feed.
        default_category: Category used when an entry has no group-title.
        default_country: Country hint of the feed.

    Returns:
        Records in playlist order. Entries without a URL are dropped.
    """
    records = []
    for entry in M3UParser.parse_entries(text, base_url=base_url):
        record = entry_to_record(
            entry,
            source=source,
            playlist_source=playlist_source,
            default_category=default_category,
            default_country=default_country,
        )
        if record is not None:
            records.append(record)
    logger.debug(f"Parsed {len(records)} records from playlist {playlist_source or base_url}")
    return records
