"""Xiph/Icecast ``yp.xml`` directory parser.

The directory dump is large and not always well formed, so entries are
located by scanning for ``<entry>`` blocks instead of building a tree.
"""

import html
import logging
import re
from typing import Optional

from channelharvest.models import ChannelKind, ChannelRecord, SourceName, normalize_bitrate
from channelharvest.utils.text import LABEL_MAX, NAME_MAX, SHORT_MAX, URL_MAX, first_segment, sanitize

logger = logging.getLogger(__name__)

ENTRY_PATTERN = re.compile(r"<entry\b[^>]*>(.*?)</entry>", re.IGNORECASE | re.DOTALL)
TAGS = ("server_name", "listen_url", "server_type", "bitrate", "genre", "channels", "samplerate")
_TAG_PATTERNS = {
    tag: re.compile(rf"<{tag}\b[^>]*>(.*?)</{tag}>", re.IGNORECASE | re.DOTALL) for tag in TAGS
}
_CDATA = re.compile(r"^<!\[CDATA\[(.*)\]\]>$", re.DOTALL)


def _tag_text(block: str, tag: str) -> str:
    match = _TAG_PATTERNS[tag].search(block)
    if not match:
        return ""
    value = match.group(1).strip()
    cdata = _CDATA.match(value)
    if cdata:
        return cdata.group(1).strip()
    return html.unescape(value)


def parse_entry(block: str) -> Optional[ChannelRecord]:
    name = sanitize(_tag_text(block, "server_name"), NAME_MAX)
    url = sanitize(_tag_text(block, "listen_url"), URL_MAX)
    if not name or not url:
        return None

    server_type = _tag_text(block, "server_type")
    genre = first_segment(_tag_text(block, "genre"), separator=" ")
    metadata = {"server_type": server_type}
    for tag in ("channels", "samplerate"):
        value = _tag_text(block, tag)
        if value:
            metadata[tag] = value

    return ChannelRecord(
        name=name,
        stream_url=url,
        source=SourceName.XIPH,
        kind=ChannelKind.RADIO,
        description=sanitize(server_type, SHORT_MAX),
        category=sanitize(genre, LABEL_MAX, default="Mixed"),
        quality=normalize_bitrate(_tag_text(block, "bitrate")),
        playlist_source="Xiph Directory",
        metadata=metadata,
    )


def parse_xiph_directory(text: str) -> list[ChannelRecord]:
    """Extract station records from a yp.xml document; incomplete entries are skipped."""
    records = []
    skipped = 0
    for match in ENTRY_PATTERN.finditer(text):
        record = parse_entry(match.group(1))
        if record is None:
            skipped += 1
            continue
        records.append(record)
    logger.debug(f"Parsed {len(records)} Xiph entries ({skipped} skipped)")
    return records
