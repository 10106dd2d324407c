"""Generic JSON station-list parser.

Directories that publish an array of station objects differ only in
their field names, so one parser handles them all through a ``FieldMap``.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from channelharvest.errors import ParseError
from channelharvest.models import ChannelKind, ChannelRecord, SourceName, normalize_bitrate
from channelharvest.utils.platforms import detect_platform, extract_youtube_handle
from channelharvest.utils.text import (
    LABEL_MAX,
    PLACE_MAX,
    SHORT_MAX,
    URL_MAX,
    WEB_URL_MAX,
    first_segment,
    sanitize,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldMap:
    """Candidate keys for each record field, tried in order."""

    name: tuple[str, ...] = ("name", "title", "channel", "station")
    url: tuple[str, ...] = ("stream_url", "streamUrl", "url", "stream", "listen_url")
    logo: tuple[str, ...] = ("logo_url", "logoUrl", "logo", "favicon", "image")
    website: tuple[str, ...] = ("website_url", "websiteUrl", "website", "homepage")
    category: tuple[str, ...] = ("category", "genre", "tags", "group")
    country: tuple[str, ...] = ("country",)
    language: tuple[str, ...] = ("language", "languages")
    quality: tuple[str, ...] = ("quality", "resolution", "bitrate")
    description: tuple[str, ...] = ("description",)
    epg: tuple[str, ...] = ("epg_url", "epgUrl", "guide")
    identifier: tuple[str, ...] = ("id", "uuid", "channel_id", "channelId")
    identifier_key: str = "channel_id"


DEFAULT_FIELDS = FieldMap()


def _pick(item: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def load_json_array(payload: Union[str, bytes, list, dict], source: str = "") -> list[Any]:
    """Decode a JSON body that must be an array of objects."""
    if isinstance(payload, (list, dict)):
        data = payload
    else:
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"Invalid JSON from {source or 'station list'}: {e}", source) from e
    if isinstance(data, dict):
        # Some lists are wrapped as {"stations": [...]} or {"channels": [...]}
        for key in ("stations", "channels", "data", "results"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, list):
        raise ParseError(f"Expected a JSON array from {source or 'station list'}", source)
    return data


def item_to_record(
    item: dict[str, Any],
    source: SourceName,
    kind: ChannelKind = ChannelKind.TV,
    fields: FieldMap = DEFAULT_FIELDS,
    playlist_source: str = "",
) -> Optional[ChannelRecord]:
    """Map one station object to a record, or None without a stream URL."""
    stream_url = sanitize(_pick(item, fields.url), URL_MAX)
    if not stream_url:
        return None

    name = sanitize(_pick(item, fields.name), 512)
    quality_raw = _pick(item, fields.quality)
    if kind == ChannelKind.RADIO:
        quality: Union[str, int, None] = normalize_bitrate(quality_raw)
    elif isinstance(quality_raw, (int, float)) and not isinstance(quality_raw, bool):
        quality = int(quality_raw)
    else:
        quality = sanitize(quality_raw, SHORT_MAX) or None

    mapped_keys = set()
    for keys in (
        fields.name, fields.url, fields.logo, fields.website, fields.category,
        fields.country, fields.language, fields.quality, fields.description,
        fields.epg, fields.identifier,
    ):
        mapped_keys.update(keys)

    metadata: dict[str, Any] = {
        key: value
        for key, value in item.items()
        if key not in mapped_keys and isinstance(value, (str, int, float, bool))
    }
    identifier = _pick(item, fields.identifier)
    if identifier is not None:
        metadata[fields.identifier_key] = identifier
    if isinstance(item.get("metadata"), dict):
        metadata.update(item["metadata"])

    platform = detect_platform(stream_url)
    if platform:
        metadata["platform"] = platform
        handle = extract_youtube_handle(stream_url)
        if handle:
            metadata["handle"] = handle

    return ChannelRecord(
        name=name or "Unknown",
        stream_url=stream_url,
        source=source,
        kind=kind,
        description=sanitize(_pick(item, fields.description), 4096),
        category=sanitize(first_segment(_pick(item, fields.category)), LABEL_MAX, default="Mixed"),
        country=sanitize(_pick(item, fields.country), PLACE_MAX, default="Unknown"),
        language=sanitize(first_segment(_pick(item, fields.language)), PLACE_MAX, default="Unknown"),
        logo_url=sanitize(_pick(item, fields.logo), WEB_URL_MAX),
        quality=quality,
        playlist_source=playlist_source,
        website_url=sanitize(_pick(item, fields.website), WEB_URL_MAX),
        epg_url=sanitize(_pick(item, fields.epg), URL_MAX),
        metadata=metadata,
    )


def parse_json_stations(
    payload: Union[str, bytes, list],
    source: SourceName,
    kind: ChannelKind = ChannelKind.TV,
    fields: FieldMap = DEFAULT_FIELDS,
    playlist_source: str = "",
) -> list[ChannelRecord]:
    """
    Parse a JSON station list into channel records.

    Args:
        payload: Raw JSON text/bytes, or an already decoded list.
        source: Directory client that owns the list.
        kind: Radio lists get their bitrate clamped; TV lists keep the
            quality hint verbatim.
        fields: Field-name mapping for the directory.
        playlist_source: Human label of the list.

    Raises:
        ParseError: If the body is not a JSON array.
    """
    items = load_json_array(payload, playlist_source or source.value)
    records = []
    for item in items:
        if not isinstance(item, dict):
            continue
        record = item_to_record(item, source, kind, fields, playlist_source)
        if record is not None:
            records.append(record)
    logger.debug(f"Parsed {len(records)}/{len(items)} stations from {playlist_source or source.value}")
    return records
