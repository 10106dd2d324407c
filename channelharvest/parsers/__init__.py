"""
Wire-format parsers.

Each parser is a pure function from a raw body to a list of
ChannelRecord objects; records without a stream URL never leave a parser.
"""

from channelharvest.parsers.json_stations import FieldMap, parse_json_stations
from channelharvest.parsers.m3u import M3UEntry, M3UParser, parse_m3u
from channelharvest.parsers.nested import NestedPlaylistExpander, looks_like_playlist
from channelharvest.parsers.xiph import parse_xiph_directory

__all__ = [
    "FieldMap",
    "M3UEntry",
    "M3UParser",
    "NestedPlaylistExpander",
    "looks_like_playlist",
    "parse_json_stations",
    "parse_m3u",
    "parse_xiph_directory",
]
