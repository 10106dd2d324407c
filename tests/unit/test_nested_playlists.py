"""
Unit tests for nested playlist expansion.
"""

import pytest

from channelharvest.errors import ErrorType, FetchError
from channelharvest.events import FailureCollector, Stage
from channelharvest.parsers.m3u import parse_m3u
from channelharvest.parsers.nested import NestedPlaylistExpander, looks_like_playlist

from tests.fixtures.mock_responses import (
    HLS_MEDIA_PLAYLIST,
    NESTED_CHILD,
    NESTED_PARENT,
    SELF_REFERENCING,
)


class FakeFetcher:
    """Serves playlist bodies by URL and counts fetches."""

    def __init__(self, bodies: dict):
        self.bodies = bodies
        self.calls: list[str] = []

    async def __call__(self, url: str) -> str:
        self.calls.append(url)
        body = self.bodies.get(url)
        if body is None:
            raise FetchError("Unexpected HTTP status", url=url, status_code=404, error_type=ErrorType.HTTP_STATUS)
        return body


@pytest.mark.unit
class TestLooksLikePlaylist:
    """Tests for the playlist URL heuristic."""

    @pytest.mark.parametrize("url,expected", [
        ("https://lists.example/regional.m3u", True),
        ("https://lists.example/REGIONAL.M3U?token=1", True),
        ("https://lists.example/playlist.m3u8", True),
        ("https://lists.example/playlists/de.m3u8", True),
        ("https://cdn.example/live/index.m3u8", False),
        ("https://cdn.example/stream.mp3", False),
        ("", False),
    ])
    def test_heuristic(self, url, expected):
        assert looks_like_playlist(url) is expected


@pytest.mark.unit
class TestNestedPlaylistExpander:
    """Tests for NestedPlaylistExpander."""

    @pytest.mark.asyncio
    async def test_splices_children_in_place(self):
        fetcher = FakeFetcher({"https://lists.example/regional.m3u": NESTED_CHILD})
        expander = NestedPlaylistExpander(fetcher, max_depth=2)
        records = parse_m3u(NESTED_PARENT, playlist_source="Parent")

        expanded = await expander.expand(records, root_url="https://lists.example/index.m3u")

        assert [r.name for r in expanded] == ["Regional One", "Regional Two", "Direct News"]
        # Relative child URLs resolve against the child playlist
        assert expanded[1].stream_url == "https://lists.example/two.m3u8"
        # Children inherit the parent's group as default category
        assert expanded[1].category == "Regional"
        assert expanded[0].playlist_source == "Parent"
        assert expander.expanded_count == 1

    @pytest.mark.asyncio
    async def test_depth_cap(self):
        level2 = "#EXTM3U\n#EXTINF:-1,Deeper\nhttps://lists.example/level3.m3u\n"
        level3 = "#EXTM3U\n#EXTINF:-1,Bottom\nhttps://bottom.example/live.m3u8\n"
        fetcher = FakeFetcher({
            "https://lists.example/level2.m3u": level2,
            "https://lists.example/level3.m3u": level3,
        })
        records = parse_m3u("#EXTINF:-1,Top\nhttps://lists.example/level2.m3u\n")

        expanded = await NestedPlaylistExpander(fetcher, max_depth=1).expand(records)

        # Depth 1 expands level2, but its entry pointing at level3 is kept as is
        assert [r.stream_url for r in expanded] == ["https://lists.example/level3.m3u"]
        assert fetcher.calls == ["https://lists.example/level2.m3u"]

    @pytest.mark.asyncio
    async def test_cycle_is_not_followed(self):
        failures = FailureCollector()
        fetcher = FakeFetcher({"https://lists.example/loop.m3u": SELF_REFERENCING})
        records = parse_m3u(SELF_REFERENCING)
        expander = NestedPlaylistExpander(fetcher, max_depth=5, failures=failures)

        expanded = await expander.expand(records)

        assert fetcher.calls == ["https://lists.example/loop.m3u"]
        assert [r.stream_url for r in expanded].count("https://real.example/live.m3u8") == 2
        assert expander.pruned_count == 1
        assert failures.count(Stage.NESTED_PLAYLIST) == 1
        assert failures.failures[0].subject == "https://lists.example/loop.m3u"

    @pytest.mark.asyncio
    async def test_root_playlist_marked_visited(self):
        failures = FailureCollector()
        fetcher = FakeFetcher({})
        records = parse_m3u("#EXTINF:-1,Self\nhttps://lists.example/index.m3u\n")
        expander = NestedPlaylistExpander(fetcher, failures=failures)

        expanded = await expander.expand(records, root_url="https://lists.example/index.m3u")

        assert expanded == []
        assert fetcher.calls == []
        assert expander.pruned_count == 1
        assert failures.by_error_type(Stage.NESTED_PLAYLIST) == {"unknown": 1}

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_entry(self):
        failures = FailureCollector()
        fetcher = FakeFetcher({})
        records = parse_m3u(NESTED_PARENT)

        expanded = await NestedPlaylistExpander(fetcher, failures=failures).expand(records)

        assert [r.name for r in expanded] == ["Regional Pack", "Direct News"]
        assert failures.count(Stage.NESTED_PLAYLIST) == 1
        assert failures.failures[0].error_type == ErrorType.HTTP_STATUS

    @pytest.mark.asyncio
    async def test_hls_media_playlist_kept_as_stream(self):
        fetcher = FakeFetcher({"https://lists.example/playlist.m3u8": HLS_MEDIA_PLAYLIST})
        records = parse_m3u("#EXTINF:-1,HLS\nhttps://lists.example/playlist.m3u8\n")

        expanded = await NestedPlaylistExpander(fetcher).expand(records)

        assert [r.name for r in expanded] == ["HLS"]

    @pytest.mark.asyncio
    async def test_empty_child_recorded(self):
        failures = FailureCollector()
        fetcher = FakeFetcher({"https://lists.example/regional.m3u": "#EXTM3U\n"})
        records = parse_m3u(NESTED_PARENT)

        expanded = await NestedPlaylistExpander(fetcher, failures=failures).expand(records)

        assert len(expanded) == 2
        assert failures.by_error_type(Stage.NESTED_PLAYLIST) == {"parse": 1}
