"""Tests for basemap tile fetching and placement, with the network faked."""

import pytest

from airspace_intrusions.cache import DiskCache, MemoryCache
from airspace_intrusions.errors import TileFetchFailure
from airspace_intrusions.projection import MapFrame, Viewport
from airspace_intrusions.stats import Stats
from airspace_intrusions.tiles import TileCompositor, TileSource

import testinfra
from testinfra import FakeResponse, FakeSession


def make_frame(zoom=13):
    return MapFrame(Viewport(-34.1, -34.0, 18.4, 18.5, zoom), 800)


class BrokenCache(DiskCache):
    """Every read and write fails the way a full or damaged disk does."""

    def __init__(self):
        pass

    def get(self, key):
        raise OSError(5, "Input/output error")

    def put(self, key, value):
        raise OSError(28, "No space left on device")


class TestTileSource:
    def test_url(self):
        assert TileSource().url(12, 1, 2) == "https://tile.openstreetmap.org/12/1/2.png"

    def test_from_config(self):
        source = TileSource.from_config({"url": "http://tiles.local/{z}/{x}/{y}.png",
                                         "timeout": 2, "attribution": "local"})
        assert source.url(1, 0, 1) == "http://tiles.local/1/0/1.png"
        assert source.timeout == 2.0
        assert source.user_agent == "airspace-intrusions/0.1"

    def test_subdomain_template(self):
        source = TileSource(url_template="https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png")
        urls = {source.url(13, x, 0) for x in range(3)}
        assert urls == {f"https://{s}.tile.openstreetmap.org/13/{x}/0.png"
                        for s, x in zip("abc", range(3))}

    def test_unknown_placeholder_rejected(self):
        with pytest.raises(ValueError):
            TileSource.from_config({"url": "https://tiles.local/{style}/{z}/{x}/{y}.png"})


class TestFetchTile:
    """Single tile fetches."""

    def setup_method(self):
        Stats.reset()

    def test_user_agent_and_timeout_sent(self):
        seen = {}

        class Session(FakeSession):
            def get(self, url, headers=None, timeout=None):
                seen["headers"], seen["timeout"] = headers, timeout
                return super().get(url, headers, timeout)

        compositor = TileCompositor(TileSource(user_agent="tester", timeout=3),
                                    session=Session())
        data, image, from_cache = compositor.fetch_tile(13, 1, 2)
        assert not from_cache
        assert seen == {"headers": {"User-Agent": "tester"}, "timeout": 3}
        assert image.size == (256, 256)
        assert image.mode == "RGBA"

    def test_http_error(self):
        compositor = TileCompositor(session=FakeSession(lambda url: FakeResponse(b"", 404)))
        with pytest.raises(TileFetchFailure):
            compositor.fetch_tile(13, 1, 2)

    def test_garbage_bytes(self):
        compositor = TileCompositor(session=FakeSession(lambda url: FakeResponse(b"<html>")))
        with pytest.raises(TileFetchFailure):
            compositor.fetch_tile(13, 1, 2)

    def test_cache_hit_skips_network(self):
        """An empty MemoryCache still gets filled and read."""
        cache = MemoryCache()
        session = FakeSession()
        compositor = TileCompositor(cache=cache, session=session)
        assert compositor.fetch_tile(13, 1, 2)[2] is False
        assert compositor.fetch_tile(13, 1, 2)[2] is True
        assert len(session.urls) == 1
        assert cache.get("13/1/2.png") is not None

    def test_unreadable_cache_is_a_miss(self):
        session = FakeSession()
        compositor = TileCompositor(cache=BrokenCache(), session=session)
        data, image, from_cache = compositor.fetch_tile(13, 1, 2)
        assert not from_cache
        assert len(session.urls) == 1

    def test_bad_cache_entry_invalidated(self):
        cache = MemoryCache()
        cache.put("13/1/2.png", b"not a png")
        compositor = TileCompositor(cache=cache, session=FakeSession())
        with pytest.raises(TileFetchFailure):
            compositor.fetch_tile(13, 1, 2)
        assert cache.get("13/1/2.png") is None


class TestComposite:
    """Whole-frame compositing; failures leave gaps, never abort."""

    def setup_method(self):
        Stats.reset()

    def test_all_tiles_placed(self):
        frame = make_frame()
        session = FakeSession()
        placed = TileCompositor(session=session).composite(frame)
        assert len(placed) == len(frame.tile_range())
        assert len(session.urls) == len(placed)
        assert Stats.tiles_fetched == len(placed)
        for tile in placed:
            assert (tile.canvas_x, tile.canvas_y) == frame.tile_position(tile.x, tile.y)

    def test_offline_gives_no_tiles(self):
        placed = TileCompositor(session=testinfra.offline_session()).composite(make_frame())
        assert placed == []
        assert Stats.tiles_failed == len(make_frame().tile_range())

    def test_partial_failure(self):
        """Tiles in one column fail; the rest are still placed."""
        frame = make_frame()
        bad_x = frame.tile_range().min_x

        def handler(url):
            x = int(url.split("/")[-2])
            if x == bad_x:
                return FakeResponse(b"", 500)
            return FakeResponse(testinfra.tile_png())

        placed = TileCompositor(session=FakeSession(handler)).composite(frame)
        rows = frame.tile_range().max_y - frame.tile_range().min_y + 1
        assert len(placed) == len(frame.tile_range()) - rows
        assert all(t.x != bad_x for t in placed)

    def test_odd_sized_tiles_resized(self):
        session = FakeSession(lambda url: FakeResponse(testinfra.tile_png(size=512)))
        placed = TileCompositor(session=session).composite(make_frame())
        assert placed and all(t.image.size == (256, 256) for t in placed)

    def test_cache_fills_and_serves_second_frame(self):
        frame = make_frame()
        session = FakeSession()
        compositor = TileCompositor(cache=MemoryCache(), session=session)
        first = compositor.composite(frame)
        second = compositor.composite(frame)
        assert len(second) == len(first)
        assert len(session.urls) == len(first)
        assert Stats.tiles_fetched == len(first)
        assert Stats.tiles_cached == len(first)

    def test_cache_write_failure_still_places_tiles(self):
        """A full disk under the tile cache doesn't cost the map its basemap."""
        frame = make_frame()
        placed = TileCompositor(cache=BrokenCache(), session=FakeSession()).composite(frame)
        assert len(placed) == len(frame.tile_range())
        assert Stats.tiles_failed == 0
