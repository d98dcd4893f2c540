"""Fetch basemap tiles covering a map frame and position them on the canvas.

Tiles for one image are fetched concurrently and joined as a batch.  A tile
that can't be fetched or decoded is simply left out; the image is still
rendered, just with a blank patch (or no basemap at all)."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

import requests
from PIL import Image, UnidentifiedImageError

from .cache import Cache
from .errors import TileFetchFailure
from .projection import TILE_SIZE, MapFrame
from .stats import Stats

logger = logging.getLogger(__name__)

OSM_TILE_URL = "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
DEFAULT_TIMEOUT = 5.0    # seconds, per tile
SUBDOMAINS = "abc"

@dataclass(frozen=True)
class TileSource:
    """Where tiles come from.  url_template takes {s}, {z}, {x} and {y}."""
    url_template: str = OSM_TILE_URL
    user_agent: str = "airspace-intrusions/0.1"
    timeout: float = DEFAULT_TIMEOUT
    attribution: Optional[str] = None

    def __post_init__(self):
        try:
            self.url(0, 0, 0)
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"bad tile url template {self.url_template!r}: "
                             "only {s}, {z}, {x} and {y} are supported") from e

    def url(self, zoom: int, x: int, y: int) -> str:
        """{s} picks one of the a/b/c subdomains, spread by tile position."""
        subdomain = SUBDOMAINS[(x + y) % len(SUBDOMAINS)]
        return self.url_template.format(s=subdomain, z=zoom, x=x, y=y)

    @classmethod
    def from_config(cls, tiles_cfg: dict) -> "TileSource":
        return cls(url_template=tiles_cfg.get("url") or OSM_TILE_URL,
                   user_agent=tiles_cfg.get("user_agent") or cls.user_agent,
                   timeout=float(tiles_cfg.get("timeout") or DEFAULT_TIMEOUT),
                   attribution=tiles_cfg.get("attribution"))

@dataclass
class PlacedTile:
    """A decoded tile and where its top-left corner lands on the canvas."""
    x: int
    y: int
    canvas_x: float
    canvas_y: float
    data: bytes
    image: Image.Image

class TileCompositor:
    def __init__(self, source: Optional[TileSource] = None,
                 cache: Optional[Cache] = None, session=None,
                 max_workers: int = 8):
        """
        Args:
            source: tile server settings, OpenStreetMap if not given
            cache: optional cache of raw tile bytes keyed "z/x/y.png"
            session: anything with a requests-style get(); a new
                requests.Session if not given
            max_workers: concurrent fetches per image
        """
        self.source = source or TileSource()
        self.cache = cache
        self.session = session or requests.Session()
        self.max_workers = max_workers

    def _download(self, zoom: int, x: int, y: int) -> bytes:
        url = self.source.url(zoom, x, y)
        try:
            response = self.session.get(
                url, headers={"User-Agent": self.source.user_agent},
                timeout=self.source.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise TileFetchFailure(f"{url}: {e}") from e
        return response.content

    def _cache_get(self, key: str) -> Optional[bytes]:
        if self.cache is None:
            return None
        try:
            return self.cache.get(key)
        except OSError as e:
            logger.warning("Tile cache read failed for %s: %s", key, e)
            return None

    def _cache_put(self, key: str, data: bytes):
        if self.cache is None:
            return
        try:
            self.cache.put(key, data)
        except OSError as e:
            logger.warning("Tile cache write failed for %s: %s", key, e)

    def _cache_invalidate(self, key: str):
        try:
            self.cache.invalidate(key)
        except OSError as e:
            logger.warning("Tile cache invalidate failed for %s: %s", key, e)

    def fetch_tile(self, zoom: int, x: int, y: int) -> tuple[bytes, Image.Image, bool]:
        """Return raw bytes, decoded image, and whether it came from the cache.

        Raises TileFetchFailure on network errors, timeouts, HTTP errors or
        undecodable data.  Cache errors only cost a download."""
        key = f"{zoom}/{x}/{y}.png"
        data = self._cache_get(key)
        from_cache = data is not None
        if data is None:
            data = self._download(zoom, x, y)

        try:
            image = Image.open(BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            if from_cache:
                self._cache_invalidate(key)
            raise TileFetchFailure(f"tile {key} is not an image: {e}") from e

        if not from_cache:
            self._cache_put(key, data)
        return data, image.convert("RGBA"), from_cache

    def _fetch_or_none(self, job):
        zoom, x, y = job
        try:
            return self.fetch_tile(zoom, x, y)
        except TileFetchFailure as e:
            logger.warning("Failed to download tile: %s", e)
            return None

    def composite(self, frame: MapFrame) -> list[PlacedTile]:
        """Fetch all tiles covering the frame's square region.

        Tile rows past the poles are skipped; columns wrap around the
        antimeridian for the request but keep their unwrapped position."""
        tile_range = frame.tile_range()
        n = 2 ** frame.zoom
        jobs = []
        positions = []
        for x, y in tile_range:
            if not 0 <= y < n:
                continue
            jobs.append((frame.zoom, x % n, y))
            positions.append((x, y))

        logger.info("Downloading tiles for %dx%d grid",
                    tile_range.max_x - tile_range.min_x + 1,
                    tile_range.max_y - tile_range.min_y + 1)
        if jobs:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(self._fetch_or_none, jobs))
        else:
            results = []

        # counters are only touched here, after the workers have joined
        placed = []
        for (x, y), result in zip(positions, results):
            if result is None:
                Stats.tiles_failed += 1
                continue
            data, image, from_cache = result
            if from_cache:
                Stats.tiles_cached += 1
            else:
                Stats.tiles_fetched += 1
            if image.size != (TILE_SIZE, TILE_SIZE):
                image = image.resize((TILE_SIZE, TILE_SIZE))
            canvas_x, canvas_y = frame.tile_position(x, y)
            placed.append(PlacedTile(x=x, y=y, canvas_x=canvas_x,
                                     canvas_y=canvas_y, data=data, image=image))

        failed = len(jobs) - len(placed)
        logger.info("Placed %d tiles%s", len(placed),
                    f", {failed} failed" if failed else "")
        return placed
