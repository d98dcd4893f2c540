"""Web Mercator projection and map framing.

All maps are drawn in one continuous pixel space per zoom level, the same
space slippy-map tiles use: at zoom z the world is 2**z * 256 pixels wide,
with (0, 0) at the north-west corner."""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .boundary import DEFAULT_BOUNDS, BoundarySet
from .geometry import GeoBounds
from .track import Track

logger = logging.getLogger(__name__)

TILE_SIZE = 256
MIN_ZOOM = 11
MAX_ZOOM = 16
ZOOM_SEARCH_MAX = 18
FIT_FRACTION = 0.8          # viewport may use this much of the canvas
BOUNDARY_MARGIN = 0.5       # track may extend this far past the boundary, in boundary spans
PADDING_FRACTION = 0.05
TILE_BUFFER_PX = 128

# --- Tile coordinate math (standard Web Mercator) ---

def latlon_to_mercator(lat: float, lon: float) -> tuple[float, float]:
    """Normalized Web Mercator (x, y), both in [0, 1] for valid latitudes."""
    x = (lon + 180.0) / 360.0
    lat_rad = math.radians(lat)
    y = (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0
    return x, y

def mercator_to_pixel(x: float, y: float, zoom: int,
                      tile_size: int = TILE_SIZE) -> tuple[float, float]:
    scale = 2 ** zoom * tile_size
    return x * scale, y * scale

def latlon_to_pixel(lat: float, lon: float, zoom: int) -> tuple[float, float]:
    return mercator_to_pixel(*latlon_to_mercator(lat, lon), zoom)

def pixel_to_latlon(px: float, py: float, zoom: int) -> tuple[float, float]:
    """Inverse of latlon_to_pixel.  Returns (lat, lon)."""
    scale = 2 ** zoom * TILE_SIZE
    lon = px / scale * 360.0 - 180.0
    lat = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * py / scale))))
    return lat, lon

def latlons_to_pixels(latlons: np.ndarray, zoom: int) -> np.ndarray:
    """Vectorized latlon_to_pixel over an (N, 2) array of [lat, lon] rows.
    Returns an (N, 2) array of [x, y] rows."""
    latlons = np.asarray(latlons, dtype=np.float64).reshape(-1, 2)
    lat_rad = np.radians(latlons[:, 0])
    scale = 2 ** zoom * TILE_SIZE
    x = (latlons[:, 1] + 180.0) / 360.0 * scale
    y = (1.0 - np.log(np.tan(lat_rad) + 1.0 / np.cos(lat_rad)) / np.pi) / 2.0 * scale
    return np.column_stack([x, y])

# --- Viewport selection ---

@dataclass(frozen=True)
class Viewport:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float
    zoom: int

    @property
    def bounds(self) -> GeoBounds:
        return GeoBounds(self.min_lat, self.max_lat, self.min_lon, self.max_lon)

def _clamp_interval(lo, hi, limit_lo, limit_hi):
    """Clamp [lo, hi] into [limit_lo, limit_hi].  If the interval lies
    entirely outside the limits, collapse it onto the nearest limit."""
    new_lo = max(lo, limit_lo)
    new_hi = min(hi, limit_hi)
    if new_lo > new_hi:
        edge = limit_hi if lo > limit_hi else limit_lo
        new_lo = new_hi = edge
    return new_lo, new_hi

def compute_bounds(track: Track, boundary: Optional[BoundarySet]) -> GeoBounds:
    """Geographic box to frame: the track, limited so the boundary stays in
    view, plus padding.

    The track box is clamped to the boundary box grown by half the
    boundary's own span on every side.  A track that wanders far away
    therefore still produces a map centered on the boundary."""
    tb = track.bounds()
    bb = (boundary.bounds() if boundary is not None else None) or DEFAULT_BOUNDS

    lat_margin = bb.lat_span * BOUNDARY_MARGIN
    lon_margin = bb.lon_span * BOUNDARY_MARGIN
    min_lat, max_lat = _clamp_interval(tb.min_lat, tb.max_lat,
                                       bb.min_lat - lat_margin, bb.max_lat + lat_margin)
    min_lon, max_lon = _clamp_interval(tb.min_lon, tb.max_lon,
                                       bb.min_lon - lon_margin, bb.max_lon + lon_margin)

    lat_pad = (max_lat - min_lat) * PADDING_FRACTION
    lon_pad = (max_lon - min_lon) * PADDING_FRACTION
    return GeoBounds(min_lat=min_lat - lat_pad, max_lat=max_lat + lat_pad,
                     min_lon=min_lon - lon_pad, max_lon=max_lon + lon_pad)

def choose_zoom(bounds: GeoBounds, width: int, height: int) -> int:
    """Deepest zoom at which the box fits in FIT_FRACTION of the canvas,
    clamped to [MIN_ZOOM, MAX_ZOOM].

    Spans are scaled linearly (degrees / 360 of the world width) for both
    axes.  The clamp is applied last and always wins, even if the clamped
    zoom no longer fits."""
    lat_diff = bounds.lat_span
    lon_diff = bounds.lon_span
    zoom = 1
    for z in range(1, ZOOM_SEARCH_MAX + 1):
        scale = 2 ** z * TILE_SIZE
        projected_lat = lat_diff / 360.0 * scale
        projected_lon = lon_diff / 360.0 * scale
        if projected_lat < height * FIT_FRACTION and projected_lon < width * FIT_FRACTION:
            zoom = z
        else:
            break
    return max(MIN_ZOOM, min(zoom, MAX_ZOOM))

def compute_viewport(track: Track, boundary: Optional[BoundarySet],
                     width: int, height: int) -> Viewport:
    bounds = compute_bounds(track, boundary)
    zoom = choose_zoom(bounds, width, height)
    logger.info("Bounds: lat %.5f..%.5f lon %.5f..%.5f, zoom %d",
                bounds.min_lat, bounds.max_lat, bounds.min_lon, bounds.max_lon, zoom)
    return Viewport(bounds.min_lat, bounds.max_lat, bounds.min_lon,
                    bounds.max_lon, zoom)

# --- Square canvas framing ---

@dataclass(frozen=True)
class TileRange:
    zoom: int
    min_x: int
    max_x: int
    min_y: int
    max_y: int

    def __iter__(self):
        """Yield (x, y) tile indices column by column."""
        for x in range(self.min_x, self.max_x + 1):
            for y in range(self.min_y, self.max_y + 1):
                yield x, y

    def __len__(self):
        return (self.max_x - self.min_x + 1) * (self.max_y - self.min_y + 1)

class MapFrame:
    """Places a viewport on a square canvas of size x size pixels.

    The viewport's pixel box is centered on the canvas; everything drawn
    goes through to_canvas() so tiles and overlays share one transform."""

    def __init__(self, viewport: Viewport, size: int = 800):
        self.viewport = viewport
        self.size = size
        self.zoom = viewport.zoom

        self.top_left = latlon_to_pixel(viewport.max_lat, viewport.min_lon, self.zoom)
        self.bottom_right = latlon_to_pixel(viewport.min_lat, viewport.max_lon, self.zoom)
        self.map_width = self.bottom_right[0] - self.top_left[0]
        self.map_height = self.bottom_right[1] - self.top_left[1]
        self.offset = ((size - self.map_width) / 2, (size - self.map_height) / 2)

        center_lat, center_lon = viewport.bounds.center
        self.center = latlon_to_pixel(center_lat, center_lon, self.zoom)
        self.half_size = max(self.map_width, self.map_height) / 2 + TILE_BUFFER_PX

    def to_canvas(self, lat: float, lon: float) -> tuple[float, float]:
        px, py = latlon_to_pixel(lat, lon, self.zoom)
        return (px - self.top_left[0] + self.offset[0],
                py - self.top_left[1] + self.offset[1])

    def latlons_to_canvas(self, latlons) -> np.ndarray:
        """Vectorized to_canvas over (N, 2) [lat, lon] rows."""
        pixels = latlons_to_pixels(latlons, self.zoom)
        pixels[:, 0] += self.offset[0] - self.top_left[0]
        pixels[:, 1] += self.offset[1] - self.top_left[1]
        return pixels

    def square_region(self) -> tuple[float, float, float, float]:
        """World-pixel box (left, top, right, bottom) that tiles must cover."""
        cx, cy = self.center
        return (cx - self.half_size, cy - self.half_size,
                cx + self.half_size, cy + self.half_size)

    def tile_range(self) -> TileRange:
        left, top, right, bottom = self.square_region()
        return TileRange(zoom=self.zoom,
                         min_x=math.floor(left / TILE_SIZE),
                         max_x=math.floor(right / TILE_SIZE),
                         min_y=math.floor(top / TILE_SIZE),
                         max_y=math.floor(bottom / TILE_SIZE))

    def tile_position(self, x: int, y: int) -> tuple[float, float]:
        """Canvas position of the top-left corner of tile (x, y)."""
        return (x * TILE_SIZE - self.top_left[0] + self.offset[0],
                y * TILE_SIZE - self.top_left[1] + self.offset[1])
