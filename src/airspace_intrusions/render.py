"""Draw annotated flight maps.

Rendering happens in two steps.  build_scene() projects everything into
canvas pixels and produces a Scene, a plain vector description of the map.
The Scene is then rasterized with Pillow and written as PNG.  If the raster
step fails the Scene is written as SVG instead, so the work isn't lost.

Layers, back to front: basemap tiles, boundary polygons (holes painted
over in white), the flight path, start/end markers, one warning icon per
violation cluster, then the caption box."""

import base64
import logging
import math
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Optional

import numpy as np
from lxml import etree
from PIL import Image, ImageDraw, ImageFont

from .boundary import BoundarySet
from .caption import FlightCaption, zone_line
from .errors import EncodingFailure
from .projection import TILE_SIZE, MapFrame
from .stats import Stats
from .tiles import PlacedTile
from .track import Track
from .util import atomic_write
from .violations import ViolationCluster

logger = logging.getLogger(__name__)

CANVAS_SIZE = 800

# Styling, RGBA
BOUNDARY_FILL = (255, 0, 0, 64)
BOUNDARY_STROKE = (255, 0, 0, 178)
BOUNDARY_STROKE_WIDTH = 3
HOLE_FILL = (255, 255, 255, 255)
HOLE_STROKE_WIDTH = 2
TRACK_COLOR = (0, 0, 255, 204)
TRACK_WIDTH = 4
START_FILL = (0, 255, 0, 255)
END_FILL = (255, 0, 0, 255)
MARKER_OUTLINE = (0, 0, 0, 255)
MARKER_RADIUS = 6
MARKER_OUTLINE_WIDTH = 2
ICON_SIZE = 24
SHADOW_OPACITY = 0.3
SHADOW_OFFSET = 1
CAPTION_FILL = (255, 255, 255, 230)
CAPTION_OUTLINE = (0, 0, 0, 255)
CAPTION_FONT_SIZE = 14
CAPTION_LINE_GAP = 18
ATTRIBUTION_FONT_SIZE = 10

SVG_NS = "http://www.w3.org/2000/svg"
SVG_STYLE = """
  .boundary { fill: rgba(255, 0, 0, 0.25); stroke: #ff0000; stroke-width: 3; stroke-opacity: 0.7; }
  .hole { fill: rgba(255, 255, 255, 1.0); stroke: #ff0000; stroke-width: 2; stroke-opacity: 0.7; }
  .flight-path { fill: none; stroke: #0000ff; stroke-width: 4; stroke-opacity: 0.8; }
  .start-marker { fill: #00ff00; stroke: #000; stroke-width: 2; }
  .end-marker { fill: #ff0000; stroke: #000; stroke-width: 2; }
  .caption { font-family: Arial, sans-serif; font-size: 14px; fill: #000; font-weight: bold; }
  .caption-bg { fill: rgba(255, 255, 255, 0.9); stroke: #000; stroke-width: 1; }
  .attribution { font-family: Arial, sans-serif; font-size: 10px; fill: #333; }
"""

XY = tuple[float, float]

@dataclass
class Scene:
    """Everything on one map, in canvas pixel coordinates."""
    size: int
    tiles: list[PlacedTile] = field(default_factory=list)
    outer_rings: list[list[XY]] = field(default_factory=list)
    holes: list[list[XY]] = field(default_factory=list)
    track_line: list[XY] = field(default_factory=list)
    start: Optional[XY] = None
    end: Optional[XY] = None
    markers: list[XY] = field(default_factory=list)
    caption_lines: tuple[str, ...] = ()
    attribution: Optional[str] = None

def default_warning_icon(size: int = ICON_SIZE) -> Image.Image:
    """Yellow warning triangle with an exclamation mark."""
    icon = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(icon)
    draw.polygon([(size / 2, 1), (size - 1, size - 2), (1, size - 2)],
                 fill=(255, 204, 0, 255), outline=(0, 0, 0, 255), width=2)
    cx = size / 2
    draw.line([(cx, size * 0.35), (cx, size * 0.62)], fill=(0, 0, 0, 255), width=2)
    draw.ellipse([cx - 1.5, size * 0.72, cx + 1.5, size * 0.72 + 3], fill=(0, 0, 0, 255))
    return icon

def _load_font(size: int, bold: bool = True):
    name = "DejaVuSans-Bold.ttf" if bold else "DejaVuSans.ttf"
    try:
        return ImageFont.truetype(name, size)
    except OSError:
        return ImageFont.load_default(size=size)

def _finite_points(arr: np.ndarray) -> list[XY]:
    arr = arr[np.isfinite(arr).all(axis=1)]
    return [(float(x), float(y)) for x, y in arr]

def _composite_at(canvas: Image.Image, im: Image.Image, x: int, y: int):
    """alpha_composite im onto canvas at (x, y), clipping at the edges."""
    src_x, src_y = max(-x, 0), max(-y, 0)
    dst_x, dst_y = max(x, 0), max(y, 0)
    if (src_x >= im.width or src_y >= im.height or
            dst_x >= canvas.width or dst_y >= canvas.height):
        return
    canvas.alpha_composite(im, dest=(dst_x, dst_y), source=(src_x, src_y))

def _svg(tag: str) -> str:
    return f"{{{SVG_NS}}}{tag}"

def _png_data_uri(data: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")

def _points_attr(points: list[XY]) -> str:
    return " ".join(f"{x:.2f},{y:.2f}" for x, y in points)

class MapRenderer:
    def __init__(self, size: int = CANVAS_SIZE, zone_label: str = "NP17",
                 warning_icon=None, attribution: Optional[str] = None):
        """
        Args:
            size: canvas width and height in pixels
            zone_label: restricted zone designation for the caption
            warning_icon: path to a PNG used for violation markers, or None
                for the built-in triangle
            attribution: basemap attribution drawn in the top-right corner
        """
        self.size = size
        self.zone_label = zone_label
        self.attribution = attribution
        if warning_icon:
            icon = Image.open(warning_icon).convert("RGBA")
            logger.info("Loaded warning icon %s", warning_icon)
        else:
            icon = default_warning_icon()
        self.icon = icon.resize((ICON_SIZE, ICON_SIZE))
        shadow = self.icon.copy()
        shadow.putalpha(shadow.getchannel("A").point(lambda a: int(a * SHADOW_OPACITY)))
        self.icon_shadow = shadow

    # --- Scene construction ---

    def build_scene(self, frame: MapFrame, tiles: list[PlacedTile],
                    boundary: BoundarySet, track: Track,
                    clusters: list[ViolationCluster],
                    caption: FlightCaption) -> Scene:
        scene = Scene(size=self.size, tiles=list(tiles),
                      attribution=self.attribution if tiles else None)

        for polygon in boundary:
            scene.outer_rings.append(self._ring_to_canvas(frame, polygon.outer))
            for hole in polygon.inner:
                scene.holes.append(self._ring_to_canvas(frame, hole))

        scene.track_line = _finite_points(frame.latlons_to_canvas(track.latlons()))
        scene.start = frame.to_canvas(track.first.lat, track.first.lon)
        scene.end = frame.to_canvas(track.last.lat, track.last.lon)

        for i, cluster in enumerate(clusters):
            rep = cluster.representative
            x, y = frame.to_canvas(rep.lat, rep.lon)
            if not (math.isfinite(x) and math.isfinite(y)):
                logger.warning("Invalid pixel coordinates for violation %d, skipping", i + 1)
                continue
            scene.markers.append((x, y))

        scene.caption_lines = (caption.flight_line(), zone_line(self.zone_label))
        return scene

    @staticmethod
    def _ring_to_canvas(frame: MapFrame, ring) -> list[XY]:
        lonlats = np.asarray(ring, dtype=np.float64).reshape(-1, 2)
        return _finite_points(frame.latlons_to_canvas(lonlats[:, ::-1]))

    # --- Raster output ---

    def rasterize(self, scene: Scene) -> Image.Image:
        size = (scene.size, scene.size)
        canvas = Image.new("RGBA", size, (0, 0, 0, 0))

        for tile in scene.tiles:
            _composite_at(canvas, tile.image, round(tile.canvas_x), round(tile.canvas_y))

        # each pass gets its own layer so translucent fills blend with what's below
        layer = Image.new("RGBA", size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        for ring in scene.outer_rings:
            self._draw_ring(draw, ring, BOUNDARY_FILL, BOUNDARY_STROKE_WIDTH)
        canvas.alpha_composite(layer)

        layer = Image.new("RGBA", size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        for ring in scene.holes:
            self._draw_ring(draw, ring, HOLE_FILL, HOLE_STROKE_WIDTH)
        canvas.alpha_composite(layer)

        layer = Image.new("RGBA", size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        if len(scene.track_line) >= 2:
            draw.line(scene.track_line, fill=TRACK_COLOR, width=TRACK_WIDTH, joint="curve")
        canvas.alpha_composite(layer)

        draw = ImageDraw.Draw(canvas)
        for point, fill in ((scene.start, START_FILL), (scene.end, END_FILL)):
            if point is None or not all(map(math.isfinite, point)):
                continue
            x, y = round(point[0]), round(point[1])
            draw.ellipse([x - MARKER_RADIUS, y - MARKER_RADIUS,
                          x + MARKER_RADIUS, y + MARKER_RADIUS],
                         fill=fill, outline=MARKER_OUTLINE, width=MARKER_OUTLINE_WIDTH)

        for x, y in scene.markers:
            left = round(x - ICON_SIZE / 2)
            top = round(y - ICON_SIZE / 2)
            _composite_at(canvas, self.icon_shadow, left + SHADOW_OFFSET, top + SHADOW_OFFSET)
            _composite_at(canvas, self.icon, left, top)

        self._draw_caption(canvas, scene)
        if scene.attribution:
            self._draw_attribution(canvas, scene.attribution)
        return canvas

    @staticmethod
    def _draw_ring(draw: ImageDraw.ImageDraw, ring: list[XY], fill, stroke_width):
        if len(ring) >= 3:
            draw.polygon(ring, fill=fill, outline=BOUNDARY_STROKE, width=stroke_width)
        elif len(ring) == 2:
            draw.line(ring, fill=BOUNDARY_STROKE, width=stroke_width)

    def _draw_caption(self, canvas: Image.Image, scene: Scene):
        size = scene.size
        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        draw.rounded_rectangle([10, size - 70, size - 10, size - 10], radius=5,
                               fill=CAPTION_FILL, outline=CAPTION_OUTLINE, width=1)
        font = _load_font(CAPTION_FONT_SIZE)
        top = size - 50 - CAPTION_FONT_SIZE
        for i, line in enumerate(scene.caption_lines):
            draw.text((20, top + i * CAPTION_LINE_GAP), line, font=font, fill=(0, 0, 0, 255))
        canvas.alpha_composite(layer)

    def _draw_attribution(self, canvas: Image.Image, text: str):
        draw = ImageDraw.Draw(canvas)
        font = _load_font(ATTRIBUTION_FONT_SIZE, bold=False)
        width = draw.textlength(text, font=font)
        x = canvas.width - width - 6
        draw.rectangle([x - 4, 0, canvas.width, ATTRIBUTION_FONT_SIZE + 6],
                       fill=(255, 255, 255, 200))
        draw.text((x, 2), text, font=font, fill=(51, 51, 51, 255))

    def encode_png(self, scene: Scene) -> bytes:
        """Rasterize and PNG-encode the scene.  Raises EncodingFailure."""
        try:
            image = self.rasterize(scene)
            buf = BytesIO()
            image.save(buf, format="PNG")
        except (OSError, ValueError, TypeError) as e:
            raise EncodingFailure(str(e)) from e
        return buf.getvalue()

    # --- Vector output ---

    def to_svg(self, scene: Scene) -> bytes:
        """Serialize the scene as an SVG document.  Text content goes through
        the XML serializer, so markup characters in captions are escaped."""
        size = scene.size
        svg = etree.Element(_svg("svg"), nsmap={None: SVG_NS},
                            width=str(size), height=str(size),
                            viewBox=f"0 0 {size} {size}")
        defs = etree.SubElement(svg, _svg("defs"))
        etree.SubElement(defs, _svg("style")).text = SVG_STYLE

        for tile in scene.tiles:
            etree.SubElement(svg, _svg("image"), href=_png_data_uri(tile.data),
                             x=f"{tile.canvas_x:.2f}", y=f"{tile.canvas_y:.2f}",
                             width=str(TILE_SIZE), height=str(TILE_SIZE))
        for ring in scene.outer_rings:
            etree.SubElement(svg, _svg("polygon"), points=_points_attr(ring))\
                .set("class", "boundary")
        for ring in scene.holes:
            etree.SubElement(svg, _svg("polygon"), points=_points_attr(ring)).set("class", "hole")
        if scene.track_line:
            etree.SubElement(svg, _svg("polyline"), points=_points_attr(scene.track_line))\
                .set("class", "flight-path")
        for point, cls in ((scene.start, "start-marker"), (scene.end, "end-marker")):
            if point is not None:
                etree.SubElement(svg, _svg("circle"), cx=str(round(point[0])),
                                 cy=str(round(point[1])), r=str(MARKER_RADIUS)).set("class", cls)

        if scene.markers:
            buf = BytesIO()
            self.icon.save(buf, format="PNG")
            icon_uri = _png_data_uri(buf.getvalue())
            for x, y in scene.markers:
                left = round(x - ICON_SIZE / 2)
                top = round(y - ICON_SIZE / 2)
                group = etree.SubElement(svg, _svg("g"))
                group.set("class", "violation-marker")
                etree.SubElement(group, _svg("image"), href=icon_uri,
                                 x=str(left + SHADOW_OFFSET), y=str(top + SHADOW_OFFSET),
                                 width=str(ICON_SIZE), height=str(ICON_SIZE),
                                 opacity=str(SHADOW_OPACITY))
                etree.SubElement(group, _svg("image"), href=icon_uri, x=str(left), y=str(top),
                                 width=str(ICON_SIZE), height=str(ICON_SIZE))

        rect = etree.SubElement(svg, _svg("rect"), x="10", y=str(size - 70), width=str(size - 20),
                                height="60", rx="5")
        rect.set("class", "caption-bg")
        text = etree.SubElement(svg, _svg("text"), x="20", y=str(size - 50))
        text.set("class", "caption")
        for i, line in enumerate(scene.caption_lines):
            tspan = etree.SubElement(text, _svg("tspan"), x="20", dy="0" if i == 0 else str(CAPTION_LINE_GAP))
            tspan.text = line

        if scene.attribution:
            attribution = etree.SubElement(svg, _svg("text"), x=str(size - 6), y="12")
            attribution.set("class", "attribution")
            attribution.set("text-anchor", "end")
            attribution.text = scene.attribution

        return etree.tostring(svg, xml_declaration=True, encoding="UTF-8", pretty_print=True)

    # --- Files ---

    def write(self, scene: Scene, png_path) -> Path:
        """Write the scene as PNG, or as SVG next to it if encoding fails.

        Both go through a temp file, so a crash never leaves a truncated
        image at the output path.  Returns the path actually written."""
        png_path = Path(png_path)
        try:
            png = self.encode_png(scene)
        except EncodingFailure as e:
            Stats.encode_fallbacks += 1
            svg_path = png_path.with_suffix(".svg")
            logger.error("Error converting to PNG: %s; saving vector map %s", e, svg_path)
            with atomic_write(svg_path) as tmp:
                tmp.write_bytes(self.to_svg(scene))
            return svg_path

        with atomic_write(png_path) as tmp:
            tmp.write_bytes(png)
        return png_path
