"""This is the main API for the library.

The following code loads the configured boundary and renders a map for
every track file that doesn't have one yet:
    mapper = IntrusionMapper.from_config(Config())
    summary = mapper.process_batch(track_paths)

Files are processed one at a time; an error in one file is logged and
counted, and the batch moves on to the next.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

import orjson

from .boundary import BoundarySet, load_boundary
from .cache import Cache, DiskCache, MemoryCache
from .caption import FlightCaption, caption_for_file, load_owner_registry
from .config import Config
from .errors import EmptyTrack, ParseFailure
from .intrusion_logger import Logger
from .projection import MapFrame, compute_viewport
from .render import MapRenderer
from .stats import Stats
from .tiles import TileCompositor, TileSource
from .track import Track, load_track
from .util import atomic_write
from .violations import CLUSTER_RADIUS_PX, cluster_violations, detect_violations

logger = logging.getLogger(__name__)
LOGGER = Logger()

GENERATED = "generated"
SKIPPED = "skipped"
ERRORED = "errored"
FALLBACK = "fallback"      # written as SVG because PNG encoding failed

@dataclass
class FileResult:
    """Outcome for one track file, as written to the run report."""
    file: str
    status: str
    points: int = 0
    violations: int = 0
    clusters: int = 0
    output: Optional[str] = None
    error: Optional[str] = None
    incident: Optional[str] = None

@dataclass
class BatchSummary:
    generated: int = 0
    skipped: int = 0
    errored: int = 0
    elapsed: float = 0.0
    results: list[FileResult] = field(default_factory=list)

    def add(self, result: FileResult):
        self.results.append(result)
        if result.status in (GENERATED, FALLBACK):
            self.generated += 1
        elif result.status == SKIPPED:
            self.skipped += 1
        else:
            self.errored += 1

class IntrusionMapper:
    """Main API for the library."""

    def __init__(self, boundary: BoundarySet, output_dir,
                 compositor: Optional[TileCompositor] = None,
                 renderer: Optional[MapRenderer] = None,
                 owners: Optional[dict[str, str]] = None,
                 cluster_radius: float = CLUSTER_RADIUS_PX,
                 zone_label: str = "NP17"):
        """
        Args:
            boundary: restricted airspace, shared read-only by every file
            output_dir: where <stem>.png (or .svg) maps are written
            compositor: basemap tile source; a default OpenStreetMap one
                if not given
            renderer: map drawing settings
            owners: registration -> owner, for captions
            cluster_radius: violation clustering radius in canvas pixels
            zone_label: restricted zone designation for captions and reports
        """
        self.boundary = boundary
        self.output_dir = Path(output_dir)
        self.compositor = compositor or TileCompositor()
        self.renderer = renderer or MapRenderer(zone_label=zone_label)
        self.owners = owners or {}
        self.cluster_radius = cluster_radius
        # captions come from the renderer, so incident text follows it
        self.zone_label = self.renderer.zone_label

    @classmethod
    def from_config(cls, config: Config, boundary_path=None, output_dir=None,
                    cache: Optional[Cache] = None, session=None) -> "IntrusionMapper":
        """Build a mapper from configuration.  boundary_path and output_dir
        override the configured values.  cache holds parsed boundary sets."""
        boundary = load_boundary(boundary_path or config["boundary_kml"],
                                 cache=cache if cache is not None else MemoryCache())

        tiles_cfg = config.tiles
        tile_cache = DiskCache(tiles_cfg["cache_dir"]) if tiles_cfg.get("cache_dir") else None
        source = TileSource.from_config(tiles_cfg)
        compositor = TileCompositor(source=source, cache=tile_cache, session=session,
                                    max_workers=int(tiles_cfg.get("max_workers") or 8))
        renderer = MapRenderer(size=int(config["canvas_size"]),
                               zone_label=config["zone_label"],
                               warning_icon=config["warning_icon"],
                               attribution=source.attribution)
        owners = load_owner_registry(config["owners_json"]) if config["owners_json"] else {}
        return cls(boundary, output_dir or config["output_dir"],
                   compositor=compositor, renderer=renderer, owners=owners,
                   cluster_radius=float(config["cluster_radius_px"]),
                   zone_label=config["zone_label"])

    def output_path(self, track_path) -> Path:
        return self.output_dir / (Path(track_path).stem + ".png")

    def analyze(self, track: Track, frame: MapFrame):
        """Detect entries into the boundary and cluster them on the frame."""
        events = detect_violations(track, self.boundary)
        clusters = cluster_violations(events, frame.to_canvas, self.cluster_radius)
        Stats.violations_detected += len(events)
        logger.info("%s: detected %d violations in %d clusters",
                    track.name, len(events), len(clusters))
        return events, clusters

    def process_file(self, track_path, caption: Optional[FlightCaption] = None) -> FileResult:
        """Render the map for one track file unless it already exists.

        Raises ParseFailure or EmptyTrack if the track can't be used; tile
        and encoding problems are absorbed into a degraded image."""
        track_path = Path(track_path)
        png_path = self.output_path(track_path)
        if png_path.exists():
            logger.info("Map already exists for %s, skipping", track_path.name)
            Stats.files_skipped += 1
            return FileResult(file=track_path.name, status=SKIPPED, output=str(png_path))

        track = load_track(track_path)
        size = self.renderer.size
        viewport = compute_viewport(track, self.boundary, size, size)
        frame = MapFrame(viewport, size)
        events, clusters = self.analyze(track, frame)
        tiles = self.compositor.composite(frame)

        caption = caption or caption_for_file(track_path.name, self.owners)
        scene = self.renderer.build_scene(frame, tiles, self.boundary, track,
                                          clusters, caption)
        written = self.renderer.write(scene, png_path)
        Stats.files_generated += 1
        logger.info("Generated %s", written)

        result = FileResult(file=track_path.name,
                            status=GENERATED if written == png_path else FALLBACK,
                            points=len(track), violations=len(events),
                            clusters=len(clusters), output=str(written))
        if events:
            result.incident = caption.incident_text(self.zone_label, written.name)
        return result

    def process_batch(self, track_paths) -> BatchSummary:
        """Process every file; never lets one file's failure stop the rest."""
        start = time.monotonic()
        summary = BatchSummary()
        for track_path in track_paths:
            track_path = Path(track_path)
            try:
                result = self.process_file(track_path)
            except EmptyTrack as e:
                logger.warning("No coordinates found in %s: %s", track_path.name, e)
                result = FileResult(file=track_path.name, status=ERRORED, error=str(e))
            except ParseFailure as e:
                logger.error("Could not parse %s: %s", track_path.name, e)
                result = FileResult(file=track_path.name, status=ERRORED, error=str(e))
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.exception("Error processing %s", track_path.name)
                result = FileResult(file=track_path.name, status=ERRORED, error=str(e))
            if result.status == ERRORED:
                Stats.files_errored += 1
            summary.add(result)

        summary.elapsed = time.monotonic() - start
        logger.info("Generated: %d, skipped: %d, errors: %d, time: %.1fs",
                    summary.generated, summary.skipped, summary.errored, summary.elapsed)
        return summary

    def check(self, track_paths) -> list[FileResult]:
        """Load and analyze tracks without rendering.  Returns a result per
        readable file; unreadable ones are logged and left out."""
        results = []
        size = self.renderer.size
        for track_path in track_paths:
            track_path = Path(track_path)
            try:
                track = load_track(track_path)
            except (ParseFailure, EmptyTrack) as e:
                logger.warning("Skipping %s: %s", track_path.name, e)
                continue
            frame = MapFrame(compute_viewport(track, self.boundary, size, size), size)
            events, clusters = self.analyze(track, frame)
            results.append(FileResult(file=track_path.name, status="checked",
                                      points=len(track), violations=len(events),
                                      clusters=len(clusters)))
        clean = [r for r in results if r.violations == 0]
        logger.info("%d of %d flights have no detected violations", len(clean), len(results))
        return results

def write_report(results: list[FileResult], path) -> None:
    """Write per-file results as a json list."""
    data = orjson.dumps([asdict(r) for r in results], option=orjson.OPT_INDENT_2)
    with atomic_write(path) as tmp:
        tmp.write_bytes(data)
    logger.info("Wrote report for %d files to %s", len(results), path)
