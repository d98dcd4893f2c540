"""Command line entry point: render restricted airspace maps for helicopter
track files.

    airspace-intrusions                          # every *.kml in tracks_dir
    airspace-intrusions flights/*.kml --report report.json
    airspace-intrusions --check                  # list flights with no violations
"""

import argparse
import logging
import sys
from pathlib import Path

from prometheus_client import start_http_server

from .config import Config
from .errors import ParseFailure
from .intrusion_logger import Logger
from .pipeline import IntrusionMapper, write_report
from .stats import Stats

logger = logging.getLogger(__name__)

def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Render maps of helicopter tracks against restricted airspace")
    parser.add_argument("tracks", nargs="*",
                        help="track kml files; default is every .kml in tracks_dir")
    parser.add_argument("--config", help="path to config yaml")
    parser.add_argument("--boundary", help="boundary kml, overrides config")
    parser.add_argument("--output-dir", help="where maps are written, overrides config")
    parser.add_argument("--report", help="write per-file results to this json file")
    parser.add_argument("--check", action="store_true",
                        help="analyze only: list flights with no detected violations")
    parser.add_argument("--metrics-port", type=int, help="serve prometheus metrics on this port")
    parser.add_argument("-d", "--debug", action="store_true")
    return parser.parse_args(argv)

def find_tracks(tracks_dir) -> list[Path]:
    tracks_dir = Path(tracks_dir)
    if not tracks_dir.is_dir():
        logger.warning("Tracks directory %s does not exist", tracks_dir)
        return []
    return sorted(tracks_dir.glob("*.kml"))

def main(argv=None) -> int:
    args = parse_args(argv)
    config = Config(args.config)
    Logger(level=logging.DEBUG if args.debug else config["log_level"],
           log_file=config["log_file"])

    if args.metrics_port:
        Stats.register_prom_callbacks()
        start_http_server(args.metrics_port)

    track_paths = [Path(t) for t in args.tracks] or find_tracks(config["tracks_dir"])
    logger.info("Found %d track files", len(track_paths))

    try:
        mapper = IntrusionMapper.from_config(config, boundary_path=args.boundary,
                                             output_dir=args.output_dir)
    except ParseFailure as e:
        logger.critical("Could not load boundary: %s", e)
        return 2
    except ValueError as e:
        logger.critical("Bad configuration: %s", e)
        return 2

    if args.check:
        results = mapper.check(track_paths)
        for r in results:
            if r.violations == 0:
                print(f"{r.file}: {r.points} points, no violations")
    else:
        summary = mapper.process_batch(track_paths)
        results = summary.results
        print(f"Generated: {summary.generated}, skipped: {summary.skipped}, "
              f"errors: {summary.errored}, time: {summary.elapsed:.1f}s")

    if args.report:
        write_report(results, args.report)
    return 0

if __name__ == "__main__":
    sys.exit(main())
