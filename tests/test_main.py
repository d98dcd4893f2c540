"""Tests for the command line entry point.  These runs never touch the
network: --check doesn't fetch tiles, and maps that already exist are
skipped."""

import orjson

from airspace_intrusions.main import find_tracks, main, parse_args
from airspace_intrusions.stats import Stats

import testinfra


def write_config(tmp_path):
    boundary = tmp_path / "park.kml"
    boundary.write_bytes(testinfra.park_kml())
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    (uploads / "2025-05-29-ZS-HMB-727b7ddf.kml").write_bytes(
        testinfra.track_kml([(18.38, -34.05), (18.45, -34.05)]))
    (uploads / "2025-06-01-ZS-RTG-11aa22bb.kml").write_bytes(
        testinfra.track_kml([(18.30, -34.20), (18.32, -34.21)]))
    (uploads / "notes.txt").write_text("not a track", encoding="utf-8")
    config = tmp_path / "config.yaml"
    config.write_text(f"boundary_kml: {boundary}\ntracks_dir: {uploads}\n"
                      f"output_dir: {tmp_path / 'maps'}\n", encoding="utf-8")
    return config


class TestArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.tracks == []
        assert not args.check
        assert args.metrics_port is None

    def test_find_tracks(self, tmp_path):
        write_config(tmp_path)
        assert [p.name for p in find_tracks(tmp_path / "uploads")] == [
            "2025-05-29-ZS-HMB-727b7ddf.kml", "2025-06-01-ZS-RTG-11aa22bb.kml"]
        assert find_tracks(tmp_path / "missing") == []


class TestMain:
    def setup_method(self):
        Stats.reset()

    def test_check_lists_clean_flights(self, tmp_path, capsys):
        config = write_config(tmp_path)
        report = tmp_path / "report.json"
        assert main(["--config", str(config), "--check", "--report", str(report)]) == 0
        out = capsys.readouterr().out
        assert "2025-06-01-ZS-RTG-11aa22bb.kml: 2 points, no violations" in out
        assert "ZS-HMB" not in out
        assert len(orjson.loads(report.read_bytes())) == 2

    def test_batch_skips_existing(self, tmp_path, capsys):
        config = write_config(tmp_path)
        maps = tmp_path / "maps"
        maps.mkdir()
        for name in ("2025-05-29-ZS-HMB-727b7ddf", "2025-06-01-ZS-RTG-11aa22bb"):
            (maps / f"{name}.png").write_bytes(b"")
        assert main(["--config", str(config)]) == 0
        assert "Generated: 0, skipped: 2, errors: 0" in capsys.readouterr().out

    def test_bad_boundary(self, tmp_path):
        config = write_config(tmp_path)
        assert main(["--config", str(config), "--boundary", str(tmp_path / "none.kml"),
                     "--check"]) == 2

    def test_bad_tile_url(self, tmp_path):
        config = write_config(tmp_path)
        with open(config, "a", encoding="utf-8") as f:
            f.write("tiles:\n  url: https://tiles.local/{style}/{z}/{x}/{y}.png\n")
        assert main(["--config", str(config), "--check"]) == 2
