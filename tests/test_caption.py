"""Tests for caption text and owner lookup."""

import orjson

from airspace_intrusions.caption import (FlightCaption, caption_for_file,
                                         load_owner_registry, zone_line)


class TestFlightCaption:
    def test_with_owner(self):
        caption = FlightCaption("2025-05-29", "ZS-HMB", "Sky Tours")
        assert caption.flight_line() == "Flight taken on 2025-05-29, by ZS-HMB (Sky Tours)."

    def test_unknown_owner_omitted(self):
        assert FlightCaption("2025-05-29", "ZS-HMB").flight_line() == \
            "Flight taken on 2025-05-29, by ZS-HMB."
        assert FlightCaption("2025-05-29", "ZS-HMB", "Unknown Owner").flight_line() == \
            "Flight taken on 2025-05-29, by ZS-HMB."

    def test_defaults(self):
        assert FlightCaption().flight_line() == \
            "Flight taken on Unknown Date, by Unknown Registration."

    def test_zone_line(self):
        assert zone_line("NP17") == "Restricted airspace (NP17) shown in red."

    def test_incident_text(self):
        text = FlightCaption("2025-05-29", "ZS-HMB").incident_text("NP17", "x.png")
        assert "registration ZS-HMB (Unknown Owner)" in text
        assert "restricted airspace (NP17) on 2025-05-29." in text
        assert text.endswith("x.png.")


class TestCaptionForFile:
    """Metadata from canonical track filenames."""

    def test_canonical_name(self):
        caption = caption_for_file("2025-05-29-ZS-HMB-727b7ddf.kml", {"ZS-HMB": "Sky Tours"})
        assert caption == FlightCaption("2025-05-29", "ZS-HMB", "Sky Tours")

    def test_date_only(self):
        caption = caption_for_file("2025-05-29-upload.kml")
        assert caption.date == "2025-05-29"
        assert caption.registration == "Unknown Registration"
        assert caption.owner is None

    def test_nothing_known(self):
        assert caption_for_file("track.kml") == FlightCaption()


class TestOwnerRegistry:
    def test_load(self, tmp_path):
        path = tmp_path / "helicopters.json"
        path.write_bytes(orjson.dumps({
            "ZS-HMB": {"registration": "ZS-HMB", "owner": "Sky Tours", "imageUrl": "x"},
            "ZS-RTG": {"registration": "ZS-RTG", "owner": ""},
        }))
        assert load_owner_registry(path) == {"ZS-HMB": "Sky Tours"}

    def test_missing_file(self, tmp_path):
        assert load_owner_registry(tmp_path / "none.json") == {}
