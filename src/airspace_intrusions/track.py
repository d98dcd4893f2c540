"""Flight track loading.  A Track is the ordered list of positions from one
KML file; the order is the flight chronology and is never changed."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

import numpy as np

from . import kml
from .errors import EmptyTrack
from .geometry import GeoBounds

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class TrackPoint:
    """A single position sample."""
    lat: float
    lon: float
    sequence_index: int

@dataclass
class Track:
    """Summary of one flight: where it came from and every position seen."""
    name: str
    points: list[TrackPoint] = field(default_factory=list)

    def __post_init__(self):
        if not self.points:
            raise EmptyTrack(f"{self.name}: no coordinate samples")

    def __len__(self):
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    @property
    def first(self) -> TrackPoint:
        return self.points[0]

    @property
    def last(self) -> TrackPoint:
        return self.points[-1]

    def latlons(self) -> np.ndarray:
        """(N, 2) array of [lat, lon] rows in track order."""
        return np.array([(p.lat, p.lon) for p in self.points], dtype=np.float64)

    def bounds(self) -> GeoBounds:
        arr = self.latlons()
        min_lat, min_lon = arr.min(axis=0)
        max_lat, max_lon = arr.max(axis=0)
        return GeoBounds(min_lat=float(min_lat), max_lat=float(max_lat),
                         min_lon=float(min_lon), max_lon=float(max_lon))

    @classmethod
    def from_lonlats(cls, name: str, lonlats) -> "Track":
        points = [TrackPoint(lat=lat, lon=lon, sequence_index=i)
                  for i, (lon, lat) in enumerate(lonlats)]
        return cls(name=name, points=points)

def load_track(source: Union[str, Path, bytes], name: str = None) -> Track:
    """Load a track from a KML file path or KML bytes.

    Raises ParseFailure for unreadable files and EmptyTrack when the file
    has no usable samples."""
    if name is None:
        name = Path(source).name if isinstance(source, (str, Path)) else "<bytes>"
    root = kml.read_document(source)
    samples = kml.decode_track(root).samples()
    track = Track.from_lonlats(name, samples)
    logger.info("%s: found %d coordinate points", name, len(track))
    return track
