"""Find where a track enters the restricted boundary, and group nearby
entries into clusters so a map shows one marker per busy spot."""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable

from .boundary import BoundarySet
from .track import Track

logger = logging.getLogger(__name__)

CLUSTER_RADIUS_PX = 50

@dataclass(frozen=True)
class ViolationEvent:
    """The track point at which an outside -> inside transition was seen."""
    lat: float
    lon: float
    sequence_index: int

@dataclass
class ViolationCluster:
    events: list[ViolationEvent] = field(default_factory=list)

    @property
    def representative(self) -> ViolationEvent:
        """Markers are drawn at the first event of the cluster."""
        return self.events[0]

    def __len__(self):
        return len(self.events)

def detect_violations(track: Track, boundary: BoundarySet) -> list[ViolationEvent]:
    """Return one event per boundary entry, in track order.

    Only an outside -> inside change between consecutive samples counts, so
    a track whose first sample is already inside records no entry there.
    Leaving and re-entering produces another event."""
    events = []
    was_inside = False
    for i, point in enumerate(track):
        is_inside = boundary.contains(point.lat, point.lon)
        if is_inside and not was_inside and i > 0:
            events.append(ViolationEvent(lat=point.lat, lon=point.lon,
                                         sequence_index=point.sequence_index))
        was_inside = is_inside
    return events

def cluster_violations(events: list[ViolationEvent],
                       to_pixel: Callable[[float, float], tuple[float, float]],
                       max_distance: float = CLUSTER_RADIUS_PX) -> list[ViolationCluster]:
    """Greedy clustering in pixel space.

    Walk events in order; each event not yet used seeds a new cluster, which
    takes every later unused event within max_distance pixels of the seed.
    Distance is always measured to the seed, not to other members, so the
    result depends on event order.

    Args:
        events: violation events in track order
        to_pixel: maps (lat, lon) to canvas (x, y)
        max_distance: radius in pixels, inclusive
    """
    pixels = [to_pixel(e.lat, e.lon) for e in events]
    used = [False] * len(events)
    clusters = []
    for i, event in enumerate(events):
        if used[i]:
            continue
        used[i] = True
        cluster = ViolationCluster(events=[event])
        bx, by = pixels[i]
        for j in range(i + 1, len(events)):
            if used[j]:
                continue
            cx, cy = pixels[j]
            if math.hypot(bx - cx, by - cy) <= max_distance:
                cluster.events.append(events[j])
                used[j] = True
        clusters.append(cluster)
    return clusters
