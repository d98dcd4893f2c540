"""Systemwide statistics tracking, mostly for test and debug purposes."""

from functools import partial

from prometheus_client import REGISTRY, Gauge

class Stats:
    files_generated: int = 0
    files_skipped: int = 0
    files_errored: int = 0

    tiles_fetched: int = 0
    tiles_failed: int = 0
    tiles_cached: int = 0

    encode_fallbacks: int = 0
    violations_detected: int = 0
    coordinate_tokens_skipped: int = 0

    @classmethod
    def counters(cl) -> list[str]:
        return sorted(name for name, value in vars(cl).items()
                      if not name.startswith('_') and type(value) is int)

    @classmethod
    def reset(cl):
        for name in cl.counters():
            setattr(cl, name, 0)

    @classmethod
    def register_prom_callbacks(cl, registry=REGISTRY):
        """Expose each counter as an airspace_intrusions_<name> gauge read
        live from this class."""
        for name in cl.counters():
            gauge = Gauge(f"airspace_intrusions_{name}",
                          f"airspace_intrusions counter {name}", registry=registry)
            gauge.set_function(partial(getattr, cl, name))
