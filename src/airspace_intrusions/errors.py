"""Exceptions raised by the intrusion pipeline.

Only ParseFailure and EmptyTrack abort the processing of a file.  The others
are raised and caught inside a single stage, which then degrades to a
partial result (a blank tile, an SVG instead of a PNG)."""


class IntrusionMapError(Exception):
    """Base class for all pipeline errors."""


class ParseFailure(IntrusionMapError):
    """A boundary or track file could not be read or parsed as a whole."""


class EmptyTrack(IntrusionMapError):
    """A track file parsed, but held no usable coordinate samples."""


class TileFetchFailure(IntrusionMapError):
    """A single basemap tile could not be fetched or decoded."""


class EncodingFailure(IntrusionMapError):
    """The raster encoder rejected the composed scene."""
