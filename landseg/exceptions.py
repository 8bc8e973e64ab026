# -*- coding: utf-8 -*-
"""Exception hierarchy for landseg.

Structural problems with the inputs (misaligned grids, invalid configuration,
unreadable rasters) are raised to the caller. Statistical edge cases such as
degenerate objects or small sampling pools are never raised; they are
absorbed where they happen and reported in aggregate.
"""


class LandsegError(Exception):
    """Base class for all landseg errors."""


class GridMismatchError(LandsegError, ValueError):
    """Raised when a band or mask does not share the label grid's shape."""

    def __init__(self, expected, actual, name=None):
        self.expected = tuple(expected)
        self.actual = tuple(actual)
        self.name = name
        what = f"'{name}'" if name else "input"
        super().__init__(f"grid mismatch: {what} has shape {self.actual}, label grid has shape {self.expected}")


class ConfigurationError(LandsegError, ValueError):
    """Raised for invalid or incomplete pipeline configuration."""


class RasterReadError(LandsegError):
    """Raised when a raster cannot be opened or read."""
