# -*- coding: utf-8 -*-
"""Object perimeters and shape descriptors derived from the label grid."""

import logging

import numpy as np
import pandas as pd
from scipy import ndimage

from .zonal import ZonalAccumulator

logger = logging.getLogger(__name__)

SHAPE_COLUMNS = ["form_factor", "square_pixel", "fractal_dimension", "shape_index"]
DESCRIBE_COLUMNS = ["pixel_count", "area", "perimeter_pixels", "perimeter"] + SHAPE_COLUMNS


def shape_descriptors(area, perimeter):
    """Closed-form shape descriptors of objects.

    Parameters:
    -----------
    area : pandas.Series
        Object area in map units
    perimeter : pandas.Series
        Object perimeter in map units

    Returns:
    --------
    descriptors : pandas.DataFrame
        form_factor (4*pi*A/P^2, x100), square_pixel (1-4*sqrt(A)/P, x1000),
        fractal_dimension (2*ln(P/4)/ln(A), x1000) and shape_index (P/(4*sqrt(A)), x1000).
        All four are NA for objects with P = 0 or A <= 1.
    """
    a = pd.Series(area, dtype="float64")
    p = pd.Series(perimeter, dtype="float64")
    defined = (p > 0) & (a > 1)
    a = a.where(defined)
    p = p.where(defined)

    descriptors = pd.DataFrame(
        {
            "form_factor": 4 * np.pi * a / p**2 * 100,
            "square_pixel": (1 - 4 * np.sqrt(a) / p) * 1000,
            "fractal_dimension": 2 * np.log(p / 4) / np.log(a) * 1000,
            "shape_index": p / (4 * np.sqrt(a)) * 1000,
        },
        index=a.index,
    )
    return descriptors.astype("Float64")


class BoundaryExtractor:
    """Finds perimeter pixels and turns per-object counts into shape descriptors.

    A pixel is a perimeter pixel when any pixel in its square neighbourhood of radius ``radius``
    carries a different id. Pixels on the edge of the raster extent are perimeter pixels.
    """

    def __init__(self, radius=1):
        if radius < 1:
            raise ValueError("radius must be at least 1")
        self.radius = radius

    @property
    def size(self):
        return 2 * self.radius + 1

    def perimeter_pixels(self, grid):
        """Boolean raster of perimeter pixels; no-data pixels are never perimeter pixels."""
        labels = grid.labels.astype("int64", copy=False)
        # ids are non-negative, so the -1 fill only shows up at the raster edge
        lowest = ndimage.minimum_filter(labels, size=self.size, mode="constant", cval=-1)
        highest = ndimage.maximum_filter(labels, size=self.size, mode="constant", cval=-1)
        return (lowest != highest) & grid.valid_mask()

    def accumulate(self, grid, core=None):
        """Pixel and perimeter-pixel counts per object.

        Parameters:
        -----------
        grid : LabeledGrid
            Object ids, possibly a tile window with a halo around its core
        core : tuple of slice, optional
            Region of ``grid`` whose pixels are counted. The halo outside the core only
            provides neighbourhood context.

        Returns:
        --------
        accumulator : ZonalAccumulator
            count = pixel count, sum = perimeter pixel count
        """
        boundary = self.perimeter_pixels(grid)
        labels = grid.labels
        valid = grid.valid_mask()
        if core is not None:
            labels, valid, boundary = labels[core], valid[core], boundary[core]
        return ZonalAccumulator.from_arrays(labels, valid, boundary, valid)

    def perimeter_count(self, grid):
        """Number of perimeter pixels per object."""
        accumulator = self.accumulate(grid)
        counts = accumulator.finalize(("sum",), index=grid.object_ids())["sum"]
        return counts.astype("int64").rename("perimeter_pixels")

    def describe_counts(self, accumulator, pixel_size, index=None):
        """Area, perimeter and shape descriptors from accumulated counts.

        Parameters:
        -----------
        accumulator : ZonalAccumulator
            Output of :meth:`accumulate`, possibly merged across tiles
        pixel_size : tuple of float
            Pixel (width, height) in map units
        index : pandas.Index, optional
            Objects to describe

        Returns:
        --------
        description : pandas.DataFrame
        """
        counts = accumulator.finalize(("count", "sum"), index=index)
        width, height = pixel_size
        pixel_count = counts["count"].astype("int64")
        perimeter_pixels = counts["sum"].fillna(0).astype("int64")

        description = pd.DataFrame(index=counts.index)
        description["pixel_count"] = pixel_count
        description["area"] = pixel_count * width * height
        description["perimeter_pixels"] = perimeter_pixels
        description["perimeter"] = perimeter_pixels * width
        description = description.join(shape_descriptors(description["area"], description["perimeter"]))

        degenerate = int(description["form_factor"].isna().sum())
        if degenerate:
            logger.debug("%d object(s) have undefined shape descriptors", degenerate)
        return description

    def describe(self, grid):
        """Area, perimeter and shape descriptors of every object in ``grid``."""
        return self.describe_counts(self.accumulate(grid), grid.pixel_size, index=grid.object_ids())
