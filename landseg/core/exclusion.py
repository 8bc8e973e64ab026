# -*- coding: utf-8 -*-
"""Objects reserved for validation.

Any object touching a validation pixel is excluded from training samples as a whole, so that
no training object shares pixels with a validation location.
"""

import logging

import numpy as np

from ..stats.zonal import ZonalAggregator
from .grid import ValueBand

logger = logging.getLogger(__name__)


def marks_band(validation_marks):
    """Validation raster as a 0/1 band; anything non-zero and finite is a mark."""
    marks = np.asarray(validation_marks)
    if np.issubdtype(marks.dtype, np.floating):
        marks = np.nan_to_num(marks, nan=0.0)
    return ValueBand((marks != 0).astype("uint8"), nodata=None, name="validation")


def accumulate_marks(grid, validation_marks):
    """Max-reducer accumulator of the marks, mergeable across tiles."""
    band = marks_band(validation_marks)
    return ZonalAggregator(reducers=("max",)).accumulate(grid, band)


def excluded_ids(accumulator, index=None):
    """Ids whose reduced mark is non-zero."""
    reduced = accumulator.finalize(("max",), index=index)["max"]
    return frozenset(int(i) for i in reduced[reduced.fillna(0) > 0].index)


def exclusions(grid, validation_marks):
    """Set of object ids overlapping at least one validation pixel.

    Parameters:
    -----------
    grid : LabeledGrid
        Object ids
    validation_marks : numpy.ndarray
        Boolean or indicator raster of reserved validation pixels

    Returns:
    --------
    excluded : frozenset
        Ids of the objects to keep out of training samples
    """
    grid.check_aligned(validation_marks, name="validation marks")
    excluded = excluded_ids(accumulate_marks(grid, validation_marks), index=grid.object_ids())
    logger.info("%d object(s) excluded by validation marks", len(excluded))
    return excluded
