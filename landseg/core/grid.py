# -*- coding: utf-8 -*-
"""Raster containers shared by every stage: the object label grid and the value bands laid on it.

A LabeledGrid holds one integer object id per pixel. ValueBands are per-pixel values on the same
grid and carry their own no-data value. Bands are addressed through a BandStack keyed by
(period, band) tuples rather than constructed band-name strings.
"""

from typing import NamedTuple

import numpy as np
from affine import Affine
from scipy import ndimage

from ..exceptions import GridMismatchError

NEIGHBORHOOD_8 = np.ones((3, 3), dtype=bool)


class LabeledGrid:
    """A raster of object ids.

    Every pixel that is not ``nodata`` belongs to exactly one object. Ids are unique within one
    extent; windows cut from the same grid keep the same ids.
    """

    def __init__(self, labels, nodata=0, transform=None, crs=None):
        """Initialize a label grid.

        Parameters:
        -----------
        labels : numpy.ndarray
            2-D integer array of object ids
        nodata : int
            Id that marks pixels belonging to no object
        transform : affine.Affine, optional
            Pixel to map coordinates transform. Unit pixels when None.
        crs : rasterio.crs.CRS, optional
            Coordinate reference system
        """
        labels = np.asarray(labels)
        if labels.ndim != 2:
            raise ValueError(f"label grid must be 2-D, got {labels.ndim} dimensions")
        if not np.issubdtype(labels.dtype, np.integer):
            raise ValueError(f"label grid must hold integer ids, got dtype {labels.dtype}")

        self.labels = labels
        self.nodata = nodata
        self.transform = transform
        self.crs = crs

    @property
    def shape(self):
        return self.labels.shape

    @property
    def pixel_size(self):
        """Pixel (width, height) in map units."""
        if self.transform is None:
            return 1.0, 1.0
        return abs(self.transform.a), abs(self.transform.e)

    @property
    def pixel_area(self):
        width, height = self.pixel_size
        return width * height

    def valid_mask(self):
        return self.labels != self.nodata

    def object_ids(self):
        """Sorted array of the object ids present in the grid."""
        return np.unique(self.labels[self.valid_mask()])

    def contains(self, object_id):
        return object_id != self.nodata and bool(np.any(self.labels == object_id))

    def members(self, object_id):
        """Row and column indices of the pixels of one object."""
        return np.nonzero(self.labels == object_id)

    def neighbors(self, object_id):
        """Ids of the objects touching ``object_id`` in the 8-neighbourhood.

        Returns:
        --------
        neighbors : set
            Neighbouring object ids, without the no-data id
        """
        mask = self.labels == object_id
        if not mask.any():
            return set()
        ring = ndimage.binary_dilation(mask, structure=NEIGHBORHOOD_8) & ~mask
        touching = np.unique(self.labels[ring])
        return {int(i) for i in touching if i != self.nodata}

    def check_aligned(self, array, name=None):
        """Raise GridMismatchError unless ``array`` has the grid's shape."""
        shape = np.shape(array)
        if tuple(shape) != tuple(self.shape):
            raise GridMismatchError(self.shape, shape, name=name)

    def window(self, row_off, col_off, height, width):
        """Cut a sub-grid, keeping ids and georeferencing."""
        labels = self.labels[row_off : row_off + height, col_off : col_off + width]
        base = self.transform if self.transform is not None else Affine.identity()
        transform = base * Affine.translation(col_off, row_off)
        return LabeledGrid(labels, nodata=self.nodata, transform=transform, crs=self.crs)

    def pixel_to_xy(self, rows, cols):
        """Map coordinates of pixel centres."""
        rows = np.asarray(rows, dtype=np.float64) + 0.5
        cols = np.asarray(cols, dtype=np.float64) + 0.5
        if self.transform is None:
            return cols, rows
        t = self.transform
        return t.a * cols + t.b * rows + t.c, t.d * cols + t.e * rows + t.f

    def __str__(self):
        return f"LabeledGrid(shape={self.shape}, objects={len(self.object_ids())})"


class ValueBand:
    """A per-pixel value raster aligned with a LabeledGrid."""

    def __init__(self, data, nodata=None, name=None, categorical=False):
        data = np.asarray(data)
        if data.ndim != 2:
            raise ValueError(f"value band must be 2-D, got {data.ndim} dimensions")
        self.data = data
        self.nodata = nodata
        self.name = name
        self.categorical = categorical

    @property
    def shape(self):
        return self.data.shape

    def valid_mask(self):
        """Pixels holding a usable value (not nodata, not NaN)."""
        mask = np.ones(self.data.shape, dtype=bool)
        if self.nodata is not None:
            mask &= self.data != self.nodata
        if np.issubdtype(self.data.dtype, np.floating):
            mask &= np.isfinite(self.data)
        return mask

    def window(self, row_off, col_off, height, width):
        data = self.data[row_off : row_off + height, col_off : col_off + width]
        return ValueBand(data, nodata=self.nodata, name=self.name, categorical=self.categorical)

    def __repr__(self):
        return f"ValueBand(name={self.name!r}, shape={self.shape}, dtype={self.data.dtype})"


class BandKey(NamedTuple):
    """Identity of a band in a stack: the compositing period and the band name."""

    period: str
    band: str


class BandStack:
    """Mapping of BandKey -> ValueBand, all on the same grid."""

    def __init__(self, bands=None):
        self._bands = {}
        for key, band in (bands or {}).items():
            self.add(key, band)

    def add(self, key, band):
        if not isinstance(key, BandKey):
            key = BandKey(*key)
        if self._bands:
            reference = next(iter(self._bands.values()))
            if band.shape != reference.shape:
                raise GridMismatchError(reference.shape, band.shape, name=f"{key.period}/{key.band}")
        self._bands[key] = band
        return self

    def __getitem__(self, key):
        if not isinstance(key, BandKey):
            key = BandKey(*key)
        return self._bands[key]

    def __contains__(self, key):
        if not isinstance(key, BandKey):
            key = BandKey(*key)
        return key in self._bands

    def __iter__(self):
        return iter(self._bands)

    def __len__(self):
        return len(self._bands)

    def keys(self):
        return self._bands.keys()

    def items(self):
        return self._bands.items()

    def periods(self):
        return sorted({key.period for key in self._bands})

    def select(self, period):
        """Sub-stack with the bands of one period."""
        return BandStack({key: band for key, band in self._bands.items() if key.period == period})

    def validate(self, grid):
        """Fail fast if any band is not aligned with ``grid``."""
        for key, band in self._bands.items():
            grid.check_aligned(band.data, name=f"{key.period}/{key.band}")

    def window(self, row_off, col_off, height, width):
        return BandStack({key: band.window(row_off, col_off, height, width) for key, band in self._bands.items()})

    def to_array(self):
        """Stack the bands into a (bands, height, width) array in key order."""
        return np.stack([band.data for band in self._bands.values()])
