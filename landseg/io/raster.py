# -*- coding: utf-8 -*-
"""Handles raster input and output: label grids, value bands and windowed reads for tiled runs.

Read errors from rasterio are re-raised as RasterReadError with the offending path.
"""

import logging
import os

import numpy as np
import pandas as pd
import rasterio
from affine import Affine
from rasterio.errors import RasterioIOError
from rasterio.windows import Window

from ..core.grid import BandKey, BandStack, LabeledGrid, ValueBand
from ..core.sampling import seed_grid
from ..core.tiling import TileData
from ..exceptions import GridMismatchError, RasterReadError

logger = logging.getLogger(__name__)


def _open(raster_path):
    try:
        return rasterio.open(raster_path)
    except RasterioIOError as e:
        raise RasterReadError(f"cannot open raster '{raster_path}': {e}") from e


def read_raster(raster_path):
    """Read a raster file and return its data, transform, and CRS.

    Parameters:
    -----------
    raster_path : str
        Path to the raster file

    Returns:
    --------
    image_data : numpy.ndarray
        Array with raster data values (bands, height, width)
    transform : affine.Affine
        Affine transformation for the raster
    crs : rasterio.crs.CRS
        Coordinate reference system
    """
    with _open(raster_path) as src:
        image_data = src.read()
        transform = src.transform
        crs = src.crs

    return image_data, transform, crs


def read_labeled_grid(raster_path, band=1, nodata=None):
    """Read an object id raster.

    Parameters:
    -----------
    raster_path : str
        Path to the raster file
    band : int
        Band holding the ids (1-based)
    nodata : int, optional
        Id of pixels without object. Defaults to the file's nodata value, or 0.

    Returns:
    --------
    grid : LabeledGrid
    """
    with _open(raster_path) as src:
        labels = src.read(band)
        if nodata is None:
            nodata = int(src.nodata) if src.nodata is not None else 0
        grid = LabeledGrid(labels, nodata=nodata, transform=src.transform, crs=src.crs)
    logger.info("Read label grid %s from %s", grid.shape, raster_path)
    return grid


def read_value_band(raster_path, band=1, name=None, categorical=False):
    """Read one band of a raster as a ValueBand, keeping the file's nodata value."""
    with _open(raster_path) as src:
        data = src.read(band)
        nodata = src.nodata
    return ValueBand(data, nodata=nodata, name=name or os.path.basename(raster_path), categorical=categorical)


def write_raster(output_path, data, transform, crs, nodata=None):
    """Write raster data to a GeoTIFF file.

    Parameters:
    -----------
    output_path : str
        Path to the output raster file
    data : numpy.ndarray
        Array with raster data values, (height, width) or (bands, height, width)
    transform : affine.Affine
        Affine transformation for the raster
    crs : rasterio.crs.CRS
        Coordinate reference system
    nodata : int or float, optional
        No data value
    """
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    if len(data.shape) == 2:
        data = data.reshape(1, *data.shape)

    height, width = data.shape[-2], data.shape[-1]
    count = data.shape[0]

    with rasterio.open(
        output_path,
        "w",
        driver="GTiff",
        height=height,
        width=width,
        count=count,
        dtype=data.dtype,
        crs=crs,
        transform=transform,
        nodata=nodata,
    ) as dst:
        dst.write(data)


def layer_to_raster(layer, output_path, column, nodata=0):
    """Paint one per-object column of a layer back onto its label grid and save it.

    Parameters:
    -----------
    layer : Layer
        Layer with a label grid and an objects table indexed by object id
    output_path : str
        Path to the output raster file
    column : str or tuple
        Column of ``layer.objects`` to paint, e.g. a purity or classification column
    nodata : int or float
        Value of pixels without object or without a value for the column
    """
    if layer.grid is None or layer.objects is None:
        raise ValueError("Layer must have both a label grid and objects")
    if column not in layer.objects.columns:
        raise ValueError(f"Column '{column}' not found in layer objects")

    grid = layer.grid
    values = layer.objects[column]
    dtype = "float32" if pd.api.types.is_float_dtype(values.dtype) else "int32"

    painted = pd.Series(grid.labels.ravel()).map(values.astype("float64"))
    output = painted.fillna(nodata).to_numpy().reshape(grid.shape).astype(dtype)
    output[~grid.valid_mask()] = nodata

    write_raster(output_path, output, layer.transform, layer.crs, nodata)


class RasterTileFetcher:
    """Tile source reading windows straight from raster files.

    Datasets are opened per fetch, so one fetcher can serve several worker threads.
    """

    def __init__(
        self,
        label_path,
        band_paths,
        reference_paths,
        validation_path=None,
        anchor_path=None,
        anchor_spacing=10,
    ):
        """Initialize the fetcher.

        Parameters:
        -----------
        label_path : str
            Object id raster covering the whole extent
        band_paths : dict
            (period, band) -> raster path, all on the label grid
        reference_paths : dict
            Reference layer name -> raster path
        validation_path : str, optional
            Validation marks raster (non-zero = reserved)
        anchor_path : str, optional
            Anchor raster. A regular seed grid of ``anchor_spacing`` is used when None.
        anchor_spacing : int
            Spacing of the default seed grid
        """
        self.label_path = label_path
        self.band_paths = {BandKey(*key): path for key, path in band_paths.items()}
        self.reference_paths = dict(reference_paths)
        self.validation_path = validation_path
        self.anchor_path = anchor_path
        self.anchor_spacing = anchor_spacing

        with _open(label_path) as src:
            self._shape = (src.height, src.width)
            self.transform = src.transform
            self.crs = src.crs
            self.nodata = int(src.nodata) if src.nodata is not None else 0

        for path in list(self.band_paths.values()) + list(self.reference_paths.values()):
            self._check_shape(path)
        if validation_path is not None:
            self._check_shape(validation_path)
        if anchor_path is not None:
            self._check_shape(anchor_path)

    @property
    def shape(self):
        return self._shape

    @property
    def pixel_size(self):
        return abs(self.transform.a), abs(self.transform.e)

    def _check_shape(self, path):
        with _open(path) as src:
            shape = (src.height, src.width)
        if shape != self._shape:
            raise GridMismatchError(self._shape, shape, name=path)

    def _read(self, path, window):
        with _open(path) as src:
            try:
                return src.read(1, window=window), src.nodata
            except RasterioIOError as e:
                raise RasterReadError(f"cannot read window {window} of '{path}': {e}") from e

    def _read_indicator(self, path, window):
        """Indicator window with the file's no-data pixels set to 0."""
        data, nodata = self._read(path, window)
        if nodata is None:
            return data
        missing = np.isnan(data) if np.isnan(nodata) else data == nodata
        return np.where(missing, 0, data)

    def grid(self):
        """The full label grid; only for extents that fit in memory."""
        return read_labeled_grid(self.label_path, nodata=self.nodata)

    def fetch(self, tile, halo=0):
        """Read the windows one tile worker needs.

        Returns:
        --------
        data : TileData
            The tile's grid, its haloed context and the aligned bands and masks
        """
        (r0, c0, height, width), core = tile.with_halo(halo, self._shape)
        window = Window(tile.col_off, tile.row_off, tile.width, tile.height)
        context_window = Window(c0, r0, width, height)

        labels, _ = self._read(self.label_path, context_window)
        transform = self.transform * Affine.translation(c0, r0)
        context = LabeledGrid(labels, nodata=self.nodata, transform=transform, crs=self.crs)
        grid = context.window(core[0].start, core[1].start, tile.height, tile.width)

        bands = BandStack()
        for key, path in self.band_paths.items():
            data, nodata = self._read(path, window)
            bands.add(key, ValueBand(data, nodata=nodata, name=f"{key.period}/{key.band}"))

        references = {}
        for name, path in self.reference_paths.items():
            data, nodata = self._read(path, window)
            references[name] = ValueBand(data, nodata=nodata, name=name, categorical=True)

        marks = None
        if self.validation_path is not None:
            marks = self._read_indicator(self.validation_path, window)

        if self.anchor_path is not None:
            anchors = self._read_indicator(self.anchor_path, window) != 0
        else:
            anchors = seed_grid(
                (tile.height, tile.width), spacing=self.anchor_spacing, origin=(tile.row_off, tile.col_off)
            )

        return TileData(
            tile=tile,
            grid=grid,
            context=context,
            core=core,
            bands=bands,
            references=references,
            validation_marks=marks,
            anchor_mask=np.asarray(anchors),
        )
