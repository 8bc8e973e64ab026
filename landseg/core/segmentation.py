# -*- coding: utf-8 -*-
"""Segmentation provider that turns a band stack into a label grid.

Segments are grown from a regular grid of seeds, one every ``seed_spacing`` pixels, so that the same
seed grid can later serve as sampling anchors with at most one anchor per typical object.
The clustering itself is delegated to scikit-image's SLIC superpixels.
"""

import logging
import warnings

import numpy as np
from skimage import segmentation

from .grid import LabeledGrid
from .sampling import seed_grid

logger = logging.getLogger(__name__)


class SeededSegmentation:
    """Superpixel segmentation seeded on a regular grid.

    Higher ``seed_spacing`` values create larger segments; higher ``compactness`` values create
    more compact, square-like segments.
    """

    def __init__(self, seed_spacing=10, compactness=1.0, sigma=1.0):
        """Initialize the segmentation.

        Parameters:
        -----------
        seed_spacing : int
            Distance between seeds in pixels
        compactness : float
            Balance between value similarity and spatial proximity
        sigma : float
            Width of the Gaussian smoothing applied before clustering
        """
        if seed_spacing < 1:
            raise ValueError("seed_spacing must be at least 1")
        self.seed_spacing = seed_spacing
        self.compactness = compactness
        self.sigma = sigma

    def segment(self, bands, transform=None, crs=None):
        """Segment a band stack.

        Parameters:
        -----------
        bands : BandStack
            Bands to segment on, all on the same grid
        transform : affine.Affine, optional
            Affine transformation of the rasters
        crs : rasterio.crs.CRS, optional
            Coordinate reference system

        Returns:
        --------
        grid : LabeledGrid
            Segment ids starting at 1, 0 is never used
        seeds : numpy.ndarray
            Boolean seed grid, usable as sampling anchors
        """
        if not len(bands):
            raise ValueError("segmentation needs at least one band")
        image_data = bands.to_array().astype("float64")
        num_bands, height, width = image_data.shape

        normalized_bands = []
        for i in range(num_bands):
            band = np.nan_to_num(image_data[i], nan=np.nanmin(image_data[i]) if np.isfinite(image_data[i]).any() else 0.0)

            if band.max() == band.min():
                normalized_bands.append(np.zeros_like(band))
                continue

            normalized_bands.append((band - band.min()) / (band.max() - band.min()))

        multichannel_image = np.stack(normalized_bands, axis=-1)
        n_segments = max(int(width * height / (self.seed_spacing * self.seed_spacing)), 1)
        logger.info("Segmenting %dx%d pixels into about %d segments", height, width, n_segments)

        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            segments = segmentation.slic(
                multichannel_image,
                n_segments=n_segments,
                compactness=self.compactness,
                sigma=self.sigma,
                start_label=1,
                channel_axis=-1,
            )

        grid = LabeledGrid(segments.astype("int64"), nodata=0, transform=transform, crs=crs)
        seeds = seed_grid((height, width), spacing=self.seed_spacing)
        logger.info("Segmentation produced %d segments", len(np.unique(segments)))
        return grid, seeds
