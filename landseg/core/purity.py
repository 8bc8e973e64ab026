# -*- coding: utf-8 -*-
"""Decides which objects are pure with respect to a categorical reference layer.

An object is pure for a layer when all of its pixels carry the same reference code, tested as a
population standard deviation of exactly zero, and that code is a valid class of the layer
(1..K). Pure objects get their class code, every other object gets 0.
"""

import logging

import numpy as np
import pandas as pd

from ..stats.zonal import ZonalAggregator
from .grid import ValueBand

logger = logging.getLogger(__name__)

PURITY_REDUCERS = ("count", "mode", "std")


class PurityClassifier:
    """Purity labels for one reference layer."""

    def __init__(self, layer_config):
        """Initialize the classifier.

        Parameters:
        -----------
        layer_config : ReferenceLayerConfig
            Layer name, class bound K, code remapping and standard deviation tolerance
        """
        self.config = layer_config

    @property
    def name(self):
        return self.config.name

    @property
    def class_bound(self):
        return self.config.class_bound

    def prepare(self, band):
        """Reference band ready for aggregation.

        Applies the layer's code remapping to valid pixels only. No-data pixels and
        non-integral codes become code 0, so objects partially covered by the layer, or
        carrying resampled codes, are not pure.
        """
        data = np.asarray(band.data)
        valid = band.valid_mask()
        if np.issubdtype(data.dtype, np.floating):
            valid &= data == np.floor(np.where(valid, data, 0))

        codes = np.zeros(data.shape, dtype="int64")
        codes[valid] = data[valid].astype("int64")

        if self.config.code_remap:
            lookup = pd.Series(self.config.code_remap, dtype="int64")
            codes[valid] = pd.Series(codes[valid]).map(lookup).fillna(0).to_numpy(dtype="int64")

        return ValueBand(codes, nodata=None, name=self.name, categorical=True)

    def statistics(self, grid, band, n_jobs=1):
        """Count, mode and standard deviation of the prepared reference codes per object."""
        aggregator = ZonalAggregator(reducers=PURITY_REDUCERS, n_jobs=n_jobs)
        return aggregator.reduce(grid, self.prepare(band))

    def classify(self, stats):
        """Purity label per object.

        Parameters:
        -----------
        stats : pandas.DataFrame
            Per-object ``mode`` and ``std`` of the layer's codes

        Returns:
        --------
        labels : pandas.Series
            Int64 class code in [1, K] for pure objects, 0 otherwise
        """
        mode = stats["mode"].astype("Float64")
        std = stats["std"].astype("Float64")

        homogeneous = (std <= self.config.std_tolerance).fillna(False)
        in_range = ((mode >= 1) & (mode <= self.class_bound)).fillna(False)
        pure = homogeneous & in_range

        labels = mode.where(pure, 0).fillna(0).round().astype("int64").astype("Int64")
        labels.name = self.name

        logger.info(
            "Layer '%s': %d of %d objects are pure",
            self.name,
            int(pure.sum()),
            len(labels),
        )
        return labels

    def classify_grid(self, grid, band, n_jobs=1):
        """Aggregate ``band`` over ``grid`` and classify in one call."""
        return self.classify(self.statistics(grid, band, n_jobs=n_jobs))
