# -*- coding: utf-8 -*-
"""Class-stratified sampling of pure objects for classifier training.

Candidates are restricted to objects that are pure for the layer, not excluded by validation
marks and that hold at least one anchor pixel. Anchors come from a regular seed grid whose
spacing approximates the typical object size, so each sampled object contributes exactly one
location: its first anchor pixel in row-major order.
"""

import logging

import numpy as np
import pandas as pd

from ..config import SamplingConfig

logger = logging.getLogger(__name__)

SAMPLE_COLUMNS = ["object_id", "layer", "class_code", "row", "col", "x", "y"]
LOCATION_COLUMNS = ["row", "col", "x", "y"]


def seed_grid(shape, spacing=10, origin=(0, 0)):
    """Anchor raster with one anchor every ``spacing`` pixels in both directions.

    Parameters:
    -----------
    shape : tuple of int
        Raster (height, width)
    spacing : int
        Distance between anchors in pixels
    origin : tuple of int
        (row, col) offset of the raster inside a larger extent, so that windows of the
        extent get the same anchors as the full seed grid

    Returns:
    --------
    anchors : numpy.ndarray
        Boolean raster, anchors start half a spacing away from the extent's upper-left corner
    """
    if spacing < 1:
        raise ValueError("spacing must be at least 1")
    anchors = np.zeros(shape, dtype=bool)
    offset = spacing // 2
    first_row = (offset - origin[0]) % spacing
    first_col = (offset - origin[1]) % spacing
    anchors[first_row::spacing, first_col::spacing] = True
    return anchors


def anchor_locations(grid, anchor_mask):
    """First anchor pixel of every object that holds one.

    Returns:
    --------
    anchors : pandas.DataFrame
        Indexed by object id, columns row, col, x, y. Objects without anchors are absent.
    """
    grid.check_aligned(anchor_mask, name="anchor mask")
    hit = np.asarray(anchor_mask).astype(bool) & grid.valid_mask()
    rows, cols = np.nonzero(hit)
    anchors = pd.DataFrame({"object_id": grid.labels[rows, cols].astype("int64"), "row": rows, "col": cols})
    anchors = anchors.drop_duplicates("object_id", keep="first").set_index("object_id").sort_index()
    anchors["x"], anchors["y"] = grid.pixel_to_xy(anchors["row"].to_numpy(), anchors["col"].to_numpy())
    return anchors


def empty_anchors():
    return pd.DataFrame(
        {
            "row": pd.Series(dtype="int64"),
            "col": pd.Series(dtype="int64"),
            "x": pd.Series(dtype="float64"),
            "y": pd.Series(dtype="float64"),
        },
        index=pd.Index([], dtype="int64", name="object_id"),
    )


def empty_sample_set():
    return pd.DataFrame(
        {
            "object_id": pd.Series(dtype="int64"),
            "layer": pd.Series(dtype="object"),
            "class_code": pd.Series(dtype="int64"),
            "row": pd.Series(dtype="int64"),
            "col": pd.Series(dtype="int64"),
            "x": pd.Series(dtype="float64"),
            "y": pd.Series(dtype="float64"),
        }
    )


def merge_sample_sets(sample_sets):
    """Union of sample sets keyed by object id.

    An object sampled for several layers keeps the entry of the first set it appears in, with
    that layer's class label attached.
    """
    frames = [s for s in sample_sets if len(s)]
    if not frames:
        return empty_sample_set()
    merged = pd.concat(frames, ignore_index=True)
    return merged.drop_duplicates("object_id", keep="first").reset_index(drop=True)


class StratifiedSampler:
    """Draws up to ``n_per_class`` objects per class code."""

    def __init__(self, n_per_class, seed=None, layer_name=None, require_seed=False):
        """Initialize the sampler.

        Parameters:
        -----------
        n_per_class : int
            Maximum number of objects drawn per class
        seed : int, optional
            Random seed. Falls back to a fixed default unless ``require_seed`` is set.
        layer_name : str, optional
            Reference layer the class labels belong to, copied into the sample set
        require_seed : bool
            Raise ConfigurationError when ``seed`` is None
        """
        settings = SamplingConfig(n_per_class=n_per_class, seed=seed, require_seed=require_seed)
        self.n_per_class = settings.n_per_class
        self.seed = settings.resolve_seed()
        self.layer_name = layer_name

    def pool(self, class_labels, exclusions, anchors, class_code):
        """Sorted ids eligible for ``class_code``."""
        labels = self._labels(class_labels)
        excluded = labels.index.isin(list(exclusions))
        anchored = labels.index.isin(anchors.index)
        ids = labels.index[(labels == class_code).to_numpy() & anchored & ~excluded]
        return np.sort(ids.to_numpy(dtype="int64"))

    def sample(self, class_labels, exclusions, anchors, class_bound=None):
        """Stratified sample of objects.

        Parameters:
        -----------
        class_labels : pandas.Series or dict
            Object id -> class code, 0 for impure objects
        exclusions : set
            Ids that must never be sampled
        anchors : pandas.DataFrame
            Output of :func:`anchor_locations`; an object is eligible when it has a row here
        class_bound : int, optional
            Highest class code to sample; codes above it are ignored

        Returns:
        --------
        samples : pandas.DataFrame
            Columns object_id, layer, class_code, row, col, x, y sorted by class and id
        """
        labels = self._labels(class_labels)
        codes = sorted(int(c) for c in labels.unique() if c >= 1 and (class_bound is None or c <= class_bound))

        strata = []
        for code in codes:
            pool = self.pool(labels, exclusions, anchors, code)
            if pool.size == 0:
                continue
            if pool.size <= self.n_per_class:
                chosen = pool
                if pool.size < self.n_per_class:
                    logger.debug("Class %d of '%s' has only %d eligible objects", code, self.layer_name, pool.size)
            else:
                rng = np.random.default_rng([self.seed, code])
                chosen = np.sort(rng.choice(pool, size=self.n_per_class, replace=False))

            stratum = anchors.loc[chosen, LOCATION_COLUMNS].reset_index()
            stratum.insert(1, "layer", self.layer_name)
            stratum.insert(2, "class_code", code)
            strata.append(stratum)

        if not strata:
            return empty_sample_set()
        samples = pd.concat(strata, ignore_index=True)[SAMPLE_COLUMNS]
        return samples.astype({"object_id": "int64", "class_code": "int64", "row": "int64", "col": "int64"})

    @staticmethod
    def _labels(class_labels):
        labels = pd.Series(class_labels)
        labels = labels[labels.notna()]
        return labels.astype("int64")
