# -*- coding: utf-8 -*-
"""Zonal statistics: per-object reducers over value bands, grouped by object id.

Accumulation keeps only mergeable moments per object (count, sum, sum of squares, min, max) and,
when a mode is requested, a sparse (object id, code) frequency table. Partial accumulators built
over row blocks or tiles are merged by id; the merge is associative and commutative, so the
order in which partitions arrive does not change the result beyond floating-point rounding.

Every table is keyed by the ids actually present, never by a dense array sized to the largest id.
Objects without a single valid pixel for a band get ``pd.NA`` instead of a default value.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from functools import reduce

import numpy as np
import pandas as pd

from ..config import DEFAULT_REDUCERS, SUPPORTED_REDUCERS
from ..core.grid import BandKey

logger = logging.getLogger(__name__)

MOMENT_COLUMNS = ["count", "sum", "sumsq", "min", "max"]
MOMENT_MERGE = {"count": "sum", "sum": "sum", "sumsq": "sum", "min": "min", "max": "max"}
STAT_COLUMN_LEVELS = ["period", "band", "statistic"]


def _empty_moments():
    return pd.DataFrame(
        {column: pd.Series(dtype="float64") for column in MOMENT_COLUMNS},
        index=pd.Index([], dtype="int64", name="object_id"),
    )


def _empty_frequencies():
    index = pd.MultiIndex.from_arrays(
        [np.array([], dtype="int64"), np.array([], dtype="int64")],
        names=["object_id", "code"],
    )
    return pd.Series([], index=index, dtype="int64", name="n")


class ZonalAccumulator:
    """Mergeable per-object running statistics for one band."""

    def __init__(self, object_ids, moments, frequencies=None):
        self.object_ids = object_ids
        self.moments = moments
        self.frequencies = frequencies

    @classmethod
    def empty(cls, with_frequencies=False):
        ids = pd.Index([], dtype="int64", name="object_id")
        return cls(ids, _empty_moments(), _empty_frequencies() if with_frequencies else None)

    @classmethod
    def from_arrays(cls, labels, label_valid, values, value_valid, with_frequencies=False):
        """Accumulate one block of pixels.

        Parameters:
        -----------
        labels : numpy.ndarray
            Object ids of the block
        label_valid : numpy.ndarray
            Pixels that belong to an object
        values : numpy.ndarray
            Band values of the block
        value_valid : numpy.ndarray
            Pixels whose band value is usable
        with_frequencies : bool
            Also build the per-object code frequency table needed by the mode reducer

        Returns:
        --------
        accumulator : ZonalAccumulator
        """
        object_ids = pd.Index(np.unique(labels[label_valid]).astype("int64"), name="object_id")

        valid = label_valid & value_valid
        ids = labels[valid].astype("int64")
        raw = values[valid]
        if ids.size == 0:
            frequencies = _empty_frequencies() if with_frequencies else None
            return cls(object_ids, _empty_moments(), frequencies)

        vals = raw.astype("float64")
        pixels = pd.DataFrame({"object_id": ids, "v": vals, "v2": vals * vals})
        moments = pixels.groupby("object_id").agg(
            count=("v", "size"),
            sum=("v", "sum"),
            sumsq=("v2", "sum"),
            min=("v", "min"),
            max=("v", "max"),
        )
        moments["count"] = moments["count"].astype("float64")

        frequencies = None
        if with_frequencies:
            codes = pd.DataFrame({"object_id": ids, "code": raw})
            frequencies = codes.groupby(["object_id", "code"]).size().rename("n")

        return cls(object_ids, moments, frequencies)

    def merge(self, other):
        """Combine two partial accumulators keyed by object id."""
        object_ids = self.object_ids.union(other.object_ids)
        moments = pd.concat([self.moments, other.moments])
        if len(moments):
            moments = moments.groupby(level="object_id").agg(MOMENT_MERGE)
        else:
            moments = _empty_moments()

        frequencies = None
        tables = [f for f in (self.frequencies, other.frequencies) if f is not None]
        if tables:
            frequencies = pd.concat(tables)
            if len(frequencies):
                frequencies = frequencies.groupby(level=["object_id", "code"]).sum().rename("n")
        return ZonalAccumulator(object_ids, moments, frequencies)

    def finalize(self, reducers=DEFAULT_REDUCERS, index=None):
        """Turn the running moments into reducer values.

        Parameters:
        -----------
        reducers : sequence of str
            Any of count, sum, mean, std, min, max, mode
        index : pandas.Index, optional
            Objects to report. Defaults to every object seen during accumulation.

        Returns:
        --------
        stats : pandas.DataFrame
            One row per object, one nullable column per reducer
        """
        if index is None:
            index = self.object_ids
        index = pd.Index(index, name="object_id")
        moments = self.moments.reindex(index)

        count = moments["count"].fillna(0).astype("int64")
        has_values = count > 0
        safe_count = count.where(has_values)

        out = pd.DataFrame(index=index)
        mean = moments["sum"].where(has_values) / safe_count
        for reducer in reducers:
            if reducer == "count":
                out["count"] = count.astype("Int64")
            elif reducer == "sum":
                out["sum"] = moments["sum"].where(has_values).astype("Float64")
            elif reducer == "mean":
                out["mean"] = mean.astype("Float64")
            elif reducer == "std":
                variance = (moments["sumsq"].where(has_values) / safe_count - mean**2).clip(lower=0.0)
                # constant groups are exactly 0, whatever the rounding of sumsq/n - mean^2
                variance = variance.mask(moments["min"] == moments["max"], 0.0)
                out["std"] = np.sqrt(variance).astype("Float64")
            elif reducer == "min":
                out["min"] = moments["min"].where(has_values).astype("Float64")
            elif reducer == "max":
                out["max"] = moments["max"].where(has_values).astype("Float64")
            elif reducer == "mode":
                out["mode"] = self.modes(index)
            else:
                raise ValueError(f"Unsupported reducer '{reducer}', expected one of {SUPPORTED_REDUCERS}")
        return out

    def modes(self, index):
        """Most frequent code per object; ties go to the lowest code."""
        if self.frequencies is None:
            raise ValueError("mode requested but the accumulator was built without frequencies")
        if not len(self.frequencies):
            return pd.Series(pd.NA, index=index, dtype="Int64")

        table = self.frequencies.reset_index()
        table = table.sort_values(["object_id", "n", "code"], ascending=[True, False, True], kind="mergesort")
        first = table.drop_duplicates("object_id", keep="first").set_index("object_id")["code"]
        dtype = "Int64" if np.issubdtype(first.dtype, np.integer) or first.dtype == bool else "Float64"
        return first.reindex(index).astype(dtype)

    def class_counts(self, index=None):
        """Pixel count per object per code, zero where a code is absent."""
        if self.frequencies is None:
            raise ValueError("class counts need an accumulator built with frequencies")
        if index is None:
            index = self.object_ids
        if not len(self.frequencies):
            return pd.DataFrame(index=pd.Index(index, name="object_id"))
        counts = self.frequencies.unstack("code", fill_value=0)
        return counts.reindex(pd.Index(index, name="object_id"), fill_value=0).astype("int64")


class ZonalAggregator:
    """Computes per-object statistics of value bands over a label grid.

    Single band statistics come from one accumulation pass; with ``n_jobs > 1`` the grid rows
    are split into blocks accumulated on a thread pool and merged by object id.
    """

    def __init__(self, reducers=DEFAULT_REDUCERS, n_jobs=1):
        """Initialize the aggregator.

        Parameters:
        -----------
        reducers : sequence of str
            Reducers to report, any of count, sum, mean, std, min, max, mode
        n_jobs : int
            Number of row blocks accumulated in parallel
        """
        unknown = sorted(set(reducers) - set(SUPPORTED_REDUCERS))
        if unknown:
            raise ValueError(f"Unsupported reducers: {unknown}")
        if n_jobs < 1:
            raise ValueError("n_jobs must be at least 1")
        self.reducers = tuple(reducers)
        self.n_jobs = n_jobs

    def accumulate(self, grid, band, with_frequencies=None):
        """Accumulate one band over the grid.

        Raises GridMismatchError if the band is not on the grid.
        """
        grid.check_aligned(band.data, name=band.name)
        if with_frequencies is None:
            with_frequencies = "mode" in self.reducers

        labels = grid.labels
        label_valid = grid.valid_mask()
        values = band.data
        value_valid = band.valid_mask()

        if self.n_jobs == 1 or labels.shape[0] < 2:
            return ZonalAccumulator.from_arrays(labels, label_valid, values, value_valid, with_frequencies)

        bounds = np.array_split(np.arange(labels.shape[0]), min(self.n_jobs, labels.shape[0]))

        def _block(rows):
            block = slice(rows[0], rows[-1] + 1)
            return ZonalAccumulator.from_arrays(
                labels[block], label_valid[block], values[block], value_valid[block], with_frequencies
            )

        with ThreadPoolExecutor(max_workers=self.n_jobs) as pool:
            parts = list(pool.map(_block, bounds))
        logger.debug("Merged %d row blocks for band %s", len(parts), band.name)
        return reduce(ZonalAccumulator.merge, parts)

    def reduce(self, grid, band):
        """Statistics of one band for every object of the grid."""
        accumulator = self.accumulate(grid, band)
        return accumulator.finalize(self.reducers, index=grid.object_ids())

    def aggregate(self, grid, bands):
        """Statistics of several bands.

        Parameters:
        -----------
        grid : LabeledGrid
            Object ids
        bands : BandStack or dict
            Mapping of BandKey -> ValueBand

        Returns:
        --------
        stats : pandas.DataFrame
            Indexed by object id, columns (period, band, statistic)
        """
        frames = []
        for key, band in bands.items():
            if not isinstance(key, BandKey):
                key = BandKey(*key)
            frame = self.reduce(grid, band)
            frame.columns = pd.MultiIndex.from_tuples(
                [(key.period, key.band, statistic) for statistic in frame.columns],
                names=STAT_COLUMN_LEVELS,
            )
            frames.append(frame)
        if not frames:
            return pd.DataFrame(index=pd.Index(grid.object_ids(), name="object_id"))
        stats = pd.concat(frames, axis=1)
        logger.info("Aggregated %d band(s) over %d objects", len(frames), len(stats))
        return stats

    def class_counts(self, grid, band):
        """Pixel count per object per categorical code of ``band``."""
        accumulator = self.accumulate(grid, band, with_frequencies=True)
        return accumulator.class_counts(index=grid.object_ids())
