# -*- coding: utf-8 -*-
"""Tests for per-object zonal statistics."""

import numpy as np
import pandas as pd
import pytest

from landseg import BandStack, LabeledGrid, ValueBand, ZonalAggregator
from landseg.stats.zonal import ZonalAccumulator


@pytest.fixture
def small_grid():
    """Two objects on a 2x3 grid."""
    return LabeledGrid(np.array([[1, 1, 2], [1, 2, 2]], dtype="int64"))


@pytest.fixture
def random_scene():
    """A 37x23 grid of irregular objects with float values and scattered no-data."""
    rng = np.random.default_rng(3)
    labels = rng.integers(1, 12, size=(37, 23)).astype("int64")
    labels[rng.random((37, 23)) < 0.05] = 0
    values = rng.normal(50, 10, size=(37, 23))
    values[rng.random((37, 23)) < 0.05] = -1.0
    return LabeledGrid(labels), ValueBand(values, nodata=-1.0, name="b")


def test_basic_reducers(small_grid):
    """Count, sum, mean, population std, min and max per object."""
    band = ValueBand(np.array([[1.0, 2.0, 3.0], [3.0, 5.0, 5.0]]))
    aggregator = ZonalAggregator(reducers=("count", "sum", "mean", "std", "min", "max"))
    stats = aggregator.reduce(small_grid, band)

    assert stats.index.tolist() == [1, 2]
    assert stats.loc[1, "count"] == 3
    assert stats.loc[1, "sum"] == pytest.approx(6.0)
    assert stats.loc[1, "mean"] == pytest.approx(2.0)
    assert stats.loc[1, "std"] == pytest.approx(np.sqrt(2.0 / 3.0))
    assert stats.loc[2, "mean"] == pytest.approx(13.0 / 3.0)
    assert stats.loc[2, "std"] == pytest.approx(np.std([3.0, 5.0, 5.0]))
    assert stats.loc[2, "min"] == 3.0
    assert stats.loc[2, "max"] == 5.0


def test_mode_ties_go_to_lowest_code():
    """Equal frequencies resolve to the smallest code."""
    grid = LabeledGrid(np.ones((2, 2), dtype="int64"))
    band = ValueBand(np.array([[2, 1], [2, 1]], dtype="int64"), categorical=True)
    stats = ZonalAggregator(reducers=("mode",)).reduce(grid, band)
    assert stats.loc[1, "mode"] == 1


def test_object_without_values_is_na(small_grid):
    """Objects whose pixels are all no-data get NA, not a default value."""
    band = ValueBand(np.array([[1.0, 1.0, -1.0], [1.0, -1.0, -1.0]]), nodata=-1.0)
    stats = ZonalAggregator(reducers=("count", "mean", "std", "mode")).reduce(small_grid, band)

    assert stats.loc[2, "count"] == 0
    assert pd.isna(stats.loc[2, "mean"])
    assert pd.isna(stats.loc[2, "std"])
    assert pd.isna(stats.loc[2, "mode"])
    assert stats.loc[1, "std"] == 0


def test_constant_object_has_exactly_zero_std():
    """Constant values give a standard deviation of exactly 0, whatever the rounding."""
    grid = LabeledGrid(np.ones((7, 11), dtype="int64"))
    band = ValueBand(np.full((7, 11), 0.1))
    stats = ZonalAggregator(reducers=("std",)).reduce(grid, band)
    assert stats.loc[1, "std"] == 0.0


def test_sparse_ids_are_not_densified():
    """Tables are keyed by the ids present, however large."""
    grid = LabeledGrid(np.array([[5, 5, 1_000_000]], dtype="int64"))
    band = ValueBand(np.array([[1.0, 3.0, 7.0]]))
    stats = ZonalAggregator(reducers=("mean",)).reduce(grid, band)
    assert stats.index.tolist() == [5, 1_000_000]


def test_row_partitions_match_single_pass(random_scene):
    """Accumulating row blocks in parallel gives the single-pass result."""
    grid, band = random_scene
    reducers = ("count", "sum", "mean", "std", "min", "max")
    single = ZonalAggregator(reducers=reducers, n_jobs=1).reduce(grid, band)
    partitioned = ZonalAggregator(reducers=reducers, n_jobs=4).reduce(grid, band)
    pd.testing.assert_frame_equal(single, partitioned, check_exact=False, rtol=1e-9)


def test_merge_is_order_independent(random_scene):
    """Merging partial accumulators in either order gives the same statistics."""
    grid, band = random_scene
    labels, values = grid.labels, band.data
    label_valid, value_valid = grid.valid_mask(), band.valid_mask()

    top = ZonalAccumulator.from_arrays(labels[:20], label_valid[:20], values[:20], value_valid[:20], True)
    bottom = ZonalAccumulator.from_arrays(labels[20:], label_valid[20:], values[20:], value_valid[20:], True)

    reducers = ("count", "mean", "std", "min", "max")
    left = top.merge(bottom).finalize(reducers)
    right = bottom.merge(top).finalize(reducers)
    pd.testing.assert_frame_equal(left, right, check_exact=False, rtol=1e-12)


def test_merge_with_empty_accumulator(small_grid):
    """An empty accumulator is a neutral element of the merge."""
    band = ValueBand(np.array([[1, 2, 3], [3, 5, 5]], dtype="int64"), categorical=True)
    accumulator = ZonalAggregator(reducers=("mean", "mode")).accumulate(small_grid, band)
    merged = ZonalAccumulator.empty(with_frequencies=True).merge(accumulator)
    pd.testing.assert_frame_equal(merged.finalize(("mean", "mode")), accumulator.finalize(("mean", "mode")))


def test_class_counts_sum_to_valid_pixel_count(random_scene):
    """Per-class pixel counts add up to the number of valid pixels of the object."""
    grid, _ = random_scene
    rng = np.random.default_rng(11)
    codes = ValueBand(rng.integers(0, 6, size=grid.shape), nodata=0, categorical=True)

    aggregator = ZonalAggregator(reducers=("count",))
    counts = aggregator.class_counts(grid, codes)
    totals = aggregator.reduce(grid, codes)["count"]

    assert (counts.sum(axis=1) == totals.astype("int64")).all()
    assert 0 not in counts.columns


def test_aggregate_builds_period_band_statistic_columns(small_grid):
    """Several bands end up side by side under (period, band, statistic) columns."""
    bands = BandStack(
        {
            ("2020", "red"): ValueBand(np.ones((2, 3))),
            ("2021", "red"): ValueBand(np.zeros((2, 3))),
        }
    )
    stats = ZonalAggregator().aggregate(small_grid, bands)

    assert list(stats.columns.names) == ["period", "band", "statistic"]
    assert ("2020", "red", "mean") in stats.columns
    assert stats[("2021", "red", "mean")].tolist() == [0.0, 0.0]


def test_unknown_reducer_is_rejected():
    """Only the supported reducers can be requested."""
    with pytest.raises(ValueError):
        ZonalAggregator(reducers=("median",))
    with pytest.raises(ValueError):
        ZonalAggregator(n_jobs=0)
