# -*- coding: utf-8 -*-
"""Tests for anchors and class-stratified sampling."""

import numpy as np
import pandas as pd
import pytest

from landseg import ConfigurationError, LabeledGrid, StratifiedSampler, anchor_locations, merge_sample_sets, seed_grid


def make_anchors(ids):
    """Anchor table with one synthetic location per id."""
    ids = np.asarray(ids, dtype="int64")
    return pd.DataFrame(
        {"row": ids * 2, "col": ids * 3, "x": ids * 10.0, "y": ids * -10.0},
        index=pd.Index(ids, name="object_id"),
    )


@pytest.fixture
def labels():
    """Twelve objects of class 1, three of class 2, two impure ones."""
    codes = {object_id: 1 for object_id in range(1, 13)}
    codes.update({20: 2, 21: 2, 22: 2, 30: 0, 31: 0})
    return pd.Series(codes, dtype="Int64")


def test_seed_grid_spacing():
    """One anchor every ``spacing`` pixels, half a spacing in from the corner."""
    anchors = seed_grid((20, 20), spacing=10)
    assert anchors.sum() == 4
    assert list(zip(*np.nonzero(anchors))) == [(5, 5), (5, 15), (15, 5), (15, 15)]


def test_seed_grid_windows_match_full_extent():
    """A window with an origin gets the same anchors as the full seed grid."""
    full = seed_grid((30, 30), spacing=10)
    window = seed_grid((10, 12), spacing=10, origin=(7, 9))
    np.testing.assert_array_equal(window, full[7:17, 9:21])


def test_anchor_location_is_first_in_row_major_order():
    """The representative location of an object is its first anchor pixel."""
    grid = LabeledGrid(np.array([[1, 1, 2], [1, 1, 2]], dtype="int64"))
    mask = np.array([[False, True, False], [True, True, False]])
    anchors = anchor_locations(grid, mask)

    assert anchors.index.tolist() == [1]
    assert anchors.loc[1, ["row", "col"]].tolist() == [0, 1]
    assert anchors.loc[1, "x"] == pytest.approx(1.5)
    assert anchors.loc[1, "y"] == pytest.approx(0.5)


def test_sampling_is_deterministic(labels):
    """Same inputs and seed give the same sample set."""
    anchors = make_anchors(labels.index)
    first = StratifiedSampler(4, seed=9, layer_name="ref").sample(labels, frozenset(), anchors)
    second = StratifiedSampler(4, seed=9, layer_name="ref").sample(labels, frozenset(), anchors)
    pd.testing.assert_frame_equal(first, second)


def test_sample_sizes_respect_bounds(labels):
    """Each class gets min(N, pool size) objects and impure objects are never drawn."""
    samples = StratifiedSampler(4, seed=1, layer_name="ref").sample(labels, frozenset(), make_anchors(labels.index))
    sizes = samples.groupby("class_code").size().to_dict()

    assert sizes == {1: 4, 2: 3}
    assert not samples["object_id"].isin([30, 31]).any()
    assert samples["object_id"].is_unique
    assert list(samples.columns) == ["object_id", "layer", "class_code", "row", "col", "x", "y"]


def test_excluded_and_unanchored_objects_are_never_sampled(labels):
    """Exclusions and objects without an anchor stay out of every stratum."""
    excluded = frozenset({1, 2, 3, 20})
    anchors = make_anchors([i for i in labels.index if i not in (4, 21)])
    samples = StratifiedSampler(100, seed=3, layer_name="ref").sample(labels, excluded, anchors)

    assert not samples["object_id"].isin(excluded).any()
    assert not samples["object_id"].isin([4, 21]).any()
    assert sorted(samples["object_id"]) == [5, 6, 7, 8, 9, 10, 11, 12, 22]


def test_locations_come_from_anchor_table(labels):
    """Each sample points at its object's anchor."""
    anchors = make_anchors(labels.index)
    samples = StratifiedSampler(2, seed=5, layer_name="ref").sample(labels, frozenset(), anchors)
    for row in samples.itertuples():
        assert (row.row, row.col) == (row.object_id * 2, row.object_id * 3)


def test_pool_is_sorted(labels):
    """Candidates are ordered by id before drawing."""
    shuffled = labels.sample(frac=1.0, random_state=0)
    pool = StratifiedSampler(1, seed=0).pool(shuffled, frozenset(), make_anchors(labels.index), 1)
    assert pool.tolist() == list(range(1, 13))


def test_class_bound_ignores_higher_codes(labels):
    """Codes above the class bound are not sampled."""
    samples = StratifiedSampler(5, seed=2).sample(labels, frozenset(), make_anchors(labels.index), class_bound=1)
    assert set(samples["class_code"]) == {1}


def test_empty_input_gives_empty_sample_set():
    """No eligible object, no samples, same columns."""
    samples = StratifiedSampler(5, seed=2).sample(pd.Series(dtype="Int64"), frozenset(), make_anchors([]))
    assert samples.empty
    assert "object_id" in samples.columns


def test_required_seed():
    """A missing seed is an error when reproducibility is required."""
    with pytest.raises(ConfigurationError):
        StratifiedSampler(5, seed=None, require_seed=True)
    assert StratifiedSampler(5, seed=None).seed == 42


def test_merge_keeps_first_layer():
    """An object sampled for two layers keeps the first layer's label."""
    first = pd.DataFrame({"object_id": [1, 2], "layer": "a", "class_code": [1, 2], "row": [0, 1], "col": [0, 1]})
    second = pd.DataFrame({"object_id": [2, 3], "layer": "b", "class_code": [4, 5], "row": [1, 2], "col": [1, 2]})
    for frame in (first, second):
        frame["x"] = frame["col"] + 0.5
        frame["y"] = frame["row"] + 0.5
    merged = merge_sample_sets([first, second])

    assert merged["object_id"].tolist() == [1, 2, 3]
    assert merged.set_index("object_id").loc[2, "layer"] == "a"
