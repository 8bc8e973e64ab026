# -*- coding: utf-8 -*-
"""Shared fixtures: small label grids and reference layers built in memory."""

import numpy as np
import pytest

from landseg import LabeledGrid, ReferenceLayerConfig, ValueBand


@pytest.fixture
def two_object_grid():
    """10x10 grid, object 1 on rows 0-4 and object 2 on rows 5-9."""
    labels = np.ones((10, 10), dtype="int64")
    labels[5:, :] = 2
    return LabeledGrid(labels)


@pytest.fixture
def two_class_reference():
    """Reference codes matching the two objects: 1 on rows 0-4, 2 on rows 5-9."""
    codes = np.ones((10, 10), dtype="int64")
    codes[5:, :] = 2
    return ValueBand(codes, nodata=0, name="ref", categorical=True)


@pytest.fixture
def two_class_layer():
    """Reference layer configuration with two valid classes."""
    return ReferenceLayerConfig(name="ref", class_bound=2)


@pytest.fixture
def quad_grid():
    """4x4 grid split into four 2x2 objects numbered 1-4 in row-major order."""
    labels = np.array(
        [
            [1, 1, 2, 2],
            [1, 1, 2, 2],
            [3, 3, 4, 4],
            [3, 3, 4, 4],
        ],
        dtype="int64",
    )
    return LabeledGrid(labels)
