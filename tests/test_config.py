# -*- coding: utf-8 -*-
"""Tests for the pipeline configuration records."""

import logging

import pytest
from pydantic import ValidationError

from landseg import (
    DEFAULT_REFERENCE_LAYERS,
    ConfigurationError,
    PipelineConfig,
    ReferenceLayerConfig,
    SamplingConfig,
)


def test_default_reference_layers():
    """The three reference layers of the workflow with their class bounds."""
    bounds = {layer.name: layer.class_bound for layer in DEFAULT_REFERENCE_LAYERS}
    assert bounds == {"natura": 22, "lpis_corine": 5, "imperviousness": 3}

    remap = DEFAULT_REFERENCE_LAYERS[2].code_remap
    assert remap[2] == 2
    assert remap[29] == 2
    assert remap[30] == 1
    assert remap[100] == 1
    assert 0 not in remap and 1 not in remap


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "natura", "class_bound": 0},
        {"name": "  ", "class_bound": 3},
        {"name": "imperviousness", "class_bound": 3, "code_remap": {50: 4}},
        {"name": "natura", "class_bound": 3, "std_tolerance": -0.1},
    ],
)
def test_invalid_reference_layer(kwargs):
    """Class bounds, names, remap targets and tolerances are validated."""
    with pytest.raises(ValidationError):
        ReferenceLayerConfig(**kwargs)


def test_pipeline_config_from_dict():
    """Plain mappings are validated into nested records."""
    config = PipelineConfig.from_dict(
        {
            "reference_layers": [{"name": "natura", "class_bound": 22}],
            "sampling": {"n_per_class": 10, "seed": 3},
            "tiling": {"tile_size": 256, "max_workers": 4},
            "reducers": ["mean", "std", "min"],
        }
    )
    assert config.layer("natura").class_bound == 22
    assert config.sampling.n_per_class == 10
    assert config.tiling.tile_size == 256
    assert config.boundary.radius == 1
    assert config.reducers == ("mean", "std", "min")


@pytest.mark.parametrize(
    "data",
    [
        {"reference_layers": []},
        {"reference_layers": [{"name": "a", "class_bound": 2}, {"name": "a", "class_bound": 3}]},
        {"reference_layers": [{"name": "a", "class_bound": 2}], "reducers": ["median"]},
        {"reference_layers": [{"name": "a", "class_bound": 2}], "tiling": {"tile_size": 0}},
        {"reference_layers": [{"name": "a", "class_bound": 2}], "sampling": {"n_per_class": -1}},
        {"reference_layers": [{"name": "a", "class_bound": 2}], "boundary": {"radius": 0}},
    ],
)
def test_invalid_pipeline_config(data):
    """Invalid settings are rejected when the configuration is built."""
    with pytest.raises(ValidationError):
        PipelineConfig.from_dict(data)


def test_unknown_layer_lookup():
    """Looking up a layer that is not configured is a configuration error."""
    config = PipelineConfig(reference_layers=DEFAULT_REFERENCE_LAYERS)
    with pytest.raises(ConfigurationError):
        config.layer("corine_2018")


def test_configs_are_frozen():
    """Configuration records cannot be changed after construction."""
    config = SamplingConfig(seed=1)
    with pytest.raises(ValidationError):
        config.seed = 2


def test_seed_resolution(caplog):
    """A missing seed falls back to the default with a warning, or fails when required."""
    assert SamplingConfig(seed=7).resolve_seed() == 7

    with caplog.at_level(logging.WARNING, logger="landseg"):
        assert SamplingConfig().resolve_seed() == 42
    assert "No sampling seed configured" in caplog.text

    with pytest.raises(ConfigurationError):
        SamplingConfig(require_seed=True).resolve_seed()
