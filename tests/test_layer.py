# -*- coding: utf-8 -*-
"""Tests for layers, the layer manager, layer summaries and helpers."""

import json
import logging

import pandas as pd
import pytest

from landseg import (
    Layer,
    LayerManager,
    attach_class_distribution,
    attach_count,
    calculate_statistics_summary,
    configure_logging,
    create_sample_data,
)


@pytest.fixture
def samples_layer():
    """A samples layer with five objects over two classes."""
    layer = Layer(name="samples", type="samples")
    layer.objects = pd.DataFrame({"object_id": [1, 2, 3, 4, 5], "class_code": [1, 1, 2, 0, 0]})
    return layer


def test_attach_function_keeps_results(samples_layer):
    """Attached functions run at once and keep their result."""
    samples_layer.attach_function(attach_count, name="class_1", class_column="class_code", class_value=1)
    samples_layer.attach_function(attach_class_distribution, name="distribution")

    assert samples_layer.get_function_result("class_1") == 2
    distribution = samples_layer.get_function_result("distribution")
    assert distribution["counts"] == {1: 2, 2: 1}
    assert distribution["percentages"] == {1: pytest.approx(66.67), 2: pytest.approx(33.33)}
    assert distribution["ignored"] == 2

    with pytest.raises(ValueError):
        samples_layer.get_function_result("missing")


def test_copy_shares_the_grid(samples_layer):
    """Copies share the label grid but not the object table."""
    grid = create_sample_data(block=2, blocks=(2, 2))[0]
    samples_layer.grid = grid
    copy = samples_layer.copy()

    assert copy.grid is grid
    assert copy.crs == grid.crs
    copy.objects.loc[0, "class_code"] = 5
    assert samples_layer.objects.loc[0, "class_code"] == 1


def test_layer_manager(samples_layer):
    """Layers are found by name or id and the active layer follows removals."""
    manager = LayerManager()
    objects = manager.add_layer(Layer(name="objects", type="objects"))
    manager.add_layer(samples_layer)

    assert manager.get_layer("objects") is objects
    assert manager.get_layer(samples_layer.id) is samples_layer
    manager.remove_layer("samples")
    assert manager.active_layer is objects
    with pytest.raises(ValueError):
        manager.get_layer("samples")


def test_statistics_summary(tmp_path, samples_layer):
    """The summary lists object counts, class counts and attached results."""
    manager = LayerManager()
    samples_layer.attach_function(attach_class_distribution, name="distribution")
    manager.add_layer(samples_layer)

    output = tmp_path / "summary" / "summary.json"
    summary = calculate_statistics_summary(manager, str(output))

    assert summary["samples"]["object_count"] == 5
    assert summary["samples"]["class_counts"] == {"0": 2, "1": 2, "2": 1}
    with open(output, "r", encoding="utf-8") as f:
        assert json.load(f)["samples"]["type"] == "samples"


def test_configure_logging():
    """Logging is configured on the package logger only once."""
    logger = configure_logging(verbose=True)
    handlers = list(logger.handlers)
    assert logger.name == "landseg"
    assert logger.level == logging.DEBUG

    configure_logging(verbose=False)
    assert logger.handlers == handlers
    assert logger.level == logging.INFO


def test_column_groups_and_lineage():
    """Grouped columns are reachable by their first level; lineage follows parents."""
    objects = Layer(name="objects", type="objects")
    objects.objects = pd.DataFrame(
        {("purity", "natura", "class_code"): [1, 0], ("2020", "red", "mean"): [0.5, 0.7]},
        index=pd.Index([1, 2], name="object_id"),
    )
    samples = Layer(name="samples", parent=objects, type="samples")

    purity = objects.column_group("purity")
    assert purity[("natura", "class_code")].tolist() == [1, 0]
    assert samples.lineage() == ["objects", "samples"]

    manager = LayerManager()
    manager.add_layer(objects)
    manager.add_layer(samples)
    assert manager.get_layers_by_type("samples") == [samples]

    with pytest.raises(ValueError):
        samples.column_group("purity")
