# -*- coding: utf-8 -*-
"""Helpers , Aren't they useful ?"""

import json
import logging
import os

import numpy as np
from rasterio.crs import CRS
from rasterio.transform import from_origin

from ..core.grid import BandKey, BandStack, LabeledGrid, ValueBand

logger = logging.getLogger("landseg")


def configure_logging(verbose=False):
    """Attach a console handler to the ``landseg`` logger.

    Uses DEBUG level when ``verbose`` is True, otherwise INFO. Library modules only create
    loggers; calling this is left to scripts and notebooks.
    """
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt="[%(asctime)s] %(levelname)-8s %(name)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger


def create_sample_data(block=10, blocks=(4, 4), seed=0):
    """Create a synthetic scene of square objects for testing and demos.

    Objects are ``block`` x ``block`` squares numbered 1.. in row-major order. Every fifth object
    is split between two natura codes, so it is impure for that layer; object 1 has no
    imperviousness value at all.

    Parameters:
    -----------
    block : int
        Side of one object in pixels
    blocks : tuple of int
        Number of objects along (rows, cols)
    seed : int
        Seed of the band noise

    Returns:
    --------
    grid : LabeledGrid
        Object ids on a 10 m grid
    bands : BandStack
        Period "2020", bands "red" and "nir"
    references : dict
        Raw natura, lpis_corine and imperviousness rasters
    validation_marks : numpy.ndarray
        One reserved pixel in the centre of object 2
    """
    rng = np.random.default_rng(seed)
    n_rows, n_cols = blocks
    height, width = n_rows * block, n_cols * block

    ids = np.arange(1, n_rows * n_cols + 1).reshape(n_rows, n_cols)
    labels = np.kron(ids, np.ones((block, block), dtype="int64")).astype("int64")

    natura = (labels - 1) % 3 + 1
    lpis = (labels - 1) % 5 + 1
    impervious = np.where(labels % 2 == 0, 50, 10)
    impervious[labels == 1] = 0

    half = np.zeros_like(labels, dtype=bool)
    half[:, np.arange(width) % block >= block // 2] = True
    split = (labels % 5 == 0) & half
    natura[split] = natura[split] % 3 + 1

    red = natura * 100.0 + rng.normal(0, 5, size=(height, width))
    nir = lpis * 80.0 + rng.normal(0, 5, size=(height, width))

    transform = from_origin(500000.0, 4600000.0, 10.0, 10.0)
    grid = LabeledGrid(labels, nodata=0, transform=transform, crs=CRS.from_epsg(32633))

    bands = BandStack()
    bands.add(BandKey("2020", "red"), ValueBand(red, name="red"))
    bands.add(BandKey("2020", "nir"), ValueBand(nir, name="nir"))

    references = {
        "natura": ValueBand(natura, nodata=0, name="natura", categorical=True),
        "lpis_corine": ValueBand(lpis, nodata=0, name="lpis_corine", categorical=True),
        "imperviousness": ValueBand(impervious, nodata=255, name="imperviousness", categorical=True),
    }

    validation_marks = np.zeros((height, width), dtype="uint8")
    if n_cols > 1:
        validation_marks[block // 2, block + block // 2] = 1

    return grid, bands, references, validation_marks


def calculate_statistics_summary(layer_manager, output_file=None):
    """Calculate summary statistics for all layers in a layer manager.

    Parameters:
    -----------
    layer_manager : LayerManager
        Layer manager containing layers
    output_file : str, optional
        Path to save the summary to (as JSON)

    Returns:
    --------
    summary : dict
        Dictionary with summary statistics
    """
    summary = {}

    for layer_name in layer_manager.get_layer_names():
        layer = layer_manager.get_layer(layer_name)

        layer_summary = {
            "type": layer.type,
            "created_at": str(layer.created_at),
            "parent": layer.parent.name if layer.parent else None,
        }

        if layer.objects is not None:
            layer_summary["object_count"] = len(layer.objects)

            if "class_code" in layer.objects.columns:
                class_counts = layer.objects["class_code"].value_counts().sort_index()
                layer_summary["class_counts"] = {str(k): int(v) for k, v in class_counts.items()}

        if layer.attached_functions:
            layer_summary["functions"] = {
                name: attached["result"] for name, attached in layer.attached_functions.items()
            }

        summary[layer_name] = layer_summary

    if output_file:
        directory = os.path.dirname(output_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output_file, "w") as f:
            json.dump(summary, f, indent=2, default=str)

    return summary
