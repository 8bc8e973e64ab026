# -*- coding: utf-8 -*-
"""Manages vector and tabular output: sample points as GeoDataFrames and flattened object tables.

Object tables keep (period, band, statistic) column tuples in memory; they are joined into flat
string names only here, when written out.
"""

import os

import geopandas as gpd
import pandas as pd

VECTOR_DRIVERS = {".shp": None, ".geojson": "GeoJSON", ".gpkg": "GPKG"}


def read_vector(vector_path):
    """Read a vector file into a GeoDataFrame.

    Parameters:
    -----------
    vector_path : str
        Path to the vector file

    Returns:
    --------
    gdf : geopandas.GeoDataFrame
        GeoDataFrame with vector data
    """
    return gpd.read_file(vector_path)


def write_vector(gdf, output_path):
    """Write a GeoDataFrame to a Shapefile, GeoJSON or GeoPackage file.

    Parameters:
    -----------
    gdf : geopandas.GeoDataFrame
        GeoDataFrame to write
    output_path : str
        Path to the output vector file
    """
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    file_extension = os.path.splitext(output_path)[1].lower()

    if file_extension not in VECTOR_DRIVERS:
        raise ValueError(f"Unsupported vector format: {file_extension}")

    driver = VECTOR_DRIVERS[file_extension]
    if driver is None:
        gdf.to_file(output_path)
    else:
        gdf.to_file(output_path, driver=driver)


def samples_to_geodataframe(samples, crs=None):
    """Sample set as points at the sampled anchor pixel centres.

    Parameters:
    -----------
    samples : pandas.DataFrame
        Sample set with object_id, layer, class_code, row, col, x, y columns
    crs : rasterio.crs.CRS or str, optional
        Coordinate reference system of x and y

    Returns:
    --------
    gdf : geopandas.GeoDataFrame
    """
    geometry = gpd.points_from_xy(samples["x"], samples["y"])
    if crs is not None and not isinstance(crs, str):
        crs = crs.to_wkt()
    return gpd.GeoDataFrame(samples.drop(columns=["x", "y"]), geometry=geometry, crs=crs)


def flatten_columns(objects, separator="_"):
    """Join multi-level column tuples into flat names, skipping empty levels."""
    flat = objects.copy()
    if isinstance(flat.columns, pd.MultiIndex):
        flat.columns = [separator.join(str(part) for part in column if part != "") for column in flat.columns]
    return flat


def objects_to_table(layer, output_path=None):
    """Flatten an objects layer into a plain table, optionally saved as CSV.

    Parameters:
    -----------
    layer : Layer
        Objects layer produced by the pipeline
    output_path : str, optional
        CSV file to write

    Returns:
    --------
    table : pandas.DataFrame
        One row per object with an object_id column and flat column names
    """
    if layer.objects is None:
        raise ValueError("Layer has no objects")

    table = flatten_columns(layer.objects).reset_index()

    if output_path:
        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        table.to_csv(output_path, index=False)

    return table


def layer_to_vector(layer, output_path):
    """Save a samples layer to a vector file.

    Parameters:
    -----------
    layer : Layer
        Samples layer
    output_path : str
        Path to the output vector file
    """
    if layer.objects is None:
        raise ValueError("Layer has no objects")

    write_vector(samples_to_geodataframe(layer.objects, crs=layer.crs), output_path)
