# -*- coding: utf-8 -*-
# landseg/__init__.py

"""
landseg: object statistics, purity labelling and stratified sampling for land-cover classification
=========================================================================

landseg turns a segmentation of satellite imagery into training data for an object-based
land-cover classifier: per-object band statistics, shape descriptors, class purity against
reference layers, validation exclusion and class-stratified samples.

Key features:
- Zonal statistics keyed by object id
- Boundary extraction and shape descriptors
- Purity labels against categorical reference layers
- Class-stratified, seeded sampling
- Tiled execution with fragment reconciliation
"""

__version__ = "0.1.0"

from .config import (
    DEFAULT_REFERENCE_LAYERS,
    BoundaryConfig,
    PipelineConfig,
    ReferenceLayerConfig,
    SamplingConfig,
    TilingConfig,
)
from .exceptions import ConfigurationError, GridMismatchError, LandsegError, RasterReadError

from .core.grid import BandKey, BandStack, LabeledGrid, ValueBand
from .core.layer import Layer, LayerManager
from .core.purity import PurityClassifier
from .core.exclusion import exclusions
from .core.sampling import StratifiedSampler, anchor_locations, merge_sample_sets, seed_grid
from .core.segmentation import SeededSegmentation
from .core.classifier import ObjectClassifier
from .core.tiling import Fragment, Tile, Whole, make_tiles

from .stats.zonal import ZonalAggregator
from .stats.boundary import BoundaryExtractor, shape_descriptors
from .stats.basic import attach_class_distribution, attach_count

from .io.raster import (
    RasterTileFetcher,
    layer_to_raster,
    read_labeled_grid,
    read_raster,
    read_value_band,
    write_raster,
)
from .io.vector import layer_to_vector, objects_to_table, read_vector, samples_to_geodataframe, write_vector

from .pipeline import PipelineOrchestrator, PipelineResult

from .utils.helpers import calculate_statistics_summary, configure_logging, create_sample_data
