# -*- coding: utf-8 -*-
"""Runs object statistics, purity, validation exclusion and stratified sampling end to end.

The orchestrator accumulates every tile of the extent independently, merges the partial results
by object id, then derives per-object features, purity labels for each configured reference
layer, the validation exclusion set and the merged sample set. An untiled run is a run with a
single tile covering the extent.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

import pandas as pd

from .core.exclusion import accumulate_marks, excluded_ids
from .core.grid import BandKey, BandStack
from .core.layer import Layer
from .core.purity import PURITY_REDUCERS, PurityClassifier
from .core.sampling import (
    StratifiedSampler,
    anchor_locations,
    empty_anchors,
    empty_sample_set,
    merge_sample_sets,
    seed_grid,
)
from .core.tiling import InMemoryTileSource, TileAccumulators, make_tiles, object_refs
from .exceptions import ConfigurationError
from .stats.basic import attach_class_distribution
from .stats.boundary import BoundaryExtractor
from .stats.zonal import STAT_COLUMN_LEVELS, ZonalAccumulator, ZonalAggregator

logger = logging.getLogger(__name__)

SHAPE_GROUP = ("object", "shape")
PURITY_GROUP = "purity"


@dataclass
class PipelineResult:
    """Outcome of a pipeline run.

    ``objects`` and ``samples`` are None when the run was cancelled before every tile was
    processed; ``state`` then holds the merged partial results and can be handed back to
    :meth:`PipelineOrchestrator.run` as ``resume``.
    """

    objects: Layer = None
    samples: Layer = None
    purity: pd.DataFrame = None
    exclusions: frozenset = frozenset()
    layer_samples: dict = field(default_factory=dict)
    skipped: dict = field(default_factory=dict)
    fragments: dict = field(default_factory=dict)
    state: TileAccumulators = None
    cancelled: bool = False

    @property
    def completed_tiles(self):
        return self.state.completed_tiles if self.state is not None else frozenset()

    @property
    def sample_set(self):
        return self.samples.objects if self.samples is not None else empty_sample_set()


class PipelineOrchestrator:
    """Sequences the object statistics and sampling stages over one or many tiles."""

    def __init__(self, config, segmenter=None, layer_manager=None):
        """Initialize the orchestrator.

        Parameters:
        -----------
        config : PipelineConfig
            Reference layers, sampling, boundary and tiling settings
        segmenter : SeededSegmentation, optional
            Builds the label grid when ``run`` is called without one
        layer_manager : LayerManager, optional
            Layer manager to add the object and sample layers to
        """
        self.config = config
        self.segmenter = segmenter
        self.layer_manager = layer_manager
        self.boundary = BoundaryExtractor(radius=config.boundary.radius)
        self.classifiers = {layer.name: PurityClassifier(layer) for layer in config.reference_layers}

    def run(
        self,
        grid=None,
        bands=None,
        references=None,
        validation_marks=None,
        anchor_mask=None,
        tiles=None,
        cancel_event=None,
        resume=None,
    ):
        """Run the pipeline on in-memory rasters.

        Parameters:
        -----------
        grid : LabeledGrid, optional
            Object ids. Built by the segmenter from ``bands`` when None.
        bands : BandStack or dict
            Value bands keyed by (period, band)
        references : dict
            Reference layer name -> categorical ValueBand
        validation_marks : numpy.ndarray, optional
            Reserved validation pixels
        anchor_mask : numpy.ndarray, optional
            Sampling anchors. Defaults to the segmenter's seeds or a regular seed grid.
        tiles : list of Tile, optional
            Tiles to process. Defaults to the configured tile size.
        cancel_event : threading.Event, optional
            Checked between tiles; when set the run stops and returns partial state
        resume : PipelineResult, optional
            A cancelled run to continue

        Returns:
        --------
        result : PipelineResult
        """
        bands = bands if isinstance(bands, BandStack) else BandStack(bands or {})
        references = references or {}

        if grid is None:
            if self.segmenter is None:
                raise ConfigurationError("no label grid given and no segmentation provider configured")
            grid, seeds = self.segmenter.segment(bands)
            if anchor_mask is None:
                anchor_mask = seeds

        if anchor_mask is None:
            anchor_mask = seed_grid(grid.shape, spacing=self.config.sampling.anchor_spacing)

        self._validate_inputs(grid, bands, references, validation_marks, anchor_mask)
        source = InMemoryTileSource(grid, bands, references, validation_marks, anchor_mask)
        return self.run_source(source, tiles=tiles, cancel_event=cancel_event, resume=resume, grid=grid)

    def run_source(self, source, tiles=None, cancel_event=None, resume=None, grid=None):
        """Run the pipeline on any tile source (in-memory or windowed raster reads)."""
        seed = self.config.sampling.resolve_seed()
        if tiles is None:
            tiles = make_tiles(source.shape, self.config.tiling.tile_size)

        state = self._process_tiles(source, tiles, cancel_event, resume)
        if len(state.completed_tiles) < len(tiles):
            logger.warning(
                "Run cancelled after %d of %d tile(s); partial results kept for resume",
                len(state.completed_tiles),
                len(tiles),
            )
            return PipelineResult(state=state, cancelled=True, fragments=state.fragmented_objects())

        return self._finalize(state, source.pixel_size, seed, grid)

    def _validate_inputs(self, grid, bands, references, validation_marks, anchor_mask):
        missing = [name for name in self.classifiers if name not in references]
        if missing:
            raise ConfigurationError(f"missing reference layer raster(s): {missing}")
        bands.validate(grid)
        for name, band in references.items():
            grid.check_aligned(band.data, name=name)
        if validation_marks is not None:
            grid.check_aligned(validation_marks, name="validation marks")
        grid.check_aligned(anchor_mask, name="anchor mask")

    def _process_tiles(self, source, tiles, cancel_event, resume):
        state = TileAccumulators()
        if resume is not None:
            state = resume.state if isinstance(resume, PipelineResult) else resume

        pending = [tile for tile in tiles if tile.tile_id not in state.completed_tiles]
        workers = self.config.tiling.max_workers
        logger.info("Processing %d tile(s) with %d worker(s)", len(pending), workers)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            for start in range(0, len(pending), workers):
                if cancel_event is not None and cancel_event.is_set():
                    break
                batch = pending[start : start + workers]
                futures = [pool.submit(self._process_tile, source, tile) for tile in batch]
                for future in as_completed(futures):
                    state = state.merge(future.result())
        return state

    def _process_tile(self, source, tile):
        """Fetch one tile and accumulate its partial statistics."""
        data = source.fetch(tile, halo=self.boundary.radius)
        grid = data.grid
        row_partitions = self.config.tiling.row_partitions

        band_aggregator = ZonalAggregator(reducers=self.config.reducers, n_jobs=row_partitions)
        bands = {BandKey(*key): band_aggregator.accumulate(grid, band) for key, band in data.bands.items()}

        reference_aggregator = ZonalAggregator(reducers=PURITY_REDUCERS, n_jobs=row_partitions)
        references = {
            name: reference_aggregator.accumulate(grid, classifier.prepare(data.references[name]))
            for name, classifier in self.classifiers.items()
        }

        if data.validation_marks is not None:
            marks = accumulate_marks(grid, data.validation_marks)
        else:
            marks = ZonalAccumulator.empty()

        anchors = anchor_locations(grid, data.anchor_mask)
        anchors["row"] += tile.row_off
        anchors["col"] += tile.col_off

        refs = {object_id: [ref] for object_id, ref in object_refs(tile, grid, source.shape).items()}
        logger.debug("Tile %d: %d object(s)", tile.tile_id, len(refs))

        return TileAccumulators(
            object_ids=pd.Index(grid.object_ids().astype("int64"), name="object_id"),
            bands=bands,
            references=references,
            shapes=self.boundary.accumulate(data.context, core=data.core),
            marks=marks,
            anchors=anchors,
            refs=refs,
            completed_tiles=frozenset([tile.tile_id]),
        )

    def _finalize(self, state, pixel_size, seed, grid=None):
        index = state.object_ids
        fragments = state.fragmented_objects()
        if fragments:
            logger.info("Recombined %d object(s) split across tile seams", len(fragments))

        shape_table = self.boundary.describe_counts(state.shapes, pixel_size, index=index)
        degenerate = shape_table["form_factor"].isna()
        if degenerate.any():
            logger.warning("Skipping %d degenerate object(s) for purity and sampling", int(degenerate.sum()))

        exclusions = excluded_ids(state.marks, index=index)
        anchors = state.anchors if state.anchors is not None else empty_anchors()

        purity = {}
        layer_samples = {}
        for layer in self.config.reference_layers:
            classifier = self.classifiers[layer.name]
            stats = state.references[layer.name].finalize(PURITY_REDUCERS, index=index)
            labels = classifier.classify(stats).mask(degenerate, 0)
            purity[layer.name] = labels

            sampler = StratifiedSampler(self.config.sampling.n_per_class, seed=seed, layer_name=layer.name)
            layer_samples[layer.name] = sampler.sample(
                labels[~degenerate], exclusions, anchors, class_bound=layer.class_bound
            )

        purity_table = pd.DataFrame(purity, index=index)
        samples = merge_sample_sets(layer_samples[layer.name] for layer in self.config.reference_layers)
        logger.info("Sampled %d object(s) across %d reference layer(s)", len(samples), len(purity))

        objects_layer = self._objects_layer(state, index, shape_table, purity_table, exclusions, grid)
        samples_layer = Layer(name="samples", parent=objects_layer, type="samples")
        samples_layer.grid = grid
        samples_layer.objects = samples
        samples_layer.metadata = {"seed": seed, "n_per_class": self.config.sampling.n_per_class}

        if self.layer_manager:
            self.layer_manager.add_layer(objects_layer, set_active=False)
            self.layer_manager.add_layer(samples_layer)

        return PipelineResult(
            objects=objects_layer,
            samples=samples_layer,
            purity=purity_table,
            exclusions=exclusions,
            layer_samples=layer_samples,
            skipped={"degenerate": int(degenerate.sum())},
            fragments=fragments,
            state=state,
        )

    def _objects_layer(self, state, index, shape_table, purity_table, exclusions, grid):
        shape_table = shape_table.copy()
        shape_table.columns = pd.MultiIndex.from_tuples(
            [SHAPE_GROUP + (column,) for column in shape_table.columns], names=STAT_COLUMN_LEVELS
        )
        parts = [shape_table]

        for key, accumulator in state.bands.items():
            frame = accumulator.finalize(self.config.reducers, index=index)
            frame.columns = pd.MultiIndex.from_tuples(
                [(key.period, key.band, statistic) for statistic in frame.columns], names=STAT_COLUMN_LEVELS
            )
            parts.append(frame)

        purity_columns = purity_table.copy()
        purity_columns.columns = pd.MultiIndex.from_tuples(
            [(PURITY_GROUP, name, "class_code") for name in purity_table.columns], names=STAT_COLUMN_LEVELS
        )
        parts.append(purity_columns)

        excluded = pd.DataFrame({("object", "validation", "excluded"): index.isin(list(exclusions))}, index=index)
        excluded.columns = excluded.columns.set_names(STAT_COLUMN_LEVELS)
        parts.append(excluded)

        layer = Layer(name="objects", type="objects")
        layer.grid = grid
        layer.objects = pd.concat(parts, axis=1)
        layer.metadata = {
            "reducers": list(self.config.reducers),
            "boundary_radius": self.boundary.radius,
            "tiles": len(state.completed_tiles),
        }

        for name in purity_table.columns:
            layer.attach_function(
                attach_class_distribution,
                name=f"purity_{name}",
                class_column=(PURITY_GROUP, name, "class_code"),
            )
        return layer

