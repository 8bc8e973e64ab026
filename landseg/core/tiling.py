# -*- coding: utf-8 -*-
"""Tiled execution over large extents.

Tiles are windows over one label grid whose ids are stable across the whole extent, as produced
by a segmentation run with enough context. Each tile is accumulated on its own; an object cut by
a tile seam shows up as one Fragment per tile and its partial statistics are recombined by id in
an explicit merge pass. Perimeter pixels are found on the tile plus a halo as wide as the
boundary neighbourhood, so pixels along a seam see the same neighbours as in an untiled run.
"""

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from ..stats.zonal import ZonalAccumulator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tile:
    """A rectangular window of the processing extent, in pixel offsets."""

    tile_id: int
    row_off: int
    col_off: int
    height: int
    width: int

    def with_halo(self, halo, shape):
        """Window grown by ``halo`` pixels, clipped to the raster extent.

        Returns:
        --------
        window : tuple of int
            (row_off, col_off, height, width) of the grown window
        core : tuple of slice
            Position of the tile inside the grown window
        """
        rows, cols = shape
        r0 = max(self.row_off - halo, 0)
        c0 = max(self.col_off - halo, 0)
        r1 = min(self.row_off + self.height + halo, rows)
        c1 = min(self.col_off + self.width + halo, cols)
        core = (
            slice(self.row_off - r0, self.row_off - r0 + self.height),
            slice(self.col_off - c0, self.col_off - c0 + self.width),
        )
        return (r0, c0, r1 - r0, c1 - c0), core

    def seams(self, shape):
        """Which tile edges (top, bottom, left, right) are interior seams."""
        rows, cols = shape
        return (
            self.row_off > 0,
            self.row_off + self.height < rows,
            self.col_off > 0,
            self.col_off + self.width < cols,
        )


@dataclass(frozen=True)
class Whole:
    """An object entirely contained in one tile."""

    object_id: int


@dataclass(frozen=True)
class Fragment:
    """The part of an object that one tile sees when the object crosses a seam."""

    tile_id: int
    local_id: int


def make_tiles(shape, tile_size=None):
    """Cover a raster of ``shape`` with tiles of at most ``tile_size`` pixels per side."""
    rows, cols = shape
    if tile_size is None:
        return [Tile(0, 0, 0, rows, cols)]
    if tile_size < 1:
        raise ValueError("tile_size must be positive")
    tiles = []
    for row_off in range(0, rows, tile_size):
        for col_off in range(0, cols, tile_size):
            tiles.append(
                Tile(
                    len(tiles),
                    row_off,
                    col_off,
                    min(tile_size, rows - row_off),
                    min(tile_size, cols - col_off),
                )
            )
    return tiles


def object_refs(tile, grid, shape):
    """Tag the objects of a tile as Whole or Fragment.

    Parameters:
    -----------
    tile : Tile
        Tile the grid window was cut for
    grid : LabeledGrid
        The tile's own pixels (without halo)
    shape : tuple of int
        Shape of the full extent

    Returns:
    --------
    refs : dict
        Object id -> Whole or Fragment
    """
    top, bottom, left, right = tile.seams(shape)
    labels = grid.labels
    edges = []
    if top:
        edges.append(labels[0, :])
    if bottom:
        edges.append(labels[-1, :])
    if left:
        edges.append(labels[:, 0])
    if right:
        edges.append(labels[:, -1])
    on_seam = set(np.unique(np.concatenate(edges)).tolist()) if edges else set()

    refs = {}
    for object_id in grid.object_ids().tolist():
        if object_id in on_seam:
            refs[object_id] = Fragment(tile.tile_id, object_id)
        else:
            refs[object_id] = Whole(object_id)
    return refs


@dataclass
class TileData:
    """Everything one tile worker needs, as returned by a tile source."""

    tile: Tile
    grid: object
    context: object
    core: tuple
    bands: object
    references: dict
    validation_marks: object = None
    anchor_mask: object = None


class InMemoryTileSource:
    """Serves tile windows out of in-memory rasters."""

    def __init__(self, grid, bands, references, validation_marks=None, anchor_mask=None):
        self.grid = grid
        self.bands = bands
        self.references = references
        self.validation_marks = validation_marks
        self.anchor_mask = anchor_mask

    @property
    def shape(self):
        return self.grid.shape

    @property
    def pixel_size(self):
        return self.grid.pixel_size

    def fetch(self, tile, halo=0):
        window, core = tile.with_halo(halo, self.shape)
        own = (tile.row_off, tile.col_off, tile.height, tile.width)
        rows = slice(tile.row_off, tile.row_off + tile.height)
        cols = slice(tile.col_off, tile.col_off + tile.width)
        return TileData(
            tile=tile,
            grid=self.grid.window(*own),
            context=self.grid.window(*window),
            core=core,
            bands=self.bands.window(*own),
            references={name: band.window(*own) for name, band in self.references.items()},
            validation_marks=None if self.validation_marks is None else np.asarray(self.validation_marks)[rows, cols],
            anchor_mask=None if self.anchor_mask is None else np.asarray(self.anchor_mask)[rows, cols],
        )


@dataclass
class TileAccumulators:
    """Mergeable partial results of one or more tiles."""

    object_ids: pd.Index = field(default_factory=lambda: pd.Index([], dtype="int64", name="object_id"))
    bands: dict = field(default_factory=dict)
    references: dict = field(default_factory=dict)
    shapes: ZonalAccumulator = field(default_factory=ZonalAccumulator.empty)
    marks: ZonalAccumulator = field(default_factory=ZonalAccumulator.empty)
    anchors: pd.DataFrame = None
    refs: dict = field(default_factory=dict)
    completed_tiles: frozenset = frozenset()

    def merge(self, other):
        """Recombine two partial results by object id."""
        return TileAccumulators(
            object_ids=self.object_ids.union(other.object_ids),
            bands=_merge_accumulator_maps(self.bands, other.bands),
            references=_merge_accumulator_maps(self.references, other.references),
            shapes=self.shapes.merge(other.shapes),
            marks=self.marks.merge(other.marks),
            anchors=_merge_anchors(self.anchors, other.anchors),
            refs=_merge_refs(self.refs, other.refs),
            completed_tiles=self.completed_tiles | other.completed_tiles,
        )

    def fragmented_objects(self):
        """Ids seen as Fragment in at least one tile, with the tiles they span."""
        return {
            object_id: sorted(ref.tile_id for ref in refs if isinstance(ref, Fragment))
            for object_id, refs in self.refs.items()
            if any(isinstance(ref, Fragment) for ref in refs)
        }


def _merge_accumulator_maps(left, right):
    merged = dict(left)
    for key, accumulator in right.items():
        merged[key] = merged[key].merge(accumulator) if key in merged else accumulator
    return merged


def _merge_anchors(left, right):
    frames = [frame for frame in (left, right) if frame is not None]
    if not frames:
        return None
    anchors = pd.concat(frames).reset_index()
    # keep the first anchor in row-major order of the full extent
    anchors = anchors.sort_values(["row", "col"], kind="mergesort").drop_duplicates("object_id", keep="first")
    return anchors.set_index("object_id").sort_index()


def _merge_refs(left, right):
    merged = {object_id: list(refs) for object_id, refs in left.items()}
    for object_id, refs in right.items():
        merged.setdefault(object_id, []).extend(refs)
    return merged
