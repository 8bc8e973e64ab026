# -*- coding: utf-8 -*-
"""Tests for tiles, halos, fragment tagging and partial-result merging."""

import numpy as np
import pytest

from landseg import BandStack, Fragment, LabeledGrid, Tile, ValueBand, Whole, make_tiles
from landseg.core.tiling import InMemoryTileSource, TileAccumulators, object_refs


def test_tiles_cover_the_extent_once():
    """Tiles partition the raster, edge tiles are clipped."""
    tiles = make_tiles((25, 23), tile_size=10)
    assert len(tiles) == 9
    assert [tile.tile_id for tile in tiles] == list(range(9))

    covered = np.zeros((25, 23), dtype="int64")
    for tile in tiles:
        covered[tile.row_off : tile.row_off + tile.height, tile.col_off : tile.col_off + tile.width] += 1
    assert (covered == 1).all()


def test_untiled_is_one_tile():
    """Without a tile size the whole extent is a single tile."""
    assert make_tiles((7, 5)) == [Tile(0, 0, 0, 7, 5)]
    with pytest.raises(ValueError):
        make_tiles((7, 5), tile_size=0)


def test_halo_is_clipped_to_the_extent():
    """The halo grows the window inward only where the extent allows."""
    tile = Tile(0, 0, 10, 10, 10)
    window, core = tile.with_halo(2, (30, 30))
    assert window == (0, 8, 12, 14)
    assert core == (slice(0, 10), slice(2, 12))


def test_objects_on_seams_are_fragments():
    """Objects touching an interior tile edge are fragments, others are whole."""
    labels = np.array(
        [
            [1, 1, 2, 2],
            [1, 1, 2, 3],
        ],
        dtype="int64",
    )
    grid = LabeledGrid(labels)
    left, right = make_tiles((2, 4), tile_size=2)[:2]

    left_refs = object_refs(left, grid.window(0, 0, 2, 2), grid.shape)
    right_refs = object_refs(right, grid.window(0, 2, 2, 2), grid.shape)

    assert left_refs == {1: Fragment(0, 1)}
    assert right_refs == {2: Fragment(1, 2), 3: Whole(3)}


def test_in_memory_source_serves_aligned_windows():
    """A fetched tile has its own grid, a haloed context and matching bands."""
    labels = np.arange(1, 37, dtype="int64").reshape(6, 6)
    grid = LabeledGrid(labels)
    bands = BandStack({("2020", "red"): ValueBand(labels.astype("float64"))})
    references = {"ref": ValueBand(labels % 3)}
    source = InMemoryTileSource(grid, bands, references, anchor_mask=np.ones((6, 6), dtype=bool))

    tile = make_tiles((6, 6), tile_size=3)[3]
    data = source.fetch(tile, halo=1)

    assert data.grid.labels.tolist() == labels[3:6, 3:6].tolist()
    assert data.context.shape == (4, 4)
    np.testing.assert_array_equal(data.context.labels[data.core], data.grid.labels)
    np.testing.assert_array_equal(data.bands[("2020", "red")].data, labels[3:6, 3:6])
    assert data.references["ref"].shape == (3, 3)
    assert data.validation_marks is None
    assert data.anchor_mask.shape == (3, 3)


def test_accumulators_record_fragments_across_tiles():
    """Merged partial results list the tiles each fragmented object spans."""
    left = TileAccumulators(refs={1: [Fragment(0, 1)], 5: [Whole(5)]}, completed_tiles=frozenset([0]))
    right = TileAccumulators(refs={1: [Fragment(1, 1)]}, completed_tiles=frozenset([1]))

    merged = left.merge(right)
    assert merged.completed_tiles == frozenset([0, 1])
    assert merged.fragmented_objects() == {1: [0, 1]}
