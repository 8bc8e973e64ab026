# -*- coding: utf-8 -*-
"""Configuration records for the object statistics and sampling pipeline.

Every setting that the classification workflow used to carry around as loose
constants (class bounds per reference layer, code reclassification tables,
sample sizes, seeds, tile sizes) is an explicit, immutable record here and is
passed into the components that need it.
"""

import logging
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SEED = 42
DEFAULT_REDUCERS = ("mean", "std")
SUPPORTED_REDUCERS = ("count", "sum", "mean", "std", "min", "max", "mode")


class ReferenceLayerConfig(BaseModel):
    """One categorical reference layer.

    Parameters:
    -----------
    name : str
        Layer name, used to label purity columns and samples
    class_bound : int
        Highest valid class code K; valid classes are 1..K
    code_remap : dict, optional
        Raw code -> class code table applied to valid pixels before aggregation. When given,
        raw codes missing from the table become 0 (undefined).
    std_tolerance : float
        Largest standard deviation still considered pure. 0 keeps the exact test.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    class_bound: int = Field(ge=1)
    code_remap: Dict[int, int] = Field(default_factory=dict)
    std_tolerance: float = Field(0.0, ge=0.0)

    @field_validator("name")
    @classmethod
    def _non_empty(cls, v):
        v2 = v.strip()
        if not v2:
            raise ValueError("layer name cannot be empty")
        return v2

    @model_validator(mode="after")
    def _remap_within_bound(self):
        bad = sorted(code for code in self.code_remap.values() if not 0 <= code <= self.class_bound)
        if bad:
            raise ValueError(f"code_remap of '{self.name}' maps to codes outside [0, {self.class_bound}]: {bad}")
        return self


class SamplingConfig(BaseModel):
    """Stratified sampling settings."""

    model_config = ConfigDict(frozen=True)

    n_per_class: int = Field(500, ge=0)
    seed: Optional[int] = Field(None, ge=0)
    require_seed: bool = False
    anchor_spacing: int = Field(10, ge=1)

    def resolve_seed(self):
        """Return the seed to sample with.

        Raises ConfigurationError when no seed is set and reproducibility is
        required, otherwise falls back to DEFAULT_SEED.
        """
        if self.seed is not None:
            return self.seed
        if self.require_seed:
            raise ConfigurationError("sampling seed is required for reproducible sampling but none was configured")
        logger.warning("No sampling seed configured, using default seed %d", DEFAULT_SEED)
        return DEFAULT_SEED


class BoundaryConfig(BaseModel):
    """Perimeter extraction settings."""

    model_config = ConfigDict(frozen=True)

    radius: int = Field(1, ge=1)


class TilingConfig(BaseModel):
    """Tiled execution settings.

    tile_size None disables tiling. max_workers bounds the tile thread pool and
    row_partitions splits each tile's accumulation pass into row blocks.
    """

    model_config = ConfigDict(frozen=True)

    tile_size: Optional[int] = Field(None, gt=0)
    max_workers: int = Field(1, ge=1)
    row_partitions: int = Field(1, ge=1)


class PipelineConfig(BaseModel):
    """Top-level configuration consumed by PipelineOrchestrator."""

    model_config = ConfigDict(frozen=True)

    reference_layers: Tuple[ReferenceLayerConfig, ...]
    sampling: SamplingConfig = SamplingConfig()
    boundary: BoundaryConfig = BoundaryConfig()
    tiling: TilingConfig = TilingConfig()
    reducers: Tuple[str, ...] = DEFAULT_REDUCERS

    @field_validator("reference_layers")
    @classmethod
    def _unique_layers(cls, v):
        if not v:
            raise ValueError("at least one reference layer is required")
        names = [layer.name for layer in v]
        duplicated = sorted({n for n in names if names.count(n) > 1})
        if duplicated:
            raise ValueError(f"duplicated reference layer names: {duplicated}")
        return v

    @field_validator("reducers")
    @classmethod
    def _known_reducers(cls, v):
        unknown = sorted(set(v) - set(SUPPORTED_REDUCERS))
        if unknown:
            raise ValueError(f"unsupported reducers: {unknown}")
        return v

    @classmethod
    def from_dict(cls, data):
        """Build a configuration from plain mappings (e.g. parsed YAML or JSON)."""
        return cls.model_validate(data)

    def layer(self, name):
        for layer in self.reference_layers:
            if layer.name == name:
                return layer
        raise ConfigurationError(f"reference layer '{name}' is not configured")


def _imperviousness_remap():
    # 2..29 % sealed -> low density (2), 30..100 % -> dense (1)
    remap = {value: 2 for value in range(2, 30)}
    remap.update({value: 1 for value in range(30, 101)})
    return remap


DEFAULT_REFERENCE_LAYERS = (
    ReferenceLayerConfig(name="natura", class_bound=22),
    ReferenceLayerConfig(name="lpis_corine", class_bound=5),
    ReferenceLayerConfig(name="imperviousness", class_bound=3, code_remap=_imperviousness_remap()),
)
