"""
Terrain initialization: volumetric sampling for settling runs, checkpoint
loading for testing runs.
"""

from typing import Optional

import numpy as np

from ..config import GranularParameters
from ..simulation.phase import SimulationPhase
from .checkpoint import (CheckpointError, CheckpointLineError, CheckpointParseResult,
                         load_checkpoint, parse_checkpoint_lines)
from .sampling import PoissonDiskLayerSampler

LAYER_FACTOR = 1.01


def checkpoint_path(checkpoint_base: str) -> str:
    return checkpoint_base + ".csv"


def initialize_terrain(phase: SimulationPhase, params: GranularParameters,
                       checkpoint_base: str, seed: Optional[int] = None) -> np.ndarray:
    """
    Initial particle positions for a run.

    Settling runs sample the fill region of the box; testing runs load the
    checkpoint written by an earlier settling run.
    """
    if SimulationPhase(phase) is SimulationPhase.SETTLING:
        center, hdims = params.sampling_region()
        sampler = PoissonDiskLayerSampler(2.0 * params.sphere_radius, LAYER_FACTOR, seed=seed)
        return sampler.sample_box(center, hdims)
    return load_checkpoint(checkpoint_path(checkpoint_base))


__all__ = [
    "CheckpointError",
    "CheckpointLineError",
    "CheckpointParseResult",
    "PoissonDiskLayerSampler",
    "checkpoint_path",
    "initialize_terrain",
    "load_checkpoint",
    "parse_checkpoint_lines",
]
