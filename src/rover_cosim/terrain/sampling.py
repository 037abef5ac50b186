"""
Volumetric particle sampling for the initial granular bed.

The box is filled layer by layer from its bottom face upwards. Each layer is a
2-D Poisson-disk sample of the box cross-section (Bridson's algorithm on a
background grid), so in-layer centres are at least ``separation`` apart.
Layers are ``layer_factor * separation`` apart, which keeps the 3-D minimum
separation as long as ``layer_factor >= 1``.
"""

import logging
import math
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)


class PoissonDiskLayerSampler:
    """
    Layered Poisson-disk sampler for boxes.

    Args:
        separation: Minimum distance between sample points
        layer_factor: Layer spacing as a multiple of the separation
        attempts: Candidates tried around each active point before retiring it
        seed: Seed for the random generator
    """

    def __init__(self, separation: float, layer_factor: float = 1.01,
                 attempts: int = 30, seed: Optional[int] = None):
        if separation <= 0:
            raise ValueError(f"Separation must be positive, got {separation}")
        if layer_factor < 1.0:
            raise ValueError(f"Layer factor must be at least 1, got {layer_factor}")
        self.separation = float(separation)
        self.layer_factor = float(layer_factor)
        self.attempts = attempts
        self.rng = np.random.default_rng(seed)

    def sample_box(self, center: np.ndarray, half_dims: np.ndarray) -> np.ndarray:
        """
        Sample points inside an axis-aligned box.

        Args:
            center: Box center (x, y, z)
            half_dims: Box half-dimensions; a negative value yields no points

        Returns:
            Nx3 array of points, ordered layer by layer from the bottom
        """
        center = np.asarray(center, dtype=float)
        half_dims = np.asarray(half_dims, dtype=float)
        if np.any(half_dims < 0):
            logger.warning(f"Sampling region {half_dims} is empty")
            return np.zeros((0, 3))

        layer_spacing = self.layer_factor * self.separation
        z_low = center[2] - half_dims[2]
        z_high = center[2] + half_dims[2]
        num_layers = int(math.floor((z_high - z_low) / layer_spacing)) + 1

        layers = []
        for k in range(num_layers):
            z = z_low + k * layer_spacing
            xy = self._sample_rectangle(center[:2] - half_dims[:2], 2.0 * half_dims[:2])
            layers.append(np.column_stack([xy, np.full(len(xy), z)]))

        points = np.vstack(layers) if layers else np.zeros((0, 3))
        logger.info(f"Sampled {len(points)} points in {num_layers} layers")
        return points

    def _sample_rectangle(self, origin: np.ndarray, size: np.ndarray) -> np.ndarray:
        r = self.separation
        cell = r / math.sqrt(2.0)
        nx = max(1, int(math.ceil(size[0] / cell)))
        ny = max(1, int(math.ceil(size[1] / cell)))
        grid = -np.ones((nx, ny), dtype=int)

        def cell_of(p):
            return (min(int(p[0] / cell), nx - 1), min(int(p[1] / cell), ny - 1))

        def far_enough(p):
            gx, gy = cell_of(p)
            for i in range(max(gx - 2, 0), min(gx + 3, nx)):
                for j in range(max(gy - 2, 0), min(gy + 3, ny)):
                    k = grid[i, j]
                    if k >= 0 and np.sum((samples[k] - p) ** 2) < r * r:
                        return False
            return True

        first = self.rng.random(2) * size
        samples: List[np.ndarray] = [first]
        grid[cell_of(first)] = 0
        active = [0]

        while active:
            pick = int(self.rng.integers(len(active)))
            base = samples[active[pick]]
            placed = False
            for _ in range(self.attempts):
                angle = self.rng.random() * 2.0 * math.pi
                radius = r * (1.0 + self.rng.random())
                candidate = base + radius * np.array([math.cos(angle), math.sin(angle)])
                if not (0.0 <= candidate[0] <= size[0] and 0.0 <= candidate[1] <= size[1]):
                    continue
                if far_enough(candidate):
                    samples.append(candidate)
                    grid[cell_of(candidate)] = len(samples) - 1
                    active.append(len(samples) - 1)
                    placed = True
                    break
            if not placed:
                active.pop(pick)

        return np.array(samples) + origin
