"""
Plots of recorded co-simulation runs.

Both functions take recorded data (as returned by ``rover_cosim.recording``)
and return a matplotlib Figure; display or saving is up to the caller.
"""

import logging
from typing import Dict, Optional, Sequence

import numpy as np
import matplotlib.pyplot as plt
from mpl_toolkits.mplot3d import Axes3D  # noqa: F401  registers the 3d projection

logger = logging.getLogger(__name__)


def plot_body_trajectories(trajectories: Dict[int, np.ndarray],
                           labels: Optional[Sequence[str]] = None,
                           title: str = "Rover body trajectories"):
    """
    Plot recorded body positions in 3D.

    Args:
        trajectories: Body row index -> Nx3 positions, as from load_body_trajectories
        labels: Optional label per body row index
        title: Figure title

    Returns:
        matplotlib Figure
    """
    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(1, 1, 1, projection='3d')
    for key in sorted(trajectories):
        positions = np.asarray(trajectories[key])
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ValueError(f"Trajectory {key} must be Nx3, got shape {positions.shape}")
        label = labels[key] if labels is not None and key < len(labels) else f"body {key}"
        ax.plot(positions[:, 0], positions[:, 1], positions[:, 2], '-o', markersize=2, label=label)

    ax.set_xlabel('X (cm)')
    ax.set_ylabel('Y (cm)')
    ax.set_zlabel('Z (cm)')
    ax.set_title(title)
    if trajectories:
        ax.legend()
    logger.info(f"Plotted {len(trajectories)} body trajectories")
    return fig


def plot_terrain_snapshot(points: np.ndarray, title: str = "Terrain particles",
                          max_points: int = 20000, seed: int = 0):
    """
    Scatter plot of particle positions, colored by height.

    Large snapshots are randomly subsampled to ``max_points``.
    """
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    if len(points) > max_points:
        rng = np.random.default_rng(seed)
        points = points[rng.choice(len(points), max_points, replace=False)]

    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(1, 1, 1, projection='3d')
    scatter = ax.scatter(points[:, 0], points[:, 1], points[:, 2], c=points[:, 2], s=2, cmap='viridis')
    fig.colorbar(scatter, ax=ax, label='Z (cm)')
    ax.set_xlabel('X (cm)')
    ax.set_ylabel('Y (cm)')
    ax.set_zlabel('Z (cm)')
    ax.set_title(title)
    return fig
