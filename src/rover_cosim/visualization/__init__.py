"""
Visualization of recorded runs.
"""

from .plotter import plot_body_trajectories, plot_terrain_snapshot

__all__ = ["plot_body_trajectories", "plot_terrain_snapshot"]
