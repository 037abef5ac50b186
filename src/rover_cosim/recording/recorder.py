"""
Frame recording for co-simulation runs.

Every ``out_steps`` iterations the recorder asks the terrain solver for a
particle snapshot and writes a mesh-frame file next to it:

    <output_dir>/step000012.csv              terrain snapshot (solver format)
    <output_dir>/step000012_meshframes.csv   one row per rigid body

Mesh-frame rows give the mesh file, the body position (height reference added
to z), the body's x, y and z basis vectors, and the mesh scale factors, which
is what a renderer needs to place each mesh.
"""

import csv
import logging
import math
import os
from typing import TYPE_CHECKING, List, Optional, Sequence

import numpy as np
from scipy.spatial.transform import Rotation

from ..solvers.interfaces import OutputMode, RigidBodySolver, TerrainSolver

if TYPE_CHECKING:
    from ..simulation.stepper import SimulationContext

logger = logging.getLogger(__name__)

MESH_FRAME_HEADER = ("mesh_name", "dx", "dy", "dz", "x1", "x2", "x3", "y1", "y2", "y3",
                     "z1", "z2", "z3", "sx", "sy", "sz")
MESH_FRAME_SUFFIX = "_meshframes.csv"
DEFAULT_FPS = 50.0


def output_steps(fps: float, iteration_step: float) -> int:
    """Iterations between recorded frames, floor(1 / (fps * step))."""
    steps = int(math.floor(1.0 / (fps * iteration_step)))
    if steps < 1:
        raise ValueError(f"Output rate {fps} fps is faster than the step size {iteration_step} allows")
    return steps


def frame_basename(frame: int) -> str:
    return f"step{frame:06d}"


def _fmt(value: float) -> str:
    return f"{value:g}"


def mesh_frame_row(name: str, position: np.ndarray, rotation: Rotation,
                   scale: Sequence[float], height_reference: float = 0.0) -> List[str]:
    """One mesh-frame row; basis vectors are renormalized to unit length."""
    pos = np.asarray(position, dtype=float) + np.array([0.0, 0.0, height_reference])
    basis = rotation.as_matrix()
    axes = [basis[:, k] / np.linalg.norm(basis[:, k]) for k in range(3)]

    row = [name]
    row.extend(_fmt(v) for v in pos)
    for axis in axes:
        row.extend(_fmt(v) for v in axis)
    row.extend(_fmt(s) for s in scale)
    return row


class FrameRecorder:
    """
    Writes terrain snapshots and mesh frames on a fixed iteration cadence.

    Args:
        output_dir: Directory receiving the frame files (created if missing)
        iteration_step: Co-simulation step size
        fps: Target output frame rate
    """

    def __init__(self, output_dir: str, iteration_step: float, fps: float = DEFAULT_FPS):
        self.output_dir = output_dir
        self.fps = fps
        self.out_steps = output_steps(fps, iteration_step)
        self.frame = 0
        os.makedirs(self.output_dir, exist_ok=True)
        logger.info(f"Rendering at {fps:g} FPS, every {self.out_steps} steps")

    def should_record(self, step: int) -> bool:
        return step % self.out_steps == 0

    def rows(self, context: "SimulationContext", rigid: RigidBodySolver) -> List[List[str]]:
        """Rows for every wheel in mesh order, then the chassis."""
        rover = context.rover
        bodies = [(w.body, w.mesh) for w in rover.wheels]
        bodies.append((rover.chassis.body, rover.chassis.mesh))
        rows = []
        for body, mesh in bodies:
            rotation = rigid.body_rotation(body)
            logger.debug(f"Rot is {rotation.as_quat()}")
            rows.append(mesh_frame_row(mesh.filename, rigid.body_position(body), rotation,
                                       mesh.scale_factors, context.height_reference))
        return rows

    def record(self, context: "SimulationContext", rigid: RigidBodySolver,
               terrain: TerrainSolver) -> str:
        """Write frame ``self.frame`` and advance the frame counter; returns the mesh-frame path."""
        logger.info(f"Rendering frame {self.frame}")
        base = os.path.join(self.output_dir, frame_basename(self.frame))
        terrain.write_file(base)

        path = base + MESH_FRAME_SUFFIX
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f, lineterminator="\n")
            writer.writerow(MESH_FRAME_HEADER)
            writer.writerows(self.rows(context, rigid))
        self.frame += 1
        return path

    def maybe_record(self, step: int, context: "SimulationContext", rigid: RigidBodySolver,
                     terrain: TerrainSolver) -> Optional[str]:
        if self.should_record(step):
            return self.record(context, rigid, terrain)
        return None


def write_checkpoint(terrain: TerrainSolver, checkpoint_base: str) -> Optional[str]:
    """Write the terrain state as a CSV checkpoint at ``checkpoint_base``."""
    terrain.set_output_mode(OutputMode.CSV)
    path = terrain.write_file(checkpoint_base)
    logger.info(f"Wrote checkpoint {path}")
    return path
