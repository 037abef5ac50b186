"""
Run phase and chassis release.

A run is either a settling run (terrain settles under gravity, boundary meshes
do not collide, a checkpoint is written at the end) or a testing run (terrain
loaded from a checkpoint, meshes collide). Independently, the chassis starts
fixed and is released exactly once, at the first iteration whose time reaches
the release threshold. Release also recalibrates the height reference used
when writing mesh frames, so that recorded wheels sit just above the terrain.
"""

import logging
from enum import IntEnum
from typing import TYPE_CHECKING, Optional

from ..solvers.interfaces import RigidBodySolver, TerrainSolver

if TYPE_CHECKING:
    from .stepper import SimulationContext

logger = logging.getLogger(__name__)

RELEASE_TIME = 0.5


class SimulationPhase(IntEnum):
    """Run modes, numbered as on the command line."""
    SETTLING = 0
    TESTING = 1


class PhaseController:
    """
    Owns the run phase and the one-shot chassis release.

    Args:
        phase: Phase of this run, fixed for its lifetime
        release_time: Simulated time at which the chassis is released
    """

    def __init__(self, phase: SimulationPhase, release_time: float = RELEASE_TIME):
        self.phase = SimulationPhase(phase)
        self.release_time = release_time
        self._released_at: Optional[float] = None

    @property
    def mesh_collision_enabled(self) -> bool:
        return self.phase is SimulationPhase.TESTING

    @property
    def chassis_fixed(self) -> bool:
        return self._released_at is None

    @property
    def released_at(self) -> Optional[float]:
        return self._released_at

    def configure_terrain(self, terrain: TerrainSolver) -> None:
        terrain.enable_mesh_collision(self.mesh_collision_enabled)

    def update(self, t: float, context: "SimulationContext", rigid: RigidBodySolver,
               terrain: TerrainSolver) -> bool:
        """Release the chassis if ``t`` reached the threshold; returns True on release."""
        if self.chassis_fixed and t >= self.release_time:
            self.release(t, context, rigid, terrain)
            return True
        return False

    def release(self, t: float, context: "SimulationContext", rigid: RigidBodySolver,
                terrain: TerrainSolver) -> None:
        if not self.chassis_fixed:
            raise RuntimeError(f"Chassis already released at t={self._released_at}")
        logger.info("Setting chassis free")
        self._released_at = t
        chassis = context.rover.chassis
        chassis.fixed = False
        rigid.set_body_fixed(chassis.body, False)

        max_terrain_z = terrain.max_particle_z()
        logger.info(f"Terrain max is {max_terrain_z:f}")
        # put terrain just below bottom of wheels
        context.height_reference = max_terrain_z + context.rover.geometry.chassis_to_bottom
