"""
Staggered co-simulation of the rover and the granular terrain.

Each iteration exchanges data between the two solvers exactly once:

    1. push    wheel poses and velocities -> terrain meshes (wheel i -> mesh i)
    2. advance terrain by one step
    3. advance rover by one step, using the wheel forces pulled in the
       previous iteration
    4. pull    terrain contact force/torque on mesh i -> accumulators of wheel i
               (cleared first, so forces never carry over two iterations)

Forces are therefore consumed one step after they are computed.

Simulated time is derived from the step counter, t = step * iteration_step,
so threshold tests do not depend on accumulated rounding.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from ..solvers.interfaces import RigidBodySolver, TerrainSolver
from .phase import PhaseController
from .rover import RoverModel

logger = logging.getLogger(__name__)


@dataclass
class SimulationContext:
    """Run state shared by the stepper, the phase controller and the recorder."""
    rover: RoverModel
    height_reference: float = 0.0


@dataclass
class RunSummary:
    """Outcome of a completed run."""
    steps: int
    frames: int
    simulated_time: float
    released_at: Optional[float]
    wall_time: float
    wheel_forces: List[np.ndarray] = field(default_factory=list)
    wheel_torques: List[np.ndarray] = field(default_factory=list)


class CoSimulation:
    """
    Fixed-step loop coupling a rigid-body solver and a terrain solver.

    Args:
        context: Rover model and height reference
        rigid: Rigid-body solver holding the rover bodies
        terrain: Terrain solver holding one mesh per wheel, in wheel order
        phase: Phase controller (chassis release)
        iteration_step: Step size used for both solvers
        time_end: Simulated time at which the run stops
        recorder: Optional frame recorder, called after every iteration
    """

    def __init__(self, context: SimulationContext, rigid: RigidBodySolver,
                 terrain: TerrainSolver, phase: PhaseController,
                 iteration_step: float, time_end: float, recorder=None):
        if iteration_step <= 0:
            raise ValueError(f"Iteration step must be positive, got {iteration_step}")
        self.context = context
        self.rigid = rigid
        self.terrain = terrain
        self.phase = phase
        self.iteration_step = iteration_step
        self.time_end = time_end
        self.recorder = recorder

        self.step_count = 0
        num_wheels = len(context.rover.wheels)
        self.wheel_forces = [np.zeros(3) for _ in range(num_wheels)]
        self.wheel_torques = [np.zeros(3) for _ in range(num_wheels)]

    @property
    def current_time(self) -> float:
        return self.step_count * self.iteration_step

    @property
    def finished(self) -> bool:
        return self.current_time >= self.time_end

    def push_motion(self) -> None:
        for wheel in self.context.rover.wheels:
            self.terrain.apply_mesh_motion(
                wheel.index,
                self.rigid.body_position(wheel.body),
                self.rigid.body_rotation(wheel.body),
                self.rigid.body_linear_velocity(wheel.body),
                self.rigid.body_angular_velocity(wheel.body),
            )

    def pull_forces(self) -> None:
        for wheel in self.context.rover.wheels:
            self.rigid.empty_accumulators(wheel.body)
            force, torque = self.terrain.collect_mesh_contact_forces(wheel.index)
            self.rigid.accumulate_force(wheel.body, force, self.rigid.body_position(wheel.body))
            self.rigid.accumulate_torque(wheel.body, torque)
            self.wheel_forces[wheel.index] = np.asarray(force, dtype=float)
            self.wheel_torques[wheel.index] = np.asarray(torque, dtype=float)

    def step(self) -> Optional[str]:
        """Run one iteration; returns the mesh-frame path if a frame was recorded."""
        t = self.current_time
        self.phase.update(t, self.context, self.rigid, self.terrain)

        self.push_motion()
        self.terrain.advance(self.iteration_step)
        self.rigid.do_step(self.iteration_step)
        self.pull_forces()

        recorded = None
        if self.recorder is not None:
            recorded = self.recorder.maybe_record(self.step_count, self.context,
                                                  self.rigid, self.terrain)
            if recorded is not None:
                logger.debug(f"Wheel forces: {self.wheel_forces[-1]}")
                logger.debug(f"Wheel torques: {self.wheel_torques[-1]}")
        self.step_count += 1
        return recorded

    def run(self) -> RunSummary:
        start = time.perf_counter()
        while not self.finished:
            self.step()
        wall_time = time.perf_counter() - start
        logger.info(f"Run finished after {self.step_count} steps in {wall_time:f} s")

        return RunSummary(
            steps=self.step_count,
            frames=self.recorder.frame if self.recorder is not None else 0,
            simulated_time=self.current_time,
            released_at=self.phase.released_at,
            wall_time=wall_time,
            wheel_forces=[f.copy() for f in self.wheel_forces],
            wheel_torques=[t.copy() for t in self.wheel_torques],
        )
