"""
Rover model construction.

The rover is a box-inertia chassis carrying six wheels at three axle stations
(front, middle, rear), each mirrored across the chassis centre line. Every
wheel is attached with a revolute joint whose axis lies along the axle and is
driven by a rotation-angle motor following a constant-rate ramp from t = 0.

Index correspondence:
    The wheel list order is the only link between a rigid body and the terrain
    mesh representing it. Wheel i exchanges motion and forces with terrain
    mesh i, so the mesh proxies are created in wheel order and loaded into the
    terrain solver in that same order, once, before the run starts.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

from ..config import RoverGeometry
from ..solvers.interfaces import RigidBodySolver, TerrainSolver

logger = logging.getLogger(__name__)

# Joint frame: local z (the joint axis) rotated onto the wheel axle
JOINT_FRAME = Rotation.from_euler("x", math.pi / 2)


class WheelPosition(Enum):
    """Wheel stations in creation order."""
    FRONT_LEFT = "front_left"
    FRONT_RIGHT = "front_right"
    MIDDLE_LEFT = "middle_left"
    MIDDLE_RIGHT = "middle_right"
    REAR_LEFT = "rear_left"
    REAR_RIGHT = "rear_right"


WHEEL_ORDER = tuple(WheelPosition)


@dataclass(frozen=True)
class RampFunction:
    """Linear motor function y(t) = y0 + slope * t."""
    y0: float = 0.0
    slope: float = math.pi

    def __call__(self, t: float) -> float:
        return self.y0 + self.slope * t


@dataclass(frozen=True, eq=False)
class MeshProxy:
    """Boundary mesh description shared with the terrain solver and the recorder."""
    filename: str
    scaling: np.ndarray
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    mass: float = 0.0

    @property
    def scale_factors(self) -> Tuple[float, float, float]:
        return tuple(float(s) for s in np.diag(self.scaling))


@dataclass(frozen=True)
class WheelBody:
    """Handle of one wheel: its body in the rigid solver and its terrain mesh index."""
    index: int
    body: int
    position: WheelPosition
    mesh: MeshProxy


@dataclass
class Chassis:
    body: int
    mass: float
    inertia: np.ndarray
    mesh: MeshProxy
    fixed: bool = True


@dataclass
class RoverModel:
    """Chassis, wheels in mesh order, and the links joining them."""
    geometry: RoverGeometry
    chassis: Chassis
    wheels: Tuple[WheelBody, ...]
    joints: Tuple[int, ...] = ()
    motors: Tuple[int, ...] = ()

    @property
    def mesh_proxies(self) -> Tuple[MeshProxy, ...]:
        return tuple(wheel.mesh for wheel in self.wheels)

    @property
    def total_mass(self) -> float:
        return self.chassis.mass + sum(wheel.mesh.mass for wheel in self.wheels)

    def register_meshes(self, terrain: TerrainSolver) -> None:
        """
        Load the wheel meshes into the terrain solver in wheel order.

        Raises:
            RuntimeError: If the terrain solver does not end up with exactly one
                mesh per wheel
        """
        proxies = self.mesh_proxies
        terrain.load_meshes(
            [p.filename for p in proxies],
            [p.scaling for p in proxies],
            [p.translation for p in proxies],
            [p.mass for p in proxies],
        )
        if terrain.num_meshes != len(self.wheels):
            raise RuntimeError(f"Terrain has {terrain.num_meshes} meshes for "
                               f"{len(self.wheels)} wheels; mesh indices would not match")


class RoverBuilder:
    """
    Builds the rover into a rigid-body solver.

    Args:
        geometry: Rover constants
        wheel_mesh_file: Mesh file used for every wheel
        chassis_mesh_file: Mesh file used for the chassis (output only)
    """

    def __init__(self, geometry: Optional[RoverGeometry] = None,
                 wheel_mesh_file: str = "wheel.obj",
                 chassis_mesh_file: str = "chassis.obj"):
        self.geometry = geometry or RoverGeometry()
        self.wheel_mesh_file = wheel_mesh_file
        self.chassis_mesh_file = chassis_mesh_file

    def build(self, rigid: RigidBodySolver, chassis_position: np.ndarray) -> RoverModel:
        g = self.geometry
        chassis_position = np.asarray(chassis_position, dtype=float)

        chassis_body = rigid.add_body(g.chassis_mass, g.chassis_inertia, chassis_position, fixed=True)
        chassis = Chassis(
            body=chassis_body,
            mass=g.chassis_mass,
            inertia=g.chassis_inertia,
            mesh=MeshProxy(self.chassis_mesh_file, g.chassis_scaling),
        )

        wheels: List[WheelBody] = []
        joints: List[int] = []
        motors: List[int] = []
        for position, offset in zip(WHEEL_ORDER, g.wheel_offsets()):
            wheel, joint, motor = self._add_wheel(rigid, chassis, position, offset, len(wheels))
            wheels.append(wheel)
            joints.append(joint)
            motors.append(motor)

        logger.info(f"Chassis mass: {g.chassis_mass:f} g, each wheel mass: {g.wheel_mass:f} g")
        return RoverModel(g, chassis, tuple(wheels), tuple(joints), tuple(motors))

    def _add_wheel(self, rigid: RigidBodySolver, chassis: Chassis, position: WheelPosition,
                   offset: np.ndarray, index: int):
        g = self.geometry
        wheel_position = rigid.body_position(chassis.body) + offset

        inertia = g.wheel_inertia
        logger.debug(f"Inertia tensor is {inertia[0]:f}, {inertia[1]:f}, {inertia[2]:f}")
        body = rigid.add_body(g.wheel_mass, inertia, wheel_position, fixed=False)

        joint = rigid.add_revolute_joint(chassis.body, body, wheel_position, JOINT_FRAME)
        motor = rigid.add_angle_motor(chassis.body, body, wheel_position, JOINT_FRAME,
                                      RampFunction(0.0, g.wheel_angular_rate))

        mesh = MeshProxy(self.wheel_mesh_file, g.wheel_scaling, np.zeros(3), g.wheel_mass)
        return WheelBody(index, body, position, mesh), joint, motor
