"""
Collaborator interfaces for the two coupled solvers.

The co-simulation core only talks to its solvers through these protocols.
Bodies in the rigid solver are addressed by the integer handle returned from
``add_body``; meshes in the terrain solver by their position in the list passed
to ``load_meshes``. Orientations cross the boundary as
``scipy.spatial.transform.Rotation`` instances, vectors as length-3 arrays.
"""

from enum import Enum
from typing import Callable, Optional, Protocol, Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation


class OutputMode(Enum):
    """Terrain snapshot formats."""
    CSV = "csv"
    NONE = "none"


AngleFunction = Callable[[float], float]


class RigidBodySolver(Protocol):
    """Multibody system simulating the rover."""

    def set_gravity(self, gravity: np.ndarray) -> None: ...

    def add_body(self, mass: float, inertia_xx: np.ndarray, position: np.ndarray,
                 rotation: Optional[Rotation] = None, fixed: bool = False) -> int: ...

    def add_revolute_joint(self, parent: int, child: int, position: np.ndarray,
                           rotation: Rotation) -> int: ...

    def add_angle_motor(self, parent: int, child: int, position: np.ndarray,
                        rotation: Rotation, angle_function: AngleFunction) -> int: ...

    def body_position(self, body: int) -> np.ndarray: ...

    def body_rotation(self, body: int) -> Rotation: ...

    def body_linear_velocity(self, body: int) -> np.ndarray: ...

    def body_angular_velocity(self, body: int) -> np.ndarray: ...

    def body_mass(self, body: int) -> float: ...

    def body_inertia(self, body: int) -> np.ndarray: ...

    def set_body_fixed(self, body: int, fixed: bool) -> None: ...

    def is_body_fixed(self, body: int) -> bool: ...

    def empty_accumulators(self, body: int) -> None: ...

    def accumulate_force(self, body: int, force: np.ndarray, point: np.ndarray) -> None: ...

    def accumulate_torque(self, body: int, torque: np.ndarray) -> None: ...

    def do_step(self, dt: float) -> None: ...

    @property
    def time(self) -> float: ...


class TerrainSolver(Protocol):
    """Granular terrain with rigid boundary meshes."""

    def set_particle_positions(self, points: np.ndarray) -> None: ...

    def set_gravity(self, gravity: np.ndarray) -> None: ...

    def load_meshes(self, filenames: Sequence[str], scalings: Sequence[np.ndarray],
                    translations: Sequence[np.ndarray], masses: Sequence[float]) -> None: ...

    @property
    def num_meshes(self) -> int: ...

    def initialize(self) -> None: ...

    def enable_mesh_collision(self, enabled: bool) -> None: ...

    def apply_mesh_motion(self, mesh: int, position: np.ndarray, rotation: Rotation,
                          linear_velocity: np.ndarray, angular_velocity: np.ndarray) -> None: ...

    def advance(self, dt: float) -> None: ...

    def collect_mesh_contact_forces(self, mesh: int) -> Tuple[np.ndarray, np.ndarray]: ...

    def max_particle_z(self) -> float: ...

    def set_output_mode(self, mode: OutputMode) -> None: ...

    def write_file(self, path_base: str) -> Optional[str]: ...
