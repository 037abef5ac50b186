"""
Reference granular terrain backend.

A compact numpy/scipy implementation of the TerrainSolver protocol used for
dry runs and tests. Particles are equal spheres in an axis-aligned box centred
on the origin. Contacts use a normal-only spring-dashpot law:

    F_n = max(0, k_n * delta - g_n * m_eff * v_n)

for sphere-sphere (neighbour pairs from a cKDTree), sphere-wall and
sphere-mesh contacts. Each boundary mesh is represented by the cylinder its
scale describes: diameter from the local x scale, width from the local y
scale, axis along local y. Integration is semi-implicit Euler, one step per
``advance`` call.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree
from scipy.spatial.transform import Rotation

from .interfaces import OutputMode

logger = logging.getLogger(__name__)

SNAPSHOT_HEADER = "x,y,z,vx,vy,vz"


@dataclass
class _BoundaryMesh:
    filename: str
    scaling: np.ndarray
    translation: np.ndarray
    mass: float
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: Rotation = field(default_factory=Rotation.identity)
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    angular_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    force: np.ndarray = field(default_factory=lambda: np.zeros(3))
    torque: np.ndarray = field(default_factory=lambda: np.zeros(3))

    @property
    def radius(self) -> float:
        return 0.5 * float(self.scaling[0, 0])

    @property
    def half_width(self) -> float:
        return 0.5 * float(self.scaling[1, 1])

    @property
    def center(self) -> np.ndarray:
        return self.position + self.rotation.apply(self.translation)


class GranularTerrain:
    """
    Spring-dashpot granular bed with kinematically driven boundary meshes.

    Args:
        sphere_radius: Particle radius
        sphere_density: Particle material density
        box_dims: Full box dimensions (X, Y, Z), box centred on the origin
        kn_s2s, kn_s2w, kn_s2m: Normal stiffness (sphere-sphere/wall/mesh)
        gn_s2s, gn_s2w, gn_s2m: Normal damping (sphere-sphere/wall/mesh)
    """

    def __init__(self, sphere_radius: float, sphere_density: float,
                 box_dims: Sequence[float],
                 kn_s2s: float = 1e7, kn_s2w: float = 1e7, kn_s2m: float = 1e7,
                 gn_s2s: float = 1e4, gn_s2w: float = 1e4, gn_s2m: float = 1e4,
                 gravity: Optional[np.ndarray] = None):
        if sphere_radius <= 0 or sphere_density <= 0:
            raise ValueError("Sphere radius and density must be positive")
        self.sphere_radius = float(sphere_radius)
        self.sphere_mass = sphere_density * 4.0 / 3.0 * np.pi * self.sphere_radius ** 3
        self.box_dims = np.asarray(box_dims, dtype=float)
        self.kn_s2s, self.kn_s2w, self.kn_s2m = kn_s2s, kn_s2w, kn_s2m
        self.gn_s2s, self.gn_s2w, self.gn_s2m = gn_s2s, gn_s2w, gn_s2m
        self.gravity = np.zeros(3) if gravity is None else np.asarray(gravity, dtype=float)

        self.positions = np.zeros((0, 3))
        self.velocities = np.zeros((0, 3))
        self.mesh_collision = False
        self.output_mode = OutputMode.CSV
        self._meshes: List[_BoundaryMesh] = []
        self._initialized = False
        self._time = 0.0

    @property
    def time(self) -> float:
        return self._time

    @property
    def num_particles(self) -> int:
        return len(self.positions)

    @property
    def num_meshes(self) -> int:
        return len(self._meshes)

    def set_particle_positions(self, points: np.ndarray) -> None:
        points = np.asarray(points, dtype=float).reshape(-1, 3)
        self.positions = points.copy()
        self.velocities = np.zeros_like(self.positions)

    def set_gravity(self, gravity: np.ndarray) -> None:
        self.gravity = np.asarray(gravity, dtype=float)

    def load_meshes(self, filenames: Sequence[str], scalings: Sequence[np.ndarray],
                    translations: Sequence[np.ndarray], masses: Sequence[float]) -> None:
        if not (len(filenames) == len(scalings) == len(translations) == len(masses)):
            raise ValueError("Mesh filenames, scalings, translations and masses must have equal length")
        for filename, scaling, translation, mass in zip(filenames, scalings, translations, masses):
            self._meshes.append(_BoundaryMesh(
                filename=filename,
                scaling=np.asarray(scaling, dtype=float),
                translation=np.asarray(translation, dtype=float),
                mass=float(mass),
            ))
        logger.debug(f"Loaded {len(filenames)} meshes, {self.num_meshes} total")

    def initialize(self) -> None:
        self._initialized = True
        logger.info(f"Granular terrain initialized with {self.num_particles} particles "
                    f"and {self.num_meshes} meshes")

    def enable_mesh_collision(self, enabled: bool) -> None:
        self.mesh_collision = bool(enabled)

    def apply_mesh_motion(self, mesh: int, position: np.ndarray, rotation: Rotation,
                          linear_velocity: np.ndarray, angular_velocity: np.ndarray) -> None:
        m = self._meshes[mesh]
        m.position = np.asarray(position, dtype=float).copy()
        m.rotation = rotation
        m.velocity = np.asarray(linear_velocity, dtype=float).copy()
        m.angular_velocity = np.asarray(angular_velocity, dtype=float).copy()

    def collect_mesh_contact_forces(self, mesh: int) -> Tuple[np.ndarray, np.ndarray]:
        m = self._meshes[mesh]
        return m.force.copy(), m.torque.copy()

    def max_particle_z(self) -> float:
        if self.num_particles == 0:
            raise RuntimeError("Terrain has no particles")
        return float(np.max(self.positions[:, 2]))

    def set_output_mode(self, mode: OutputMode) -> None:
        self.output_mode = OutputMode(mode)

    def write_file(self, path_base: str) -> Optional[str]:
        """Write a particle snapshot to ``<path_base>.csv``; returns the path written."""
        if self.output_mode is OutputMode.NONE:
            return None
        path = path_base + ".csv"
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        np.savetxt(path, np.hstack([self.positions, self.velocities]),
                   fmt="%.17g", delimiter=",", header=SNAPSHOT_HEADER, comments="")
        return path

    def advance(self, dt: float) -> None:
        if not self._initialized:
            raise RuntimeError("GranularTerrain.initialize() must be called before advance()")
        if dt <= 0:
            raise ValueError(f"Step size must be positive, got {dt}")

        forces = np.tile(self.sphere_mass * self.gravity, (self.num_particles, 1))
        if self.num_particles:
            self._add_sphere_forces(forces)
            self._add_wall_forces(forces)
        for m in self._meshes:
            m.force = np.zeros(3)
            m.torque = np.zeros(3)
            if self.mesh_collision and self.num_particles:
                self._add_mesh_forces(m, forces)

        self.velocities = self.velocities + forces / self.sphere_mass * dt
        self.positions = self.positions + self.velocities * dt
        self._time += dt

    def _add_sphere_forces(self, forces: np.ndarray) -> None:
        diameter = 2.0 * self.sphere_radius
        pairs = cKDTree(self.positions).query_pairs(diameter, output_type="ndarray")
        if len(pairs) == 0:
            return
        i, j = pairs[:, 0], pairs[:, 1]
        d = self.positions[j] - self.positions[i]
        dist = np.linalg.norm(d, axis=1)
        dist = np.where(dist > 0.0, dist, 1e-12)
        normal = d / dist[:, None]
        overlap = diameter - dist
        vn = np.einsum("ij,ij->i", self.velocities[j] - self.velocities[i], normal)
        m_eff = 0.5 * self.sphere_mass
        magnitude = np.maximum(0.0, self.kn_s2s * overlap - self.gn_s2s * m_eff * vn)
        f = normal * magnitude[:, None]
        np.add.at(forces, j, f)
        np.add.at(forces, i, -f)

    def _add_wall_forces(self, forces: np.ndarray) -> None:
        half = 0.5 * self.box_dims
        r = self.sphere_radius
        for axis in range(3):
            x = self.positions[:, axis]
            v = self.velocities[:, axis]
            low = np.clip(r - (x + half[axis]), 0.0, None)
            high = np.clip(r - (half[axis] - x), 0.0, None)
            f_low = np.where(low > 0, np.maximum(0.0, self.kn_s2w * low - self.gn_s2w * self.sphere_mass * v), 0.0)
            f_high = np.where(high > 0, np.maximum(0.0, self.kn_s2w * high + self.gn_s2w * self.sphere_mass * v), 0.0)
            forces[:, axis] += f_low - f_high

    def _add_mesh_forces(self, m: _BoundaryMesh, forces: np.ndarray) -> None:
        center = m.center
        reach = np.hypot(m.radius, m.half_width) + self.sphere_radius
        candidates = np.flatnonzero(np.linalg.norm(self.positions - center, axis=1) < reach)
        if len(candidates) == 0:
            return

        rel = self.positions[candidates] - center
        local = m.rotation.inv().apply(rel)
        radial = local.copy()
        radial[:, 1] = 0.0
        rho = np.linalg.norm(radial, axis=1)
        inside = (np.abs(local[:, 1]) <= m.half_width) & (rho > 0.0)
        overlap = m.radius + self.sphere_radius - rho
        hit = inside & (overlap > 0.0)
        if not np.any(hit):
            return

        idx = candidates[hit]
        rel = rel[hit]
        normal = m.rotation.apply(radial[hit] / rho[hit][:, None])
        contact_velocity = m.velocity + np.cross(m.angular_velocity, rel)
        vn = np.einsum("ij,ij->i", self.velocities[idx] - contact_velocity, normal)
        magnitude = np.maximum(0.0, self.kn_s2m * overlap[hit] - self.gn_s2m * self.sphere_mass * vn)
        f = normal * magnitude[:, None]
        np.add.at(forces, idx, f)

        m.force = -f.sum(axis=0)
        m.torque = -np.cross(rel, f).sum(axis=0)
