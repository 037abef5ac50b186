"""
Configuration for the rover/granular-terrain co-simulation.

Two parameter groups are defined here:

- RoverGeometry: the fixed rover constants (masses, wheel stations, chassis
  box dimensions). Values default to the MER-class rover used by the demo and
  are expressed in CGS units (cm, g, s).
- GranularParameters: the terrain solver parameters read from a JSON file
  (particle radius/density, box dimensions, step size, contact coefficients,
  output settings).

Physical Models:
    Wheel inertia (cylinder about the axle, disk about the other axes):
        Ixx = Izz = m r^2 / 4 + m / 12
        Iyy = m r^2 / 2
    Chassis inertia (solid box):
        Ixx = m (ly^2 + lz^2) / 12, ...
"""

import json
import logging
import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

METERS_TO_CM = 100.0
KG_TO_GRAM = 1000.0

MARS_GRAVITY_MAGNITUDE = 370.0  # [cm/s^2]

TIME_SETTLING = 1.0
TIME_RUNNING = 10.0

WALL_MARGIN = 2.0  # sampling margin kept from every box face [cm]

WHEEL_MESH_FILE = "meshes/wheel_scaled.obj"
CHASSIS_MESH_FILE = "meshes/MER_body.obj"


class ConfigError(ValueError):
    """Raised when a parameter file cannot be read or is incomplete."""


@dataclass
class RoverGeometry:
    """Rover mass properties and wheel stations."""

    wheel_radius: float = 0.13 * METERS_TO_CM
    wheel_width: float = 0.16 * METERS_TO_CM
    mass_reduction: float = 1.0
    wheel_mass_kg: float = 4.0
    chassis_mass_kg: float = 161.0

    # Distance wheels are in front of / behind the chassis COM
    front_wheel_offset_x: float = 0.7 * METERS_TO_CM
    front_wheel_offset_y: float = 0.6 * METERS_TO_CM
    middle_wheel_offset_x: float = -0.01 * METERS_TO_CM
    middle_wheel_offset_y: float = 0.55 * METERS_TO_CM
    rear_wheel_offset_x: float = -0.51 * METERS_TO_CM
    rear_wheel_offset_y: float = 0.6 * METERS_TO_CM
    wheel_offset_z: float = -0.164 * METERS_TO_CM

    # Chassis is treated as a solid box inertially
    chassis_length_x: float = 2.0 * METERS_TO_CM
    chassis_length_y: float = 2.0 * METERS_TO_CM
    chassis_length_z: float = 1.5 * METERS_TO_CM

    chassis_mesh_scale: float = METERS_TO_CM
    wheel_angular_rate: float = math.pi  # motor ramp slope [rad/s]

    def __post_init__(self):
        """Validate geometry."""
        if self.wheel_radius <= 0 or self.wheel_width <= 0:
            raise ValueError("Wheel dimensions must be positive")
        if self.mass_reduction <= 0:
            raise ValueError(f"Mass reduction must be positive, got {self.mass_reduction}")
        if self.wheel_mass_kg <= 0 or self.chassis_mass_kg <= 0:
            raise ValueError("Masses must be positive")
        if min(self.chassis_length_x, self.chassis_length_y, self.chassis_length_z) <= 0:
            raise ValueError("Chassis dimensions must be positive")

    @property
    def wheel_mass(self) -> float:
        return self.mass_reduction * self.wheel_mass_kg * KG_TO_GRAM

    @property
    def chassis_mass(self) -> float:
        return self.mass_reduction * self.chassis_mass_kg * KG_TO_GRAM

    @property
    def wheel_inertia(self) -> np.ndarray:
        """Diagonal inertia of a wheel rotating about its local y axis."""
        m, r = self.wheel_mass, self.wheel_radius
        ixx = 0.25 * m * r * r + m / 12.0
        iyy = 0.5 * m * r * r
        return np.array([ixx, iyy, ixx])

    @property
    def chassis_inertia(self) -> np.ndarray:
        m = self.chassis_mass
        lx, ly, lz = self.chassis_length_x, self.chassis_length_y, self.chassis_length_z
        return np.array([
            (ly * ly + lz * lz) * m / 12.0,
            (lx * lx + lz * lz) * m / 12.0,
            (lx * lx + ly * ly) * m / 12.0,
        ])

    @property
    def wheel_scaling(self) -> np.ndarray:
        return np.diag([self.wheel_radius * 2.0, self.wheel_width, self.wheel_radius * 2.0])

    @property
    def chassis_scaling(self) -> np.ndarray:
        return np.diag([self.chassis_mesh_scale] * 3)

    @property
    def chassis_to_bottom(self) -> float:
        """Height from the chassis reference point to the bottom of the wheels."""
        return abs(self.wheel_offset_z) + 2.0 * self.wheel_radius

    def wheel_offsets(self) -> Tuple[np.ndarray, ...]:
        """Wheel positions relative to the chassis, in mesh registration order.

        Front, middle and rear stations, each as a (+y, -y) pair.
        """
        z = self.wheel_offset_z
        stations = [
            (self.front_wheel_offset_x, self.front_wheel_offset_y),
            (self.middle_wheel_offset_x, self.middle_wheel_offset_y),
            (self.rear_wheel_offset_x, self.rear_wheel_offset_y),
        ]
        offsets = []
        for x, y in stations:
            offsets.append(np.array([x, y, z]))
            offsets.append(np.array([x, -y, z]))
        return tuple(offsets)


@dataclass
class GranularParameters:
    """Granular terrain parameters, as read from the JSON parameter file."""

    sphere_radius: float
    sphere_density: float
    box_X: float
    box_Y: float
    box_Z: float
    step_size: float
    output_dir: str

    normalStiffS2S: float = 1e7
    normalStiffS2W: float = 1e7
    normalStiffS2M: float = 1e7
    normalDampS2S: float = 1e4
    normalDampS2W: float = 1e4
    normalDampS2M: float = 1e4

    write_mode: str = "csv"
    verbose: bool = False
    data_dir: str = "../data/"
    fill_bottom: float = 0.0
    fill_top: Optional[float] = None
    out_fps: float = 50.0

    extras: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate parameters."""
        if self.sphere_radius <= 0:
            raise ValueError(f"Sphere radius must be positive, got {self.sphere_radius}")
        if self.sphere_density <= 0:
            raise ValueError(f"Sphere density must be positive, got {self.sphere_density}")
        if min(self.box_X, self.box_Y, self.box_Z) <= 0:
            raise ValueError("Box dimensions must be positive")
        if self.step_size <= 0:
            raise ValueError(f"Step size must be positive, got {self.step_size}")
        if self.out_fps <= 0:
            raise ValueError(f"Output rate must be positive, got {self.out_fps}")
        for name in ("output_dir", "data_dir"):
            if not isinstance(getattr(self, name), str):
                raise ValueError(f"{name} must be a path string, got {getattr(self, name)!r}")
        self.write_mode = str(self.write_mode).lower()
        if self.write_mode not in ("csv", "none"):
            raise ValueError(f"Unsupported write mode '{self.write_mode}'")
        if self.fill_top is None:
            self.fill_top = self.box_Z / 2.0

    def data_file(self, relative_path: str) -> str:
        return os.path.join(self.data_dir, relative_path)

    def sampling_region(self) -> Tuple[np.ndarray, np.ndarray]:
        """Center and half-dimensions of the initial fill volume."""
        hdims = np.array([
            self.box_X / 2.0 - WALL_MARGIN,
            self.box_Y / 2.0 - WALL_MARGIN,
            abs((self.fill_bottom - self.fill_top) / 2.0) - WALL_MARGIN,
        ])
        center = np.array([0.0, 0.0, (self.fill_bottom + self.fill_top) / 2.0])
        return center, hdims


_REQUIRED_KEYS = ("sphere_radius", "sphere_density", "box_X", "box_Y", "box_Z",
                  "step_size", "output_dir")
_OPTIONAL_KEYS = ("normalStiffS2S", "normalStiffS2W", "normalStiffS2M",
                  "normalDampS2S", "normalDampS2W", "normalDampS2M",
                  "write_mode", "verbose", "data_dir", "fill_bottom", "fill_top", "out_fps")


def load_parameters(path: str) -> GranularParameters:
    """
    Load granular parameters from a JSON file.

    Keys the terrain backend does not consume (tangential coefficients,
    friction, cohesion, ...) are kept in ``extras``.

    Raises:
        ConfigError: If the file is unreadable, not JSON, or misses a key
    """
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read parameter file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Parameter file {path} must contain a JSON object")

    missing = [key for key in _REQUIRED_KEYS if key not in raw]
    if missing:
        raise ConfigError(f"Parameter file {path} is missing {', '.join(missing)}")

    kwargs = {key: raw[key] for key in _REQUIRED_KEYS + _OPTIONAL_KEYS if key in raw}
    extras = {key: value for key, value in raw.items() if key not in kwargs}
    if extras:
        logger.debug(f"Unused parameter keys: {sorted(extras)}")

    try:
        return GranularParameters(extras=extras, **kwargs)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid parameters in {path}: {e}") from e


def gravity_vector(angle_deg: float, magnitude: float = MARS_GRAVITY_MAGNITUDE) -> np.ndarray:
    """Gravity rotated about +y by ``angle_deg`` from straight down."""
    angle = math.radians(angle_deg)
    return np.array([-magnitude * math.sin(angle), 0.0, -magnitude * math.cos(angle)])
