"""
Reference rigid-body backend.

A small numpy implementation of the RigidBodySolver protocol, sufficient to
run the rover co-simulation without a native multibody engine. It is not a
general constraint solver:

- Bodies attached to a parent through a revolute joint are kinematic: their
  pose follows the parent, and their spin about the joint axis is prescribed
  by the joint's angle motor (locked at zero when no motor is present).
- Every unattached body that is not fixed is integrated with semi-implicit
  Euler, carrying the mass, gravity, forces and torques of all bodies attached
  to it.

Force/torque accumulators persist across steps until ``empty_accumulators`` is
called, so whatever a caller accumulated before ``do_step`` is what the step
consumes.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
from scipy.spatial.transform import Rotation

from .interfaces import AngleFunction

logger = logging.getLogger(__name__)

_Z_AXIS = np.array([0.0, 0.0, 1.0])


@dataclass
class _Body:
    mass: float
    inertia: np.ndarray
    position: np.ndarray
    rotation: Rotation
    fixed: bool = False
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    angular_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    force: np.ndarray = field(default_factory=lambda: np.zeros(3))
    torque: np.ndarray = field(default_factory=lambda: np.zeros(3))


@dataclass
class _Attachment:
    """Revolute attachment of a child body to its parent, in parent coordinates."""
    parent: int
    offset: np.ndarray
    frame: Rotation
    relative_rotation: Rotation
    angle_function: Optional[AngleFunction] = None


class RigidBodySystem:
    """
    Minimal multibody system with kinematic revolute drives.

    Bodies are stored in an arena and addressed by the integer returned from
    ``add_body``; handles are never reused or reordered.
    """

    def __init__(self, gravity: Optional[np.ndarray] = None):
        self.gravity = np.zeros(3) if gravity is None else np.asarray(gravity, dtype=float)
        self._bodies: List[_Body] = []
        self._attachments: Dict[int, _Attachment] = {}
        self._num_links = 0
        self._time = 0.0

    @property
    def time(self) -> float:
        return self._time

    @property
    def num_bodies(self) -> int:
        return len(self._bodies)

    def set_gravity(self, gravity: np.ndarray) -> None:
        self.gravity = np.asarray(gravity, dtype=float)

    def add_body(self, mass: float, inertia_xx: np.ndarray, position: np.ndarray,
                 rotation: Optional[Rotation] = None, fixed: bool = False) -> int:
        if mass <= 0:
            raise ValueError(f"Body mass must be positive, got {mass}")
        body = _Body(
            mass=float(mass),
            inertia=np.asarray(inertia_xx, dtype=float).copy(),
            position=np.asarray(position, dtype=float).copy(),
            rotation=rotation if rotation is not None else Rotation.identity(),
            fixed=fixed,
        )
        self._bodies.append(body)
        return len(self._bodies) - 1

    def _attach(self, parent: int, child: int, position: np.ndarray,
                rotation: Rotation) -> _Attachment:
        if parent == child:
            raise ValueError("A body cannot be attached to itself")
        existing = self._attachments.get(child)
        if existing is not None:
            if existing.parent != parent:
                raise ValueError(f"Body {child} is already attached to body {existing.parent}")
            return existing

        p, c = self._bodies[parent], self._bodies[child]
        parent_inv = p.rotation.inv()
        attachment = _Attachment(
            parent=parent,
            offset=parent_inv.apply(c.position - p.position),
            frame=parent_inv * rotation,
            relative_rotation=parent_inv * c.rotation,
        )
        self._attachments[child] = attachment
        return attachment

    def add_revolute_joint(self, parent: int, child: int, position: np.ndarray,
                           rotation: Rotation) -> int:
        self._attach(parent, child, position, rotation)
        self._num_links += 1
        return self._num_links - 1

    def add_angle_motor(self, parent: int, child: int, position: np.ndarray,
                        rotation: Rotation, angle_function: AngleFunction) -> int:
        attachment = self._attach(parent, child, position, rotation)
        attachment.angle_function = angle_function
        self._num_links += 1
        self._update_attached(child, attachment, self._time, 0.0)
        return self._num_links - 1

    def body_position(self, body: int) -> np.ndarray:
        return self._bodies[body].position.copy()

    def body_rotation(self, body: int) -> Rotation:
        return self._bodies[body].rotation

    def body_linear_velocity(self, body: int) -> np.ndarray:
        return self._bodies[body].velocity.copy()

    def body_angular_velocity(self, body: int) -> np.ndarray:
        return self._bodies[body].angular_velocity.copy()

    def body_mass(self, body: int) -> float:
        return self._bodies[body].mass

    def body_inertia(self, body: int) -> np.ndarray:
        return self._bodies[body].inertia.copy()

    def body_force(self, body: int) -> np.ndarray:
        return self._bodies[body].force.copy()

    def body_torque(self, body: int) -> np.ndarray:
        return self._bodies[body].torque.copy()

    def set_body_fixed(self, body: int, fixed: bool) -> None:
        b = self._bodies[body]
        b.fixed = fixed
        if fixed:
            b.velocity = np.zeros(3)
            b.angular_velocity = np.zeros(3)

    def is_body_fixed(self, body: int) -> bool:
        return self._bodies[body].fixed

    def empty_accumulators(self, body: int) -> None:
        b = self._bodies[body]
        b.force = np.zeros(3)
        b.torque = np.zeros(3)

    def accumulate_force(self, body: int, force: np.ndarray, point: np.ndarray) -> None:
        """Add a world-frame force applied at a world-frame point."""
        b = self._bodies[body]
        force = np.asarray(force, dtype=float)
        b.force = b.force + force
        b.torque = b.torque + np.cross(np.asarray(point, dtype=float) - b.position, force)

    def accumulate_torque(self, body: int, torque: np.ndarray) -> None:
        b = self._bodies[body]
        b.torque = b.torque + np.asarray(torque, dtype=float)

    def do_step(self, dt: float) -> None:
        if dt <= 0:
            raise ValueError(f"Step size must be positive, got {dt}")
        t_next = self._time + dt

        for index, body in enumerate(self._bodies):
            if index in self._attachments:
                continue
            if body.fixed:
                body.velocity = np.zeros(3)
                body.angular_velocity = np.zeros(3)
                continue
            self._integrate_root(index, body, dt)

        for child, attachment in self._attachments.items():
            self._update_attached(child, attachment, t_next, dt)

        self._time = t_next

    def _descendants(self, root: int) -> List[int]:
        found = []
        frontier = [root]
        while frontier:
            parent = frontier.pop()
            for child, attachment in self._attachments.items():
                if attachment.parent == parent:
                    found.append(child)
                    frontier.append(child)
        return found

    def _integrate_root(self, index: int, root: _Body, dt: float) -> None:
        """Advance a free body together with everything attached to it, about their joint COM."""
        group = [root] + [self._bodies[child] for child in self._descendants(index)]
        total_mass = sum(b.mass for b in group)
        com = sum(b.mass * b.position for b in group) / total_mass
        com_velocity = sum(b.mass * b.velocity for b in group) / total_mass

        force = np.zeros(3)
        torque = np.zeros(3)
        inertia = np.zeros((3, 3))
        for b in group:
            r = b.position - com
            f = b.force + b.mass * self.gravity
            force = force + f
            torque = torque + b.torque + np.cross(r, f)
            R = b.rotation.as_matrix()
            inertia = inertia + R @ np.diag(b.inertia) @ R.T
            inertia = inertia + b.mass * (np.dot(r, r) * np.eye(3) - np.outer(r, r))

        com_velocity = com_velocity + force / total_mass * dt
        omega = root.angular_velocity + np.linalg.solve(inertia, torque) * dt
        delta = Rotation.from_rotvec(omega * dt)
        new_com = com + com_velocity * dt

        root.position = new_com + delta.apply(root.position - com)
        root.rotation = delta * root.rotation
        root.velocity = com_velocity + np.cross(omega, root.position - new_com)
        root.angular_velocity = omega

    def _update_attached(self, child: int, attachment: _Attachment, t: float, dt: float) -> None:
        p = self._bodies[attachment.parent]
        c = self._bodies[child]

        angle, rate = 0.0, 0.0
        if attachment.angle_function is not None:
            angle = attachment.angle_function(t)
            if dt > 0:
                rate = (angle - attachment.angle_function(t - dt)) / dt

        spin = attachment.frame * Rotation.from_rotvec(_Z_AXIS * angle) * attachment.frame.inv()
        c.rotation = p.rotation * spin * attachment.relative_rotation
        c.position = p.position + p.rotation.apply(attachment.offset)
        axis = p.rotation.apply(attachment.frame.apply(_Z_AXIS))
        c.angular_velocity = p.angular_velocity + axis * rate
        c.velocity = p.velocity + np.cross(p.angular_velocity, c.position - p.position)
