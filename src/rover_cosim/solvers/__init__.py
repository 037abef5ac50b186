"""
Solver collaborators for the co-simulation.

Components:
    - RigidBodySolver / TerrainSolver: protocols the orchestrator depends on
    - RigidBodySystem: reference multibody backend with kinematic revolute drives
    - GranularTerrain: reference spring-dashpot granular backend
"""

from .interfaces import OutputMode, RigidBodySolver, TerrainSolver
from .rigid import RigidBodySystem
from .granular import GranularTerrain, SNAPSHOT_HEADER

__all__ = [
    "OutputMode",
    "RigidBodySolver",
    "TerrainSolver",
    "RigidBodySystem",
    "GranularTerrain",
    "SNAPSHOT_HEADER",
]
