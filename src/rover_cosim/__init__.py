"""
Rover Co-Simulation: a six-wheeled rover driven across granular terrain.

A rigid-body solver (rover) and a granular solver (terrain) are coupled in a
staggered fixed-step loop: wheel motion goes to the terrain, contact forces
come back to the wheels one step later.

This package implements:
- Rover model construction with index-synchronized wheel meshes
- Terrain initialization by layered Poisson-disk sampling or checkpoint loading
- The co-simulation stepper and the settling/testing phase controller
- Frame recording, checkpoints, and replay of recorded runs
- Reference rigid-body and granular backends for running without a native engine
"""

from .config import GranularParameters, RoverGeometry, gravity_vector, load_parameters
from .simulation import (CoSimulation, PhaseController, RoverBuilder, RoverModel,
                         SimulationContext, SimulationPhase)
from .terrain import initialize_terrain, load_checkpoint
from .recording import FrameRecorder
from .solvers import GranularTerrain, RigidBodySystem

__version__ = "1.0.0"
__author__ = "Rover Co-Simulation Team"

__all__ = [
    "CoSimulation",
    "FrameRecorder",
    "GranularParameters",
    "GranularTerrain",
    "PhaseController",
    "RigidBodySystem",
    "RoverBuilder",
    "RoverGeometry",
    "RoverModel",
    "SimulationContext",
    "SimulationPhase",
    "gravity_vector",
    "initialize_terrain",
    "load_checkpoint",
    "load_parameters",
]
