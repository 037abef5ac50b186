"""
Co-simulation components.

Components:
    - RoverBuilder / RoverModel: chassis and six motor-driven wheels
    - PhaseController: settling/testing phase and the one-shot chassis release
    - CoSimulation: staggered fixed-step loop exchanging motion and forces
"""

from .phase import RELEASE_TIME, PhaseController, SimulationPhase
from .rover import (JOINT_FRAME, WHEEL_ORDER, Chassis, MeshProxy, RampFunction,
                    RoverBuilder, RoverModel, WheelBody, WheelPosition)
from .stepper import CoSimulation, RunSummary, SimulationContext

__all__ = [
    "RELEASE_TIME",
    "JOINT_FRAME",
    "WHEEL_ORDER",
    "Chassis",
    "CoSimulation",
    "MeshProxy",
    "PhaseController",
    "RampFunction",
    "RoverBuilder",
    "RoverModel",
    "RunSummary",
    "SimulationContext",
    "SimulationPhase",
    "WheelBody",
    "WheelPosition",
]
