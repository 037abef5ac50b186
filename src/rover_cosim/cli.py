#!/usr/bin/env python3
"""
Rover on granular terrain: command-line driver.

Run a settling pass to produce a terrain checkpoint, then a testing pass that
loads it and drives the rover across it:

    rover-cosim params.json 0 checkpoint 0     # settling, writes checkpoint.csv
    rover-cosim params.json 1 checkpoint 15    # testing, gravity tilted 15 deg
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import numpy as np

from .config import (CHASSIS_MESH_FILE, MARS_GRAVITY_MAGNITUDE, TIME_RUNNING, TIME_SETTLING,
                     WHEEL_MESH_FILE, ConfigError, GranularParameters, RoverGeometry,
                     gravity_vector, load_parameters)
from .recording import FrameRecorder, load_body_trajectories, write_checkpoint
from .simulation import (CoSimulation, PhaseController, RoverBuilder, SimulationContext,
                         SimulationPhase)
from .solvers import GranularTerrain, OutputMode, RigidBodySystem
from .terrain import CheckpointError, checkpoint_path, initialize_terrain
from .visualization import plot_body_trajectories

logger = logging.getLogger(__name__)

USAGE = ("{prog} <json_file> <run_mode: 0-settling, 1-running> "
         "<checkpoint_file_base> <gravity angle (deg)>")


class _UsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    """Reports bad arguments to the caller instead of exiting with status 2."""

    def error(self, message):
        raise _UsageError(message)


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog=prog, usage=USAGE.format(prog="%(prog)s"),
                             description='Rover / granular terrain co-simulation')
    parser.add_argument('config_file', help='JSON parameter file')
    parser.add_argument('run_mode', type=int, choices=[int(p) for p in SimulationPhase],
                        help='0 for settling, 1 for testing')
    parser.add_argument('checkpoint_file_base',
                        help='Checkpoint path without the .csv extension')
    parser.add_argument('gravity_angle', type=float,
                        help='Gravity rotation about +Y in degrees')
    parser.add_argument('--seed', type=int, default=None,
                        help='Seed for the initial particle sampling')
    parser.add_argument('--plot', action='store_true',
                        help='Save a plot of the recorded body trajectories')
    return parser


def show_usage(prog: str) -> None:
    print("usage: " + USAGE.format(prog=prog))


def create_simulation(params: GranularParameters, phase: SimulationPhase,
                      checkpoint_base: str, gravity_angle: float,
                      geometry: Optional[RoverGeometry] = None,
                      seed: Optional[int] = None) -> CoSimulation:
    """
    Assemble both solvers, the rover and the recorder for one run.

    Raises:
        CheckpointError: In testing mode, when the checkpoint cannot be read or
            holds no particles
        ConfigError: In settling mode, when the fill region samples no particles
    """
    geometry = geometry or RoverGeometry()
    phase = SimulationPhase(phase)
    gravity = gravity_vector(gravity_angle)
    print(f"Gravity ({gravity_angle:g}deg): {gravity[0]:g} {gravity[1]:g} {gravity[2]:g}")

    terrain = GranularTerrain(
        params.sphere_radius, params.sphere_density,
        (params.box_X, params.box_Y, params.box_Z),
        kn_s2s=params.normalStiffS2S, kn_s2w=params.normalStiffS2W, kn_s2m=params.normalStiffS2M,
        gn_s2s=params.normalDampS2S, gn_s2w=params.normalDampS2W, gn_s2m=params.normalDampS2M,
        gravity=gravity,
    )
    points = initialize_terrain(phase, params, checkpoint_base, seed)
    if len(points) == 0:
        if phase is SimulationPhase.TESTING:
            path = checkpoint_path(checkpoint_base)
            raise CheckpointError(f"Checkpoint file {path} contains no particles", path)
        center, hdims = params.sampling_region()
        raise ConfigError(f"Fill region with half-dimensions {hdims} around {center} "
                          f"holds no particles; enlarge the box or the fill range")
    terrain.set_particle_positions(points)

    rigid = RigidBodySystem(gravity)
    builder = RoverBuilder(geometry, params.data_file(WHEEL_MESH_FILE),
                           params.data_file(CHASSIS_MESH_FILE))
    rover = builder.build(rigid, np.array([-params.box_X / 4.0, 0.0, 0.0]))

    # Wheel meshes must be registered after every wheel exists, before initialize()
    rover.register_meshes(terrain)
    terrain.set_output_mode(OutputMode(params.write_mode))
    terrain.initialize()
    print(f"{terrain.num_meshes} soup families")

    # start well above the terrain
    context = SimulationContext(rover, height_reference=params.box_Z + geometry.chassis_to_bottom)

    controller = PhaseController(phase)
    controller.configure_terrain(terrain)
    time_end = TIME_SETTLING if phase is SimulationPhase.SETTLING else TIME_RUNNING

    recorder = FrameRecorder(params.output_dir, params.step_size, params.out_fps)
    return CoSimulation(context, rigid, terrain, controller, params.step_size, time_end, recorder)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit status."""
    argv = sys.argv[1:] if argv is None else argv
    prog = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "rover-cosim"

    try:
        args = build_parser(prog).parse_args(argv)
        params = load_parameters(args.config_file)
    except (_UsageError, ConfigError) as e:
        print(f"Error: {e}")
        show_usage(prog)
        return 1

    logging.basicConfig(level=logging.DEBUG if params.verbose else logging.INFO)
    phase = SimulationPhase(args.run_mode)

    try:
        simulation = create_simulation(params, phase, args.checkpoint_file_base,
                                       args.gravity_angle, seed=args.seed)
    except CheckpointError as e:
        print("ERROR reading checkpoint file")
        logger.error(str(e))
        return 1
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    print(f"Total rover Mars weight in CGS: "
          f"{simulation.context.rover.total_mass * MARS_GRAVITY_MAGNITUDE:f}")

    summary = simulation.run()

    if phase is SimulationPhase.SETTLING:
        write_checkpoint(simulation.terrain, args.checkpoint_file_base)

    print(f"Simulated {summary.simulated_time:g} s in {summary.steps} steps, "
          f"{summary.frames} frames")
    print(f"Time: {summary.wall_time:f} seconds")

    if args.plot:
        labels = [w.position.value for w in simulation.context.rover.wheels] + ["chassis"]
        fig = plot_body_trajectories(load_body_trajectories(params.output_dir), labels)
        path = os.path.join(params.output_dir, "trajectories.png")
        fig.savefig(path)
        print(f"Saved trajectory plot to {path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
