import pytest
import numpy as np
import json
import sys
import os
import matplotlib
matplotlib.use("Agg")

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rover_cosim.cli import build_parser, create_simulation, main
from rover_cosim.config import GranularParameters, TIME_RUNNING, TIME_SETTLING
from rover_cosim.recording import list_recorded_frames
from rover_cosim.simulation import SimulationPhase
from rover_cosim.terrain import load_checkpoint


def small_params(tmp_path):
    """A coarse bed that runs in well under a second."""
    return {
        "sphere_radius": 1.0,
        "sphere_density": 1.0,
        "box_X": 10.0,
        "box_Y": 10.0,
        "box_Z": 10.0,
        "step_size": 0.05,
        "output_dir": str(tmp_path / "out"),
        "normalStiffS2S": 100.0,
        "normalStiffS2W": 100.0,
        "normalStiffS2M": 100.0,
        "normalDampS2S": 0.0,
        "normalDampS2W": 0.0,
        "normalDampS2M": 0.0,
        "out_fps": 10,
    }


def write_config(tmp_path, params=None):
    path = tmp_path / "params.json"
    path.write_text(json.dumps(params or small_params(tmp_path)))
    return str(path)


class TestArguments:
    """Test command-line validation"""

    def test_no_arguments(self, capsys):
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_bad_run_mode(self, tmp_path, capsys):
        assert main([write_config(tmp_path), "2", str(tmp_path / "cp"), "0"]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_bad_gravity_angle(self, tmp_path, capsys):
        assert main([write_config(tmp_path), "0", str(tmp_path / "cp"), "steep"]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_missing_config(self, tmp_path, capsys):
        assert main([str(tmp_path / "absent.json"), "0", str(tmp_path / "cp"), "0"]) == 1
        assert "Error:" in capsys.readouterr().out

    def test_parser_fields(self):
        args = build_parser("rover-cosim").parse_args(["p.json", "1", "cp", "12.5", "--seed", "3"])
        assert args.config_file == "p.json"
        assert args.run_mode == 1
        assert args.checkpoint_file_base == "cp"
        assert args.gravity_angle == 12.5
        assert args.seed == 3
        assert args.plot is False


class TestCreateSimulation:
    """Test assembly of a run"""

    def test_settling_setup(self, tmp_path):
        params = GranularParameters(**small_params(tmp_path))
        simulation = create_simulation(params, SimulationPhase.SETTLING, str(tmp_path / "cp"),
                                       0.0, seed=0)

        assert simulation.time_end == TIME_SETTLING
        assert simulation.terrain.num_meshes == 6
        assert simulation.terrain.num_particles > 0
        assert simulation.terrain.mesh_collision is False
        assert simulation.recorder.out_steps == 2
        assert simulation.context.height_reference == pytest.approx(10.0 + 42.4)
        chassis = simulation.context.rover.chassis.body
        np.testing.assert_allclose(simulation.rigid.body_position(chassis), [-2.5, 0.0, 0.0])

    def test_testing_setup_loads_checkpoint(self, tmp_path):
        (tmp_path / "cp.csv").write_text("x,y,z\n0,0,-4\n2,0,-4\n")
        params = GranularParameters(**small_params(tmp_path))

        simulation = create_simulation(params, SimulationPhase.TESTING, str(tmp_path / "cp"), 15.0)

        assert simulation.time_end == TIME_RUNNING
        assert simulation.terrain.num_particles == 2
        assert simulation.terrain.mesh_collision is True
        np.testing.assert_allclose(simulation.rigid.gravity, simulation.terrain.gravity)
        assert simulation.rigid.gravity[0] < 0.0


class TestRuns:
    """Test complete settling and testing runs"""

    def test_testing_without_checkpoint(self, tmp_path, capsys):
        assert main([write_config(tmp_path), "1", str(tmp_path / "missing"), "0"]) == 1
        assert "ERROR reading checkpoint file" in capsys.readouterr().out

    def test_testing_with_empty_checkpoint(self, tmp_path, capsys):
        """A header-only checkpoint has no particles to drive on"""
        (tmp_path / "cp.csv").write_text("x,y,z\n")

        assert main([write_config(tmp_path), "1", str(tmp_path / "cp"), "0"]) == 1
        assert "ERROR reading checkpoint file" in capsys.readouterr().out

    def test_settling_with_empty_fill_region(self, tmp_path, capsys):
        """A box too shallow for the wall margin samples no particles"""
        params = dict(small_params(tmp_path), box_Z=6.0)

        assert main([write_config(tmp_path, params), "0", str(tmp_path / "cp"), "0"]) == 1
        assert "Error:" in capsys.readouterr().out
        assert not (tmp_path / "cp.csv").exists()

    def test_invalid_utf8_config(self, tmp_path, capsys):
        path = tmp_path / "params.json"
        path.write_bytes(b'{"sphere_radius": \xff\xfe}')

        assert main([str(path), "0", str(tmp_path / "cp"), "0"]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_non_string_output_dir(self, tmp_path, capsys):
        params = dict(small_params(tmp_path), output_dir=5)

        assert main([write_config(tmp_path, params), "0", str(tmp_path / "cp"), "0"]) == 1
        assert "output_dir" in capsys.readouterr().out

    def test_settle_then_test(self, tmp_path, capsys):
        config = write_config(tmp_path)
        checkpoint = str(tmp_path / "cp")

        assert main([config, "0", checkpoint, "0", "--seed", "1"]) == 0
        out = capsys.readouterr().out
        assert "6 soup families" in out
        assert "Total rover Mars weight in CGS" in out
        settled = load_checkpoint(checkpoint + ".csv")
        assert len(settled) > 0
        assert len(list_recorded_frames(str(tmp_path / "out"))) == 10

        assert main([config, "1", checkpoint, "10", "--plot"]) == 0
        out = capsys.readouterr().out
        assert "Gravity (10deg)" in out
        assert os.path.exists(tmp_path / "out" / "trajectories.png")
