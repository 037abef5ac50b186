import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rover_cosim.config import GranularParameters
from rover_cosim.simulation import SimulationPhase
from rover_cosim.solvers import GranularTerrain
from rover_cosim.terrain import (CheckpointError, initialize_terrain, load_checkpoint,
                                 parse_checkpoint_lines)


class TestCheckpointParsing:
    """Test positional parsing of checkpoint text"""

    def test_literal_scenario(self):
        """Header is discarded and each line becomes one point"""
        result = parse_checkpoint_lines(["header", "1.0,2.0,3.0", "4.0,5.0,6.0"])

        assert result.ok
        np.testing.assert_array_equal(result.points, [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])

    def test_n_lines_give_n_points_in_order(self):
        """N well-formed lines yield exactly N points in file order"""
        expected = np.arange(30, dtype=float).reshape(10, 3) * 0.5
        lines = ["x,y,z"] + [f"{x!r},{y!r},{z!r}" for x, y, z in expected]

        result = parse_checkpoint_lines(lines)

        assert result.points.shape == (10, 3)
        np.testing.assert_array_equal(result.points, expected)

    def test_trailing_fields_ignored(self):
        """Only the first three fields are used"""
        result = parse_checkpoint_lines(["x,y,z,vx,vy,vz", "1,2,3,7,8,9\n"])
        np.testing.assert_array_equal(result.points, [[1.0, 2.0, 3.0]])

    def test_header_only_gives_no_points(self):
        result = parse_checkpoint_lines(["x,y,z"])
        assert result.points.shape == (0, 3)
        assert result.ok

    def test_short_line_reported_and_skipped(self):
        """Lines with fewer than three fields are skipped with an error record"""
        result = parse_checkpoint_lines(["x,y,z", "1,2,3", "4,5", "6,7,8"])

        np.testing.assert_array_equal(result.points, [[1, 2, 3], [6, 7, 8]])
        assert len(result.errors) == 1
        assert result.errors[0].line_number == 3
        assert result.errors[0].text == "4,5"

    def test_non_numeric_line_reported(self):
        result = parse_checkpoint_lines(["x,y,z", "1,abc,3"])

        assert result.points.shape == (0, 3)
        assert not result.ok
        assert result.errors[0].line_number == 2

    def test_blank_lines_ignored(self):
        result = parse_checkpoint_lines(["x,y,z", "1,2,3", "", "   ", "4,5,6"])
        assert result.ok
        assert len(result.points) == 2


class TestCheckpointFiles:
    """Test loading checkpoint files from disk"""

    def test_load_literal_file(self, tmp_path):
        path = tmp_path / "settled.csv"
        path.write_text("header\n1.0,2.0,3.0\n4.0,5.0,6.0\n")

        points = load_checkpoint(str(path))

        np.testing.assert_array_equal(points, [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])

    def test_missing_file_raises(self, tmp_path):
        """Unopenable checkpoint is an I/O error carrying the path"""
        path = str(tmp_path / "missing.csv")
        with pytest.raises(CheckpointError) as excinfo:
            load_checkpoint(path)
        assert isinstance(excinfo.value, OSError)
        assert excinfo.value.path == path

    def test_lenient_load_skips_bad_lines(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("x,y,z\n1,2,3\n4,5\n")
        points = load_checkpoint(str(path))
        assert points.shape == (1, 3)

    def test_strict_load_raises_on_bad_line(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("x,y,z\n1,2,3\n4,5\n")
        with pytest.raises(CheckpointError, match=":3:"):
            load_checkpoint(str(path), strict=True)

    def test_undecodable_line_reported(self, tmp_path):
        """A line with bytes that are not UTF-8 is skipped like any other bad line"""
        path = tmp_path / "binary.csv"
        path.write_bytes(b"x,y,z\n1,2,3\n\xff,1,2\n")

        points = load_checkpoint(str(path))

        np.testing.assert_array_equal(points, [[1.0, 2.0, 3.0]])
        with pytest.raises(CheckpointError, match=":3:"):
            load_checkpoint(str(path), strict=True)

    def test_snapshot_round_trip(self, tmp_path):
        """Positions written by the terrain snapshot load back unchanged"""
        rng = np.random.default_rng(3)
        positions = rng.uniform(-4.0, 4.0, size=(25, 3))
        terrain = GranularTerrain(0.5, 2.5, (10.0, 10.0, 10.0))
        terrain.set_particle_positions(positions)

        base = str(tmp_path / "checkpoint")
        written = terrain.write_file(base)

        assert written == base + ".csv"
        loaded = load_checkpoint(written)
        assert loaded.shape == positions.shape
        np.testing.assert_array_equal(loaded, positions)


class TestTerrainInitialization:
    """Test phase-selected terrain initialization"""

    def _params(self, tmp_path):
        return GranularParameters(sphere_radius=0.5, sphere_density=2.5, box_X=10.0, box_Y=10.0,
                                  box_Z=10.0, step_size=1e-3, output_dir=str(tmp_path))

    def test_testing_phase_loads_checkpoint(self, tmp_path):
        (tmp_path / "cp.csv").write_text("x,y,z\n0,0,1\n1,1,2\n")

        points = initialize_terrain(SimulationPhase.TESTING, self._params(tmp_path),
                                    str(tmp_path / "cp"))

        np.testing.assert_array_equal(points, [[0, 0, 1], [1, 1, 2]])

    def test_testing_phase_missing_checkpoint(self, tmp_path):
        with pytest.raises(CheckpointError):
            initialize_terrain(SimulationPhase.TESTING, self._params(tmp_path),
                               str(tmp_path / "nothing"))

    def test_settling_phase_samples_fill_region(self, tmp_path):
        """Settling fills the box interior, 2 units clear of every wall"""
        points = initialize_terrain(SimulationPhase.SETTLING, self._params(tmp_path),
                                    str(tmp_path / "unused"), seed=1)

        assert len(points) > 0
        # fill region: x, y in [-3, 3]; z between 0 and 5 less the margin
        assert np.all(np.abs(points[:, :2]) <= 3.0 + 1e-9)
        assert np.all(points[:, 2] >= 2.0 - 1e-9)
        assert np.all(points[:, 2] <= 3.0 + 1e-9)
