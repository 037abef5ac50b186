import pytest
import numpy as np
from unittest.mock import Mock
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rover_cosim.config import RoverGeometry
from rover_cosim.simulation import JOINT_FRAME, WHEEL_ORDER, RampFunction, RoverBuilder, WheelPosition
from rover_cosim.solvers import GranularTerrain, RigidBodySystem


CHASSIS_POSITION = np.array([-25.0, 0.0, 0.0])


@pytest.fixture
def built():
    rigid = RigidBodySystem()
    builder = RoverBuilder(RoverGeometry(), "wheel.obj", "body.obj")
    return rigid, builder.build(rigid, CHASSIS_POSITION)


class TestRoverBuilder:
    """Test chassis and wheel construction"""

    def test_six_wheels_in_fixed_order(self, built):
        _, rover = built
        assert len(rover.wheels) == 6
        assert [w.position for w in rover.wheels] == list(WHEEL_ORDER)
        assert [w.index for w in rover.wheels] == list(range(6))
        assert rover.wheels[0].position is WheelPosition.FRONT_LEFT
        assert rover.wheels[-1].position is WheelPosition.REAR_RIGHT

    def test_distinct_bodies(self, built):
        rigid, rover = built
        bodies = [rover.chassis.body] + [w.body for w in rover.wheels]
        assert len(set(bodies)) == 7
        assert rigid.num_bodies == 7

    def test_chassis_starts_fixed(self, built):
        rigid, rover = built
        assert rover.chassis.fixed
        assert rigid.is_body_fixed(rover.chassis.body)
        np.testing.assert_allclose(rigid.body_position(rover.chassis.body), CHASSIS_POSITION)

    def test_wheel_positions(self, built):
        """Wheels sit at chassis + offset, left wheels on +y"""
        rigid, rover = built
        geometry = rover.geometry
        for wheel, offset in zip(rover.wheels, geometry.wheel_offsets()):
            np.testing.assert_allclose(rigid.body_position(wheel.body), CHASSIS_POSITION + offset)
        front_left = rigid.body_position(rover.wheels[0].body)
        front_right = rigid.body_position(rover.wheels[1].body)
        assert front_left[1] == pytest.approx(60.0)
        assert front_right[1] == pytest.approx(-60.0)
        assert front_left[2] == pytest.approx(-16.4)

    def test_wheel_mass_and_inertia(self, built):
        """Solid cylinder about the axle, disk approximation about the others"""
        rigid, rover = built
        m, r = 4000.0, 13.0
        expected = [0.25 * m * r * r + m / 12.0, 0.5 * m * r * r, 0.25 * m * r * r + m / 12.0]
        for wheel in rover.wheels:
            assert rigid.body_mass(wheel.body) == pytest.approx(m)
            np.testing.assert_allclose(rigid.body_inertia(wheel.body), expected)

    def test_chassis_inertia(self, built):
        rigid, rover = built
        m = 161000.0
        expected = [(200.0 ** 2 + 150.0 ** 2) * m / 12, (200.0 ** 2 + 150.0 ** 2) * m / 12,
                    (200.0 ** 2 + 200.0 ** 2) * m / 12]
        np.testing.assert_allclose(rigid.body_inertia(rover.chassis.body), expected)
        np.testing.assert_allclose(rover.chassis.inertia, expected)

    def test_mesh_proxies_follow_wheel_order(self, built):
        _, rover = built
        proxies = rover.mesh_proxies
        assert len(proxies) == 6
        for wheel, proxy in zip(rover.wheels, proxies):
            assert wheel.mesh is proxy
            assert proxy.filename == "wheel.obj"
            assert proxy.scale_factors == pytest.approx((26.0, 16.0, 26.0))
            np.testing.assert_array_equal(proxy.translation, np.zeros(3))
        assert rover.chassis.mesh.filename == "body.obj"
        assert rover.chassis.mesh.scale_factors == pytest.approx((100.0, 100.0, 100.0))

    def test_joint_and_motor_per_wheel(self, built):
        _, rover = built
        assert len(rover.joints) == 6
        assert len(rover.motors) == 6

    def test_builder_call_sequence(self):
        """Chassis first, then per wheel: body, revolute joint, angle motor"""
        rigid = Mock()
        rigid.add_body.side_effect = range(100)
        rigid.body_position.return_value = np.zeros(3)

        RoverBuilder().build(rigid, np.zeros(3))

        names = [c[0] for c in rigid.mock_calls
                 if c[0] in ("add_body", "add_revolute_joint", "add_angle_motor")]
        assert names == ["add_body"] + ["add_body", "add_revolute_joint", "add_angle_motor"] * 6
        assert rigid.add_body.call_args_list[0].kwargs["fixed"] is True
        motor_call = rigid.add_angle_motor.call_args_list[0]
        assert motor_call.args[0] == 0 and motor_call.args[1] == 1
        assert motor_call.args[4] == RampFunction(0.0, np.pi)


class TestMeshRegistration:
    """Test the wheel/mesh index correspondence"""

    def test_register_loads_meshes_in_wheel_order(self, built):
        _, rover = built
        terrain = GranularTerrain(0.5, 2.5, (100.0, 100.0, 100.0))

        rover.register_meshes(terrain)

        assert terrain.num_meshes == 6

    def test_register_passes_lists_in_order(self, built):
        _, rover = built
        terrain = Mock()
        terrain.num_meshes = 6

        rover.register_meshes(terrain)

        filenames, scalings, translations, masses = terrain.load_meshes.call_args.args
        assert filenames == ["wheel.obj"] * 6
        assert len(scalings) == len(translations) == 6
        assert masses == [4000.0] * 6

    def test_mesh_count_mismatch_raises(self, built):
        _, rover = built
        terrain = Mock()
        terrain.num_meshes = 7
        with pytest.raises(RuntimeError):
            rover.register_meshes(terrain)


class TestWheelDrive:
    """Test the kinematic angle-ramp drive"""

    def test_ramp_function(self):
        ramp = RampFunction(0.0, np.pi)
        assert ramp(0.0) == 0.0
        assert ramp(0.5) == pytest.approx(np.pi / 2)

    def test_joint_axis_along_axle(self):
        np.testing.assert_allclose(JOINT_FRAME.apply([0.0, 0.0, 1.0]), [0.0, -1.0, 0.0], atol=1e-12)

    def test_wheels_spin_at_constant_rate(self, built):
        rigid, rover = built
        for _ in range(5):
            rigid.do_step(0.01)
        for wheel in rover.wheels:
            np.testing.assert_allclose(rigid.body_angular_velocity(wheel.body),
                                       [0.0, -np.pi, 0.0], atol=1e-9)

    def test_wheel_rotation_follows_ramp(self, built):
        rigid, rover = built
        for _ in range(50):
            rigid.do_step(0.01)
        rotation = rigid.body_rotation(rover.wheels[0].body)
        assert rotation.magnitude() == pytest.approx(np.pi / 2)

    def test_fixed_chassis_holds_wheels_in_place(self, built):
        rigid, rover = built
        rigid.set_gravity(np.array([0.0, 0.0, -370.0]))
        before = [rigid.body_position(w.body) for w in rover.wheels]
        for _ in range(10):
            rigid.do_step(0.01)
        for wheel, position in zip(rover.wheels, before):
            np.testing.assert_allclose(rigid.body_position(wheel.body), position)

    def test_released_chassis_falls_with_wheels(self, built):
        rigid, rover = built
        rigid.set_gravity(np.array([0.0, 0.0, -370.0]))
        rigid.set_body_fixed(rover.chassis.body, False)
        offset_before = rigid.body_position(rover.wheels[0].body) - rigid.body_position(rover.chassis.body)

        for _ in range(10):
            rigid.do_step(0.01)

        assert rigid.body_linear_velocity(rover.chassis.body)[2] == pytest.approx(-37.0)
        offset_after = rigid.body_position(rover.wheels[0].body) - rigid.body_position(rover.chassis.body)
        np.testing.assert_allclose(offset_after, offset_before, atol=1e-9)
