"""Unit tests for the fixed-step integrators and Van-der-Pol trajectories.

Tests integration accuracy, divergence detection, and the geometric
properties of generated target trajectories.
"""

import numpy as np
import pytest

from gpdata.errors import IntegrationDivergence
from gpdata.sim.integrators import euler_step, integrate_fixed_step, rk4_step
from gpdata.sim.types import Trajectory
from gpdata.sim.van_der_pol import (
    generate_van_der_pol_trajectory,
    plane_embedding,
    van_der_pol_dynamics,
)


class TestIntegrators:
    """Tests for euler_step, rk4_step and integrate_fixed_step."""

    def test_rk4_exponential_decay(self):
        """RK4 on dx/dt = -x matches exp(-t) closely."""
        states = integrate_fixed_step(lambda x: -x, np.array([1.0]), 0.1, 10)
        assert states.shape == (11, 1)
        assert abs(states[-1, 0] - np.exp(-1.0)) < 1e-6

    def test_euler_is_first_order(self):
        """Euler error shrinks roughly linearly with the step size."""
        exact = np.exp(-1.0)
        err_coarse = abs(integrate_fixed_step(lambda x: -x, [1.0], 0.1, 10, "euler")[-1, 0] - exact)
        err_fine = abs(integrate_fixed_step(lambda x: -x, [1.0], 0.05, 20, "euler")[-1, 0] - exact)
        assert 1.7 < err_coarse / err_fine < 2.3

    def test_single_steps(self):
        """Single steps agree with the formulas on a linear system."""
        A = np.array([[0.0, 1.0], [-1.0, 0.0]])
        x = np.array([1.0, 0.0])
        np.testing.assert_allclose(euler_step(x, 0.1, lambda s: A @ s), x + 0.1 * A @ x)
        x_rk4 = rk4_step(x, 0.1, lambda s: A @ s)
        np.testing.assert_allclose(x_rk4, [np.cos(0.1), -np.sin(0.1)], atol=1e-6)

    def test_blow_up_raises(self):
        """dx/dt = x² from x = 1 diverges at t = 1."""
        with pytest.raises(IntegrationDivergence) as excinfo:
            integrate_fixed_step(lambda x: x**2, np.array([1.0]), 0.01, 300)
        assert excinfo.value.context["step"] >= 90

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            integrate_fixed_step(lambda x: x, [1.0], 0.0, 10)
        with pytest.raises(ValueError):
            integrate_fixed_step(lambda x: x, [1.0], 0.1, -1)
        with pytest.raises(ValueError):
            integrate_fixed_step(lambda x: x, [1.0], 0.1, 10, method="midpoint")


class TestVanDerPolDynamics:
    """Tests for the oscillator vector field and plane embedding."""

    def test_vector_field(self):
        np.testing.assert_allclose(van_der_pol_dynamics(np.array([0.0, 1.0]), 0.5, 2.0), [2.0, 1.0])
        np.testing.assert_allclose(van_der_pol_dynamics(np.array([2.0, 0.0]), 0.5, 1.0), [0.0, -2.0])

    def test_plane_embedding(self):
        E = plane_embedding((0, 2))
        np.testing.assert_allclose(E.T @ E, np.eye(2))
        np.testing.assert_allclose(E @ [1.0, 2.0], [1.0, 0.0, 2.0])

    @pytest.mark.parametrize("plane", [(0, 0), (0, 3), (1,)])
    def test_invalid_plane(self, plane):
        with pytest.raises(ValueError):
            plane_embedding(plane)


class TestGenerateTrajectory:
    """Tests for generate_van_der_pol_trajectory."""

    @pytest.fixture
    def trajectory(self) -> Trajectory:
        return generate_van_der_pol_trajectory(
            eta=0.5, v=1.0, offset=[2.0, 0.0, 0.0], scale=1.0, duration=20.0, dt=0.01,
            name="vdp1",
        )

    def test_shapes(self, trajectory):
        assert trajectory.n_samples == 2001
        assert trajectory.poses.shape == (2001, 4, 4)
        assert trajectory.twists.shape == (2001, 6)
        assert trajectory.dt == pytest.approx(0.01)
        assert trajectory.name == "vdp1"

    def test_rotations_orthonormal(self, trajectory):
        R = trajectory.rotations
        RtR = np.einsum("kji,kjl->kil", R, R)
        assert np.max(np.abs(RtR - np.eye(3))) < 1e-9
        np.testing.assert_allclose(np.linalg.det(R), 1.0, atol=1e-9)

    def test_starts_at_initial_position(self, trajectory):
        np.testing.assert_allclose(trajectory.positions[0], [0.0, 0.0, 0.0], atol=1e-12)

    def test_motion_stays_in_plane(self, trajectory):
        np.testing.assert_allclose(trajectory.positions[:, 2], 0.0, atol=1e-12)
        np.testing.assert_allclose(trajectory.twists[:, 2:], 0.0, atol=1e-12)

    def test_limit_cycle_amplitude(self, trajectory):
        """The Van-der-Pol limit cycle has amplitude close to 2 around the offset."""
        x = trajectory.positions[1000:, 0] - 2.0
        assert 1.8 < np.max(np.abs(x)) < 2.2

    def test_twist_matches_finite_difference(self, trajectory):
        p = trajectory.positions
        fd = (p[2:] - p[:-2]) / (2 * trajectory.dt)
        np.testing.assert_allclose(trajectory.twists[1:-1, :3], fd, atol=2e-3)

    def test_body_twist_uses_orientation(self):
        R = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
        traj = generate_van_der_pol_trajectory(
            eta=0.5, v=1.0, offset=[2.0, 0.0, 0.0], scale=1.0, duration=1.0, dt=0.01, R_init=R
        )
        p_dot = van_der_pol_dynamics(np.array([-2.0, 0.0]), 0.5, 1.0)
        world_velocity = np.array([p_dot[0], p_dot[1], 0.0])
        np.testing.assert_allclose(traj.twists[0, :3], R.T @ world_velocity, atol=1e-12)

    def test_arrays_read_only(self, trajectory):
        with pytest.raises(ValueError):
            trajectory.poses[0, 0, 0] = 2.0

    def test_divergent_parameters_raise(self):
        """Negative damping with a large initial state blows up."""
        with pytest.raises(IntegrationDivergence):
            generate_van_der_pol_trajectory(
                eta=-50.0, v=1.0, offset=[0.0, 0.0, 0.0], scale=1.0, duration=20.0, dt=0.01,
                p_init=[10.0, 0.0, 0.0],
            )

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"duration": 0.0},
            {"dt": -0.01},
            {"scale": 0.0},
            {"v": 0.0},
            {"R_init": 2.0 * np.eye(3)},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        params = dict(eta=0.5, v=1.0, offset=[2.0, 0.0, 0.0], scale=1.0, duration=1.0, dt=0.01)
        params.update(kwargs)
        with pytest.raises(ValueError):
            generate_van_der_pol_trajectory(**params)


class TestTrajectoryType:
    """Tests for Trajectory validation."""

    def test_rejects_non_increasing_times(self):
        with pytest.raises(ValueError):
            Trajectory(
                times=np.array([0.0, 0.0]),
                poses=np.tile(np.eye(4), (2, 1, 1)),
                twists=np.zeros((2, 6)),
            )

    def test_rejects_shape_mismatch(self):
        with pytest.raises(ValueError):
            Trajectory(times=np.arange(3) * 0.1, poses=np.tile(np.eye(4), (2, 1, 1)), twists=np.zeros((3, 6)))
