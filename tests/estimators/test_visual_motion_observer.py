"""Unit tests for the Visual Motion Observer.

Tests convergence on a static target, tracking of a Van-der-Pol target
seen from the default camera, and argument validation.
"""

import unittest
import warnings

import numpy as np

from gpdata.coords.se3 import is_rotation_matrix, merge_pose, so3_exp
from gpdata.errors import DegenerateProjection
from gpdata.estimators.visual_motion_observer import (
    VisualMotionObserver,
    pose_error_vector,
    simulate_observer,
    validate_feature_points,
    validate_observer_gain,
)
from gpdata.eval.metrics import observer_tracking_summary
from gpdata.sim.types import Trajectory
from gpdata.sim.van_der_pol import generate_van_der_pol_trajectory

FEATURE_POINTS = np.array(
    [
        [0.0, 0.0, 0.5],
        [0.5, 0.0, 0.0],
        [0.0, 0.0, -0.5],
        [-0.5, 0.0, 0.0],
    ]
)

# Camera looking along world +y from [0, -5, 0]
R_WC = np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 1.0], [0.0, -1.0, 0.0]])
G_WC = merge_pose(R_WC, [0.0, -5.0, 0.0])


def _observer(g_co_init: np.ndarray, gain: float = 30.0) -> VisualMotionObserver:
    return VisualMotionObserver(
        gain=gain * np.eye(6),
        feature_points=FEATURE_POINTS,
        focal_length=20.0,
        g_co_init=g_co_init,
    )


class TestStaticTarget(unittest.TestCase):
    """Observer driven by measurements of a fixed relative pose."""

    def setUp(self) -> None:
        self.g_true = merge_pose(R_WC.T @ so3_exp([0.05, -0.03, 0.02]), [0.0, 0.0, 5.0])
        self.g_init = merge_pose(R_WC.T, [0.1, -0.1, 4.0])

    def test_error_shrinks(self) -> None:
        vmo = _observer(self.g_init)
        f = vmo.measure(self.g_true)
        initial = np.linalg.norm(pose_error_vector(vmo.state.g_co, self.g_true))

        for _ in range(500):
            vmo.step(f, dt=0.01)

        final = np.linalg.norm(pose_error_vector(vmo.state.g_co, self.g_true))
        self.assertLess(final, 1e-3 * initial)
        np.testing.assert_allclose(vmo.state.g_co, self.g_true, atol=1e-4)

    def test_velocity_estimate_vanishes(self) -> None:
        vmo = _observer(self.g_init)
        f = vmo.measure(self.g_true)
        for _ in range(500):
            snapshot = vmo.step(f, dt=0.01)
        self.assertLess(np.linalg.norm(snapshot.twist), 1e-3)

    def test_estimate_stays_on_se3(self) -> None:
        vmo = _observer(self.g_init)
        f = vmo.measure(self.g_true)
        for _ in range(100):
            vmo.step(f, dt=0.01)
        self.assertTrue(is_rotation_matrix(vmo.state.g_co[:3, :3], tol=1e-9))

    def test_step_returns_pre_propagation_snapshot(self) -> None:
        vmo = _observer(self.g_init)
        snapshot = vmo.step(vmo.measure(self.g_true), dt=0.01)
        np.testing.assert_allclose(snapshot.g_co, self.g_init)
        self.assertEqual(snapshot.step, 0)
        self.assertEqual(vmo.state.step, 1)

    def test_update_at_true_pose_is_zero(self) -> None:
        vmo = _observer(self.g_true)
        e_e, u_e = vmo.update(vmo.measure(self.g_true))
        np.testing.assert_allclose(e_e, 0.0, atol=1e-12)
        np.testing.assert_allclose(u_e, 0.0, atol=1e-10)

    def test_reset(self) -> None:
        vmo = _observer(self.g_init)
        vmo.step(vmo.measure(self.g_true), dt=0.01)
        vmo.reset()
        np.testing.assert_allclose(vmo.state.g_co, self.g_init)
        np.testing.assert_allclose(vmo.state.twist, 0.0)
        self.assertEqual(vmo.state.step, 0)

    def test_state_is_a_copy(self) -> None:
        vmo = _observer(self.g_init)
        state = vmo.state
        state.g_co[0, 3] = 100.0
        self.assertAlmostEqual(vmo.state.g_co[0, 3], 0.1)

    def test_small_error_linearization(self) -> None:
        """For a small pose error, e_e reconstructs the exact error vector."""
        g_true = merge_pose(R_WC.T, [0.0, 0.0, 5.0])
        g_est = merge_pose(R_WC.T @ so3_exp([1e-4, 0.0, -1e-4]), [1e-4, 2e-4, 5.0 - 1e-4])
        vmo = _observer(g_est)
        e_e, _ = vmo.update(vmo.measure(g_true))
        np.testing.assert_allclose(e_e, pose_error_vector(g_est, g_true), atol=1e-5)


class TestSimulateObserver(unittest.TestCase):
    """Observer run over a moving target seen by a static camera."""

    @classmethod
    def setUpClass(cls) -> None:
        cls.target = generate_van_der_pol_trajectory(
            eta=0.5, v=1.0, offset=[2.0, 0.0, 0.0], scale=1.0, duration=10.0, dt=0.01,
            name="vdp1",
        )
        cls.vmo = _observer(merge_pose(R_WC.T, [0.0, 0.0, 1.0]))
        cls.observer_run = simulate_observer(cls.target, G_WC, cls.vmo)

    def test_shapes(self) -> None:
        K = self.target.n_samples
        self.assertEqual(self.observer_run.g_co_est.shape, (K, 4, 4))
        self.assertEqual(self.observer_run.g_wo_est.shape, (K, 4, 4))
        self.assertEqual(self.observer_run.twists_est.shape, (K, 6))
        self.assertEqual(self.observer_run.positions.shape, (K, 3))
        self.assertEqual(self.observer_run.name, "vdp1")

    def test_true_relative_pose(self) -> None:
        np.testing.assert_allclose(self.observer_run.g_co_true[0][:3, 3], [0.0, 0.0, 5.0], atol=1e-12)

    def test_estimated_rotations_orthonormal(self) -> None:
        R = self.observer_run.g_wo_est[:, :3, :3]
        RtR = np.einsum("kji,kjl->kil", R, R)
        self.assertLess(np.max(np.abs(RtR - np.eye(3))), 1e-6)

    def test_tracks_target(self) -> None:
        summary = observer_tracking_summary(self.observer_run, self.target, settle_time=2.0)
        self.assertLess(summary["position_rmse_settled"], 0.2)
        self.assertLess(summary["twist_rmse_settled"], 0.5)
        self.assertLess(summary["position_rmse_settled"], summary["position_rmse"])
        self.assertLess(summary["estimation_error_rmse"], 0.2)

    def test_as_trajectory(self) -> None:
        traj = self.observer_run.as_trajectory()
        self.assertIsInstance(traj, Trajectory)
        np.testing.assert_allclose(traj.positions, self.observer_run.positions)
        np.testing.assert_allclose(traj.twists, self.observer_run.twists_est)

    def test_stability_warning(self) -> None:
        target = generate_van_der_pol_trajectory(
            eta=0.5, v=1.0, offset=[2.0, 0.0, 0.0], scale=1.0, duration=0.2, dt=0.1
        )
        vmo = _observer(merge_pose(R_WC.T, [0.0, 0.0, 5.0]))
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                simulate_observer(target, G_WC, vmo)
            except DegenerateProjection:
                pass
        self.assertTrue(any(issubclass(w.category, RuntimeWarning) for w in caught))

    def test_target_behind_camera(self) -> None:
        target = Trajectory(
            times=np.array([0.0, 0.01]),
            poses=np.tile(merge_pose(np.eye(3), [0.0, -6.0, 0.0]), (2, 1, 1)),
            twists=np.zeros((2, 6)),
            name="behind",
        )
        vmo = _observer(merge_pose(R_WC.T, [0.0, 0.0, 1.0]))
        with self.assertRaises(DegenerateProjection) as ctx:
            simulate_observer(target, G_WC, vmo)
        self.assertEqual(ctx.exception.context["step"], 0)


class TestValidation(unittest.TestCase):
    """Argument validation."""

    def test_gain_must_be_positive_definite(self) -> None:
        with self.assertRaises(ValueError):
            validate_observer_gain(-np.eye(6))
        with self.assertRaises(ValueError):
            validate_observer_gain(np.eye(5))
        gain = np.eye(6)
        gain[0, 1] = 0.5
        with self.assertRaises(ValueError):
            validate_observer_gain(gain)

    def test_feature_points(self) -> None:
        with self.assertRaises(ValueError):
            validate_feature_points(FEATURE_POINTS[:2])
        with self.assertRaises(ValueError):
            validate_feature_points(np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]]))
        np.testing.assert_allclose(validate_feature_points(FEATURE_POINTS), FEATURE_POINTS)

    def test_focal_length(self) -> None:
        with self.assertRaises(ValueError):
            VisualMotionObserver(30 * np.eye(6), FEATURE_POINTS, 0.0, np.eye(4))


if __name__ == "__main__":
    unittest.main()
