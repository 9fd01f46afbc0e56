"""Unit tests for evaluation metrics and dataset plots."""

import dataclasses

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pytest

from gpdata.coords.se3 import merge_pose, so3_exp
from gpdata.datasets.types import GPDataset
from gpdata.estimators.visual_motion_observer import VisualMotionObserver, simulate_observer
from gpdata.eval.metrics import compute_pose_errors, compute_rmse, observer_tracking_summary
from gpdata.eval.plots import plot_gp_datasets, plot_likelihood_history, save_figure
from gpdata.sim.types import Trajectory


class TestComputePoseErrors:
    """Tests for compute_pose_errors."""

    def test_identical_poses(self):
        poses = np.stack([merge_pose(so3_exp([0.1, 0.2, 0.3]), [1.0, 2.0, 3.0])] * 4)
        translation, rotation = compute_pose_errors(poses, poses)
        np.testing.assert_allclose(translation, 0.0)
        np.testing.assert_allclose(rotation, 0.0, atol=1e-7)

    def test_known_errors(self):
        truth = np.stack([np.eye(4), np.eye(4)])
        est = np.stack(
            [
                merge_pose(np.eye(3), [3.0, 4.0, 0.0]),
                merge_pose(so3_exp([0.0, 0.0, 0.25]), [0.0, 0.0, 0.0]),
            ]
        )
        translation, rotation = compute_pose_errors(truth, est)
        np.testing.assert_allclose(translation, [5.0, 0.0])
        np.testing.assert_allclose(rotation, [0.0, 0.25], atol=1e-7)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            compute_pose_errors(np.zeros((3, 4, 4)), np.zeros((2, 4, 4)))


class TestComputeRMSE:
    """Tests for compute_rmse."""

    def test_scalar(self):
        assert compute_rmse(np.array([3.0, -4.0])) == pytest.approx(np.sqrt(12.5))

    def test_per_axis(self):
        errors = np.array([[1.0, 2.0], [1.0, 2.0]])
        np.testing.assert_allclose(compute_rmse(errors, axis=0), [1.0, 2.0])


def _dataset(name: str) -> GPDataset:
    t = np.linspace(0, 2 * np.pi, 200)
    X_full = np.column_stack([np.cos(t), np.sin(t), np.zeros_like(t)])
    Y_full = np.zeros((200, 6))
    Y_full[:, 0] = -np.sin(t)
    Y_full[:, 1] = np.cos(t)
    indices = np.arange(0, 200, 20)
    return GPDataset(
        name=name,
        indices=indices,
        times=t[indices],
        X=X_full[indices],
        Y=Y_full[indices],
        noise_level=np.full(6, 1e-2),
        X_full=X_full,
        Y_full=Y_full,
    )


class TestPlots:
    """Smoke tests for plotting helpers."""

    def test_plot_gp_datasets(self, tmp_path):
        fig = plot_gp_datasets({"dataset_1": _dataset("a"), "dataset_2": _dataset("b")})
        assert isinstance(fig, plt.Figure)
        paths = save_figure(fig, tmp_path, "trajectory_data")
        assert paths[0].exists()
        plt.close(fig)

    def test_plot_likelihood_history(self):
        fig = plot_likelihood_history(
            {"dataset_1": [np.array([-10.0, -5.0, -4.0])], "dataset_2": [np.array([-3.0, -2.0])]}
        )
        assert isinstance(fig, plt.Figure)
        plt.close(fig)


class TestTrackingSummary:
    """Tests for observer_tracking_summary on a static target."""

    @pytest.fixture
    def setup(self):
        R_wc = np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 1.0], [0.0, -1.0, 0.0]])
        g_wc = merge_pose(R_wc, [0.0, -5.0, 0.0])
        target = Trajectory(
            times=np.arange(6) * 0.01,
            poses=np.tile(np.eye(4), (6, 1, 1)),
            twists=np.zeros((6, 6)),
            name="static",
        )
        observer = VisualMotionObserver(
            gain=30.0 * np.eye(6),
            feature_points=[[0.0, 0.0, 0.5], [0.5, 0.0, 0.0], [0.0, 0.0, -0.5], [-0.5, 0.0, 0.0]],
            focal_length=20.0,
            g_co_init=merge_pose(R_wc.T, [0.0, 0.0, 5.0]),
        )
        return target, simulate_observer(target, g_wc, observer)

    def test_started_at_truth(self, setup):
        target, run = setup
        summary = observer_tracking_summary(run, target, settle_time=0.02)
        assert summary["position_rmse"] < 1e-9
        assert summary["twist_rmse_settled"] < 1e-9
        assert summary["final_position_error"] < 1e-9
        assert summary["estimation_error_rmse"] < 1e-9

    def test_estimation_error_sees_offset(self, setup):
        target, run = setup
        shifted = dataclasses.replace(
            run, g_co_est=run.g_co_est.copy(), g_co_true=run.g_co_true.copy()
        )
        shifted.g_co_est[:, 0, 3] += 0.3
        summary = observer_tracking_summary(shifted, target, settle_time=0.0)
        # 0.3 m on one of six components
        assert summary["estimation_error_rmse"] == pytest.approx(0.3 / np.sqrt(6))

    def test_length_mismatch(self, setup):
        target, run = setup
        short = Trajectory(
            times=target.times[:3], poses=target.poses[:3], twists=target.twists[:3]
        )
        with pytest.raises(ValueError):
            observer_tracking_summary(run, short)
