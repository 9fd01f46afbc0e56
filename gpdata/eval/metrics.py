"""
Evaluation metrics for observer runs.

Pose errors compare estimated and true poses sample by sample; the tracking
summary reduces an ObserverRun against its ground-truth target to a few
scalars (RMSE over the run and after the initial transient).

Author: Navigation Engineer
Date: October 2026
"""

from typing import Dict, Optional, Tuple, Union

import numpy as np

from gpdata.estimators.visual_motion_observer import ObserverRun, pose_error_vector
from gpdata.sim.types import Trajectory


def compute_pose_errors(
    true_poses: np.ndarray, est_poses: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Translation and rotation errors between two pose sequences.

    Args:
        true_poses: True poses, shape (K, 4, 4).
        est_poses: Estimated poses, shape (K, 4, 4).

    Returns:
        Tuple (translation_errors, rotation_errors):
            translation_errors: ‖p_est - p_true‖, shape (K,), meters
            rotation_errors: Angle of R_trueᵀ R_est, shape (K,), radians

    Raises:
        ValueError: If inputs have incompatible shapes.
    """
    true_poses = np.asarray(true_poses, dtype=float)
    est_poses = np.asarray(est_poses, dtype=float)

    if true_poses.shape != est_poses.shape or true_poses.shape[1:] != (4, 4):
        raise ValueError(
            f"Shape mismatch: truth {true_poses.shape} vs estimated {est_poses.shape}"
        )

    translation = np.linalg.norm(est_poses[:, :3, 3] - true_poses[:, :3, 3], axis=1)

    R_rel = np.einsum("kji,kjl->kil", true_poses[:, :3, :3], est_poses[:, :3, :3])
    cos_angle = (np.trace(R_rel, axis1=1, axis2=2) - 1.0) / 2.0
    rotation = np.arccos(np.clip(cos_angle, -1.0, 1.0))

    return translation, rotation


def compute_rmse(errors: np.ndarray, axis: Optional[int] = None) -> Union[float, np.ndarray]:
    """
    Compute Root Mean Square Error (RMSE).

    Args:
        errors: Error values, shape (N, d) or (N,)
        axis: None for a scalar over all entries, 0 per dimension,
              1 per sample.

    Returns:
        RMSE value(s)
    """
    errors = np.asarray(errors)
    if axis is None:
        return float(np.sqrt(np.mean(errors**2)))
    return np.sqrt(np.mean(errors**2, axis=axis))


def observer_tracking_summary(
    run: ObserverRun,
    target: Trajectory,
    settle_time: float = 1.0,
) -> Dict[str, float]:
    """
    Summarize how well an observer run tracks its target.

    Args:
        run: Observer output.
        target: Ground-truth target trajectory the run was simulated on.
        settle_time: Seconds excluded from the "settled" statistics to skip
                     the initial convergence transient.

    Returns:
        Dictionary with keys:
            - 'position_rmse': RMSE of the world position estimate (m)
            - 'rotation_rmse': RMSE of the orientation estimate (rad)
            - 'twist_rmse': RMSE of u_e against the true body twist
            - 'position_rmse_settled', 'twist_rmse_settled': same after
              settle_time
            - 'final_position_error': Position error at the last sample (m)
            - 'estimation_error_rmse': RMSE of the relative-pose error vector
              e = [p_ee; sk(R_ee)^∨] of ḡ_co⁻¹ g_co after settle_time

    Raises:
        ValueError: If the run and target lengths differ.
    """
    if run.times.shape != target.times.shape:
        raise ValueError(
            f"run has {run.times.size} samples but target has {target.n_samples}"
        )

    translation, rotation = compute_pose_errors(target.poses, run.g_wo_est)
    twist_errors = run.twists_est - target.twists
    estimation_errors = np.array(
        [pose_error_vector(g_est, g_true) for g_est, g_true in zip(run.g_co_est, run.g_co_true)]
    )

    settled = (run.times - run.times[0]) >= settle_time
    if not np.any(settled):
        settled = np.ones_like(settled, dtype=bool)

    return {
        "position_rmse": compute_rmse(translation),
        "rotation_rmse": compute_rmse(rotation),
        "twist_rmse": compute_rmse(twist_errors),
        "position_rmse_settled": compute_rmse(translation[settled]),
        "twist_rmse_settled": compute_rmse(twist_errors[settled]),
        "final_position_error": float(translation[-1]),
        "estimation_error_rmse": compute_rmse(estimation_errors[settled]),
    }
