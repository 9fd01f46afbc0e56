"""
Visual Motion Observer (VMO) for relative pose and target velocity.

The observer reconstructs the relative pose g_co between a camera and a
rigid target from projected feature points, and produces an estimate of the
target's body-frame twist as a by-product of its correction law.

Relative rigid-body motion (camera twist V_wc, target twist V_wo, body
frames):

    ġ_co = -V̂_wc g_co + g_co V̂_wo

Observer model, driven by the observer input u_e:

    ḡ̇_co = -V̂_wc ḡ_co + ḡ_co û_e

Estimation error and input:

    g_ee = ḡ_co⁻¹ g_co,   e_e = [p_ee; sk(R_ee)^∨]
    u_e  = K_e e_e

e_e is not directly available, so it is reconstructed from the image error
through the image Jacobian J evaluated at the estimate:

    f - f̄ ≈ J(ḡ_co) e_e   →   e_e ≈ J⁺ (f - f̄)

When the estimate converges, u_e tracks V_wo, which is what the GP datasets
use as the velocity output.

The discrete update ḡ ← exp(-V̂_wc dt) ḡ exp(û_e dt) uses the SE(3)
exponential, so the estimated rotation stays orthonormal.

Author: Navigation Engineer
Date: October 2026
"""

import warnings
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
from tqdm import tqdm

from gpdata.coords.se3 import (
    se3_compose,
    se3_exp,
    se3_inverse,
    skew_part_vee,
    split_pose,
)
from gpdata.errors import DegenerateProjection
from gpdata.sim.types import Trajectory
from gpdata.vision.camera import image_jacobian, project_features


@dataclass
class ObserverState:
    """
    Snapshot of the observer at one time step.

    Attributes:
        g_co: Estimated relative pose ḡ_co at which the measurement was
              evaluated, shape (4, 4).
        twist: Observer input u_e = K_e e_e (estimated target body twist),
               shape (6,).
        error: Reconstructed estimation error e_e, shape (6,).
        step: Number of propagation steps taken before this snapshot.
    """

    g_co: np.ndarray
    twist: np.ndarray = field(default_factory=lambda: np.zeros(6))
    error: np.ndarray = field(default_factory=lambda: np.zeros(6))
    step: int = 0


def pose_error_vector(g_est: np.ndarray, g_true: np.ndarray) -> np.ndarray:
    """
    Exact estimation error e = [p_ee; sk(R_ee)^∨] with g_ee = g_est⁻¹ g_true.

    Args:
        g_est: Estimated pose, shape (4, 4).
        g_true: True pose, shape (4, 4).

    Returns:
        Error vector, shape (6,).
    """
    R_ee, p_ee = split_pose(se3_compose(se3_inverse(g_est), g_true))
    return np.concatenate([p_ee, skew_part_vee(R_ee)])


class VisualMotionObserver:
    """
    Passivity-based Visual Motion Observer.

    Attributes:
        gain: Observer gain K_e, positive definite (6, 6).
        feature_points: Target-frame feature points, shape (N, 3).
        focal_length: Focal length λ.
        g_co_init: Initial relative pose estimate, shape (4, 4).

    Example:
        >>> from gpdata.coords.se3 import merge_pose
        >>> fp = np.array([[0, 0, 0.5], [0.5, 0, 0], [0, 0, -0.5], [-0.5, 0, 0]])
        >>> vmo = VisualMotionObserver(
        ...     gain=30 * np.eye(6), feature_points=fp, focal_length=20.0,
        ...     g_co_init=merge_pose(np.eye(3), [0, 0, 1.0]),
        ... )
        >>> g_true = merge_pose(np.eye(3), [0, 0, 5.0])
        >>> for _ in range(500):
        ...     _ = vmo.step(vmo.measure(g_true), dt=0.01)
        >>> np.allclose(vmo.state.g_co, g_true, atol=1e-3)
        True
    """

    def __init__(
        self,
        gain: np.ndarray,
        feature_points: np.ndarray,
        focal_length: float,
        g_co_init: np.ndarray,
    ):
        """
        Initialize the observer.

        Args:
            gain: Observer gain K_e, shape (6, 6). Must be symmetric
                  positive definite.
            feature_points: Target-frame feature points, shape (N, 3),
                            N >= 3 and not collinear.
            focal_length: Focal length λ (positive).
            g_co_init: Initial relative pose estimate, shape (4, 4).

        Raises:
            ValueError: If any argument is invalid.
        """
        self.gain = validate_observer_gain(gain)
        self.feature_points = validate_feature_points(feature_points)
        if focal_length <= 0:
            raise ValueError(f"focal_length must be positive, got {focal_length}")
        self.focal_length = float(focal_length)

        g_co_init = np.asarray(g_co_init, dtype=float)
        if g_co_init.shape != (4, 4):
            raise ValueError(f"g_co_init must be (4, 4), got {g_co_init.shape}")
        self.g_co_init = g_co_init.copy()

        self._state = ObserverState(g_co=self.g_co_init.copy())

    @property
    def state(self) -> ObserverState:
        """Current observer state (copy)."""
        return ObserverState(
            g_co=self._state.g_co.copy(),
            twist=self._state.twist.copy(),
            error=self._state.error.copy(),
            step=self._state.step,
        )

    def reset(self) -> None:
        """Restore the initial estimate and zero velocity estimate."""
        self._state = ObserverState(g_co=self.g_co_init.copy())

    def measure(self, g_co: np.ndarray) -> np.ndarray:
        """
        Feature measurements f for a given relative pose.

        Args:
            g_co: Relative pose, shape (4, 4).

        Returns:
            Stacked image coordinates, shape (2N,).
        """
        return project_features(g_co, self.feature_points, self.focal_length).reshape(-1)

    def update(self, measurement: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute the innovation and observer input at the current estimate.

        Args:
            measurement: Stacked image coordinates f, shape (2N,) or (N, 2).

        Returns:
            Tuple (e_e, u_e), each of shape (6,).

        Raises:
            DegenerateProjection: If the estimate puts a feature point at or
                behind the camera plane.
        """
        f = np.asarray(measurement, dtype=float).reshape(-1)
        expected = 2 * self.feature_points.shape[0]
        if f.shape != (expected,):
            raise ValueError(f"measurement must have {expected} entries, got {f.size}")

        g_est = self._state.g_co
        f_est = self.measure(g_est)
        J = image_jacobian(g_est, self.feature_points, self.focal_length)

        e_e = np.linalg.lstsq(J, f - f_est, rcond=None)[0]
        u_e = self.gain @ e_e

        self._state.error = e_e
        self._state.twist = u_e
        return e_e.copy(), u_e.copy()

    def propagate(self, dt: float, camera_twist: Optional[np.ndarray] = None) -> None:
        """
        Advance the estimate: ḡ ← exp(-V̂_wc dt) ḡ exp(û_e dt).

        Args:
            dt: Step size in seconds.
            camera_twist: Camera body twist V_wc, shape (6,). Default zero
                          (static camera).
        """
        if dt <= 0:
            raise ValueError(f"dt must be positive, got {dt}")

        g_next = se3_compose(self._state.g_co, se3_exp(self._state.twist * dt))
        if camera_twist is not None:
            camera_twist = np.asarray(camera_twist, dtype=float).reshape(-1)
            if camera_twist.shape != (6,):
                raise ValueError(f"camera_twist must be (6,), got {camera_twist.shape}")
            g_next = se3_compose(se3_exp(-camera_twist * dt), g_next)

        self._state.g_co = g_next
        self._state.step += 1

    def step(
        self,
        measurement: np.ndarray,
        dt: float,
        camera_twist: Optional[np.ndarray] = None,
    ) -> ObserverState:
        """
        One observer cycle: update with the measurement, then propagate.

        Args:
            measurement: Stacked image coordinates f, shape (2N,) or (N, 2).
            dt: Step size in seconds.
            camera_twist: Camera body twist V_wc, shape (6,). Default zero.

        Returns:
            Snapshot taken before propagation: the estimate the measurement
            was compared against, plus the innovation and observer input.
        """
        self.update(measurement)
        snapshot = self.state
        self.propagate(dt, camera_twist)
        return snapshot


@dataclass
class ObserverRun:
    """
    Output of an observer simulation over a target trajectory.

    Attributes:
        times: Sample times, shape (K,).
        g_co_est: Estimated relative poses ḡ_co, shape (K, 4, 4).
        g_wo_est: Estimated target world poses g_wc ḡ_co, shape (K, 4, 4).
        twists_est: Estimated target body twists u_e, shape (K, 6).
        errors: Reconstructed estimation errors e_e, shape (K, 6).
        g_co_true: True relative poses g_co, shape (K, 4, 4).
        name: Identifier of the simulated trajectory.
    """

    times: np.ndarray
    g_co_est: np.ndarray
    g_wo_est: np.ndarray
    twists_est: np.ndarray
    errors: np.ndarray
    g_co_true: np.ndarray
    name: str = ""

    @property
    def positions(self) -> np.ndarray:
        """Estimated target positions in the world frame, shape (K, 3)."""
        return self.g_wo_est[:, :3, 3].copy()

    def as_trajectory(self) -> Trajectory:
        """Estimated target motion as a Trajectory (world poses, body twists)."""
        return Trajectory(
            times=self.times,
            poses=self.g_wo_est,
            twists=self.twists_est,
            name=self.name,
        )


def simulate_observer(
    target: Trajectory,
    g_wc: np.ndarray,
    observer: VisualMotionObserver,
    progress: bool = False,
) -> ObserverRun:
    """
    Run the observer against a target trajectory seen from a static camera.

    At each sample k the true relative pose g_co = g_wc⁻¹ g_wo(t_k) is
    projected to produce the measurement, the observer is updated, and the
    estimate is propagated by one step of the trajectory's dt.

    Args:
        target: Ground-truth target trajectory (world frame).
        g_wc: Camera pose in the world frame, shape (4, 4).
        observer: Observer instance. It is reset before the run.
        progress: Show a tqdm progress bar.

    Returns:
        ObserverRun with one entry per trajectory sample.

    Raises:
        DegenerateProjection: If a feature point is at or behind the camera
            plane, either in the measurement or in the estimate. The step
            index and time are attached to the error context.
    """
    if target.n_samples < 2:
        raise ValueError("target trajectory needs at least 2 samples")

    dt = target.dt
    gain_rate = float(np.max(np.linalg.eigvalsh(observer.gain)))
    if gain_rate * dt >= 2.0:
        warnings.warn(
            f"Observer gain eigenvalue {gain_rate:g} with dt={dt:g} exceeds the "
            "discrete stability limit (λ_max dt < 2); the estimate may diverge.",
            RuntimeWarning,
        )

    observer.reset()
    g_cw = se3_inverse(g_wc)
    K = target.n_samples

    g_co_est = np.zeros((K, 4, 4))
    g_co_true = np.zeros((K, 4, 4))
    twists_est = np.zeros((K, 6))
    errors = np.zeros((K, 6))

    iterator = tqdm(
        range(K), desc=f"VMO {target.name}".strip(), disable=not progress, leave=False
    )
    for k in iterator:
        g_co_true[k] = se3_compose(g_cw, target.poses[k])
        try:
            measurement = observer.measure(g_co_true[k])
            snapshot = observer.step(measurement, dt)
        except DegenerateProjection as exc:
            exc.add_context(step=k, time=float(target.times[k]))
            raise

        g_co_est[k] = snapshot.g_co
        twists_est[k] = snapshot.twist
        errors[k] = snapshot.error

    g_wo_est = np.einsum("ij,kjl->kil", np.asarray(g_wc, dtype=float), g_co_est)

    return ObserverRun(
        times=target.times.copy(),
        g_co_est=g_co_est,
        g_wo_est=g_wo_est,
        twists_est=twists_est,
        errors=errors,
        g_co_true=g_co_true,
        name=target.name,
    )


def validate_observer_gain(gain: np.ndarray) -> np.ndarray:
    """
    Check that K_e is a symmetric positive definite 6x6 matrix.

    Returns:
        The gain as a float array copy.

    Raises:
        ValueError: If the gain is not 6x6 symmetric positive definite.
    """
    gain = np.array(gain, dtype=float)
    if gain.shape != (6, 6):
        raise ValueError(f"gain must be (6, 6), got {gain.shape}")
    if not np.allclose(gain, gain.T):
        raise ValueError("gain must be symmetric")
    try:
        np.linalg.cholesky(gain)
    except np.linalg.LinAlgError:
        raise ValueError("gain must be positive definite") from None
    return gain


def validate_feature_points(feature_points: np.ndarray) -> np.ndarray:
    """
    Check that the feature set has at least 3 non-collinear points.

    Returns:
        The points as a float array copy, shape (N, 3).

    Raises:
        ValueError: If the shape is wrong or the points are collinear.
    """
    feature_points = np.array(feature_points, dtype=float)
    if feature_points.ndim != 2 or feature_points.shape[1] != 3:
        raise ValueError(f"feature_points must be (N, 3), got {feature_points.shape}")
    if feature_points.shape[0] < 3:
        raise ValueError(f"need at least 3 feature points, got {feature_points.shape[0]}")
    centered = feature_points - feature_points.mean(axis=0)
    if np.linalg.matrix_rank(centered, tol=1e-9) < 2:
        raise ValueError("feature points must not be collinear")
    return feature_points
