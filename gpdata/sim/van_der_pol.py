"""
Van-der-Pol target trajectories.

The target translates along the limit cycle of a Van-der-Pol oscillator
embedded in a plane of the world frame. With oscillator state s = (s₁, s₂):

    ṡ₁ = v s₂
    ṡ₂ = v (η (1 - s₁²) s₂ - s₁)

η sets the nonlinearity (shape of the cycle) and v scales time (speed
along the cycle). The world position is

    p_wo = E Eᵀ offset + scale · E s + (I - E Eᵀ) p_init

where E (3x2) selects the plane axes (the out-of-plane coordinate stays at
its initial value), and the initial oscillator state is
s₀ = Eᵀ (p_init - offset) / scale. The target keeps its initial orientation,
so its body twist is [R_woᵀ ṗ_wo; 0].

Author: Navigation Engineer
Date: October 2026
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from gpdata.coords.se3 import is_rotation_matrix, merge_pose
from gpdata.sim.integrators import integrate_fixed_step
from gpdata.sim.types import Trajectory


def van_der_pol_dynamics(state: np.ndarray, eta: float, v: float) -> np.ndarray:
    """
    Time-scaled Van-der-Pol vector field.

    Args:
        state: Oscillator state [s₁, s₂], shape (2,).
        eta: Nonlinearity parameter η.
        v: Time-scale (speed) parameter.

    Returns:
        State derivative [ṡ₁, ṡ₂], shape (2,).
    """
    s1, s2 = state
    return v * np.array([s2, eta * (1.0 - s1**2) * s2 - s1])


def plane_embedding(plane: Sequence[int] = (0, 1)) -> np.ndarray:
    """
    Matrix E (3x2) mapping oscillator coordinates to world axes.

    Args:
        plane: Two distinct world axis indices in {0, 1, 2}.

    Returns:
        Embedding matrix E with orthonormal columns.
    """
    plane = tuple(int(a) for a in plane)
    if len(plane) != 2 or plane[0] == plane[1] or not set(plane) <= {0, 1, 2}:
        raise ValueError(f"plane must be two distinct axes in {{0, 1, 2}}, got {plane}")
    E = np.zeros((3, 2))
    E[plane[0], 0] = 1.0
    E[plane[1], 1] = 1.0
    return E


def initial_oscillator_state(
    p_init: np.ndarray,
    offset: np.ndarray,
    scale: float,
    plane: Sequence[int] = (0, 1),
) -> np.ndarray:
    """Oscillator state s₀ = Eᵀ (p_init - offset) / scale."""
    E = plane_embedding(plane)
    return E.T @ (np.asarray(p_init, dtype=float) - np.asarray(offset, dtype=float)) / scale


def generate_van_der_pol_trajectory(
    eta: float,
    v: float,
    offset: Sequence[float],
    scale: float,
    duration: float,
    dt: float,
    p_init: Sequence[float] = (0.0, 0.0, 0.0),
    R_init: Optional[np.ndarray] = None,
    plane: Tuple[int, int] = (0, 1),
    method: str = "rk4",
    name: str = "",
) -> Trajectory:
    """
    Generate the world-frame target trajectory g_wo(t) and body twist V_wo(t).

    Args:
        eta: Nonlinearity parameter η.
        v: Time-scale parameter (must be positive).
        offset: Center of the oscillator in the world frame, shape (3,).
        scale: Spatial scale of the limit cycle (must be positive).
        duration: Integration horizon in seconds.
        dt: Fixed integration step in seconds.
        p_init: Initial target position in the world frame, shape (3,).
        R_init: Target orientation (constant), shape (3, 3). Default identity.
        plane: World axes spanned by the oscillator. Default (0, 1) = x-y.
        method: Integration scheme, 'rk4' or 'euler'.
        name: Identifier stored on the returned Trajectory.

    Returns:
        Trajectory with K = round(duration / dt) + 1 samples starting at t = 0.

    Raises:
        ValueError: If parameters are invalid.
        IntegrationDivergence: If the oscillator state becomes non-finite.

    Example:
        >>> traj = generate_van_der_pol_trajectory(
        ...     eta=0.5, v=1.0, offset=[2, 0, 0], scale=1.0, duration=20.0, dt=0.01
        ... )
        >>> traj.n_samples
        2001
    """
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    if v <= 0:
        raise ValueError(f"v must be positive, got {v}")

    offset = np.asarray(offset, dtype=float).reshape(-1)
    p_init = np.asarray(p_init, dtype=float).reshape(-1)
    if offset.shape != (3,) or p_init.shape != (3,):
        raise ValueError("offset and p_init must have shape (3,)")
    R_wo = np.eye(3) if R_init is None else np.asarray(R_init, dtype=float)
    if not is_rotation_matrix(R_wo):
        raise ValueError("R_init must be a rotation matrix")

    E = plane_embedding(plane)
    n_steps = int(round(duration / dt))
    times = np.arange(n_steps + 1) * dt

    s0 = initial_oscillator_state(p_init, offset, scale, plane)
    states = integrate_fixed_step(
        lambda s: van_der_pol_dynamics(s, eta, v), s0, dt, n_steps, method=method
    )
    state_rates = np.array([van_der_pol_dynamics(s, eta, v) for s in states])

    # Out-of-plane coordinate stays at its initial value
    out_of_plane = p_init - E @ (E.T @ p_init)
    in_plane_offset = E @ (E.T @ offset)
    positions = in_plane_offset + scale * states @ E.T + out_of_plane
    velocities_world = scale * state_rates @ E.T

    poses = np.array([merge_pose(R_wo, p) for p in positions])
    twists = np.zeros((n_steps + 1, 6))
    twists[:, :3] = velocities_world @ R_wo  # rows of R_woᵀ ṗ

    return Trajectory(times=times, poses=poses, twists=twists, name=name)
