"""
Deterministic sub-sampling of trajectories into GP training sets.

Sample indices are spread evenly over a time window and rounded up to the
next simulation step:

    idx = ceil(linspace(t_start / dt, t_end / dt, M))

Index k corresponds to time t_0 + k·dt (0-based). Quotients within 1e-9 of
an integer are snapped to it first, so a window edge that falls exactly on
a simulation step is not pushed to the next one by floating-point noise.

There is no randomness here; noise injection is the only random step of the
pipeline.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from gpdata.errors import SamplingOutOfRange
from gpdata.sim.types import Trajectory


_SNAP_TOLERANCE = 1e-9


def _snap(x: float) -> float:
    nearest = float(np.round(x))
    if abs(x - nearest) <= _SNAP_TOLERANCE * max(1.0, abs(x)):
        return nearest
    return float(x)


def sample_indices(
    window: Sequence[float],
    count: int,
    dt: float,
    n_samples: Optional[int] = None,
) -> np.ndarray:
    """
    Evenly spaced, strictly increasing sample indices within a time window.

    Args:
        window: (t_start, t_end) in seconds, relative to the first sample.
        count: Number of indices M (>= 1).
        dt: Simulation step in seconds.
        n_samples: Length K of the trajectory. If given, the window must lie
                   within [0, (K - 1)·dt].

    Returns:
        Integer indices, shape (M,), strictly increasing.

    Raises:
        ValueError: If dt is not positive.
        SamplingOutOfRange: If the window is reversed or outside the
            recorded range, or if M exceeds the steps inside the window.

    Examples:
        >>> idx = sample_indices((7.0, 13.0), 30, dt=0.01)
        >>> int(idx[0]), int(idx[-1]), len(idx)
        (700, 1300, 30)
    """
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    t_start, t_end = (float(t) for t in window)
    context = {"window": (t_start, t_end), "count": int(count), "dt": float(dt)}

    if count < 1:
        raise SamplingOutOfRange("Sample count must be at least 1", **context)
    if not (np.isfinite(t_start) and np.isfinite(t_end)) or t_end < t_start:
        raise SamplingOutOfRange("Sampling window must satisfy t_start <= t_end", **context)

    a = _snap(t_start / dt)
    b = _snap(t_end / dt)
    if a < 0:
        raise SamplingOutOfRange("Sampling window starts before the trajectory", **context)
    if n_samples is not None and np.ceil(b) > n_samples - 1:
        raise SamplingOutOfRange(
            "Sampling window ends after the trajectory",
            recorded_duration=(n_samples - 1) * dt,
            **context,
        )

    available = int(np.floor(b)) - int(np.ceil(a)) + 1
    if count > available:
        raise SamplingOutOfRange(
            f"Requested {count} samples but only {max(available, 0)} steps lie in the window",
            available=max(available, 0),
            **context,
        )

    indices = np.ceil(np.linspace(a, b, int(count))).astype(int)
    if np.any(np.diff(indices) <= 0):
        raise SamplingOutOfRange(
            "Window too narrow for strictly increasing indices", **context
        )

    return indices


def sample_trajectory(
    trajectory: Trajectory,
    window: Sequence[float],
    count: int,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Draw (position, twist) pairs from a trajectory.

    Args:
        trajectory: Source trajectory (positions are inputs, body twists are
                    outputs).
        window: (t_start, t_end) in seconds, relative to trajectory.times[0].
        count: Number of samples M.

    Returns:
        Tuple (indices, times, X, Y):
            indices: Sample indices, shape (M,)
            times: Sample times, shape (M,)
            X: Positions, shape (M, 3)
            Y: Body twists, shape (M, 6)

    Raises:
        SamplingOutOfRange: See sample_indices().
    """
    if trajectory.n_samples < 2:
        raise SamplingOutOfRange(
            "Trajectory needs at least 2 samples to be sub-sampled",
            trajectory=trajectory.name,
        )
    try:
        indices = sample_indices(window, count, trajectory.dt, trajectory.n_samples)
    except SamplingOutOfRange as exc:
        exc.add_context(trajectory=trajectory.name)
        raise

    positions = trajectory.positions
    return (
        indices,
        trajectory.times[indices].copy(),
        positions[indices],
        trajectory.twists[indices].copy(),
    )
