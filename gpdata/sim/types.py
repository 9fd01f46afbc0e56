"""Type definitions for simulated rigid-body trajectories.

Author: Navigation Engineer
Date: October 2026
"""

from dataclasses import dataclass

import numpy as np


@dataclass
class Trajectory:
    """
    Time-ordered rigid-body trajectory sampled at a fixed step.

    Attributes:
        times: Sample times in seconds, shape (K,). Strictly increasing and
               uniformly spaced.
        poses: World-frame poses g(t_k), shape (K, 4, 4).
        twists: Body-frame twists [v; ω] at t_k, shape (K, 6).
        name: Optional identifier used in error messages and plots.

    Notes:
        - Arrays are made read-only after validation; build a new
          Trajectory instead of editing one in place.
        - Index k corresponds to time times[0] + k * dt.

    Examples:
        >>> K = 3
        >>> traj = Trajectory(
        ...     times=np.array([0.0, 0.1, 0.2]),
        ...     poses=np.tile(np.eye(4), (K, 1, 1)),
        ...     twists=np.zeros((K, 6)),
        ... )
        >>> traj.positions.shape
        (3, 3)
    """

    times: np.ndarray
    poses: np.ndarray
    twists: np.ndarray
    name: str = ""

    def __post_init__(self) -> None:
        """Validate shapes and freeze arrays."""
        self.times = np.array(self.times, dtype=float)
        self.poses = np.array(self.poses, dtype=float)
        self.twists = np.array(self.twists, dtype=float)

        if self.times.ndim != 1 or self.times.size < 1:
            raise ValueError(f"times must be a non-empty 1D array, got {self.times.shape}")
        K = self.times.size
        if self.poses.shape != (K, 4, 4):
            raise ValueError(f"poses must have shape ({K}, 4, 4), got {self.poses.shape}")
        if self.twists.shape != (K, 6):
            raise ValueError(f"twists must have shape ({K}, 6), got {self.twists.shape}")
        if K > 1 and not np.all(np.diff(self.times) > 0):
            raise ValueError("times must be strictly increasing")
        for label, arr in (("times", self.times), ("poses", self.poses), ("twists", self.twists)):
            if not np.all(np.isfinite(arr)):
                raise ValueError(f"{label} contains non-finite values")

        for arr in (self.times, self.poses, self.twists):
            arr.setflags(write=False)

    def __len__(self) -> int:
        return self.times.size

    @property
    def n_samples(self) -> int:
        """Number of recorded samples K."""
        return self.times.size

    @property
    def dt(self) -> float:
        """Fixed step size in seconds (0.0 for a single-sample trajectory)."""
        if self.times.size < 2:
            return 0.0
        return float(self.times[1] - self.times[0])

    @property
    def duration(self) -> float:
        """Recorded time span t_{K-1} - t_0 in seconds."""
        return float(self.times[-1] - self.times[0])

    @property
    def positions(self) -> np.ndarray:
        """Translations p(t_k), shape (K, 3)."""
        return self.poses[:, :3, 3].copy()

    @property
    def rotations(self) -> np.ndarray:
        """Rotation blocks R(t_k), shape (K, 3, 3)."""
        return self.poses[:, :3, :3].copy()

    def __repr__(self) -> str:
        return (
            f"Trajectory(name={self.name!r}, n_samples={self.n_samples}, "
            f"dt={self.dt:g}, duration={self.duration:g})"
        )
