"""Dataset containers for GP hyperparameter learning.

This module defines the per-trajectory dataset produced by sampling an
observer run, and the pooled dataset that concatenates several of them for
a joint hyperparameter fit.

Author: Navigation Engineer
Date: October 2026
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np

from gpdata.gp.types import GPHyperparameters, HyperparameterFit


@dataclass
class GPDataset:
    """
    Sub-sampled (position, velocity) training set from one trajectory.

    Attributes:
        name: Identifier of the source trajectory.
        indices: Trajectory sample indices, shape (M,), strictly increasing.
        times: Sample times in seconds, shape (M,).
        X: Inputs (target positions, world frame), shape (M, 3).
        Y: Clean outputs (target body twists), shape (M, 6).
        noise_level: Noise parameter σ per output channel, shape (6,).
        X_full: Positions over the whole trajectory, shape (K, 3).
        Y_full: Twists over the whole trajectory, shape (K, 6).
        Y_noisy: Noisy outputs used for fitting, shape (M, 6), or None
                 before noise injection.
        fit: Hyperparameter fit result, or None before fitting.

    Examples:
        >>> ds = GPDataset(
        ...     name="vdp1",
        ...     indices=np.array([0, 2]),
        ...     times=np.array([0.0, 0.2]),
        ...     X=np.zeros((2, 3)),
        ...     Y=np.zeros((2, 6)),
        ...     noise_level=np.full(6, 1e-2),
        ...     X_full=np.zeros((3, 3)),
        ...     Y_full=np.zeros((3, 6)),
        ... )
        >>> ds.n_samples
        2
    """

    name: str
    indices: np.ndarray
    times: np.ndarray
    X: np.ndarray
    Y: np.ndarray
    noise_level: np.ndarray
    X_full: np.ndarray
    Y_full: np.ndarray
    Y_noisy: Optional[np.ndarray] = None
    fit: Optional[HyperparameterFit] = None

    def __post_init__(self) -> None:
        """Validate shapes and index ordering."""
        self.indices = np.asarray(self.indices, dtype=int)
        self.times = np.asarray(self.times, dtype=float)
        self.X = np.asarray(self.X, dtype=float)
        self.Y = np.asarray(self.Y, dtype=float)
        self.noise_level = np.atleast_1d(np.asarray(self.noise_level, dtype=float))
        self.X_full = np.asarray(self.X_full, dtype=float)
        self.Y_full = np.asarray(self.Y_full, dtype=float)

        M = self.indices.size
        if self.indices.ndim != 1 or M < 1:
            raise ValueError(f"indices must be a non-empty 1D array, got {self.indices.shape}")
        if M > 1 and not np.all(np.diff(self.indices) > 0):
            raise ValueError("indices must be strictly increasing")
        if self.times.shape != (M,):
            raise ValueError(f"times must have shape ({M},), got {self.times.shape}")
        if self.X.ndim != 2 or self.X.shape[0] != M:
            raise ValueError(f"X must have shape ({M}, D), got {self.X.shape}")
        if self.Y.ndim != 2 or self.Y.shape[0] != M:
            raise ValueError(f"Y must have shape ({M}, C), got {self.Y.shape}")
        if self.noise_level.shape != (self.Y.shape[1],):
            raise ValueError(
                f"noise_level must have shape ({self.Y.shape[1]},), got {self.noise_level.shape}"
            )
        if np.any(self.noise_level < 0):
            raise ValueError("noise_level must be non-negative")
        if self.X_full.ndim != 2 or self.X_full.shape[1] != self.X.shape[1]:
            raise ValueError(f"X_full must have shape (K, {self.X.shape[1]}), got {self.X_full.shape}")
        if self.Y_full.shape != (self.X_full.shape[0], self.Y.shape[1]):
            raise ValueError(
                f"Y_full must have shape ({self.X_full.shape[0]}, {self.Y.shape[1]}), "
                f"got {self.Y_full.shape}"
            )
        if self.indices[-1] >= self.X_full.shape[0]:
            raise ValueError("indices exceed the full trajectory length")
        if self.Y_noisy is not None:
            self.Y_noisy = np.asarray(self.Y_noisy, dtype=float)
            if self.Y_noisy.shape != self.Y.shape:
                raise ValueError(
                    f"Y_noisy must have shape {self.Y.shape}, got {self.Y_noisy.shape}"
                )

    @property
    def n_samples(self) -> int:
        """Number of training samples M."""
        return self.indices.size

    @property
    def training_outputs(self) -> np.ndarray:
        """Outputs used for fitting: Y_noisy if present, else Y."""
        return self.Y if self.Y_noisy is None else self.Y_noisy

    @property
    def hyperparameters(self) -> Optional[GPHyperparameters]:
        """Fitted hyperparameters, or None before fitting."""
        return None if self.fit is None else self.fit.hyperparameters

    def with_noise(self, Y_noisy: np.ndarray) -> "GPDataset":
        """Copy of this dataset with noisy outputs attached."""
        return replace(self, Y_noisy=np.asarray(Y_noisy, dtype=float))

    def with_fit(self, fit: HyperparameterFit) -> "GPDataset":
        """Copy of this dataset with a hyperparameter fit attached."""
        return replace(self, fit=fit)

    def __repr__(self) -> str:
        return (
            f"GPDataset(name={self.name!r}, n_samples={self.n_samples}, "
            f"noisy={self.Y_noisy is not None}, fitted={self.fit is not None})"
        )


@dataclass
class PooledDataset:
    """
    Union of several datasets for a joint hyperparameter fit.

    Attributes:
        X: Stacked inputs, shape (ΣM, D), in source order.
        Y: Stacked training outputs, shape (ΣM, C), in source order.
        noise_level: Element-wise maximum of the sources' noise levels,
                     shape (C,).
        sources: Names of the source datasets, in stacking order.
        counts: Sample count contributed by each source.
        fit: Hyperparameter fit result, or None before fitting.
    """

    X: np.ndarray
    Y: np.ndarray
    noise_level: np.ndarray
    sources: Tuple[str, ...] = ()
    counts: Tuple[int, ...] = ()
    fit: Optional[HyperparameterFit] = None

    def __post_init__(self) -> None:
        self.X = np.asarray(self.X, dtype=float)
        self.Y = np.asarray(self.Y, dtype=float)
        self.noise_level = np.atleast_1d(np.asarray(self.noise_level, dtype=float))
        if self.X.ndim != 2 or self.Y.ndim != 2 or self.X.shape[0] != self.Y.shape[0]:
            raise ValueError(
                f"X and Y must be 2D with equal rows, got {self.X.shape} and {self.Y.shape}"
            )
        if self.noise_level.shape != (self.Y.shape[1],):
            raise ValueError(
                f"noise_level must have shape ({self.Y.shape[1]},), got {self.noise_level.shape}"
            )
        if self.counts and sum(self.counts) != self.X.shape[0]:
            raise ValueError("counts do not add up to the number of rows")

    @property
    def n_samples(self) -> int:
        """Total number of pooled samples."""
        return self.X.shape[0]

    @property
    def hyperparameters(self) -> Optional[GPHyperparameters]:
        """Fitted hyperparameters, or None before fitting."""
        return None if self.fit is None else self.fit.hyperparameters

    def with_fit(self, fit: HyperparameterFit) -> "PooledDataset":
        """Copy of this dataset with a hyperparameter fit attached."""
        return replace(self, fit=fit)


def pool_datasets(*datasets: GPDataset) -> PooledDataset:
    """
    Concatenate datasets in order for a joint fit.

    Uses each dataset's training outputs (noisy if available). The pooled
    noise level is the element-wise maximum over the sources.

    Args:
        *datasets: Two or more GPDataset instances with matching dimensions.

    Returns:
        PooledDataset with every (x, y) pair preserved in source order.

    Raises:
        ValueError: If no dataset is given or dimensions differ.

    Examples:
        >>> pooled = pool_datasets(ds1, ds2)  # doctest: +SKIP
        >>> pooled.n_samples == ds1.n_samples + ds2.n_samples  # doctest: +SKIP
        True
    """
    if not datasets:
        raise ValueError("need at least one dataset to pool")
    D = datasets[0].X.shape[1]
    C = datasets[0].Y.shape[1]
    for ds in datasets:
        if ds.X.shape[1] != D or ds.Y.shape[1] != C:
            raise ValueError(f"dataset '{ds.name}' dimensions differ from '{datasets[0].name}'")

    return PooledDataset(
        X=np.vstack([ds.X for ds in datasets]),
        Y=np.vstack([ds.training_outputs for ds in datasets]),
        noise_level=np.max(np.vstack([ds.noise_level for ds in datasets]), axis=0),
        sources=tuple(ds.name for ds in datasets),
        counts=tuple(ds.n_samples for ds in datasets),
    )
