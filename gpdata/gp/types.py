"""Type definitions for fitted GP hyperparameters.

Author: Navigation Engineer
Date: October 2026
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np


FIT_MODES = ("per_channel", "shared")


@dataclass
class GPHyperparameters:
    """
    Covariance and noise hyperparameters for one or more output channels.

    Row c belongs to output group c. In "per_channel" mode each of the C
    velocity channels has its own row; in "shared" mode there is a single
    row used by all channels.

    Attributes:
        length_scales: Length-scales ℓ per input dimension, shape (G, D).
        signal_variance: Signal variance σ_f², shape (G,).
        noise_variance: Observation noise variance σ_n², shape (G,).
        covariance: Covariance function name (e.g. "SEard").
        mode: "per_channel" or "shared".
        active: Whether group g carries signal, shape (G,) bool. Defaults
                to all True.

    Notes:
        All values must be finite and strictly positive, except the signal
        variance of an inactive group, which is exactly 0: the group is a
        noise-only model and its length-scales are unused placeholders.
    """

    length_scales: np.ndarray
    signal_variance: np.ndarray
    noise_variance: np.ndarray
    covariance: str = "SEard"
    mode: str = "per_channel"
    active: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        """Validate shapes and positivity."""
        self.length_scales = np.atleast_2d(np.asarray(self.length_scales, dtype=float))
        self.signal_variance = np.atleast_1d(np.asarray(self.signal_variance, dtype=float))
        self.noise_variance = np.atleast_1d(np.asarray(self.noise_variance, dtype=float))

        G = self.length_scales.shape[0]
        if self.active is None:
            self.active = np.ones(G, dtype=bool)
        self.active = np.atleast_1d(np.asarray(self.active, dtype=bool))

        for label, arr in (
            ("signal_variance", self.signal_variance),
            ("noise_variance", self.noise_variance),
            ("active", self.active),
        ):
            if arr.shape != (G,):
                raise ValueError(f"{label} must have shape ({G},), got {arr.shape}")
        if self.mode not in FIT_MODES:
            raise ValueError(f"mode must be one of {FIT_MODES}, got '{self.mode}'")

        for label, arr in (
            ("length_scales", self.length_scales),
            ("signal_variance", self.signal_variance[self.active]),
            ("noise_variance", self.noise_variance),
        ):
            if not np.all(np.isfinite(arr)) or np.any(arr <= 0):
                raise ValueError(f"{label} must be finite and strictly positive, got {arr}")
        if np.any(self.signal_variance[~self.active] != 0.0):
            raise ValueError("signal_variance of an inactive group must be 0")

    @property
    def n_groups(self) -> int:
        """Number of fitted hyperparameter sets G."""
        return self.length_scales.shape[0]

    @property
    def input_dim(self) -> int:
        """Input dimension D."""
        return self.length_scales.shape[1]

    def to_log_matrix(self) -> np.ndarray:
        """
        Log hyperparameters stacked column-wise, one column per group.

        Layout of each column: [log ℓ_1, ..., log ℓ_D, log σ_f, log σ_n],
        i.e. the usual log-parameterization of an SEard covariance followed
        by the Gaussian likelihood parameter. Inactive groups get
        log σ_f = -inf.

        Returns:
            Array of shape (D + 2, G).
        """
        with np.errstate(divide="ignore"):
            log_sf = 0.5 * np.log(self.signal_variance)
        return np.vstack(
            [
                np.log(self.length_scales).T,
                log_sf[None, :],
                0.5 * np.log(self.noise_variance)[None, :],
            ]
        )

    def __repr__(self) -> str:
        return (
            f"GPHyperparameters(covariance={self.covariance!r}, mode={self.mode!r}, "
            f"groups={self.n_groups}, active={int(np.sum(self.active))}, "
            f"input_dim={self.input_dim})"
        )


@dataclass
class HyperparameterFit:
    """
    Result container for marginal-likelihood hyperparameter fitting.

    Attributes:
        hyperparameters: Fitted hyperparameters.
        log_likelihood: Best log marginal likelihood per group, shape (G,).
        history: Per group, the running-best log marginal likelihood after
                 each optimizer iteration (entry 0 is the initial value).
                 Non-decreasing by construction.
        iterations: Optimizer iterations per group, shape (G,).
        converged: True if every group met the convergence tolerance.
        messages: Optimizer termination messages per group.
    """

    hyperparameters: GPHyperparameters
    log_likelihood: np.ndarray
    history: List[np.ndarray] = field(default_factory=list)
    iterations: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    converged: bool = True
    messages: List[str] = field(default_factory=list)
