"""
Stationary covariance functions with log-parameterized hyperparameters.

Squared exponential with automatic relevance determination (SEard):

    k(x, x') = σ_f² exp(-½ Σ_d (x_d - x'_d)² / ℓ_d²)
    θ = [log ℓ_1, ..., log ℓ_D, log σ_f]

Isotropic squared exponential (SEiso):

    k(x, x') = σ_f² exp(-½ ‖x - x'‖² / ℓ²)
    θ = [log ℓ, log σ_f]

Working in log space keeps every hyperparameter positive for any real θ.
Gradients are returned with respect to θ.

A length-scale along an input that never varies has no effect on the Gram
matrix (its gradient is identically zero). ``fixed_hyperparameters`` marks
such entries so the optimizer can hold them at their starting value.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Type

import numpy as np


# Relative input range below which a column counts as constant
CONSTANT_INPUT_TOL = 1e-9


class CovarianceFunction(ABC):
    """Abstract base class for covariance functions."""

    name: str = ""

    @abstractmethod
    def n_hyperparameters(self, input_dim: int) -> int:
        """Number of log hyperparameters for inputs of dimension D."""

    @abstractmethod
    def initial_hyperparameters(self, X: np.ndarray, Y: np.ndarray) -> np.ndarray:
        """Data-driven starting point θ₀ for optimization."""

    @abstractmethod
    def __call__(
        self, log_hyp: np.ndarray, X1: np.ndarray, X2: Optional[np.ndarray] = None
    ) -> np.ndarray:
        """Covariance matrix K(X1, X2), shape (n1, n2). X2 defaults to X1."""

    @abstractmethod
    def gradients(self, log_hyp: np.ndarray, X: np.ndarray) -> np.ndarray:
        """Derivatives ∂K(X, X)/∂θ_j stacked as shape (P, n, n)."""

    @abstractmethod
    def length_scales(self, log_hyp: np.ndarray, input_dim: int) -> np.ndarray:
        """Length-scale per input dimension, shape (D,)."""

    def signal_variance(self, log_hyp: np.ndarray) -> float:
        """Signal variance σ_f² (last log hyperparameter is log σ_f)."""
        return float(np.exp(2.0 * log_hyp[-1]))

    def fixed_hyperparameters(self, X: np.ndarray) -> np.ndarray:
        """Mask of log hyperparameters the data cannot identify, shape (P,)."""
        X = np.asarray(X, dtype=float)
        return np.zeros(self.n_hyperparameters(X.shape[1]), dtype=bool)


def _squared_differences(X1: np.ndarray, X2: np.ndarray) -> np.ndarray:
    """Per-dimension squared differences, shape (D, n1, n2)."""
    diff = X1[:, None, :] - X2[None, :, :]
    return np.moveaxis(diff**2, -1, 0)


def _initial_scales(X: np.ndarray) -> np.ndarray:
    spread = np.std(X, axis=0)
    return np.where(spread > 1e-6, spread, 1.0)


def _constant_columns(X: np.ndarray, tol: float = CONSTANT_INPUT_TOL) -> np.ndarray:
    """Columns of X whose range is negligible against the data magnitude."""
    scale = max(1.0, float(np.max(np.abs(X))))
    return np.ptp(X, axis=0) <= tol * scale


def _initial_signal(Y: np.ndarray) -> float:
    spread = float(np.std(Y))
    return spread if spread > 1e-6 else 1.0


class SquaredExponentialARD(CovarianceFunction):
    """
    Squared exponential covariance with one length-scale per input (SEard).

    Example:
        >>> cov = SquaredExponentialARD()
        >>> X = np.random.default_rng(0).normal(size=(5, 3))
        >>> K = cov(np.zeros(4), X)
        >>> np.allclose(np.diag(K), 1.0)
        True
    """

    name = "SEard"

    def n_hyperparameters(self, input_dim: int) -> int:
        return input_dim + 1

    def initial_hyperparameters(self, X: np.ndarray, Y: np.ndarray) -> np.ndarray:
        return np.log(np.append(_initial_scales(X), _initial_signal(Y)))

    def __call__(self, log_hyp, X1, X2=None):
        X1 = np.asarray(X1, dtype=float)
        X2 = X1 if X2 is None else np.asarray(X2, dtype=float)
        ell = np.exp(log_hyp[:-1])
        sf2 = np.exp(2.0 * log_hyp[-1])
        sq = _squared_differences(X1 / ell, X2 / ell).sum(axis=0)
        return sf2 * np.exp(-0.5 * sq)

    def gradients(self, log_hyp, X):
        X = np.asarray(X, dtype=float)
        ell = np.exp(log_hyp[:-1])
        K = self(log_hyp, X)
        scaled = _squared_differences(X / ell, X / ell)  # (D, n, n)
        return np.concatenate([K[None] * scaled, 2.0 * K[None]], axis=0)

    def length_scales(self, log_hyp, input_dim):
        return np.exp(np.asarray(log_hyp[:-1], dtype=float))

    def fixed_hyperparameters(self, X):
        return np.append(_constant_columns(np.asarray(X, dtype=float)), False)


class SquaredExponentialIso(CovarianceFunction):
    """Squared exponential covariance with a single shared length-scale (SEiso)."""

    name = "SEiso"

    def n_hyperparameters(self, input_dim: int) -> int:
        return 2

    def initial_hyperparameters(self, X: np.ndarray, Y: np.ndarray) -> np.ndarray:
        return np.log([float(np.mean(_initial_scales(X))), _initial_signal(Y)])

    def __call__(self, log_hyp, X1, X2=None):
        X1 = np.asarray(X1, dtype=float)
        X2 = X1 if X2 is None else np.asarray(X2, dtype=float)
        ell = np.exp(log_hyp[0])
        sf2 = np.exp(2.0 * log_hyp[1])
        sq = _squared_differences(X1, X2).sum(axis=0) / ell**2
        return sf2 * np.exp(-0.5 * sq)

    def gradients(self, log_hyp, X):
        X = np.asarray(X, dtype=float)
        ell = np.exp(log_hyp[0])
        K = self(log_hyp, X)
        sq = _squared_differences(X, X).sum(axis=0) / ell**2
        return np.stack([K * sq, 2.0 * K])

    def length_scales(self, log_hyp, input_dim):
        return np.full(input_dim, float(np.exp(log_hyp[0])))

    def fixed_hyperparameters(self, X):
        constant = _constant_columns(np.asarray(X, dtype=float))
        return np.array([bool(np.all(constant)), False])


COVARIANCE_FUNCTIONS: Dict[str, Type[CovarianceFunction]] = {
    SquaredExponentialARD.name: SquaredExponentialARD,
    SquaredExponentialIso.name: SquaredExponentialIso,
}


def get_covariance(covariance) -> CovarianceFunction:
    """
    Resolve a covariance name or instance to an instance.

    Args:
        covariance: Registered name ("SEard", "SEiso") or a
                    CovarianceFunction instance.

    Returns:
        CovarianceFunction instance.

    Raises:
        ValueError: If the name is not registered.
    """
    if isinstance(covariance, CovarianceFunction):
        return covariance
    if covariance not in COVARIANCE_FUNCTIONS:
        raise ValueError(
            f"Unknown covariance '{covariance}'. Available: {sorted(COVARIANCE_FUNCTIONS)}"
        )
    return COVARIANCE_FUNCTIONS[covariance]()
