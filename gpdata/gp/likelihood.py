"""
Log marginal likelihood of a zero-mean GP with Gaussian observation noise.

For targets y (n,) with K_y = K_f(X, X) + σ_n² I:

    log p(y | X, θ) = -½ yᵀ K_y⁻¹ y - ½ log|K_y| - n/2 log 2π

and, with α = K_y⁻¹ y,

    ∂/∂θ_j log p = ½ tr((α αᵀ - K_y⁻¹) ∂K_y/∂θ_j)

Several output columns sharing one hyperparameter set are treated as
independent GPs; their log likelihoods and gradients add.

The Gram matrix is factorized with a small diagonal jitter. If Cholesky
still fails, the jitter grows by a factor of 10 per retry (with a warning)
up to a bounded number of attempts.
"""

import warnings
from typing import Tuple

import numpy as np
from scipy.linalg import cho_solve

from gpdata.errors import NonPositiveDefiniteCovariance
from gpdata.gp.covariance import CovarianceFunction


DEFAULT_JITTER = 1e-8
DEFAULT_MAX_TRIES = 6


def cholesky_with_jitter(
    K: np.ndarray,
    jitter: float = DEFAULT_JITTER,
    max_tries: int = DEFAULT_MAX_TRIES,
) -> Tuple[np.ndarray, float]:
    """
    Lower Cholesky factor of K + εI with escalating jitter ε.

    The jitter is relative to the mean diagonal of K, so it scales with
    the signal variance.

    Args:
        K: Symmetric matrix, shape (n, n).
        jitter: Initial relative jitter.
        max_tries: Number of factorization attempts (jitter x10 each retry).

    Returns:
        Tuple (L, eps) with L lower-triangular and eps the absolute jitter
        that succeeded.

    Raises:
        NonPositiveDefiniteCovariance: If every attempt fails or K is not
            finite.
    """
    K = np.asarray(K, dtype=float)
    if not np.all(np.isfinite(K)):
        raise NonPositiveDefiniteCovariance("Covariance matrix contains non-finite values")

    scale = float(np.mean(np.diag(K)))
    scale = scale if scale > 0 else 1.0
    eps = jitter * scale
    identity = np.eye(K.shape[0])

    for attempt in range(max_tries):
        try:
            return np.linalg.cholesky(K + eps * identity), eps
        except np.linalg.LinAlgError:
            if attempt + 1 < max_tries:
                warnings.warn(
                    f"Cholesky failed with jitter {eps:.1e}; retrying with {eps * 10:.1e}",
                    RuntimeWarning,
                )
                eps *= 10.0

    raise NonPositiveDefiniteCovariance(
        "Covariance matrix is not positive definite after adding jitter",
        final_jitter=eps,
        attempts=max_tries,
    )


def log_marginal_likelihood(
    log_hyp: np.ndarray,
    log_noise: float,
    X: np.ndarray,
    Y: np.ndarray,
    covariance: CovarianceFunction,
    jitter: float = DEFAULT_JITTER,
    max_tries: int = DEFAULT_MAX_TRIES,
) -> Tuple[float, np.ndarray, float]:
    """
    Log marginal likelihood and its gradient.

    Args:
        log_hyp: Covariance log hyperparameters θ, shape (P,).
        log_noise: log σ_n.
        X: Inputs, shape (n, D).
        Y: Targets, shape (n,) or (n, C). Columns share θ and σ_n.
        covariance: Covariance function.
        jitter: Initial relative jitter for the Cholesky factorization.
        max_tries: Factorization attempts before giving up.

    Returns:
        Tuple (lml, grad_hyp, grad_log_noise):
            lml: Summed log marginal likelihood over columns.
            grad_hyp: ∂lml/∂θ, shape (P,).
            grad_log_noise: ∂lml/∂log σ_n.

    Raises:
        NonPositiveDefiniteCovariance: If K_y cannot be factorized.
    """
    X = np.asarray(X, dtype=float)
    Y = np.asarray(Y, dtype=float)
    if Y.ndim == 1:
        Y = Y[:, None]
    n, C = Y.shape

    noise_var = float(np.exp(2.0 * log_noise))
    K = covariance(log_hyp, X) + noise_var * np.eye(n)
    L, _ = cholesky_with_jitter(K, jitter=jitter, max_tries=max_tries)

    alpha = cho_solve((L, True), Y)  # (n, C)
    lml = (
        -0.5 * float(np.sum(Y * alpha))
        - C * float(np.sum(np.log(np.diag(L))))
        - 0.5 * n * C * np.log(2.0 * np.pi)
    )

    K_inv = cho_solve((L, True), np.eye(n))
    W = alpha @ alpha.T - C * K_inv

    dK = covariance.gradients(log_hyp, X)  # (P, n, n)
    grad_hyp = 0.5 * np.einsum("ij,pij->p", W, dK)
    # ∂K_y/∂log σ_n = 2 σ_n² I
    grad_log_noise = noise_var * float(np.trace(W))

    return lml, grad_hyp, grad_log_noise
