"""
Gaussian noise injection for velocity training targets.

The noisy outputs follow the scaling used when the original GP datasets
were produced:

    y_noisy = y + σ² · n,    n ~ N(0, 1) i.i.d. per element

Note that the *squared* noise parameter multiplies the standard normal
sample. This is kept on purpose so regenerated datasets are comparable with
the published ones; the effective standard deviation of the injected noise
is therefore σ², not σ.

Reproducibility:
    Pass ``seed`` (or a seeded ``np.random.Generator``) to get byte-for-byte
    identical outputs across runs. Without either, a fresh generator is
    drawn from OS entropy and the dataset cannot be regenerated exactly.

Author: Navigation Engineer
Date: October 2026
"""

from typing import Optional, Union

import numpy as np


def inject_velocity_noise(
    Y: np.ndarray,
    noise_std: Union[float, np.ndarray],
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
) -> np.ndarray:
    """
    Add per-channel Gaussian noise to clean velocity targets.

    Args:
        Y: Clean outputs, shape (M, C) (C = 6 for body twists).
        noise_std: Noise parameter σ, scalar or shape (C,). Non-negative.
        rng: Random number generator. Takes precedence over ``seed``.
        seed: Seed for a new ``np.random.default_rng``. Ignored if ``rng``
              is given. If both are None the result is not reproducible.

    Returns:
        Noisy outputs Y + σ² · N(0, 1), shape (M, C). A new array; Y is not
        modified.

    Raises:
        ValueError: If shapes mismatch or any σ is negative or non-finite.

    Examples:
        >>> Y = np.zeros((30, 6))
        >>> Y1 = inject_velocity_noise(Y, 1e-2 * np.ones(6), seed=7)
        >>> Y2 = inject_velocity_noise(Y, 1e-2 * np.ones(6), seed=7)
        >>> np.array_equal(Y1, Y2)
        True
    """
    Y = np.asarray(Y, dtype=float)
    if Y.ndim != 2:
        raise ValueError(f"Y must be a 2D array (M, C), got shape {Y.shape}")

    sigma = np.asarray(noise_std, dtype=float)
    if sigma.ndim == 0:
        sigma = np.full(Y.shape[1], float(sigma))
    if sigma.shape != (Y.shape[1],):
        raise ValueError(
            f"noise_std must be scalar or shape ({Y.shape[1]},), got {sigma.shape}"
        )
    if not np.all(np.isfinite(sigma)) or np.any(sigma < 0):
        raise ValueError(f"noise_std must be finite and non-negative, got {sigma}")

    if rng is None:
        rng = np.random.default_rng(seed)

    # Always draw so the generator advances identically regardless of σ
    standard_normal = rng.standard_normal(Y.shape)
    if not np.any(sigma):
        return Y.copy()

    return Y + sigma**2 * standard_normal
