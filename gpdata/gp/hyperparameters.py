"""
GP hyperparameter fitting by log marginal likelihood maximization.

This module fits covariance hyperparameters (length-scales, signal variance)
and, optionally, the observation noise variance to a dataset (X, Y) by
maximizing the log marginal likelihood of a zero-mean GP.

Optimization:
    - Parameters live in log space, so positivity holds for any iterate.
    - SciPy's L-BFGS-B minimizes the negative log marginal likelihood with
      analytic gradients, inside box bounds on the log values.
    - A callback records the running best log likelihood after every
      iteration. The reported result is the best iterate, so the history
      is non-decreasing even if a line search overshoots.
    - Length-scales of constant input columns are held at their starting
      value; the likelihood does not depend on them.
    - Besides the data-driven start, up to ``len(RESTART_STARTS)``
      deterministic restarts with longer/shorter length-scales and larger
      noise are run. The best non-degenerate optimum is reported.

Fit modes:
    - "per_channel": every output column gets its own hyperparameters,
      noise initialized at that channel's noise level.
    - "shared": all columns share one hyperparameter set (independent GPs
      with a common kernel); noise initialized at the largest noise level.

Inactive channels:
    Columns flagged inactive (no signal above the noise level) are not
    optimized. They are reported as noise-only models: signal variance 0
    and noise variance σ_n². In "shared" mode only active columns enter
    the fit.

Failure handling:
    Non-finite iterates, an exhausted iteration budget, or an optimizer
    failure without any improvement over the starting point raise
    OptimizerNonConvergence with the last finite estimate attached. So does
    a degenerate optimum, i.e. one pinned at the box bounds:

        - any free length-scale at the lower bound (white-noise collapse)
        - every free length-scale at the upper bound (inputs ignored)
        - the signal standard deviation at either bound
        - a learned noise standard deviation at the upper bound

    A single length-scale at the upper bound is accepted (ARD switching off
    an irrelevant input), as is the noise at the lower bound (noise-free
    limit). Each start is checked on its own; the error of the first start
    is raised only if no start gives a usable fit. An optimizer that stops
    early after improving the likelihood (e.g. an inexact line search at
    the optimum) is accepted with a RuntimeWarning and ``converged=False``
    on the result.
"""

import warnings
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.optimize import minimize

from gpdata.errors import OptimizerNonConvergence
from gpdata.gp.covariance import CovarianceFunction, get_covariance
from gpdata.gp.likelihood import DEFAULT_JITTER, DEFAULT_MAX_TRIES, log_marginal_likelihood
from gpdata.gp.types import FIT_MODES, GPHyperparameters, HyperparameterFit


DEFAULT_LOG_BOUNDS = (-12.0, 12.0)

# Distance from a box bound (log units) at which a value counts as pinned
BOUND_TOLERANCE = 1e-2

# Restart starting points: (length-scale factor, noise std as a fraction of std(Y))
RESTART_STARTS = ((3.0, 0.3), (10.0, 0.3), (0.3, 0.1))


def optimize_hyperparameters(
    X: np.ndarray,
    Y: np.ndarray,
    noise_level: Union[float, np.ndarray],
    covariance: Union[str, CovarianceFunction] = "SEard",
    mode: str = "per_channel",
    learn_noise: bool = True,
    max_iter: int = 500,
    tol: float = 1e-9,
    log_bounds: Tuple[float, float] = DEFAULT_LOG_BOUNDS,
    jitter: float = DEFAULT_JITTER,
    max_jitter_tries: int = DEFAULT_MAX_TRIES,
    restarts: int = len(RESTART_STARTS),
    active: Optional[np.ndarray] = None,
) -> HyperparameterFit:
    """
    Fit covariance hyperparameters by maximizing the log marginal likelihood.

    Args:
        X: Training inputs, shape (M, D).
        Y: Training targets, shape (M, C) or (M,).
        noise_level: Noise standard deviation σ_n per output channel,
                     scalar or shape (C,). Strictly positive. Used as the
                     starting value (learn_noise=True) or as the fixed value.
        covariance: Covariance name ("SEard", "SEiso") or instance.
        mode: "per_channel" (default) or "shared".
        learn_noise: Optimize σ_n jointly (True) or keep it fixed.
        max_iter: Iteration budget per optimizer start.
        tol: Relative function tolerance (L-BFGS-B ``ftol``).
        log_bounds: Box bounds applied to every log hyperparameter.
        jitter: Initial relative Cholesky jitter.
        max_jitter_tries: Cholesky attempts before NonPositiveDefiniteCovariance.
        restarts: Number of extra starts taken from RESTART_STARTS.
        active: Boolean mask of channels that carry signal, shape (C,).
                Default: all channels.

    Returns:
        HyperparameterFit with one hyperparameter set per channel
        ("per_channel") or a single set ("shared").

    Raises:
        ValueError: If inputs are malformed.
        NonPositiveDefiniteCovariance: If a Gram matrix cannot be factorized.
        OptimizerNonConvergence: If the optimization does not produce a
            usable fit.

    Example:
        >>> rng = np.random.default_rng(0)
        >>> X = rng.uniform(-2, 2, size=(30, 3))
        >>> Y = np.column_stack([np.sin(X[:, 0]), np.cos(X[:, 1])])
        >>> fit = optimize_hyperparameters(X, Y, noise_level=1e-2)
        >>> fit.hyperparameters.length_scales.shape
        (2, 3)
    """
    X, Y, sigma = _check_inputs(X, Y, noise_level)
    if mode not in FIT_MODES:
        raise ValueError(f"mode must be one of {FIT_MODES}, got '{mode}'")
    if max_iter < 1:
        raise ValueError(f"max_iter must be >= 1, got {max_iter}")
    if not 0 <= restarts <= len(RESTART_STARTS):
        raise ValueError(f"restarts must be in [0, {len(RESTART_STARTS)}], got {restarts}")

    C = Y.shape[1]
    if active is None:
        active = np.ones(C, dtype=bool)
    active = np.asarray(active, dtype=bool).reshape(-1)
    if active.shape != (C,):
        raise ValueError(f"active must have shape ({C},), got {active.shape}")

    cov = get_covariance(covariance)

    if mode == "per_channel":
        groups = [([c], sigma[c], bool(active[c])) for c in range(C)]
    else:
        columns = [c for c in range(C) if active[c]] or list(range(C))
        groups = [(columns, float(np.max(sigma[columns])), bool(np.any(active)))]

    results = []
    for g, (columns, sn, group_active) in enumerate(groups):
        if not group_active:
            results.append(_noise_only(X, Y[:, columns], cov, sn))
            continue
        results.append(
            _fit_group(
                X,
                Y[:, columns],
                cov,
                sn,
                learn_noise=learn_noise,
                max_iter=max_iter,
                tol=tol,
                log_bounds=log_bounds,
                jitter=jitter,
                max_jitter_tries=max_jitter_tries,
                restarts=restarts,
                group=g,
                mode=mode,
            )
        )

    hyperparameters = GPHyperparameters(
        length_scales=np.array([r["length_scales"] for r in results]),
        signal_variance=np.array([r["signal_variance"] for r in results]),
        noise_variance=np.array([r["noise_variance"] for r in results]),
        covariance=cov.name,
        mode=mode,
        active=np.array([r["active"] for r in results]),
    )

    return HyperparameterFit(
        hyperparameters=hyperparameters,
        log_likelihood=np.array([r["lml"] for r in results]),
        history=[r["history"] for r in results],
        iterations=np.array([r["iterations"] for r in results], dtype=int),
        converged=all(r["converged"] for r in results),
        messages=[r["message"] for r in results],
    )


def _noise_only(X: np.ndarray, Y: np.ndarray, cov: CovarianceFunction, sn: float) -> dict:
    """Noise-only model for a group without signal; nothing is optimized."""
    n = Y.size
    lml = float(-0.5 * np.sum(Y**2) / sn**2 - n * np.log(sn) - 0.5 * n * np.log(2.0 * np.pi))
    return {
        "length_scales": cov.length_scales(cov.initial_hyperparameters(X, Y), X.shape[1]),
        "signal_variance": 0.0,
        "noise_variance": sn**2,
        "lml": lml,
        "history": np.array([lml]),
        "iterations": 0,
        "converged": True,
        "message": "no signal: not optimized",
        "active": False,
    }


def _fit_group(
    X: np.ndarray,
    Y: np.ndarray,
    cov: CovarianceFunction,
    sn: float,
    learn_noise: bool,
    max_iter: int,
    tol: float,
    log_bounds: Tuple[float, float],
    jitter: float,
    max_jitter_tries: int,
    restarts: int,
    group: int,
    mode: str,
) -> dict:
    """Optimize one hyperparameter set from every start; returns a plain result dict."""
    D = X.shape[1]
    P = cov.n_hyperparameters(D)
    lo, hi = log_bounds

    # Full vector [log_hyp, log_noise]; only the free entries are optimized
    free = np.append(~cov.fixed_hyperparameters(X), learn_noise)
    is_scale = np.arange(P + 1) < P - 1

    base = np.append(cov.initial_hyperparameters(X, Y), np.log(sn))
    base[free] = np.clip(base[free], lo, hi)

    starts = [base]
    spread = max(float(np.std(Y)), sn)
    for factor, fraction in RESTART_STARTS[:restarts]:
        start = base.copy()
        start[is_scale & free] += np.log(factor)
        if learn_noise:
            start[P] = np.log(max(fraction * spread, sn))
        start[free] = np.clip(start[free], lo, hi)
        starts.append(start)

    outcomes = []
    errors = []
    for k, start in enumerate(starts):
        try:
            outcomes.append(
                _optimize_start(
                    X, Y, cov, start, free, is_scale, max_iter, tol, log_bounds,
                    jitter, max_jitter_tries, context={"group": group, "start": k}, mode=mode,
                )
            )
        except OptimizerNonConvergence as exc:
            errors.append(exc)

    if not outcomes:
        raise errors[0]

    best = max(outcomes, key=lambda outcome: outcome["lml"])
    if not best["converged"]:
        warnings.warn(
            f"Hyperparameter optimization for group {group} stopped early "
            f"({best['message']}); using best iterate",
            RuntimeWarning,
        )

    log_hyp, log_noise = best["theta"][:P], float(best["theta"][P])
    return {
        "length_scales": cov.length_scales(log_hyp, D),
        "signal_variance": cov.signal_variance(log_hyp),
        "noise_variance": float(np.exp(2.0 * log_noise)),
        "lml": best["lml"],
        "history": best["history"],
        "iterations": best["iterations"],
        "converged": best["converged"],
        "message": best["message"],
        "active": True,
    }


def _optimize_start(
    X: np.ndarray,
    Y: np.ndarray,
    cov: CovarianceFunction,
    start: np.ndarray,
    free: np.ndarray,
    is_scale: np.ndarray,
    max_iter: int,
    tol: float,
    log_bounds: Tuple[float, float],
    jitter: float,
    max_jitter_tries: int,
    context: dict,
    mode: str,
) -> dict:
    """Run L-BFGS-B from one start and validate the optimum."""
    D = X.shape[1]
    P = start.size - 1
    lo, hi = log_bounds

    def expand(theta: np.ndarray) -> np.ndarray:
        full = start.copy()
        full[free] = theta
        return full

    cache = {}

    def objective(theta: np.ndarray) -> Tuple[float, np.ndarray]:
        full = expand(theta)
        lml, g_hyp, g_noise = log_marginal_likelihood(
            full[:P], full[P], X, Y, cov, jitter=jitter, max_tries=max_jitter_tries
        )
        grad = np.append(g_hyp, g_noise)[free]
        cache["theta"] = theta.copy()
        cache["lml"] = lml
        return -lml, -grad

    def evaluate(theta: np.ndarray) -> float:
        if "theta" in cache and np.array_equal(cache["theta"], theta):
            return cache["lml"]
        return -objective(theta)[0]

    theta0 = start[free]
    best = {"lml": evaluate(theta0), "theta": theta0.copy()}
    history: List[float] = [best["lml"]]
    initial_lml = best["lml"]
    if not np.isfinite(initial_lml):
        raise OptimizerNonConvergence(
            "Log marginal likelihood is not finite at the initial hyperparameters",
            **context,
        )

    def callback(theta: np.ndarray) -> None:
        lml = evaluate(theta)
        if np.isfinite(lml) and np.all(np.isfinite(theta)) and lml > best["lml"]:
            best["lml"] = lml
            best["theta"] = theta.copy()
        history.append(best["lml"])

    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        res = minimize(
            objective,
            theta0,
            jac=True,
            method="L-BFGS-B",
            bounds=[(lo, hi)] * theta0.size,
            callback=callback,
            options={"maxiter": max_iter, "ftol": tol, "gtol": 1e-6},
        )

    final_lml = -float(res.fun) if np.isfinite(res.fun) else -np.inf
    if np.all(np.isfinite(res.x)) and np.isfinite(final_lml) and final_lml > best["lml"]:
        best["lml"] = final_lml
        best["theta"] = np.asarray(res.x, dtype=float).copy()
        history[-1] = max(history[-1], final_lml)

    full = expand(best["theta"])
    last_valid = _as_hyperparameters(cov, full[:P], full[P], D, mode)
    context = dict(context, iterations=int(res.nit), optimizer_message=str(res.message))

    if not np.all(np.isfinite(res.x)) or not np.isfinite(res.fun):
        raise OptimizerNonConvergence(
            "Hyperparameters became non-finite during optimization",
            last_hyperparameters=last_valid,
            **context,
        )
    if res.status == 1:
        raise OptimizerNonConvergence(
            f"Iteration limit ({max_iter}) reached before convergence",
            last_hyperparameters=last_valid,
            **context,
        )
    if not res.success and best["lml"] <= initial_lml:
        raise OptimizerNonConvergence(
            "Log marginal likelihood did not improve",
            last_hyperparameters=last_valid,
            **context,
        )

    pinned = _pinned_at_bounds(full, free, is_scale, log_bounds)
    if pinned:
        raise OptimizerNonConvergence(
            "Degenerate fit: " + ", ".join(pinned),
            last_hyperparameters=last_valid,
            **context,
        )

    return {
        "theta": full,
        "lml": best["lml"],
        "history": np.asarray(history),
        "iterations": int(res.nit),
        "converged": bool(res.success),
        "message": str(res.message),
    }


def _pinned_at_bounds(
    full: np.ndarray,
    free: np.ndarray,
    is_scale: np.ndarray,
    log_bounds: Tuple[float, float],
    tol: float = BOUND_TOLERANCE,
) -> List[str]:
    """Reasons a fitted log vector [log_hyp, log_noise] is degenerate, if any."""
    lo, hi = log_bounds
    at_lo = full <= lo + tol
    at_hi = full >= hi - tol
    scales = is_scale & free
    P = full.size - 1

    reasons = []
    if np.any(at_lo & scales):
        reasons.append("length-scale at lower bound")
    if np.any(scales) and np.all(at_hi[scales]):
        reasons.append("every length-scale at upper bound")
    if at_lo[P - 1] or at_hi[P - 1]:
        reasons.append("signal std at bound")
    if free[P] and at_hi[P]:
        reasons.append("noise std at upper bound")
    return reasons


def _as_hyperparameters(
    cov: CovarianceFunction,
    log_hyp: np.ndarray,
    log_noise: float,
    input_dim: int,
    mode: str,
) -> Optional[GPHyperparameters]:
    """Build GPHyperparameters from one log vector, or None if invalid."""
    try:
        return GPHyperparameters(
            length_scales=cov.length_scales(log_hyp, input_dim)[None, :],
            signal_variance=[cov.signal_variance(log_hyp)],
            noise_variance=[np.exp(2.0 * log_noise)],
            covariance=cov.name,
            mode=mode,
        )
    except ValueError:
        return None


def _check_inputs(
    X: np.ndarray,
    Y: np.ndarray,
    noise_level: Union[float, Sequence[float], np.ndarray],
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    X = np.asarray(X, dtype=float)
    Y = np.asarray(Y, dtype=float)
    if Y.ndim == 1:
        Y = Y[:, None]
    if X.ndim != 2:
        raise ValueError(f"X must be a 2D array (M, D), got shape {X.shape}")
    if Y.ndim != 2:
        raise ValueError(f"Y must be a 2D array (M, C), got shape {Y.shape}")
    if X.shape[0] != Y.shape[0]:
        raise ValueError(f"X and Y row counts differ: {X.shape[0]} vs {Y.shape[0]}")
    if X.shape[0] < 2:
        raise ValueError("need at least 2 training samples")
    if not (np.all(np.isfinite(X)) and np.all(np.isfinite(Y))):
        raise ValueError("X and Y must be finite")

    sigma = np.asarray(noise_level, dtype=float)
    if sigma.ndim == 0:
        sigma = np.full(Y.shape[1], float(sigma))
    if sigma.shape != (Y.shape[1],):
        raise ValueError(
            f"noise_level must be scalar or shape ({Y.shape[1]},), got {sigma.shape}"
        )
    if not np.all(np.isfinite(sigma)) or np.any(sigma <= 0):
        raise ValueError(f"noise_level must be finite and strictly positive, got {sigma}")

    return X, Y, sigma
