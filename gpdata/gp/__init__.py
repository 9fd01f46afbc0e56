"""
Gaussian-Process hyperparameter learning.

Modules:
    covariance: SEard / SEiso covariance functions (log-parameterized)
    likelihood: Log marginal likelihood, gradient, jittered Cholesky
    hyperparameters: L-BFGS-B marginal-likelihood maximization
    types: GPHyperparameters, HyperparameterFit
"""

from gpdata.gp.covariance import (
    COVARIANCE_FUNCTIONS,
    CovarianceFunction,
    SquaredExponentialARD,
    SquaredExponentialIso,
    get_covariance,
)
from gpdata.gp.hyperparameters import optimize_hyperparameters
from gpdata.gp.likelihood import cholesky_with_jitter, log_marginal_likelihood
from gpdata.gp.types import FIT_MODES, GPHyperparameters, HyperparameterFit

__all__ = [
    # Covariance functions
    "CovarianceFunction",
    "SquaredExponentialARD",
    "SquaredExponentialIso",
    "COVARIANCE_FUNCTIONS",
    "get_covariance",
    # Likelihood
    "cholesky_with_jitter",
    "log_marginal_likelihood",
    # Fitting
    "optimize_hyperparameters",
    "FIT_MODES",
    "GPHyperparameters",
    "HyperparameterFit",
]
