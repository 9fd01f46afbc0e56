"""
Named failure kinds raised by the data-generation pipeline.

Every failure carries a ``context`` dictionary. Lower layers fill in what
they know (step index, point indices, jitter), and the pipeline adds the
trajectory name and oscillator parameters before re-raising, so a failure
always identifies the run that produced it.

Plain argument validation keeps using ``ValueError``/``TypeError``.
"""

from typing import Any, Dict, Optional

import numpy as np


class GPDataError(Exception):
    """Base class for pipeline failures with attached context."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context)

    def add_context(self, **context: Any) -> "GPDataError":
        """
        Attach extra context without overwriting existing keys.

        Returns:
            The same exception instance, so it can be re-raised directly.
        """
        for key, value in context.items():
            self.context.setdefault(key, value)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.message} [{details}]"


class IntegrationDivergence(GPDataError, ArithmeticError):
    """Non-finite state produced while integrating a trajectory."""


class DegenerateProjection(GPDataError, ValueError):
    """Feature point at or behind the camera plane (depth <= 0)."""


class SamplingOutOfRange(GPDataError, ValueError):
    """Sample count or window incompatible with the recorded trajectory."""


class NonPositiveDefiniteCovariance(GPDataError, np.linalg.LinAlgError):
    """Gram matrix could not be factorized even after adding jitter."""


class OptimizerNonConvergence(GPDataError, RuntimeError):
    """
    Marginal-likelihood maximization did not produce a usable fit.

    Attributes:
        last_hyperparameters: Last finite hyperparameter estimate seen by
            the optimizer (a GPHyperparameters instance), or None.
    """

    def __init__(
        self,
        message: str,
        last_hyperparameters: Optional[Any] = None,
        **context: Any,
    ):
        super().__init__(message, **context)
        self.last_hyperparameters = last_hyperparameters
