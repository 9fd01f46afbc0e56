"""
Fixed-step numerical integrators for ordinary differential equations.

Each step function takes (state, dt, dynamics) and returns the next state,
so the integration scheme can be tested independently of any particular
model. ``dynamics`` is autonomous: dynamics(state) -> dstate/dt.

Author: Navigation Engineer
Date: October 2026
"""

from typing import Callable, Dict

import numpy as np

from gpdata.errors import IntegrationDivergence


Dynamics = Callable[[np.ndarray], np.ndarray]


def euler_step(state: np.ndarray, dt: float, dynamics: Dynamics) -> np.ndarray:
    """
    Forward Euler step: x_{k+1} = x_k + dt f(x_k).

    Args:
        state: Current state, shape (n,).
        dt: Step size in seconds.
        dynamics: Vector field f(x) returning shape (n,).

    Returns:
        Next state, shape (n,).
    """
    state = np.asarray(state, dtype=float)
    return state + dt * np.asarray(dynamics(state), dtype=float)


def rk4_step(state: np.ndarray, dt: float, dynamics: Dynamics) -> np.ndarray:
    """
    Classical fourth-order Runge-Kutta step.

        k1 = f(x)
        k2 = f(x + dt/2 k1)
        k3 = f(x + dt/2 k2)
        k4 = f(x + dt k3)
        x_{k+1} = x + dt/6 (k1 + 2 k2 + 2 k3 + k4)

    Args:
        state: Current state, shape (n,).
        dt: Step size in seconds.
        dynamics: Vector field f(x) returning shape (n,).

    Returns:
        Next state, shape (n,).

    Example:
        >>> # dx/dt = -x, one step from x = 1
        >>> x1 = rk4_step(np.array([1.0]), 0.1, lambda x: -x)
        >>> abs(x1[0] - np.exp(-0.1)) < 1e-6
        True
    """
    state = np.asarray(state, dtype=float)
    k1 = np.asarray(dynamics(state), dtype=float)
    k2 = np.asarray(dynamics(state + 0.5 * dt * k1), dtype=float)
    k3 = np.asarray(dynamics(state + 0.5 * dt * k2), dtype=float)
    k4 = np.asarray(dynamics(state + dt * k3), dtype=float)
    return state + dt / 6.0 * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


STEP_FUNCTIONS: Dict[str, Callable[[np.ndarray, float, Dynamics], np.ndarray]] = {
    "euler": euler_step,
    "rk4": rk4_step,
}


def integrate_fixed_step(
    dynamics: Dynamics,
    x0: np.ndarray,
    dt: float,
    n_steps: int,
    method: str = "rk4",
) -> np.ndarray:
    """
    Integrate an autonomous ODE with a fixed step size.

    Args:
        dynamics: Vector field f(x) returning shape (n,).
        x0: Initial state, shape (n,).
        dt: Step size in seconds (must be positive).
        n_steps: Number of steps to take (non-negative).
        method: 'rk4' (default) or 'euler'.

    Returns:
        State history, shape (n_steps + 1, n). Row 0 is x0.

    Raises:
        ValueError: If dt, n_steps or method are invalid.
        IntegrationDivergence: If any state becomes non-finite.
    """
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    if n_steps < 0:
        raise ValueError(f"n_steps must be non-negative, got {n_steps}")
    if method not in STEP_FUNCTIONS:
        raise ValueError(
            f"Unknown method '{method}'. Choose from {sorted(STEP_FUNCTIONS)}"
        )

    step = STEP_FUNCTIONS[method]
    x0 = np.asarray(x0, dtype=float).reshape(-1)
    if not np.all(np.isfinite(x0)):
        raise IntegrationDivergence(
            "Initial state is not finite", step=0, time=0.0, state=x0.tolist()
        )

    states = np.zeros((n_steps + 1, x0.size))
    states[0] = x0

    with np.errstate(over="ignore", invalid="ignore"):
        for k in range(n_steps):
            x_next = step(states[k], dt, dynamics)
            if not np.all(np.isfinite(x_next)):
                raise IntegrationDivergence(
                    "Integration produced a non-finite state",
                    step=k + 1,
                    time=(k + 1) * dt,
                    method=method,
                )
            states[k + 1] = x_next

    return states
