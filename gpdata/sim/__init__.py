"""
Simulation utilities for generating target trajectories and noisy outputs.

Modules:
    integrators: Fixed-step Euler / RK4 integration with divergence checks
    van_der_pol: Van-der-Pol limit-cycle target trajectories
    noise: Gaussian noise injection for velocity targets
    types: Trajectory container
"""

from gpdata.sim.integrators import euler_step, integrate_fixed_step, rk4_step
from gpdata.sim.noise import inject_velocity_noise
from gpdata.sim.types import Trajectory
from gpdata.sim.van_der_pol import (
    generate_van_der_pol_trajectory,
    plane_embedding,
    van_der_pol_dynamics,
)

__all__ = [
    "Trajectory",
    "euler_step",
    "rk4_step",
    "integrate_fixed_step",
    "van_der_pol_dynamics",
    "plane_embedding",
    "generate_van_der_pol_trajectory",
    "inject_velocity_noise",
]
