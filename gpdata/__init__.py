"""GP training-data generation for visual pursuit control.

This package simulates a static camera tracking a rigid target with a
Visual Motion Observer (VMO) and turns the estimated motion into datasets
for Gaussian-Process hyperparameter learning:
- coords: SE(3) pose algebra
- sim: fixed-step integration, Van-der-Pol target trajectories, sensor noise
- vision: pinhole feature projection and image Jacobian
- estimators: Visual Motion Observer
- datasets: trajectory sampling, dataset containers, persistence
- gp: covariance functions and marginal-likelihood hyperparameter fitting
- eval: observer metrics and dataset plots
"""

__version__ = "0.1.0"
