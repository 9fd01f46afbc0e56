"""
Evaluation utilities: observer tracking metrics and dataset plots.
"""

from gpdata.eval.metrics import (
    compute_pose_errors,
    compute_rmse,
    observer_tracking_summary,
)
from gpdata.eval.plots import plot_gp_datasets, plot_likelihood_history, save_figure

__all__ = [
    "compute_pose_errors",
    "compute_rmse",
    "observer_tracking_summary",
    "plot_gp_datasets",
    "plot_likelihood_history",
    "save_figure",
]
