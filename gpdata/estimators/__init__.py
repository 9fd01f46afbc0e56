"""
Estimators for relative pose and target velocity.

Modules:
    visual_motion_observer: Visual Motion Observer (VMO) and simulation loop
"""

from gpdata.estimators.visual_motion_observer import (
    ObserverRun,
    ObserverState,
    VisualMotionObserver,
    pose_error_vector,
    simulate_observer,
    validate_feature_points,
    validate_observer_gain,
)

__all__ = [
    "ObserverState",
    "ObserverRun",
    "VisualMotionObserver",
    "pose_error_vector",
    "simulate_observer",
    "validate_observer_gain",
    "validate_feature_points",
]
