"""Pinhole feature projection for the Visual Motion Observer.

This module implements the measurement model of the observer: a fixed
constellation of feature points, given in the target (object) frame, is
mapped through the relative pose g_co and projected with a focal-length
pinhole model

    p_ci = R_co p_oi + p_co = [x_i, y_i, z_i]
    f_i  = λ / z_i · [x_i, y_i]

Camera frame: X-right, Y-down, Z-forward (optical axis). No principal-point
offset or lens distortion is modeled; image coordinates are metric.

Points at or behind the camera plane (z_i <= 0) make the measurement model
invalid, so they are reported as DegenerateProjection instead of being
clipped.

Author: Navigation Engineer
Date: October 2026
"""

import numpy as np

from gpdata.coords.se3 import se3_apply, skew, split_pose
from gpdata.errors import DegenerateProjection


def transform_features(g_co: np.ndarray, feature_points: np.ndarray) -> np.ndarray:
    """
    Express target-frame feature points in the camera frame.

    Args:
        g_co: Relative pose camera → object, shape (4, 4).
        feature_points: Points in the object frame, shape (N, 3).

    Returns:
        Camera-frame points, shape (N, 3).
    """
    feature_points = _check_points(feature_points)
    return se3_apply(g_co, feature_points)


def project_features(
    g_co: np.ndarray,
    feature_points: np.ndarray,
    focal_length: float,
) -> np.ndarray:
    """
    Project feature points to image coordinates.

    Args:
        g_co: Relative pose camera → object, shape (4, 4).
        feature_points: Points in the object frame, shape (N, 3).
        focal_length: Focal length λ (positive).

    Returns:
        Image coordinates, shape (N, 2). Row i is λ/z_i [x_i, y_i].

    Raises:
        ValueError: If focal_length is not positive.
        DegenerateProjection: If any point has depth z_i <= 0.

    Example:
        >>> from gpdata.coords.se3 import merge_pose
        >>> g_co = merge_pose(np.eye(3), np.array([0.0, 0.0, 5.0]))
        >>> fp = np.array([[0.5, 0.0, 0.0], [0.0, 0.5, 0.0], [0.0, 0.0, 0.5]])
        >>> f = project_features(g_co, fp, focal_length=20.0)
        >>> f[0]
        array([2., 0.])
    """
    if focal_length <= 0:
        raise ValueError(f"focal_length must be positive, got {focal_length}")

    points_camera = transform_features(g_co, feature_points)
    depth = _check_depth(points_camera)

    return focal_length * points_camera[:, :2] / depth[:, None]


def image_jacobian(
    g_co: np.ndarray,
    feature_points: np.ndarray,
    focal_length: float,
) -> np.ndarray:
    """
    Jacobian of the stacked projections w.r.t. a body twist of g_co.

    Perturbing the pose as g_co exp(ξ̂) with ξ = [v; ω] moves each camera
    point by

        δp_ci = R_co (v + ω × p_oi) = [R_co, -R_co p̂_oi] ξ

    and the projection changes by

        δf_i = λ/z_i [[1, 0, -x_i/z_i], [0, 1, -y_i/z_i]] δp_ci

    Args:
        g_co: Relative pose camera → object, shape (4, 4).
        feature_points: Points in the object frame, shape (N, 3).
        focal_length: Focal length λ (positive).

    Returns:
        Stacked Jacobian J, shape (2N, 6). Rows 2i, 2i+1 belong to point i,
        matching ``project_features(...).reshape(-1)``.

    Raises:
        DegenerateProjection: If any point has depth z_i <= 0.
    """
    if focal_length <= 0:
        raise ValueError(f"focal_length must be positive, got {focal_length}")

    feature_points = _check_points(feature_points)
    R, _ = split_pose(g_co)
    points_camera = transform_features(g_co, feature_points)
    depth = _check_depth(points_camera)

    N = feature_points.shape[0]
    J = np.zeros((2 * N, 6))
    for i in range(N):
        x, y, z = points_camera[i]
        d_proj = focal_length / z * np.array(
            [[1.0, 0.0, -x / z], [0.0, 1.0, -y / z]]
        )
        d_point = np.hstack([R, -R @ skew(feature_points[i])])
        J[2 * i : 2 * i + 2] = d_proj @ d_point

    return J


def _check_points(feature_points: np.ndarray) -> np.ndarray:
    feature_points = np.asarray(feature_points, dtype=float)
    if feature_points.ndim != 2 or feature_points.shape[1] != 3:
        raise ValueError(f"feature_points must be (N, 3), got {feature_points.shape}")
    return feature_points


def _check_depth(points_camera: np.ndarray) -> np.ndarray:
    depth = points_camera[:, 2]
    behind = np.flatnonzero(~(depth > 0))
    if behind.size:
        raise DegenerateProjection(
            "Cannot project feature points at or behind the camera plane (z <= 0)",
            point_indices=behind.tolist(),
            depths=depth[behind].tolist(),
        )
    return depth
