"""SE(3) operations for rigid-body poses (Special Euclidean Group in 3D).

This module implements the pose algebra used by the trajectory generator
and the Visual Motion Observer. Poses are 4x4 homogeneous transforms

    g = [[R, p],
         [0, 1]]

with R a rotation matrix (SO(3)) and p a translation in meters. Twists are
6-vectors ordered [v; ω] (linear velocity first, angular velocity second),
which is the convention of the visual motion observer literature.

Key functions:
    - merge_pose / split_pose: build and take apart homogeneous transforms
    - se3_compose / se3_inverse / se3_apply: group operations
    - skew / vee / skew_part_vee: so(3) hat and vee maps, sk(R)^∨
    - so3_exp / se3_exp: exponential maps used to integrate twists

Author: Navigation Engineer
Date: October 2026
"""

from typing import Tuple

import numpy as np


def merge_pose(R: np.ndarray, p: np.ndarray) -> np.ndarray:
    """
    Build a homogeneous transform from a rotation matrix and translation.

    Args:
        R: Rotation matrix, shape (3, 3).
        p: Translation vector, shape (3,).

    Returns:
        Homogeneous transform g, shape (4, 4).

    Raises:
        ValueError: If R or p have the wrong shape.

    Examples:
        >>> g = merge_pose(np.eye(3), np.array([0.0, -5.0, 0.0]))
        >>> g[:3, 3]
        array([ 0., -5.,  0.])
    """
    R = np.asarray(R, dtype=float)
    p = np.asarray(p, dtype=float).reshape(-1)
    if R.shape != (3, 3):
        raise ValueError(f"R must be (3, 3), got {R.shape}")
    if p.shape != (3,):
        raise ValueError(f"p must be (3,), got {p.shape}")

    g = np.eye(4)
    g[:3, :3] = R
    g[:3, 3] = p
    return g


def split_pose(g: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split a homogeneous transform into (R, p).

    Args:
        g: Homogeneous transform, shape (4, 4).

    Returns:
        Tuple (R, p) of copies with shapes (3, 3) and (3,).
    """
    g = _check_pose(g)
    return g[:3, :3].copy(), g[:3, 3].copy()


def se3_compose(g1: np.ndarray, g2: np.ndarray) -> np.ndarray:
    """
    Compose two poses: g = g1 g2.

    Used to chain frames, e.g. g_wo = g_wc g_co.

    Args:
        g1: First transform, shape (4, 4).
        g2: Second transform, shape (4, 4).

    Returns:
        Composed transform, shape (4, 4).
    """
    return _check_pose(g1) @ _check_pose(g2)


def se3_inverse(g: np.ndarray) -> np.ndarray:
    """
    Invert a pose using the closed form g⁻¹ = [[Rᵀ, -Rᵀp], [0, 1]].

    The closed form keeps the rotation block exactly orthonormal, unlike a
    general matrix inverse.

    Args:
        g: Homogeneous transform, shape (4, 4).

    Returns:
        Inverse transform, shape (4, 4).

    Examples:
        >>> g = merge_pose(so3_exp(np.array([0.0, 0.0, 0.3])), np.array([1.0, 2.0, 3.0]))
        >>> np.allclose(se3_compose(g, se3_inverse(g)), np.eye(4))
        True
    """
    R, p = split_pose(g)
    return merge_pose(R.T, -R.T @ p)


def se3_apply(g: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Transform 3D points by a pose: q = R p + t.

    Args:
        g: Homogeneous transform, shape (4, 4).
        points: Point(s), shape (3,) or (N, 3).

    Returns:
        Transformed point(s), same shape as input.
    """
    R, p = split_pose(g)
    points = np.asarray(points, dtype=float)
    single_point = points.ndim == 1
    if single_point:
        points = points.reshape(1, -1)
    if points.shape[1] != 3:
        raise ValueError(f"points must be (3,) or (N, 3), got {points.shape}")

    result = points @ R.T + p

    if single_point:
        return result[0]
    return result


def skew(w: np.ndarray) -> np.ndarray:
    """
    Hat map so(3): w ↦ ŵ with ŵ a = w × a.

    Args:
        w: Vector, shape (3,).

    Returns:
        Skew-symmetric matrix, shape (3, 3).
    """
    w = np.asarray(w, dtype=float).reshape(-1)
    if w.shape != (3,):
        raise ValueError(f"w must be (3,), got {w.shape}")
    return np.array(
        [
            [0.0, -w[2], w[1]],
            [w[2], 0.0, -w[0]],
            [-w[1], w[0], 0.0],
        ]
    )


def vee(W: np.ndarray) -> np.ndarray:
    """
    Vee map, the inverse of skew(): Ŵ ↦ w.

    Only the skew-symmetric part of W contributes.

    Args:
        W: Matrix, shape (3, 3).

    Returns:
        Vector, shape (3,).
    """
    W = np.asarray(W, dtype=float)
    if W.shape != (3, 3):
        raise ValueError(f"W must be (3, 3), got {W.shape}")
    return 0.5 * np.array(
        [W[2, 1] - W[1, 2], W[0, 2] - W[2, 0], W[1, 0] - W[0, 1]]
    )


def skew_part_vee(R: np.ndarray) -> np.ndarray:
    """
    Orientation error vector sk(R)^∨ with sk(R) = (R - Rᵀ)/2.

    For a rotation of angle θ about unit axis a this equals sin(θ) a, so it
    vanishes at the identity and behaves like the rotation vector near it.

    Args:
        R: Rotation matrix, shape (3, 3).

    Returns:
        Vector, shape (3,).
    """
    return vee(R)


def so3_exp(w: np.ndarray) -> np.ndarray:
    """
    Exponential map so(3) → SO(3) (Rodrigues' formula).

        exp(ŵ) = I + sin(θ)/θ ŵ + (1 - cos(θ))/θ² ŵ²,   θ = ‖w‖

    Args:
        w: Rotation vector (axis * angle in radians), shape (3,).

    Returns:
        Rotation matrix, shape (3, 3).
    """
    W = skew(w)
    theta = float(np.linalg.norm(w))

    # Taylor expansion near zero avoids 0/0
    if theta < 1e-8:
        return np.eye(3) + W + 0.5 * W @ W

    A = np.sin(theta) / theta
    B = (1.0 - np.cos(theta)) / theta**2
    return np.eye(3) + A * W + B * W @ W


def se3_exp(xi: np.ndarray) -> np.ndarray:
    """
    Exponential map se(3) → SE(3).

    For ξ = [v; ω] with θ = ‖ω‖:

        exp(ξ̂) = [[exp(ω̂), V v], [0, 1]]
        V = I + (1 - cos θ)/θ² ω̂ + (θ - sin θ)/θ³ ω̂²

    A body-frame twist held constant for dt seconds moves a pose as
    g(t + dt) = g(t) exp(ξ̂ dt).

    Args:
        xi: Twist [v; ω], shape (6,).

    Returns:
        Homogeneous transform, shape (4, 4).
    """
    xi = np.asarray(xi, dtype=float).reshape(-1)
    if xi.shape != (6,):
        raise ValueError(f"xi must be (6,), got {xi.shape}")
    v, w = xi[:3], xi[3:]
    W = skew(w)
    theta = float(np.linalg.norm(w))

    if theta < 1e-8:
        V = np.eye(3) + 0.5 * W + W @ W / 6.0
    else:
        V = (
            np.eye(3)
            + (1.0 - np.cos(theta)) / theta**2 * W
            + (theta - np.sin(theta)) / theta**3 * W @ W
        )

    return merge_pose(so3_exp(w), V @ v)


def is_rotation_matrix(R: np.ndarray, tol: float = 1e-6) -> bool:
    """
    Check ‖RᵀR - I‖ < tol and |det R - 1| < tol.

    Args:
        R: Candidate matrix, shape (3, 3).
        tol: Tolerance.

    Returns:
        True if R is a proper rotation within tolerance.
    """
    R = np.asarray(R, dtype=float)
    if R.shape != (3, 3) or not np.all(np.isfinite(R)):
        return False
    orthogonality = np.linalg.norm(R.T @ R - np.eye(3))
    return bool(orthogonality < tol and abs(np.linalg.det(R) - 1.0) < tol)


def _check_pose(g: np.ndarray) -> np.ndarray:
    g = np.asarray(g, dtype=float)
    if g.shape != (4, 4):
        raise ValueError(f"g must be (4, 4), got {g.shape}")
    return g
