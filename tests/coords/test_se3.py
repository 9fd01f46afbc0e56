"""Unit tests for SE(3) pose algebra.

Test cases include:
- Composition and inverse of homogeneous transforms
- Exponential maps on so(3) and se(3), including the small-angle branch
- Rotation validity checks
- Inputs are never mutated
"""

import unittest

import numpy as np

from gpdata.coords.se3 import (
    is_rotation_matrix,
    merge_pose,
    se3_apply,
    se3_compose,
    se3_exp,
    se3_inverse,
    skew,
    skew_part_vee,
    so3_exp,
    split_pose,
    vee,
)


def _rotation_z(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


class TestPoseConstruction(unittest.TestCase):
    """Test merge_pose / split_pose."""

    def test_merge_split(self) -> None:
        R = _rotation_z(0.3)
        p = np.array([1.0, -2.0, 0.5])
        g = merge_pose(R, p)

        np.testing.assert_allclose(g[3], [0.0, 0.0, 0.0, 1.0])
        R_out, p_out = split_pose(g)
        np.testing.assert_allclose(R_out, R)
        np.testing.assert_allclose(p_out, p)

    def test_bad_shapes(self) -> None:
        with self.assertRaises(ValueError):
            merge_pose(np.eye(2), np.zeros(3))
        with self.assertRaises(ValueError):
            merge_pose(np.eye(3), np.zeros(2))


class TestGroupOperations(unittest.TestCase):
    """Test composition, inverse and point transformation."""

    def setUp(self) -> None:
        self.g1 = merge_pose(_rotation_z(0.4), [1.0, 2.0, 3.0])
        self.g2 = se3_exp(np.array([0.1, -0.2, 0.3, 0.5, -0.1, 0.2]))

    def test_inverse_gives_identity(self) -> None:
        np.testing.assert_allclose(se3_compose(self.g1, se3_inverse(self.g1)), np.eye(4), atol=1e-12)
        np.testing.assert_allclose(se3_compose(se3_inverse(self.g2), self.g2), np.eye(4), atol=1e-12)

    def test_compose_matches_matrix_product(self) -> None:
        np.testing.assert_allclose(se3_compose(self.g1, self.g2), self.g1 @ self.g2, atol=1e-12)

    def test_apply_single_and_batch(self) -> None:
        point = np.array([0.5, 0.0, -1.0])
        expected = self.g1[:3, :3] @ point + self.g1[:3, 3]
        np.testing.assert_allclose(se3_apply(self.g1, point), expected)

        points = np.vstack([point, 2 * point])
        out = se3_apply(self.g1, points)
        self.assertEqual(out.shape, (2, 3))
        np.testing.assert_allclose(out[0], expected)

    def test_inputs_not_mutated(self) -> None:
        g1_copy = self.g1.copy()
        g2_copy = self.g2.copy()
        se3_compose(self.g1, self.g2)
        se3_inverse(self.g1)
        np.testing.assert_array_equal(self.g1, g1_copy)
        np.testing.assert_array_equal(self.g2, g2_copy)


class TestExponentialMaps(unittest.TestCase):
    """Test hat/vee maps and exponentials."""

    def test_skew_vee_roundtrip(self) -> None:
        w = np.array([0.3, -1.2, 2.0])
        W = skew(w)
        np.testing.assert_allclose(W, -W.T)
        np.testing.assert_allclose(vee(W), w)
        np.testing.assert_allclose(W @ np.array([1.0, 0.0, 0.0]), np.cross(w, [1.0, 0.0, 0.0]))

    def test_so3_exp_about_z(self) -> None:
        R = so3_exp(np.array([0.0, 0.0, np.pi / 2]))
        np.testing.assert_allclose(R, _rotation_z(np.pi / 2), atol=1e-12)

    def test_so3_exp_small_angle(self) -> None:
        w = np.array([1e-10, -2e-10, 3e-10])
        R = so3_exp(w)
        self.assertTrue(is_rotation_matrix(R))
        np.testing.assert_allclose(R, np.eye(3) + skew(w), atol=1e-15)

    def test_se3_exp_pure_translation(self) -> None:
        g = se3_exp(np.array([1.0, 2.0, 3.0, 0.0, 0.0, 0.0]))
        np.testing.assert_allclose(g[:3, :3], np.eye(3))
        np.testing.assert_allclose(g[:3, 3], [1.0, 2.0, 3.0])

    def test_se3_exp_is_valid_pose(self) -> None:
        g = se3_exp(np.array([0.5, -0.3, 0.1, 1.5, 2.0, -0.7]))
        self.assertTrue(is_rotation_matrix(g[:3, :3]))
        np.testing.assert_allclose(g[3], [0.0, 0.0, 0.0, 1.0])

    def test_se3_exp_matches_matrix_exponential_series(self) -> None:
        xi = np.array([0.2, 0.1, -0.3, 0.05, -0.02, 0.04])
        X = np.zeros((4, 4))
        X[:3, :3] = skew(xi[3:])
        X[:3, 3] = xi[:3]
        series = np.eye(4)
        term = np.eye(4)
        for n in range(1, 20):
            term = term @ X / n
            series = series + term
        np.testing.assert_allclose(se3_exp(xi), series, atol=1e-12)

    def test_skew_part_vee_small_rotation(self) -> None:
        w = np.array([1e-3, -2e-3, 5e-4])
        np.testing.assert_allclose(skew_part_vee(so3_exp(w)), w, atol=1e-8)


class TestRotationChecks(unittest.TestCase):
    """Test rotation validity helpers."""

    def test_is_rotation_matrix(self) -> None:
        self.assertTrue(is_rotation_matrix(_rotation_z(1.0)))
        self.assertFalse(is_rotation_matrix(np.diag([1.0, 1.0, -1.0])))
        self.assertFalse(is_rotation_matrix(2.0 * np.eye(3)))
        self.assertFalse(is_rotation_matrix(np.full((3, 3), np.nan)))


if __name__ == "__main__":
    unittest.main()
