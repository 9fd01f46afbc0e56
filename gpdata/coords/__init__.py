"""Rigid-body pose algebra.

Poses are 4x4 homogeneous transforms and twists are [v; ω] 6-vectors.
"""

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

__all__ = [
    "merge_pose",
    "split_pose",
    "se3_compose",
    "se3_inverse",
    "se3_apply",
    "se3_exp",
    "skew",
    "vee",
    "skew_part_vee",
    "so3_exp",
    "is_rotation_matrix",
]
