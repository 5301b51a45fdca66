"""
Rotation utilities for frame composition.

Provides:
- axis_rotation: 3x3 coordinate-frame rotation about a principal axis
- euler_rotation: product of axis rotations from an angle/axis sequence
- is_rotation_matrix: orthonormality check
"""

import logging
from typing import Sequence

import numpy as np

from ..exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

ARCSECONDS_TO_RADIANS = np.pi / (180.0 * 3600.0)


def axis_rotation(angle_rad: float, axis: int) -> np.ndarray:
    """
    Matrix rotating the coordinate frame by ``angle_rad`` about ``axis``.

    Applied to a vector, it gives the vector's components in the rotated
    frame (the transpose of rotating the vector itself).

    Args:
        angle_rad: Rotation angle in radians.
        axis: 1, 2 or 3 for X, Y, Z.

    Returns:
        3x3 rotation matrix.
    """
    if axis not in (1, 2, 3):
        raise InvalidArgumentError(f"Rotation axis must be 1, 2 or 3, got {axis}")

    cos_a, sin_a = np.cos(angle_rad), np.sin(angle_rad)
    i = axis - 1
    j = axis % 3
    k = (axis + 1) % 3

    R = np.zeros((3, 3))
    R[i, i] = 1.0
    R[j, j] = cos_a
    R[k, k] = cos_a
    R[j, k] = sin_a
    R[k, j] = -sin_a
    return R


def euler_rotation(angles_rad: Sequence[float], axes: Sequence[int]) -> np.ndarray:
    """
    Compose axis rotations, the first pair applied first.

    Returns [a_n]_n ... [a_2]_2 [a_1]_1, which takes vectors from the
    starting frame to the frame reached after all rotations.
    """
    if len(angles_rad) != len(axes):
        raise InvalidArgumentError(
            f"Got {len(angles_rad)} angles for {len(axes)} axes"
        )

    R = np.eye(3)
    for angle, axis in zip(angles_rad, axes):
        R = axis_rotation(angle, int(axis)) @ R
    return R


def is_rotation_matrix(matrix: np.ndarray, tolerance: float = 1e-9) -> bool:
    """True if ``matrix`` is 3x3, orthonormal and right-handed."""
    matrix = np.asarray(matrix, dtype=float)
    if matrix.shape != (3, 3):
        return False
    if not np.allclose(matrix @ matrix.T, np.eye(3), atol=tolerance):
        return False
    return abs(np.linalg.det(matrix) - 1.0) < tolerance
