"""
Orthonormal basis helpers.

A basis is a 3x3 array whose columns are the local X (right), Y (up) and
Z (back) axes in world space, so ``basis @ local`` maps a local vector to
world space. Forward is ``-Z``.
"""

import numpy as np
from scipy.spatial.transform import Rotation

IDENTITY = np.eye(3)

WORLD_RIGHT = np.array([1.0, 0.0, 0.0])
WORLD_UP = np.array([0.0, 1.0, 0.0])
WORLD_FORWARD = np.array([0.0, 0.0, -1.0])

AXIS_EPSILON = 1e-6


class DegenerateBasisError(ValueError):
    """Raised when a basis axis collapses to (near) zero length."""


def identity() -> np.ndarray:
    return IDENTITY.copy()


def axis_x(basis: np.ndarray) -> np.ndarray:
    return basis[:, 0]


def axis_y(basis: np.ndarray) -> np.ndarray:
    return basis[:, 1]


def axis_z(basis: np.ndarray) -> np.ndarray:
    return basis[:, 2]


def from_axes(x, y, z) -> np.ndarray:
    """Assemble a basis from its three axis columns."""
    return np.column_stack((x, y, z)).astype(np.float64)


def orthonormalize(basis: np.ndarray) -> np.ndarray:
    """
    Re-orthonormalize a basis, keeping the direction of its Y axis.

    Gram-Schmidt on Y then Z; X is rebuilt as Y x Z so the result stays
    right-handed.

    Raises:
        DegenerateBasisError: if Y or Z (after removing its Y component)
            is shorter than AXIS_EPSILON, or the basis holds non-finite values
    """
    basis = np.asarray(basis, dtype=np.float64)
    if not np.all(np.isfinite(basis)):
        raise DegenerateBasisError("Basis contains non-finite values")

    y = axis_y(basis)
    y_len = np.linalg.norm(y)
    if y_len < AXIS_EPSILON:
        raise DegenerateBasisError(f"Y axis has near-zero length ({y_len:.3g})")
    y = y / y_len

    z = axis_z(basis)
    z = z - np.dot(z, y) * y
    z_len = np.linalg.norm(z)
    if z_len < AXIS_EPSILON:
        # Z collapsed onto Y, fall back to X to recover the frame
        x = axis_x(basis)
        x = x - np.dot(x, y) * y
        x_len = np.linalg.norm(x)
        if x_len < AXIS_EPSILON:
            raise DegenerateBasisError("Basis axes are collinear")
        x = x / x_len
        return from_axes(x, y, np.cross(x, y))

    z = z / z_len
    return from_axes(np.cross(y, z), y, z)


def rotation_matrix(axis, angle: float) -> np.ndarray:
    """Rotation of ``angle`` radians about ``axis`` (need not be unit length)."""
    axis = np.asarray(axis, dtype=np.float64)
    length = np.linalg.norm(axis)
    if length < AXIS_EPSILON:
        return identity()
    return Rotation.from_rotvec(axis / length * angle).as_matrix()


def rotate(basis: np.ndarray, axis, angle: float) -> np.ndarray:
    """Rotate every axis of ``basis`` about a world-space ``axis``."""
    return rotation_matrix(axis, angle) @ basis


def is_orthonormal(basis: np.ndarray, tolerance: float = 1e-6) -> bool:
    """True if the columns are unit length and mutually perpendicular."""
    basis = np.asarray(basis, dtype=np.float64)
    if not np.all(np.isfinite(basis)):
        return False
    return bool(np.allclose(basis.T @ basis, IDENTITY, atol=tolerance))


def angle_between(a, b) -> float:
    """Unsigned angle between two non-zero vectors, in radians."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    cos = np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b))
    return float(np.arccos(np.clip(cos, -1.0, 1.0)))


def surface_basis(normal) -> np.ndarray:
    """
    Basis whose Y axis is ``normal``.

    forward = normal x world-right, or normal x world-forward when the
    normal is nearly parallel to world-right. The result is
    (right, normal, -forward) with right = forward x normal.
    """
    normal = np.asarray(normal, dtype=np.float64)
    normal = normal / np.linalg.norm(normal)

    forward = np.cross(normal, WORLD_RIGHT)
    if np.dot(forward, forward) < 1e-3:
        forward = np.cross(normal, WORLD_FORWARD)

    forward = forward / np.linalg.norm(forward)
    right = np.cross(forward, normal)
    right = right / np.linalg.norm(right)
    return from_axes(right, normal, -forward)
