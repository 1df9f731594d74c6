"""
Equirectangular (u, v) <-> unit sphere mapping.

Every consumer of the heightfield (height sampling, normal estimation,
visual mesh, collision mesh, prop placement) goes through these functions
so that they all agree on where a grid coordinate lands on the sphere.

Convention:
    theta = v * pi       polar angle, 0 at v=0 and pi at v=1
    phi   = u * 2 * pi   azimuth
    unit  = (sin(phi) * sin(theta), -cos(theta), cos(phi) * sin(theta))

The functions accept scalars or NumPy arrays of matching shape.
"""

import math
from typing import Tuple, Union

import numpy as np

ArrayLike = Union[float, np.ndarray]


def to_sphere_point(u: ArrayLike, v: ArrayLike) -> np.ndarray:
    """
    Map grid coordinates onto the unit sphere.

    Args:
        u: Longitude coordinate, cyclic with period 1
        v: Latitude coordinate in [0, 1]

    Returns:
        Unit vector(s), shape (..., 3)
    """
    theta = np.asarray(v, dtype=np.float64) * math.pi
    phi = np.asarray(u, dtype=np.float64) * (2.0 * math.pi)
    sin_theta = np.sin(theta)
    return np.stack(
        (np.sin(phi) * sin_theta, -np.cos(theta), np.cos(phi) * sin_theta),
        axis=-1,
    )


def from_sphere_point(point: np.ndarray) -> Tuple[ArrayLike, ArrayLike]:
    """
    Inverse of :func:`to_sphere_point` for any non-zero direction.

    Returns u in [0, 1) and v in [0, 1]. At the poles u is arbitrary
    and 0 is returned.
    """
    p = np.asarray(point, dtype=np.float64)
    length = np.linalg.norm(p, axis=-1)
    length = np.where(length > 0.0, length, 1.0)
    y = np.clip(p[..., 1] / length, -1.0, 1.0)

    theta = np.arccos(-y)
    phi = np.arctan2(p[..., 0], p[..., 2])
    u = np.mod(phi / (2.0 * math.pi), 1.0)
    v = theta / math.pi

    if np.ndim(u) == 0:
        return float(u), float(v)
    return u, v


def to_lat_long(u: ArrayLike, v: ArrayLike) -> Tuple[ArrayLike, ArrayLike]:
    """
    Convert grid coordinates to (latitude, longitude) in radians.

    latitude is in [-pi/2, pi/2] and longitude in [-pi, pi) for
    u in [0, 1), v in [0, 1].
    """
    latitude = (np.asarray(v, dtype=np.float64) - 0.5) * math.pi
    longitude = (np.asarray(u, dtype=np.float64) - 0.5) * (2.0 * math.pi)
    if np.ndim(latitude) == 0 and np.ndim(longitude) == 0:
        return float(latitude), float(longitude)
    return latitude, longitude


def from_lat_long(latitude: ArrayLike, longitude: ArrayLike) -> Tuple[ArrayLike, ArrayLike]:
    """
    Convert (latitude, longitude) in radians to unwrapped grid coordinates.

    Callers wrap u and clamp v themselves, see :func:`wrap_u` and
    :func:`clamp_v`.
    """
    u = np.asarray(longitude, dtype=np.float64) / (2.0 * math.pi) + 0.5
    v = np.asarray(latitude, dtype=np.float64) / math.pi + 0.5
    if np.ndim(u) == 0 and np.ndim(v) == 0:
        return float(u), float(v)
    return u, v


def wrap_u(u: ArrayLike) -> ArrayLike:
    """Wrap u into [0, 1) (longitude is cyclic)."""
    return np.mod(u, 1.0)


def clamp_v(v: ArrayLike) -> ArrayLike:
    """Clamp v into [0, 1] (latitude is not cyclic)."""
    return np.clip(v, 0.0, 1.0)
