"""
Height and normal queries over a planet heightfield.

Two sampling paths share the same wrap/clamp rules:

- nearest-pixel sampling in (u, v), used by mesh construction, normal
  estimation and prop placement
- bilinear sampling in (latitude, longitude), used by external callers
  that need smooth altitude values

Queries issued before a heightfield exists return a defined default
(zero height, world-up normal) instead of failing.
"""

from typing import NamedTuple, Optional, Union

import numpy as np
import structlog

from .heightfield import Heightfield
from .sphere_mapping import clamp_v, from_lat_long, to_sphere_point, wrap_u

logger = structlog.get_logger()

WORLD_UP = np.array([0.0, 1.0, 0.0])

# Tangent vectors shorter than this are treated as degenerate
TANGENT_EPSILON = 1e-9


class SurfacePoint(NamedTuple):
    """Surface sample derived on demand from the heightfield."""

    unit_position: np.ndarray
    height: float
    normal: np.ndarray


class SurfaceQuery:
    """
    Height/normal sampler bound to one heightfield instance.

    The heightfield may be None while generation is pending.
    """

    def __init__(
        self,
        heightfield: Optional[Heightfield],
        radius: float,
        height_scale: float,
    ):
        self.heightfield = heightfield
        self.radius = float(radius)
        self.height_scale = float(height_scale)

    @property
    def is_ready(self) -> bool:
        return self.heightfield is not None

    def pixel_coordinates(self, u, v):
        """
        Nearest pixel (column, row) for grid coordinates.

        u wraps modulo 1 and v clamps to [0, 1]; the row is clamped to
        the last valid row so v == 1 never indexes out of bounds.
        """
        width = self.heightfield.width
        height = self.heightfield.height

        u = wrap_u(np.asarray(u, dtype=np.float64))
        v = clamp_v(np.asarray(v, dtype=np.float64))

        px = (u * width).astype(np.int64) % width
        py = np.clip((v * height).astype(np.int64), 0, height - 1)
        return px, py

    def sample_heights(self, u, v) -> np.ndarray:
        """Vectorized nearest-sample height, scaled by ``height_scale``."""
        if self.heightfield is None:
            return np.zeros(np.broadcast(np.asarray(u), np.asarray(v)).shape)

        px, py = self.pixel_coordinates(u, v)
        return self.heightfield.samples[py, px].astype(np.float64) * self.height_scale

    def sample_height(self, u: float, v: float) -> float:
        """Nearest-sample height at (u, v); 0 if no heightfield yet."""
        return float(self.sample_heights(u, v))

    def displaced_position(self, u, v) -> np.ndarray:
        """Surface position(s) ``unit * (radius + height)`` for (u, v)."""
        unit = to_sphere_point(u, v)
        heights = self.sample_heights(u, v)
        return unit * (self.radius + np.asarray(heights))[..., np.newaxis]

    def sample_normal(self, u: float, v: float) -> np.ndarray:
        """
        Surface normal at (u, v) by forward finite differences.

        The step is one heightfield column (1 / width) along both u and v.
        On a pole row every u lands on the same sphere point, so the u
        tangent is degenerate whatever the heights; the undisplaced sphere
        normal is returned there instead.
        """
        if self.heightfield is None:
            return WORLD_UP.copy()

        epsilon = 1.0 / self.heightfield.width

        # Degeneracy is a property of the parameterization, not of the terrain
        unit = to_sphere_point(u, v)
        if np.linalg.norm(to_sphere_point(u + epsilon, v) - unit) < TANGENT_EPSILON:
            logger.warning("Degenerate u tangent at pole, using sphere normal", u=u, v=v)
            return unit

        center = self.displaced_position(u, v)
        tangent_u = self.displaced_position(u + epsilon, v) - center
        tangent_v = self.displaced_position(u, v + epsilon) - center
        len_u = np.linalg.norm(tangent_u)
        len_v = np.linalg.norm(tangent_v)

        if len_u < TANGENT_EPSILON or len_v < TANGENT_EPSILON:
            logger.warning("Degenerate surface tangents, using sphere normal", u=u, v=v)
            return unit

        normal = np.cross(tangent_u / len_u, tangent_v / len_v)
        length = np.linalg.norm(normal)
        if not np.isfinite(length) or length < TANGENT_EPSILON:
            logger.warning("Parallel surface tangents, using sphere normal", u=u, v=v)
            return unit
        return normal / length

    def surface_point(self, u: float, v: float) -> SurfacePoint:
        return SurfacePoint(
            unit_position=to_sphere_point(u, v),
            height=self.sample_height(u, v),
            normal=self.sample_normal(u, v),
        )

    def height_at_lat_long(
        self, latitude: Union[float, np.ndarray], longitude: Union[float, np.ndarray]
    ) -> Union[float, np.ndarray]:
        """
        Bilinear height at (latitude, longitude) in radians.

        latitude in [-pi/2, pi/2], longitude in [-pi, pi]. Samples sit at
        pixel centres, so at a pixel centre the result is that pixel's
        value. Between column W-1 and column 0 the x neighbour wraps, so
        the height is continuous across longitude +-pi; rows clamp at the
        poles. Returns height * height_scale, or 0 if no heightfield has
        been generated yet.
        """
        if self.heightfield is None:
            logger.warning("Height queried before heightfield was generated")
            if np.ndim(latitude) == 0 and np.ndim(longitude) == 0:
                return 0.0
            return np.zeros(np.broadcast(np.asarray(latitude), np.asarray(longitude)).shape)

        u, v = from_lat_long(latitude, longitude)
        u = wrap_u(np.asarray(u, dtype=np.float64))
        v = clamp_v(np.asarray(v, dtype=np.float64))

        width = self.heightfield.width
        height = self.heightfield.height
        samples = self.heightfield.samples

        fx = u * width - 0.5
        fy = v * height - 0.5
        x_floor = np.floor(fx)
        y_floor = np.floor(fy)
        tx = fx - x_floor
        ty = fy - y_floor

        x0 = x_floor.astype(np.int64) % width
        x1 = (x0 + 1) % width
        y0 = np.clip(y_floor.astype(np.int64), 0, height - 1)
        y1 = np.clip(y_floor.astype(np.int64) + 1, 0, height - 1)

        h00 = samples[y0, x0].astype(np.float64)
        h10 = samples[y0, x1].astype(np.float64)
        h01 = samples[y1, x0].astype(np.float64)
        h11 = samples[y1, x1].astype(np.float64)

        h0 = h00 + (h10 - h00) * tx
        h1 = h01 + (h11 - h01) * tx
        result = (h0 + (h1 - h0) * ty) * self.height_scale

        if np.ndim(result) == 0:
            return float(result)
        return result
