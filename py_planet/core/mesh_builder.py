"""
Displaced sphere mesh construction.

Builds a shared-vertex (u, v) grid over the sphere and pushes every
vertex out by the sampled height. The visual and collision meshes are two
invocations of the same builder at different resolutions, so they agree
wherever their grids share a (u, v) coordinate.

Triangles are wound clockwise when seen from outside the planet, which is
the front-face convention the collision normals below are computed with.
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import structlog

from .sphere_mapping import to_sphere_point
from .surface_query import SurfaceQuery

logger = structlog.get_logger()


@dataclass
class MeshBuffers:
    """Vertex positions plus triangle indices for one mesh."""

    vertices: np.ndarray  # (n_vertices, 3) float64
    triangles: np.ndarray  # (n_triangles, 3) int64
    radial_segments: int
    height_segments: int
    uvs: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))  # grid (u, v) per vertex
    normals: Optional[np.ndarray] = None  # (n_vertices, 3), collision mesh only

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    @property
    def indices(self) -> np.ndarray:
        """Flat index sequence, three entries per triangle."""
        return self.triangles.reshape(-1)

    def vertex_index(self, row: int, col: int) -> int:
        """Index of the grid vertex at (row, col)."""
        return row * (self.radial_segments + 1) + col

    @classmethod
    def empty(cls, radial_segments: int = 0, height_segments: int = 0) -> "MeshBuffers":
        return cls(
            vertices=np.zeros((0, 3)),
            triangles=np.zeros((0, 3), dtype=np.int64),
            radial_segments=radial_segments,
            height_segments=height_segments,
        )


def build_displaced_sphere(
    query: SurfaceQuery,
    radial_segments: int,
    height_segments: int,
    with_normals: bool = False,
) -> MeshBuffers:
    """
    Build a displaced sphere mesh.

    Iterates ``height_segments + 1`` rows by ``radial_segments + 1``
    columns. The vertex at (row, col) uses v = row / height_segments,
    u = col / radial_segments and sits at
    ``to_sphere_point(u, v) * (radius + sample_height(u, v))``.

    Args:
        query: Height sampler bound to the planet heightfield
        radial_segments: Columns of quads around the sphere
        height_segments: Rows of quads from pole to pole
        with_normals: Compute accumulated per-vertex normals

    Returns:
        MeshBuffers. A grid with fewer than one segment in either
        direction produces an empty mesh.
    """
    if radial_segments < 1 or height_segments < 1:
        logger.warning(
            "Degenerate mesh resolution, producing empty mesh",
            radial_segments=radial_segments,
            height_segments=height_segments,
        )
        return MeshBuffers.empty(radial_segments, height_segments)

    rows = height_segments + 1
    cols = radial_segments + 1

    v = np.arange(rows, dtype=np.float64) / height_segments
    u = np.arange(cols, dtype=np.float64) / radial_segments
    uu, vv = np.meshgrid(u, v)  # (rows, cols)

    unit = to_sphere_point(uu, vv)
    heights = query.sample_heights(uu, vv)
    vertices = (unit * (query.radius + heights)[..., np.newaxis]).reshape(-1, 3)
    uvs = np.stack((uu, vv), axis=-1).reshape(-1, 2)

    triangles = grid_triangles(radial_segments, height_segments)

    mesh = MeshBuffers(
        vertices=vertices,
        triangles=triangles,
        radial_segments=radial_segments,
        height_segments=height_segments,
        uvs=uvs,
    )

    if with_normals:
        mesh.normals = accumulate_vertex_normals(mesh)

    logger.info(
        "Displaced sphere built",
        radial_segments=radial_segments,
        height_segments=height_segments,
        vertices=mesh.vertex_count,
        triangles=mesh.triangle_count,
        normals=with_normals,
    )
    return mesh


def grid_triangles(radial_segments: int, height_segments: int) -> np.ndarray:
    """
    Triangle indices for a (height_segments x radial_segments) quad grid.

    Each cell (row, col) yields (row,col), (row+1,col), (row,col+1) and
    (row,col+1), (row+1,col), (row+1,col+1).
    """
    cols = radial_segments + 1
    row = np.arange(height_segments)[:, np.newaxis]
    col = np.arange(radial_segments)[np.newaxis, :]

    current = (row * cols + col).reshape(-1)
    below = current + cols

    first = np.stack((current, below, current + 1), axis=-1)
    second = np.stack((current + 1, below, below + 1), axis=-1)

    # Interleave so the two triangles of a cell stay adjacent
    triangles = np.empty((len(current) * 2, 3), dtype=np.int64)
    triangles[0::2] = first
    triangles[1::2] = second
    return triangles


def face_normals(vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """
    Area-weighted face normals for clockwise-front triangles.

    Degenerate triangles (the collapsed ones along the pole rows) get a
    zero vector and contribute nothing when accumulated.
    """
    a = vertices[triangles[:, 0]]
    b = vertices[triangles[:, 1]]
    c = vertices[triangles[:, 2]]
    return np.cross(c - a, b - a)


def accumulate_vertex_normals(mesh: MeshBuffers) -> np.ndarray:
    """
    Per-vertex normals from accumulated face normals.

    Vertices that share a position in the grid (the seam column u=0/u=1
    and every vertex of a pole row) also share their accumulated normal so
    the collision surface has no shading seam.
    """
    normals = np.zeros_like(mesh.vertices)
    per_face = face_normals(mesh.vertices, mesh.triangles)
    np.add.at(normals, mesh.triangles.reshape(-1), np.repeat(per_face, 3, axis=0))

    rows = mesh.height_segments + 1
    cols = mesh.radial_segments + 1
    grid = normals.reshape(rows, cols, 3)

    # Pole totals come from the unwelded rows so seam faces count once
    poles = (0, rows - 1)
    pole_totals = [grid[pole].sum(axis=0) for pole in poles]

    seam = grid[:, 0] + grid[:, -1]
    grid[:, 0] = seam
    grid[:, -1] = seam

    for pole, total in zip(poles, pole_totals):
        grid[pole] = total

    normals = grid.reshape(-1, 3)
    lengths = np.linalg.norm(normals, axis=1)
    degenerate = lengths < 1e-12
    if np.any(degenerate):
        logger.debug("Vertices without face area, using radial normal", count=int(degenerate.sum()))
        radial = mesh.vertices[degenerate]
        radial_len = np.linalg.norm(radial, axis=1, keepdims=True)
        normals[degenerate] = np.divide(
            radial, radial_len, out=np.tile([0.0, 1.0, 0.0], (len(radial), 1)), where=radial_len > 0
        )
        lengths[degenerate] = 1.0
    return normals / lengths[:, np.newaxis]
