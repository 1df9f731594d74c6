"""Tests for displaced sphere mesh construction."""

import numpy as np
import pytest

from py_planet.core.heightfield import Heightfield
from py_planet.core.mesh_builder import (
    build_displaced_sphere,
    face_normals,
    grid_triangles,
)
from py_planet.core.surface_query import SurfaceQuery


class TestDisplacedSphere:
    """Test mesh topology and displacement."""

    @pytest.fixture
    def flat_query(self):
        """Constant 0.5 heightfield on a radius 50 planet with scale 10."""
        return SurfaceQuery(Heightfield.constant(64, 32, 0.5), radius=50.0, height_scale=10.0)

    @pytest.fixture
    def noisy_query(self):
        rng = np.random.default_rng(3)
        return SurfaceQuery(Heightfield(rng.random((32, 64))), radius=50.0, height_scale=10.0)

    def test_vertex_and_index_counts(self, flat_query):
        mesh = build_displaced_sphere(flat_query, radial_segments=8, height_segments=4)

        assert mesh.vertex_count == 9 * 5
        assert mesh.triangle_count == 2 * 8 * 4
        assert len(mesh.indices) == 6 * 8 * 4
        assert mesh.indices.max() < mesh.vertex_count

    def test_constant_field_is_a_sphere(self, flat_query):
        """Every vertex sits at radius + 0.5 * height_scale."""
        mesh = build_displaced_sphere(flat_query, radial_segments=16, height_segments=8)

        np.testing.assert_allclose(np.linalg.norm(mesh.vertices, axis=1), 55.0, rtol=1e-6)

    def test_zero_field_is_undisplaced(self):
        query = SurfaceQuery(Heightfield.constant(16, 8, 0.0), radius=7.0, height_scale=3.0)
        mesh = build_displaced_sphere(query, radial_segments=6, height_segments=3)

        np.testing.assert_allclose(np.linalg.norm(mesh.vertices, axis=1), 7.0, rtol=1e-9)

    def test_vertices_match_surface_query(self, noisy_query):
        mesh = build_displaced_sphere(noisy_query, radial_segments=12, height_segments=6)

        for row, col in [(1, 0), (3, 5), (6, 12), (2, 11)]:
            u = col / 12
            v = row / 6
            distance = np.linalg.norm(mesh.vertices[mesh.vertex_index(row, col)])
            assert distance == pytest.approx(50.0 + noisy_query.sample_height(u, v), rel=1e-6)

    def test_seam_columns_coincide(self, noisy_query):
        """Column 0 and column radial_segments are the same points."""
        mesh = build_displaced_sphere(noisy_query, radial_segments=10, height_segments=5)

        for row in range(6):
            first = mesh.vertices[mesh.vertex_index(row, 0)]
            last = mesh.vertices[mesh.vertex_index(row, 10)]
            np.testing.assert_allclose(first, last, atol=1e-9)

    def test_pole_rows_collapse(self, noisy_query):
        mesh = build_displaced_sphere(noisy_query, radial_segments=10, height_segments=5)
        grid = mesh.vertices.reshape(6, 11, 3)

        np.testing.assert_allclose(grid[0, :, 0], 0.0, atol=1e-9)
        np.testing.assert_allclose(grid[0, :, 2], 0.0, atol=1e-9)
        assert np.all(grid[0, :, 1] < 0)
        assert np.all(grid[-1, :, 1] > 0)

    def test_triangle_order(self):
        triangles = grid_triangles(radial_segments=2, height_segments=1)

        np.testing.assert_array_equal(triangles[0], [0, 3, 1])
        np.testing.assert_array_equal(triangles[1], [1, 3, 4])
        np.testing.assert_array_equal(triangles[2], [1, 4, 2])
        np.testing.assert_array_equal(triangles[3], [2, 4, 5])

    def test_face_normals_point_outward(self, flat_query):
        mesh = build_displaced_sphere(flat_query, radial_segments=16, height_segments=8)
        normals = face_normals(mesh.vertices, mesh.triangles)
        centroids = mesh.vertices[mesh.triangles].mean(axis=1)

        area = np.linalg.norm(normals, axis=1)
        facing = np.einsum("ij,ij->i", normals, centroids)
        assert np.all(facing[area > 1e-9] > 0)

    def test_degenerate_resolution_gives_empty_mesh(self, flat_query):
        mesh = build_displaced_sphere(flat_query, radial_segments=0, height_segments=4)

        assert mesh.vertex_count == 0
        assert mesh.triangle_count == 0

    def test_minimal_resolution(self, flat_query):
        mesh = build_displaced_sphere(flat_query, radial_segments=1, height_segments=1)

        assert mesh.vertex_count == 4
        assert mesh.triangle_count == 2

    def test_not_ready_query_builds_bare_sphere(self):
        query = SurfaceQuery(None, radius=20.0, height_scale=10.0)
        mesh = build_displaced_sphere(query, radial_segments=4, height_segments=4)

        np.testing.assert_allclose(np.linalg.norm(mesh.vertices, axis=1), 20.0)


class TestVertexNormals:
    """Test accumulated collision normals."""

    @pytest.fixture
    def mesh(self):
        query = SurfaceQuery(Heightfield.constant(64, 32, 0.5), radius=50.0, height_scale=10.0)
        return build_displaced_sphere(query, radial_segments=24, height_segments=12, with_normals=True)

    def test_normals_are_unit_and_radial(self, mesh):
        radial = mesh.vertices / np.linalg.norm(mesh.vertices, axis=1, keepdims=True)

        np.testing.assert_allclose(np.linalg.norm(mesh.normals, axis=1), 1.0, atol=1e-9)
        assert np.all(np.einsum("ij,ij->i", mesh.normals, radial) > 0.95)

    def test_seam_normals_welded(self, mesh):
        grid = mesh.normals.reshape(13, 25, 3)

        np.testing.assert_allclose(grid[:, 0], grid[:, -1], atol=1e-12)

    def test_pole_normals_point_along_axis(self, mesh):
        grid = mesh.normals.reshape(13, 25, 3)

        np.testing.assert_allclose(grid[0], np.tile([0.0, -1.0, 0.0], (25, 1)), atol=1e-6)
        np.testing.assert_allclose(grid[-1], np.tile([0.0, 1.0, 0.0], (25, 1)), atol=1e-6)

    def test_visual_mesh_has_no_normals(self):
        query = SurfaceQuery(Heightfield.constant(8, 4, 0.5), radius=5.0, height_scale=1.0)
        mesh = build_displaced_sphere(query, radial_segments=4, height_segments=2)

        assert mesh.normals is None
