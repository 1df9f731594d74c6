"""Tests for the rigid-body solvers."""

import math

import numpy as np
import pytest

from py_planet.config import PlanetConfig
from py_planet.core.heightfield import Heightfield
from py_planet.core.planet import TerrainPlanet
from py_planet.core.solver import FreeSpaceSolver, SurfaceClampSolver


class ConstantProducer:
    def __init__(self, value):
        self.value = value

    def produce(self, config, seed):
        return Heightfield.constant(config.width, config.height, self.value)


class TestFreeSpaceSolver:
    def test_integrates_position(self):
        result = FreeSpaceSolver().move_and_slide(
            np.zeros(3), np.array([1.0, 2.0, 3.0]), np.array([0.0, 1.0, 0.0]), math.radians(45), 0.5
        )

        np.testing.assert_allclose(result.position, [0.5, 1.0, 1.5])
        np.testing.assert_allclose(result.velocity, [1.0, 2.0, 3.0])
        assert not result.grounded


class TestSurfaceClampSolver:
    """Test surface contact on a flat-terrain planet."""

    @pytest.fixture
    def planet(self):
        config = PlanetConfig(
            texture_width=32,
            texture_height=16,
            visual_radial_segments=8,
            visual_height_segments=8,
            prop_count=0,
            random_seed=1,
        )
        planet = TerrainPlanet(config, producer=ConstantProducer(0.5))
        planet.generate()
        return planet

    @pytest.fixture
    def solver(self, planet):
        return SurfaceClampSolver(planet)

    def test_above_surface_is_free(self, solver):
        result = solver.move_and_slide(
            np.array([0.0, 70.0, 0.0]), np.array([0.0, -1.0, 0.0]), np.array([0.0, 1.0, 0.0]), math.radians(45), 0.1
        )

        np.testing.assert_allclose(result.position, [0.0, 69.9, 0.0])
        assert not result.grounded

    def test_pushed_out_of_terrain(self, solver):
        result = solver.move_and_slide(
            np.array([54.0, 0.0, 0.0]),
            np.array([-3.0, 0.0, 1.0]),
            np.array([1.0, 0.0, 0.0]),
            math.radians(45),
            0.0,
        )

        assert np.linalg.norm(result.position) == pytest.approx(55.0)
        assert result.velocity[0] == pytest.approx(0.0, abs=1e-9)
        assert result.velocity[2] == pytest.approx(1.0)
        assert result.grounded

    def test_steep_up_is_not_floor(self, solver):
        result = solver.move_and_slide(
            np.array([55.0, 0.0, 0.0]),
            np.zeros(3),
            np.array([0.0, 1.0, 0.0]),
            math.radians(45),
            0.0,
        )

        assert not result.grounded

    def test_outward_velocity_kept(self, solver):
        result = solver.move_and_slide(
            np.array([55.0, 0.0, 0.0]),
            np.array([4.0, 0.0, 0.0]),
            np.array([1.0, 0.0, 0.0]),
            math.radians(45),
            0.0,
        )

        np.testing.assert_allclose(result.velocity, [4.0, 0.0, 0.0])
