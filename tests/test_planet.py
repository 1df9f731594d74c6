"""Tests for planet generation, regeneration and queries."""

import math
from concurrent.futures import Future

import numpy as np
import pytest

from py_planet.config import PlanetConfig
from py_planet.core.heightfield import Heightfield
from py_planet.core.planet import COLLISION_DEBUG_COLOR, TerrainPlanet


class ConstantProducer:
    """Heightfield producer returning one value everywhere."""

    def __init__(self, value):
        self.value = value
        self.calls = 0

    def produce(self, config, seed):
        self.calls += 1
        return Heightfield.constant(config.width, config.height, self.value)


class RecordingInstantiator:
    def __init__(self):
        self.created = []
        self.destroyed = []

    def instantiate(self, archetype_id, position, basis):
        handle = (archetype_id, tuple(position))
        self.created.append(handle)
        return handle

    def destroy(self, handle):
        self.destroyed.append(handle)


@pytest.fixture
def small_config():
    return PlanetConfig(
        texture_width=64,
        texture_height=32,
        noise_octaves=3,
        visual_radial_segments=16,
        visual_height_segments=8,
        prop_count=20,
        random_seed=42,
    )


class TestGeneration:
    """Test building a planet surface."""

    def test_not_ready_before_generation(self, small_config):
        planet = TerrainPlanet(small_config)

        assert not planet.is_ready
        assert planet.surface is None
        assert planet.query_height(0.3, 1.0) == 0.0

    def test_generate_builds_everything(self, small_config):
        planet = TerrainPlanet(small_config)

        surface = planet.generate()

        assert planet.is_ready
        assert surface.generation == 1
        assert surface.seed == 42
        assert surface.heightfield.samples.shape == (32, 64)
        assert surface.visual_mesh.vertex_count == 17 * 9
        assert surface.collision_mesh.vertex_count == 9 * 5
        assert surface.collision_mesh.normals is not None
        assert surface.visual_mesh.normals is None
        assert len(surface.props) <= 20
        assert surface.prop_attempts <= 200
        assert surface.collision_debug_mesh is None

    def test_constant_field_radius(self, small_config):
        """radius 50, height_scale 10, constant 0.5 -> every vertex at 55."""
        planet = TerrainPlanet(small_config, producer=ConstantProducer(0.5))

        surface = planet.generate()

        for mesh in (surface.visual_mesh, surface.collision_mesh):
            np.testing.assert_allclose(np.linalg.norm(mesh.vertices, axis=1), 55.0, rtol=1e-6)

    def test_collision_divisor_floor(self):
        config = PlanetConfig(
            texture_width=8,
            texture_height=4,
            visual_radial_segments=1,
            visual_height_segments=3,
            prop_count=0,
            random_seed=1,
        )

        surface = TerrainPlanet(config, producer=ConstantProducer(0.0)).generate()

        assert surface.collision_mesh.radial_segments == 1
        assert surface.collision_mesh.height_segments == 1

    def test_seeded_generation_is_reproducible(self, small_config):
        first = TerrainPlanet(small_config).generate()
        second = TerrainPlanet(small_config).generate()

        np.testing.assert_array_equal(first.heightfield.samples, second.heightfield.samples)
        assert [p.archetype_id for p in first.props] == [p.archetype_id for p in second.props]

    def test_unseeded_generation_records_seed(self, small_config):
        config = small_config.model_copy(update={"random_seed": None})

        surface = TerrainPlanet(config).generate()

        assert surface.seed >= 0

    def test_debug_mesh(self, small_config):
        config = small_config.model_copy(update={"show_collision_debug_mesh": True})

        surface = TerrainPlanet(config).generate()

        assert surface.collision_debug_mesh is surface.collision_mesh
        assert COLLISION_DEBUG_COLOR == (0.0, 1.0, 0.0, 0.3)

    def test_props_only_on_low_ground(self, small_config):
        surface = TerrainPlanet(small_config).generate()

        threshold = small_config.effective_prop_height_threshold
        assert all(p.height < threshold for p in surface.props)

    def test_no_props_on_high_field(self, small_config):
        surface = TerrainPlanet(small_config, producer=ConstantProducer(1.0)).generate()

        assert surface.props == ()
        assert surface.prop_attempts == 200


class TestHeightfieldFuture:
    """Test generation from an externally produced heightfield."""

    def test_waits_on_future(self, small_config):
        producer = ConstantProducer(0.9)
        planet = TerrainPlanet(small_config, producer=producer)
        future = Future()
        future.set_result(Heightfield.constant(64, 32, 0.25))

        surface = planet.generate(heightfield_future=future)

        assert producer.calls == 0
        np.testing.assert_allclose(np.linalg.norm(surface.visual_mesh.vertices, axis=1), 52.5, rtol=1e-6)

    def test_future_error_propagates(self, small_config):
        planet = TerrainPlanet(small_config)
        future = Future()
        future.set_exception(RuntimeError("producer crashed"))

        with pytest.raises(RuntimeError, match="producer crashed"):
            planet.generate(heightfield_future=future)

        assert not planet.is_ready


class TestRegeneration:
    """Test teardown and superseded generations."""

    def test_regenerate_replaces_surface(self, small_config):
        planet = TerrainPlanet(small_config)
        first = planet.generate()

        second = planet.regenerate()

        assert second.generation == 2
        assert planet.surface is second
        assert second is not first

    def test_regenerate_with_new_config(self, small_config):
        planet = TerrainPlanet(small_config, producer=ConstantProducer(0.5))
        planet.generate()

        config = small_config.model_copy(update={"planet_radius": 20.0, "gravity_strength": 3.0})
        surface = planet.regenerate(config)

        np.testing.assert_allclose(np.linalg.norm(surface.visual_mesh.vertices, axis=1), 25.0, rtol=1e-6)
        np.testing.assert_allclose(planet.query_force((0.0, 10.0, 0.0)), [0.0, -3.0, 0.0])

    def test_props_destroyed_on_regenerate(self, small_config):
        instantiator = RecordingInstantiator()
        planet = TerrainPlanet(small_config, producer=ConstantProducer(0.0), instantiator=instantiator)

        planet.generate()
        first_handles = planet.prop_handles
        assert len(first_handles) == 20

        planet.regenerate()

        assert instantiator.destroyed == first_handles
        assert len(planet.prop_handles) == 20

    def test_superseded_generation_is_discarded(self, small_config):
        """A regeneration started mid-build wins; the stale build never publishes."""
        planet = TerrainPlanet(small_config)

        class ReentrantProducer:
            def __init__(self):
                self.calls = 0

            def produce(self, config, seed):
                self.calls += 1
                if self.calls == 1:
                    planet.regenerate()
                return Heightfield.constant(config.width, config.height, 0.0)

        producer = ReentrantProducer()
        planet.producer = producer

        surface = planet.generate()

        assert producer.calls == 2
        assert surface.generation == 2
        assert planet.surface is surface
        assert planet.generation == 2


class TestQueries:
    """Test height, force and surface queries."""

    @pytest.fixture
    def planet(self, small_config):
        planet = TerrainPlanet(small_config, producer=ConstantProducer(0.5))
        planet.generate()
        return planet

    def test_query_height(self, planet):
        assert planet.query_height(0.0, 0.0) == pytest.approx(5.0)
        assert planet.query_height(math.pi / 2, math.pi) == pytest.approx(5.0)

    def test_query_force(self, planet):
        np.testing.assert_allclose(planet.query_force((100.0, 0.0, 0.0)), [-9.8, 0.0, 0.0])

    def test_surface_radius(self, planet):
        assert planet.surface_radius_at((0.0, 0.0, 200.0)) == pytest.approx(55.0)

    def test_offset_centre(self, small_config):
        planet = TerrainPlanet(small_config, center=(10.0, 0.0, 0.0), producer=ConstantProducer(0.5))
        planet.generate()

        np.testing.assert_allclose(planet.query_force((10.0, 0.0, 30.0)), [0.0, 0.0, -9.8])
        np.testing.assert_allclose(planet.surface_normal_at((10.0, 0.0, 30.0)), [0.0, 0.0, 1.0], atol=0.1)


class TestSpin:
    """Test planet rotation."""

    def test_no_spin_by_default(self, small_config):
        planet = TerrainPlanet(small_config)

        planet.update(1.0)

        assert planet.spin == 0.0

    def test_spin_round_trip(self, small_config):
        config = small_config.model_copy(update={"rotation_speed": 0.5})
        planet = TerrainPlanet(config, center=(1.0, 2.0, 3.0))

        planet.update(1.0)

        assert planet.spin == pytest.approx(0.5)
        point = np.array([4.0, -5.0, 6.0])
        np.testing.assert_allclose(planet.to_world(planet.to_local(point)), point, atol=1e-12)

    def test_spin_wraps(self, small_config):
        config = small_config.model_copy(update={"rotation_speed": 1.0})
        planet = TerrainPlanet(config)

        for _ in range(10):
            planet.update(1.0)

        assert -math.pi <= planet.spin <= math.pi

    def test_props_follow_rotation(self, small_config):
        config = small_config.model_copy(update={"rotation_speed": math.pi / 2})
        instantiator = RecordingInstantiator()
        planet = TerrainPlanet(config, producer=ConstantProducer(0.0), instantiator=instantiator)
        planet.update(1.0)

        surface = planet.generate()

        local = surface.props[0].position
        world = np.array(instantiator.created[0][1])
        np.testing.assert_allclose(world, planet.rotation @ local, atol=1e-9)
