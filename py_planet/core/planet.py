"""
Terrain planet: generation, regeneration and queries.

A planet owns everything derived from one heightfield: the heightfield
itself, the visual and collision meshes and the prop placements. They are
built together into a :class:`PlanetSurface` and published in a single
assignment, so consumers either see a complete surface or none at all.

Regeneration is a full teardown followed by a fresh generation. Each
generation carries an epoch number; work belonging to an epoch that has
since been superseded is discarded instead of being published.
"""

import math
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import numpy as np
import structlog

from ..config.planet_settings import PlanetConfig
from ..utils.random import get_prng, resolve_seed
from .basis import WORLD_UP, rotation_matrix
from .gravity import PlanetGravitySource
from .heightfield import (
    Heightfield,
    HeightfieldConfig,
    HeightfieldGenerator,
    HeightfieldProducer,
    await_heightfield,
)
from .mesh_builder import MeshBuffers, build_displaced_sphere
from .props import (
    GenerationCancelledError,
    PropInstantiator,
    PropPlacement,
    PropPlacementSampler,
)
from .sphere_mapping import from_sphere_point
from .surface_query import SurfaceQuery

logger = structlog.get_logger()

COLLISION_DEBUG_COLOR = (0.0, 1.0, 0.0, 0.3)


@dataclass(frozen=True)
class PlanetSurface:
    """Complete derived state of one generation."""

    generation: int
    seed: int
    heightfield: Heightfield
    query: SurfaceQuery
    visual_mesh: MeshBuffers
    collision_mesh: MeshBuffers
    props: Tuple[PropPlacement, ...]
    prop_attempts: int
    generation_time_seconds: float
    collision_debug_mesh: Optional[MeshBuffers] = None


class TerrainPlanet:
    """
    Spherical terrain planet driven by an owning application loop.

    Args:
        config: Generation options
        name: Identifier used in logs and gravity registries
        center: World position of the planet centre
        producer: Heightfield producer; defaults to the built-in noise generator
        instantiator: Optional scene factory receiving every prop placement
    """

    def __init__(
        self,
        config: Optional[PlanetConfig] = None,
        name: str = "planet",
        center=(0.0, 0.0, 0.0),
        producer: Optional[HeightfieldProducer] = None,
        instantiator: Optional[PropInstantiator] = None,
    ):
        self.config = config or PlanetConfig()
        self.name = name
        self.center = np.asarray(center, dtype=np.float64)
        self.producer = producer or HeightfieldGenerator()
        self.instantiator = instantiator
        self.gravity = PlanetGravitySource(self.center, self.config.gravity_strength)
        self.spin = 0.0

        self._surface: Optional[PlanetSurface] = None
        self._epoch = 0
        self._prop_handles: List[Any] = []

    # State

    @property
    def surface(self) -> Optional[PlanetSurface]:
        return self._surface

    @property
    def is_ready(self) -> bool:
        return self._surface is not None

    @property
    def generation(self) -> int:
        return self._epoch

    @property
    def query(self) -> SurfaceQuery:
        """Sampler of the current surface, or an empty one before generation."""
        if self._surface is None:
            return SurfaceQuery(None, self.config.planet_radius, self.config.height_scale)
        return self._surface.query

    @property
    def prop_handles(self) -> List[Any]:
        return list(self._prop_handles)

    def heightfield_config(self) -> HeightfieldConfig:
        return HeightfieldConfig(
            width=self.config.texture_width,
            height=self.config.texture_height,
            octaves=self.config.noise_octaves,
            frequency=self.config.noise_frequency,
            persistence=self.config.noise_persistence,
            lacunarity=self.config.noise_lacunarity,
        )

    # Generation

    def generate(
        self,
        heightfield_future: "Optional[Future[Heightfield]]" = None,
        timeout: Optional[float] = None,
    ) -> Optional[PlanetSurface]:
        """
        Tear down any previous surface and build a new one.

        Args:
            heightfield_future: Completion future of an externally produced
                heightfield. Mesh building waits on it; when omitted the
                configured producer runs synchronously.
            timeout: Seconds to wait on ``heightfield_future``

        Returns:
            The published surface. If this generation was superseded while
            running, the newer surface is returned and this one discarded.
        """
        self._teardown()
        self._epoch += 1
        epoch = self._epoch

        try:
            surface = self._build_surface(epoch, heightfield_future, timeout)
        except GenerationCancelledError:
            logger.info("Discarded superseded generation", planet=self.name, generation=epoch)
            return self._surface

        self._surface = surface
        self._spawn_props(surface)

        logger.info(
            "Planet generated",
            planet=self.name,
            generation=epoch,
            seed=surface.seed,
            visual_vertices=surface.visual_mesh.vertex_count,
            collision_vertices=surface.collision_mesh.vertex_count,
            props=len(surface.props),
            seconds=round(surface.generation_time_seconds, 3),
        )
        return surface

    def regenerate(self, config: Optional[PlanetConfig] = None) -> Optional[PlanetSurface]:
        """
        Rebuild the planet, optionally with a new configuration.

        Everything derived from the previous heightfield is destroyed
        first; any generation still in flight is superseded.
        """
        logger.info("Regenerating planet", planet=self.name)
        if config is not None:
            self.config = config
            self.gravity.strength = config.gravity_strength
        return self.generate()

    def _build_surface(
        self,
        epoch: int,
        heightfield_future: "Optional[Future[Heightfield]]",
        timeout: Optional[float],
    ) -> PlanetSurface:
        config = self.config
        started = time.perf_counter()
        seed = resolve_seed(config.random_seed)

        if heightfield_future is not None:
            heightfield = await_heightfield(heightfield_future, timeout)
        else:
            heightfield = self.producer.produce(self.heightfield_config(), seed)
        self._check_current(epoch)

        query = SurfaceQuery(heightfield, config.planet_radius, config.height_scale)

        visual_mesh = build_displaced_sphere(
            query, config.visual_radial_segments, config.visual_height_segments
        )
        self._check_current(epoch)

        collision_mesh = build_displaced_sphere(
            query,
            config.collision_radial_segments,
            config.collision_height_segments,
            with_normals=True,
        )
        self._check_current(epoch)

        sampler = PropPlacementSampler(
            query,
            get_prng(seed, "props"),
            config.effective_prop_height_threshold,
            archetypes=config.prop_archetypes,
            attempt_factor=config.prop_attempt_factor,
        )
        placement = sampler.sample(config.prop_count, should_continue=lambda: self._epoch == epoch)

        return PlanetSurface(
            generation=epoch,
            seed=seed,
            heightfield=heightfield,
            query=query,
            visual_mesh=visual_mesh,
            collision_mesh=collision_mesh,
            props=tuple(placement.placements),
            prop_attempts=placement.attempts,
            generation_time_seconds=time.perf_counter() - started,
            collision_debug_mesh=collision_mesh if config.show_collision_debug_mesh else None,
        )

    def _check_current(self, epoch: int) -> None:
        if epoch != self._epoch:
            raise GenerationCancelledError(
                f"Generation {epoch} superseded by generation {self._epoch}"
            )

    def _teardown(self) -> None:
        if self.instantiator is not None:
            for handle in self._prop_handles:
                self.instantiator.destroy(handle)
        self._prop_handles = []
        self._surface = None

    def _spawn_props(self, surface: PlanetSurface) -> None:
        if self.instantiator is None:
            return
        rotation = self.rotation
        for placement in surface.props:
            handle = self.instantiator.instantiate(
                placement.archetype_id,
                self.center + rotation @ placement.position,
                rotation @ placement.basis,
            )
            self._prop_handles.append(handle)

    # Frame update

    def update(self, dt: float) -> None:
        """Advance the planet's spin."""
        if self.config.rotation_speed:
            self.spin = math.remainder(self.spin + self.config.rotation_speed * dt, 2.0 * math.pi)

    @property
    def rotation(self) -> np.ndarray:
        """Local-to-world rotation of the planet."""
        return rotation_matrix(WORLD_UP, self.spin)

    def to_local(self, position) -> np.ndarray:
        """World position -> planet-local position."""
        return self.rotation.T @ (np.asarray(position, dtype=np.float64) - self.center)

    def to_world(self, local_position) -> np.ndarray:
        return self.center + self.rotation @ np.asarray(local_position, dtype=np.float64)

    # Queries

    def query_height(self, latitude: float, longitude: float) -> float:
        """Bilinear terrain height at (latitude, longitude) in radians."""
        return self.query.height_at_lat_long(latitude, longitude)

    def query_force(self, position) -> np.ndarray:
        """Gravity this planet exerts at a world position."""
        return self.gravity.force_at(position)

    def surface_radius_at(self, position) -> float:
        """Distance from the centre to the terrain in the direction of ``position``."""
        u, v = from_sphere_point(self.to_local(position))
        return self.config.planet_radius + self.query.sample_height(u, v)

    def surface_normal_at(self, position) -> np.ndarray:
        """World-space terrain normal below ``position``."""
        u, v = from_sphere_point(self.to_local(position))
        return self.rotation @ self.query.sample_normal(u, v)

    def __repr__(self) -> str:
        return f"TerrainPlanet(name={self.name!r}, generation={self._epoch}, ready={self.is_ready})"
