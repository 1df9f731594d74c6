"""
Decorative prop placement on the planet surface.

Placement is rejection sampling over (u, v): a candidate is kept only
when the terrain there is below a height threshold (so props stay out of
high ground such as snow-capped peaks). Accepted props are oriented with
their Y axis along the local surface normal.

Instantiating scene objects is left to a :class:`PropInstantiator`.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Sequence

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .basis import surface_basis
from .sphere_mapping import to_sphere_point
from .surface_query import SurfaceQuery

logger = structlog.get_logger()

DEFAULT_ARCHETYPES = ("Tree01", "Tree02", "Tree03", "Tree04")


class GenerationCancelledError(RuntimeError):
    """Raised when work for a superseded generation must be discarded."""


@dataclass(frozen=True)
class PropPlacement:
    """Where and how one prop sits on the surface."""

    archetype_id: str
    u: float
    v: float
    height: float
    position: np.ndarray
    basis: np.ndarray  # columns: right, surface normal, -forward

    @property
    def normal(self) -> np.ndarray:
        return self.basis[:, 1]


@dataclass
class PlacementResult:
    placements: List[PropPlacement]
    attempts: int
    target: int

    @property
    def accepted(self) -> int:
        return len(self.placements)


class PropInstantiator(Protocol):
    """Scene-side factory for props."""

    def instantiate(self, archetype_id: str, position: np.ndarray, basis: np.ndarray) -> Any:
        ...

    def destroy(self, handle: Any) -> None:
        ...


class PropPlacementSampler:
    """
    Rejection sampler for prop placements.

    Args:
        query: Height/normal sampler of the planet
        prng: Seeded random stream
        height_threshold: Candidates at or above this height are rejected
        archetypes: Prop archetype ids to choose from
        attempt_factor: Attempt budget as a multiple of the target count
    """

    def __init__(
        self,
        query: SurfaceQuery,
        prng: AleaPRNG,
        height_threshold: float,
        archetypes: Sequence[str] = DEFAULT_ARCHETYPES,
        attempt_factor: int = 10,
    ):
        if not archetypes:
            raise ValueError("At least one prop archetype is required")
        self.query = query
        self.prng = prng
        self.height_threshold = float(height_threshold)
        self.archetypes = list(archetypes)
        self.attempt_factor = attempt_factor

    def sample(
        self,
        count: int,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> PlacementResult:
        """
        Draw up to ``count`` placements.

        Stops at ``count`` accepted placements or after
        ``count * attempt_factor`` attempts, whichever comes first.

        Args:
            count: Target number of accepted placements
            should_continue: Checked before every attempt; returning False
                aborts with GenerationCancelledError

        Returns:
            PlacementResult with the accepted placements and attempts made
        """
        max_attempts = count * self.attempt_factor
        placements: List[PropPlacement] = []
        attempts = 0

        while len(placements) < count and attempts < max_attempts:
            if should_continue is not None and not should_continue():
                raise GenerationCancelledError("Prop placement superseded by regeneration")
            attempts += 1

            u = self.prng.random()
            v = self.prng.random()
            height = self.query.sample_height(u, v)
            if height >= self.height_threshold:
                continue

            placements.append(self._place(u, v, height))

        logger.info(
            "Props placed",
            accepted=len(placements),
            target=count,
            attempts=attempts,
        )
        return PlacementResult(placements=placements, attempts=attempts, target=count)

    def _place(self, u: float, v: float, height: float) -> PropPlacement:
        position = to_sphere_point(u, v) * (self.query.radius + height)
        normal = self.query.sample_normal(u, v)
        archetype_id = self.prng.choice(self.archetypes)
        return PropPlacement(
            archetype_id=archetype_id,
            u=u,
            v=v,
            height=height,
            position=position,
            basis=surface_basis(normal),
        )
