"""
Radial planet gravity.

Each planet pulls toward its centre with a constant magnitude. Several
planets combine by plain vector addition at the call site; there is no
multi-body logic here.
"""

from typing import Dict, Iterable, Iterator, Mapping, Optional

import numpy as np
import structlog

logger = structlog.get_logger()

# Below this distance from the centre the direction is undefined
CENTER_EPSILON = 1e-3


class PlanetGravitySource:
    """Constant-magnitude gravity toward a planet centre."""

    def __init__(self, center=(0.0, 0.0, 0.0), strength: float = 9.8):
        self.center = np.asarray(center, dtype=np.float64)
        self.strength = float(strength)

    def force_at(self, position) -> np.ndarray:
        """
        Gravity force at a world position.

        Args:
            position: World space position

        Returns:
            Vector toward the centre with length ``strength``, or the zero
            vector when ``position`` is (nearly) at the centre
        """
        to_planet = self.center - np.asarray(position, dtype=np.float64)
        distance = float(np.linalg.norm(to_planet))
        if distance < CENTER_EPSILON:
            return np.zeros(3)
        return to_planet / distance * self.strength

    def __repr__(self) -> str:
        return f"PlanetGravitySource(center={self.center.tolist()}, strength={self.strength})"


class GravityRegistry(Mapping[str, PlanetGravitySource]):
    """Planet identifier -> gravity source handle."""

    def __init__(self, sources: Optional[Mapping[str, PlanetGravitySource]] = None):
        self._sources: Dict[str, PlanetGravitySource] = dict(sources or {})

    def register(self, planet_id: str, source: PlanetGravitySource) -> None:
        if planet_id in self._sources:
            logger.info("Replacing gravity source", planet_id=planet_id)
        self._sources[planet_id] = source

    def unregister(self, planet_id: str) -> None:
        self._sources.pop(planet_id, None)

    def __getitem__(self, planet_id: str) -> PlanetGravitySource:
        return self._sources[planet_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._sources)

    def __len__(self) -> int:
        return len(self._sources)


def total_gravity(sources: Iterable[PlanetGravitySource], position) -> np.ndarray:
    """Sum of the forces of ``sources`` at ``position``."""
    total = np.zeros(3)
    for source in sources:
        total += source.force_at(position)
    return total
