"""
Procedural spherical terrain planets with gravity-aligned locomotion.
"""

from .core import (
    CameraMode,
    GravityRegistry,
    LocomotionController,
    PlanetGravitySource,
    TerrainPlanet,
)
from .config import PlanetConfig

__version__ = "0.1.0"

__all__ = [
    "CameraMode",
    "GravityRegistry",
    "LocomotionController",
    "PlanetConfig",
    "PlanetGravitySource",
    "TerrainPlanet",
]
