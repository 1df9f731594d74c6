"""
Configuration for planet generation and the query service.
"""

from .config import Settings, settings
from .planet_settings import PlanetConfig

__all__ = ["PlanetConfig", "Settings", "settings"]
