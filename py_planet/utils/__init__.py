"""
Utility helpers for planet generation.
"""

from .random import get_prng, resolve_seed

__all__ = ["get_prng", "resolve_seed"]
