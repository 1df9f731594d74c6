"""
Seed handling for planet generation.

Every generation pass gets its own Alea stream derived from one planet
seed. When no seed is configured, one is derived from the wall clock at
generation time and logged so the planet can be reproduced later.
"""

import time
from typing import Optional

import structlog

from ..core.alea_prng import AleaPRNG

logger = structlog.get_logger()


def resolve_seed(seed: Optional[int] = None) -> int:
    """
    Return ``seed`` unchanged, or a fresh seed taken from the wall clock.

    Args:
        seed: Explicit seed, or None to auto-derive one

    Returns:
        Non-negative 31-bit integer seed
    """
    if seed is not None:
        return int(seed)

    derived = time.time_ns() & 0x7FFFFFFF
    logger.info("Derived random seed from wall clock", seed=derived)
    return derived


def get_prng(seed: int, stream: str) -> AleaPRNG:
    """
    Get an Alea PRNG for one named generation stream.

    Args:
        seed: Planet seed
        stream: Stream name, e.g. "heightfield" or "props"

    Returns:
        AleaPRNG instance independent of every other stream
    """
    return AleaPRNG([seed, stream])
