"""
Heightfield storage and generation.

The heightfield is an equirectangular grid of normalized elevation
samples. It is produced once per generation by a heightfield producer
and then only read. Regeneration replaces it wholesale.

The built-in producer evaluates fractal value noise at the 3D sphere
position of every pixel centre, so the field has no seam at the
longitude wrap and no pinching at the poles.
"""

from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np
import structlog

from ..utils.random import get_prng
from .sphere_mapping import to_sphere_point

logger = structlog.get_logger()

LATTICE_SIZE = 256


class Heightfield:
    """
    Immutable 2D grid of scalar samples, indexed ``[row, column]``.

    Row ``y`` covers v in [y / height, (y + 1) / height) and column ``x``
    covers u in [x / width, (x + 1) / width).
    """

    def __init__(self, samples: np.ndarray):
        data = np.array(samples, dtype=np.float32, copy=True)
        if data.ndim != 2:
            raise ValueError(f"Heightfield must be 2D, got shape {data.shape}")
        if data.shape[0] < 1 or data.shape[1] < 1:
            raise ValueError(f"Heightfield must not be empty, got shape {data.shape}")
        data.setflags(write=False)
        self._samples = data

    @property
    def width(self) -> int:
        return self._samples.shape[1]

    @property
    def height(self) -> int:
        return self._samples.shape[0]

    @property
    def samples(self) -> np.ndarray:
        """Read-only view of the sample grid."""
        return self._samples

    def get(self, x: int, y: int) -> float:
        """Sample at column ``x``, row ``y``."""
        return float(self._samples[y, x])

    @classmethod
    def constant(cls, width: int, height: int, value: float) -> "Heightfield":
        """Heightfield with the same value everywhere."""
        return cls(np.full((height, width), value, dtype=np.float32))

    def __repr__(self) -> str:
        return f"Heightfield(width={self.width}, height={self.height})"


@dataclass
class HeightfieldConfig:
    """Configuration for heightfield generation."""

    width: int
    height: int
    octaves: int = 6
    frequency: float = 1.5
    persistence: float = 0.5
    lacunarity: float = 2.0

    def __post_init__(self):
        if self.width < 1 or self.height < 1:
            raise ValueError(
                f"Heightfield dimensions must be positive, got {self.width}x{self.height}"
            )
        if self.octaves < 1:
            raise ValueError(f"octaves must be >= 1, got {self.octaves}")


class HeightfieldProducer(Protocol):
    """Anything that can produce a heightfield for a given seed."""

    def produce(self, config: HeightfieldConfig, seed: int) -> Heightfield:
        ...


class HeightfieldGenerator:
    """
    Fractal value noise evaluated on the sphere.

    Runs synchronously on the calling thread; :meth:`submit` wraps the
    result in an already completed future for callers that consume the
    producer through a readiness signal.
    """

    def produce(self, config: HeightfieldConfig, seed: int) -> Heightfield:
        """
        Generate a heightfield normalized to [0, 1].

        Args:
            config: Grid size and noise parameters
            seed: Planet seed

        Returns:
            New Heightfield instance
        """
        logger.info(
            "Generating heightfield",
            width=config.width,
            height=config.height,
            octaves=config.octaves,
            seed=seed,
        )

        prng = get_prng(seed, "heightfield")
        lattice = np.array(
            [prng.random() for _ in range(LATTICE_SIZE)], dtype=np.float64
        )
        perm = np.array(prng.shuffled(range(LATTICE_SIZE)), dtype=np.int64)
        perm = np.concatenate((perm, perm))

        # Pixel centres on the sphere
        u = (np.arange(config.width, dtype=np.float64) + 0.5) / config.width
        v = (np.arange(config.height, dtype=np.float64) + 0.5) / config.height
        uu, vv = np.meshgrid(u, v)
        points = to_sphere_point(uu, vv)

        total = np.zeros((config.height, config.width), dtype=np.float64)
        amplitude = 1.0
        frequency = config.frequency
        amplitude_sum = 0.0
        for octave in range(config.octaves):
            # Offset each octave so lattice points do not line up
            offset = octave * 17.31
            total += amplitude * _value_noise(points * frequency + offset, lattice, perm)
            amplitude_sum += amplitude
            amplitude *= config.persistence
            frequency *= config.lacunarity

        total /= amplitude_sum

        low, high = float(total.min()), float(total.max())
        if high - low > 1e-12:
            total = (total - low) / (high - low)
        else:
            total = np.zeros_like(total)

        logger.info(
            "Heightfield generated",
            mean=round(float(total.mean()), 4),
            std=round(float(total.std()), 4),
        )
        return Heightfield(total)

    def submit(self, config: HeightfieldConfig, seed: int) -> "Future[Heightfield]":
        """Produce the heightfield and return it as a completed future."""
        future: "Future[Heightfield]" = Future()
        try:
            future.set_result(self.produce(config, seed))
        except Exception as exc:
            future.set_exception(exc)
        return future


def _smoothstep(t: np.ndarray) -> np.ndarray:
    return t * t * (3.0 - 2.0 * t)


def _value_noise(points: np.ndarray, lattice: np.ndarray, perm: np.ndarray) -> np.ndarray:
    """Trilinear value noise in [0, 1] for an array of 3D points."""
    floor = np.floor(points)
    frac = points - floor
    cell = floor.astype(np.int64) & (LATTICE_SIZE - 1)

    fx, fy, fz = (_smoothstep(frac[..., i]) for i in range(3))
    x0, y0, z0 = cell[..., 0], cell[..., 1], cell[..., 2]
    x1 = (x0 + 1) & (LATTICE_SIZE - 1)
    y1 = (y0 + 1) & (LATTICE_SIZE - 1)
    z1 = (z0 + 1) & (LATTICE_SIZE - 1)

    def corner(x, y, z):
        return lattice[perm[perm[perm[x] + y] + z]]

    c00 = _lerp(corner(x0, y0, z0), corner(x1, y0, z0), fx)
    c10 = _lerp(corner(x0, y1, z0), corner(x1, y1, z0), fx)
    c01 = _lerp(corner(x0, y0, z1), corner(x1, y0, z1), fx)
    c11 = _lerp(corner(x0, y1, z1), corner(x1, y1, z1), fx)

    return _lerp(_lerp(c00, c10, fy), _lerp(c01, c11, fy), fz)


def _lerp(a, b, t):
    return a + (b - a) * t


def await_heightfield(future: "Future[Heightfield]", timeout: Optional[float] = None) -> Heightfield:
    """
    Block until a producer future completes and return its heightfield.

    Raises whatever the producer raised, or ``TimeoutError`` from the
    future if it does not complete within ``timeout`` seconds.
    """
    heightfield = future.result(timeout=timeout)
    if not isinstance(heightfield, Heightfield):
        raise TypeError(
            f"Heightfield producer returned {type(heightfield).__name__}, expected Heightfield"
        )
    return heightfield

