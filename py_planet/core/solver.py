"""
Rigid-body solver interface used by the locomotion controller.

Collision resolution is not part of the locomotion pipeline: the
controller hands a desired velocity and an up axis to a solver and takes
back whatever velocity and position the solver settles on.

:class:`SurfaceClampSolver` is a small reference solver that keeps a body
on top of a single terrain planet. It is enough for headless simulation
and tests, not a general physics engine.
"""

import math
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from .basis import angle_between


@dataclass
class SolverResult:
    """Outcome of one solver step."""

    velocity: np.ndarray
    grounded: bool
    position: np.ndarray


class RigidBodySolver(Protocol):
    def move_and_slide(
        self,
        position: np.ndarray,
        velocity: np.ndarray,
        up_direction: np.ndarray,
        floor_max_angle: float,
        dt: float,
    ) -> SolverResult:
        ...


class FreeSpaceSolver:
    """Solver without obstacles: integrates position, never grounded."""

    def move_and_slide(self, position, velocity, up_direction, floor_max_angle, dt):
        velocity = np.asarray(velocity, dtype=np.float64).copy()
        position = np.asarray(position, dtype=np.float64) + velocity * dt
        return SolverResult(velocity=velocity, grounded=False, position=position)


class SurfaceClampSolver:
    """
    Keeps a body on or above one planet's terrain surface.

    Args:
        planet: TerrainPlanet providing ``surface_radius_at`` and
            ``surface_normal_at`` for world positions
        skin: Distance above the surface still counted as contact
    """

    def __init__(self, planet, skin: float = 0.05):
        self.planet = planet
        self.skin = skin

    def move_and_slide(
        self,
        position: np.ndarray,
        velocity: np.ndarray,
        up_direction: np.ndarray,
        floor_max_angle: float = math.radians(45.0),
        dt: float = 0.0,
    ) -> SolverResult:
        velocity = np.asarray(velocity, dtype=np.float64).copy()
        position = np.asarray(position, dtype=np.float64) + velocity * dt

        offset = position - self.planet.center
        distance = float(np.linalg.norm(offset))
        if distance < 1e-9:
            return SolverResult(velocity=velocity, grounded=False, position=position)

        radial = offset / distance
        surface_radius = self.planet.surface_radius_at(position)

        if distance > surface_radius + self.skin:
            return SolverResult(velocity=velocity, grounded=False, position=position)

        if distance < surface_radius:
            position = self.planet.center + radial * surface_radius

        inward = float(np.dot(velocity, radial))
        if inward < 0.0:
            velocity -= inward * radial

        normal = self.planet.surface_normal_at(position)
        grounded = angle_between(normal, up_direction) <= floor_max_angle
        return SolverResult(velocity=velocity, grounded=grounded, position=position)
