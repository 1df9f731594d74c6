#!/usr/bin/env python3
"""
Demo: generate a small planet, fly down to it and walk around.
"""

import math

import numpy as np

from py_planet.config import PlanetConfig
from py_planet.core import (
    CameraMode,
    GravityRegistry,
    LocomotionController,
    LocomotionState,
    MovementInput,
    SurfaceClampSolver,
    TerrainPlanet,
)


def main():
    """Generate a planet and run the controller for a few simulated seconds."""
    print("Py-Planet Walk Demo")
    print("=" * 40)

    config = PlanetConfig(
        planet_radius=50.0,
        height_scale=10.0,
        texture_width=256,
        texture_height=128,
        visual_radial_segments=64,
        visual_height_segments=128,
        prop_count=50,
        random_seed=42,
    )
    planet = TerrainPlanet(config, name="demo")
    surface = planet.generate()

    print(f"\nSeed: {surface.seed}")
    print(f"Visual mesh: {surface.visual_mesh.vertex_count} vertices, "
          f"{surface.visual_mesh.triangle_count} triangles")
    print(f"Collision mesh: {surface.collision_mesh.vertex_count} vertices, "
          f"{surface.collision_mesh.triangle_count} triangles")
    print(f"Props: {len(surface.props)} placed in {surface.prop_attempts} attempts")

    print("\nHeights along the equator:")
    for degrees in range(-180, 180, 45):
        height = planet.query_height(0.0, math.radians(degrees))
        print(f"  lon {degrees:5d}: {height:6.2f}")

    registry = GravityRegistry({planet.name: planet.gravity})
    start = np.array([0.0, 0.0, config.planet_radius + config.height_scale + 5.0])
    controller = LocomotionController(
        registry,
        SurfaceClampSolver(planet),
        state=LocomotionState(position=start),
    )

    controller.set_mode(CameraMode.WALK)
    dt = 1.0 / 60.0
    for frame in range(600):
        movement = MovementInput(forward=frame > 120, up=frame == 300)
        if frame % 30 == 0:
            controller.apply_look(4.0, 0.0)
        result = controller.update(dt, movement)
        if frame % 120 == 0:
            altitude = np.linalg.norm(result.position) - planet.surface_radius_at(result.position)
            print(f"  frame {frame:3d}: altitude {altitude:6.2f} grounded={result.grounded} "
                  f"speed={np.linalg.norm(result.velocity):5.2f}")

    print("\nDemo complete!")


if __name__ == "__main__":
    main()
