"""
Core planet generation and locomotion functionality.
"""

from .alea_prng import AleaPRNG
from .sphere_mapping import to_sphere_point, from_sphere_point, to_lat_long, from_lat_long
from .heightfield import Heightfield, HeightfieldConfig, HeightfieldGenerator
from .surface_query import SurfaceQuery, SurfacePoint
from .mesh_builder import MeshBuffers, build_displaced_sphere
from .gravity import PlanetGravitySource, GravityRegistry, total_gravity
from .props import PropPlacement, PropPlacementSampler, GenerationCancelledError
from .solver import SolverResult, SurfaceClampSolver, FreeSpaceSolver
from .locomotion import (
    CameraMode,
    LocomotionController,
    LocomotionOptions,
    LocomotionState,
    MovementInput,
)
from .planet import PlanetSurface, TerrainPlanet

__all__ = ['AleaPRNG', 'to_sphere_point', 'from_sphere_point', 'to_lat_long', 'from_lat_long',
           'Heightfield', 'HeightfieldConfig', 'HeightfieldGenerator',
           'SurfaceQuery', 'SurfacePoint', 'MeshBuffers', 'build_displaced_sphere',
           'PlanetGravitySource', 'GravityRegistry', 'total_gravity',
           'PropPlacement', 'PropPlacementSampler', 'GenerationCancelledError',
           'SolverResult', 'SurfaceClampSolver', 'FreeSpaceSolver',
           'CameraMode', 'LocomotionController', 'LocomotionOptions', 'LocomotionState',
           'MovementInput', 'PlanetSurface', 'TerrainPlanet']
