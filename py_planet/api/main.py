"""FastAPI application exposing planet generation and surface queries."""

import math
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field, ValidationError

from ..config import PlanetConfig, settings
from ..core.planet import TerrainPlanet

# Configure logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

app = FastAPI(
    title="Planet Generator API",
    description="Procedural spherical terrain planets with height and gravity queries",
    version="0.1.0",
)

# In-process planet registry, keyed by planet id
planets: Dict[str, TerrainPlanet] = {}
created_at: Dict[str, datetime] = {}


# Request/Response models
class PlanetRequest(BaseModel):
    """Request to generate a new planet."""

    name: Optional[str] = Field(None, description="Display name")
    planet_radius: float = Field(50.0, gt=0)
    height_scale: float = Field(10.0, ge=0)
    gravity_strength: float = Field(9.8, ge=0)
    texture_width: Optional[int] = Field(None, ge=1, description="Defaults to the service setting")
    texture_height: Optional[int] = Field(None, ge=1, description="Defaults to the service setting")
    visual_radial_segments: int = Field(64, ge=1)
    visual_height_segments: int = Field(128, ge=1)
    show_collision_debug_mesh: bool = False
    prop_count: int = Field(300, ge=0)
    prop_height_threshold: Optional[float] = None
    random_seed: Optional[int] = Field(None, ge=0)


class RegenerateRequest(BaseModel):
    """Optional overrides when regenerating."""

    random_seed: Optional[int] = Field(None, ge=0, description="New seed; keep the configured one if unset")
    new_seed: bool = Field(False, description="Derive a fresh seed from the wall clock")


class MeshSummary(BaseModel):
    radial_segments: int
    height_segments: int
    vertices: int
    triangles: int


class PlanetSummary(BaseModel):
    """Summary information about a generated planet."""

    id: str
    name: str
    seed: int
    generation: int
    planet_radius: float
    height_scale: float
    gravity_strength: float
    texture_width: int
    texture_height: int
    visual_mesh: MeshSummary
    collision_mesh: MeshSummary
    props_count: int
    prop_attempts: int
    created_at: datetime
    generation_time_seconds: float


class HeightResponse(BaseModel):
    latitude: float
    longitude: float
    height: float
    radius: float


class ForceResponse(BaseModel):
    position: List[float]
    force: List[float]
    magnitude: float


class PropResponse(BaseModel):
    archetype_id: str
    position: List[float]
    basis: List[List[float]]


def _get_planet(planet_id: str) -> TerrainPlanet:
    planet = planets.get(planet_id)
    if planet is None:
        raise HTTPException(status_code=404, detail="Planet not found")
    return planet


def _summary(planet_id: str, planet: TerrainPlanet) -> PlanetSummary:
    surface = planet.surface
    if surface is None:
        raise HTTPException(status_code=409, detail="Planet has no generated surface")

    config = planet.config
    return PlanetSummary(
        id=planet_id,
        name=planet.name,
        seed=surface.seed,
        generation=surface.generation,
        planet_radius=config.planet_radius,
        height_scale=config.height_scale,
        gravity_strength=config.gravity_strength,
        texture_width=config.texture_width,
        texture_height=config.texture_height,
        visual_mesh=MeshSummary(
            radial_segments=surface.visual_mesh.radial_segments,
            height_segments=surface.visual_mesh.height_segments,
            vertices=surface.visual_mesh.vertex_count,
            triangles=surface.visual_mesh.triangle_count,
        ),
        collision_mesh=MeshSummary(
            radial_segments=surface.collision_mesh.radial_segments,
            height_segments=surface.collision_mesh.height_segments,
            vertices=surface.collision_mesh.vertex_count,
            triangles=surface.collision_mesh.triangle_count,
        ),
        props_count=len(surface.props),
        prop_attempts=surface.prop_attempts,
        created_at=created_at[planet_id],
        generation_time_seconds=surface.generation_time_seconds,
    )


def _build_config(request: PlanetRequest) -> PlanetConfig:
    texture_width = request.texture_width or settings.default_texture_width
    texture_height = request.texture_height or settings.default_texture_height

    if texture_width > settings.max_texture_width or texture_height > settings.max_texture_height:
        raise HTTPException(
            status_code=422,
            detail=f"Heightfield may not exceed {settings.max_texture_width}x{settings.max_texture_height}",
        )
    if max(request.visual_radial_segments, request.visual_height_segments) > settings.max_visual_segments:
        raise HTTPException(
            status_code=422,
            detail=f"Mesh segments may not exceed {settings.max_visual_segments}",
        )

    try:
        return PlanetConfig(
            planet_radius=request.planet_radius,
            height_scale=request.height_scale,
            gravity_strength=request.gravity_strength,
            texture_width=texture_width,
            texture_height=texture_height,
            visual_radial_segments=request.visual_radial_segments,
            visual_height_segments=request.visual_height_segments,
            show_collision_debug_mesh=request.show_collision_debug_mesh,
            prop_count=request.prop_count,
            prop_height_threshold=request.prop_height_threshold,
            random_seed=request.random_seed,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Planet Generator API",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "planets": len(planets)}


@app.post("/planets", response_model=PlanetSummary)
def create_planet(request: PlanetRequest):
    """Generate a new planet and keep it in memory."""
    logger.info("Planet generation requested", request=request.model_dump())

    if len(planets) >= settings.max_planets:
        raise HTTPException(status_code=429, detail="Planet limit reached")

    config = _build_config(request)
    planet_id = str(uuid.uuid4())
    planet = TerrainPlanet(config, name=request.name or f"planet-{planet_id[:8]}")
    planet.generate()

    planets[planet_id] = planet
    created_at[planet_id] = datetime.now(timezone.utc)
    return _summary(planet_id, planet)


@app.get("/planets", response_model=List[PlanetSummary])
def list_planets():
    """List generated planets."""
    return [_summary(planet_id, planet) for planet_id, planet in planets.items()]


@app.get("/planets/{planet_id}", response_model=PlanetSummary)
def get_planet(planet_id: str):
    """Get a planet summary."""
    return _summary(planet_id, _get_planet(planet_id))


@app.delete("/planets/{planet_id}")
def delete_planet(planet_id: str):
    """Drop a planet from memory."""
    _get_planet(planet_id)
    del planets[planet_id]
    del created_at[planet_id]
    logger.info("Planet deleted", planet_id=planet_id)
    return {"deleted": planet_id}


@app.post("/planets/{planet_id}/regenerate", response_model=PlanetSummary)
def regenerate_planet(planet_id: str, request: Optional[RegenerateRequest] = None):
    """Tear down and rebuild a planet, optionally with a new seed."""
    planet = _get_planet(planet_id)
    request = request or RegenerateRequest()

    config = planet.config
    if request.random_seed is not None:
        config = config.model_copy(update={"random_seed": request.random_seed})
    elif request.new_seed:
        config = config.model_copy(update={"random_seed": None})

    planet.regenerate(config)
    return _summary(planet_id, planet)


@app.get("/planets/{planet_id}/height", response_model=HeightResponse)
def get_height(
    planet_id: str,
    latitude: float = Query(..., ge=-math.pi / 2, le=math.pi / 2, description="Latitude in radians"),
    longitude: float = Query(..., ge=-math.pi, le=math.pi, description="Longitude in radians"),
):
    """Bilinear terrain height at a latitude/longitude."""
    planet = _get_planet(planet_id)
    height = planet.query_height(latitude, longitude)
    return HeightResponse(
        latitude=latitude,
        longitude=longitude,
        height=height,
        radius=planet.config.planet_radius + height,
    )


@app.get("/planets/{planet_id}/force", response_model=ForceResponse)
def get_force(planet_id: str, x: float, y: float, z: float):
    """Gravity the planet exerts at a world position."""
    planet = _get_planet(planet_id)
    force = planet.query_force((x, y, z))
    return ForceResponse(
        position=[x, y, z],
        force=force.tolist(),
        magnitude=float((force ** 2).sum() ** 0.5),
    )


@app.get("/planets/{planet_id}/props", response_model=List[PropResponse])
def get_props(planet_id: str):
    """Prop placements of the current surface."""
    planet = _get_planet(planet_id)
    if planet.surface is None:
        raise HTTPException(status_code=409, detail="Planet has no generated surface")
    return [
        PropResponse(
            archetype_id=prop.archetype_id,
            position=planet.to_world(prop.position).tolist(),
            basis=(planet.rotation @ prop.basis).tolist(),
        )
        for prop in planet.surface.props
    ]
