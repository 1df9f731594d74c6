"""
Configuration for one planet generation.

A PlanetConfig is immutable for the lifetime of a generation; changing
any option means building a new config and regenerating the planet.
Invalid values are rejected here, before any heightfield or mesh work.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlanetConfig(BaseModel):
    """Options recognized by planet generation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Shape
    planet_radius: float = Field(default=50.0, gt=0, description="Radius of the undisplaced sphere")
    height_scale: float = Field(default=10.0, ge=0, description="Height of a heightfield sample of 1.0")
    gravity_strength: float = Field(default=9.8, ge=0, description="Constant gravity magnitude")
    rotation_speed: float = Field(default=0.0, description="Spin about the local Y axis in rad/s")

    # Heightfield
    texture_width: int = Field(default=2048, ge=1, description="Heightfield width in samples")
    texture_height: int = Field(default=1024, ge=1, description="Heightfield height in samples")
    noise_octaves: int = Field(default=6, ge=1, le=16, description="Fractal noise octaves")
    noise_frequency: float = Field(default=1.5, gt=0, description="Base noise frequency on the unit sphere")
    noise_persistence: float = Field(default=0.5, gt=0, le=1, description="Amplitude falloff per octave")
    noise_lacunarity: float = Field(default=2.0, gt=1, description="Frequency growth per octave")

    # Meshes
    visual_radial_segments: int = Field(default=256, ge=1, description="Visual mesh columns")
    visual_height_segments: int = Field(default=512, ge=1, description="Visual mesh rows")
    collision_resolution_divisor: int = Field(
        default=2, ge=1, description="Collision mesh resolution = visual // divisor"
    )
    show_collision_debug_mesh: bool = Field(default=False, description="Expose the collision mesh for debug drawing")

    # Props
    prop_count: int = Field(default=300, ge=0, description="Target number of props")
    prop_height_threshold: Optional[float] = Field(
        default=None, description="Props only below this height; defaults to height_scale / 2"
    )
    prop_attempt_factor: int = Field(default=10, ge=1, description="Attempt budget per requested prop")
    prop_archetypes: List[str] = Field(
        default=["Tree01", "Tree02", "Tree03", "Tree04"],
        min_length=1,
        description="Prop archetype ids",
    )

    random_seed: Optional[int] = Field(
        default=None, ge=0, description="Generation seed; derived from the wall clock when unset"
    )

    @field_validator("prop_archetypes")
    @classmethod
    def archetypes_not_blank(cls, value: List[str]) -> List[str]:
        if any(not name.strip() for name in value):
            raise ValueError("prop archetype ids must not be blank")
        return value

    @property
    def collision_radial_segments(self) -> int:
        return max(1, self.visual_radial_segments // self.collision_resolution_divisor)

    @property
    def collision_height_segments(self) -> int:
        return max(1, self.visual_height_segments // self.collision_resolution_divisor)

    @property
    def effective_prop_height_threshold(self) -> float:
        if self.prop_height_threshold is None:
            return self.height_scale / 2.0
        return self.prop_height_threshold
