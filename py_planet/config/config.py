from pathlib import Path
from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

import os

# Load .env for local/dev runs, without overriding variables already set in the environment
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ and v is not None}
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Service settings pulled from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PLANET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (json or console)")

    # Generation limits for API requests
    default_texture_width: int = Field(default=512, description="Default heightfield width")
    default_texture_height: int = Field(default=256, description="Default heightfield height")
    max_texture_width: int = Field(default=4096, description="Max allowed heightfield width")
    max_texture_height: int = Field(default=2048, description="Max allowed heightfield height")
    max_visual_segments: int = Field(default=1024, description="Max visual mesh segments per axis")
    max_planets: int = Field(default=16, description="Max planets kept in memory")


# Instantiate singleton settings object
settings = Settings()
