from pathlib import Path
from typing import Literal, Optional

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

import os

# Load .env for local runs only where values are missing from the environment
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ and v is not None}
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Process-level settings pulled from ``PY_GEOMORPH_*`` environment variables."""

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "plain"] = Field(default="plain", description="Logging format")

    # Simulation Limits
    max_resolution: int = Field(default=4096, ge=3, description="Largest accepted grid resolution")
    progress_interval: int = Field(default=10, ge=1, description="Iterations between progress callbacks")

    # Reproducibility
    default_seed: Optional[int] = Field(default=None, ge=0, description="Seed used when an engine is built without one")

    model_config = SettingsConfigDict(env_prefix="PY_GEOMORPH_", extra="ignore")


# Instantiate singleton settings object
settings = Settings()
