"""Environment variable file loader with priority-based loading."""

import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from host_metrics.telemetry import get_logger

log = get_logger(__name__)


class Environment(str, Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


def get_environment() -> Environment:
    """Detect current environment from APP_ENV environment variable.

    Returns:
        Environment enum value.

    Environment variable mapping:
    - "production" or "prod" → Environment.PRODUCTION
    - "staging" or "stage" → Environment.STAGING
    - "test" → Environment.TEST
    - Default → Environment.DEVELOPMENT

    Note: environment detection must happen before settings are loaded,
    so this reads os.environ directly.
    """
    app_env = os.getenv("APP_ENV", "").lower()

    if app_env in ("production", "prod"):
        return Environment.PRODUCTION
    elif app_env in ("staging", "stage"):
        return Environment.STAGING
    elif app_env == "test":
        return Environment.TEST
    else:
        return Environment.DEVELOPMENT


def load_env_files(base_dir: Path | None = None) -> list[str]:
    """Load .env files in priority order.

    Priority order (highest to lowest):
    1. `.env.{environment}.local`
    2. `.env.{environment}`
    3. `.env.local`
    4. `.env`

    Args:
        base_dir: Directory holding the .env files. Defaults to the working directory.

    Returns:
        Names of the files that were loaded.
    """
    if base_dir is None:
        base_dir = Path.cwd()

    env_name = get_environment().value

    # Later files override earlier ones only for variables not already set
    env_files = [
        base_dir / f".env.{env_name}.local",
        base_dir / f".env.{env_name}",
        base_dir / ".env.local",
        base_dir / ".env",
    ]

    loaded_files = []
    for env_file in env_files:
        if env_file.exists():
            # override=False: explicit environment variables and higher-priority files win
            load_dotenv(env_file, override=False)
            loaded_files.append(env_file.name)

    if loaded_files:
        log.info("env_files_loaded", environment=env_name, files=loaded_files, base_dir=str(base_dir))
    else:
        log.debug("no_env_files_found", environment=env_name, base_dir=str(base_dir))

    return loaded_files
