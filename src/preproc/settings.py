"""Runtime settings using pydantic-settings.

Environment (or .env) overrides for the preprocessing runtime. The pipeline
recipe itself comes from the YAML configuration file, not from here.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Preprocessing runtime settings.

    Attributes:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        DEVICE_ID: Device index stamped on output tensors (default: -1,
            untagged; also the current device when acceleration is on)
        USE_GPU: Request the accelerated path at construction time
    """

    LOG_LEVEL: str = "INFO"
    DEVICE_ID: int = -1
    USE_GPU: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance (singleton pattern).

    Returns:
        Settings instance loaded from environment
    """
    return Settings()
