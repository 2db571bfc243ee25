"""
Configuration settings for the widget service.
Environment variables override defaults.
"""
import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Service configuration"""

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Settings store
    SETTINGS_FILE: str = "runtime_settings.json"

    # Remote creature API
    POKEAPI_URL: str = "https://pokeapi.co/api/v2"
    FETCH_TIMEOUT: float = 5.0  # seconds
    CACHE_TTL_SECONDS: int = 3600

    # Cache warmer
    PREFETCH_ENABLED: bool = True
    PREFETCH_INTERVAL_SECONDS: int = 60

    # Widget defaults, overridable from /manage
    POOL_SIZE: int = 151
    TIMEZONE: str = "America/New_York"
    CYCLE_MINUTES: int = 10
    IMAGE_STYLE: str = "modern"

    def __post_init__(self):
        """Load from environment variables"""
        for key in self.__dataclass_fields__:
            env_value = os.getenv(key)
            if env_value is not None:
                field_type = self.__dataclass_fields__[key].type
                if field_type == bool:
                    setattr(self, key, env_value.lower() in ("true", "1", "yes"))
                elif field_type == int:
                    setattr(self, key, int(env_value))
                elif field_type == float:
                    setattr(self, key, float(env_value))
                else:
                    setattr(self, key, env_value)

