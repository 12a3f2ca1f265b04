from pydantic import BaseModel, Field, field_validator

from eventhub.models.cache import HttpCacheConfig, MediaCacheConfig
from eventhub.models.dispatch import DispatchConfig
from eventhub.models.jobs import JobTrackerConfig


class LoggingConfig(BaseModel):
    """Structured logging settings"""

    level: str = "INFO"
    json_output: bool = True

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class ServerConfig(BaseModel):
    """HTTP API server settings"""

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)


class EventHubConfig(BaseModel):
    """Root configuration, read once at startup"""

    media_cache: MediaCacheConfig = Field(default_factory=MediaCacheConfig)
    http_cache: HttpCacheConfig = Field(default_factory=HttpCacheConfig)
    jobs: JobTrackerConfig = Field(default_factory=JobTrackerConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
