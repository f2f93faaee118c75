"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Everything the relay stores lives in memory, so there are no credentials
or connection settings here - only limits, timing and binding.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Media Relay API"
    api_version: str = "v1"

    # Media lifecycle
    media_ttl_seconds: float = Field(
        default=3600,
        description="How long an uploaded image stays retrievable. Same for every upload."
    )
    max_upload_size_mb: int = Field(
        default=20,
        description="Maximum size of a single uploaded image in MB. Decoding is memory-hungry."
    )
    storage_shards: int = Field(
        default=16,
        description="Lock shards per in-memory table. More shards means less contention under parallel uploads."
    )

    # Server
    host: str = Field(
        default="127.0.0.1",
        description="Bind address. Debug mode binds all interfaces."
    )
    port: int = Field(
        default=5040,
        description="Bind port"
    )
    debug: bool = Field(
        default=False,
        description="Development mode: bind 0.0.0.0, permissive CORS, auto-reload."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins. Ignored in debug mode, where all origins are allowed."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.debug or self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def bind_host(self) -> str:
        """Debug mode listens on every interface so containers and LAN devices can reach it."""
        return "0.0.0.0" if self.debug else self.host

    def validate_required_fields(self) -> list[str]:
        """
        Validate settings that Pydantic types alone can't express.

        Returns a list of problems, empty if the configuration is usable.
        """
        problems = []

        if self.media_ttl_seconds <= 0:
            problems.append("MEDIA_TTL_SECONDS must be positive")
        if self.max_upload_size_mb <= 0:
            problems.append("MAX_UPLOAD_SIZE_MB must be positive")
        if self.storage_shards < 1:
            problems.append("STORAGE_SHARDS must be at least 1")

        return problems


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
