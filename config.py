from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from the environment, with an optional `.env` file.

    Every value has a default so the service starts against the
    docker-compose MongoDB without any configuration.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = Field(default="development", description="Deployment environment, e.g. development/production")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")

    HOST: str = Field(default="0.0.0.0", description="Listening interface")
    PORT: int = Field(default=3030, description="Listening port")

    # Multi-document transactions (delete-post) need a replica-set URI,
    # e.g. mongodb://host:27017/?replicaSet=rs0; a standalone server answers 502.
    MONGODB_URI: str = Field(default="mongodb://mongodb:27017", description="MongoDB connection URI")
    MONGODB_NAME: str = Field(default="blog", description="MongoDB database name")


@lru_cache()
def get_settings() -> Settings:
    """Return a cached singleton `Settings` instance."""
    return Settings()
