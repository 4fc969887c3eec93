from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Marketwatch Upload API"
    env: str = "dev"
    database_url: str = Field(default="sqlite:///./marketwatch.db")
    default_market: str = "Unknown"
    max_error_details: int = Field(default=50, ge=0)

    model_config = SettingsConfigDict(env_file=".env", env_prefix="MARKETWATCH_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
