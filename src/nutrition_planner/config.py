"""Application configuration."""

import os
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    api_token: str
    redis_url: str = "redis://localhost:6379/0"
    chroma_enabled: bool = True
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    openai_api_key: str
    openai_model: str = "gpt-5.2"
    wikipedia_api_url: str = "https://en.wikipedia.org/w/api.php"
    bmr_equation: Literal["harris_benedict", "mifflin_st_jeor"] = "harris_benedict"
    other_gender_equation: Literal["female", "male", "average"] = "female"
    default_plan_days: int = 7
    food_cache_ttl_seconds: int = 86400
    condition_cache_ttl_seconds: int = 7 * 86400
    primary_timeout_seconds: float = 5.0
    secondary_timeout_seconds: float = 10.0
    cache_timeout_seconds: float = 2.0
    condition_lookup_timeout_seconds: float = 20.0
    selector_timeout_seconds: float = 30.0
    http_timeout_seconds: float = 10.0
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
