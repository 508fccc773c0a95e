"""
Runtime configuration read from the environment (and an optional .env file).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    # Where lis_store.json and the weather cache live; None = <package>/data
    data_dir: Optional[Path] = Field(default=None, validation_alias="LIS_DATA_DIR")

    # AI insights (OpenAI-compatible chat completions)
    openai_api_key: Optional[str] = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_MODEL")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1/chat/completions", validation_alias="OPENAI_BASE_URL"
    )
    ai_timeout: float = Field(default=30.0, validation_alias="LIS_AI_TIMEOUT")

    # Weather widget
    openweather_api_key: Optional[str] = Field(default=None, validation_alias="OPENWEATHER_API_KEY")
    weather_city: str = Field(default="Vadodara", validation_alias="LIS_WEATHER_CITY")
    weather_cache_minutes: int = Field(default=30, validation_alias="LIS_WEATHER_CACHE_MINUTES")
    weather_timeout: float = Field(default=10.0, validation_alias="LIS_WEATHER_TIMEOUT")

    # Feedback list
    page_size: int = Field(default=20, ge=1, validation_alias="LIS_PAGE_SIZE")

    log_level: str = Field(default="WARNING", validation_alias="LIS_LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def resolved_data_dir(self) -> Path:
        return self.data_dir if self.data_dir is not None else PACKAGE_DIR / "data"


settings = Settings()
