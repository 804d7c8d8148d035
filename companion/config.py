"""Application configuration pulled from environment variables via pydantic."""
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="companion/config")


class Settings(BaseSettings):
    """Environment-driven configuration for the companion service."""
    model_config = SettingsConfigDict(env_prefix="COMPANION_", extra="ignore")

    data_dir: Path = Path.home() / ".personal-companion"
    cache_backend: str = "file"  # options: file, memory, redis
    cache_redis_url: str | None = None
    weather_max_age_seconds: int = 900
    news_max_age_seconds: int = 900
    weather_hours: int = 8
    news_count: int = 12
    pin_min_length: int = 4
    pin_max_length: int = 8
    http_timeout_seconds: float = 10.0
    log_level: str = "INFO"

    @field_validator("cache_backend", mode="after")
    @classmethod
    def normalize_backend(cls, v: str) -> str:
        """Lowercase backend names so env values like 'Redis' still match."""
        return v.strip().lower()

    @field_validator("data_dir", mode="after")
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        """Expand '~' so env overrides behave like shell paths."""
        return v.expanduser()

    @property
    def users_dir(self) -> Path:
        """Root of the per-owner settings/cache tree."""
        return self.data_dir / "users"

    @property
    def credentials_path(self) -> Path:
        """Location of the credential record set."""
        return self.data_dir / "users.json"


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4)}")
