from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "workorder-engine"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str = "sqlite:///./workorders.db"
    SQL_ECHO: bool = False
    LOG_LEVEL: str = "INFO"

    # Work order numbering
    WORK_ORDER_NUMBER_PREFIX: str = "WO"
    WORK_ORDER_NUMBER_RETRIES: int = 5

    # Scheduling capacity model
    WORKDAY_HOURS: float = 8.0
    DEFAULT_ESTIMATED_HOURS: float = 4.0
    MAX_BATCH_SIZE: int = 200

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
