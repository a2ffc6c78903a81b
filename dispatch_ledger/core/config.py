"""Application configuration using pydantic settings with structured sections."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    url: str = Field(default="sqlite+aiosqlite:///./dispatch_ledger.db", alias="url")
    echo: bool = False
    pool_size: Optional[int] = None
    max_overflow: Optional[int] = None


class SettlementSettings(BaseModel):
    promotional_categories: frozenset[str] = frozenset({"EXPERIENCE", "LUCKY_BAG"})
    promotional_freeze_days: int = 3
    default_freeze_days: int = 7
    coordinator_rate: float = Field(default=0.01, ge=0, le=1)
    coordinator_excluded_categories: frozenset[str] = frozenset({"EXPERIENCE", "LUCKY_BAG", "BLIND_BOX"})
    # 历史数据兼容：结单时间缺失时回退到全员接单时间，默认关闭
    allow_acceptance_fallback: bool = False
    preview_ttl_seconds: int = 900


class SweeperSettings(BaseModel):
    batch_size: int = Field(default=200, gt=0)
    max_batches: int = Field(default=500, gt=0)
    interval_seconds: int = 900


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    project_name: str = "Dispatch Ledger"
    api_prefix: str = "/api"
    log_level: str = "INFO"

    database: DatabaseSettings = DatabaseSettings()
    settlement: SettlementSettings = SettlementSettings()
    sweeper: SweeperSettings = SweeperSettings()

    @property
    def database_url(self) -> str:
        return self.database.url


@lru_cache()
def get_settings() -> Settings:
    return Settings()
