from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "RenoPlan"
    debug: bool = True
    host: str = "0.0.0.0"
    port: int = 8000
    redis_url: str = Field("redis://localhost:6379/0", validation_alias="REDIS_URL")
    cache_enabled: bool = False
    cache_ttl_seconds: int = 3600
    default_trials: int = 10000
    max_trials: int = 100000
    simulation_workers: int = 4
    simulation_batch_size: int = 1000
    leveling_solver: str = "auto"
    leveling_auto_threshold: int = 15
    ortools_time_limit_seconds: int = 10


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
