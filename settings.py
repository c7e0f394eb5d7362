from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # `.env.prod` takes priority over `.env`
        env_file=(".env", ".env.prod")
    )

    # Full SQLAlchemy URL; database.py falls back to DB_* vars, then SQLite
    database_url: Optional[str] = None

    # Logging
    log_format: str = "json"  # "json" or "console"
    log_level: str = "INFO"

    # CloudWatch Embedded Metrics ("Local" prints to stdout)
    metrics_environment: str = "Local"
    metrics_namespace: str = "JobBoard"

    cors_origins: List[str] = ["*"]

    # Role that receives job-posted notifications
    jobseeker_role: str = "jobseeker"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
