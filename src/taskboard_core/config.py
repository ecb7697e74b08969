"""Application settings loaded from the environment."""
import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Settings(BaseSettings):
    """Runtime settings.

    Every field can be overridden with a TASKBOARD_-prefixed environment
    variable, e.g. TASKBOARD_DATABASE_URL or TASKBOARD_STRICT_ROLES=true.
    """

    model_config = SettingsConfigDict(env_prefix="TASKBOARD_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./taskboard.db"
    log_level: str = "INFO"

    # Reject unrecognized roles instead of ignoring them when merging policies
    strict_roles: bool = False
    # Fail the whole reconciliation on an unrecognized role label
    strict_role_labels: bool = False

    default_task_duration_days: int = Field(7, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for applications embedding the engine."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format=LOG_FORMAT,
    )
