from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = Field("recordkit", description="Name reported in log records.")
    database_url: str = Field(
        "sqlite://",
        description="SQLAlchemy connection string for the storage engine backing the models.",
    )
    sql_echo: bool = Field(
        False,
        description="When true SQLAlchemy logs every statement it emits.",
    )
    log_level: str = Field(
        default="INFO",
        description="Python logging verbosity for recordkit modules (e.g. INFO, DEBUG).",
    )
    virtual_foreign_keys: bool = Field(
        True,
        description=(
            "When true relations declared with a foreign key are checked on save and delete."
            " Disable when the database enforces the constraints itself."
        ),
    )
    not_null_validations: bool = Field(
        True,
        description=(
            "When true non-nullable columns without a default that are left empty produce a"
            " PresenceOf message instead of reaching the database."
        ),
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    log_level_name = (settings.log_level or "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    logging.getLogger("recordkit").setLevel(log_level)
