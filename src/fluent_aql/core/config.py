"""Configuration management."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App config
    debug: bool = False
    log_level: str = Field(default="INFO", description="Root log level used by setup_logging()")

    # Compiler
    log_queries: bool = Field(
        default=False,
        description="Include compiled query text in debug logs (bind values are never logged)",
    )

    # Observability
    logfire_enabled: bool = Field(default=False, description="Route structlog events through logfire")

    model_config = SettingsConfigDict(
        env_prefix="FLUENT_AQL_",
        env_file=".env",
        extra="ignore",  # Ignore extra fields in .env file
    )


settings = Settings()
