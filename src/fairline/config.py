"""Runtime settings for the fairline command line."""

from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OutputFormat(str, Enum):
    """How the command line renders priced markets."""

    JSON = "json"
    TABLE = "table"


class FairlineSettings(BaseSettings):
    """Settings read from ``FAIRLINE_*`` environment variables or ``.env``.

    These only steer the command line.  Pricing behaviour lives in
    :class:`fairline.pricing.configuration.PricingConfig`, which is always
    passed explicitly.
    """

    config_path: Path | None = Field(
        default=None,
        description="Pricing configuration file to load",
        alias="FAIRLINE_CONFIG",
    )

    environment: str | None = Field(
        default=None,
        description="Pricing configuration environment overlay",
        alias="FAIRLINE_ENV",
    )

    log_level: str = Field(
        default="WARNING",
        description="Root log level for command-line runs",
        alias="FAIRLINE_LOG_LEVEL",
    )

    output: OutputFormat = Field(
        default=OutputFormat.JSON,
        description="Output format: 'json' or 'table'",
        alias="FAIRLINE_OUTPUT",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


def get_settings() -> FairlineSettings:
    """Build settings from the current environment."""
    return FairlineSettings()
