"""Configuration management for warehouse-re."""

import os
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


def _find_env_file() -> Optional[str]:
    """Find .env file in multiple locations.

    Search order:
    1. Current working directory
    2. ~/.warehouse-re/.env
    3. Package directory (where this file is located)
    """
    if os.path.exists(".env"):
        return ".env"

    user_env = Path.home() / ".warehouse-re" / ".env"
    if user_env.exists():
        return str(user_env)

    package_dir = Path(__file__).parent.parent
    package_env = package_dir / ".env"
    if package_env.exists():
        return str(package_env)

    return None


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    default_target: str = Field(
        default="bigquery",
        description="Warehouse used when the connection info does not name one (bigquery or snowflake)"
    )

    # BigQuery connection defaults
    bigquery_project_id: Optional[str] = Field(
        default=None,
        description="GCP project to reverse engineer"
    )
    bigquery_key_filename: Optional[str] = Field(
        default=None,
        description="Path to a service account JSON key (application default credentials when unset)"
    )
    bigquery_location: Optional[str] = Field(
        default=None,
        description="Default BigQuery location for queries"
    )

    # Snowflake connection defaults
    snowflake_account: Optional[str] = Field(default=None, description="Snowflake account identifier")
    snowflake_user: Optional[str] = Field(default=None, description="Snowflake user")
    snowflake_password: Optional[str] = Field(default=None, description="Snowflake password")
    snowflake_warehouse: Optional[str] = Field(default=None, description="Snowflake virtual warehouse")
    snowflake_role: Optional[str] = Field(default=None, description="Snowflake role")
    snowflake_database: Optional[str] = Field(
        default=None,
        description="Restrict schema listing to one Snowflake database"
    )

    # Record sampling defaults
    sampling_mode: str = Field(
        default="absolute",
        description="Record sampling mode: absolute or relative"
    )
    sampling_absolute_value: int = Field(
        default=1000,
        description="Number of rows sampled per table in absolute mode"
    )
    sampling_relative_value: float = Field(
        default=1.0,
        description="Percentage of rows sampled per table in relative mode"
    )

    fail_fast: bool = Field(
        default=False,
        description="Abort the whole run on the first failed entity instead of skipping it"
    )
    log_level: str = Field(default="WARNING", description="Console log level")

    # Run logging configuration
    run_logging_enabled: bool = Field(
        default=True,
        description="Record reverse-engineering runs in a local SQLite database"
    )
    run_logging_db_path: Optional[str] = Field(
        default=None,
        description="Path to the runs database file (default: ~/.warehouse-re/runs.db)"
    )
    run_logging_retention_days: int = Field(
        default=30,
        description="Number of days to retain run log entries"
    )

    class Config:
        env_file = _find_env_file()
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()
