# facility_hub/settings.py
"""
Facility Hub Settings.
"""
from __future__ import annotations
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

class Settings(BaseSettings):
    # =========================================================================
    # File Storage (logs, facility configuration overlay)
    # =========================================================================
    FACILITY_DATA_ROOT: Path = Field(
        default=(Path(__file__).resolve().parents[2] / "facility-data"),
        validation_alias=AliasChoices("FACILITY_DATA_ROOT", "fh_data_root"),
    )
    FACILITY_CONFIG_FILE: Optional[Path] = Field(default=None, validation_alias="FACILITY_CONFIG_FILE")

    # =========================================================================
    # Database
    # =========================================================================
    DB_HOST: str = Field(default="localhost", validation_alias="DB_HOST")
    DB_PORT: int = Field(default=5432, validation_alias="DB_PORT")
    DB_NAME: str = Field(default="facility_hub", validation_alias="DB_NAME")
    DB_USER: str = Field(default="postgres", validation_alias="DB_USER")
    DB_PASSWORD: str = Field(default="postgres", validation_alias="DB_PASSWORD")

    # Connection pool settings (PostgreSQL only)
    DB_POOL_SIZE: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    DB_MAX_OVERFLOW: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")

    # Full async URL override, e.g. sqlite+aiosqlite:///./facility_hub.db
    DATABASE_URL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "fh_database_url"),
    )

    # =========================================================================
    # Facility behaviour
    # =========================================================================
    DEFAULT_FACILITY_ID: Optional[str] = Field(default=None, validation_alias="DEFAULT_FACILITY_ID")
    LOW_STOCK_THRESHOLD: int = Field(default=10, validation_alias="LOW_STOCK_THRESHOLD")
    LOW_STOCK_CRITICAL: int = Field(default=5, validation_alias="LOW_STOCK_CRITICAL")
    EXPIRY_WINDOW_DAYS: int = Field(default=30, validation_alias="EXPIRY_WINDOW_DAYS")

    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def facility_config_path(self) -> Path:
        if self.FACILITY_CONFIG_FILE is not None:
            return Path(self.FACILITY_CONFIG_FILE).expanduser()
        return Path(self.FACILITY_DATA_ROOT) / "config" / "facilities.json"

settings = Settings()
